# tests/core/pipeline/test_task_context.py
"""
Testes do RunContext (Data publicados, event log, warnings) e do TaskContext.
"""

import pytest

from seqflow.core.data.data import Data
from seqflow.core.data.ports import single_input_port, single_output_port
from seqflow.core.exceptions import ConfigurationError, IllegalStateError
from seqflow.core.pipeline.context import TaskContext
from seqflow.core.pipeline.status import TaskStatus


def _task_ctx(run, formats, *, primary=None):
    status = TaskStatus(task_id="map#0", step_id="map", context_name="S1")
    inputs = {"input": primary} if primary is not None else {}
    return TaskContext(
        run=run,
        step_id="map",
        task_id="map#0",
        context_name="S1",
        status=status,
        inputs=inputs,
        output_ports=single_output_port(formats.alignments),
        parameters={"threads": 2},
        primary=primary,
    )


def test_publish_finalizes_and_rejects_second_publication(dummy_ctx, formats):
    data = Data.single("S1", formats.reads, value="/data/S1.fq")
    dummy_ctx.publish(step_id="ingest", port="output", data=data)

    assert dummy_ctx.has_data(step_id="ingest", port="output")
    assert dummy_ctx.get_data(step_id="ingest", port="output").finalized

    with pytest.raises(IllegalStateError):
        dummy_ctx.publish(step_id="ingest", port="output", data=Data.single("S2", formats.reads))


def test_get_data_missing_raises_key_error(dummy_ctx):
    with pytest.raises(KeyError):
        dummy_ctx.get_data(step_id="nope", port="output")


def test_log_events_include_run_and_step(dummy_ctx):
    dummy_ctx.log(step_id="map", level="info", message="hello", sample="S1")
    dummy_ctx.log(step_id="other", level="info", message="ignored")

    events = dummy_ctx.events_for("map")
    assert len(events) == 1
    ev = events[0]
    assert ev["run_id"] == "run-test-001"
    assert ev["step_id"] == "map"
    assert ev["sample"] == "S1"
    assert "timestamp" in ev


def test_warnings_are_grouped_by_step(dummy_ctx):
    dummy_ctx.add_warning(step_id="map", message="low coverage")
    dummy_ctx.add_warning(step_id="map", message="few reads")
    assert dummy_ctx.warnings == {"map": ["low coverage", "few reads"]}


def test_output_data_inherits_primary_name_and_metadata(dummy_ctx, formats):
    primary = Data.single("S1", formats.filtered, metadata={"Experiment": "E1", "Reference": "true"}).finalize()
    ctx = _task_ctx(dummy_ctx, formats, primary=primary)

    out = ctx.output_data("output", metadata={"Lane": "L001"})
    out.set_value("/out/S1.sam")

    assert out.name == "S1"
    assert out.format is formats.alignments
    assert out.metadata.to_dict() == {"Experiment": "E1", "Reference": "true", "Lane": "L001"}
    assert [d.value for d in ctx.outputs()["output"]] == ["/out/S1.sam"]
    assert ctx.input_data("input") is primary
    assert ctx.parameters == {"threads": 2}


def test_output_without_primary_uses_step_id(dummy_ctx, formats):
    ctx = _task_ctx(dummy_ctx, formats)
    assert ctx.output_data("output").name == "map"


def test_unknown_ports_are_configuration_errors(dummy_ctx, formats):
    ctx = _task_ctx(dummy_ctx, formats)
    with pytest.raises(ConfigurationError):
        ctx.input_data("input")
    with pytest.raises(ConfigurationError):
        ctx.output_data("missing")


def test_task_log_carries_task_id(dummy_ctx, formats):
    ctx = _task_ctx(dummy_ctx, formats)
    ctx.log("info", "aligned", reads=10)
    ev = dummy_ctx.events_for("map")[-1]
    assert ev["task_id"] == "map#0"
    assert ev["reads"] == 10
    assert ev["run_id"] == ctx.run_id


def test_cancel_request_is_visible_to_the_task(dummy_ctx, formats):
    ctx = _task_ctx(dummy_ctx, formats)
    assert not ctx.is_cancelled()
    ctx.status.request_cancel()
    assert ctx.is_cancelled()


def test_single_input_port_helper(formats):
    ports = single_input_port("input", formats.reads)
    assert ports.primary.format is formats.reads
