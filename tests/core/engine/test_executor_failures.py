# tests/core/engine/test_executor_failures.py
"""
Testes das políticas de falha do ConcurrentExecutor.

Os testes asseguram que:
- uma exceção escapada de uma task vira um TaskResult de falha
- um retorno que não é TaskResult falha a task (TASK_INVALID_RESULT)
- dependentes diretos e transitivos de um Step com falha são SKIPPED
- Steps independentes continuam executando
- contadores de tasks com falha são excluídos do Step
- requisitos indisponíveis falham o Step antes de qualquer task
- fail_fast pula tudo o que ainda não começou
"""

from seqflow.core.data.data import Data
from seqflow.core.data.ports import Cardinality
from seqflow.core.engine.executor import ConcurrentExecutor
from seqflow.core.engine.planner import build_graph
from seqflow.core.errors import DEPENDENCY_FAILED, REQUIREMENT_UNAVAILABLE, TASK_EXECUTION_FAULT, TASK_INVALID_RESULT
from seqflow.core.exceptions import TaskExecutionFault
from seqflow.core.pipeline.requirements import CallableRequirement
from seqflow.core.pipeline.step import StepNode
from seqflow.core.pipeline.types import StepState
from seqflow.steps.function import FunctionStep


def _run(ctx, *steps, external=(), **kwargs):
    nodes = []
    for s in steps:
        node = StepNode(s)
        node.configure({})
        nodes.append(node)
    graph = build_graph(nodes, external_formats=[d.format for d in external])
    executor = ConcurrentExecutor(
        graph=graph,
        run=ctx,
        external_inputs={d.format.name: d.finalize() for d in external},
        **kwargs,
    )
    return executor.run()


def _samples(fmt, *names):
    return Data.list_of("samples", fmt, [Data.single(n, fmt, metadata={"Name": n}) for n in names])


def test_failure_skips_transitive_dependents(DummyStep, formats, dummy_ctx):
    samples = _samples(formats.reads, "S1", "S2")
    flt = DummyStep("filter", consumes=formats.reads, produces=formats.filtered, fail_on="S2", counters={"reads": 1})
    mp = DummyStep("map", consumes=formats.filtered, produces=formats.alignments)
    agg = DummyStep("aggregate", consumes=formats.alignments, cardinality=Cardinality.LIST)
    qc = DummyStep("qc", consumes=formats.reads, cardinality=Cardinality.LIST)

    results = _run(dummy_ctx, flt, mp, agg, qc, external=[samples])

    failed = results["filter"]
    assert failed.state is StepState.FAILED
    assert failed.summary == "1 of 2 task(s) failed"
    assert failed.counters == {"reads": 1}
    assert [t.context_name for t in failed.failures] == ["S2"]
    assert failed.failures[0].error.type == TASK_EXECUTION_FAULT
    assert failed.failures[0].message == "boom in S2"
    assert isinstance(failed.failures[0].exception, RuntimeError)

    for sid in ("map", "aggregate"):
        assert results[sid].state is StepState.SKIPPED
        assert results[sid].error.type == DEPENDENCY_FAILED
        assert results[sid].error.details["failed_upstream"] == "filter"
    assert mp.calls == [] and agg.calls == []

    # Step independente não é afetado
    assert results["qc"].state is StepState.SUCCEEDED
    assert qc.calls == ["qc"]

    assert not dummy_ctx.has_data(step_id="filter", port="output")


def test_non_task_result_return_fails_task(formats, dummy_ctx):
    step = FunctionStep("bad", lambda ctx: None)
    step.execute = lambda ctx: "done"

    results = _run(dummy_ctx, step)

    task = results["bad"].tasks[0]
    assert results["bad"].state is StepState.FAILED
    assert not task.success
    assert task.error.type == TASK_INVALID_RESULT
    assert task.error.details["received"] == "str"


def test_raised_task_execution_fault_uses_catalog_code(dummy_ctx):
    def work(ctx):
        raise TaskExecutionFault("aligner crashed", details={"exit_code": 139})

    results = _run(dummy_ctx, FunctionStep("align", work))

    task = results["align"].tasks[0]
    assert results["align"].state is StepState.FAILED
    assert task.error.type == TASK_EXECUTION_FAULT
    assert task.error.message == "aligner crashed"
    assert task.error.details == {"exit_code": 139}


def test_exception_after_finish_still_fails_task(dummy_ctx):
    class _LateFailure:
        id = "late"
        version = "1.0"

        def input_ports(self):
            from seqflow.core.data.ports import NO_INPUT_PORTS

            return NO_INPUT_PORTS

        def output_ports(self):
            from seqflow.core.data.ports import NO_OUTPUT_PORTS

            return NO_OUTPUT_PORTS

        def requirements(self):
            return []

        def configure(self, parameters):
            pass

        def execute(self, ctx):
            ctx.status.finish()
            raise ValueError("cleanup failed")

    results = _run(dummy_ctx, _LateFailure())

    task = results["late"].tasks[0]
    assert results["late"].state is StepState.FAILED
    assert not task.success
    assert task.message == "cleanup failed"
    assert task.error.type == TASK_EXECUTION_FAULT


def test_unavailable_requirement_fails_before_tasks(DummyStep, formats, dummy_ctx):
    samples = _samples(formats.reads, "S1")
    qc = DummyStep(
        "qc",
        consumes=formats.reads,
        produces=formats.filtered,
        requirements=[CallableRequirement("fastqc", lambda: False)],
    )
    mp = DummyStep("map", consumes=formats.filtered)

    results = _run(dummy_ctx, qc, mp, external=[samples])

    assert results["qc"].state is StepState.FAILED
    assert results["qc"].error.type == REQUIREMENT_UNAVAILABLE
    assert results["qc"].error.details["requirement"] == "fastqc"
    assert results["qc"].tasks == ()
    assert qc.calls == []
    assert results["map"].state is StepState.SKIPPED


def _fail_fast_steps(DummyStep, formats):
    return [
        DummyStep("filter", consumes=formats.reads, fail=True),
        DummyStep("other", consumes=formats.reads, produces=formats.counts),
        DummyStep("late", consumes=formats.counts),
    ]


def test_fail_fast_skips_steps_not_started(DummyStep, formats, dummy_ctx):
    reads = Data.single("S1", formats.reads)
    flt, other, late = _fail_fast_steps(DummyStep, formats)

    results = _run(dummy_ctx, flt, other, late, external=[reads], fail_fast=True)

    assert results["filter"].state is StepState.FAILED
    # já submetido quando a falha ocorreu: termina normalmente
    assert results["other"].state is StepState.SUCCEEDED
    assert results["late"].state is StepState.SKIPPED
    assert results["late"].error.message == "skipped by fail-fast policy"
    assert late.calls == []


def test_without_fail_fast_independent_branch_completes(DummyStep, formats, dummy_ctx):
    reads = Data.single("S1", formats.reads)
    flt, other, late = _fail_fast_steps(DummyStep, formats)

    results = _run(dummy_ctx, flt, other, late, external=[reads])

    assert results["filter"].state is StepState.FAILED
    assert results["late"].state is StepState.SUCCEEDED
    assert late.calls == ["S1"]
