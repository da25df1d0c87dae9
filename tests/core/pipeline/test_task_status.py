# tests/core/pipeline/test_task_status.py
"""
Testes do TaskStatus (progresso, contadores e finalize exatamente uma vez).

Os testes asseguram que:
- `set_progress(p)` aceita p sse 0.0 <= p <= 1.0 e p é finito
- a forma por intervalo devolve 1.0 quando min == max
- `start()` duplo e finalize duplo são IllegalStateError
- o primeiro TaskResult não é afetado por um finalize inválido posterior
- o listener de progresso do dono é notificado

Decisões arquiteturais:
    - Erros de ciclo de vida indicam implementação quebrada e sempre
      falham a chamada
    - Valores de progresso inválidos são InvalidArgumentError (também ValueError)

Limites explícitos:
    - Não valida o executor (ver tests/core/engine)
"""

import math
import threading

import pytest

try:
    from seqflow.core.exceptions import IllegalStateError, InvalidArgumentError
    from seqflow.core.pipeline.status import Stopwatch, TaskStatus
    from seqflow.core.pipeline.types import TaskResult
except Exception as e:  # noqa: BLE001
    TaskStatus = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if TaskStatus is None:
        pytest.fail(f"Missing seqflow.core.pipeline.status. Import error: {_IMPORT_ERR}")


def _status(listener=None):
    return TaskStatus(task_id="map#0", step_id="map", context_name="S1", listener=listener)


@pytest.mark.parametrize("value", [0, 0.0, 0.25, 0.5, 1, 1.0])
def test_set_progress_accepts_values_in_unit_interval(value):
    _require_imports()
    st = _status()
    st.set_progress(value)
    assert st.progress == float(value)


@pytest.mark.parametrize(
    "value",
    [-0.0001, 1.0001, -1, 2, math.nan, math.inf, -math.inf, "0.5", None, True],
)
def test_set_progress_rejects_invalid_values(value):
    _require_imports()
    st = _status()
    with pytest.raises(InvalidArgumentError):
        st.set_progress(value)
    assert st.progress == 0.0


def test_invalid_progress_is_also_a_value_error():
    _require_imports()
    with pytest.raises(ValueError):
        _status().set_progress(1.5)


@pytest.mark.parametrize("bound", [0, 5, -3.5, 1000])
def test_progress_range_with_min_equal_max_is_complete(bound):
    _require_imports()
    st = _status()
    st.set_progress_range(bound, bound, bound)
    assert st.progress == 1.0


@pytest.mark.parametrize(
    "minimum,maximum,value,expected",
    [(0, 10, 0, 0.0), (0, 10, 5, 0.5), (0, 10, 10, 1.0), (10, 20, 15, 0.5), (-4, 4, 2, 0.75)],
)
def test_progress_range_is_linear(minimum, maximum, value, expected):
    _require_imports()
    st = _status()
    st.set_progress_range(minimum, maximum, value)
    assert st.progress == pytest.approx(expected)


@pytest.mark.parametrize(
    "minimum,maximum,value",
    [(10, 0, 5), (0, 10, 11), (0, 10, -1), (0, math.inf, 1), (0, 10, math.nan)],
)
def test_progress_range_rejects_inconsistent_bounds(minimum, maximum, value):
    _require_imports()
    with pytest.raises(InvalidArgumentError):
        _status().set_progress_range(minimum, maximum, value)


def test_start_twice_is_illegal():
    _require_imports()
    st = _status()
    st.start()
    with pytest.raises(IllegalStateError):
        st.start()


def test_finish_without_start_is_illegal():
    _require_imports()
    with pytest.raises(IllegalStateError):
        _status().finish()


def test_finish_twice_keeps_first_result():
    """
    Verifica a finalização exatamente-uma-vez.

    O segundo finalize (por qualquer caminho) falha com IllegalStateError e
    o TaskResult original permanece o resultado do status.
    """
    _require_imports()
    st = _status()
    st.start()
    st.set_description("align S1")
    st.merge_counters({"reads.input": 100, "reads.mapped": 90})
    first = st.finish()

    with pytest.raises(IllegalStateError):
        st.finish()
    with pytest.raises(IllegalStateError):
        st.fail(RuntimeError("late failure"))

    assert isinstance(first, TaskResult)
    assert st.result is first
    assert first.success is True
    assert first.description == "align S1"
    assert first.counters == {"reads.input": 100, "reads.mapped": 90}
    assert first.task_id == "map#0" and first.step_id == "map" and first.context_name == "S1"


def test_finish_forces_progress_to_one():
    _require_imports()
    st = _status()
    st.start()
    st.set_progress(0.3)
    st.finish()
    assert st.progress == 1.0


def test_fail_captures_cause_and_keeps_progress():
    _require_imports()
    st = _status()
    st.start()
    st.set_progress(0.4)
    cause = RuntimeError("disk full")
    result = st.fail(cause)

    assert result.success is False
    assert result.exception is cause
    assert result.error is not None
    assert result.error.type == "TASK_EXECUTION_FAULT"
    assert result.message == "disk full"
    assert st.progress == 0.4


def test_fail_with_explicit_message():
    _require_imports()
    st = _status()
    st.start()
    result = st.fail(ValueError("x"), message="mapper exited with code 1")
    assert result.message == "mapper exited with code 1"


def test_progress_after_result_is_illegal():
    _require_imports()
    st = _status()
    st.start()
    st.finish()
    with pytest.raises(IllegalStateError):
        st.set_progress(0.5)


def test_duration_is_computed_once():
    _require_imports()
    st = _status()
    st.start()
    result = st.finish()
    assert result.duration_ms >= 0
    assert result.finished_at >= result.started_at


def test_description_cannot_be_none():
    _require_imports()
    with pytest.raises(InvalidArgumentError):
        _status().set_description(None)


def test_messages_are_last_write_wins():
    _require_imports()
    st = _status()
    st.set_progress_message("step 1")
    st.set_progress_message("step 2")
    st.set_description("a")
    st.set_description("b")
    assert st.progress_message == "step 2"
    assert st.description == "b"


def test_merge_counters_overwrites_repeated_keys():
    _require_imports()
    st = _status()
    st.merge_counters({"a": 1, "b": 2})
    st.merge_counters({"b": 5})
    assert st.counters == {"a": 1, "b": 5}


def test_merge_counters_from_counter_source():
    _require_imports()

    class Reporter:
        def counter_names(self, group):
            return ["input", "output"] if group == "reads" else []

        def counter_value(self, group, name):
            return {"input": 10, "output": 7}[name]

    st = _status()
    st.merge_counters(Reporter(), group="reads")
    assert st.counters == {"input": 10, "output": 7}

    with pytest.raises(InvalidArgumentError):
        st.merge_counters(Reporter())


def test_listener_is_notified_on_progress_and_completion():
    _require_imports()
    seen = []
    st = _status(listener=lambda task_id, ctx_name, p: seen.append((task_id, ctx_name, p)))
    st.start()
    st.set_progress(0.5)
    st.finish()
    assert seen == [("map#0", "S1", 0.5), ("map#0", "S1", 1.0)]


def test_snapshot_is_consistent_view():
    _require_imports()
    st = _status()
    st.start()
    st.set_progress(0.25)
    st.merge_counters({"n": 3})
    snap = st.snapshot()

    assert snap.progress == 0.25 and snap.counters == {"n": 3}
    assert snap.started is True and snap.done is False

    snap.counters["n"] = 99
    assert st.counters == {"n": 3}


def test_concurrent_progress_updates_stay_valid():
    """Escritas concorrentes de progresso nunca produzem valor fora de [0, 1]."""
    _require_imports()
    st = _status()
    errors = []

    def writer(offset):
        try:
            for i in range(200):
                st.set_progress(((i + offset) % 101) / 100)
                st.merge_counters({f"w{offset}": i})
        except Exception as e:  # noqa: BLE001
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(k,)) for k in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert 0.0 <= st.progress <= 1.0
    assert st.counters == {f"w{k}": 199 for k in range(4)}


def test_stopwatch_lifecycle():
    _require_imports()
    sw = Stopwatch()
    with pytest.raises(IllegalStateError):
        sw.stop()
    sw.start()
    with pytest.raises(IllegalStateError):
        sw.start()
    sw.stop()
    first = sw.elapsed_ms()
    sw.stop()
    assert sw.elapsed_ms() == first
    assert not sw.running
