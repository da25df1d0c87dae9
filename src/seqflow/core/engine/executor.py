"""
Executor concorrente de workflows do SeqFlow.

Este módulo define o `ConcurrentExecutor`, responsável por executar os
Steps de um `WorkflowGraph` já validado sobre um pool limitado de N
workers, respeitando a ordem do grafo.

Máquina de estados por Step:
    PENDING → READY (dependências satisfeitas) → RUNNING →
    {SUCCEEDED, FAILED, SKIPPED, CANCELLED}

Política de agendamento:
    - Um Step READY é decomposto em tasks: uma por elemento quando o port
      primário (primeiro port de entrada) tem cardinalidade ONE e recebe
      uma lista; caso contrário, uma única task
    - Tasks são submetidas ao pool na ordem topológica
    - Conclusões chegam por uma fila (worker → coordenador), sem polling
    - Toda agregação de StepResult ocorre na thread coordenadora

Política de falha:
    - Exceção escapada de uma task vira um TaskResult de falha
    - Retorno que não é TaskResult falha a task (TASK_INVALID_RESULT)
    - Dependentes (diretos e transitivos) de um Step com falha → SKIPPED
    - Tasks em execução de Steps independentes não são interrompidas
    - Sem retry automático

Cancelamento (`cancel()`):
    - Steps PENDING/READY → SKIPPED
    - futures ainda não iniciados são cancelados
    - tasks em execução recebem pedido cooperativo de parada; seus
      resultados são descartados e o Step é reportado CANCELLED

Limites explícitos:
    - Não valida o grafo (responsabilidade do planner)
    - Não configura Steps
    - Não aplica timeout por task (política do chamador)
"""

from __future__ import annotations

import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from seqflow.core.data.data import Data
from seqflow.core.errors import (
    DEPENDENCY_FAILED,
    ErrorPayload,
    dependency_failed,
    exception_to_error,
    requirement_unavailable,
    task_invalid_result,
    workflow_cancelled,
)
from seqflow.core.exceptions import (
    ConfigurationError,
    IllegalStateError,
    InvalidArgumentError,
    TaskExecutionFault,
)
from seqflow.core.pipeline.context import RunContext, TaskContext
from seqflow.core.pipeline.status import TaskStatus, TaskStatusSnapshot
from seqflow.core.pipeline.step import StepNode
from seqflow.core.pipeline.types import StepResult, StepState, TaskResult, aggregate_step_result

from .planner import WorkflowGraph


# (step_id, progresso médio das tasks do Step)
StepProgressListener = Callable[[str, float], None]

_CANCEL = object()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Task:
    index: int
    step_id: str
    node: StepNode
    status: TaskStatus
    inputs: Dict[str, Data]
    primary: Optional[Data] = None


@dataclass
class _TaskOutcome:
    result: Optional[TaskResult]
    outputs: Dict[str, List[Data]] = field(default_factory=dict)


@dataclass
class _StepRun:
    started_at: datetime
    tasks: List[_Task]
    outcomes: Dict[int, _TaskOutcome] = field(default_factory=dict)
    futures: List[Future] = field(default_factory=list)
    cancelled: bool = False

    @property
    def done(self) -> bool:
        return len(self.outcomes) == len(self.tasks)


class ConcurrentExecutor:
    """
    Executor de um único workflow run.

    Uma instância é criada no início da run e descartada após o resultado
    agregado ser produzido; `run()` pode ser chamado apenas uma vez.
    `cancel()`, `state_of()`, `progress()` e `snapshot()` podem ser
    chamados de outras threads (monitoramento).
    """

    def __init__(
        self,
        *,
        graph: WorkflowGraph,
        run: RunContext,
        workers: int = 1,
        fail_fast: bool = False,
        external_inputs: Optional[Mapping[str, Data]] = None,
        progress_listener: Optional[StepProgressListener] = None,
        on_step_started: Optional[Callable[[str], None]] = None,
        on_step_finished: Optional[Callable[[StepResult], None]] = None,
    ) -> None:
        if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
            raise InvalidArgumentError(f"workers must be an integer >= 1: {workers!r}")

        self.graph = graph
        self.run_ctx = run
        self.workers = workers
        self.fail_fast = bool(fail_fast)
        self._external = dict(external_inputs or {})
        self._progress_listener = progress_listener
        self._on_step_started = on_step_started
        self._on_step_finished = on_step_finished

        self._lock = threading.RLock()
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._cancel_event = threading.Event()
        self._cancel_applied = False
        self._started = False
        self._pool: Optional[ThreadPoolExecutor] = None

        self._states: Dict[str, StepState] = {sid: StepState.PENDING for sid in graph.order}
        self._results: Dict[str, StepResult] = {}
        self._runs: Dict[str, _StepRun] = {}

        self._progress_lock = threading.Lock()
        self._task_progress: Dict[str, Dict[str, float]] = {sid: {} for sid in graph.order}

    # ------------------------------------------------------------------
    # Observação (thread-safe)
    # ------------------------------------------------------------------
    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def state_of(self, step_id: str) -> StepState:
        with self._lock:
            return self._states[step_id]

    def states(self) -> Dict[str, StepState]:
        with self._lock:
            return {sid: self._states[sid] for sid in self.graph.order}

    def progress(self, step_id: str) -> float:
        """Progresso médio das tasks do Step (1.0 para Steps terminados)."""
        with self._lock:
            if self._states[step_id].is_terminal:
                return 1.0
        with self._progress_lock:
            values = list(self._task_progress[step_id].values())
        return sum(values) / len(values) if values else 0.0

    def snapshot(self) -> Dict[str, List[TaskStatusSnapshot]]:
        with self._lock:
            runs = {sid: list(r.tasks) for sid, r in self._runs.items()}
        return {sid: [t.status.snapshot() for t in tasks] for sid, tasks in runs.items()}

    def cancel(self) -> None:
        """Solicita cancelamento do workflow (idempotente)."""
        if not self._cancel_event.is_set():
            self._cancel_event.set()
            self._queue.put(_CANCEL)

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------
    def run(self) -> Dict[str, StepResult]:
        """Executa o workflow e devolve os StepResults na ordem do grafo."""
        with self._lock:
            if self._started:
                raise IllegalStateError("ConcurrentExecutor.run() can only be called once")
            self._started = True

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="seqflow-worker") as pool:
            self._pool = pool
            if self.cancelled:
                self._apply_cancel()
            self._release_ready_steps()

            while self._has_running_steps():
                event = self._queue.get()
                if event is _CANCEL:
                    self._apply_cancel()
                    continue
                task, future = event
                self._on_task_done(task, future)
                self._release_ready_steps()

        self._pool = None
        if self.cancelled:
            self._apply_cancel()
        self._skip_leftovers()
        return {sid: self._results[sid] for sid in self.graph.order}

    def _has_running_steps(self) -> bool:
        with self._lock:
            return any(s is StepState.RUNNING for s in self._states.values())

    def _set_state(self, step_id: str, state: StepState) -> None:
        with self._lock:
            self._states[step_id] = state

    def _release_ready_steps(self) -> None:
        progressed = True
        while progressed and not self.cancelled:
            progressed = False
            for sid in self.graph.order:
                if self._states[sid] is not StepState.PENDING:
                    continue
                if all(self._states[up] is StepState.SUCCEEDED for up in self.graph.upstream[sid]):
                    self._start_step(sid)
                    progressed = True

    def _start_step(self, step_id: str) -> None:
        node = self.graph.nodes[step_id]
        self._set_state(step_id, StepState.READY)
        node.mark_ready()
        self.run_ctx.log(step_id=step_id, level="info", message="step ready")
        if self._on_step_started is not None:
            self._on_step_started(step_id)

        started_at = _utcnow()
        if not node.requirements_satisfied:
            missing = node.unavailable_requirements[0]
            self.run_ctx.log(
                step_id=step_id,
                level="error",
                message="requirement unavailable",
                requirements=list(node.unavailable_requirements),
            )
            self._finish_step(
                step_id,
                StepResult(
                    step_id=step_id,
                    state=StepState.FAILED,
                    summary=f"requirement not available: {missing}",
                    started_at=started_at,
                    finished_at=_utcnow(),
                    error=requirement_unavailable(step_id=step_id, requirement=missing),
                ),
            )
            return

        try:
            tasks = self._decompose(step_id, node)
        except Exception as e:
            self._finish_step(
                step_id,
                StepResult(
                    step_id=step_id,
                    state=StepState.FAILED,
                    summary=f"could not build tasks: {e}",
                    started_at=started_at,
                    finished_at=_utcnow(),
                    error=exception_to_error(e),
                ),
            )
            return

        step_run = _StepRun(started_at=started_at, tasks=tasks)
        with self._lock:
            self._runs[step_id] = step_run
            self._states[step_id] = StepState.RUNNING
        node.mark_executing()
        self.run_ctx.log(step_id=step_id, level="info", message="step started", tasks=len(tasks))

        if not tasks:
            self._complete_step(step_id, step_run)
            return

        if self._pool is None:
            raise IllegalStateError("ConcurrentExecutor worker pool is not running")
        for task in tasks:
            future = self._pool.submit(self._execute_task, task)
            step_run.futures.append(future)
            future.add_done_callback(lambda f, t=task: self._queue.put((t, f)))

    # ------------------------------------------------------------------
    # Decomposição em tasks
    # ------------------------------------------------------------------
    def _resolve_inputs(self, step_id: str) -> Dict[str, Data]:
        resolved: Dict[str, Data] = {}
        for port_name, src in self.graph.sources[step_id].items():
            if src.is_external:
                if src.output_port not in self._external:
                    raise ConfigurationError(
                        f"No external input supplied for format '{src.output_port}'",
                        details={"step_id": step_id, "port": port_name},
                    )
                resolved[port_name] = self._external[src.output_port]
            else:
                resolved[port_name] = self.run_ctx.get_data(step_id=src.producer, port=src.output_port)
        return resolved

    def _decompose(self, step_id: str, node: StepNode) -> List[_Task]:
        inputs = self._resolve_inputs(step_id)
        ports = node.inputs.ports() if node.inputs is not None else []

        def make(index: int, task_inputs: Dict[str, Data], primary: Optional[Data]) -> _Task:
            task_id = f"{step_id}#{index}"
            context_name = primary.name if primary is not None else step_id
            status = TaskStatus(
                task_id=task_id,
                step_id=step_id,
                context_name=context_name,
                listener=self._task_progress_listener(step_id),
            )
            return _Task(index, step_id, node, status, task_inputs, primary)

        if not ports:
            return [make(0, {}, None)]

        primary_port = ports[0]
        primary_data = inputs[primary_port.name]
        if primary_port.is_list or not primary_data.is_list:
            primary = None if primary_data.is_list else primary_data
            task_inputs = dict(inputs)
            for port in ports[1:]:
                task_inputs[port.name] = self._match_secondary(
                    step_id, port.name, port.is_list, inputs[port.name], primary.name if primary is not None else None
                )
            return [make(0, task_inputs, primary)]

        tasks = []
        for index, element in enumerate(primary_data.list_elements()):
            task_inputs = dict(inputs)
            task_inputs[primary_port.name] = element
            for port in ports[1:]:
                task_inputs[port.name] = self._match_secondary(
                    step_id, port.name, port.is_list, inputs[port.name], element.name
                )
            tasks.append(make(index, task_inputs, element))
        return tasks

    @staticmethod
    def _match_secondary(step_id: str, port: str, is_list: bool, data: Data, element_name: Optional[str]) -> Data:
        # port ONE nunca recebe lista: casa pelo nome do elemento primário ou lista de um elemento
        if is_list or not data.is_list:
            return data
        elements = data.list_elements()
        if element_name is not None:
            for candidate in elements:
                if candidate.name == element_name:
                    return candidate
        if len(elements) == 1:
            return elements[0]
        if element_name is None:
            raise ConfigurationError(
                f"Input port {step_id}.{port} accepts a single unit but received a list of {len(elements)}",
                details={"step_id": step_id, "port": port, "elements": len(elements)},
                hint="Declare o port como Cardinality.LIST ou forneça um único Data.",
            )
        raise ConfigurationError(
            f"No element named '{element_name}' in input port {step_id}.{port}",
            details={"step_id": step_id, "port": port, "element": element_name},
        )

    def _task_progress_listener(self, step_id: str) -> Callable[[str, str, float], None]:
        def listener(task_id: str, context_name: str, progress: float) -> None:
            with self._progress_lock:
                self._task_progress[step_id][task_id] = progress
                values = list(self._task_progress[step_id].values())
            if self._progress_listener is None:
                return
            try:
                self._progress_listener(step_id, sum(values) / len(values))
            except Exception as e:
                # falha de monitoramento não altera o resultado da task
                self.run_ctx.log(
                    step_id=step_id,
                    level="warning",
                    message="progress listener failed",
                    task_id=task_id,
                    error=f"{e.__class__.__name__}: {e}",
                )

        return listener

    # ------------------------------------------------------------------
    # Execução de uma task (thread do pool)
    # ------------------------------------------------------------------
    def _execute_task(self, task: _Task) -> _TaskOutcome:
        status = task.status
        status.start()
        with self._progress_lock:
            self._task_progress[task.step_id].setdefault(status.task_id, 0.0)

        ctx = TaskContext(
            run=self.run_ctx,
            step_id=task.step_id,
            task_id=status.task_id,
            context_name=status.context_name,
            status=status,
            inputs=task.inputs,
            output_ports=task.node.outputs,  # type: ignore[arg-type]
            parameters=task.node.parameters,
            primary=task.primary,
        )
        ctx.log("info", "task started", context_name=status.context_name)

        try:
            returned = task.node.step.execute(ctx)
        except Exception as e:
            result = self._fault_result(status, e)
        else:
            if isinstance(returned, TaskResult):
                result = returned
            else:
                result = self._invalid_result(task, returned)

        ctx.log(
            "info" if result.success else "error",
            "task finished" if result.success else "task failed",
            success=result.success,
            duration_ms=result.duration_ms,
        )
        return _TaskOutcome(result=result, outputs=ctx.outputs())

    @staticmethod
    def _fault_result(status: TaskStatus, exc: BaseException) -> TaskResult:
        existing = status.result
        if existing is None:
            return status.fail(exc)
        # O Step finalizou o status e depois lançou: a falha prevalece
        return replace(existing, success=False, message=str(exc), exception=exc, error=exception_to_error(exc))

    def _invalid_result(self, task: _Task, returned: Any) -> TaskResult:
        received = type(returned).__name__
        error = task_invalid_result(step_id=task.step_id, received=received)
        existing = task.status.result
        if existing is None:
            fault = TaskExecutionFault(error.message, details=dict(error.details))
            existing = task.status.fail(fault)
        return replace(existing, success=False, message=error.message, error=error)

    # ------------------------------------------------------------------
    # Conclusões (thread coordenadora)
    # ------------------------------------------------------------------
    def _on_task_done(self, task: _Task, future: Future) -> None:
        step_run = self._runs[task.step_id]

        if future.cancelled():
            outcome = _TaskOutcome(result=None)
        else:
            exc = future.exception()
            if exc is not None:
                status = task.status
                if not status.snapshot().started:
                    status.start()
                outcome = _TaskOutcome(result=self._fault_result(status, exc))
            else:
                outcome = future.result()

        step_run.outcomes[task.index] = outcome
        if step_run.done:
            self._complete_step(task.step_id, step_run)

    def _complete_step(self, step_id: str, step_run: _StepRun) -> None:
        finished_at = _utcnow()
        ordered = [step_run.outcomes[t.index] for t in step_run.tasks]
        task_results = [o.result for o in ordered if o.result is not None]

        if step_run.cancelled:
            result = StepResult(
                step_id=step_id,
                state=StepState.CANCELLED,
                summary="cancelled",
                started_at=step_run.started_at,
                finished_at=finished_at,
                duration_ms=max(0, int((finished_at - step_run.started_at).total_seconds() * 1000)),
                task_duration_ms=sum(t.duration_ms for t in task_results),
                tasks=tuple(task_results),
                error=workflow_cancelled(step_id=step_id),
            )
            self._finish_step(step_id, result)
            return

        result = aggregate_step_result(
            step_id=step_id,
            task_results=task_results,
            started_at=step_run.started_at,
            finished_at=finished_at,
        )
        if result.success:
            try:
                self._publish_outputs(step_id, ordered)
            except Exception as e:
                result = replace(
                    result,
                    state=StepState.FAILED,
                    summary=f"could not publish outputs: {e}",
                    error=exception_to_error(e),
                )
        self._finish_step(step_id, result)

    def _publish_outputs(self, step_id: str, outcomes: List[_TaskOutcome]) -> None:
        node = self.graph.nodes[step_id]
        for port in node.outputs.ports():  # type: ignore[union-attr]
            units: List[Data] = []
            for outcome in outcomes:
                units.extend(outcome.outputs.get(port.name, []))
            data = units[0] if len(units) == 1 else Data.list_of(step_id, port.format, units)
            self.run_ctx.publish(step_id=step_id, port=port.name, data=data)

    def _finish_step(self, step_id: str, result: StepResult) -> None:
        self._results[step_id] = result
        self._set_state(step_id, result.state)
        self.graph.nodes[step_id].mark_terminal()

        level = "info" if result.state is StepState.SUCCEEDED else "error"
        self.run_ctx.log(
            step_id=step_id,
            level=level,
            message=f"step {result.state.value}",
            summary=result.summary,
            duration_ms=result.duration_ms,
        )
        if self._on_step_finished is not None:
            self._on_step_finished(result)

        if result.state is StepState.FAILED:
            for dependent in self.graph.dependents_of(step_id):
                if self._states[dependent] is StepState.PENDING:
                    self._skip(dependent, dependency_failed(step_id=dependent, failed_upstream=step_id))
            if self.fail_fast:
                self._stop_everything(reason="fail-fast")

    def _skip(self, step_id: str, error: ErrorPayload) -> None:
        now = _utcnow()
        self._finish_step(
            step_id,
            StepResult(
                step_id=step_id,
                state=StepState.SKIPPED,
                summary=error.message,
                started_at=now,
                finished_at=now,
                error=error,
            ),
        )

    def _stop_everything(self, *, reason: str) -> None:
        for sid in self.graph.order:
            state = self._states[sid]
            if state in (StepState.PENDING, StepState.READY):
                if reason == "cancel":
                    self._skip(sid, workflow_cancelled(step_id=sid))
                else:
                    self._skip(sid, ErrorPayload(
                        type=DEPENDENCY_FAILED,
                        message="skipped by fail-fast policy",
                        details={"step_id": sid, "reason": reason},
                    ))
            elif state is StepState.RUNNING:
                for task in self._runs[sid].tasks:
                    task.status.request_cancel()

    def _apply_cancel(self) -> None:
        if self._cancel_applied:
            return
        self._cancel_applied = True
        self.run_ctx.log(step_id="<workflow>", level="warning", message="workflow cancelled")

        for sid in self.graph.order:
            if self._states[sid] is StepState.RUNNING:
                step_run = self._runs[sid]
                step_run.cancelled = True
                for future in step_run.futures:
                    future.cancel()
        self._stop_everything(reason="cancel")

    def _skip_leftovers(self) -> None:
        for sid in self.graph.order:
            if self._states[sid] is StepState.PENDING:
                failed = sorted(
                    up for up in self.graph.upstream[sid] if self._states[up] is not StepState.SUCCEEDED
                )
                self._skip(sid, dependency_failed(step_id=sid, failed_upstream=failed[0] if failed else ""))
