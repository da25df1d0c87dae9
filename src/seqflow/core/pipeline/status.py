"""
Status mutável e thread-safe de uma task.

Este módulo define o `TaskStatus`, o registro em andamento de uma task:
progresso, mensagem de progresso, descrição, contadores e temporização.
Ao final da execução o status produz **exatamente um** `TaskResult`
imutável.

Separar status (mutável, observado durante a execução) de resultado
(imutável, observado após a conclusão) permite que o executor consulte o
progresso de muitas tasks sem travar o workflow inteiro, enquanto o
desfecho é calculado uma única vez, qualquer que seja o caminho de saída
(conclusão normal ou exceção capturada).

Invariantes:
    - progresso sempre finito e em [0.0, 1.0]
    - `start()` no máximo uma vez; o timer para no máximo uma vez
    - um segundo finalize é IllegalStateError (contrato de programação)
    - atualizações de um mesmo status são totalmente ordenadas (um lock)

Limites explícitos:
    - Não aplica timeout (política do chamador)
    - Não executa a task
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from numbers import Real
from typing import Any, Callable, Dict, Mapping, Optional

from seqflow.core.errors import exception_to_error
from seqflow.core.exceptions import IllegalStateError, InvalidArgumentError

from .types import TaskResult


# (task_id, context_name, progress)
ProgressListener = Callable[[str, str, float], None]


class Stopwatch:
    """Timer de ciclo de vida: inicia uma vez, para no máximo uma vez."""

    def __init__(self) -> None:
        self._start: Optional[float] = None
        self._stop: Optional[float] = None

    @property
    def started(self) -> bool:
        return self._start is not None

    @property
    def running(self) -> bool:
        return self._start is not None and self._stop is None

    def start(self) -> None:
        if self._start is not None:
            raise IllegalStateError("stopwatch has already been started")
        self._start = time.monotonic()

    def stop(self) -> None:
        if self._start is None:
            raise IllegalStateError("stopwatch has never been started")
        if self._stop is None:
            self._stop = time.monotonic()

    def elapsed_ms(self) -> int:
        if self._start is None:
            return 0
        end = self._stop if self._stop is not None else time.monotonic()
        return max(0, int((end - self._start) * 1000))


@dataclass(frozen=True)
class TaskStatusSnapshot:
    """Visão consistente (somente leitura) de um TaskStatus."""
    task_id: str
    context_name: str
    progress: float
    progress_message: Optional[str]
    description: str
    counters: Dict[str, int] = field(default_factory=dict)
    started: bool = False
    done: bool = False


def _check_progress(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidArgumentError(f"Progress must be a number: {value!r}")
    progress = float(value)
    if math.isnan(progress):
        raise InvalidArgumentError("Progress is NaN")
    if math.isinf(progress):
        raise InvalidArgumentError("Progress is infinite")
    if progress < 0.0:
        raise InvalidArgumentError(f"Progress is lower than 0: {progress}")
    if progress > 1.0:
        raise InvalidArgumentError(f"Progress is greater than 1: {progress}")
    return progress


def _check_range(minimum: Any, maximum: Any, value: Any) -> None:
    for label, v in (("min", minimum), ("max", maximum), ("value", value)):
        if isinstance(v, bool) or not isinstance(v, Real) or not math.isfinite(float(v)):
            raise InvalidArgumentError(f"Progress {label} must be a finite number: {v!r}")
    if minimum > maximum:
        raise InvalidArgumentError("Max is lower than min")
    if value < minimum:
        raise InvalidArgumentError("Value is lower than min")
    if value > maximum:
        raise InvalidArgumentError("Value is greater than max")


class TaskStatus:
    """
    Registro mutável e sincronizado do andamento de uma task.

    O dono (Step) pode registrar um listener de progresso; ele é notificado
    de forma síncrona sob o mesmo lock usado para mutar o progresso,
    preservando uma visão única e consistente. O status conhece apenas a
    identidade do dono (`step_id`), nunca o objeto em si.

    Uso típico dentro de `Step.execute(ctx)`:
        ctx.status.set_description("align sample S1")
        ctx.status.set_progress_range(0, total, done)
        ctx.status.merge_counters({"reads.input": n})
        return ctx.status.finish()
    """

    def __init__(
        self,
        *,
        task_id: str,
        step_id: str,
        context_name: str,
        listener: Optional[ProgressListener] = None,
    ) -> None:
        self.task_id = task_id
        self.step_id = step_id
        self.context_name = context_name
        self._listener = listener

        self._lock = threading.RLock()
        self._stopwatch = Stopwatch()
        self._cancel = threading.Event()

        self._progress = 0.0
        self._message: Optional[str] = None
        self._description: Optional[str] = None
        self._counters: Dict[str, int] = {}
        self._started_at: Optional[datetime] = None
        self._finished_at: Optional[datetime] = None
        self._result: Optional[TaskResult] = None

    # -----------------------------
    # Getters
    # -----------------------------
    @property
    def progress(self) -> float:
        with self._lock:
            return self._progress

    @property
    def progress_message(self) -> Optional[str]:
        with self._lock:
            return self._message

    @property
    def description(self) -> str:
        with self._lock:
            return self._description or ""

    @property
    def counters(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def finished_at(self) -> Optional[datetime]:
        return self._finished_at

    @property
    def result(self) -> Optional[TaskResult]:
        with self._lock:
            return self._result

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def snapshot(self) -> TaskStatusSnapshot:
        with self._lock:
            return TaskStatusSnapshot(
                task_id=self.task_id,
                context_name=self.context_name,
                progress=self._progress,
                progress_message=self._message,
                description=self._description or "",
                counters=dict(self._counters),
                started=self._stopwatch.started,
                done=self._result is not None,
            )

    # -----------------------------
    # Setters
    # -----------------------------
    def start(self) -> None:
        """Inicia o timer de ciclo de vida. Duas chamadas → IllegalStateError."""
        with self._lock:
            if self._stopwatch.started:
                raise IllegalStateError(f"Task '{self.task_id}' has already been started")
            self._started_at = datetime.now(timezone.utc)
            self._stopwatch.start()

    def set_progress(self, value: float) -> None:
        with self._lock:
            self._check_result_state()
            self._set_progress_locked(_check_progress(value))

    def set_progress_range(self, minimum: float, maximum: float, value: float) -> None:
        """Progresso como `(value - min) / (max - min)`; 1.0 quando min == max."""
        _check_range(minimum, maximum, value)
        if minimum == maximum:
            self.set_progress(1.0)
        else:
            self.set_progress((value - minimum) / (maximum - minimum))

    def set_progress_message(self, message: Optional[str]) -> None:
        with self._lock:
            self._message = message

    def set_description(self, description: str) -> None:
        if description is None:
            raise InvalidArgumentError("the description argument cannot be None")
        with self._lock:
            self._description = description

    def merge_counters(self, source: Any, group: Optional[str] = None) -> None:
        """
        Copia um snapshot de contadores nomeados para o mapa da task.

        `source` pode ser um Mapping[str, int] ou um objeto que exponha
        `counter_names(group)` e `counter_value(group, name)` (neste caso
        `group` é obrigatório). Não é aditivo: chave repetida sobrescreve.
        """
        if source is None:
            raise InvalidArgumentError("counter source cannot be None")

        if isinstance(source, Mapping):
            snapshot = {str(k): int(v) for k, v in source.items()}
        else:
            if group is None:
                raise InvalidArgumentError("counter group is required for a counter source")
            snapshot = {
                str(name): int(source.counter_value(group, name))
                for name in source.counter_names(group)
            }

        with self._lock:
            self._counters.update(snapshot)

    # -----------------------------
    # Criação do resultado
    # -----------------------------
    def finish(self, success: bool = True, message: Optional[str] = None) -> TaskResult:
        """Finaliza a task com o desfecho `success` e devolve o TaskResult."""
        with self._lock:
            self._check_result_state()
            duration_ms = self._end_of_task(force_complete=success)
            if message is not None:
                self._message = message
            self._result = TaskResult(
                task_id=self.task_id,
                step_id=self.step_id,
                context_name=self.context_name,
                success=bool(success),
                started_at=self._started_at,  # type: ignore[arg-type]
                finished_at=self._finished_at,  # type: ignore[arg-type]
                duration_ms=duration_ms,
                message=self._message,
                description=self._description or "",
                counters=dict(self._counters),
            )
            return self._result

    def fail(self, cause: BaseException, message: Optional[str] = None) -> TaskResult:
        """Finaliza a task como falha, capturando a causa e a mensagem."""
        if cause is None:
            raise InvalidArgumentError("failure cause cannot be None")
        with self._lock:
            self._check_result_state()
            duration_ms = self._end_of_task(force_complete=False)
            error = exception_to_error(cause, message=message)
            self._result = TaskResult(
                task_id=self.task_id,
                step_id=self.step_id,
                context_name=self.context_name,
                success=False,
                started_at=self._started_at,  # type: ignore[arg-type]
                finished_at=self._finished_at,  # type: ignore[arg-type]
                duration_ms=duration_ms,
                message=error.message,
                description=self._description or "",
                counters=dict(self._counters),
                exception=cause,
                error=error,
            )
            return self._result

    # -----------------------------
    # Utilitários
    # -----------------------------
    def request_cancel(self) -> None:
        """Pedido de cancelamento cooperativo (usado pelo executor)."""
        self._cancel.set()

    def _check_result_state(self) -> None:
        if self._result is not None:
            raise IllegalStateError(f"Task result has already been created for '{self.task_id}'")

    def _set_progress_locked(self, progress: float) -> None:
        self._progress = progress
        if self._listener is not None:
            self._listener(self.task_id, self.context_name, progress)

    def _end_of_task(self, *, force_complete: bool) -> int:
        if not self._stopwatch.started:
            raise IllegalStateError(f"Task '{self.task_id}' has never been started")

        # Pode ser chamado mais de uma vez se a criação do resultado falhar
        if self._stopwatch.running:
            self._stopwatch.stop()
            self._finished_at = datetime.now(timezone.utc)
            if force_complete:
                self._set_progress_locked(1.0)

        return self._stopwatch.elapsed_ms()
