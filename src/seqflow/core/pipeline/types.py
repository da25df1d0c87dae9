"""
Tipos canônicos de resultado do SeqFlow.

Este módulo define as estruturas imutáveis que representam o desfecho de
tasks e Steps, além dos estados de execução de um Step no executor.

Componentes principais:
    - StepState   → máquina de estados de um Step no executor
    - TaskResult  → desfecho imutável de uma task (sucesso ou falha)
    - StepResult  → agregação de todos os TaskResults de um Step
    - aggregate_step_result → regra canônica de agregação

Princípios fundamentais:
    - Resultados são imutáveis (frozen) e serializáveis via `to_dict`
    - Nenhuma lógica de execução vive neste módulo
    - A agregação é determinística (ordem das tasks preservada)

Invariantes:
    - Um Step é SUCCEEDED se e somente se todas as suas tasks tiveram sucesso
    - Contadores do Step = soma por chave dos contadores das tasks com sucesso
    - Contadores de tasks com falha são excluídos, mas a causa é preservada
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from seqflow.core.errors import ErrorPayload


class StepState(str, Enum):
    """
    Estados de um Step no executor.

    PENDING → READY (dependências satisfeitas) → RUNNING →
    {SUCCEEDED, FAILED, SKIPPED, CANCELLED}
    """
    PENDING = "pending"
    READY = "ready"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {StepState.SUCCEEDED, StepState.FAILED, StepState.SKIPPED, StepState.CANCELLED}
)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


@dataclass(frozen=True)
class TaskResult:
    """
    Desfecho imutável de uma task, produzido exatamente uma vez por TaskStatus.

    Campos:
        - task_id / step_id / context_name: identidade da task
        - success: desfecho
        - started_at / finished_at / duration_ms: temporização
        - message / description: texto livre reportado pela task
        - counters: snapshot dos contadores
        - exception: causa capturada (somente falha; não serializada)
        - error: payload serializável da falha (somente falha)
    """
    task_id: str
    step_id: str
    context_name: str
    success: bool
    started_at: datetime
    finished_at: datetime
    duration_ms: int
    message: Optional[str] = None
    description: str = ""
    counters: Dict[str, int] = field(default_factory=dict)
    exception: Optional[BaseException] = field(default=None, compare=False, repr=False)
    error: Optional[ErrorPayload] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "step_id": self.step_id,
            "context_name": self.context_name,
            "success": self.success,
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
            "duration_ms": self.duration_ms,
            "message": self.message,
            "description": self.description,
            "counters": dict(self.counters),
            "error": self.error.to_dict() if self.error is not None else None,
        }


@dataclass(frozen=True)
class StepResult:
    """
    Resultado agregado de um Step.

    `error` é preenchido quando o Step falha ou é pulado sem executar tasks
    (requisito indisponível, dependência com falha, cancelamento).
    """
    step_id: str
    state: StepState
    summary: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_ms: int = 0
    task_duration_ms: int = 0
    counters: Dict[str, int] = field(default_factory=dict)
    tasks: Tuple[TaskResult, ...] = ()
    error: Optional[ErrorPayload] = None

    @property
    def success(self) -> bool:
        return self.state is StepState.SUCCEEDED

    @property
    def failures(self) -> List[TaskResult]:
        return [t for t in self.tasks if not t.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "state": self.state.value,
            "summary": self.summary,
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
            "duration_ms": self.duration_ms,
            "task_duration_ms": self.task_duration_ms,
            "counters": dict(self.counters),
            "tasks": [t.to_dict() for t in self.tasks],
            "error": self.error.to_dict() if self.error is not None else None,
        }


def merge_counters(counter_maps: Sequence[Dict[str, int]]) -> Dict[str, int]:
    """Soma por chave; ordem das chaves determinística (ordenada)."""
    merged: Dict[str, int] = {}
    for counters in counter_maps:
        for key, value in counters.items():
            merged[key] = merged.get(key, 0) + int(value)
    return dict(sorted(merged.items()))


def aggregate_step_result(
    *,
    step_id: str,
    task_results: Sequence[TaskResult],
    started_at: datetime,
    finished_at: datetime,
) -> StepResult:
    """
    Agrega os TaskResults de um Step em um StepResult.

    Regras:
        - SUCCEEDED sse todas as tasks tiveram sucesso (lista vazia → sucesso)
        - counters: soma por chave das tasks com sucesso
        - duration_ms: intervalo de parede do Step; task_duration_ms: soma das tasks
        - falhas preservadas em `tasks` (ver `StepResult.failures`)
    """
    tasks = tuple(task_results)
    failed = [t for t in tasks if not t.success]
    counters = merge_counters([t.counters for t in tasks if t.success])
    duration_ms = max(0, int((finished_at - started_at).total_seconds() * 1000))

    if failed:
        first = failed[0]
        summary = f"{len(failed)} of {len(tasks)} task(s) failed"
        error = first.error
        state = StepState.FAILED
    else:
        summary = f"{len(tasks)} task(s) succeeded"
        error = None
        state = StepState.SUCCEEDED

    return StepResult(
        step_id=step_id,
        state=state,
        summary=summary,
        started_at=started_at,
        finished_at=finished_at,
        duration_ms=duration_ms,
        task_duration_ms=sum(t.duration_ms for t in tasks),
        counters=counters,
        tasks=tasks,
        error=error,
    )
