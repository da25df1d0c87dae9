"""
SeqFlow — Canonical Error Structures (v1)

Este módulo define o payload canônico de erro do SeqFlow.
Falhas de tasks e Steps são registradas em TaskResult, StepResult e Manifest
como artefatos serializáveis, nunca como stack traces crus.

Um ErrorPayload deve ser:

- explícito
- serializável
- rastreável
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional

from .exceptions import SeqflowError, TaskExecutionFault


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ErrorPayload:
    """
    Payload canônico de erro do SeqFlow.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Execução de tasks
TASK_EXECUTION_FAULT = "TASK_EXECUTION_FAULT"
TASK_INVALID_RESULT = "TASK_INVALID_RESULT"

# Steps
REQUIREMENT_UNAVAILABLE = "REQUIREMENT_UNAVAILABLE"
DEPENDENCY_FAILED = "DEPENDENCY_FAILED"

# Workflow
WORKFLOW_CANCELLED = "WORKFLOW_CANCELLED"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def exception_to_error(exc: BaseException, *, message: Optional[str] = None) -> ErrorPayload:
    """Converte uma exceção em ErrorPayload (serializável, acionável).

    Regras:
    - SeqflowError: já vem com message/details/hint; o nome da classe vira o código
      (exceto TaskExecutionFault, que usa o código de catálogo TASK_EXECUTION_FAULT).
    - Outras exceções: encapsular como TASK_EXECUTION_FAULT sem expor stack trace.
    """
    if isinstance(exc, SeqflowError):
        return ErrorPayload(
            type=TASK_EXECUTION_FAULT if isinstance(exc, TaskExecutionFault) else exc.__class__.__name__,
            message=message or exc.message or "Erro de execução",
            details=dict(exc.details),
            hint=exc.hint,
        )

    return ErrorPayload(
        type=TASK_EXECUTION_FAULT,
        message=message or str(exc) or exc.__class__.__name__,
        details={"exception_class": exc.__class__.__name__},
        hint="Verifique o event log da run para diagnosticar a falha",
    )


def task_invalid_result(*, step_id: str, received: str) -> ErrorPayload:
    return ErrorPayload(
        type=TASK_INVALID_RESULT,
        message="Step retornou tipo inválido",
        details={"step_id": step_id, "expected": "TaskResult", "received": received},
        hint="Ajuste o Step para retornar o TaskResult criado por ctx.status",
    )


def requirement_unavailable(*, step_id: str, requirement: str) -> ErrorPayload:
    return ErrorPayload(
        type=REQUIREMENT_UNAVAILABLE,
        message=f"Requirement not available: {requirement}",
        details={"step_id": step_id, "requirement": requirement},
        hint="Instale a ferramenta/imagem exigida ou ajuste a configuração do Step.",
    )


def dependency_failed(*, step_id: str, failed_upstream: str) -> ErrorPayload:
    return ErrorPayload(
        type=DEPENDENCY_FAILED,
        message="skipped due to failed dependency",
        details={"step_id": step_id, "failed_upstream": failed_upstream},
    )


def workflow_cancelled(*, step_id: str) -> ErrorPayload:
    return ErrorPayload(
        type=WORKFLOW_CANCELLED,
        message="workflow cancelled",
        details={"step_id": step_id},
    )
