"""
SeqFlow — Canonical Exceptions (v1)

Este módulo define a hierarquia de exceções tipadas do SeqFlow.

Objetivo:
- Permitir que planner, executor e Steps levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para ErrorPayload
- Distinguir falhas de validação (antes da execução), violações de ciclo de
  vida (contrato de programação) e falhas de execução de tasks (contidas)

Taxonomia:
- ConfigurationError        → setup inválido de ports/parâmetros
- WorkflowValidationError   → grafo inválido (dependência, ambiguidade, ciclo)
- IllegalStateError         → uso indevido do ciclo de vida status/result
- InvalidArgumentError      → valor de progresso malformado
- TaskExecutionFault        → falha capturada do trabalho de um Step
- RequirementUnavailableError → requisito externo indisponível

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- Mensagem curta e humana; stack trace nunca entra em payloads.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class SeqflowError(Exception):
    """Base class para exceções internas do SeqFlow.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - `hint` indica onde corrigir (opcional)
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.hint = hint

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuração / Validação (detectadas antes da execução)
# ---------------------------------------------------------------------------

class ConfigurationError(SeqflowError):
    """Setup inválido de ports, formatos, parâmetros ou engine."""


class WorkflowValidationError(ConfigurationError):
    """Base das falhas estruturais do grafo de dependências."""


class UnresolvedDependencyError(WorkflowValidationError):
    """Port de entrada sem nenhum produtor (Step ou input externo)."""


class AmbiguousProducerError(WorkflowValidationError):
    """Port de entrada com mais de um produtor possível."""


class CyclicWorkflowError(WorkflowValidationError):
    """O grafo de Steps contém um ciclo.

    `steps` lista, em ordem determinística, os Steps que participam do ciclo.
    """

    def __init__(self, steps: Iterable[str], *, hint: Optional[str] = None) -> None:
        self.steps: List[str] = list(steps)
        super().__init__(
            f"Cycle detected between steps: {', '.join(self.steps)}",
            details={"steps": list(self.steps)},
            hint=hint or "Remova a dependência circular entre os ports desses Steps.",
        )


# ---------------------------------------------------------------------------
# Ciclo de vida (contrato de programação, sempre fatal para a chamada)
# ---------------------------------------------------------------------------

class IllegalStateError(SeqflowError, RuntimeError):
    """Chamada fora de ordem no ciclo de vida (ex.: finalize duplo)."""


class InvalidArgumentError(SeqflowError, ValueError):
    """Argumento malformado (ex.: progresso NaN, infinito ou fora de [0, 1])."""


# ---------------------------------------------------------------------------
# Execução (contidas por task)
# ---------------------------------------------------------------------------

class TaskExecutionFault(SeqflowError):
    """Falha capturada do trabalho de um Step, encapsulada pelo executor."""


class RequirementUnavailableError(SeqflowError):
    """Requisito externo declarado por um Step não está disponível."""
