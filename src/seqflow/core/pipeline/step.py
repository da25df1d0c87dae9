"""
Contrato canônico de Step do SeqFlow.

Este módulo define o protocolo formal que qualquer Step deve satisfazer
para ser executável pelo SeqFlow, e o `StepNode`, o invólucro usado pelo
engine para acompanhar o ciclo de vida de configuração de cada Step.

Um Step é uma unidade de trabalho nomeada e versionada, com ports de
entrada e saída ordenados, parâmetros opacos e requisitos externos.

Princípios fundamentais:
    - Steps não conhecem o Engine, o planner nem o executor
    - Dependências são declaradas apenas por ports tipados
    - Conformidade é garantida por duck typing (@runtime_checkable),
      sem cadeias de herança
    - O executor chama `execute(ctx)` uma vez por task

Ciclo de vida (StepNode):
    DECLARED → CONFIGURED → READY → EXECUTING → TERMINAL
    Um Step não pode ser reconfigurado após entrar em READY.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from seqflow.core.data.ports import PortDirection, PortSet
from seqflow.core.exceptions import ConfigurationError, IllegalStateError

from .requirements import Requirement
from .types import TaskResult

if TYPE_CHECKING:  # pragma: no cover
    from .context import TaskContext


@runtime_checkable
class Step(Protocol):
    """
    Contrato canônico de um Step do SeqFlow.

    Atributos obrigatórios:
        - id: identificador único e estável do Step no workflow
        - version: versão da implementação (rastreabilidade)

    Métodos:
        - input_ports() / output_ports(): ports tipados (PortSet)
        - requirements(): requisitos externos (Requirement)
        - configure(parameters): recebe parâmetros opacos resolvidos da config
        - execute(ctx): executa uma task e devolve o TaskResult criado por
          `ctx.status` (exceções escapadas são convertidas pelo executor)

    Limites explícitos:
        - Não define retry nem timeout
        - Não decide políticas de execução (fail-fast, skip)
    """
    id: str
    version: str

    def input_ports(self) -> PortSet:
        ...

    def output_ports(self) -> PortSet:
        ...

    def requirements(self) -> Sequence[Requirement]:
        ...

    def configure(self, parameters: Mapping[str, Any]) -> None:
        ...

    def execute(self, ctx: "TaskContext") -> TaskResult:
        """Executa uma task usando exclusivamente o TaskContext."""
        ...


class StepLifecycle(str, Enum):
    DECLARED = "declared"
    CONFIGURED = "configured"
    READY = "ready"
    EXECUTING = "executing"
    TERMINAL = "terminal"


class StepNode:
    """
    Invólucro de um Step com estado de ciclo de vida de configuração.

    O node congela os ports do Step no momento da configuração (ports
    podem depender de parâmetros) e registra quais requisitos estão
    indisponíveis. Um node com requisitos indisponíveis falha antes de
    qualquer task ser agendada.
    """

    def __init__(self, step: Step) -> None:
        step_id = getattr(step, "id", None)
        if not isinstance(step_id, str) or not step_id.strip():
            raise ConfigurationError("step.id must be a non-empty string")
        self.step = step
        self.id: str = step_id
        self.lifecycle = StepLifecycle.DECLARED
        self.parameters: Dict[str, Any] = {}
        self.inputs: Optional[PortSet] = None
        self.outputs: Optional[PortSet] = None
        self.unavailable_requirements: List[str] = []

    @property
    def version(self) -> str:
        return str(getattr(self.step, "version", "") or "")

    def configure(self, parameters: Optional[Mapping[str, Any]] = None) -> None:
        if self.lifecycle not in (StepLifecycle.DECLARED, StepLifecycle.CONFIGURED):
            raise IllegalStateError(
                f"Step '{self.id}' cannot be reconfigured in state {self.lifecycle.value}"
            )

        params = dict(parameters or {})
        try:
            self.step.configure(params)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(
                f"Invalid configuration for step '{self.id}': {e}",
                details={"step_id": self.id, "exception_class": e.__class__.__name__},
            ) from e

        inputs = self.step.input_ports()
        outputs = self.step.output_ports()
        if not isinstance(inputs, PortSet) or inputs.direction is not PortDirection.INPUT:
            raise ConfigurationError(f"Step '{self.id}' input_ports() must return an input PortSet")
        if not isinstance(outputs, PortSet) or outputs.direction is not PortDirection.OUTPUT:
            raise ConfigurationError(f"Step '{self.id}' output_ports() must return an output PortSet")

        self.parameters = params
        self.inputs = inputs
        self.outputs = outputs
        self.unavailable_requirements = [
            r.describe() for r in (self.step.requirements() or []) if not r.is_available()
        ]
        self.lifecycle = StepLifecycle.CONFIGURED

    @property
    def requirements_satisfied(self) -> bool:
        return not self.unavailable_requirements

    def _advance(self, expected: StepLifecycle, target: StepLifecycle) -> None:
        if self.lifecycle is not expected:
            raise IllegalStateError(
                f"Step '{self.id}' cannot move to {target.value} from {self.lifecycle.value}"
            )
        self.lifecycle = target

    def mark_ready(self) -> None:
        self._advance(StepLifecycle.CONFIGURED, StepLifecycle.READY)

    def mark_executing(self) -> None:
        self._advance(StepLifecycle.READY, StepLifecycle.EXECUTING)

    def mark_terminal(self) -> None:
        if self.lifecycle is StepLifecycle.DECLARED:
            raise IllegalStateError(f"Step '{self.id}' was never configured")
        self.lifecycle = StepLifecycle.TERMINAL

    def __repr__(self) -> str:
        return f"StepNode({self.id!r}, {self.lifecycle.value})"
