"""
Registro estrutural de Steps de um workflow.

Este módulo define o `StepRegistry`, responsável por registrar Steps,
validar a unicidade de seus identificadores e guardar as ligações
explícitas de ports antes de qualquer planejamento ou execução.

Decisões arquiteturais:
    - A validação ocorre antes do planner e do executor
    - A ordem de registro é preservada explicitamente
    - Ligações explícitas (`bind`) têm precedência sobre o casamento por formato

Invariantes:
    - Cada Step registrado possui um `step.id` único e não vazio
    - Cada port de entrada possui no máximo uma ligação explícita

Limites explícitos:
    - Não valida formatos das ligações (responsabilidade do planner,
      que conhece os ports configurados)
    - Não executa Steps
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from seqflow.core.exceptions import ConfigurationError

from .step import Step


class DuplicateStepIdError(ConfigurationError):
    """Dois Steps registrados com o mesmo `step.id`."""


@dataclass(frozen=True)
class PortBinding:
    """Ligação explícita de um port de entrada a um port de saída."""
    consumer: str
    input_port: str
    producer: str
    output_port: str


@dataclass
class StepRegistry:
    """Registro canônico de Steps e ligações para validação pré-execução."""

    _steps: Dict[str, Step] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)
    _bindings: Dict[Tuple[str, str], PortBinding] = field(default_factory=dict, init=False, repr=False)

    def add(self, step: Step) -> "StepRegistry":
        step_id = getattr(step, "id", None)
        if not isinstance(step_id, str) or not step_id.strip():
            raise ConfigurationError("step.id must be a non-empty string")

        if step_id in self._steps:
            raise DuplicateStepIdError(f"Duplicate step id: {step_id}", details={"step_id": step_id})

        self._steps[step_id] = step
        self._order.append(step_id)
        return self

    def bind(self, consumer: str, input_port: str, producer: str, output_port: str) -> "StepRegistry":
        for sid in (consumer, producer):
            if sid not in self._steps:
                raise ConfigurationError(f"Unknown step in binding: {sid}", details={"step_id": sid})
        if consumer == producer:
            raise ConfigurationError(f"Step '{consumer}' cannot consume its own output")

        key = (consumer, input_port)
        if key in self._bindings:
            raise ConfigurationError(
                f"Input port {consumer}.{input_port} is already bound",
                details={"step_id": consumer, "port": input_port},
            )
        self._bindings[key] = PortBinding(consumer, input_port, producer, output_port)
        return self

    def get(self, step_id: str) -> Step:
        return self._steps[step_id]

    def list(self) -> List[Step]:
        return [self._steps[sid] for sid in self._order]

    def bindings(self) -> List[PortBinding]:
        return list(self._bindings.values())

    def __len__(self) -> int:
        return len(self._order)
