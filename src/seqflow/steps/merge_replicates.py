"""Step canônico: merge_replicates (v1).

Responsabilidades:
- Consumir a lista completa de unidades de um formato (port LIST).
- Agrupar as unidades de referência (metadado `Reference` verdadeiro) por
  experimento (metadado `Experiment`).
- Para cada experimento com N >= 2 réplicas de referência, produzir uma
  única unidade mesclada via `merger`.
- Repassar sem alteração as unidades que não são referência e as
  referências únicas do seu experimento.

Saída:
- uma unidade por amostra repassada e uma por experimento mesclado, com o
  nome da amostra (`Name`) reduzido a caracteres alfanuméricos e os
  metadados da primeira réplica.

Como o Step consome e produz o mesmo formato, o port de entrada precisa de
uma ligação explícita (`StepRegistry.bind`).

Limites explícitos (v1):
- NÃO implementa o merge em si: `merger(values, output_name)` é injetado
  e devolve o valor da unidade mesclada.
- NÃO aceita parâmetros de configuração.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Mapping, Sequence

from seqflow.core.data.data import METADATA_EXPERIMENT, METADATA_REFERENCE, METADATA_SAMPLE_NAME, Data
from seqflow.core.data.formats import DataFormat
from seqflow.core.data.ports import Cardinality, PortSet, single_input_port, single_output_port
from seqflow.core.exceptions import ConfigurationError
from seqflow.core.pipeline.context import TaskContext
from seqflow.core.pipeline.requirements import Requirement
from seqflow.core.pipeline.types import TaskResult

Merger = Callable[[List[Any], str], Any]

MIN_REPLICATES_TO_MERGE = 2


def sanitize_name(name: str) -> str:
    """Mantém apenas [a-zA-Z0-9]."""
    return re.sub(r"[^a-zA-Z0-9]", "", name)


def _unit_name(data: Data) -> str:
    raw = data.metadata.get(METADATA_SAMPLE_NAME) or data.name
    cleaned = sanitize_name(raw)
    if not cleaned:
        raise ConfigurationError(f"Sample name '{raw}' has no alphanumeric characters")
    return cleaned


class MergeReplicatesStep:
    """Mescla réplicas de referência por experimento."""

    def __init__(
        self,
        fmt: DataFormat,
        merger: Merger,
        *,
        step_id: str = "merge_replicates",
        version: str = "1.0",
        requirements: Sequence[Requirement] = (),
    ) -> None:
        self.id = step_id
        self.version = version
        self.format = fmt
        self.merger = merger
        self._requirements = list(requirements)

    def input_ports(self) -> PortSet:
        return single_input_port("input", self.format, Cardinality.LIST)

    def output_ports(self) -> PortSet:
        return single_output_port(self.format, name="output")

    def requirements(self) -> Sequence[Requirement]:
        return list(self._requirements)

    def configure(self, parameters: Mapping[str, Any]) -> None:
        for name in parameters:
            raise ConfigurationError(
                f"Unknown parameter for {self.id} step: {name}",
                details={"step_id": self.id, "parameter": name},
            )

    def _emit(self, ctx: TaskContext, source: Data, value: Any) -> None:
        out = ctx.output_data("output", _unit_name(source), metadata=source.metadata.to_dict())
        out.set_value(value)

    def execute(self, ctx: TaskContext) -> TaskResult:
        units = ctx.input_data("input").list_elements()
        ctx.status.set_description(f"merge replicates of {len(units)} unit(s)")

        references: Dict[str, List[Data]] = {}
        passthrough = 0
        for unit in units:
            if unit.metadata.is_true(METADATA_REFERENCE):
                experiment = unit.metadata.get(METADATA_EXPERIMENT, "")
                references.setdefault(experiment, []).append(unit)
            else:
                self._emit(ctx, unit, unit.value)
                passthrough += 1

        merged = 0
        for index, (experiment, replicates) in enumerate(references.items(), start=1):
            first = replicates[0]
            if len(replicates) < MIN_REPLICATES_TO_MERGE:
                self._emit(ctx, first, first.value)
                passthrough += 1
            else:
                name = _unit_name(first)
                ctx.log(
                    "info",
                    "merging reference replicates",
                    experiment=experiment,
                    replicates=len(replicates),
                )
                self._emit(ctx, first, self.merger([r.value for r in replicates], name))
                merged += 1
            ctx.status.set_progress_range(0, len(references), index)

        ctx.status.merge_counters(
            {
                "input.units": len(units),
                "passthrough.units": passthrough,
                "merged.experiments": merged,
            }
        )
        return ctx.status.finish()
