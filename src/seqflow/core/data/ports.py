"""
Modelo de ports tipados do SeqFlow.

Um port é o ponto de conexão tipado de um Step e o **único** mecanismo
de declaração de dependências de dados entre Steps.

Cada port possui:
    - nome (único dentro do Step, por direção)
    - direção (INPUT / OUTPUT)
    - um DataFormat registrado
    - cardinalidade (ONE / LIST)

Decisões arquiteturais:
    - Ports são resolvidos no grafo apenas por formato + direção
    - Um Step não pode declarar dois ports de saída com o mesmo formato
      (produtor ambíguo)
    - A cardinalidade de entrada define a decomposição em tasks:
      ONE sobre uma lista → uma task por elemento; LIST → uma task com a lista

Limites explícitos:
    - Não valida a ligação entre Steps (responsabilidade do planner)
    - Não transporta dados (ver `seqflow.core.data.data`)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Union

from seqflow.core.exceptions import ConfigurationError

from .formats import DEFAULT_REGISTRY, DataFormat, FormatRegistry


class PortDirection(str, Enum):
    INPUT = "input"
    OUTPUT = "output"


class Cardinality(str, Enum):
    """Cardinalidade de um port: um único Data ou a lista inteira."""

    ONE = "one"
    LIST = "list"


@dataclass(frozen=True)
class Port:
    name: str
    direction: PortDirection
    format: DataFormat
    cardinality: Cardinality = Cardinality.ONE

    @property
    def is_list(self) -> bool:
        return self.cardinality is Cardinality.LIST


class PortSet(Mapping[str, Port]):
    """Conjunto ordenado e imutável de ports de uma mesma direção."""

    def __init__(self, direction: PortDirection, ports: Sequence[Port] = ()) -> None:
        self.direction = direction
        self._ports: Dict[str, Port] = {}
        for p in ports:
            if p.direction is not direction:
                raise ConfigurationError(
                    f"Port '{p.name}' has direction {p.direction.value}, expected {direction.value}"
                )
            if p.name in self._ports:
                raise ConfigurationError(f"Duplicate {direction.value} port name: {p.name}")
            self._ports[p.name] = p

    def __getitem__(self, name: str) -> Port:
        return self._ports[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._ports)

    def __len__(self) -> int:
        return len(self._ports)

    def __repr__(self) -> str:
        return f"PortSet({self.direction.value}, {list(self._ports)})"

    @property
    def primary(self) -> Optional[Port]:
        """Primeiro port declarado (define a decomposição em tasks)."""
        for p in self._ports.values():
            return p
        return None

    def ports(self) -> List[Port]:
        return list(self._ports.values())

    def by_format(self, fmt: DataFormat) -> List[Port]:
        return [p for p in self._ports.values() if p.format is fmt]


class PortsBuilder:
    """
    Builder de ports de um Step.

    Exemplo:
        ports = PortsBuilder()
        ports.add_input_port("reads", "reads", Cardinality.ONE)
        ports.add_output_port("alignments", "alignment-results")
        step_inputs, step_outputs = ports.input_ports(), ports.output_ports()

    Raises:
        ConfigurationError: nome duplicado na mesma direção, formato não
            registrado ou dois ports de saída com o mesmo formato.
    """

    def __init__(self, *, registry: Optional[FormatRegistry] = None) -> None:
        self._registry = registry or DEFAULT_REGISTRY
        self._inputs: List[Port] = []
        self._outputs: List[Port] = []

    def _check_name(self, name: str, existing: List[Port], direction: PortDirection) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError("port name must be a non-empty string")
        name = name.strip()
        if any(p.name == name for p in existing):
            raise ConfigurationError(
                f"Duplicate {direction.value} port name: {name}",
                details={"port": name},
            )
        return name

    def add_input_port(
        self,
        name: str,
        fmt: Union[DataFormat, str],
        cardinality: Cardinality = Cardinality.ONE,
    ) -> "PortsBuilder":
        name = self._check_name(name, self._inputs, PortDirection.INPUT)
        data_format = self._registry.resolve(fmt)
        self._inputs.append(Port(name, PortDirection.INPUT, data_format, Cardinality(cardinality)))
        return self

    def add_output_port(self, name: str, fmt: Union[DataFormat, str]) -> "PortsBuilder":
        name = self._check_name(name, self._outputs, PortDirection.OUTPUT)
        data_format = self._registry.resolve(fmt)
        clash = [p.name for p in self._outputs if p.format is data_format]
        if clash:
            raise ConfigurationError(
                f"Output ports '{clash[0]}' and '{name}' share format '{data_format.name}'",
                details={"ports": [clash[0], name], "format": data_format.name},
                hint="Um Step só pode produzir cada formato por um único port.",
            )
        self._outputs.append(Port(name, PortDirection.OUTPUT, data_format))
        return self

    def input_ports(self) -> PortSet:
        return PortSet(PortDirection.INPUT, self._inputs)

    def output_ports(self) -> PortSet:
        return PortSet(PortDirection.OUTPUT, self._outputs)


NO_INPUT_PORTS = PortSet(PortDirection.INPUT)
NO_OUTPUT_PORTS = PortSet(PortDirection.OUTPUT)


def single_input_port(
    name: str,
    fmt: Union[DataFormat, str],
    cardinality: Cardinality = Cardinality.ONE,
) -> PortSet:
    return PortsBuilder().add_input_port(name, fmt, cardinality).input_ports()


def single_output_port(fmt: Union[DataFormat, str], name: str = "output") -> PortSet:
    return PortsBuilder().add_output_port(name, fmt).output_ports()
