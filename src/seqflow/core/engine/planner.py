"""
Planejador de execução do workflow (DAG por ports tipados).

Este módulo constrói o grafo de dependências a partir dos ports dos Steps
configurados e produz uma ordem de execução topológica determinística.

Regra de ligação:
    - Existe uma aresta A → B sse um port de saída de A tem o mesmo
      DataFormat que um port de entrada de B
    - Ligações explícitas (`StepRegistry.bind`) têm precedência sobre o
      casamento por formato
    - Um Step nunca consome implicitamente a própria saída
    - Inputs externos (fornecidos pelo chamador) contam como produtores

Validações (antes de qualquer execução):
    - port de entrada sem produtor      → UnresolvedDependencyError
    - port de entrada com 2+ produtores → AmbiguousProducerError
    - ciclo                             → CyclicWorkflowError (nomeia os Steps)

Decisões arquiteturais:
    - Ordenação topológica determinística (Kahn modificado)
    - Empates são resolvidos por ordem lexicográfica de `step.id`
    - Erros estruturais são fatais e síncronos

Limites explícitos:
    - Não executa Steps
    - Não interage com RunContext
    - Não decide políticas de execução
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from seqflow.core.data.formats import DataFormat
from seqflow.core.exceptions import (
    AmbiguousProducerError,
    ConfigurationError,
    CyclicWorkflowError,
    IllegalStateError,
    UnresolvedDependencyError,
)
from seqflow.core.pipeline.context import EXTERNAL_PRODUCER
from seqflow.core.pipeline.registry import DuplicateStepIdError, PortBinding
from seqflow.core.pipeline.step import StepLifecycle, StepNode


@dataclass(frozen=True)
class InputSource:
    """Origem resolvida de um port de entrada."""
    consumer: str
    input_port: str
    producer: str
    output_port: str

    @property
    def is_external(self) -> bool:
        return self.producer == EXTERNAL_PRODUCER


@dataclass
class WorkflowGraph:
    """
    Grafo validado do workflow.

    - order: ids em ordem topológica determinística
    - sources: consumer → port de entrada → InputSource
    - upstream / downstream: arestas entre Steps (inputs externos excluídos)
    """
    nodes: Dict[str, StepNode]
    order: List[str]
    sources: Dict[str, Dict[str, InputSource]] = field(default_factory=dict)
    upstream: Dict[str, Set[str]] = field(default_factory=dict)
    downstream: Dict[str, Set[str]] = field(default_factory=dict)

    def dependents_of(self, step_id: str) -> List[str]:
        """Dependentes diretos e transitivos, em ordem topológica."""
        seen: Set[str] = set()
        stack = [step_id]
        while stack:
            current = stack.pop()
            for child in self.downstream.get(current, ()):
                if child not in seen:
                    seen.add(child)
                    stack.append(child)
        return [sid for sid in self.order if sid in seen]


def _index_nodes(nodes: Sequence[StepNode]) -> Dict[str, StepNode]:
    by_id: Dict[str, StepNode] = {}
    for n in nodes:
        if n.id in by_id:
            raise DuplicateStepIdError(f"Duplicate step id: {n.id}", details={"step_id": n.id})
        if n.lifecycle is StepLifecycle.DECLARED or n.inputs is None or n.outputs is None:
            raise IllegalStateError(f"Step '{n.id}' must be configured before planning")
        by_id[n.id] = n
    return by_id


def _resolve_binding(b: PortBinding, by_id: Dict[str, StepNode]) -> InputSource:
    consumer = by_id.get(b.consumer)
    producer = by_id.get(b.producer)
    if consumer is None or producer is None:
        raise ConfigurationError(f"Binding references unknown step: {b}")
    if b.input_port not in consumer.inputs:  # type: ignore[operator]
        raise ConfigurationError(f"Step '{b.consumer}' has no input port '{b.input_port}'")
    if b.output_port not in producer.outputs:  # type: ignore[operator]
        raise ConfigurationError(f"Step '{b.producer}' has no output port '{b.output_port}'")

    in_fmt = consumer.inputs[b.input_port].format  # type: ignore[index]
    out_fmt = producer.outputs[b.output_port].format  # type: ignore[index]
    if in_fmt is not out_fmt:
        raise ConfigurationError(
            f"Format mismatch binding {b.producer}.{b.output_port} ({out_fmt.name}) "
            f"to {b.consumer}.{b.input_port} ({in_fmt.name})",
            details={"producer": b.producer, "consumer": b.consumer},
        )
    return InputSource(b.consumer, b.input_port, b.producer, b.output_port)


def _cycle_members(remaining: Set[str], downstream: Dict[str, Set[str]]) -> List[str]:
    """Steps (entre os não ordenados) que alcançam a si mesmos."""
    members: List[str] = []
    for start in sorted(remaining):
        seen: Set[str] = set()
        stack = [c for c in downstream[start] if c in remaining]
        while stack:
            current = stack.pop()
            if current == start:
                members.append(start)
                break
            if current in seen:
                continue
            seen.add(current)
            stack.extend(c for c in downstream[current] if c in remaining)
    return members or sorted(remaining)


def build_graph(
    nodes: Sequence[StepNode],
    *,
    bindings: Iterable[PortBinding] = (),
    external_formats: Iterable[DataFormat] = (),
) -> WorkflowGraph:
    """
    Valida e produz o grafo de execução a partir de Steps configurados.

    Args:
        nodes: StepNodes já configurados (ports congelados).
        bindings: ligações explícitas de ports.
        external_formats: formatos fornecidos como input externo da run.

    Returns:
        WorkflowGraph com ordem topológica determinística.

    Raises:
        DuplicateStepIdError: ids duplicados.
        ConfigurationError: ligação explícita inválida.
        UnresolvedDependencyError / AmbiguousProducerError / CyclicWorkflowError.
    """
    by_id = _index_nodes(nodes)
    externals = list(external_formats)

    producers: Dict[int, List[Tuple[str, str]]] = {}
    for sid in sorted(by_id):
        for port in by_id[sid].outputs.ports():  # type: ignore[union-attr]
            producers.setdefault(id(port.format), []).append((sid, port.name))

    explicit: Dict[Tuple[str, str], InputSource] = {}
    for b in bindings:
        src = _resolve_binding(b, by_id)
        explicit[(src.consumer, src.input_port)] = src

    sources: Dict[str, Dict[str, InputSource]] = {sid: {} for sid in by_id}
    upstream: Dict[str, Set[str]] = {sid: set() for sid in by_id}
    downstream: Dict[str, Set[str]] = {sid: set() for sid in by_id}

    for sid in sorted(by_id):
        for port in by_id[sid].inputs.ports():  # type: ignore[union-attr]
            src: Optional[InputSource] = explicit.get((sid, port.name))
            if src is None:
                candidates = [
                    InputSource(sid, port.name, producer, out_port)
                    for producer, out_port in producers.get(id(port.format), [])
                    if producer != sid
                ]
                if any(fmt is port.format for fmt in externals):
                    candidates.append(InputSource(sid, port.name, EXTERNAL_PRODUCER, port.format.name))

                if not candidates:
                    raise UnresolvedDependencyError(
                        f"No producer for input port {sid}.{port.name} (format '{port.format.name}')",
                        details={"step_id": sid, "port": port.name, "format": port.format.name},
                        hint="Adicione um Step que produza o formato ou forneça-o como input externo.",
                    )
                if len(candidates) > 1:
                    raise AmbiguousProducerError(
                        f"Several producers for input port {sid}.{port.name} (format '{port.format.name}'): "
                        + ", ".join(f"{c.producer}.{c.output_port}" for c in candidates),
                        details={
                            "step_id": sid,
                            "port": port.name,
                            "producers": [c.producer for c in candidates],
                        },
                        hint="Declare uma ligação explícita com StepRegistry.bind().",
                    )
                src = candidates[0]

            sources[sid][port.name] = src
            if not src.is_external:
                upstream[sid].add(src.producer)
                downstream[src.producer].add(sid)

    # Kahn's algorithm (deterministic)
    incoming = {sid: len(upstream[sid]) for sid in by_id}
    ready: List[str] = sorted(sid for sid, c in incoming.items() if c == 0)
    order: List[str] = []

    while ready:
        sid = ready.pop(0)
        order.append(sid)
        for child in sorted(downstream[sid]):
            incoming[child] -= 1
            if incoming[child] == 0:
                ready.append(child)
                ready.sort()

    if len(order) != len(by_id):
        remaining = set(by_id) - set(order)
        raise CyclicWorkflowError(_cycle_members(remaining, downstream))

    return WorkflowGraph(
        nodes=by_id,
        order=order,
        sources=sources,
        upstream=upstream,
        downstream=downstream,
    )
