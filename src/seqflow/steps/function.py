"""Step genérico: função Python como unidade de trabalho.

Responsabilidades:
- Adaptar um callable `fn(ctx)` ao contrato de Step (ports, requisitos,
  configuração e finalização do TaskStatus).
- Opcionalmente declarar uma ferramenta externa como requisito: com
  `tool=...`, os parâmetros `use.docker` e `docker.image` escolhem entre a
  imagem docker e o executável no PATH.

Contrato do callable:
- recebe o TaskContext da task
- pode devolver um mapa de contadores (mesclado no status) ou None
- exceções escapadas viram falha da task (tratadas pelo executor)

Limites explícitos:
- NÃO invoca a ferramenta: apenas declara o requisito.
- NÃO valida parâmetros além das chaves permitidas.
"""

from __future__ import annotations

from typing import Any, Callable, Collection, Dict, List, Mapping, Optional, Sequence

from seqflow.core.data.ports import NO_INPUT_PORTS, NO_OUTPUT_PORTS, PortSet
from seqflow.core.exceptions import ConfigurationError
from seqflow.core.pipeline.context import TaskContext
from seqflow.core.pipeline.requirements import Requirement, tool_requirement
from seqflow.core.pipeline.types import TaskResult

TaskFunction = Callable[[TaskContext], Optional[Mapping[str, int]]]

_TOOL_PARAMETERS = ("use.docker", "docker.image")


class FunctionStep:
    """Step duck-typed cujo trabalho é um callable."""

    def __init__(
        self,
        step_id: str,
        fn: TaskFunction,
        *,
        inputs: PortSet = NO_INPUT_PORTS,
        outputs: PortSet = NO_OUTPUT_PORTS,
        version: str = "1.0",
        requirements: Sequence[Requirement] = (),
        allowed_parameters: Optional[Collection[str]] = None,
        tool: Optional[str] = None,
        docker_image: Optional[str] = None,
    ) -> None:
        self.id = step_id
        self.version = version
        self.fn = fn
        self.parameters: Dict[str, Any] = {}
        self.tool = tool
        self.docker_image = docker_image
        self._inputs = inputs
        self._outputs = outputs
        self._static_requirements: List[Requirement] = list(requirements)
        self._requirements: List[Requirement] = list(requirements)
        self._allowed = None if allowed_parameters is None else set(allowed_parameters)

    def input_ports(self) -> PortSet:
        return self._inputs

    def output_ports(self) -> PortSet:
        return self._outputs

    def requirements(self) -> Sequence[Requirement]:
        return list(self._requirements)

    def configure(self, parameters: Mapping[str, Any]) -> None:
        params = dict(parameters)

        if self._allowed is not None:
            allowed = self._allowed | (set(_TOOL_PARAMETERS) if self.tool else set())
            unknown = sorted(k for k in params if k not in allowed)
            if unknown:
                raise ConfigurationError(
                    f"Unknown parameter for {self.id} step: {unknown[0]}",
                    details={"step_id": self.id, "parameters": unknown},
                )

        requirements = list(self._static_requirements)
        if self.tool:
            use_docker = params.get("use.docker", False)
            if not isinstance(use_docker, bool):
                raise ConfigurationError(f"use.docker must be a boolean for {self.id} step")
            image = params.get("docker.image", self.docker_image)
            requirements.append(tool_requirement(self.tool, use_docker=use_docker, docker_image=image))

        self.parameters = params
        self._requirements = requirements

    def execute(self, ctx: TaskContext) -> TaskResult:
        counters = self.fn(ctx)
        if counters:
            ctx.status.merge_counters(counters)
        return ctx.status.finish()
