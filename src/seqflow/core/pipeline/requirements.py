"""
Requisitos externos declarados por Steps.

Um requisito é uma pré-condição externa (disponibilidade de ferramenta ou
recurso) que precisa ser satisfeita antes que o Step deixe o estado
"configured". Um requisito indisponível faz o Step falhar antes de qualquer
task ser agendada; não é uma falha de runtime.

Implementações embarcadas:
    - PathRequirement     → executável presente no PATH
    - DockerRequirement   → cliente docker disponível para a imagem declarada
    - CallableRequirement → predicado arbitrário (testes, recursos locais)

`tool_requirement` escolhe entre docker e PATH conforme a configuração
do Step.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, runtime_checkable

from seqflow.core.exceptions import ConfigurationError


@runtime_checkable
class Requirement(Protocol):
    def is_available(self) -> bool:
        ...

    def describe(self) -> str:
        ...


@dataclass(frozen=True)
class PathRequirement:
    """Exige um executável resolvível no PATH."""

    executable: str

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def describe(self) -> str:
        return f"executable '{self.executable}' on PATH"


@dataclass(frozen=True)
class DockerRequirement:
    """Exige o cliente docker para executar a imagem declarada.

    Como a imagem é obtida (pull, registry) é responsabilidade do colaborador.
    """

    image: str
    client: str = "docker"

    def is_available(self) -> bool:
        return bool(self.image.strip()) and shutil.which(self.client) is not None

    def describe(self) -> str:
        return f"docker image '{self.image}'"


@dataclass(frozen=True)
class CallableRequirement:
    name: str
    check: Callable[[], bool] = field(compare=False)

    def is_available(self) -> bool:
        return bool(self.check())

    def describe(self) -> str:
        return self.name


def tool_requirement(
    executable: str,
    *,
    use_docker: bool = False,
    docker_image: Optional[str] = None,
) -> Requirement:
    """
    Requisito de uma ferramenta externa: imagem docker ou executável no PATH.

    Raises:
        ConfigurationError: modo docker com nome de imagem vazio.
    """
    if not use_docker:
        return PathRequirement(executable)
    image = (docker_image or "").strip()
    if not image:
        raise ConfigurationError(
            f"The docker image name for '{executable}' is empty",
            details={"executable": executable},
        )
    return DockerRequirement(image)
