"""
Registro canônico de DataFormats do SeqFlow.

Um DataFormat identifica um tipo de dado que circula entre Steps
(ex.: "reads", "alignment-results"). Dois Steps só são compatíveis quando
o formato de saída de um é **exatamente** o formato de entrada do outro.

Princípios fundamentais:
    - Formatos são imutáveis e comparados por identidade
    - Todo formato usado em um port precisa estar registrado
    - O registro é idempotente para declarações idênticas

Invariantes:
    - Cada nome corresponde a no máximo uma instância registrada
    - Redeclarações conflitantes são tratadas como erro de configuração

Limites explícitos:
    - Não interpreta o conteúdo (bytes) dos dados
    - Não define formatos de arquivo específicos
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, List, Tuple, Union

from seqflow.core.exceptions import ConfigurationError


@dataclass(frozen=True, eq=False)
class DataFormat:
    """Identificador imutável de um tipo de dado (comparado por identidade)."""

    name: str
    description: str = ""
    extensions: Tuple[str, ...] = ()

    def __repr__(self) -> str:
        return f"DataFormat({self.name!r})"


class FormatRegistry:
    """
    Registro de DataFormats indexado por nome.

    Decisões arquiteturais:
        - Registrar o mesmo nome com os mesmos atributos devolve a instância existente
        - Registrar o mesmo nome com atributos diferentes é ConfigurationError
        - Acesso protegido por lock (registro pode ocorrer em imports concorrentes)
    """

    def __init__(self) -> None:
        self._formats: Dict[str, DataFormat] = {}
        self._lock = threading.Lock()

    def register(
        self,
        name: str,
        *,
        description: str = "",
        extensions: Tuple[str, ...] = (),
    ) -> DataFormat:
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError("DataFormat name must be a non-empty string")

        name = name.strip()
        extensions = tuple(extensions)

        with self._lock:
            existing = self._formats.get(name)
            if existing is not None:
                if existing.description != description or existing.extensions != extensions:
                    raise ConfigurationError(
                        f"DataFormat '{name}' already registered with different attributes",
                        details={"format": name},
                    )
                return existing

            fmt = DataFormat(name=name, description=description, extensions=extensions)
            self._formats[name] = fmt
            return fmt

    def get(self, name: str) -> DataFormat:
        with self._lock:
            fmt = self._formats.get(name)
        if fmt is None:
            raise ConfigurationError(
                f"Unknown data format: {name}",
                details={"format": name},
                hint="Registre o formato com register_format() antes de declarar ports.",
            )
        return fmt

    def is_registered(self, fmt: Union[DataFormat, str]) -> bool:
        with self._lock:
            if isinstance(fmt, DataFormat):
                return self._formats.get(fmt.name) is fmt
            return fmt in self._formats

    def resolve(self, fmt: Union[DataFormat, str]) -> DataFormat:
        """Aceita instância ou nome e devolve a instância registrada."""
        if isinstance(fmt, DataFormat):
            if not self.is_registered(fmt):
                raise ConfigurationError(
                    f"Data format is not registered: {fmt.name}",
                    details={"format": fmt.name},
                )
            return fmt
        return self.get(fmt)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._formats)


DEFAULT_REGISTRY = FormatRegistry()


def register_format(
    name: str,
    *,
    description: str = "",
    extensions: Tuple[str, ...] = (),
) -> DataFormat:
    return DEFAULT_REGISTRY.register(name, description=description, extensions=extensions)


def get_format(name: str) -> DataFormat:
    return DEFAULT_REGISTRY.get(name)
