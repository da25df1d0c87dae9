"""
Valores concretos (Data) que circulam pelos ports em tempo de execução.

Um Data é:
    - uma unidade única nomeada, ou
    - uma lista ordenada de unidades nomeadas do mesmo formato

Cada unidade carrega um mapa de metadados (string → string), por exemplo
nome da amostra, grupo experimental ou a flag de referência, usado por Steps
downstream para agrupar ou filtrar elementos, e um `value` opaco
(tipicamente um caminho). O core não interpreta o `value`.

Invariantes:
    - Um Data é produzido por exatamente um par Step/port
    - Após `finalize()`, Data e metadados são imutáveis
    - Steps consumidores leem Data sem mutá-lo
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, MutableMapping, Optional, Sequence

from seqflow.core.exceptions import ConfigurationError, IllegalStateError

from .formats import DataFormat


# Chaves de metadados usadas pelo core e pelos Steps embarcados.
METADATA_SAMPLE_NAME = "Name"
METADATA_EXPERIMENT = "Experiment"
METADATA_REFERENCE = "Reference"


class DataMetadata(MutableMapping[str, str]):
    """Mapa string → string que pode ser congelado."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._values: Dict[str, str] = {}
        self._frozen = False
        if values:
            self.update(values)

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if self._frozen:
            raise IllegalStateError(f"Metadata is finalized, cannot set '{key}'")
        if not isinstance(key, str) or not key:
            raise ConfigurationError("metadata keys must be non-empty strings")
        self._values[key] = str(value)

    def __delitem__(self, key: str) -> None:
        if self._frozen:
            raise IllegalStateError(f"Metadata is finalized, cannot delete '{key}'")
        del self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"DataMetadata({self._values!r})"

    def freeze(self) -> None:
        self._frozen = True

    def is_true(self, key: str) -> bool:
        return self._values.get(key, "").strip().lower() == "true"

    def to_dict(self) -> Dict[str, str]:
        return dict(self._values)


class Data:
    """
    Valor de um port: unidade única ou lista ordenada de unidades.

    Uso típico por um Step produtor (via TaskContext):
        out = ctx.output_data("alignments")
        out.set_value(path)

    Após a conclusão do Step, o executor chama `finalize()` e publica o Data.
    """

    def __init__(
        self,
        name: str,
        fmt: DataFormat,
        *,
        metadata: Optional[Mapping[str, Any]] = None,
        value: Any = None,
        elements: Optional[Sequence["Data"]] = None,
    ) -> None:
        if not isinstance(name, str) or not name:
            raise ConfigurationError("Data name must be a non-empty string")
        self.name = name
        self.format = fmt
        self.metadata = DataMetadata(metadata)
        self._value = value
        self._is_list = elements is not None
        self._elements: List[Data] = []
        self._finalized = False
        for e in elements or ():
            self._append(e)

    # -----------------------------
    # Construtores
    # -----------------------------
    @classmethod
    def single(
        cls,
        name: str,
        fmt: DataFormat,
        *,
        value: Any = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> "Data":
        return cls(name, fmt, metadata=metadata, value=value)

    @classmethod
    def list_of(cls, name: str, fmt: DataFormat, elements: Sequence["Data"] = ()) -> "Data":
        return cls(name, fmt, elements=list(elements))

    # -----------------------------
    # Acesso
    # -----------------------------
    @property
    def is_list(self) -> bool:
        return self._is_list

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def value(self) -> Any:
        return self._value

    def list_elements(self) -> List["Data"]:
        """Elementos da lista; para uma unidade única, `[self]`."""
        if not self._is_list:
            return [self]
        return list(self._elements)

    def __len__(self) -> int:
        return len(self._elements) if self._is_list else 1

    def __repr__(self) -> str:
        kind = f"list[{len(self._elements)}]" if self._is_list else "single"
        return f"Data({self.name!r}, {self.format.name!r}, {kind})"

    # -----------------------------
    # Mutação (somente antes de finalize)
    # -----------------------------
    def _check_mutable(self) -> None:
        if self._finalized:
            raise IllegalStateError(f"Data '{self.name}' is finalized")

    def _append(self, element: "Data") -> None:
        if element.is_list:
            raise ConfigurationError("Nested Data lists are not supported")
        if element.format is not self.format:
            raise ConfigurationError(
                f"Element format '{element.format.name}' does not match list format '{self.format.name}'"
            )
        if any(e.name == element.name for e in self._elements):
            raise ConfigurationError(f"Duplicate element name in Data '{self.name}': {element.name}")
        self._elements.append(element)

    def set_value(self, value: Any) -> None:
        self._check_mutable()
        if self._is_list:
            raise IllegalStateError("A Data list has no value of its own; set it on elements")
        self._value = value

    def add_element(self, name: str, *, metadata: Optional[Mapping[str, Any]] = None, value: Any = None) -> "Data":
        self._check_mutable()
        if not self._is_list:
            raise IllegalStateError(f"Data '{self.name}' is not a list")
        element = Data(name, self.format, metadata=metadata, value=value)
        self._append(element)
        return element

    def finalize(self) -> "Data":
        """Congela Data, elementos e metadados. Idempotente."""
        if self._finalized:
            return self
        for e in self._elements:
            e.finalize()
        self.metadata.freeze()
        self._finalized = True
        return self
