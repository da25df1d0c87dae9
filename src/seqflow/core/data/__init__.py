"""
Modelo de dados do SeqFlow.

Componentes:
    - formats → DataFormat e registro global de formatos
    - ports   → Port, PortSet, PortsBuilder (ports tipados de Steps)
    - data    → Data (unidade ou lista) com metadados imutáveis após finalize
"""

from .data import (
    METADATA_EXPERIMENT,
    METADATA_REFERENCE,
    METADATA_SAMPLE_NAME,
    Data,
    DataMetadata,
)
from .formats import DEFAULT_REGISTRY, DataFormat, FormatRegistry, get_format, register_format
from .ports import (
    NO_INPUT_PORTS,
    NO_OUTPUT_PORTS,
    Cardinality,
    Port,
    PortDirection,
    PortSet,
    PortsBuilder,
    single_input_port,
    single_output_port,
)

__all__ = [
    "Cardinality",
    "Data",
    "DataFormat",
    "DataMetadata",
    "DEFAULT_REGISTRY",
    "FormatRegistry",
    "METADATA_EXPERIMENT",
    "METADATA_REFERENCE",
    "METADATA_SAMPLE_NAME",
    "NO_INPUT_PORTS",
    "NO_OUTPUT_PORTS",
    "Port",
    "PortDirection",
    "PortSet",
    "PortsBuilder",
    "get_format",
    "register_format",
    "single_input_port",
    "single_output_port",
]
