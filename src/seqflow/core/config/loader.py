"""
Loader de configuração do SeqFlow.

Resolve a configuração efetiva a partir de:
    - um arquivo de defaults (obrigatório)
    - um arquivo local de overrides (opcional; ignorado se ausente)

Formatos aceitos: YAML (.yaml, .yml) via PyYAML `safe_load` e JSON (.json).
Arquivos vazios valem como `{}`.

Invariantes:
    - o resultado é sempre um `dict`
    - overrides nunca mutam os defaults
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # PyYAML

from .errors import DefaultsNotFoundError, InvalidConfigRootTypeError, UnsupportedConfigFormatError
from .merge import deep_merge

PathLike = Union[str, Path]


def read_config_file(path: PathLike) -> Dict[str, Any]:
    """
    Lê um arquivo de configuração e valida o tipo raiz.

    Raises:
        DefaultsNotFoundError: arquivo inexistente.
        UnsupportedConfigFormatError: extensão não suportada.
        InvalidConfigRootTypeError: raiz não é um dicionário.
    """
    p = Path(path)
    if not p.exists():
        raise DefaultsNotFoundError(f"Config file not found: {p}", details={"path": str(p)})

    suffix = p.suffix.lower()
    with p.open("r", encoding="utf-8") as f:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise UnsupportedConfigFormatError(
                f"Unsupported config format: {p.suffix}",
                details={"path": str(p)},
                hint="Use .yaml, .yml ou .json.",
            )

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"Config root must be a mapping, got {type(data).__name__}",
            details={"path": str(p)},
        )
    return data


def load_config(*, defaults_path: PathLike, local_path: Optional[PathLike] = None) -> Dict[str, Any]:
    """
    Carrega defaults e aplica o override local (se existir).

    Raises:
        DefaultsNotFoundError / UnsupportedConfigFormatError /
        InvalidConfigRootTypeError / ConfigTypeConflictError
    """
    effective = read_config_file(defaults_path)

    if local_path is not None and Path(local_path).exists():
        effective = deep_merge(effective, read_config_file(local_path))

    return effective
