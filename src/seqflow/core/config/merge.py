"""
Deep-merge determinístico de configuração.

Política:
    - dict + dict → merge recursivo por chave
    - list        → substituição total
    - escalar     → substituição direta
    - tipos incompatíveis → ConfigTypeConflictError

Os inputs nunca são mutados.
"""

from copy import deepcopy
from typing import Any, Dict

from .errors import ConfigTypeConflictError


def deep_merge(base: Dict[str, Any], override: Dict[str, Any], *, _path: str = "") -> Dict[str, Any]:
    """
    Mescla `override` sobre `base`, devolvendo um novo dicionário.

    Args:
        base: configuração base (ex.: defaults).
        override: overrides explícitos.

    Returns:
        Novo dicionário resolvido.

    Raises:
        ConfigTypeConflictError: mesma chave com tipos incompatíveis.
    """
    if not isinstance(base, dict) or not isinstance(override, dict):
        raise ConfigTypeConflictError(
            f"Deep-merge requires dicts, got {type(base).__name__} vs {type(override).__name__}",
            details={"path": _path or "<root>"},
        )

    merged: Dict[str, Any] = deepcopy(base)

    for key, new in override.items():
        path = f"{_path}.{key}" if _path else str(key)
        if key not in merged:
            merged[key] = deepcopy(new)
            continue

        old = merged[key]
        if isinstance(old, dict) and isinstance(new, dict):
            merged[key] = deep_merge(old, new, _path=path)
        elif isinstance(new, list):
            merged[key] = deepcopy(new)
        elif old is not None and new is not None and type(old) is not type(new):
            raise ConfigTypeConflictError(
                f"Type conflict at '{path}': {type(old).__name__} vs {type(new).__name__}",
                details={"path": path},
                hint="Ajuste o override local para o mesmo tipo do default.",
            )
        else:
            merged[key] = deepcopy(new)

    return merged
