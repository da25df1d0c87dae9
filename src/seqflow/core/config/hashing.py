"""
Hash canônico da configuração efetiva (SHA-256 sobre JSON canônico).

Usado pelo manifest para identificar a configuração de uma run: o hash
independe da ordem original das chaves.
"""

import hashlib
import json
from typing import Any, Dict


def canonical_json(obj: Any) -> bytes:
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    ).encode("utf-8")


def compute_config_hash(config: Dict[str, Any]) -> str:
    """Retorna o SHA-256 hexadecimal (64 caracteres) da configuração."""
    if not isinstance(config, dict):
        raise TypeError(f"config must be a dict, got {type(config).__name__}")
    return hashlib.sha256(canonical_json(config)).hexdigest()
