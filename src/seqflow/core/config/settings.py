"""
Leitura validada das chaves de configuração consumidas pelo engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigError


@dataclass(frozen=True)
class EngineSettings:
    workers: int = 1
    fail_fast: bool = False


def _section(config: Optional[Mapping[str, Any]], key: str) -> Mapping[str, Any]:
    value = (config or {}).get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' must be a mapping, got {type(value).__name__}", details={"key": key})
    return value


def resolve_engine_settings(config: Optional[Mapping[str, Any]]) -> EngineSettings:
    """
    Extrai `engine.workers` e `engine.fail_fast` da configuração efetiva.

    Raises:
        ConfigError: valores ausentes são aceitos (defaults), valores de
        tipo errado ou `workers < 1` não.
    """
    engine = _section(config, "engine")

    workers = engine.get("workers", 1)
    if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
        raise ConfigError(
            f"engine.workers must be an integer >= 1, got {workers!r}",
            details={"key": "engine.workers"},
        )

    fail_fast = engine.get("fail_fast", False)
    if not isinstance(fail_fast, bool):
        raise ConfigError(
            f"engine.fail_fast must be a boolean, got {fail_fast!r}",
            details={"key": "engine.fail_fast"},
        )

    return EngineSettings(workers=workers, fail_fast=fail_fast)


def step_parameters(config: Optional[Mapping[str, Any]], step_id: str) -> Dict[str, Any]:
    """Parâmetros opacos de `steps.<step_id>.parameters` (vazio se ausente)."""
    steps = _section(config, "steps")
    step_cfg = steps.get(step_id) or {}
    if not isinstance(step_cfg, Mapping):
        raise ConfigError(f"steps.{step_id} must be a mapping", details={"step_id": step_id})
    params = step_cfg.get("parameters") or {}
    if not isinstance(params, Mapping):
        raise ConfigError(
            f"steps.{step_id}.parameters must be a mapping",
            details={"step_id": step_id},
        )
    return dict(params)
