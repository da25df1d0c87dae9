"""
Camada de configuração do SeqFlow.

A configuração de um workflow é um dicionário puro, resolvido a partir de
um arquivo de defaults (obrigatório) e de overrides locais (opcionais).

Chaves reconhecidas pelo engine:
    - engine.workers     → tamanho do pool de execução (int >= 1, default 1)
    - engine.fail_fast   → interrompe o workflow na primeira falha (default false)
    - steps.<id>.parameters → mapa opaco entregue a `Step.configure`

Limites explícitos:
    - Não interpreta parâmetros de Steps
    - Não executa o workflow
"""

from .errors import (
    ConfigError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash
from .loader import load_config
from .merge import deep_merge
from .settings import EngineSettings, resolve_engine_settings, step_parameters

__all__ = [
    "ConfigError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "EngineSettings",
    "InvalidConfigRootTypeError",
    "UnsupportedConfigFormatError",
    "compute_config_hash",
    "deep_merge",
    "load_config",
    "resolve_engine_settings",
    "step_parameters",
]
