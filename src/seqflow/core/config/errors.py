"""
Exceções da camada de configuração do SeqFlow.

Todas herdam de `ConfigError`, que por sua vez é um `ConfigurationError`:
falhas de configuração são detectadas antes de qualquer task executar e
abortam o workflow de forma síncrona.

Limites explícitos:
    - Não realiza fallback ou recovery
    - Não representa falhas de execução de Steps
"""

from seqflow.core.exceptions import ConfigurationError


class ConfigError(ConfigurationError):
    """Base para falhas de carregamento, merge ou validação de configuração."""


class DefaultsNotFoundError(ConfigError):
    """
    Arquivo de defaults ausente.

    O arquivo de defaults é obrigatório: sem ele não existe configuração
    efetiva válida, e o loader não tenta inferir uma.
    """


class UnsupportedConfigFormatError(ConfigError):
    """Extensão de arquivo fora de .yaml / .yml / .json."""


class InvalidConfigRootTypeError(ConfigError):
    """O conteúdo raiz do arquivo não é um mapa chave-valor."""


class ConfigTypeConflictError(ConfigError):
    """
    Conflito de tipos entre base e override durante o deep-merge.

    Exemplo:
        - base:     {"engine": {"workers": 4}}
        - override: {"engine": "fast"}

    Nenhum merge parcial é produzido.
    """
