# tests/conftest.py
"""
Fixtures compartilhados para testes do SeqFlow.

Este módulo define fixtures reutilizáveis que fornecem:
- formatos de dados registrados de forma determinística
- configuração mínima já resolvida
- contexto de execução controlado (RunContext)
- uma fábrica de Steps dummy (duck typing, sem herança)

Decisões arquiteturais:
    - Fixtures são mantidas simples e explícitas
    - Imports do core são realizados de forma lazy para
      melhorar a clareza de erros durante falhas
    - Formatos são registrados no registro global com atributos fixos
      (registrar de novo devolve a mesma instância)

Invariantes:
    - Nenhuma fixture executa workflow real
    - Nenhuma fixture realiza I/O
    - Todas as fixtures são seguras para execução repetida

Limites explícitos:
    - Não substituir testes de integração
    - Não conter lógica de domínio
"""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest


# =====================================================
# Formatos
# =====================================================

@pytest.fixture
def formats():
    """
    Formatos canônicos usados nos testes (reads → filtered → alignments → counts).

    Returns:
        SimpleNamespace: atributos `reads`, `filtered`, `alignments`, `counts`.
    """
    from seqflow.core.data.formats import register_format

    return SimpleNamespace(
        reads=register_format("test-reads", description="raw reads", extensions=(".fq",)),
        filtered=register_format("test-filtered-reads", description="filtered reads"),
        alignments=register_format("test-alignments", description="alignment results", extensions=(".sam",)),
        counts=register_format("test-counts", description="expression counts"),
    )


# =====================================================
# Config loader fixtures
# =====================================================

@pytest.fixture
def project_like_config_defaults_yaml() -> str:
    """YAML de defaults semelhante a um `config.defaults.yaml` real."""
    return """\
engine:
  workers: 2
  fail_fast: false
steps:
  filter:
    parameters:
      min_quality: 20
  map:
    parameters:
      mapper: bowtie
      threads: 1
"""


@pytest.fixture
def project_like_config_local_yaml() -> str:
    """YAML de override local: sobrescreve apenas o necessário."""
    return """\
engine:
  workers: 4
steps:
  map:
    parameters:
      threads: 8
"""


# =====================================================
# Pipeline fixtures (RunContext + Step)
# =====================================================

@pytest.fixture
def dummy_config() -> dict:
    """
    Configuração mínima e válida, já resolvida.

    - `engine.workers` explícito (1) para execução determinística
    - `fail_fast` desabilitado (política padrão)
    """
    return {
        "engine": {"workers": 1, "fail_fast": False},
        "steps": {},
    }


@pytest.fixture
def dummy_ctx(dummy_config):
    """RunContext determinístico (run_id e created_at fixos)."""
    from seqflow.core.pipeline.context import RunContext

    return RunContext(
        run_id="run-test-001",
        created_at=datetime(2026, 1, 16, 0, 0, 0, tzinfo=timezone.utc),
        config=dummy_config,
        meta={"source": "pytest"},
    )


@pytest.fixture
def DummyStep():
    """
    Fixture factory que fornece uma implementação mínima e duck-typed de um Step.

    A classe retornada:
    - declara um port de entrada e um de saída opcionais
    - em `execute(ctx)`, escreve uma unidade de saída por task (quando há
      port de saída), registra a chamada e finaliza o status
    - pode falhar de propósito (`fail=True`) ou para um contexto
      específico (`fail_on="S2"`)

    Returns:
        type: Classe _DummyStep que pode ser instanciada pelos testes.
    """
    import threading

    from seqflow.core.data.ports import NO_INPUT_PORTS, NO_OUTPUT_PORTS, single_input_port, single_output_port

    class _DummyStep:
        def __init__(
            self,
            step_id="dummy",
            *,
            consumes=None,
            produces=None,
            cardinality=None,
            fail=False,
            fail_on=None,
            counters=None,
            requirements=(),
        ):
            from seqflow.core.data.ports import Cardinality

            self.id = step_id
            self.version = "1.0"
            self._inputs = (
                single_input_port("input", consumes, cardinality or Cardinality.ONE)
                if consumes is not None
                else NO_INPUT_PORTS
            )
            self._outputs = single_output_port(produces) if produces is not None else NO_OUTPUT_PORTS
            self.fail = fail
            self.fail_on = fail_on
            self.counters = dict(counters or {})
            self._requirements = list(requirements)
            self.parameters = None
            self.calls = []
            self._lock = threading.Lock()

        def input_ports(self):
            return self._inputs

        def output_ports(self):
            return self._outputs

        def requirements(self):
            return self._requirements

        def configure(self, parameters):
            self.parameters = dict(parameters)

        def execute(self, ctx):
            with self._lock:
                self.calls.append(ctx.context_name)
            if self.fail or self.fail_on == ctx.context_name:
                raise RuntimeError(f"boom in {ctx.context_name}")
            if "output" in self._outputs:
                out = ctx.output_data("output")
                out.set_value(f"{self.id}:{ctx.context_name}")
            if self.counters:
                ctx.status.merge_counters(self.counters)
            return ctx.status.finish()

    return _DummyStep
