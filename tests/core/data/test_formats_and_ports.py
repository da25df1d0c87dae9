# tests/core/data/test_formats_and_ports.py
"""
Testes do modelo de ports tipados.

Os testes asseguram que:
- DataFormats são registrados uma única vez e comparados por identidade
- atributos conflitantes no registro são ConfigurationError
- o PortsBuilder rejeita nomes duplicados, formatos não registrados e
  dois ports de saída com o mesmo formato

Limites explícitos:
    - Não valida o planner (ver tests/core/engine)
"""

import pytest

try:
    from seqflow.core.data.formats import FormatRegistry, get_format, register_format
    from seqflow.core.data.ports import (
        Cardinality,
        PortDirection,
        PortsBuilder,
        single_input_port,
        single_output_port,
    )
    from seqflow.core.exceptions import ConfigurationError
except Exception as e:  # noqa: BLE001
    FormatRegistry = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if FormatRegistry is None:
        pytest.fail(f"Missing seqflow.core.data. Import error: {_IMPORT_ERR}")


def test_register_same_format_twice_returns_same_instance():
    _require_imports()
    registry = FormatRegistry()
    a = registry.register("reads", description="raw reads", extensions=(".fq",))
    b = registry.register("reads", description="raw reads", extensions=(".fq",))

    assert a is b
    assert registry.get("reads") is a
    assert registry.names() == ["reads"]


def test_register_conflicting_attributes_fails():
    _require_imports()
    registry = FormatRegistry()
    registry.register("reads", description="raw reads")

    with pytest.raises(ConfigurationError):
        registry.register("reads", description="something else")


def test_unknown_format_is_configuration_error():
    _require_imports()
    with pytest.raises(ConfigurationError):
        get_format("no-such-format-anywhere")


def test_formats_with_same_name_in_other_registry_are_not_equal():
    _require_imports()
    a = FormatRegistry().register("x")
    b = FormatRegistry().register("x")
    assert a is not b
    assert a != b


def test_ports_builder_builds_ordered_port_sets(formats):
    _require_imports()
    builder = PortsBuilder()
    builder.add_input_port("reads", formats.reads, Cardinality.ONE)
    builder.add_input_port("index", "test-alignments", Cardinality.LIST)
    builder.add_output_port("alignments", formats.alignments)

    inputs = builder.input_ports()
    outputs = builder.output_ports()

    assert list(inputs) == ["reads", "index"]
    assert inputs.primary.name == "reads"
    assert inputs["index"].is_list
    assert inputs["index"].format is formats.alignments
    assert inputs.direction is PortDirection.INPUT
    assert outputs["alignments"].direction is PortDirection.OUTPUT


def test_ports_builder_rejects_duplicate_names(formats):
    _require_imports()
    builder = PortsBuilder().add_input_port("reads", formats.reads)
    with pytest.raises(ConfigurationError):
        builder.add_input_port("reads", formats.filtered)


def test_same_name_is_allowed_across_directions(formats):
    _require_imports()
    builder = PortsBuilder().add_input_port("data", formats.reads).add_output_port("data", formats.filtered)
    assert "data" in builder.input_ports()
    assert "data" in builder.output_ports()


def test_ports_builder_rejects_unregistered_format():
    _require_imports()
    foreign = FormatRegistry().register("foreign")
    with pytest.raises(ConfigurationError):
        PortsBuilder().add_input_port("x", foreign)


def test_two_output_ports_with_same_format_are_ambiguous(formats):
    _require_imports()
    builder = PortsBuilder().add_output_port("a", formats.counts)
    with pytest.raises(ConfigurationError):
        builder.add_output_port("b", formats.counts)


def test_single_port_helpers(formats):
    _require_imports()
    inputs = single_input_port("reads", formats.reads, Cardinality.LIST)
    outputs = single_output_port(formats.filtered)

    assert len(inputs) == 1 and inputs["reads"].is_list
    assert list(outputs) == ["output"]
    assert outputs.by_format(formats.filtered)[0].name == "output"
