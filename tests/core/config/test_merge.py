# tests/core/config/test_merge.py
"""
Testes da política canônica de deep-merge.

- dict + dict → merge recursivo
- list        → substituição total
- escalar     → substituição direta
- tipos incompatíveis → ConfigTypeConflictError (com o caminho da chave)
"""

import pytest

try:
    from seqflow.core.config.errors import ConfigTypeConflictError
    from seqflow.core.config.merge import deep_merge
except Exception as e:  # noqa: BLE001
    deep_merge = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing merge module. Implement:\n"
            "- src/seqflow/core/config/merge.py (deep_merge)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_merge_simple_override():
    _require_imports()
    assert deep_merge({"workers": 1, "fail_fast": False}, {"workers": 4}) == {"workers": 4, "fail_fast": False}


def test_merge_nested_dict():
    _require_imports()
    base = {"steps": {"map": {"parameters": {"threads": 1, "mapper": "bowtie"}}}}
    override = {"steps": {"map": {"parameters": {"threads": 8}}, "filter": {"parameters": {}}}}

    out = deep_merge(base, override)

    assert out["steps"]["map"]["parameters"] == {"threads": 8, "mapper": "bowtie"}
    assert out["steps"]["filter"] == {"parameters": {}}


def test_merge_list_override_total():
    _require_imports()
    out = deep_merge({"samples": ["S1", "S2", "S3"]}, {"samples": ["S9"]})
    assert out == {"samples": ["S9"]}


def test_merge_does_not_mutate_inputs():
    _require_imports()
    base = {"engine": {"workers": 1}}
    override = {"engine": {"workers": 2}}
    out = deep_merge(base, override)

    out["engine"]["workers"] = 99
    assert base == {"engine": {"workers": 1}}
    assert override == {"engine": {"workers": 2}}


def test_none_overrides_are_accepted():
    _require_imports()
    assert deep_merge({"image": "ewels/multiqc"}, {"image": None}) == {"image": None}
    assert deep_merge({"image": None}, {"image": "ewels/multiqc"}) == {"image": "ewels/multiqc"}


def test_merge_type_conflict_raises():
    _require_imports()
    with pytest.raises(ConfigTypeConflictError) as exc:
        deep_merge({"engine": {"workers": 4}}, {"engine": {"workers": "4"}})
    assert exc.value.details["path"] == "engine.workers"

    with pytest.raises(ConfigTypeConflictError):
        deep_merge({"engine": {"workers": 4}}, {"engine": "fast"})
