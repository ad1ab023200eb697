"""
Тесты контекста вычисления.
"""

import pytest

from ftl.template import EvaluationContext


class TestEvaluationContext:

    def test_empty(self):
        ec = EvaluationContext()
        assert dict(ec.functions) == {}

    def test_functions_are_read_only(self):
        ec = EvaluationContext({"f": len})
        with pytest.raises(TypeError):
            ec.functions["g"] = len

    def test_source_mapping_is_copied(self):
        source = {"f": len}
        ec = EvaluationContext.configure(source)
        source["g"] = abs
        assert "g" not in ec.functions

    def test_with_module_returns_new_context(self):
        ec = EvaluationContext({"f": len})
        derived = ec.with_module("m", {"g": abs})
        assert "m" not in ec.functions
        assert derived.functions["m"] == {"g": abs}
        assert derived.functions["f"] is len

    def test_with_modules_overrides(self):
        ec = EvaluationContext({"f": len})
        derived = ec.with_modules({"f": abs, "h": min})
        assert derived.functions["f"] is abs
        assert derived.functions["h"] is min

    def test_repr(self):
        assert repr(EvaluationContext({"b": 1, "a": 2})) == "EvaluationContext(['a', 'b'])"
