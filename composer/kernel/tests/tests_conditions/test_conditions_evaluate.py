"""
Conditional Visibility — Rule and group evaluation

Missing fields satisfy only `!=`; operands are coerced to one primitive
kind and mismatched kinds are False; groups short-circuit; empty AND is
True and empty OR is False. Evaluation never raises.
"""

import pytest

from composer.kernel.conditions import ConditionGroup, ConditionRule, evaluate, flatten_fields


def rule(field, op, value):
    return {"field": field, "operator": op, "value": value}


def group(logic, *rules):
    return {"logic": logic, "rules": list(rules)}


# ============================================================================
# Groups
# ============================================================================


class TestGroups:
    def test_and_range_inside(self):
        g = group("AND", rule("total", ">", 100), rule("total", "<", 500))
        assert evaluate(g, {"total": 300}) is True

    def test_and_range_outside(self):
        g = group("AND", rule("total", ">", 100), rule("total", "<", 500))
        assert evaluate(g, {"total": 50}) is False

    def test_or(self):
        g = group("OR", rule("plan", "==", "pro"), rule("plan", "==", "business"))
        assert evaluate(g, {"plan": "business"}) is True
        assert evaluate(g, {"plan": "free"}) is False

    def test_empty_and_is_true(self):
        assert evaluate(group("AND"), {}) is True

    def test_empty_or_is_false(self):
        assert evaluate(group("OR"), {}) is False

    def test_nested(self):
        g = group(
            "AND",
            rule("pricing.total", ">=", 1000),
            group("OR", rule("region", "==", "EU"), rule("region", "==", "UK")),
        )
        assert evaluate(g, {"pricing.total": 1000, "region": "UK"}) is True
        assert evaluate(g, {"pricing.total": 1000, "region": "US"}) is False

    def test_deep_nesting(self):
        g = rule("x", "==", 1)
        for _ in range(200):
            g = group("AND", g)
        assert evaluate(g, {"x": 1}) is True

    def test_and_short_circuits(self):
        seen = []

        class Spy(dict):
            def get(self, key, default=None):
                seen.append(key)
                return super().get(key, default)

        g = group("AND", rule("a", "==", 1), rule("b", "==", 1))
        assert evaluate(g, Spy(a=0, b=1)) is False
        assert seen == ["a"]

    def test_or_short_circuits(self):
        seen = []

        class Spy(dict):
            def get(self, key, default=None):
                seen.append(key)
                return super().get(key, default)

        g = group("OR", rule("a", "==", 1), rule("b", "==", 1))
        assert evaluate(g, Spy(a=1, b=1)) is True
        assert seen == ["a"]

    def test_unknown_logic_is_false(self):
        assert evaluate({"logic": "XOR", "rules": []}, {}) is False

    def test_not_a_group(self):
        assert evaluate(None, {}) is False

    def test_rules_not_a_list(self):
        assert evaluate({"logic": "AND", "rules": 5}, {}) is False
        assert evaluate({"logic": "OR", "rules": "total"}, {"total": 1}) is False

    def test_malformed_child_is_false(self):
        assert evaluate(group("OR", "junk", rule("x", "==", 1)), {"x": 1}) is True
        assert evaluate(group("AND", None), {}) is False

    def test_pydantic_models_accepted(self):
        g = ConditionGroup(logic="AND", rules=[ConditionRule(field="total", operator=">", value=10)])
        assert evaluate(g, {"total": 11}) is True


# ============================================================================
# Missing fields
# ============================================================================


class TestMissingFields:
    def test_not_equal_on_missing_is_true(self):
        assert evaluate(group("AND", rule("absent", "!=", "x")), {}) is True

    def test_equal_on_missing_is_false(self):
        assert evaluate(group("AND", rule("absent", "==", "x")), {}) is False

    @pytest.mark.parametrize("op", [">", "<", ">=", "<="])
    def test_ordering_on_missing_is_false(self, op):
        assert evaluate(group("AND", rule("absent", op, 0)), {}) is False

    def test_none_value_counts_as_missing(self):
        assert evaluate(group("AND", rule("x", "!=", 1)), {"x": None}) is True
        assert evaluate(group("AND", rule("x", "==", 1)), {"x": None}) is False


# ============================================================================
# Coercion
# ============================================================================


class TestCoercion:
    def test_numeric_string_against_number(self):
        assert evaluate(group("AND", rule("qty", ">", 2)), {"qty": "3"}) is True

    def test_number_against_numeric_string(self):
        assert evaluate(group("AND", rule("qty", "==", "3")), {"qty": 3}) is True

    def test_int_and_float(self):
        assert evaluate(group("AND", rule("total", "==", 100)), {"total": 100.0}) is True

    def test_bool_string(self):
        assert evaluate(group("AND", rule("sel", "==", True)), {"sel": "true"}) is True
        assert evaluate(group("AND", rule("sel", "==", "FALSE")), {"sel": False}) is True

    def test_strings_compare_lexically(self):
        assert evaluate(group("AND", rule("tier", "<", "b")), {"tier": "a"}) is True

    def test_mismatch_is_false(self):
        assert evaluate(group("AND", rule("total", ">", 10)), {"total": "lots"}) is False

    def test_mismatch_is_false_for_not_equal(self):
        assert evaluate(group("AND", rule("sel", "!=", 1)), {"sel": True}) is False

    def test_bool_against_number_is_mismatch(self):
        assert evaluate(group("AND", rule("sel", "==", 1)), {"sel": True}) is False

    def test_unsupported_value_kind(self):
        assert evaluate(group("AND", rule("items", "==", 1)), {"items": [1]}) is False

    def test_unknown_operator(self):
        assert evaluate(group("AND", rule("x", "~=", 1)), {"x": 1}) is False

    def test_unhashable_operator(self):
        assert evaluate(group("AND", rule("x", ["=="], 1)), {"x": 1}) is False
        assert evaluate(group("AND", rule("x", {"op": "!="}, 1)), {}) is False

    def test_non_string_field(self):
        assert evaluate(group("AND", rule(["x"], "==", 1)), {"x": 1}) is False


class TestFlattenFields:
    def test_nested(self):
        nested = {"pricing": {"total": 300, "items": {"i1": {"isSelected": True}}}, "region": "EU"}
        assert flatten_fields(nested) == {
            "pricing.total": 300,
            "pricing.items.i1.isSelected": True,
            "region": "EU",
        }

    def test_flattened_feeds_evaluate(self):
        fields = flatten_fields({"pricing": {"total": 300}})
        assert evaluate(group("AND", rule("pricing.total", ">", 100)), fields) is True
