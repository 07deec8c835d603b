"""
Composer Kernel — Conditional Visibility

Pure function: (condition tree, flattened field values) → bool
No side effects. Never raises: malformed nodes and missing data evaluate
to False so a read path can't crash a view.

A node is a group iff it carries a `logic` key; otherwise it is a rule.
"""

from __future__ import annotations

import logging
import math
import operator
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from composer.kernel.pricing import item_is_selected, item_total, pricing_totals
from composer.kernel.types import CONDITION_OPERATORS

logger = logging.getLogger(__name__)

Scalar = bool | int | float | str


# ---------------------------------------------------------------------------
# Schema (used by block validation)
# ---------------------------------------------------------------------------


class ConditionRule(BaseModel):
    """Compare the runtime value at `field` against `value`."""

    model_config = ConfigDict(extra="forbid")

    field: str = Field(min_length=1)
    operator: Literal["==", "!=", ">", "<", ">=", "<="]
    value: bool | int | float | str


class ConditionGroup(BaseModel):
    """AND/OR over rules and nested groups."""

    model_config = ConfigDict(extra="forbid")

    logic: Literal["AND", "OR"]
    rules: list[ConditionRule | ConditionGroup] = Field(default_factory=list)


ConditionGroup.model_rebuild()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def evaluate(group: Mapping[str, Any] | ConditionGroup, field_values: Mapping[str, Any]) -> bool:
    """
    Evaluate a condition group against the flattened field context.

    AND short-circuits on the first False child, OR on the first True one.
    An empty AND is True, an empty OR is False.
    """
    node = _as_mapping(group)
    if node is None:
        return False

    rules = node.get("rules") or []
    if not isinstance(rules, list):
        logger.debug("conditions: rules must be a list, got %r", type(rules).__name__)
        return False

    logic = node.get("logic")
    if logic == "AND":
        return all(_evaluate_node(child, field_values) for child in rules)
    if logic == "OR":
        return any(_evaluate_node(child, field_values) for child in rules)

    logger.debug("conditions: unknown logic %r", logic)
    return False


def should_render(
    block: Mapping[str, Any],
    field_values: Mapping[str, Any],
    is_editor_context: bool = False,
) -> bool:
    """
    True when the block has no condition, its condition holds, or an editor
    is previewing a block flagged `showInEditor` (the default).
    """
    visibility = block.get("visibility")
    if not isinstance(visibility, Mapping):
        return True
    condition = visibility.get("condition")
    if not condition:
        return True
    if evaluate(condition, field_values):
        return True
    return is_editor_context and visibility.get("showInEditor", True) is True


def filter_visible_blocks(
    blocks: list[dict[str, Any]],
    field_values: Mapping[str, Any],
    is_editor_context: bool = False,
) -> list[dict[str, Any]]:
    return [b for b in blocks if should_render(b, field_values, is_editor_context)]


def build_field_values(blocks: list[dict[str, Any]]) -> dict[str, Scalar]:
    """
    Flattened runtime context derived from the document's pricing tables.

    Keys:
      pricing.items.<item id>.isSelected / .quantity / .total
      pricing.subtotal, pricing.total   (summed across tables)
    """
    values: dict[str, Scalar] = {}
    subtotal = 0.0
    total = 0.0

    for block in blocks:
        if block.get("type") != "pricing-table":
            continue
        for item in block.get("items") or []:
            if not isinstance(item, dict) or "id" not in item:
                continue
            prefix = f"pricing.items.{item['id']}"
            values[f"{prefix}.isSelected"] = item_is_selected(item)
            values[f"{prefix}.quantity"] = item.get("quantity", 0)
            values[f"{prefix}.total"] = round(item_total(item), 2)
        totals = pricing_totals(block)
        subtotal += totals.subtotal
        total += totals.total

    values["pricing.subtotal"] = round(subtotal, 2)
    values["pricing.total"] = round(total, 2)
    return values


def flatten_fields(mapping: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """
    Flatten a nested mapping into dot-path keys.

      {"pricing": {"total": 300}}  →  {"pricing.total": 300}
    """
    flat: dict[str, Any] = {}
    for key, value in mapping.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_fields(value, path))
        else:
            flat[path] = value
    return flat


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

_COMPARATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


def _as_mapping(node: Any) -> Mapping[str, Any] | None:
    if isinstance(node, BaseModel):
        return node.model_dump()
    if isinstance(node, Mapping):
        return node
    return None


def _evaluate_node(node: Any, field_values: Mapping[str, Any]) -> bool:
    mapping = _as_mapping(node)
    if mapping is None:
        return False
    if "logic" in mapping:
        return evaluate(mapping, field_values)
    return _evaluate_rule(mapping, field_values)


def _evaluate_rule(rule: Mapping[str, Any], field_values: Mapping[str, Any]) -> bool:
    op = rule.get("operator")
    if not isinstance(op, str) or op not in CONDITION_OPERATORS:
        logger.debug("conditions: unknown operator %r", op)
        return False

    field = rule.get("field")
    actual = field_values.get(field) if isinstance(field, str) else None
    # Absence counts as "not equal" and satisfies nothing else
    if actual is None:
        return op == "!="

    pair = _coerce(actual, rule.get("value"))
    if pair is None:
        return False
    left, right = pair
    return bool(_COMPARATORS[op](left, right))


def _kind(value: Any) -> str | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    return None


def _to_number(text: str) -> float | None:
    try:
        number = float(text.strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _to_bool(text: str) -> bool | None:
    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


def _coerce(actual: Any, expected: Any) -> tuple[Any, Any] | None:
    """
    Bring both operands to one primitive kind, or None when they can't meet.

    Numeric strings join numbers, "true"/"false" join booleans; every other
    mix is a mismatch.
    """
    kind_a, kind_b = _kind(actual), _kind(expected)
    if kind_a is None or kind_b is None:
        return None
    if kind_a == kind_b:
        return actual, expected

    kinds = {kind_a, kind_b}
    if kinds == {"number", "string"}:
        convert = _to_number
    elif kinds == {"bool", "string"}:
        convert = _to_bool
    else:
        return None

    if kind_a == "string":
        converted = convert(actual)
        return None if converted is None else (converted, expected)
    converted = convert(expected)
    return None if converted is None else (actual, converted)
