"""
Composer Kernel — Merge Fields

Pure function: (text, custom values, context) → text
Resolves {{token}} placeholders. Caller-supplied custom values win, then
the built-in catalogue resolved from the context, then a visible
`[token]` placeholder so a broken merge field is never silently blanked.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from composer.kernel.blocks import text_fields

logger = logging.getLogger(__name__)

# {{name}} or {{namespace.name}}, optional inner whitespace
VARIABLE_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)\s*\}\}")

CUSTOM_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass(frozen=True)
class BuiltInVariable:
    name: str
    description: str
    category: str


BUILT_IN_VARIABLES: tuple[BuiltInVariable, ...] = (
    BuiltInVariable("recipient.name", "Recipient name", "Recipient"),
    BuiltInVariable("recipient.email", "Recipient email", "Recipient"),
    BuiltInVariable("sender.name", "Your name", "Sender"),
    BuiltInVariable("sender.email", "Your email", "Sender"),
    BuiltInVariable("sender.company", "Your company name", "Sender"),
    BuiltInVariable("document.title", "Document title", "Document"),
    BuiltInVariable("date.today", "Today's date", "Date"),
    BuiltInVariable("date.expiry", "Document expiry date", "Date"),
)

_BUILT_IN_NAMES: frozenset[str] = frozenset(v.name for v in BUILT_IN_VARIABLES)


@dataclass
class VariableClassification:
    built_in: list[str] = field(default_factory=list)
    custom: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {"builtIn": self.built_in, "custom": self.custom}


class CustomVariable(BaseModel):
    """A document-level merge field with its fallback value."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = Field(min_length=1)
    default_value: str = ""
    description: str | None = None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def interpolate(
    text: str,
    custom_values: Mapping[str, Any] | None = None,
    context: Mapping[str, Any] | None = None,
) -> str:
    """
    Replace every merge field in `text`.

    Examples:
      interpolate("Hello {{recipient.name}}", {}, {"recipient": {"name": "Ana"}})  → "Hello Ana"
      interpolate("Hello {{recipient.name}}")                                     → "Hello [recipient.name]"
    """
    custom_values = custom_values or {}
    context = context or {}

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)

        value = custom_values.get(name)
        if value is not None:
            return _stringify(value)

        built_in = _built_in_value(name, context)
        if built_in is not None:
            return built_in

        logger.debug("variables: unresolved merge field %s", name)
        return f"[{name}]"

    return VARIABLE_PATTERN.sub(_replace, text)


def extract_variables(text: str) -> set[str]:
    """All merge-field names used in `text`."""
    return {m.group(1) for m in VARIABLE_PATTERN.finditer(text)}


def is_built_in_variable(name: str) -> bool:
    return name in _BUILT_IN_NAMES


def classify(names: Iterable[str]) -> VariableClassification:
    """Partition names by membership in the built-in catalogue (sorted, de-duplicated)."""
    result = VariableClassification()
    for name in sorted(set(names)):
        if is_built_in_variable(name):
            result.built_in.append(name)
        else:
            result.custom.append(name)
    return result


def interpolate_document(
    blocks: list[dict[str, Any]],
    custom_values: Mapping[str, Any] | None = None,
    context: Mapping[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """
    Interpolate every text-bearing block.
    Returns a new list; blocks without merge fields are passed through untouched.
    """
    result: list[dict[str, Any]] = []
    for block in blocks:
        keys = [
            key
            for key in text_fields(block.get("type", ""))
            if isinstance(block.get(key), str) and "{{" in block[key]
        ]
        if not keys:
            result.append(block)
            continue
        rewritten = copy.deepcopy(block)
        for key in keys:
            rewritten[key] = interpolate(block[key], custom_values, context)
        result.append(rewritten)
    return result


def document_variables(blocks: list[dict[str, Any]]) -> VariableClassification:
    """Every merge field the document's text uses, split into built-in and custom."""
    names: set[str] = set()
    for block in blocks:
        for key in text_fields(block.get("type", "")):
            value = block.get(key)
            if isinstance(value, str):
                names |= extract_variables(value)
    return classify(names)


def validate_custom_variables(variables: Iterable[CustomVariable | Mapping[str, Any]]) -> list[str]:
    """
    Names are alphanumeric + underscore and unique ignoring case.
    Returns a list of error strings. Empty list = valid.
    """
    errors: list[str] = []
    seen: set[str] = set()
    for var in variables:
        name = var.name if isinstance(var, CustomVariable) else var.get("name")
        if not isinstance(name, str) or not name:
            errors.append("Variable name is required")
            continue
        if not CUSTOM_NAME_PATTERN.match(name):
            errors.append(f"Invalid variable name: {name} (letters, numbers and underscores only)")
        folded = name.lower()
        if folded in seen:
            errors.append(f"A variable with this name already exists: {name}")
        seen.add(folded)
    return errors


def default_values(variables: Iterable[CustomVariable]) -> dict[str, str]:
    """The name → default value map persisted as a document's `variables`."""
    return {v.name: v.default_value for v in variables}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _lookup(context: Mapping[str, Any], namespace: str, key: str) -> Any:
    section = context.get(namespace)
    if not isinstance(section, Mapping):
        return None
    return section.get(key)


def _built_in_value(name: str, context: Mapping[str, Any]) -> str | None:
    if name not in _BUILT_IN_NAMES:
        return None

    if name == "date.today":
        today = _lookup(context, "date", "today") or date.today()
        return format_date(today)
    if name == "date.expiry":
        expires = _lookup(context, "document", "expiresAt")
        return format_date(expires) if expires else None

    namespace, key = name.split(".", 1)
    value = _lookup(context, namespace, key)
    return None if value is None else _stringify(value)


def format_date(value: date | datetime | str) -> str | None:
    """Long US date ("October 18, 2026"). None when the value isn't a date."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, date):
        return None
    return f"{value.strftime('%B')} {value.day}, {value.year}"
