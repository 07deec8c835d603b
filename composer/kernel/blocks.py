"""
Composer Kernel — Block Registry

Per-variant defaults and validation for the block tagged union.
Blocks live in the kernel as JSON-shaped dicts; the pydantic models below
are the schema each variant is checked against, never the runtime value.

Every per-variant table in this module is keyed by block type and must
cover BLOCK_TYPES exactly.
"""

from __future__ import annotations

import uuid
from collections import Counter
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from composer.kernel.conditions import ConditionGroup
from composer.kernel.config import settings
from composer.kernel.types import BLOCK_TYPES, BlockValidationError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class _Model(BaseModel):
    # Unknown keys are kept on the dict and ignored here (forward compat)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class BlockVisibility(_Model):
    condition: ConditionGroup | None = None
    show_in_editor: bool = True


class BlockBase(_Model):
    id: str = Field(min_length=1)
    visibility: BlockVisibility | None = None
    created_at: str | None = None
    updated_at: str | None = None


class TextBlock(BlockBase):
    type: Literal["text"]
    content: str = ""
    alignment: Literal["left", "center", "right", "justify"] = "left"
    font_size: Literal["sm", "base", "lg", "xl", "2xl", "3xl"] = "base"


class HeadingBlock(BlockBase):
    type: Literal["heading"]
    content: str = ""
    level: Literal[1, 2, 3, 4, 5, 6] = 1


class ImageBlock(BlockBase):
    type: Literal["image"]
    src: str = ""
    alt: str = ""
    caption: str | None = None
    width: float | None = Field(default=None, ge=0, le=100)


class DividerBlock(BlockBase):
    type: Literal["divider"]
    style: Literal["solid", "dashed", "dotted"] = "solid"
    color: str | None = None


class SpacerBlock(BlockBase):
    type: Literal["spacer"]
    size: Literal["small", "medium", "large"] = "medium"


class SignatureBlock(BlockBase):
    type: Literal["signature"]
    signer_role: str = "Client"
    required: bool = True
    signature_type: Literal["draw", "type"] = "draw"
    signature_value: str | None = None
    signed_at: str | None = None
    signed_by: str | None = None


class PricingItem(_Model):
    id: str = Field(min_length=1)
    name: str = ""
    description: str | None = None
    quantity: float = Field(default=1, ge=0)
    unit_price: float = Field(default=0, ge=0)
    is_optional: bool = False
    is_selected: bool = True
    allow_quantity_change: bool = False


class PricingTableBlock(BlockBase):
    type: Literal["pricing-table"]
    items: list[PricingItem] = Field(default_factory=list)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    show_description: bool = True
    discount_type: Literal["percentage", "fixed"] | None = None
    discount_value: float | None = Field(default=None, ge=0)
    tax_rate: float | None = Field(default=None, ge=0)
    tax_label: str | None = None

    @model_validator(mode="after")
    def _unique_item_ids(self) -> PricingTableBlock:
        ids = [item.id for item in self.items]
        dupes = sorted(i for i, n in Counter(ids).items() if n > 1)
        if dupes:
            raise ValueError(f"duplicate pricing item ids: {', '.join(dupes)}")
        if self.discount_type == "percentage" and (self.discount_value or 0) > 100:
            raise ValueError("percentage discount cannot exceed 100")
        return self


class VideoBlock(BlockBase):
    type: Literal["video"]
    url: str = ""
    provider: Literal["youtube", "loom", "vimeo", "other"] | None = None


class DataUriBlock(BlockBase):
    type: Literal["data-uri"]
    payload: str = ""
    network: Literal["ethereum", "base", "arbitrum", "optimism", "polygon"] = "base"
    label: str | None = None
    inscription_tx_hash: str | None = None
    inscription_status: Literal["pending", "inscribed", "failed"] | None = None
    recipient_address: str | None = None


class TableBlock(BlockBase):
    type: Literal["table"]
    columns: int = Field(ge=1)
    rows: int = Field(ge=0)
    headers: list[str]
    cells: list[list[str]]
    header_background: str | None = None

    @model_validator(mode="after")
    def _dimensions_match(self) -> TableBlock:
        if len(self.headers) != self.columns:
            raise ValueError(f"expected {self.columns} headers, got {len(self.headers)}")
        if len(self.cells) != self.rows:
            raise ValueError(f"expected {self.rows} rows of cells, got {len(self.cells)}")
        for i, row in enumerate(self.cells):
            if len(row) != self.columns:
                raise ValueError(f"row {i} has {len(row)} cells, expected {self.columns}")
        return self


class PaymentBlock(BlockBase):
    type: Literal["payment"]
    amount: float = Field(default=0, ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    description: str | None = None
    required: bool = True
    timing: Literal["due_now", "net_30", "net_60"] = "due_now"
    use_pricing_table_total: bool = True
    down_payment_percent: float = Field(default=0, ge=0, le=100)
    payment_status: Literal["pending", "processing", "paid", "succeeded", "failed", "refunded"] | None = None
    payment_intent_id: str | None = None
    paid_at: str | None = None


class DateBlock(BlockBase):
    type: Literal["date"]
    required: bool = True
    value: str | None = None
    format: str | None = None


class CheckboxBlock(BlockBase):
    type: Literal["checkbox"]
    label: str = ""
    required: bool = False
    checked: bool = False


class TextInputBlock(BlockBase):
    type: Literal["text-input"]
    label: str | None = None
    placeholder: str | None = None
    required: bool = False
    value: str | None = None
    multiline: bool = False


class PageBreakBlock(BlockBase):
    type: Literal["page-break"]


Block = Annotated[
    Union[
        TextBlock,
        HeadingBlock,
        ImageBlock,
        DividerBlock,
        SpacerBlock,
        SignatureBlock,
        PricingTableBlock,
        VideoBlock,
        DataUriBlock,
        TableBlock,
        PaymentBlock,
        DateBlock,
        CheckboxBlock,
        TextInputBlock,
        PageBreakBlock,
    ],
    Field(discriminator="type"),
]

_BLOCK_ADAPTER: TypeAdapter[Any] = TypeAdapter(Block)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def _new_id() -> str:
    return str(uuid.uuid4())


def _default_pricing_table() -> dict[str, Any]:
    return {
        "items": [
            {
                "id": _new_id(),
                "name": "Item 1",
                "quantity": 1,
                "unitPrice": 0,
                "isOptional": False,
                "isSelected": True,
                "allowQuantityChange": False,
            }
        ],
        "currency": settings.DEFAULT_CURRENCY,
        "showDescription": True,
        "taxRate": 0,
        "taxLabel": "Tax",
    }


def _default_table() -> dict[str, Any]:
    return {
        "columns": 3,
        "rows": 2,
        "headers": ["Column 1", "Column 2", "Column 3"],
        "cells": [["", "", ""], ["", "", ""]],
        "headerBackground": "#f3f4f6",
    }


def _default_payment() -> dict[str, Any]:
    return {
        "amount": 0,
        "currency": settings.DEFAULT_CURRENCY,
        "description": "Payment required",
        "required": True,
        "timing": "due_now",
        "usePricingTableTotal": True,
        "downPaymentPercent": 0,  # full amount due
    }


_DEFAULT_FACTORIES: dict[str, Any] = {
    "text": lambda: {"content": "", "alignment": "left", "fontSize": "base"},
    "heading": lambda: {"content": "", "level": 1},
    "image": lambda: {"src": "", "alt": "", "caption": "", "width": 100},
    "divider": lambda: {"style": "solid"},
    "spacer": lambda: {"size": "medium"},
    "signature": lambda: {"signerRole": "Client", "required": True, "signatureType": "draw"},
    "pricing-table": _default_pricing_table,
    "video": lambda: {"url": ""},
    "data-uri": lambda: {"payload": "", "network": "base", "label": ""},
    "table": _default_table,
    "payment": _default_payment,
    "date": lambda: {"required": True, "format": "MMMM d, yyyy"},
    "checkbox": lambda: {"label": "", "required": False, "checked": False},
    "text-input": lambda: {"label": "", "placeholder": "", "required": False, "multiline": False},
    "page-break": lambda: {},
}

# Payload keys holding author text that may contain merge fields
_TEXT_FIELDS: dict[str, tuple[str, ...]] = {
    "text": ("content",),
    "heading": ("content",),
    "image": (),
    "divider": (),
    "spacer": (),
    "signature": (),
    "pricing-table": (),
    "video": (),
    "data-uri": (),
    "table": (),
    "payment": (),
    "date": (),
    "checkbox": (),
    "text-input": (),
    "page-break": (),
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def create_default(block_type: str, *, block_id: str | None = None) -> dict[str, Any]:
    """
    Build a fully populated, schema-valid block of the given type.
    Every call returns fresh ids and fresh nested containers.
    """
    factory = _DEFAULT_FACTORIES.get(block_type) if isinstance(block_type, str) else None
    if factory is None:
        raise BlockValidationError([f"Unknown block type: {block_type}"])
    return {"id": block_id or _new_id(), "type": block_type, **factory()}


def validate_block(block: Any) -> list[str]:
    """
    Check a block against its variant's invariants.
    Returns a list of error strings. Empty list = valid.
    """
    if not isinstance(block, dict):
        return ["Block must be a non-null object"]

    block_type = block.get("type")
    if not isinstance(block_type, str) or block_type not in BLOCK_TYPES:
        return [f"Unknown block type: {block_type}"]

    try:
        _BLOCK_ADAPTER.validate_python(block)
    except ValidationError as e:
        return [_format_error(block_type, err) for err in e.errors()]
    return []


def ensure_valid_block(block: Any) -> None:
    """Raise BlockValidationError if the block fails validation."""
    errors = validate_block(block)
    if errors:
        raise BlockValidationError(errors)


def validate_document(blocks: Any) -> list[str]:
    """
    Validate a whole block sequence: every block valid, ids unique.
    Errors are prefixed with the block's position.
    """
    if not isinstance(blocks, list):
        return ["Document content must be a list of blocks"]

    errors: list[str] = []
    for i, block in enumerate(blocks):
        errors.extend(f"blocks[{i}]: {err}" for err in validate_block(block))

    ids = [b["id"] for b in blocks if isinstance(b, dict) and isinstance(b.get("id"), str) and b["id"]]
    for block_id, count in Counter(ids).items():
        if count > 1:
            errors.append(f"Duplicate block id: {block_id}")
    return errors


def text_fields(block_type: str) -> tuple[str, ...]:
    """Payload keys of a variant that carry merge-field text."""
    if not isinstance(block_type, str):
        return ()
    return _TEXT_FIELDS.get(block_type, ())


def _format_error(block_type: str, err: dict[str, Any]) -> str:
    loc = list(err.get("loc", ()))
    # Discriminated unions prefix the location with the tag
    if loc and loc[0] == block_type:
        loc = loc[1:]
    where = ".".join(str(part) for part in loc)
    msg = err.get("msg", "invalid value")
    return f"{where}: {msg}" if where else msg
