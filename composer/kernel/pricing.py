"""
Composer Kernel — Pricing arithmetic

Pure functions over pricing-table and payment block dicts.
Feeds the runtime field context for visibility rules and the amount a
payment block collects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class PricingTotals:
    subtotal: float = 0.0
    discount: float = 0.0
    tax: float = 0.0
    total: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "total": self.total,
        }


def _num(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0.0
    return float(value)


def item_is_selected(item: dict[str, Any]) -> bool:
    """Required items always count; optional items only when the recipient selected them."""
    return not item.get("isOptional", False) or bool(item.get("isSelected", False))


def item_total(item: dict[str, Any]) -> float:
    return _num(item.get("quantity")) * _num(item.get("unitPrice"))


def pricing_totals(block: dict[str, Any]) -> PricingTotals:
    """
    Totals for one pricing table.

    Discount applies to the selected-items subtotal (percentage or fixed,
    never more than the subtotal); tax applies to the discounted amount.
    """
    items = block.get("items") or []
    subtotal = sum(item_total(item) for item in items if isinstance(item, dict) and item_is_selected(item))

    discount = 0.0
    discount_value = _num(block.get("discountValue"))
    if discount_value > 0:
        if block.get("discountType") == "percentage":
            discount = subtotal * discount_value / 100
        else:
            discount = discount_value
    discount = min(discount, subtotal)

    after_discount = subtotal - discount
    tax = after_discount * _num(block.get("taxRate")) / 100

    return PricingTotals(
        subtotal=round(subtotal, 2),
        discount=round(discount, 2),
        tax=round(tax, 2),
        total=round(after_discount + tax, 2),
    )


def document_total(blocks: list[dict[str, Any]]) -> float:
    """Sum of every pricing table's total."""
    return round(sum(pricing_totals(b).total for b in blocks if b.get("type") == "pricing-table"), 2)


def payment_amount_due(payment: dict[str, Any], blocks: list[dict[str, Any]]) -> float:
    """
    Amount a payment block collects.

    With `usePricingTableTotal` the document's pricing total replaces the
    fixed amount (when the document has a pricing table at all).
    `downPaymentPercent` of 0 or 100 means the full amount.
    """
    has_pricing = any(b.get("type") == "pricing-table" for b in blocks)
    if payment.get("usePricingTableTotal") and has_pricing:
        base = document_total(blocks)
    else:
        base = _num(payment.get("amount"))

    percent = _num(payment.get("downPaymentPercent"))
    if 0 < percent < 100:
        return round(base * percent / 100, 2)
    return round(base, 2)
