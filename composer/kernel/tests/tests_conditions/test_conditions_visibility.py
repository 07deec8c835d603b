"""
Conditional Visibility — Block rendering and pricing-derived fields
"""

from composer.kernel.blocks import create_default
from composer.kernel.conditions import build_field_values, filter_visible_blocks, should_render


def _conditional(block_id, condition, show_in_editor=None):
    block = create_default("text", block_id=block_id)
    block["visibility"] = {"condition": condition}
    if show_in_editor is not None:
        block["visibility"]["showInEditor"] = show_in_editor
    return block


BIG_DEAL = {"logic": "AND", "rules": [{"field": "pricing.total", "operator": ">", "value": 1000}]}


# ============================================================================
# should_render / filter_visible_blocks
# ============================================================================


class TestShouldRender:
    def test_no_visibility(self):
        assert should_render(create_default("text"), {}) is True

    def test_empty_visibility(self):
        block = create_default("text")
        block["visibility"] = {}
        assert should_render(block, {}) is True

    def test_non_mapping_visibility_is_unconditional(self):
        for visibility in ("hidden", ["condition"], 3):
            block = create_default("text")
            block["visibility"] = visibility
            assert should_render(block, {}) is True
            assert should_render(block, {}, is_editor_context=True) is True

    def test_malformed_condition_hides_for_recipient(self):
        block = create_default("text")
        block["visibility"] = {"condition": {"logic": "AND", "rules": 5}, "showInEditor": False}
        assert should_render(block, {}) is False

    def test_condition_met(self):
        assert should_render(_conditional("a", BIG_DEAL), {"pricing.total": 5000}) is True

    def test_condition_not_met(self):
        assert should_render(_conditional("a", BIG_DEAL), {"pricing.total": 10}) is False

    def test_editor_shows_by_default(self):
        block = _conditional("a", BIG_DEAL)
        assert should_render(block, {}, is_editor_context=True) is True

    def test_editor_respects_show_in_editor_false(self):
        block = _conditional("a", BIG_DEAL, show_in_editor=False)
        assert should_render(block, {}, is_editor_context=True) is False

    def test_recipient_view_ignores_show_in_editor(self):
        block = _conditional("a", BIG_DEAL, show_in_editor=True)
        assert should_render(block, {}) is False


class TestFilterVisibleBlocks:
    def test_keeps_order(self, make_text):
        blocks = [make_text("a"), _conditional("b", BIG_DEAL), make_text("c")]
        visible = filter_visible_blocks(blocks, {"pricing.total": 0})
        assert [b["id"] for b in visible] == ["a", "c"]

    def test_editor_context(self, make_text):
        blocks = [make_text("a"), _conditional("b", BIG_DEAL)]
        visible = filter_visible_blocks(blocks, {}, is_editor_context=True)
        assert [b["id"] for b in visible] == ["a", "b"]


# ============================================================================
# build_field_values
# ============================================================================


class TestBuildFieldValues:
    def _pricing(self, block_id, items, **extra):
        block = create_default("pricing-table", block_id=block_id)
        block["items"] = items
        block.update(extra)
        return block

    def test_no_pricing_tables(self, make_text):
        assert build_field_values([make_text("a")]) == {"pricing.subtotal": 0, "pricing.total": 0}

    def test_item_fields(self):
        block = self._pricing(
            "pt",
            [
                {"id": "i1", "name": "Design", "quantity": 2, "unitPrice": 150},
                {"id": "i2", "name": "Hosting", "quantity": 1, "unitPrice": 40, "isOptional": True},
            ],
        )
        values = build_field_values([block])
        assert values["pricing.items.i1.isSelected"] is True
        assert values["pricing.items.i1.quantity"] == 2
        assert values["pricing.items.i1.total"] == 300
        assert values["pricing.items.i2.isSelected"] is False
        assert values["pricing.subtotal"] == 300
        assert values["pricing.total"] == 300

    def test_selected_optional_item_counts(self):
        block = self._pricing(
            "pt",
            [
                {"id": "i1", "quantity": 1, "unitPrice": 100},
                {"id": "i2", "quantity": 1, "unitPrice": 50, "isOptional": True, "isSelected": True},
            ],
        )
        assert build_field_values([block])["pricing.total"] == 150

    def test_totals_summed_across_tables(self):
        a = self._pricing("a", [{"id": "i1", "quantity": 1, "unitPrice": 100}])
        b = self._pricing("b", [{"id": "i2", "quantity": 3, "unitPrice": 10}])
        values = build_field_values([a, b])
        assert values["pricing.subtotal"] == 130
        assert values["pricing.total"] == 130

    def test_discount_and_tax_feed_total(self):
        block = self._pricing(
            "pt",
            [{"id": "i1", "quantity": 1, "unitPrice": 200}],
            discountType="percentage",
            discountValue=10,
            taxRate=5,
        )
        values = build_field_values([block])
        assert values["pricing.subtotal"] == 200
        assert values["pricing.total"] == 189

    def test_field_values_drive_visibility(self):
        block = self._pricing("pt", [{"id": "i1", "quantity": 3, "unitPrice": 500}])
        gated = _conditional("gated", BIG_DEAL)
        visible = filter_visible_blocks([block, gated], build_field_values([block]))
        assert [b["id"] for b in visible] == ["pt", "gated"]
