"""
Pricing engine tests.

Cover the re-pricing formula, totals, and the invariants callers rely on:
input order is kept, inputs are never mutated, and every repriced amount
equals quantity × rate.
"""
import itertools
import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from boq_tool.engine import (
    AdjustmentParameters,
    LineItem,
    aggregate,
    compute_original_subtotal,
    price,
    reprice,
)


@pytest.fixture
def sample_items():
    return [
        LineItem(item_code="1.1", description="Excavation", quantity=10, unit="m3", rate=5, amount=50),
        LineItem(item_code="1.2", description="Concrete", quantity=2, unit="m3", rate=100, amount=200),
    ]


@pytest.fixture
def mixed_items():
    """Items with missing, fractional, zero and negative values."""
    return [
        LineItem(description="Tiles", quantity=12.5, unit="sqm", rate=42.3, amount=528.75),
        LineItem(description="Provisional sum", quantity=1, unit="item", rate=None, amount=None),
        LineItem(description="Credit", quantity=-3, unit="nos", rate=7.1, amount=-21.3),
        LineItem(description="Free issue", quantity=0, unit="nos", rate=0, amount=0),
    ]


def test_concrete_scenario(sample_items):
    """Margin 10% + freight 5% with 5% VAT."""
    params = AdjustmentParameters(net_margin_pct=10, freight_pct=5, vat_rate=0.05)
    assert params.cost_increase_factor == pytest.approx(1.15)

    result = price(sample_items, params)

    first, second = result.items
    assert first.rate == pytest.approx(5.75)
    assert first.quantity == 10
    assert first.amount == pytest.approx(57.5)
    assert second.rate == pytest.approx(115)
    assert second.quantity == 2
    assert second.amount == pytest.approx(230)

    assert result.subtotal_original == 250
    assert result.subtotal_final == pytest.approx(287.5)
    assert result.vat_amount == pytest.approx(14.375)
    assert result.grand_total == pytest.approx(301.875)


def test_empty_input():
    """No items -> all totals zero."""
    params = AdjustmentParameters(net_margin_pct=25, quantity_upscale=2, vat_rate=0.15)
    result = price([], params)

    assert result.items == []
    assert result.subtotal_original == 0
    assert result.subtotal_final == 0
    assert result.vat_amount == 0
    assert result.grand_total == 0


def test_original_subtotal_is_order_independent(mixed_items):
    """Missing amounts count as zero, and permutations give the same sum."""
    expected = 528.75 + 0 - 21.3 + 0
    for perm in itertools.permutations(mixed_items):
        assert compute_original_subtotal(perm) == pytest.approx(expected)


def test_reprice_amount_equals_quantity_times_rate(mixed_items):
    params = AdjustmentParameters(net_margin_pct=12, freight_pct=3.5, customs_pct=2,
                                  installation_pct=7, quantity_upscale=0.25)
    priced = reprice(mixed_items, params)

    assert len(priced) == len(mixed_items)
    for item in priced:
        assert item.amount == pytest.approx(item.quantity * item.rate, rel=1e-9, abs=1e-12)


def test_reprice_keeps_order_and_descriptive_fields(mixed_items):
    priced = reprice(mixed_items, AdjustmentParameters(net_margin_pct=5))

    for original, new in zip(mixed_items, priced):
        assert new.description == original.description
        assert new.unit == original.unit
        assert new.item_code == original.item_code
        assert new.image_ref == original.image_ref


def test_identity_adjustment_returns_original_numbers(sample_items):
    priced = reprice(sample_items, AdjustmentParameters.identity())

    for original, new in zip(sample_items, priced):
        assert new.quantity == original.quantity
        assert new.rate == original.rate
        assert new.amount == original.amount


def test_missing_rate_prices_as_zero():
    item = LineItem(description="Lump sum", quantity=4, unit="ls", rate=None, amount=None)
    priced = reprice([item], AdjustmentParameters(net_margin_pct=50, quantity_upscale=1))[0]

    assert priced.rate == 0
    assert priced.amount == 0
    assert priced.quantity == 8


def test_negative_upscale_passes_through():
    """Downscaling below zero quantity is not rejected."""
    item = LineItem(description="Pipe", quantity=3, unit="m", rate=10, amount=30)
    priced = reprice([item], AdjustmentParameters(quantity_upscale=-2))[0]

    assert priced.quantity == -3
    assert priced.amount == -30


def test_aggregate_grand_total(sample_items):
    priced = reprice(sample_items, AdjustmentParameters(installation_pct=20))
    totals = aggregate(priced, 0.15)

    assert totals.subtotal_final == pytest.approx(sum(i.amount for i in priced))
    assert totals.vat_amount == pytest.approx(totals.subtotal_final * 0.15)
    # the engine adds subtotal + vat, which can differ from subtotal * 1.15 by an ulp
    assert totals.grand_total == pytest.approx(totals.subtotal_final * 1.15)
    assert totals.grand_total == totals.subtotal_final + totals.vat_amount


def test_price_is_idempotent(mixed_items):
    params = AdjustmentParameters(net_margin_pct=8, customs_pct=1.5, quantity_upscale=3, vat_rate=0.05)

    first = price(mixed_items, params)
    second = price(mixed_items, params)

    assert first.items == second.items
    assert first.to_dict() == second.to_dict()


def test_inputs_are_not_mutated(sample_items):
    snapshot = list(sample_items)
    price(sample_items, AdjustmentParameters(net_margin_pct=30, quantity_upscale=1, vat_rate=0.05))
    assert sample_items == snapshot
    assert sample_items[0].rate == 5
    assert sample_items[0].amount == 50


def test_raw_amount_is_not_corrected():
    """Extracted amounts that disagree with quantity × rate are summed as given."""
    item = LineItem(description="Odd line", quantity=3, unit="nos", rate=10, amount=25)
    result = price([item], AdjustmentParameters.identity())

    assert result.subtotal_original == 25
    assert result.subtotal_final == 30


def test_trace_records_factor_and_totals(sample_items):
    result = price(sample_items, AdjustmentParameters(net_margin_pct=10, freight_pct=5, vat_rate=0.05))
    steps = {t.step: t.value for t in result.trace}

    assert steps["Items"] == "2"
    assert steps["Cost Factor"] == "1.15"
    assert steps["Original Subtotal"] == "250.00"
    assert "Grand Total" in result.get_trace_text()
