"""
Pricing Engine - deterministic re-pricing of extracted BOQ line items.

Every function here is pure: no I/O, no shared state, inputs are never
mutated. A pricing run is a full recomputation:

1. Sum the source document's own amounts (original subtotal)
2. Scale each rate by the cost increase factor (margin + freight + customs + installation)
3. Scale each quantity by the quantity multiplier (1 + upscale)
4. Recompute each amount as quantity × rate
5. Sum, apply VAT once, add it to get the grand total

Rounding happens only at presentation time, in the export adapters.
"""
import logging
from typing import Iterable, Sequence

from .models import (
    LineItem,
    PricedLineItem,
    AdjustmentParameters,
    AggregateTotals,
    PricingResult,
)

logger = logging.getLogger("boq-tool")


def compute_original_subtotal(items: Iterable[LineItem]) -> float:
    """Sum of the extracted amounts, treating a missing amount as 0."""
    total = 0.0
    for item in items:
        total += item.amount or 0.0
    return total


def reprice(items: Iterable[LineItem], params: AdjustmentParameters) -> list[PricedLineItem]:
    """
    Apply the adjustment parameters to every item independently.

    Returns a new list in input order; each output amount is exactly
    quantity * rate of the same output item.
    """
    factor = params.cost_increase_factor
    multiplier = params.quantity_multiplier

    priced = []
    for item in items:
        new_rate = (item.rate or 0.0) * factor
        new_quantity = item.quantity * multiplier
        priced.append(PricedLineItem(
            item_code=item.item_code,
            description=item.description,
            quantity=new_quantity,
            unit=item.unit,
            rate=new_rate,
            amount=new_quantity * new_rate,
            image_ref=item.image_ref,
        ))
    return priced


def aggregate(priced_items: Iterable[PricedLineItem], vat_rate: float) -> AggregateTotals:
    """Subtotal, VAT and grand total over priced items."""
    subtotal_final = 0.0
    for item in priced_items:
        subtotal_final += item.amount
    vat_amount = subtotal_final * vat_rate
    return AggregateTotals(
        subtotal_final=subtotal_final,
        vat_amount=vat_amount,
        grand_total=subtotal_final + vat_amount,
    )


def price(items: Sequence[LineItem], params: AdjustmentParameters) -> PricingResult:
    """
    Price a BOQ with full traceability.

    Args:
        items: Extracted line items, in document order
        params: Adjustment parameters including the VAT rate

    Returns:
        PricingResult with repriced items, totals and trace
    """
    items = list(items)
    priced = reprice(items, params)
    totals = aggregate(priced, params.vat_rate)

    result = PricingResult(
        items=priced,
        subtotal_original=compute_original_subtotal(items),
        subtotal_final=totals.subtotal_final,
        vat_amount=totals.vat_amount,
        grand_total=totals.grand_total,
        vat_rate=params.vat_rate,
    )

    result.add_trace("Items", "Line items priced", str(len(priced)))
    result.add_trace(
        "Cost Factor",
        f"1 + ({params.net_margin_pct:g} + {params.freight_pct:g} + "
        f"{params.customs_pct:g} + {params.installation_pct:g}) / 100",
        f"{params.cost_increase_factor:g}",
    )
    result.add_trace("Quantity Multiplier", f"1 + {params.quantity_upscale:g}", f"{params.quantity_multiplier:g}")
    result.add_trace("Original Subtotal", "Sum of extracted amounts", f"{result.subtotal_original:.2f}")
    result.add_trace("Final Subtotal", "Sum of repriced amounts", f"{result.subtotal_final:.2f}")
    result.add_trace("VAT", f"{params.vat_rate * 100:g}% of final subtotal", f"{result.vat_amount:.2f}")
    result.add_trace("Grand Total", "Final subtotal + VAT", f"{result.grand_total:.2f}")

    logger.debug(f"Priced {len(priced)} items, grand total {result.grand_total:.2f}")
    return result
