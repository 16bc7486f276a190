"""
Row-set formatting shared by every export format.

Numbers are formatted here, at render time, and nowhere earlier.
"""
from ..engine.models import PricingResult

COLUMNS = ['serial', 'itemCode', 'description', 'quantity', 'unit', 'rate', 'amount']

COLUMN_LABELS = {
    'serial': 'Sn',
    'itemCode': 'Item',
    'description': 'Description',
    'quantity': 'Quantity',
    'unit': 'Unit',
    'rate': 'Rate',
    'amount': 'Amount',
}


def format_money(value: float) -> str:
    """Two decimal places, no thousands separator: 1234.5 -> "1234.50"."""
    return f"{value:.2f}"


def format_quantity(value: float) -> str:
    """Whole quantities without a trailing .0, others at full precision."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_percent(rate: float) -> str:
    """VAT rate as a compact percentage: 0.05 -> "5", 0.075 -> "7.5"."""
    return f"{round(rate * 100, 10):g}"


def vat_label(rate: float) -> str:
    return f"VAT ({format_percent(rate)}%)"


def build_rows(result: PricingResult) -> list[dict]:
    """
    Finalized row set for a priced BOQ.

    Each row is keyed by COLUMNS; serial is 1-based, rate and amount are
    strings with exactly two decimals.
    """
    rows = []
    for index, item in enumerate(result.items, start=1):
        rows.append({
            'serial': index,
            'itemCode': item.item_code or '',
            'description': item.description,
            'quantity': format_quantity(item.quantity),
            'unit': item.unit,
            'rate': format_money(item.rate),
            'amount': format_money(item.amount),
        })
    return rows


def build_summary_rows(result: PricingResult) -> list[tuple[str, str]]:
    """Subtotal / VAT / Grand Total as (label, formatted value) pairs."""
    return [
        ('Subtotal', format_money(result.subtotal_final)),
        (vat_label(result.vat_rate), format_money(result.vat_amount)),
        ('Grand Total', format_money(result.grand_total)),
    ]


def labelled(rows: list[dict]) -> list[dict]:
    """Re-key rows by their display labels (Sn, Item, ...)."""
    return [{COLUMN_LABELS[key]: row[key] for key in COLUMNS} for row in rows]
