"""
Data models for the BOQ pricing engine.

Uses dataclasses for structured, type-safe data representation.
Line items and adjustment parameters validate their numeric fields on
construction so the pricing arithmetic never has to.
"""
import math
import re
from dataclasses import dataclass, field, asdict
from typing import Optional, Any


MISSING_ZERO = "zero"
MISSING_OMIT = "omit"
MISSING_POLICIES = (MISSING_ZERO, MISSING_OMIT)


class InvalidLineItemError(ValueError):
    """Raised when a line item field has the wrong type or a non-finite value."""


class InvalidParametersError(ValueError):
    """Raised when adjustment parameters are not finite numbers."""


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid quantity or price
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_number(value: Any, name: str, error_cls: type, optional: bool = False):
    if value is None and optional:
        return None
    if not _is_number(value):
        raise error_cls(f"{name} must be a number, got {type(value).__name__} ({value!r})")
    if not math.isfinite(value):
        raise error_cls(f"{name} must be finite, got {value!r}")
    return float(value)


@dataclass
class TraceStep:
    """A single step in the pricing trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass(frozen=True)
class LineItem:
    """One BOQ row as extracted from the source document."""
    description: str
    quantity: float
    unit: str
    rate: Optional[float] = 0.0
    amount: Optional[float] = 0.0
    item_code: Optional[str] = None
    image_ref: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.description, str):
            raise InvalidLineItemError(
                f"description must be a string, got {type(self.description).__name__}"
            )
        if not isinstance(self.unit, str):
            raise InvalidLineItemError(f"unit must be a string, got {type(self.unit).__name__}")
        for name in ('item_code', 'image_ref'):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise InvalidLineItemError(f"{name} must be a string, got {type(value).__name__}")

        # frozen: normalise ints to floats through object.__setattr__
        object.__setattr__(self, 'quantity', _check_number(self.quantity, 'quantity', InvalidLineItemError))
        object.__setattr__(self, 'rate', _check_number(self.rate, 'rate', InvalidLineItemError, optional=True))
        object.__setattr__(self, 'amount', _check_number(self.amount, 'amount', InvalidLineItemError, optional=True))

    @classmethod
    def from_dict(cls, data: dict, missing_policy: str = MISSING_ZERO) -> 'LineItem':
        """
        Build a line item from a camelCase or snake_case mapping.

        Under the "zero" policy an absent rate/amount becomes 0, under
        "omit" it stays None.
        """
        if missing_policy not in MISSING_POLICIES:
            raise ValueError(f"Unknown missing value policy: {missing_policy!r}")

        def pick(*keys):
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return None

        rate = pick('rate')
        amount = pick('amount')
        if missing_policy == MISSING_ZERO:
            rate = 0.0 if rate is None else rate
            amount = 0.0 if amount is None else amount

        return cls(
            item_code=pick('itemCode', 'item_code'),
            description=pick('description'),
            quantity=pick('quantity'),
            unit=pick('unit'),
            rate=rate,
            amount=amount,
            image_ref=pick('imageRef', 'imageUrl', 'image_ref'),
        )


@dataclass(frozen=True)
class PricedLineItem:
    """A line item after re-pricing. amount always equals quantity * rate."""
    description: str
    quantity: float
    unit: str
    rate: float
    amount: float
    item_code: Optional[str] = None
    image_ref: Optional[str] = None


@dataclass(frozen=True)
class AdjustmentParameters:
    """User-supplied adjustments for a single pricing run."""
    net_margin_pct: float = 0.0
    freight_pct: float = 0.0
    customs_pct: float = 0.0
    installation_pct: float = 0.0
    quantity_upscale: float = 0.0
    vat_rate: float = 0.0

    def __post_init__(self):
        for name in ('net_margin_pct', 'freight_pct', 'customs_pct',
                     'installation_pct', 'quantity_upscale', 'vat_rate'):
            value = _check_number(getattr(self, name), name, InvalidParametersError)
            object.__setattr__(self, name, value)

    @classmethod
    def identity(cls, vat_rate: float = 0.0) -> 'AdjustmentParameters':
        """Parameters that leave quantity, rate and amount unchanged."""
        return cls(vat_rate=vat_rate)

    @property
    def cost_increase_factor(self) -> float:
        total_pct = self.net_margin_pct + self.freight_pct + self.customs_pct + self.installation_pct
        return 1 + total_pct / 100

    @property
    def quantity_multiplier(self) -> float:
        return 1 + self.quantity_upscale


@dataclass(frozen=True)
class AggregateTotals:
    """Totals over a priced item set."""
    subtotal_final: float
    vat_amount: float
    grand_total: float


@dataclass
class PricingResult:
    """Complete result of a pricing run."""
    items: list[PricedLineItem]
    subtotal_original: float
    subtotal_final: float
    vat_amount: float
    grand_total: float
    vat_rate: float
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the result trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"• {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"• {t.step}: {t.description}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Convert to a JSON-ready dict."""
        return asdict(self)


@dataclass
class ProjectDetails:
    """Header details printed on exported BOQs."""
    project_name: str = ""
    contact_person: str = ""
    company_name: str = ""
    contact_number: str = ""

    def file_stem(self) -> str:
        """Download file name stem, e.g. "Tower_A_BOQ" or "Final_BOQ"."""
        name = self.project_name.strip()
        if not name:
            return "Final_BOQ"
        stem = re.sub(r'\s+', '_', name)
        return f"{stem}_BOQ"

    def as_rows(self) -> list[tuple[str, str]]:
        return [
            ("Project Name", self.project_name),
            ("Contact Person", self.contact_person),
            ("Company Name", self.company_name),
            ("Contact Number", self.contact_number),
        ]
