"""Engine subpackage - BOQ data model and pricing logic."""
from .pricing_engine import compute_original_subtotal, reprice, aggregate, price
from .models import (
    LineItem,
    PricedLineItem,
    AdjustmentParameters,
    PricingResult,
    ProjectDetails,
    InvalidLineItemError,
    InvalidParametersError,
)

__all__ = [
    'compute_original_subtotal', 'reprice', 'aggregate', 'price',
    'LineItem', 'PricedLineItem', 'AdjustmentParameters', 'PricingResult',
    'ProjectDetails', 'InvalidLineItemError', 'InvalidParametersError',
]
