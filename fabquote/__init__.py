"""
Fabricated-metal quoting core.

Pure Python math. No storage, no accounts.
Given a BOM and explicit price tables, lay blanks onto stock sheets,
turn geometry into kg and money, and return a price that never falls
below the configured minimum margin.
"""

from .exceptions import FabQuoteError, PlacementError, QuoteValidationError
from .nesting import Nester
from .pricing_engine import PricingEngine, minimum_safe_price, quote_input_hash, suggested_price
from .validation import validate, validate_blanks

__all__ = [
    "FabQuoteError",
    "PlacementError",
    "QuoteValidationError",
    "Nester",
    "PricingEngine",
    "minimum_safe_price",
    "quote_input_hash",
    "suggested_price",
    "validate",
    "validate_blanks",
]
