"""
Error hierarchy for the pricing core.

Validation problems are normally returned as a list (see validation.py);
QuoteValidationError only wraps that list for callers that ask the engine
to build a quote from data that never passed the gate.

PlacementError is kept apart from validation: valid price data can
still describe a job with no physical layout (a blank larger than every
catalog sheet).
"""

from .models import UNPLACED_PARTS, NO_SHEETS


class FabQuoteError(Exception):
    """Base for every error raised by fabquote."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} | Details: {self.details}"
        return f"[{self.code}] {self.message}"


class QuoteValidationError(FabQuoteError):
    """The validation gate rejected the request. Do not price."""

    def __init__(self, issues: list):
        self.issues = list(issues)
        super().__init__(
            f"{len(self.issues)} validation error(s); quote blocked",
            code="VALIDATION_FAILED",
            details={"fields": [issue.field for issue in self.issues]},
        )


class PlacementError(FabQuoteError):
    """No physical layout exists for the requested stock and quantities."""

    def __init__(self, code: str, message: str, unplaced: list = None):
        self.unplaced = list(unplaced or [])
        super().__init__(message, code=code, details={"unplaced": self.unplaced})

    @classmethod
    def unplaced_parts(cls, unplaced: list, where: str = "") -> "PlacementError":
        suffix = f" {where}" if where else ""
        return cls(
            UNPLACED_PARTS,
            f"{len(unplaced)} blank(s) could not be placed{suffix}",
            unplaced,
        )

    @classmethod
    def no_sheets(cls) -> "PlacementError":
        return cls(NO_SHEETS, "No stock sheets available for placement")
