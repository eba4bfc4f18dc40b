from __future__ import annotations


class LumeFairnessError(Exception):
    """Base class for errors raised by this package."""


class UnknownDecisionDetails(LumeFairnessError, TypeError):
    """Raised when decision details are not one of the known variants."""

    def __init__(self, details: object) -> None:
        super().__init__(f"Unsupported decision details type: {type(details).__name__}")
        self.details = details
