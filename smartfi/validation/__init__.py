"""Boundary validation for user drafts."""

from smartfi.validation.validator import LedgerValidationError, LedgerValidator

__all__ = ["LedgerValidationError", "LedgerValidator"]
