"""Entry validation package."""

from autoledger.validation.validator import EntryValidator

__all__ = ["EntryValidator"]
