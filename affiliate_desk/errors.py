"""Domain errors raised by the handler layer."""
from __future__ import annotations


class AffiliateDeskError(Exception):
    """Base class for errors the API reports back to the caller."""


class NotFoundError(AffiliateDeskError, LookupError):
    """A referenced row does not exist."""


class BusinessRuleError(AffiliateDeskError, ValueError):
    """The request conflicts with current data (status guards, balances, uniqueness)."""
