"""
Domain errors.

Actions convert all of these (except TenantScopeError) into an ActionResult;
read handlers rely on the exception handlers registered in ``main.py``.
"""
from typing import Dict, List, Optional


class StockLedgerError(Exception):
    """Base class for errors the API knows how to present."""

    message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class AuthenticationRequired(StockLedgerError):
    message = "Not authenticated"


class AuthorizationDenied(StockLedgerError):
    message = "Access denied"


class NotFound(StockLedgerError):
    message = "Not found"

    def __init__(self, entity: str = "Record", message: Optional[str] = None):
        self.entity = entity
        super().__init__(message or f"{entity} not found or access denied.")


class ValidationFailure(StockLedgerError):
    message = "Validation failed. Please check the form for errors."

    def __init__(self, errors: Dict[str, List[str]], message: Optional[str] = None):
        self.errors = errors
        super().__init__(message)


class DataAccessError(StockLedgerError):
    """The store failed (connection, constraint, query)."""

    message = "Data access failed"

    def __init__(self, message: Optional[str] = None, constraint: Optional[str] = None):
        self.constraint = constraint
        super().__init__(message)


class TenantScopeError(RuntimeError):
    """A gateway call was made without a tenant id. Always a bug."""
