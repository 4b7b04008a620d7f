# Overview: Error taxonomy for the billing engine; routes map these to 4xx responses.

"""
Billing error taxonomy.

Calculators raise these synchronously with no partial effect. Services roll
back the session before letting one escape. Messages are safe to show to the
user; internal details never go into them.
"""


class BillingError(Exception):
    """Base class for expected, user-presentable billing failures."""
    http_status = 400


class ValidationError(BillingError, ValueError):
    """400-level input problem."""


class InvalidDateRangeError(ValidationError):
    """A date falls before the storage start date (or in the future)."""


class NotFoundError(BillingError):
    http_status = 404


class OverdraftAttemptError(BillingError):
    """More bags requested than the record currently stores."""
    http_status = 409


class InsufficientStockError(BillingError):
    """A multi-record withdrawal asks for more bags than are open."""
    http_status = 409


class AllocationMismatchError(BillingError):
    """Manual allocations do not add up to the payment total."""


class InconsistentStateError(BillingError):
    """
    The record and the withdrawal ledger disagree.

    Raised instead of clamping when an inverse transition would drive a
    counter negative.
    """
    http_status = 409


class RateLimitExceededError(BillingError):
    http_status = 429


class PersistenceError(BillingError):
    http_status = 500
