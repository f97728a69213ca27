"""Exception taxonomy shared by the pricing, trading and settlement paths.

Every error carries a machine-readable ``code`` so the API and CLI can report
failures consistently. ``retryable`` marks system failures where the caller
may safely try the same request again.
"""

from __future__ import annotations


class PoolMarketError(Exception):
    """Base class for all poolmarket errors."""

    code = "error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(PoolMarketError):
    """Request is structurally invalid; nothing was mutated."""

    code = "invalid_input"


class UnknownOptionError(InvalidInputError):
    code = "unknown_option"


class InsufficientBalanceError(InvalidInputError):
    code = "insufficient_balance"


class NotFoundError(PoolMarketError):
    code = "not_found"


class StateConflictError(PoolMarketError):
    """Request conflicts with the current market or entry state."""

    code = "state_conflict"


class MarketAlreadyResolvedError(StateConflictError):
    code = "already_resolved"


class MarketNotOpenError(StateConflictError):
    code = "market_not_open"


class DuplicateEntryError(StateConflictError):
    code = "duplicate_entry"


class WriteConflictError(StateConflictError):
    """A concurrent transaction changed the same rows first. Nothing was applied; safe to retry."""

    code = "write_conflict"
    retryable = True


class AuthorizationError(PoolMarketError):
    code = "forbidden"


class SettlementError(PoolMarketError):
    """Storage failure while applying settlement mutations. Safe to retry."""

    code = "settlement_failed"
    retryable = True
