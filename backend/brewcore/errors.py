# Overview: Domain error taxonomy shared by services, routes and the CLI.

"""
brewcore error taxonomy (authoritative)

- NotFoundError: item/batch/lot/tank absent or owned by another tenant.
  Safe to report verbatim; never reveals that a row exists elsewhere.
- InvalidStateError: operation attempted against a batch/lot/entry that is
  not in the required precondition state.
- InsufficientStockError: a deduction would drive a cached balance below zero.
  Carries the balance observed inside the transaction and the requested amount.
- ValidationError: malformed quantity, unknown enum variant, missing field.
- PersistenceFailure: the transaction could not commit. Nothing was applied;
  the caller may retry the whole operation.

All of these are raised after the surrounding transaction has been rolled back,
so no error category can leave the ledger and the balance cache out of step.
"""

from __future__ import annotations

from decimal import Decimal


def _plain(value) -> str:
    return format(Decimal(value).normalize(), "f")


class BrewCoreError(Exception):
    """Base class for every error the core reports to its callers."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class NotFoundError(BrewCoreError):
    status_code = 404


class InvalidStateError(BrewCoreError):
    status_code = 409


class ValidationError(BrewCoreError, ValueError):
    """400-level input problem."""

    status_code = 400


class InsufficientStockError(BrewCoreError):
    status_code = 409

    def __init__(self, *, item_id: int, current_balance: Decimal, requested: Decimal):
        super().__init__(
            f"Insufficient stock for item {item_id}: "
            f"balance {_plain(current_balance)}, requested {_plain(requested)}"
        )
        self.item_id = item_id
        self.current_balance = current_balance
        self.requested = requested

    def to_dict(self) -> dict:
        return {
            "error": "Insufficient stock",
            "item_id": self.item_id,
            "current_balance": _plain(self.current_balance),
            "requested": _plain(self.requested),
        }


class PersistenceFailure(BrewCoreError):
    """Transaction could not commit; nothing was applied, safe to retry."""

    status_code = 503


class TransitionFailure(PersistenceFailure):
    """A production transition could not be committed as a whole."""
