# Overview: Pure state transitions of a storage record for outflow, reversal and edit.

"""
Record Impact Calculators

WHY: Every change to a record's bag counters and billed rent goes through
one of three transitions, so the record invariants are enforced in one place:

- bags_stored + bags_out == bags_in
- storage_end_date is set exactly when bags_stored == 0
- billed totals never go negative

DESIGN PRINCIPLES:
- Pure: inputs are the current record state and ledger amounts; output is a
  dict of column updates plus a closure flag. Nothing is written here.
- Fail, never clamp: a transition that would break an invariant raises and
  leaves the caller's state untouched.
- Reversal/edit amounts come from the withdrawal ledger row, never from a
  fresh rent computation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from ..errors import (
    InconsistentStateError,
    InvalidDateRangeError,
    OverdraftAttemptError,
    ValidationError,
)


@dataclass(frozen=True)
class RecordImpact:
    updates: dict
    is_closed: bool


@dataclass(frozen=True)
class WithdrawalAmounts:
    """Bags and billed amounts of one withdrawal (old or new side of an edit)."""
    bags: int
    rent_paise: int
    hamali_paise: int = 0
    withdrawal_date: Optional[date] = None


def apply_impact(record, impact: RecordImpact) -> None:
    """Copy an impact's updates onto a record (caller owns the transaction)."""
    for key, value in impact.updates.items():
        setattr(record, key, value)


# =============================================================================
# OUTFLOW
# =============================================================================

def calculate_outflow_impact(
    record,
    bags_withdrawn: int,
    rent_paise: int,
    effective_date: date,
    hamali_paise: int = 0,
) -> RecordImpact:
    """
    Apply a withdrawal to a record.

    The rent is precomputed by the caller (rent_service). The overdraft check
    is repeated here even when the caller already made it.

    Raises:
        ValidationError: non-positive bags or negative amounts
        OverdraftAttemptError: bags_withdrawn > bags_stored
        InvalidDateRangeError: effective_date before storage start
    """
    if bags_withdrawn is None or bags_withdrawn <= 0:
        raise ValidationError("Bags to withdraw must be a positive number")
    if rent_paise < 0:
        raise ValidationError("Rent cannot be negative")
    if hamali_paise < 0:
        raise ValidationError("Hamali cannot be negative")
    if bags_withdrawn > record.bags_stored:
        raise OverdraftAttemptError(
            f"Cannot withdraw {bags_withdrawn} bags; only {record.bags_stored} are in storage"
        )
    if effective_date < record.storage_start_date:
        raise InvalidDateRangeError("Withdrawal date cannot be before storage start date")

    new_stored = record.bags_stored - bags_withdrawn
    updates = {
        "bags_stored": new_stored,
        "bags_out": (record.bags_out or 0) + bags_withdrawn,
        "total_rent_billed_paise": (record.total_rent_billed_paise or 0) + rent_paise,
        "hamali_payable_paise": (record.hamali_payable_paise or 0) + hamali_paise,
    }

    is_closed = new_stored == 0
    if is_closed:
        updates["storage_end_date"] = effective_date

    return RecordImpact(updates=updates, is_closed=is_closed)


# =============================================================================
# REVERSAL
# =============================================================================

def calculate_reversal_impact(record, transaction) -> RecordImpact:
    """
    Undo a previously applied withdrawal.

    transaction is the ledger row being reversed (bags_withdrawn,
    rent_collected_paise, hamali_charged_paise). The record is always
    reopened because at least one bag comes back; billing_cycle is kept.

    Raises:
        ValidationError: the row is itself a reversal or has no bags
        InconsistentStateError: the inverse would drive a counter negative
            or put more bags in storage than ever came in
    """
    if getattr(transaction, "entry_type", "OUTFLOW") != "OUTFLOW":
        raise ValidationError("Only outflow entries can be reversed")

    bags = transaction.bags_withdrawn
    rent = transaction.rent_collected_paise or 0
    hamali = getattr(transaction, "hamali_charged_paise", 0) or 0
    if bags is None or bags <= 0:
        raise ValidationError("Withdrawal entry has no bags to restore")

    new_out = (record.bags_out or 0) - bags
    new_stored = record.bags_stored + bags
    new_rent = (record.total_rent_billed_paise or 0) - rent
    new_hamali = (record.hamali_payable_paise or 0) - hamali

    if new_out < 0 or new_stored > record.bags_in:
        raise InconsistentStateError(
            f"Record {record.id} bag counters do not match the withdrawal ledger"
        )
    if new_rent < 0 or new_hamali < 0:
        raise InconsistentStateError(
            f"Record {record.id} billed totals do not match the withdrawal ledger"
        )

    updates = {
        "bags_stored": new_stored,
        "bags_out": new_out,
        "total_rent_billed_paise": new_rent,
        "hamali_payable_paise": new_hamali,
        "storage_end_date": None,
        "billing_cycle": record.billing_cycle,
    }
    return RecordImpact(updates=updates, is_closed=False)


# =============================================================================
# EDIT
# =============================================================================

def calculate_update_impact(
    record,
    old: WithdrawalAmounts,
    new: WithdrawalAmounts,
    *,
    other_withdrawal_dates: Optional[Sequence[date]] = None,
) -> RecordImpact:
    """
    Replace one withdrawal's amounts with new ones in a single transition.

    Equivalent to reversing old and applying new, without ever producing the
    intermediate state.

    A record that ends up closed is closed on its latest withdrawal date.
    other_withdrawal_dates lists the dates of the record's other active
    withdrawals (empty when the edited one is the only one). When it is not
    supplied and the record was already closed, the current storage_end_date
    stands in for them.

    Raises:
        ValidationError: new side has non-positive bags, negative amounts or no date
        OverdraftAttemptError: the extra bags are not in storage
        InconsistentStateError: counters would go negative
        InvalidDateRangeError: new date before storage start
    """
    if new.bags is None or new.bags <= 0:
        raise ValidationError("Bags withdrawn must be a positive number")
    if new.rent_paise < 0 or new.hamali_paise < 0:
        raise ValidationError("Rent and hamali cannot be negative")
    if new.withdrawal_date is None:
        raise ValidationError("Withdrawal date is required")
    if new.withdrawal_date < record.storage_start_date:
        raise InvalidDateRangeError("Withdrawal date cannot be before storage start date")

    delta = new.bags - old.bags
    new_stored = record.bags_stored - delta
    new_out = (record.bags_out or 0) + delta
    new_rent = (record.total_rent_billed_paise or 0) + (new.rent_paise - old.rent_paise)
    new_hamali = (record.hamali_payable_paise or 0) + (new.hamali_paise - old.hamali_paise)

    if new_stored < 0:
        raise OverdraftAttemptError(
            f"Cannot withdraw {delta} more bags; only {record.bags_stored} are in storage"
        )
    if new_out < 0 or new_stored > record.bags_in or new_rent < 0 or new_hamali < 0:
        raise InconsistentStateError(
            f"Record {record.id} does not match the withdrawal being edited"
        )

    is_closed = new_stored == 0
    end_date = None
    if is_closed:
        if other_withdrawal_dates is None:
            other_withdrawal_dates = [record.storage_end_date] if record.bags_stored == 0 else []
        end_date = max(
            d for d in (new.withdrawal_date, *other_withdrawal_dates) if d is not None
        )

    updates = {
        "bags_stored": new_stored,
        "bags_out": new_out,
        "total_rent_billed_paise": new_rent,
        "hamali_payable_paise": new_hamali,
        "storage_end_date": end_date,
        "billing_cycle": record.billing_cycle,
    }
    return RecordImpact(updates=updates, is_closed=is_closed)
