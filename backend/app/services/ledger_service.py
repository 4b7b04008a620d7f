# Overview: Append-only withdrawal ledger writes; the only code that inserts WithdrawalTransaction rows.

from __future__ import annotations

from datetime import date
from typing import Optional

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import WithdrawalTransaction
"""
Withdrawal Ledger Invariants (authoritative)

- Append-only: rows are inserted, never updated or deleted.
- Entries are written inside the same DB transaction as the record update they explain.
- A REVERSAL row negates exactly one OUTFLOW row and points at it
  (unique reverses_transaction_id), so a withdrawal can be reversed once.
- Reversal/edit amounts are read from these rows, not recomputed.
"""

ENTRY_OUTFLOW = "OUTFLOW"
ENTRY_REVERSAL = "REVERSAL"


def append_withdrawal(
    *,
    record_id: int,
    bags_withdrawn: int,
    rent_collected_paise: int,
    withdrawal_date: date,
    hamali_charged_paise: int = 0,
    invoice_number: Optional[str] = None,
    note: Optional[str] = None,
) -> WithdrawalTransaction:
    """Append an OUTFLOW entry. Flushes so the id is available without committing."""
    txn = WithdrawalTransaction(
        record_id=record_id,
        entry_type=ENTRY_OUTFLOW,
        bags_withdrawn=bags_withdrawn,
        rent_collected_paise=rent_collected_paise,
        hamali_charged_paise=hamali_charged_paise,
        withdrawal_date=withdrawal_date,
        invoice_number=invoice_number,
        note=note,
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def append_reversal(original: WithdrawalTransaction, *, reversal_date: date, note: Optional[str] = None) -> WithdrawalTransaction:
    """Append a REVERSAL entry negating original."""
    if original.entry_type != ENTRY_OUTFLOW:
        raise ValidationError("Only outflow entries can be reversed")
    if is_reversed(original.id):
        raise ValidationError(f"Withdrawal {original.id} was already reversed")

    txn = WithdrawalTransaction(
        record_id=original.record_id,
        entry_type=ENTRY_REVERSAL,
        bags_withdrawn=-original.bags_withdrawn,
        rent_collected_paise=-original.rent_collected_paise,
        hamali_charged_paise=-(original.hamali_charged_paise or 0),
        withdrawal_date=reversal_date,
        invoice_number=original.invoice_number,
        reverses_transaction_id=original.id,
        note=note,
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def is_reversed(transaction_id: int) -> bool:
    return db.session.query(WithdrawalTransaction.id).filter_by(
        reverses_transaction_id=transaction_id
    ).first() is not None


def get_active_withdrawal(transaction_id: int) -> WithdrawalTransaction:
    """An OUTFLOW entry that has not been reversed, or NotFoundError."""
    txn = db.session.get(WithdrawalTransaction, transaction_id)
    if not txn or txn.entry_type != ENTRY_OUTFLOW or is_reversed(txn.id):
        raise NotFoundError("Transaction not found")
    return txn
