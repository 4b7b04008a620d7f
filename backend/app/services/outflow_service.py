# Overview: Single-record withdrawals: add, edit and reverse outflows.

"""
Outflow Service

WHY: A withdrawal touches the record counters, the withdrawal ledger, the
invoice sequence and (optionally) payments. All of it must land together.

DESIGN PRINCIPLES:
- Record transitions come only from impact_service
- Ledger rows come only from ledger_service; edits append, never rewrite
- Reversal and edit amounts are read from the ledger row, not recomputed
- Notifications and cache bumps happen after commit
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..errors import InvalidDateRangeError, ValidationError
from ..extensions import db
from ..models import Customer
from app.time_utils import today as business_today
from . import (
    cache_service,
    impact_service,
    invoice_service,
    ledger_service,
    notification_service,
    payment_service,
    rent_service,
    storage_service,
)
from .concurrency import run_atomic
from .impact_service import WithdrawalAmounts


def validate_withdrawal_date(withdrawal_date: date | None, today: date | None = None) -> date:
    if withdrawal_date is None:
        raise ValidationError("Withdrawal date is required")
    today = today or business_today()
    if withdrawal_date > today:
        raise InvalidDateRangeError("Withdrawal date cannot be in the future")
    return withdrawal_date


def assign_outflow_invoice(record) -> str | None:
    """Give a record that just closed its outflow invoice number (once)."""
    if record.storage_end_date is None:
        return record.outflow_invoice_no
    if not record.outflow_invoice_no:
        record.outflow_invoice_no = invoice_service.next_invoice_number(
            warehouse_id=record.warehouse_id,
            invoice_type=invoice_service.SEQUENCE_OUTFLOW,
        )
    return record.outflow_invoice_no


def invalidate_outflow_views(customer_id: int, record_ids) -> None:
    cache_service.invalidate_views(
        cache_service.VIEW_STORAGE,
        cache_service.VIEW_OUTFLOW,
        cache_service.VIEW_CUSTOMERS,
        cache_service.VIEW_PAYMENTS_PENDING,
        cache_service.VIEW_FINANCIALS,
        cache_service.customer_view(customer_id),
        *[cache_service.record_view(rid) for rid in record_ids],
    )


def add_outflow(
    record_id: int,
    bags_withdrawn: int,
    withdrawal_date: date,
    *,
    final_rent_paise: int | None = None,
    amount_paid_now_paise: int = 0,
    hamali_paise: int = 0,
    send_sms: bool = False,
    warehouse_id: int | None = None,
    today: date | None = None,
) -> dict:
    """
    Withdraw bags from one record.

    Rent comes from the crop's rate tiers unless final_rent_paise is given
    (staff-agreed rent). A payment row is written when money changes hands
    at the gate.

    Returns:
        {"record", "transaction", "rent", "payment"}

    Raises:
        ValidationError / InvalidDateRangeError: bad input
        OverdraftAttemptError: more bags than stored
        NotFoundError: record missing
        PersistenceError: the write failed (nothing was stored)
    """
    validate_withdrawal_date(withdrawal_date, today)
    if final_rent_paise is not None and final_rent_paise < 0:
        raise ValidationError("Rent cannot be negative")
    if amount_paid_now_paise is None or amount_paid_now_paise < 0:
        raise ValidationError("Amount paid cannot be negative")

    def _op():
        record = storage_service.get_storage_record(record_id, for_update=True, warehouse_id=warehouse_id)

        quote = None
        rent_paise = final_rent_paise
        if rent_paise is None:
            tiers = rent_service.load_rate_tiers(record.crop_id)
            quote = rent_service.calculate_rent(record, withdrawal_date, bags_withdrawn, tiers)
            rent_paise = quote.rent_paise

        impact = impact_service.calculate_outflow_impact(
            record, bags_withdrawn, rent_paise, withdrawal_date, hamali_paise=hamali_paise
        )
        impact_service.apply_impact(record, impact)
        invoice_number = assign_outflow_invoice(record) if impact.is_closed else None

        txn = ledger_service.append_withdrawal(
            record_id=record.id,
            bags_withdrawn=bags_withdrawn,
            rent_collected_paise=rent_paise,
            hamali_charged_paise=hamali_paise,
            withdrawal_date=withdrawal_date,
            invoice_number=invoice_number,
        )

        payment = None
        if amount_paid_now_paise > 0:
            payment = payment_service.insert_payment(
                record,
                amount_paise=amount_paid_now_paise,
                payment_date=withdrawal_date,
                payment_type=payment_service.PAYMENT_TYPE_RENT,
                notes="Payment at outflow",
            )
        db.session.flush()
        return record, txn, quote, payment

    record, txn, quote, payment = run_atomic(_op, failure_message="Failed to record outflow")
    current_app.logger.info(
        "Outflow recorded: record=%s bags=%s rent_paise=%s closed=%s",
        record.id, bags_withdrawn, txn.rent_collected_paise, record.storage_end_date is not None,
    )

    customer = db.session.get(Customer, record.customer_id)
    notification_service.create_notification(
        warehouse_id=record.warehouse_id,
        title="Outflow Recorded",
        message=(
            f"{bags_withdrawn} bags of {record.commodity} withdrawn by "
            f"{customer.name if customer else 'Unknown'}"
        ),
        link=f"/storage/{record.id}",
    )
    if send_sms and customer:
        business = current_app.config.get("BUSINESS_NAME", "")
        notification_service.notify_customer_sms(
            customer.id,
            f"Dear {customer.name},\nOutflow Processed\nItem: {record.commodity}\n"
            f"Withdrawn: {bags_withdrawn} bags\n"
            f"Rent: {notification_service.format_rupees(txn.rent_collected_paise)}\n"
            f"Paid: {notification_service.format_rupees(amount_paid_now_paise)}\n"
            f"Thank you.\n- {business}",
        )
    invalidate_outflow_views(record.customer_id, [record.id])

    return {
        "record": record.to_dict(),
        "transaction": txn.to_dict(),
        "rent": quote.to_dict() if quote else None,
        "payment": payment.to_dict() if payment else None,
    }


def delete_outflow(
    transaction_id: int,
    *,
    note: str | None = None,
    warehouse_id: int | None = None,
    today: date | None = None,
) -> dict:
    """
    Reverse one withdrawal: bags go back into storage and the billed rent
    is taken off the record. The original row stays; a REVERSAL row is added.
    """
    reversal_date = today or business_today()

    def _op():
        txn = ledger_service.get_active_withdrawal(transaction_id)
        record = storage_service.get_storage_record(txn.record_id, for_update=True, warehouse_id=warehouse_id)
        impact = impact_service.calculate_reversal_impact(record, txn)
        impact_service.apply_impact(record, impact)
        reversal = ledger_service.append_reversal(txn, reversal_date=reversal_date, note=note or "Outflow deleted")
        return record, reversal

    record, reversal = run_atomic(_op, failure_message="Failed to delete outflow")
    current_app.logger.info("Outflow %s reversed on record %s", transaction_id, record.id)
    invalidate_outflow_views(record.customer_id, [record.id])

    return {"record": record.to_dict(), "reversal": reversal.to_dict()}


def update_outflow(
    transaction_id: int,
    *,
    bags_withdrawn: int,
    rent_paise: int,
    withdrawal_date: date,
    hamali_paise: int | None = None,
    warehouse_id: int | None = None,
    today: date | None = None,
) -> dict:
    """
    Edit a withdrawal.

    The record moves in one transition from the old amounts to the new ones;
    the ledger gets a REVERSAL of the old row plus a fresh OUTFLOW row.
    """
    validate_withdrawal_date(withdrawal_date, today)
    edit_date = today or business_today()

    def _op():
        old_txn = ledger_service.get_active_withdrawal(transaction_id)
        record = storage_service.get_storage_record(old_txn.record_id, for_update=True, warehouse_id=warehouse_id)

        old = WithdrawalAmounts(
            bags=old_txn.bags_withdrawn,
            rent_paise=old_txn.rent_collected_paise,
            hamali_paise=old_txn.hamali_charged_paise or 0,
            withdrawal_date=old_txn.withdrawal_date,
        )
        new = WithdrawalAmounts(
            bags=bags_withdrawn,
            rent_paise=rent_paise,
            hamali_paise=old.hamali_paise if hamali_paise is None else hamali_paise,
            withdrawal_date=withdrawal_date,
        )
        other_dates = [
            t.withdrawal_date
            for t in storage_service.get_active_withdrawals(record.id)
            if t.id != old_txn.id
        ]
        impact = impact_service.calculate_update_impact(
            record, old, new, other_withdrawal_dates=other_dates
        )
        impact_service.apply_impact(record, impact)
        invoice_number = assign_outflow_invoice(record) if impact.is_closed else old_txn.invoice_number

        reversal = ledger_service.append_reversal(
            old_txn, reversal_date=edit_date, note="Outflow edited"
        )
        replacement = ledger_service.append_withdrawal(
            record_id=record.id,
            bags_withdrawn=new.bags,
            rent_collected_paise=new.rent_paise,
            hamali_charged_paise=new.hamali_paise,
            withdrawal_date=new.withdrawal_date,
            invoice_number=invoice_number,
            note=f"Replaces withdrawal {old_txn.id}",
        )
        return record, reversal, replacement

    record, reversal, replacement = run_atomic(_op, failure_message="Failed to update outflow")
    current_app.logger.info(
        "Outflow %s edited on record %s; replacement %s", transaction_id, record.id, replacement.id
    )
    invalidate_outflow_views(record.customer_id, [record.id])

    return {
        "record": record.to_dict(),
        "reversal": reversal.to_dict(),
        "transaction": replacement.to_dict(),
    }
