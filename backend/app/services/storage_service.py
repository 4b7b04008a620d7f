# Overview: Service-layer operations for storage records (inflow, lookups, dues).

from __future__ import annotations

from datetime import date
from typing import Iterable

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Crop, Customer, Payment, StorageRecord, WithdrawalTransaction
from .concurrency import lock_for_update, run_atomic
from . import invoice_service


# Payment types that settle dues (others are recorded but not counted)
DUE_SETTLING_TYPES = ("rent", "hamali")


def create_storage_record(
    *,
    warehouse_id: int,
    customer_id: int,
    crop_id: int,
    commodity: str,
    bags_in: int,
    storage_start_date: date,
    lot_id: str | None = None,
    hamali_payable_paise: int = 0,
    billing_cycle: str | None = None,
) -> StorageRecord:
    """
    Inflow: open a new storage record with all bags in storage.

    Assigns the per-warehouse record number and inflow invoice number in the
    same transaction.
    """
    def _op():
        if not commodity or not commodity.strip():
            raise ValidationError("Commodity is required")
        if not isinstance(bags_in, int) or isinstance(bags_in, bool) or bags_in <= 0:
            raise ValidationError("Bags in must be a positive whole number")
        if hamali_payable_paise < 0:
            raise ValidationError("Hamali cannot be negative")
        if storage_start_date is None:
            raise ValidationError("Storage start date is required")

        customer = db.session.get(Customer, customer_id)
        if not customer or customer.deleted_at is not None:
            raise NotFoundError(f"Customer {customer_id} not found")
        if customer.warehouse_id != warehouse_id:
            raise ValidationError("Customer belongs to another warehouse")

        crop = db.session.get(Crop, crop_id)
        if not crop or crop.warehouse_id != warehouse_id:
            raise NotFoundError(f"Crop {crop_id} not found")

        record = StorageRecord(
            warehouse_id=warehouse_id,
            customer_id=customer_id,
            crop_id=crop_id,
            record_number=invoice_service.next_record_number(warehouse_id=warehouse_id),
            commodity=commodity.strip(),
            lot_id=lot_id,
            bags_in=bags_in,
            bags_stored=bags_in,
            bags_out=0,
            total_rent_billed_paise=0,
            hamali_payable_paise=hamali_payable_paise,
            billing_cycle=billing_cycle,
            storage_start_date=storage_start_date,
            inflow_invoice_no=invoice_service.next_invoice_number(
                warehouse_id=warehouse_id, invoice_type=invoice_service.SEQUENCE_INFLOW
            ),
        )
        db.session.add(record)
        db.session.flush()
        return record

    return run_atomic(_op, failure_message="Failed to create storage record")


def get_storage_record(record_id: int, *, for_update: bool = False, warehouse_id: int | None = None) -> StorageRecord:
    """Fetch a live (not soft-deleted) record or raise NotFoundError.

    With warehouse_id, records of other warehouses are reported as missing.
    """
    query = db.session.query(StorageRecord).filter(
        StorageRecord.id == record_id,
        StorageRecord.deleted_at.is_(None),
    )
    if warehouse_id is not None:
        query = query.filter(StorageRecord.warehouse_id == warehouse_id)
    if for_update:
        query = lock_for_update(query)
    record = query.first()
    if not record:
        raise NotFoundError(f"Storage record {record_id} not found")
    return record


def get_open_records(
    customer_id: int,
    commodity: str,
    *,
    record_ids: Iterable[int] | None = None,
    for_update: bool = False,
) -> list[StorageRecord]:
    """
    Open records with bags in storage for a customer/commodity, oldest first.

    An explicit record_ids subset is still returned in FIFO order.
    """
    query = db.session.query(StorageRecord).filter(
        StorageRecord.customer_id == customer_id,
        StorageRecord.commodity == commodity,
        StorageRecord.storage_end_date.is_(None),
        StorageRecord.bags_stored > 0,
        StorageRecord.deleted_at.is_(None),
    )
    if record_ids is not None:
        ids = [int(i) for i in record_ids]
        if ids:
            query = query.filter(StorageRecord.id.in_(ids))
    if for_update:
        query = lock_for_update(query)
    return query.order_by(StorageRecord.storage_start_date, StorageRecord.id).all()


def paid_totals(record_ids: Iterable[int]) -> dict[int, int]:
    """Sum of live rent/hamali payments per record (paise)."""
    ids = list(record_ids)
    if not ids:
        return {}
    rows = (
        db.session.query(Payment.record_id, db.func.coalesce(db.func.sum(Payment.amount_paise), 0))
        .filter(
            Payment.record_id.in_(ids),
            Payment.deleted_at.is_(None),
            Payment.payment_type.in_(DUE_SETTLING_TYPES),
        )
        .group_by(Payment.record_id)
        .all()
    )
    return {record_id: int(total) for record_id, total in rows}


def record_due(record: StorageRecord, paid_paise: int | None = None) -> int:
    """Outstanding amount on a record: billed rent + hamali minus settling payments, floored at 0."""
    if paid_paise is None:
        paid_paise = paid_totals([record.id]).get(record.id, 0)
    billed = (record.total_rent_billed_paise or 0) + (record.hamali_payable_paise or 0)
    return max(0, billed - paid_paise)


def get_active_withdrawals(record_id: int) -> list[WithdrawalTransaction]:
    """OUTFLOW ledger rows of a record that have not been reversed."""
    reversed_ids = (
        db.select(WithdrawalTransaction.reverses_transaction_id)
        .where(WithdrawalTransaction.reverses_transaction_id.isnot(None))
    )
    return (
        db.session.query(WithdrawalTransaction)
        .filter(
            WithdrawalTransaction.record_id == record_id,
            WithdrawalTransaction.entry_type == "OUTFLOW",
            WithdrawalTransaction.id.notin_(reversed_ids),
        )
        .order_by(WithdrawalTransaction.withdrawal_date, WithdrawalTransaction.id)
        .all()
    )


def get_record_summary(record_id: int, *, warehouse_id: int | None = None) -> dict:
    record = get_storage_record(record_id, warehouse_id=warehouse_id)
    paid = paid_totals([record.id]).get(record.id, 0)
    return {
        "record": record.to_dict(),
        "paid_paise": paid,
        "due_paise": record_due(record, paid),
        "withdrawals": [t.to_dict() for t in get_active_withdrawals(record.id)],
    }
