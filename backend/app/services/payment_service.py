# Overview: Service-layer operations for payments; encapsulates business logic and database work.

"""
Payment Service

WHY: Record money received against storage records, one record at a time or
as one lump sum split across a customer's outstanding records.

DESIGN PRINCIPLES:
- One Payment row per record that received money
- Soft delete only: corrections set deleted_at; deleted rows never count
- Bulk payments are written by one all-or-nothing procedure
  (process_bulk_payment_atomic); a failure leaves no partial rows
- Notifications run after commit and can never fail the payment
- Warehouse context is a parameter, never read from the request
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..errors import NotFoundError, PersistenceError, ValidationError
from ..extensions import db
from ..models import Customer, Payment, StorageRecord
from app.time_utils import utcnow
from . import allocation_service, cache_service, notification_service, storage_service
from .allocation_service import OutstandingBalance
from .concurrency import lock_for_update, run_atomic


# =============================================================================
# PAYMENT TYPES (CONSTANTS)
# =============================================================================

PAYMENT_TYPE_RENT = "rent"
PAYMENT_TYPE_HAMALI = "hamali"
PAYMENT_TYPE_ADVANCE = "advance"
PAYMENT_TYPE_SECURITY_DEPOSIT = "security_deposit"
PAYMENT_TYPE_OTHER = "other"

VALID_PAYMENT_TYPES = [
    PAYMENT_TYPE_RENT,
    PAYMENT_TYPE_HAMALI,
    PAYMENT_TYPE_ADVANCE,
    PAYMENT_TYPE_SECURITY_DEPOSIT,
    PAYMENT_TYPE_OTHER,
]

# Legacy UI labels still posted by older clients
PAYMENT_TYPE_ALIASES = {
    "Rent/Other": PAYMENT_TYPE_RENT,
    "Hamali": PAYMENT_TYPE_HAMALI,
}

PAYMENT_METHOD_CASH = "cash"

EDITABLE_FIELDS = ("amount_paise", "payment_date", "payment_type", "notes")


def normalize_payment_type(payment_type: str | None) -> str:
    payment_type = PAYMENT_TYPE_ALIASES.get(payment_type, payment_type)
    if payment_type not in VALID_PAYMENT_TYPES:
        raise ValidationError(f"Invalid payment type: {payment_type}. Must be one of {VALID_PAYMENT_TYPES}")
    return payment_type


def default_notes(payment_type: str) -> str:
    return f"{payment_type.replace('_', ' ').capitalize()} Payment"


def _validate_amount(amount_paise) -> int:
    if not isinstance(amount_paise, int) or isinstance(amount_paise, bool) or amount_paise <= 0:
        raise ValidationError("Payment amount must be a positive number")
    return amount_paise


def insert_payment(
    record: StorageRecord,
    *,
    amount_paise: int,
    payment_date: date,
    payment_type: str = PAYMENT_TYPE_RENT,
    notes: str | None = None,
    payment_method: str = PAYMENT_METHOD_CASH,
    external_payment_id: str | None = None,
) -> Payment:
    """Add a payment row inside the caller's transaction (flush, no commit)."""
    payment = Payment(
        record_id=record.id,
        customer_id=record.customer_id,
        warehouse_id=record.warehouse_id,
        amount_paise=_validate_amount(amount_paise),
        payment_date=payment_date,
        payment_type=payment_type,
        payment_method=payment_method,
        notes=notes,
        external_payment_id=external_payment_id,
    )
    db.session.add(payment)
    db.session.flush()
    return payment


def _invalidate_payment_views(customer_id: int | None) -> None:
    views = [
        cache_service.VIEW_CUSTOMERS,
        cache_service.VIEW_PAYMENTS_PENDING,
        cache_service.VIEW_STORAGE,
        cache_service.VIEW_FINANCIALS,
    ]
    if customer_id:
        views.append(cache_service.customer_view(customer_id))
    cache_service.invalidate_views(*views)


# =============================================================================
# SINGLE PAYMENTS
# =============================================================================

def create_payment(
    record_id: int,
    *,
    amount_paise: int,
    payment_date: date,
    payment_type: str = PAYMENT_TYPE_RENT,
    notes: str | None = None,
    payment_method: str = PAYMENT_METHOD_CASH,
    warehouse_id: int | None = None,
) -> dict:
    """
    Record a payment against one storage record.

    Returns:
        {"success": True, "record_id", "amount_paise", "customer_id", "payment"}

    Raises:
        ValidationError: bad amount / type / date
        NotFoundError: record missing or soft-deleted
        PersistenceError: the write failed (nothing was stored)
    """
    payment_type = normalize_payment_type(payment_type)
    _validate_amount(amount_paise)
    if payment_date is None:
        raise ValidationError("Payment date is required")

    def _op():
        record = storage_service.get_storage_record(record_id, for_update=True, warehouse_id=warehouse_id)
        payment = insert_payment(
            record,
            amount_paise=amount_paise,
            payment_date=payment_date,
            payment_type=payment_type,
            notes=notes or default_notes(payment_type),
            payment_method=payment_method,
        )
        return record, payment

    record, payment = run_atomic(_op, failure_message="Failed to record payment")
    current_app.logger.info("Payment recorded: record=%s amount_paise=%s type=%s", record_id, amount_paise, payment_type)

    _notify_payment_received(record.warehouse_id, record.customer_id, amount_paise, payment_type)
    _invalidate_payment_views(record.customer_id)

    return {
        "success": True,
        "record_id": record_id,
        "amount_paise": amount_paise,
        "customer_id": record.customer_id,
        "payment": payment.to_dict(),
    }


def update_payment(payment_id: int, fields: dict, *, warehouse_id: int | None = None) -> Payment:
    """
    Edit amount, date, type or notes of a live payment.

    Unknown fields are rejected; soft-deleted payments cannot be edited.
    """
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")
    if not fields:
        raise ValidationError("Nothing to update")

    changes = dict(fields)
    if "amount_paise" in changes:
        _validate_amount(changes["amount_paise"])
    if "payment_type" in changes:
        changes["payment_type"] = normalize_payment_type(changes["payment_type"])
    if "payment_date" in changes and changes["payment_date"] is None:
        raise ValidationError("Payment date is required")

    def _op():
        payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).first()
        if not payment or payment.deleted_at is not None or (
            warehouse_id is not None and payment.warehouse_id != warehouse_id
        ):
            raise NotFoundError(f"Payment {payment_id} not found")
        for key, value in changes.items():
            setattr(payment, key, value)
        db.session.flush()
        return payment

    payment = run_atomic(_op, failure_message="Failed to update payment")
    current_app.logger.info("Payment %s updated: %s", payment_id, sorted(changes))
    _invalidate_payment_views(payment.customer_id)
    return payment


def delete_payment(payment_id: int, *, warehouse_id: int | None = None) -> Payment:
    """Soft-delete a payment (kept for audit, excluded from dues)."""
    def _op():
        payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).first()
        if not payment or payment.deleted_at is not None or (
            warehouse_id is not None and payment.warehouse_id != warehouse_id
        ):
            raise NotFoundError(f"Payment {payment_id} not found")
        payment.deleted_at = utcnow()
        db.session.flush()
        return payment

    payment = run_atomic(_op, failure_message="Failed to delete payment")
    current_app.logger.info("Payment %s deleted", payment_id)
    _invalidate_payment_views(payment.customer_id)
    return payment


# =============================================================================
# PENDING DUES
# =============================================================================

def get_pending_records(customer_id: int, *, warehouse_id: int | None = None) -> list[OutstandingBalance]:
    """
    A customer's records that still owe money, oldest first.

    due = total rent billed + hamali payable - live rent/hamali payments.
    Closed records are included: rent billed at withdrawal is still owed.
    """
    query = db.session.query(StorageRecord).filter(
        StorageRecord.customer_id == customer_id,
        StorageRecord.deleted_at.is_(None),
    )
    if warehouse_id is not None:
        query = query.filter(StorageRecord.warehouse_id == warehouse_id)
    records = query.order_by(StorageRecord.storage_start_date, StorageRecord.id).all()
    paid = storage_service.paid_totals(r.id for r in records)

    pending = []
    for record in records:
        due = storage_service.record_due(record, paid.get(record.id, 0))
        if due > 0:
            pending.append(
                OutstandingBalance(
                    record_id=record.id,
                    record_number=str(record.record_number),
                    total_due_paise=due,
                    storage_start_date=record.storage_start_date,
                )
            )
    return pending


# =============================================================================
# BULK PAYMENTS
# =============================================================================

def process_bulk(
    *,
    warehouse_id: int,
    customer_id: int,
    total_amount_paise: int,
    payment_date: date,
    strategy: str,
    manual_allocations: list[dict] | None = None,
    payment_method: str = PAYMENT_METHOD_CASH,
) -> dict:
    """
    Split one lump payment across a customer's pending records.

    FIFO payments larger than all dues are rejected rather than stored as
    unallocated credit.

    Returns:
        {"success": True, "allocations": [...], "records_updated": n, "message": str}
        {"success": False, "message": str} when nothing is pending

    Raises:
        ValidationError / AllocationMismatchError: bad input
        PersistenceError: the atomic write failed (no rows written)
    """
    _validate_amount(total_amount_paise)
    if strategy not in allocation_service.VALID_STRATEGIES:
        raise ValidationError(f"Invalid strategy: {strategy}. Must be one of {allocation_service.VALID_STRATEGIES}")
    if payment_date is None:
        raise ValidationError("Payment date is required")

    pending = get_pending_records(customer_id, warehouse_id=warehouse_id)
    if not pending:
        return {"success": False, "message": "No pending dues found for this customer."}

    if strategy == allocation_service.STRATEGY_MANUAL:
        result = allocation_service.allocate_manual(manual_allocations or [], total_amount_paise, pending)
    else:
        result = allocation_service.allocate_fifo(pending, total_amount_paise)
        if result.unallocated_paise > 0:
            total_due = total_amount_paise - result.unallocated_paise
            raise ValidationError(
                f"Payment amount ({notification_service.format_rupees(total_amount_paise)}) "
                f"exceeds total dues ({notification_service.format_rupees(total_due)})."
            )

    allocations = [a for a in result.allocations if a.amount_paise > 0]
    outcome = process_bulk_payment_atomic(
        customer_id=customer_id,
        payment_date=payment_date,
        warehouse_id=warehouse_id,
        allocations=[a.to_dict() for a in allocations],
        payment_method=payment_method,
        payment_type=PAYMENT_TYPE_RENT,
        notes=f"Bulk payment - {notification_service.format_rupees(total_amount_paise)} allocated via {strategy.upper()}",
    )
    if not outcome["success"]:
        raise PersistenceError(outcome["message"])

    current_app.logger.info(
        "Bulk payment processed: customer=%s amount_paise=%s records=%s",
        customer_id, total_amount_paise, len(allocations),
    )
    _notify_payment_received(warehouse_id, customer_id, total_amount_paise, PAYMENT_TYPE_RENT)
    _invalidate_payment_views(customer_id)

    return {
        "success": True,
        "allocations": [a.to_dict() for a in allocations],
        "records_updated": len(allocations),
        "message": (
            f"Successfully processed {notification_service.format_rupees(total_amount_paise)} "
            f"across {len(allocations)} record(s)."
        ),
    }


def process_bulk_payment_atomic(
    *,
    customer_id: int,
    payment_date: date,
    warehouse_id: int,
    allocations: list[dict],
    payment_method: str,
    payment_type: str,
    notes: str | None,
) -> dict:
    """
    Write every allocation as a Payment row in one transaction, or none.

    Each record must be live and belong to the customer and warehouse.

    Returns:
        {"success": bool, "message": str}
    """
    def _op():
        customer = db.session.get(Customer, customer_id)
        if not customer or customer.deleted_at is not None:
            raise NotFoundError(f"Customer {customer_id} not found")
        if customer.warehouse_id != warehouse_id:
            raise ValidationError("Customer belongs to another warehouse")
        if not allocations:
            raise ValidationError("No allocations to record")

        ids = [a["record_id"] for a in allocations]
        records = {
            r.id: r
            for r in lock_for_update(
                db.session.query(StorageRecord).filter(
                    StorageRecord.id.in_(ids),
                    StorageRecord.deleted_at.is_(None),
                )
            ).all()
        }

        for alloc in allocations:
            record = records.get(alloc["record_id"])
            if record is None or record.customer_id != customer_id or record.warehouse_id != warehouse_id:
                raise ValidationError(f"Record {alloc['record_id']} does not belong to this customer")
            insert_payment(
                record,
                amount_paise=alloc["amount_paise"],
                payment_date=payment_date,
                payment_type=payment_type,
                notes=notes,
                payment_method=payment_method,
            )
        return len(allocations)

    try:
        count = run_atomic(_op, failure_message="Bulk payment failed")
    except (ValidationError, NotFoundError) as exc:
        return {"success": False, "message": str(exc)}
    except PersistenceError:
        current_app.logger.exception("Bulk payment procedure failed")
        return {"success": False, "message": "Bulk payment failed"}

    return {"success": True, "message": f"{count} payment(s) recorded"}


# =============================================================================
# EXTERNAL CAPTURE (WEBHOOK)
# =============================================================================

def capture_external_payment(
    *,
    external_payment_id: str,
    record_id: int,
    amount_paise: int,
    payment_date: date,
    payment_method: str = "online",
) -> dict:
    """
    Record a gateway-captured payment exactly once.

    Gateways redeliver webhooks; a second delivery with the same
    external_payment_id returns the existing payment with duplicate=True.
    """
    if not external_payment_id:
        raise ValidationError("external_payment_id is required")
    _validate_amount(amount_paise)

    existing = db.session.query(Payment).filter_by(external_payment_id=external_payment_id).first()
    if existing:
        current_app.logger.info("Duplicate capture ignored: %s", external_payment_id)
        return {"success": True, "duplicate": True, "payment": existing.to_dict(), "customer_id": existing.customer_id}

    def _op():
        record = storage_service.get_storage_record(record_id, for_update=True)
        return insert_payment(
            record,
            amount_paise=amount_paise,
            payment_date=payment_date,
            payment_type=PAYMENT_TYPE_RENT,
            notes="Online payment",
            payment_method=payment_method,
            external_payment_id=external_payment_id,
        )

    payment = run_atomic(_op, failure_message="Failed to record captured payment")
    current_app.logger.info("External payment captured: %s record=%s", external_payment_id, record_id)

    _notify_payment_received(payment.warehouse_id, payment.customer_id, amount_paise, PAYMENT_TYPE_RENT)
    business = current_app.config.get("BUSINESS_NAME", "")
    customer = db.session.get(Customer, payment.customer_id)
    notification_service.notify_customer_sms(
        payment.customer_id,
        f"Dear {customer.name},\nPayment of {notification_service.format_rupees(amount_paise)} "
        f"received successfully.\nThank you!\n- {business}",
    )
    _invalidate_payment_views(payment.customer_id)

    return {"success": True, "duplicate": False, "payment": payment.to_dict(), "customer_id": payment.customer_id}


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _notify_payment_received(warehouse_id: int, customer_id: int, amount_paise: int, payment_type: str) -> None:
    customer = db.session.get(Customer, customer_id)
    name = customer.name if customer else "Unknown"
    label = "Hamali" if payment_type == PAYMENT_TYPE_HAMALI else "Rent/Storage"
    notification_service.create_notification(
        warehouse_id=warehouse_id,
        title="Payment Received",
        message=f"Payment of {notification_service.format_rupees(amount_paise)} received from {name} for {label}",
    )
