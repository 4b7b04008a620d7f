# Overview: Per-warehouse sequences for record numbers and inflow/outflow invoice numbers.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import InvoiceSequence, Warehouse


SEQUENCE_RECORD = "record"
SEQUENCE_INFLOW = "inflow"
SEQUENCE_OUTFLOW = "outflow"

INVOICE_TYPE_CODES = {
    SEQUENCE_INFLOW: "IN",
    SEQUENCE_OUTFLOW: "OUT",
}

# Printed invoice numbers start at 1001
INVOICE_NUMBER_OFFSET = 1000


def next_sequence_value(*, warehouse_id: int, sequence_type: str) -> int:
    """
    Allocate the next value of a warehouse sequence inside the caller's transaction.

    Uses an UPDATE ... SET next_number = next_number + 1 so concurrent
    writers serialize on the sequence row. The first use creates the row in
    a savepoint; losing that insert race falls back to the UPDATE.
    """
    if not warehouse_id:
        raise ValidationError("warehouse_id is required")
    if not sequence_type:
        raise ValidationError("sequence_type is required")

    stmt = (
        update(InvoiceSequence)
        .where(
            InvoiceSequence.warehouse_id == warehouse_id,
            InvoiceSequence.sequence_type == sequence_type,
        )
        .values(next_number=InvoiceSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(InvoiceSequence(warehouse_id=warehouse_id, sequence_type=sequence_type, next_number=2))
            return 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    db.session.flush()
    current = (
        db.session.query(InvoiceSequence.next_number)
        .filter_by(warehouse_id=warehouse_id, sequence_type=sequence_type)
        .scalar()
    )
    return current - 1


def format_invoice_number(prefix: str, invoice_type: str, value: int) -> str:
    """<WH>-<IN|OUT>-<1000 + value>"""
    type_code = INVOICE_TYPE_CODES.get(invoice_type)
    if not type_code:
        raise ValidationError(f"Unknown invoice type: {invoice_type}")
    return f"{prefix}-{type_code}-{INVOICE_NUMBER_OFFSET + value}"


def next_invoice_number(*, warehouse_id: int, invoice_type: str) -> str:
    warehouse = db.session.get(Warehouse, warehouse_id)
    if not warehouse:
        raise NotFoundError(f"Warehouse {warehouse_id} not found")
    value = next_sequence_value(warehouse_id=warehouse_id, sequence_type=invoice_type)
    return format_invoice_number(warehouse.invoice_prefix, invoice_type, value)


def next_record_number(*, warehouse_id: int) -> int:
    return next_sequence_value(warehouse_id=warehouse_id, sequence_type=SEQUENCE_RECORD)
