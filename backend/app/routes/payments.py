# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/app/routes/payments.py
"""
Payment API Routes

WHY: Let staff record money received against storage records, correct
mistakes, and settle several records with one lump payment.

DESIGN:
- Single payments against one record
- Edit / soft-delete for corrections
- Pending dues per customer (oldest first)
- Bulk payments allocated FIFO or manually, written atomically

SECURITY:
- X-Warehouse-Id establishes the warehouse; services receive it explicitly
- Every mutating endpoint is rate limited per actor (X-Actor-Id)
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import billing_endpoint, rate_limited, require_warehouse
from ..models import Payment
from ..services import payment_service
from ..validation import (
    PAYMENT_PATCH_POLICY,
    coerce_amount,
    coerce_date,
    coerce_int,
    get_json_payload,
    require_fields,
    validate_payload,
)


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# =============================================================================
# SINGLE PAYMENTS
# =============================================================================

@payments_bp.post("")
@require_warehouse
@rate_limited("add_payment")
@billing_endpoint("Failed to add payment")
def add_payment_route():
    """
    Record a payment against one storage record.

    Request body:
    {
        "record_id": 12,
        "amount_paise": 250000,
        "payment_date": "2024-03-01",
        "payment_type": "rent",   (rent | hamali | advance | security_deposit | other)
        "notes": "..."            (optional)
    }

    Returns:
        201: Payment recorded
        400: Invalid input
        404: Record not found
        429: Rate limited
    """
    data = get_json_payload(request)
    require_fields(data, "record_id", "amount_paise", "payment_date")

    result = payment_service.create_payment(
        coerce_int("record_id", data["record_id"]),
        amount_paise=coerce_amount("amount_paise", data["amount_paise"]),
        payment_date=coerce_date("payment_date", data["payment_date"]),
        payment_type=data.get("payment_type") or payment_service.PAYMENT_TYPE_RENT,
        notes=data.get("notes"),
        payment_method=data.get("payment_method") or payment_service.PAYMENT_METHOD_CASH,
        warehouse_id=g.warehouse_id,
    )

    return jsonify({
        "success": True,
        "message": "Payment recorded successfully",
        "data": result,
    }), 201


@payments_bp.patch("/<int:payment_id>")
@require_warehouse
@rate_limited("update_payment")
@billing_endpoint("Failed to update payment")
def update_payment_route(payment_id: int):
    """
    Edit amount, date, type or notes of a payment.

    Deleted payments cannot be edited (404).
    """
    data = get_json_payload(request)
    patch = validate_payload(model=Payment, payload=data, policy=PAYMENT_PATCH_POLICY, partial=True)

    payment = payment_service.update_payment(payment_id, patch, warehouse_id=g.warehouse_id)

    return jsonify({
        "success": True,
        "message": "Payment updated successfully",
        "data": payment.to_dict(),
    }), 200


@payments_bp.delete("/<int:payment_id>")
@require_warehouse
@rate_limited("delete_payment")
@billing_endpoint("Failed to delete payment")
def delete_payment_route(payment_id: int):
    payment = payment_service.delete_payment(payment_id, warehouse_id=g.warehouse_id)

    return jsonify({
        "success": True,
        "message": "Payment deleted successfully",
        "data": payment.to_dict(),
    }), 200


# =============================================================================
# PENDING DUES
# =============================================================================

@payments_bp.get("/pending/<int:customer_id>")
@require_warehouse
@billing_endpoint("Failed to fetch pending records")
def pending_records_route(customer_id: int):
    pending = payment_service.get_pending_records(customer_id, warehouse_id=g.warehouse_id)

    return jsonify({
        "success": True,
        "message": f"{len(pending)} record(s) with pending dues",
        "data": {
            "records": [p.to_dict() for p in pending],
            "total_due_paise": sum(p.total_due_paise for p in pending),
        },
    }), 200


# =============================================================================
# BULK PAYMENTS
# =============================================================================

@payments_bp.post("/bulk")
@require_warehouse
@rate_limited("bulk_payment")
@billing_endpoint("Failed to process bulk payment")
def bulk_payment_route():
    """
    Split one payment across a customer's pending records.

    Request body:
    {
        "customer_id": 3,
        "total_amount_paise": 150000,
        "payment_date": "2024-03-01",
        "strategy": "fifo",            (fifo | manual)
        "manual_allocations": [        (manual only)
            {"record_id": 12, "amount_paise": 100000},
            {"record_id": 15, "amount_paise": 50000}
        ],
        "payment_method": "cash"       (optional)
    }

    Returns:
        200: Allocations written
        400: Invalid input / allocation mismatch / no pending dues
        429: Rate limited
    """
    data = get_json_payload(request)
    require_fields(data, "customer_id", "total_amount_paise", "payment_date")

    manual = None
    if data.get("manual_allocations") is not None:
        rows = data["manual_allocations"]
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            return jsonify({"success": False, "message": "manual_allocations must be a list of objects"}), 400
        manual = [
            {
                "record_id": coerce_int("record_id", row.get("record_id")),
                "amount_paise": coerce_amount("amount_paise", row.get("amount_paise")),
            }
            for row in rows
        ]

    result = payment_service.process_bulk(
        warehouse_id=g.warehouse_id,
        customer_id=coerce_int("customer_id", data["customer_id"]),
        total_amount_paise=coerce_amount("total_amount_paise", data["total_amount_paise"]),
        payment_date=coerce_date("payment_date", data["payment_date"]),
        strategy=(data.get("strategy") or "fifo").lower(),
        manual_allocations=manual,
        payment_method=data.get("payment_method") or payment_service.PAYMENT_METHOD_CASH,
    )

    if not result["success"]:
        return jsonify({"success": False, "message": result["message"]}), 400

    return jsonify({
        "success": True,
        "message": result["message"],
        "data": {
            "allocations": result["allocations"],
            "records_updated": result["records_updated"],
        },
    }), 200
