# Overview: Flask API routes for storage records and withdrawals (inflow, outflow, bulk outflow).

# backend/app/routes/storage.py
"""
Storage API Routes

WHY: Bags come in (inflow) and go out (outflow). Every outflow bills rent.

DESIGN:
- Inflow opens a record with its record number and inflow invoice
- Single outflows can be edited or deleted; the ledger keeps both entries
- Bulk outflow takes bags from the customer's oldest records first and
  is all-or-nothing
- Record detail carries an ETag that changes after every write to it

SECURITY:
- X-Warehouse-Id establishes the warehouse; services receive it explicitly
- Outflow endpoints are rate limited per actor (X-Actor-Id)
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import billing_endpoint, error_response, rate_limited, require_warehouse
from ..services import bulk_outflow_service, cache_service, outflow_service, storage_service
from ..validation import (
    coerce_amount,
    coerce_bool,
    coerce_date,
    coerce_int,
    get_json_payload,
    require_fields,
)


storage_bp = Blueprint("storage", __name__, url_prefix="/api/storage")


def _optional_amount(data: dict, key: str):
    value = data.get(key)
    if value in (None, ""):
        return None
    return coerce_amount(key, value)


# =============================================================================
# RECORDS
# =============================================================================

@storage_bp.post("/records")
@require_warehouse
@billing_endpoint("Failed to create storage record")
def create_record_route():
    """
    Inflow: store bags for a customer.

    Request body:
    {
        "customer_id": 3,
        "crop_id": 1,
        "commodity": "Wheat",
        "bags_in": 100,
        "storage_start_date": "2024-01-01",
        "lot_id": "L-7",                 (optional)
        "hamali_payable_paise": 5000,    (optional)
        "billing_cycle": "6m"            (optional)
    }
    """
    data = get_json_payload(request)
    require_fields(data, "customer_id", "crop_id", "commodity", "bags_in", "storage_start_date")

    record = storage_service.create_storage_record(
        warehouse_id=g.warehouse_id,
        customer_id=coerce_int("customer_id", data["customer_id"]),
        crop_id=coerce_int("crop_id", data["crop_id"]),
        commodity=str(data["commodity"]),
        bags_in=coerce_int("bags_in", data["bags_in"]),
        storage_start_date=coerce_date("storage_start_date", data["storage_start_date"]),
        lot_id=data.get("lot_id"),
        hamali_payable_paise=_optional_amount(data, "hamali_payable_paise") or 0,
        billing_cycle=data.get("billing_cycle"),
    )
    cache_service.invalidate_views(
        cache_service.VIEW_STORAGE,
        cache_service.customer_view(record.customer_id),
    )

    return jsonify({
        "success": True,
        "message": f"Record {record.record_number} created",
        "data": record.to_dict(),
    }), 201


@storage_bp.get("/records/<int:record_id>")
@require_warehouse
@billing_endpoint("Failed to fetch storage record")
def get_record_route(record_id: int):
    """Record detail with dues and active withdrawals. Supports If-None-Match."""
    summary = storage_service.get_record_summary(record_id, warehouse_id=g.warehouse_id)

    etag = f"record-{record_id}-{summary['record']['version_id']}-{cache_service.view_version(cache_service.record_view(record_id))}"
    if etag in request.if_none_match:
        return "", 304

    response = jsonify({"success": True, "message": "OK", "data": summary})
    response.set_etag(etag)
    return response, 200


# =============================================================================
# SINGLE OUTFLOWS
# =============================================================================

@storage_bp.post("/outflows")
@require_warehouse
@rate_limited("add_outflow")
@billing_endpoint("Failed to record outflow")
def add_outflow_route():
    """
    Withdraw bags from one record.

    Request body:
    {
        "record_id": 12,
        "bags": 40,
        "withdrawal_date": "2024-03-01",
        "final_rent_paise": 144000,        (optional; computed from rate tiers when absent)
        "amount_paid_now_paise": 100000,   (optional)
        "hamali_paise": 0,                 (optional)
        "send_sms": false                  (optional)
    }
    """
    data = get_json_payload(request)
    require_fields(data, "record_id", "bags", "withdrawal_date")

    result = outflow_service.add_outflow(
        coerce_int("record_id", data["record_id"]),
        coerce_int("bags", data["bags"]),
        coerce_date("withdrawal_date", data["withdrawal_date"]),
        final_rent_paise=_optional_amount(data, "final_rent_paise"),
        amount_paid_now_paise=_optional_amount(data, "amount_paid_now_paise") or 0,
        hamali_paise=_optional_amount(data, "hamali_paise") or 0,
        send_sms=coerce_bool("send_sms", data.get("send_sms")),
        warehouse_id=g.warehouse_id,
    )

    return jsonify({
        "success": True,
        "message": "Outflow recorded successfully",
        "data": result,
    }), 201


@storage_bp.patch("/outflows/<int:transaction_id>")
@require_warehouse
@rate_limited("update_outflow")
@billing_endpoint("Failed to update outflow")
def update_outflow_route(transaction_id: int):
    data = get_json_payload(request)
    require_fields(data, "bags", "rent_paise", "withdrawal_date")

    result = outflow_service.update_outflow(
        transaction_id,
        bags_withdrawn=coerce_int("bags", data["bags"]),
        rent_paise=coerce_amount("rent_paise", data["rent_paise"]),
        withdrawal_date=coerce_date("withdrawal_date", data["withdrawal_date"]),
        hamali_paise=_optional_amount(data, "hamali_paise"),
        warehouse_id=g.warehouse_id,
    )

    return jsonify({
        "success": True,
        "message": "Outflow updated successfully",
        "data": result,
    }), 200


@storage_bp.delete("/outflows/<int:transaction_id>")
@require_warehouse
@rate_limited("delete_outflow")
@billing_endpoint("Failed to delete outflow")
def delete_outflow_route(transaction_id: int):
    result = outflow_service.delete_outflow(transaction_id, warehouse_id=g.warehouse_id)

    return jsonify({
        "success": True,
        "message": "Outflow deleted successfully",
        "data": result,
    }), 200


# =============================================================================
# BULK OUTFLOW
# =============================================================================

@storage_bp.post("/bulk-outflow")
@require_warehouse
@rate_limited("bulk_outflow")
@billing_endpoint("Failed to process bulk outflow")
def bulk_outflow_route():
    """
    Withdraw bags of one commodity across a customer's open records, oldest first.

    Request body:
    {
        "customer_id": 3,
        "commodity": "Wheat",
        "total_bags": 250,
        "withdrawal_date": "2024-03-01",
        "final_rent_paise": 900000,        (client estimate; server rent is authoritative)
        "amount_paid_now_paise": 500000,   (optional)
        "record_ids": [12, 15],            (optional subset)
        "send_sms": true                   (optional)
    }

    Returns:
        200: Batch applied
        400: Invalid input
        409: Insufficient stock (nothing changed)
        500: Batch failed (nothing changed)
    """
    data = get_json_payload(request)
    require_fields(data, "customer_id", "commodity", "total_bags", "withdrawal_date")

    record_ids = data.get("record_ids")
    if record_ids is not None:
        if not isinstance(record_ids, list):
            return error_response("record_ids must be a list", 400)
        record_ids = [coerce_int("record_ids", rid) for rid in record_ids]

    result = bulk_outflow_service.process_bulk_outflow(
        warehouse_id=g.warehouse_id,
        customer_id=coerce_int("customer_id", data["customer_id"]),
        commodity=str(data["commodity"]),
        total_bags=coerce_int("total_bags", data["total_bags"]),
        withdrawal_date=coerce_date("withdrawal_date", data["withdrawal_date"]),
        amount_paid_now_paise=_optional_amount(data, "amount_paid_now_paise") or 0,
        record_ids=record_ids,
        final_rent_paise=_optional_amount(data, "final_rent_paise"),
        send_sms=coerce_bool("send_sms", data.get("send_sms")),
    )

    return jsonify({
        "success": True,
        "message": f"Successfully processed {result.processed_count} records",
        "data": result.to_dict(),
    }), 200
