# Overview: Payment gateway webhook; records captured online payments exactly once.

import hashlib
import hmac
import json

from flask import Blueprint, request, jsonify, current_app

from ..decorators import billing_endpoint, error_response
from ..services import payment_service
from ..validation import coerce_amount, coerce_int
from app.time_utils import today


webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")

SIGNATURE_HEADER = "X-Payment-Signature"


def verify_signature(body: bytes, signature: str | None, secret: str | None) -> bool:
    """HMAC-SHA256 of the raw body, hex encoded. No secret configured means no webhook is trusted."""
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


@webhooks_bp.post("/payment-captured")
@billing_endpoint("Webhook processing failed")
def payment_captured_route():
    """
    Gateway callback for captured payments.

    Body:
    {
        "event": "payment.captured",
        "payload": {"payment": {"entity": {
            "id": "pay_29QQoUBi66xm2f",
            "amount": 150000,                 (paise)
            "method": "upi",
            "notes": {"record_id": 12}
        }}}
    }

    Other events are acknowledged and ignored. Redelivered captures are
    acknowledged without writing a second payment.
    """
    body = request.get_data()
    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), current_app.config.get("PAYMENT_WEBHOOK_SECRET")):
        current_app.logger.warning("Rejected webhook with invalid signature")
        return error_response("Invalid signature", 401)

    try:
        data = json.loads(body or b"{}")
    except ValueError:
        return error_response("Invalid JSON payload", 400)

    event = data.get("event")
    if event != "payment.captured":
        current_app.logger.info("Unhandled webhook event: %s", event)
        return jsonify({"success": True, "message": "Event ignored"}), 200

    entity = (((data.get("payload") or {}).get("payment") or {}).get("entity")) or {}
    notes = entity.get("notes") or {}
    if not entity.get("id") or notes.get("record_id") is None:
        return error_response("Payment id and record_id are required", 400)

    result = payment_service.capture_external_payment(
        external_payment_id=str(entity["id"]),
        record_id=coerce_int("record_id", notes["record_id"]),
        amount_paise=coerce_amount("amount", entity.get("amount")),
        payment_date=today(),
        payment_method=entity.get("method") or "online",
    )

    return jsonify({
        "success": True,
        "message": "Payment already processed" if result["duplicate"] else "Payment recorded",
        "data": result["payment"],
    }), 200
