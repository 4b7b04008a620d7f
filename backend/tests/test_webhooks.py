# Overview: Pytest coverage for the payment-captured webhook (signature, dedup, SMS).

import hashlib
import hmac
import json

import pytest

from app.models import Payment


SECRET = "test-webhook-secret"
URL = "/api/webhooks/payment-captured"


def _signed(payload: dict, secret: str = SECRET):
    body = json.dumps(payload).encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return body, {"Content-Type": "application/json", "X-Payment-Signature": signature}


def _captured(record_id, payment_id="pay_29QQoUBi66xm2f", amount=150000):
    return {
        "event": "payment.captured",
        "payload": {"payment": {"entity": {
            "id": payment_id,
            "amount": amount,
            "method": "upi",
            "notes": {"record_id": record_id},
        }}},
    }


@pytest.fixture
def owing_record(make_record):
    return make_record(10, hamali_payable_paise=200000)


class TestSignature:

    def test_missing_signature_rejected(self, client, db_session, owing_record):
        resp = client.post(URL, data=json.dumps(_captured(owing_record.id)), content_type="application/json")
        assert resp.status_code == 401
        assert db_session.query(Payment).count() == 0

    def test_wrong_secret_rejected(self, client, db_session, owing_record):
        body, headers = _signed(_captured(owing_record.id), secret="guess")
        assert client.post(URL, data=body, headers=headers).status_code == 401

    def test_unconfigured_secret_rejects_everything(self, app, client, db_session, owing_record, monkeypatch):
        monkeypatch.setitem(app.config, "PAYMENT_WEBHOOK_SECRET", "")
        body, headers = _signed(_captured(owing_record.id))
        assert client.post(URL, data=body, headers=headers).status_code == 401


class TestCapture:

    def test_capture_records_payment_once(self, client, db_session, owing_record, customer, sms_outbox):
        body, headers = _signed(_captured(owing_record.id))

        first = client.post(URL, data=body, headers=headers)
        second = client.post(URL, data=body, headers=headers)

        assert first.status_code == 200
        assert first.get_json()["message"] == "Payment recorded"
        assert second.status_code == 200
        assert second.get_json()["message"] == "Payment already processed"

        payments = db_session.query(Payment).all()
        assert len(payments) == 1
        assert payments[0].amount_paise == 150000
        assert payments[0].payment_method == "upi"
        assert payments[0].external_payment_id == "pay_29QQoUBi66xm2f"
        assert len(sms_outbox) == 1

    def test_other_events_ignored(self, client, db_session, owing_record):
        body, headers = _signed({"event": "payment.failed", "payload": {}})

        resp = client.post(URL, data=body, headers=headers)

        assert resp.status_code == 200
        assert resp.get_json()["message"] == "Event ignored"
        assert db_session.query(Payment).count() == 0

    def test_missing_record_id_is_400(self, client, db_session, owing_record):
        payload = _captured(owing_record.id)
        payload["payload"]["payment"]["entity"]["notes"] = {}
        body, headers = _signed(payload)
        assert client.post(URL, data=body, headers=headers).status_code == 400

    def test_unknown_record_is_404(self, client, db_session, owing_record):
        body, headers = _signed(_captured(99999))
        assert client.post(URL, data=body, headers=headers).status_code == 404
