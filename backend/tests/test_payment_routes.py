# Overview: Pytest coverage for the payments API (status codes, warehouse context, bodies).

from datetime import date

import pytest

from app.models import Payment


@pytest.fixture
def owing_record(make_record):
    return make_record(10, date(2024, 1, 1), hamali_payable_paise=100000)


class TestWarehouseContext:

    def test_missing_header_rejected(self, client, db_session, owing_record):
        resp = client.get(f"/api/payments/pending/{owing_record.customer_id}")
        assert resp.status_code == 400
        assert resp.get_json()["success"] is False

    def test_unknown_warehouse_rejected(self, client, db_session, owing_record):
        resp = client.get(
            f"/api/payments/pending/{owing_record.customer_id}",
            headers={"X-Warehouse-Id": "9999"},
        )
        assert resp.status_code == 404

    def test_record_of_other_warehouse_is_not_found(self, client, db_session, owing_record, other_warehouse):
        resp = client.post(
            "/api/payments",
            json={"record_id": owing_record.id, "amount_paise": 100, "payment_date": "2024-03-01"},
            headers={"X-Warehouse-Id": str(other_warehouse.id)},
        )
        assert resp.status_code == 404
        assert db_session.query(Payment).count() == 0


class TestAddPaymentRoute:

    def test_add_payment(self, client, db_session, headers, owing_record):
        resp = client.post(
            "/api/payments",
            json={"record_id": owing_record.id, "amount_paise": 40000, "payment_date": "2024-03-01"},
            headers=headers,
        )

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["success"] is True
        assert body["data"]["payment"]["amount_paise"] == 40000

    def test_missing_fields(self, client, db_session, headers, owing_record):
        resp = client.post("/api/payments", json={"record_id": owing_record.id}, headers=headers)
        assert resp.status_code == 400
        assert "amount_paise" in resp.get_json()["message"]

    def test_decimal_amount_rejected(self, client, db_session, headers, owing_record):
        resp = client.post(
            "/api/payments",
            json={"record_id": owing_record.id, "amount_paise": 10.5, "payment_date": "2024-03-01"},
            headers=headers,
        )
        assert resp.status_code == 400

    def test_bad_date_rejected(self, client, db_session, headers, owing_record):
        resp = client.post(
            "/api/payments",
            json={"record_id": owing_record.id, "amount_paise": 100, "payment_date": "March 1st"},
            headers=headers,
        )
        assert resp.status_code == 400


class TestEditPaymentRoutes:

    def _add(self, client, headers, record):
        resp = client.post(
            "/api/payments",
            json={"record_id": record.id, "amount_paise": 40000, "payment_date": "2024-03-01"},
            headers=headers,
        )
        return resp.get_json()["data"]["payment"]["id"]

    def test_patch_payment(self, client, db_session, headers, owing_record):
        payment_id = self._add(client, headers, owing_record)

        resp = client.patch(f"/api/payments/{payment_id}", json={"amount_paise": 45000}, headers=headers)

        assert resp.status_code == 200
        assert resp.get_json()["data"]["amount_paise"] == 45000

    def test_patch_rejects_non_writable_field(self, client, db_session, headers, owing_record):
        payment_id = self._add(client, headers, owing_record)
        resp = client.patch(f"/api/payments/{payment_id}", json={"record_id": 5}, headers=headers)
        assert resp.status_code == 400

    def test_delete_then_patch_is_404(self, client, db_session, headers, owing_record):
        payment_id = self._add(client, headers, owing_record)

        assert client.delete(f"/api/payments/{payment_id}", headers=headers).status_code == 200
        resp = client.patch(f"/api/payments/{payment_id}", json={"notes": "x"}, headers=headers)

        assert resp.status_code == 404
        db_session.expire_all()
        assert db_session.get(Payment, payment_id).deleted_at is not None


class TestPendingAndBulkRoutes:

    def test_pending_lists_dues(self, client, db_session, headers, make_record, customer):
        make_record(10, date(2024, 1, 1), hamali_payable_paise=100000)
        make_record(10, date(2024, 2, 1), hamali_payable_paise=200000)

        resp = client.get(f"/api/payments/pending/{customer.id}", headers=headers)

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert [r["total_due_paise"] for r in data["records"]] == [100000, 200000]
        assert data["total_due_paise"] == 300000

    def test_bulk_fifo(self, client, db_session, headers, make_record, customer):
        a = make_record(10, date(2024, 1, 1), hamali_payable_paise=100000)
        b = make_record(10, date(2024, 2, 1), hamali_payable_paise=200000)

        resp = client.post(
            "/api/payments/bulk",
            json={
                "customer_id": customer.id,
                "total_amount_paise": 150000,
                "payment_date": "2024-03-01",
                "strategy": "FIFO",
            },
            headers=headers,
        )

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["records_updated"] == 2
        assert [(x["record_id"], x["amount_paise"]) for x in data["allocations"]] == [(a.id, 100000), (b.id, 50000)]

    def test_bulk_manual_mismatch_is_400(self, client, db_session, headers, owing_record, customer):
        resp = client.post(
            "/api/payments/bulk",
            json={
                "customer_id": customer.id,
                "total_amount_paise": 50000,
                "payment_date": "2024-03-01",
                "strategy": "manual",
                "manual_allocations": [{"record_id": owing_record.id, "amount_paise": 40000}],
            },
            headers=headers,
        )
        assert resp.status_code == 400
        assert db_session.query(Payment).count() == 0

    def test_bulk_without_dues_is_400(self, client, db_session, headers, make_record, customer):
        make_record()
        resp = client.post(
            "/api/payments/bulk",
            json={"customer_id": customer.id, "total_amount_paise": 100, "payment_date": "2024-03-01"},
            headers=headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "No pending dues found for this customer."


class TestRateLimit:

    def test_bulk_payment_limited_per_actor(self, app, client, db_session, headers, owing_record, customer, monkeypatch):
        monkeypatch.setitem(app.config["RATE_LIMITS"], "bulk_payment", 2)
        body = {"customer_id": customer.id, "total_amount_paise": 100, "payment_date": "2024-03-01"}

        statuses = [client.post("/api/payments/bulk", json=body, headers=headers).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]

    def test_other_actor_not_limited(self, app, client, db_session, headers, owing_record, customer, monkeypatch):
        monkeypatch.setitem(app.config["RATE_LIMITS"], "bulk_payment", 1)
        body = {"customer_id": customer.id, "total_amount_paise": 100, "payment_date": "2024-03-01"}

        client.post("/api/payments/bulk", json=body, headers=headers)
        other = dict(headers, **{"X-Actor-Id": "staff-2"})

        assert client.post("/api/payments/bulk", json=body, headers=other).status_code == 200
