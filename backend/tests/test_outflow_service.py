# Overview: Pytest coverage for single-record outflows, edits and reversals.

from datetime import date

import pytest

from app.errors import NotFoundError, OverdraftAttemptError, ValidationError
from app.models import Notification, Payment, StorageRecord, WithdrawalTransaction
from app.services import outflow_service, storage_service
from app.services.ledger_service import ENTRY_OUTFLOW, ENTRY_REVERSAL


class TestAddOutflow:

    def test_rent_computed_from_tiers(self, db_session, make_record):
        record = make_record(100, date(2024, 1, 1))

        result = outflow_service.add_outflow(record.id, 40, date(2024, 3, 1))

        assert result["transaction"]["rent_collected_paise"] == 40 * 3600
        assert result["rent"]["tier"] == "6-Month Initial"
        assert result["record"]["bags_stored"] == 60
        assert result["record"]["storage_end_date"] is None

    def test_agreed_rent_used_when_given(self, db_session, make_record):
        record = make_record(100)
        result = outflow_service.add_outflow(record.id, 10, date(2024, 3, 1), final_rent_paise=12345)

        assert result["transaction"]["rent_collected_paise"] == 12345
        assert result["rent"] is None
        assert db_session.get(StorageRecord, record.id).total_rent_billed_paise == 12345

    def test_closing_withdrawal_assigns_invoice(self, db_session, make_record):
        record = make_record(20)
        result = outflow_service.add_outflow(record.id, 20, date(2024, 3, 1))

        assert result["record"]["storage_end_date"] == "2024-03-01"
        assert result["record"]["outflow_invoice_no"] == "MAIN-OUT-1001"
        assert result["transaction"]["invoice_number"] == "MAIN-OUT-1001"

    def test_payment_at_gate_recorded(self, db_session, make_record):
        record = make_record(100)
        result = outflow_service.add_outflow(record.id, 10, date(2024, 3, 1), amount_paid_now_paise=20000)

        assert result["payment"]["amount_paise"] == 20000
        assert db_session.query(Payment).filter_by(record_id=record.id).count() == 1

    def test_overdraft_rejected_and_nothing_written(self, db_session, make_record):
        record = make_record(10)

        with pytest.raises(OverdraftAttemptError):
            outflow_service.add_outflow(record.id, 11, date(2024, 3, 1))

        db_session.expire_all()
        assert db_session.get(StorageRecord, record.id).bags_stored == 10
        assert db_session.query(WithdrawalTransaction).count() == 0

    def test_notification_created(self, db_session, make_record):
        record = make_record(100)
        outflow_service.add_outflow(record.id, 5, date(2024, 3, 1))

        note = db_session.query(Notification).one()
        assert note.title == "Outflow Recorded"
        assert "5 bags of Wheat" in note.message

    def test_sms_sent_when_requested(self, db_session, make_record, customer, sms_outbox):
        record = make_record(100)
        outflow_service.add_outflow(record.id, 5, date(2024, 3, 1), send_sms=True)

        assert len(sms_outbox) == 1
        to, message = sms_outbox[0]
        assert to == customer.phone
        assert "Withdrawn: 5 bags" in message

    def test_failed_sms_does_not_fail_outflow(self, app, db_session, make_record, sms_outbox):
        def broken(to, message):
            raise RuntimeError("gateway down")

        app.config["SMS_DISPATCHER"] = broken
        record = make_record(100)

        result = outflow_service.add_outflow(record.id, 5, date(2024, 3, 1), send_sms=True)

        assert result["record"]["bags_stored"] == 95

    def test_record_of_other_warehouse_not_found(self, db_session, make_record, other_warehouse):
        record = make_record(100)
        with pytest.raises(NotFoundError):
            outflow_service.add_outflow(record.id, 5, date(2024, 3, 1), warehouse_id=other_warehouse.id)


class TestDeleteOutflow:

    def test_reversal_restores_record(self, db_session, make_record):
        record = make_record(100)
        before = storage_service.get_storage_record(record.id).to_dict()
        added = outflow_service.add_outflow(record.id, 100, date(2024, 3, 1))

        result = outflow_service.delete_outflow(added["transaction"]["id"])

        after = result["record"]
        for key in ("bags_stored", "bags_out", "total_rent_billed_paise", "storage_end_date", "billing_cycle"):
            assert after[key] == before[key]

    def test_reversal_appends_instead_of_deleting(self, db_session, make_record):
        record = make_record(100)
        added = outflow_service.add_outflow(record.id, 30, date(2024, 3, 1))
        txn_id = added["transaction"]["id"]

        outflow_service.delete_outflow(txn_id)

        rows = db_session.query(WithdrawalTransaction).order_by(WithdrawalTransaction.id).all()
        assert [r.entry_type for r in rows] == [ENTRY_OUTFLOW, ENTRY_REVERSAL]
        assert rows[1].reverses_transaction_id == txn_id
        assert rows[1].bags_withdrawn == -30
        assert storage_service.get_active_withdrawals(record.id) == []

    def test_cannot_reverse_twice(self, db_session, make_record):
        record = make_record(100)
        added = outflow_service.add_outflow(record.id, 30, date(2024, 3, 1))
        outflow_service.delete_outflow(added["transaction"]["id"])

        with pytest.raises(NotFoundError):
            outflow_service.delete_outflow(added["transaction"]["id"])

    def test_unknown_transaction(self, db_session):
        with pytest.raises(NotFoundError):
            outflow_service.delete_outflow(9999)


class TestUpdateOutflow:

    def test_edit_appends_reversal_and_replacement(self, db_session, make_record):
        record = make_record(100)
        added = outflow_service.add_outflow(record.id, 40, date(2024, 3, 1))

        result = outflow_service.update_outflow(
            added["transaction"]["id"],
            bags_withdrawn=50,
            rent_paise=180000,
            withdrawal_date=date(2024, 3, 2),
        )

        assert result["record"]["bags_stored"] == 50
        assert result["record"]["total_rent_billed_paise"] == 180000
        assert result["reversal"]["reverses_transaction_id"] == added["transaction"]["id"]
        assert result["transaction"]["bags_withdrawn"] == 50

        active = storage_service.get_active_withdrawals(record.id)
        assert [t.id for t in active] == [result["transaction"]["id"]]

    def test_edit_beyond_stock_rejected(self, db_session, make_record):
        record = make_record(100)
        added = outflow_service.add_outflow(record.id, 40, date(2024, 3, 1))

        with pytest.raises(OverdraftAttemptError):
            outflow_service.update_outflow(
                added["transaction"]["id"], bags_withdrawn=101, rent_paise=0, withdrawal_date=date(2024, 3, 1)
            )

        assert db_session.query(WithdrawalTransaction).count() == 1

    def test_edit_needs_positive_bags(self, db_session, make_record):
        record = make_record(100)
        added = outflow_service.add_outflow(record.id, 40, date(2024, 3, 1))

        with pytest.raises(ValidationError):
            outflow_service.update_outflow(
                added["transaction"]["id"], bags_withdrawn=0, rent_paise=0, withdrawal_date=date(2024, 3, 1)
            )

    def test_rent_edit_of_earlier_withdrawal_keeps_end_date(self, db_session, make_record):
        record = make_record(100)
        first = outflow_service.add_outflow(record.id, 40, date(2024, 1, 10))
        outflow_service.add_outflow(record.id, 60, date(2024, 2, 10))

        result = outflow_service.update_outflow(
            first["transaction"]["id"],
            bags_withdrawn=40,
            rent_paise=first["transaction"]["rent_collected_paise"] + 5000,
            withdrawal_date=date(2024, 1, 10),
        )

        assert result["record"]["bags_stored"] == 0
        assert result["record"]["storage_end_date"] == "2024-02-10"
        db_session.expire_all()
        assert db_session.get(StorageRecord, record.id).storage_end_date == date(2024, 2, 10)

    def test_moving_closing_withdrawal_earlier_moves_end_date(self, db_session, make_record):
        record = make_record(100)
        added = outflow_service.add_outflow(record.id, 100, date(2024, 2, 10))

        result = outflow_service.update_outflow(
            added["transaction"]["id"],
            bags_withdrawn=100,
            rent_paise=added["transaction"]["rent_collected_paise"],
            withdrawal_date=date(2024, 2, 1),
        )

        assert result["record"]["storage_end_date"] == "2024-02-01"
