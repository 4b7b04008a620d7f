# Overview: Pytest coverage for multi-record FIFO withdrawals.

"""
Bulk Outflow Tests

Three 100-bag wheat records dated Jan 1/2/3 2024 (three_records fixture);
every withdrawal below falls in the 6-month tier (Rs.36 per bag).
"""

from datetime import date, timedelta
from unittest.mock import patch

import pytest

from app.errors import InsufficientStockError, InvalidDateRangeError, NotFoundError, PersistenceError, ValidationError
from app.models import Payment, StorageRecord, WithdrawalTransaction
from app.services import bulk_outflow_service, ledger_service
from app.services.bulk_outflow_service import process_bulk_outflow
from app.services.storage_service import get_open_records


WITHDRAWAL_DATE = date(2024, 2, 1)


def _withdraw(warehouse, customer, bags, **kwargs):
    params = dict(
        warehouse_id=warehouse.id,
        customer_id=customer.id,
        commodity="Wheat",
        total_bags=bags,
        withdrawal_date=WITHDRAWAL_DATE,
    )
    params.update(kwargs)
    return process_bulk_outflow(**params)


def _state(db_session):
    db_session.expire_all()
    return [
        (r.bags_stored, r.bags_out, r.total_rent_billed_paise, r.storage_end_date)
        for r in db_session.query(StorageRecord).order_by(StorageRecord.id).all()
    ]


class TestFifoWithdrawal:

    def test_withdraw_250_closes_two_records(self, db_session, warehouse, customer, three_records):
        result = _withdraw(warehouse, customer, 250)

        r1, r2, r3 = [db_session.get(StorageRecord, r.id) for r in three_records]
        assert (r1.bags_stored, r1.storage_end_date) == (0, WITHDRAWAL_DATE)
        assert (r2.bags_stored, r2.storage_end_date) == (0, WITHDRAWAL_DATE)
        assert (r3.bags_stored, r3.storage_end_date) == (50, None)

        assert result.processed_count == 3
        assert [line.bags_withdrawn for line in result.lines] == [100, 100, 50]
        assert result.total_rent_paise == 250 * 3600

    def test_withdraw_remaining_50_closes_third(self, db_session, warehouse, customer, three_records):
        _withdraw(warehouse, customer, 250)
        result = _withdraw(warehouse, customer, 50)

        assert result.processed_count == 1
        r3 = db_session.get(StorageRecord, three_records[2].id)
        assert r3.bags_stored == 0
        assert r3.storage_end_date == WITHDRAWAL_DATE
        assert get_open_records(r3.customer_id, "Wheat") == []

    def test_request_beyond_stock_changes_nothing(self, db_session, warehouse, customer, three_records):
        _withdraw(warehouse, customer, 300)
        before = _state(db_session)
        ledger_rows = db_session.query(WithdrawalTransaction).count()

        with pytest.raises(InsufficientStockError):
            _withdraw(warehouse, customer, 10)

        assert _state(db_session) == before
        assert db_session.query(WithdrawalTransaction).count() == ledger_rows

    def test_partial_stock_shortfall_changes_nothing(self, db_session, warehouse, customer, three_records):
        before = _state(db_session)

        with pytest.raises(InsufficientStockError):
            _withdraw(warehouse, customer, 301)

        assert _state(db_session) == before

    def test_bag_balance_holds_for_every_record(self, db_session, warehouse, customer, three_records):
        _withdraw(warehouse, customer, 170)
        for record in db_session.query(StorageRecord).all():
            assert record.bags_stored + record.bags_out == record.bags_in
            assert (record.storage_end_date is not None) == (record.bags_stored == 0)

    def test_explicit_subset_still_fifo(self, db_session, warehouse, customer, three_records):
        r1, r2, r3 = three_records
        result = _withdraw(warehouse, customer, 150, record_ids=[r3.id, r2.id])

        assert [line.record_id for line in result.lines] == [r2.id, r3.id]
        assert db_session.get(StorageRecord, r1.id).bags_stored == 100

    def test_ledger_rows_and_invoices(self, db_session, warehouse, customer, three_records):
        result = _withdraw(warehouse, customer, 250)

        txns = [db_session.get(WithdrawalTransaction, tid) for tid in result.transaction_ids]
        assert [t.bags_withdrawn for t in txns] == [100, 100, 50]
        assert all(t.entry_type == ledger_service.ENTRY_OUTFLOW for t in txns)

        closed = [line for line in result.lines if line.closed]
        assert [line.invoice_number for line in closed] == ["MAIN-OUT-1001", "MAIN-OUT-1002"]
        assert result.lines[2].invoice_number is None


class TestPaymentAtGate:

    def test_payment_split_by_rent_and_conserved(self, db_session, warehouse, customer, three_records):
        result = _withdraw(warehouse, customer, 250, amount_paid_now_paise=100001)

        assert sum(line.payment_paise for line in result.lines) == 100001
        payments = db_session.query(Payment).order_by(Payment.record_id).all()
        assert sum(p.amount_paise for p in payments) == 100001
        # rent weights 100:100:50
        assert [p.amount_paise for p in payments] == [40001, 40000, 20000]

    def test_zero_rent_batch_pays_first_record(self, db_session, warehouse, customer, crop, three_records):
        for tier in crop.rate_tiers:
            tier.rate_paise = 0
        db_session.commit()

        result = _withdraw(warehouse, customer, 150, amount_paid_now_paise=5000)

        assert result.total_rent_paise == 0
        assert [line.payment_paise for line in result.lines] == [5000, 0]
        assert db_session.query(Payment).count() == 1

    def test_client_estimate_does_not_override_rent(self, db_session, warehouse, customer, three_records):
        result = _withdraw(warehouse, customer, 100, final_rent_paise=1)
        assert result.total_rent_paise == 100 * 3600


class TestValidation:

    def test_future_date_rejected(self, db_session, warehouse, customer, three_records):
        with pytest.raises(InvalidDateRangeError):
            _withdraw(warehouse, customer, 10, withdrawal_date=date.today() + timedelta(days=2))

    def test_date_before_storage_start_rolls_back(self, db_session, warehouse, customer, three_records):
        before = _state(db_session)
        with pytest.raises(InvalidDateRangeError):
            _withdraw(warehouse, customer, 150, withdrawal_date=date(2024, 1, 1))
        assert _state(db_session) == before

    def test_non_positive_bags_rejected(self, db_session, warehouse, customer, three_records):
        with pytest.raises(ValidationError):
            _withdraw(warehouse, customer, 0)

    def test_customer_of_other_warehouse_rejected(self, db_session, other_warehouse, customer, three_records):
        with pytest.raises(NotFoundError):
            _withdraw(other_warehouse, customer, 10)


class TestAtomicity:

    def test_failure_mid_batch_rolls_back_everything(self, db_session, warehouse, customer, three_records):
        """A write failing partway through the batch leaves every record untouched."""
        from sqlalchemy.exc import OperationalError

        before = _state(db_session)
        real_append = ledger_service.append_withdrawal
        calls = {"n": 0}

        def flaky_append(**kwargs):
            calls["n"] += 1
            if calls["n"] >= 3:
                raise OperationalError("INSERT", {}, Exception("disk I/O error"))
            return real_append(**kwargs)

        with patch.object(bulk_outflow_service.ledger_service, "append_withdrawal", side_effect=flaky_append):
            with pytest.raises(PersistenceError):
                _withdraw(warehouse, customer, 250)

        assert _state(db_session) == before
        assert db_session.query(WithdrawalTransaction).count() == 0
        assert db_session.query(Payment).count() == 0
