from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date


class StorageRecord(db.Model):
    """
    One deposit batch of a customer's commodity (inflow).

    INVARIANTS:
    - bags_stored + bags_out == bags_in
    - storage_end_date is set exactly when bags_stored == 0
    - total_rent_billed_paise only moves through the impact calculators
      (app.services.impact_service), never by direct edit

    Soft-deleted only (deleted_at) to keep the audit trail.
    """
    __tablename__ = "storage_records"
    __table_args__ = (
        db.UniqueConstraint("warehouse_id", "record_number", name="uq_storage_records_warehouse_number"),
        # FIFO selection of open records per customer/commodity
        db.Index("ix_storage_records_customer_commodity_start", "customer_id", "commodity", "storage_start_date"),
        db.CheckConstraint("bags_stored >= 0", name="ck_storage_records_bags_stored_nonneg"),
        db.CheckConstraint("bags_out >= 0", name="ck_storage_records_bags_out_nonneg"),
        db.CheckConstraint("bags_stored + bags_out = bags_in", name="ck_storage_records_bag_balance"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    crop_id = db.Column(db.Integer, db.ForeignKey("crops.id"), nullable=False, index=True)

    # Human-readable per-warehouse number
    record_number = db.Column(db.Integer, nullable=False)

    commodity = db.Column(db.String(255), nullable=False)
    lot_id = db.Column(db.String(64), nullable=True)

    # Bag accounting
    bags_in = db.Column(db.Integer, nullable=False)
    bags_stored = db.Column(db.Integer, nullable=False)
    bags_out = db.Column(db.Integer, nullable=False, default=0)

    # Billing (all amounts in paise)
    total_rent_billed_paise = db.Column(db.Integer, nullable=False, default=0)
    hamali_payable_paise = db.Column(db.Integer, nullable=False, default=0)
    billing_cycle = db.Column(db.String(64), nullable=True)

    storage_start_date = db.Column(db.Date, nullable=False, index=True)
    storage_end_date = db.Column(db.Date, nullable=True, index=True)  # NULL = open

    inflow_invoice_no = db.Column(db.String(64), nullable=True)
    outflow_invoice_no = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    warehouse = db.relationship("Warehouse", backref=db.backref("storage_records", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("storage_records", lazy=True))
    crop = db.relationship("Crop", backref=db.backref("storage_records", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.storage_end_date is None

    def __repr__(self) -> str:
        return (
            f"<StorageRecord id={self.id} number={self.record_number} "
            f"stored={self.bags_stored} out={self.bags_out} in={self.bags_in}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "customer_id": self.customer_id,
            "crop_id": self.crop_id,
            "record_number": self.record_number,
            "commodity": self.commodity,
            "lot_id": self.lot_id,
            "bags_in": self.bags_in,
            "bags_stored": self.bags_stored,
            "bags_out": self.bags_out,
            "total_rent_billed_paise": self.total_rent_billed_paise,
            "hamali_payable_paise": self.hamali_payable_paise,
            "billing_cycle": self.billing_cycle,
            "storage_start_date": to_iso_date(self.storage_start_date),
            "storage_end_date": to_iso_date(self.storage_end_date),
            "inflow_invoice_no": self.inflow_invoice_no,
            "outflow_invoice_no": self.outflow_invoice_no,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "version_id": self.version_id,
        }


class WithdrawalTransaction(db.Model):
    """
    Append-only ledger of withdrawals.

    ENTRY TYPES:
    - OUTFLOW: bags left the record; rent/hamali were billed
    - REVERSAL: undoes one OUTFLOW row (negative quantities, points at it)

    An OUTFLOW row is active while no REVERSAL row points at it. Editing a
    withdrawal appends a REVERSAL plus a new OUTFLOW; rows are never updated
    or deleted. Reversals and edits read bags/rent from here, never recompute.
    """
    __tablename__ = "withdrawal_transactions"
    __table_args__ = (
        db.Index("ix_withdrawal_txns_record_date", "record_id", "withdrawal_date"),
        db.UniqueConstraint("reverses_transaction_id", name="uq_withdrawal_txns_reverses"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer, db.ForeignKey("storage_records.id"), nullable=False, index=True)

    entry_type = db.Column(db.String(16), nullable=False, default="OUTFLOW", index=True)  # OUTFLOW, REVERSAL

    # Positive for outflows, negative for reversals
    bags_withdrawn = db.Column(db.Integer, nullable=False)
    rent_collected_paise = db.Column(db.Integer, nullable=False, default=0)
    hamali_charged_paise = db.Column(db.Integer, nullable=False, default=0)

    withdrawal_date = db.Column(db.Date, nullable=False)
    invoice_number = db.Column(db.String(64), nullable=True)

    reverses_transaction_id = db.Column(db.Integer, db.ForeignKey("withdrawal_transactions.id"), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    record = db.relationship("StorageRecord", backref=db.backref("withdrawals", lazy=True))
    reverses = db.relationship("WithdrawalTransaction", remote_side=[id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "record_id": self.record_id,
            "entry_type": self.entry_type,
            "bags_withdrawn": self.bags_withdrawn,
            "rent_collected_paise": self.rent_collected_paise,
            "hamali_charged_paise": self.hamali_charged_paise,
            "withdrawal_date": to_iso_date(self.withdrawal_date),
            "invoice_number": self.invoice_number,
            "reverses_transaction_id": self.reverses_transaction_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
