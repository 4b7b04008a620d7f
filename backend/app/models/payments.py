from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date


class Payment(db.Model):
    """
    Money received against a storage record.

    PAYMENT TYPES:
    - rent: storage rent (counts against total_rent_billed)
    - hamali: handling charge (counts against hamali_payable)
    - advance / security_deposit / other: recorded, not counted as dues paid

    DESIGN: One lump payment is split into one Payment row per record it was
    allocated to. Corrections soft-delete (deleted_at); deleted payments are
    excluded from every dues total.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_customer_date", "customer_id", "payment_date"),
        db.UniqueConstraint("external_payment_id", name="uq_payments_external_payment_id"),
        db.CheckConstraint("amount_paise > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer, db.ForeignKey("storage_records.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    # Amount received (in paise)
    amount_paise = db.Column(db.Integer, nullable=False)

    payment_date = db.Column(db.Date, nullable=False)
    payment_type = db.Column(db.String(32), nullable=False, default="rent", index=True)
    payment_method = db.Column(db.String(32), nullable=False, default="cash")
    notes = db.Column(db.String(255), nullable=True)

    # Gateway payment id for externally captured payments (dedup key)
    external_payment_id = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    record = db.relationship("StorageRecord", backref=db.backref("payments", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "record_id": self.record_id,
            "customer_id": self.customer_id,
            "warehouse_id": self.warehouse_id,
            "amount_paise": self.amount_paise,
            "payment_date": to_iso_date(self.payment_date),
            "payment_type": self.payment_type,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "external_payment_id": self.external_payment_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "version_id": self.version_id,
        }
