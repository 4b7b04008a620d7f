from __future__ import annotations

from ..extensions import db


class InvoiceSequence(db.Model):
    """
    Atomic per-warehouse number sequences.

    WHY: Prevent race conditions when generating record numbers and
    inflow/outflow invoice numbers.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.UniqueConstraint("warehouse_id", "sequence_type", name="uq_invoice_sequences_warehouse_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    sequence_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    warehouse = db.relationship("Warehouse", backref=db.backref("invoice_sequences", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "sequence_type": self.sequence_type,
            "next_number": self.next_number,
        }
