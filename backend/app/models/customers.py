from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Customer(db.Model):
    """
    Farmer / trader who deposits bags in a warehouse.

    Soft-deleted only (deleted_at); storage records keep pointing at it.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_warehouse_name", "warehouse_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    warehouse = db.relationship("Warehouse", backref=db.backref("customers", lazy=True))

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r} warehouse_id={self.warehouse_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "name": self.name,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
        }
