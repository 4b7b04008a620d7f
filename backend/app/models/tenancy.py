from __future__ import annotations

import re

from ..extensions import db
from app.time_utils import to_utc_z


def derive_warehouse_code(name: str | None) -> str:
    """
    Short invoice prefix derived from a warehouse name.

    "Bangalore Main" -> "BAMA", "Warehouse" -> "WARE", "" -> "WH"
    """
    if not name:
        return "WH"
    clean = re.sub(r"[^a-zA-Z0-9 ]", "", name).upper()
    words = [w for w in clean.split(" ") if w]
    if not words:
        return "WH"
    if len(words) == 1:
        return words[0][:4]
    return words[0][:2] + words[1][:2]


class Warehouse(db.Model):
    """
    A storage facility (tenant boundary for records, sequences and payments).

    Warehouse CRUD lives outside the billing engine; this model only carries
    what billing needs (name and the invoice prefix).
    """
    __tablename__ = "warehouses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Invoice prefix; derived from the name when not set
    code = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def invoice_prefix(self) -> str:
        return self.code or derive_warehouse_code(self.name)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.invoice_prefix,
            "created_at": to_utc_z(self.created_at),
        }
