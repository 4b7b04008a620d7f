from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Crop(db.Model):
    """
    Commodity configuration for a warehouse.

    Rent thresholds and rates come from the crop's rate tiers, never from code.
    """
    __tablename__ = "crops"
    __table_args__ = (
        db.UniqueConstraint("warehouse_id", "name", name="uq_crops_warehouse_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    warehouse = db.relationship("Warehouse", backref=db.backref("crops", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "name": self.name,
            "rate_tiers": [t.to_dict() for t in sorted(self.rate_tiers, key=lambda t: t.max_days)],
            "created_at": to_utc_z(self.created_at),
        }


class CropRateTier(db.Model):
    """
    One duration tier of a crop's rent table.

    TIER SELECTION: a record stored for D days is billed at the first tier
    (ordered by max_days) with D <= max_days. The label doubles as the
    record's billing cycle (e.g. "6-Month Initial", "1-Year").
    """
    __tablename__ = "crop_rate_tiers"
    __table_args__ = (
        db.UniqueConstraint("crop_id", "max_days", name="uq_crop_rate_tiers_crop_days"),
        db.CheckConstraint("max_days > 0", name="ck_crop_rate_tiers_max_days_positive"),
        db.CheckConstraint("rate_paise >= 0", name="ck_crop_rate_tiers_rate_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    crop_id = db.Column(db.Integer, db.ForeignKey("crops.id"), nullable=False, index=True)

    label = db.Column(db.String(64), nullable=False)
    max_days = db.Column(db.Integer, nullable=False)

    # Per-bag rate for one cycle of this tier (in paise)
    rate_paise = db.Column(db.Integer, nullable=False)

    crop = db.relationship("Crop", backref=db.backref("rate_tiers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "crop_id": self.crop_id,
            "label": self.label,
            "max_days": self.max_days,
            "rate_paise": self.rate_paise,
        }
