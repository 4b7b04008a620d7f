from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Notification(db.Model):
    """In-app activity notification (payment received, outflow recorded, ...)."""
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_warehouse_created", "warehouse_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)

    title = db.Column(db.String(128), nullable=False)
    message = db.Column(db.Text, nullable=False)
    level = db.Column(db.String(16), nullable=False, default="info")  # info, warning, error
    link = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "title": self.title,
            "message": self.message,
            "level": self.level,
            "link": self.link,
            "created_at": to_utc_z(self.created_at),
        }
