from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class RateLimitEvent(db.Model):
    """
    One gated call to a mutating entry point.

    WHY: Rate limits are counted from these rows inside a time window, so
    they hold across worker processes sharing the database.

    IMMUTABLE: Append-only; old rows are pruned by the maintenance CLI.
    """
    __tablename__ = "rate_limit_events"
    __table_args__ = (
        db.Index("ix_rate_limit_events_identity_action_occurred", "identity", "action", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    identity = db.Column(db.String(128), nullable=False)
    action = db.Column(db.String(64), nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "identity": self.identity,
            "action": self.action,
            "occurred_at": to_utc_z(self.occurred_at),
        }
