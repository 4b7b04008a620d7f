# Overview: Best-effort notifications (in-app rows and SMS) after financial writes.

"""
Notification Hook

WHY: Staff want an activity feed and customers want an SMS after payments
and withdrawals, but a failed notification must never undo the money
movement that triggered it.

CONTRACT:
- Called only after the financial transaction has committed.
- Every failure is logged and swallowed; callers never see an exception.
- SMS goes through app.config["SMS_DISPATCHER"], a callable(to, message).
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Customer, Notification


def create_notification(
    *,
    warehouse_id: int | None,
    title: str,
    message: str,
    level: str = "info",
    link: str | None = None,
) -> Notification | None:
    """Insert an in-app notification in its own transaction. Returns None on failure."""
    try:
        notification = Notification(
            warehouse_id=warehouse_id,
            title=title,
            message=message,
            level=level,
            link=link,
        )
        db.session.add(notification)
        db.session.commit()
        return notification
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create notification %r", title)
        return None


def send_sms(to: str | None, message: str) -> bool:
    """
    Dispatch one SMS through the configured dispatcher.

    Returns True when handed to the dispatcher, False when skipped or failed.
    """
    if not to:
        current_app.logger.warning("Skipping SMS: no phone number")
        return False
    if not current_app.config.get("SMS_ENABLED"):
        return False
    dispatcher = current_app.config.get("SMS_DISPATCHER")
    if dispatcher is None:
        current_app.logger.warning("Skipping SMS: no dispatcher configured")
        return False

    try:
        dispatcher(to, message)
        return True
    except Exception:
        current_app.logger.exception("SMS dispatch failed")
        return False


def notify_customer_sms(customer_id: int, message: str) -> bool:
    customer = db.session.get(Customer, customer_id)
    if not customer or not customer.phone:
        current_app.logger.warning("Skipping SMS: customer %s has no phone", customer_id)
        return False
    return send_sms(customer.phone, message)


def format_rupees(paise: int) -> str:
    """12345 -> 'Rs.123.45', 12300 -> 'Rs.123'"""
    rupees, rem = divmod(int(paise), 100)
    if rem:
        return f"Rs.{rupees:,}.{rem:02d}"
    return f"Rs.{rupees:,}"
