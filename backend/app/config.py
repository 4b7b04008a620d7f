# backend/app/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/godown.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///godown.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Fixed-window rate limiting per (identity, action)
    RATE_LIMIT_WINDOW_SECONDS = int(os.environ.get("RATE_LIMIT_WINDOW_SECONDS", "60"))
    RATE_LIMITS = {
        "add_payment": 10,
        "update_payment": 20,
        "delete_payment": 10,
        "bulk_payment": 5,
        "add_outflow": 10,
        "update_outflow": 10,
        "delete_outflow": 10,
        "bulk_outflow": 5,
    }

    # SMS hook: callable(to, message). None disables delivery.
    SMS_ENABLED = os.environ.get("SMS_ENABLED", "false").lower() == "true"
    SMS_DISPATCHER = None

    # Shared secret for the external payment-capture webhook signature
    PAYMENT_WEBHOOK_SECRET = os.environ.get("PAYMENT_WEBHOOK_SECRET", "")

    BUSINESS_NAME = os.environ.get("BUSINESS_NAME", "GrainFlow")

    # Browser origins allowed to call the API (local frontend dev servers)
    CORS_ALLOWED_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    }
