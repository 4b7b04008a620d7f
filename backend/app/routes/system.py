# backend/app/routes/system.py
"""
System health and version endpoints.

Provides health checks for the database and version information for
deployment debugging.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Crop, CropRateTier, StorageRecord, Warehouse
from app.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        warehouse_count = db.session.query(Warehouse).count()
        open_records = db.session.query(StorageRecord).filter(
            StorageRecord.storage_end_date.is_(None),
            StorageRecord.deleted_at.is_(None),
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "warehouses": warehouse_count,
                "open_records": open_records,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_rate_tables_health() -> dict:
    """
    Rent cannot be billed for a crop without rate tiers; report such crops.
    """
    start_time = time.time()
    try:
        crops_without_tiers = (
            db.session.query(Crop)
            .filter(~Crop.id.in_(db.select(CropRateTier.crop_id)))
            .count()
        )
        elapsed_ms = (time.time() - start_time) * 1000

        if crops_without_tiers:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": f"{crops_without_tiers} crop(s) have no rate tiers",
            }
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Rate table health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Rate table error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: All systems healthy (or degraded but operational)
    - 503: One or more systems unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    rates_health = check_rate_tables_health()

    all_checks = [database_health, rates_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "rate_tables": rates_health,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging.

    Does NOT expose secret keys, database credentials or internal paths.
    """
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
