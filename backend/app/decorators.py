# Overview: Request decorators for API routes (warehouse context, rate limits, error mapping).

from functools import wraps
from flask import request, jsonify, g, current_app

from .errors import BillingError, RateLimitExceededError
from .extensions import db
from .models import Warehouse
from .services import rate_limit_service


def error_response(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


def require_warehouse(f):
    """
    Establish warehouse context from the X-Warehouse-Id header.

    Sets:
    - g.warehouse_id: the acting warehouse (services take it as a parameter)
    - g.actor_id: X-Actor-Id, or the client address when absent

    Returns 400 when the header is missing or not a number, 404 when the
    warehouse does not exist.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-Warehouse-Id")
        try:
            warehouse_id = int(raw)
        except (TypeError, ValueError):
            return error_response("X-Warehouse-Id header required", 400)

        if not db.session.get(Warehouse, warehouse_id):
            return error_response("Warehouse not found", 404)

        g.warehouse_id = warehouse_id
        g.actor_id = request.headers.get("X-Actor-Id") or request.remote_addr or "anon"
        return f(*args, **kwargs)

    return decorated_function


def rate_limited(action: str):
    """
    Reject the call with 429 once the actor has used up the action's window.

    Must run after require_warehouse (needs g.actor_id).
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            identity = getattr(g, "actor_id", None) or request.remote_addr
            try:
                rate_limit_service.check_rate_limit(identity, action)
            except RateLimitExceededError as e:
                return error_response(str(e), e.http_status)
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def billing_endpoint(failure_message: str):
    """
    Map service errors to the uniform {success, message} body.

    BillingError subclasses carry their own status; anything else is logged
    with a traceback and answered with failure_message and 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except BillingError as e:
                if e.http_status >= 500:
                    current_app.logger.error("%s: %s", failure_message, e)
                return error_response(str(e), e.http_status)
            except Exception:
                current_app.logger.exception(failure_message)
                db.session.rollback()
                return error_response(failure_message, 500)

        return decorated_function

    return decorator
