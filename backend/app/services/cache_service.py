# Overview: Version counters for cached views; bumped after successful writes.

"""
View cache invalidation.

Each view path has a version number. Writes bump the versions of the views
they affect; GET endpoints publish the version as an ETag so clients and
proxies refetch only after a change. Counters live on the Flask app.
"""

from __future__ import annotations

from flask import current_app


VIEW_STORAGE = "/storage"
VIEW_CUSTOMERS = "/customers"
VIEW_PAYMENTS_PENDING = "/payments/pending"
VIEW_OUTFLOW = "/outflow"
VIEW_FINANCIALS = "/financials"


def customer_view(customer_id: int) -> str:
    return f"/customers/{customer_id}"


def record_view(record_id: int) -> str:
    return f"/storage/{record_id}"


def _versions() -> dict:
    return current_app.extensions.setdefault("view_versions", {})


def invalidate_views(*paths: str) -> None:
    versions = _versions()
    for path in paths:
        versions[path] = versions.get(path, 0) + 1


def view_version(path: str) -> int:
    return _versions().get(path, 0)
