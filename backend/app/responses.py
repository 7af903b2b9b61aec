# Overview: JSON envelope helpers shared by every blueprint.

"""
Every API response uses the same envelope:

    {"success": bool, "message": str (optional), "data": any (optional)}

List endpoints put their rows under a named key next to a pagination block:

    {"success": true, "data": {"invoices": [...], "pagination": {...}}}
"""
from __future__ import annotations

import math

from flask import current_app, jsonify, request


def ok(data=None, message: str | None = None, status: int = 200):
    body: dict = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def created(data=None, message: str | None = None):
    return ok(data, message, 201)


def fail(message: str, status: int = 400, data=None):
    body: dict = {"success": False, "message": message}
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def page_args(default_limit: int | None = None) -> tuple[int, int]:
    """Read page/limit query params, clamped to sane bounds."""
    if default_limit is None:
        default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 20)
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 100)

    page = request.args.get("page", type=int) or 1
    limit = request.args.get("limit", type=int) or default_limit
    page = max(page, 1)
    limit = min(max(limit, 1), max_limit)
    return page, limit


def pagination(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def paginated(key: str, items: list, *, page: int, limit: int, total: int, **extra):
    data = {key: items, "pagination": pagination(page, limit, total)}
    data.update(extra)
    return ok(data)


def error_response(exc: Exception):
    """Envelope for a typed service or validation error (400 unless the error says otherwise)."""
    return fail(str(exc), getattr(exc, "status_code", 400), getattr(exc, "data", None))
