# Overview: JSON response envelope and shared query-string parsing for API routes.

"""
Every response carries the same envelope:

    {"message", "requestedAt", "requestId", "data"}                 plain
    {"message", "requestedAt", "requestId", "items", "meta"}        paginated
    {"message", "requestedAt", "requestId", "error": {code, message, field}}
"""

from __future__ import annotations

import math
import uuid

from flask import current_app, g, has_request_context, jsonify, request

from .time_utils import parse_iso_datetime, to_utc_z, utcnow
from .validation import ValidationError, coerce_int


EMPTY_LIST_MESSAGE = "OK, But its empty"


def assign_request_id() -> str:
    """Take the caller's X-Request-Id or mint one. Called once at the start of each request."""
    g.request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
    return g.request_id


def get_request_id() -> str:
    if not has_request_context():
        return uuid.uuid4().hex
    if not hasattr(g, "request_id"):
        return assign_request_id()
    return g.request_id


def _envelope(message: str) -> dict:
    return {
        "message": message,
        "requestedAt": to_utc_z(utcnow()),
        "requestId": get_request_id(),
    }


def ok_response(data, *, message: str = "OK", status: int = 200):
    body = _envelope(message)
    body["data"] = data
    return jsonify(body), status


def paginated_response(items: list, *, page: int, limit: int, total: int, message: str = "OK"):
    body = _envelope(message if items else EMPTY_LIST_MESSAGE)
    body["items"] = items
    body["meta"] = {
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "totalItems": total,
    }
    return jsonify(body), 200


def error_response(message: str, status: int, *, code: str, field: str | None = None):
    body = _envelope(message)
    body["error"] = {"code": code, "message": message, "field": field}
    return jsonify(body), status


# =============================================================================
# QUERY STRING PARSING
# =============================================================================

def parse_pagination(args) -> tuple[int, int]:
    default_limit = current_app.config.get("DEFAULT_PAGE_LIMIT", 10)
    max_limit = current_app.config.get("MAX_PAGE_LIMIT", 100)

    page = coerce_int(args.get("page", 1), field="page", minimum=1)
    limit = coerce_int(args.get("limit", default_limit), field="limit", minimum=1)
    return page, min(limit, max_limit)


def parse_date_range(args):
    """
    startDate/endDate as ISO dates or datetimes, inclusive.
    A date-only endDate covers that whole day.
    """
    try:
        start = parse_iso_datetime(args.get("startDate"))
    except ValueError:
        raise ValidationError("startDate must be an ISO date or datetime", field="startDate")
    try:
        end = parse_iso_datetime(args.get("endDate"), end_of_day=True)
    except ValueError:
        raise ValidationError("endDate must be an ISO date or datetime", field="endDate")

    if start and end and start > end:
        raise ValidationError("startDate must be before endDate", field="startDate")
    return start, end


def parse_optional_int(args, name: str) -> int | None:
    value = args.get(name)
    if value is None or value == "":
        return None
    return coerce_int(value, field=name, minimum=1)
