from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .money import MAX_MONEY, QUANTITY_PLACES, MONEY_PLACES, to_decimal
from .time_utils import INTERVAL_DAY, VALID_INTERVALS


class ApiError(Exception):
    """
    Base for errors that map to a stable code + message in the response envelope.

    field names the offending input (e.g. "items[1].quantity") when one exists.
    """
    status_code = 500
    default_code = "error"

    def __init__(self, message: str, *, code: str | None = None, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.field = field

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "field": self.field}


class ValidationError(ApiError, ValueError):
    """400-level input problem."""
    status_code = 400
    default_code = "validation_error"


class NotFoundError(ApiError, LookupError):
    """404-level missing reference (product, unit, tax, customer, transaction...)."""
    status_code = 404
    default_code = "not_found"


class ConflictError(ApiError, ValueError):
    """409-level business rule conflict (stock would go negative, lost write race)."""
    status_code = 409
    default_code = "conflict"


class InternalError(ApiError):
    """500-level persistence failure. Message is safe for clients."""
    status_code = 500
    default_code = "internal_error"


@dataclass(frozen=True)
class PayloadPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def validate_payload(*, payload: Any, policy: PayloadPolicy, prefix: str = "", partial: bool = False) -> dict:
    """
    Reject non-object payloads, unknown fields and missing required fields.
    partial=True (PUT) skips the required check; only the fields sent are returned.
    Returns a shallow copy holding only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload", field=prefix or None)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {prefix}{k}", field=f"{prefix}{k}")

    required = set() if partial else (policy.required_on_create or set())
    missing = sorted(f for f in required if payload.get(f) is None)
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(prefix + m for m in missing)}",
            field=prefix + missing[0],
        )

    return dict(payload)


def coerce_decimal(
    value: Any,
    *,
    field: str,
    places: int = MONEY_PLACES,
    allow_negative: bool = False,
    allow_zero: bool = True,
    maximum: Decimal | None = MAX_MONEY,
) -> Decimal:
    """
    Strict decimal coercion for amounts and quantities.

    Accepts ints, decimal strings and (JSON) floats; floats are read through
    their shortest repr so 19.99 stays 19.99. Rejects more fractional digits
    than `places` instead of silently rounding user input.
    """
    try:
        dec = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number", code="invalid_input", field=field)

    if dec.normalize().as_tuple().exponent < -places:
        raise ValidationError(
            f"{field} allows at most {places} decimal places", code="invalid_input", field=field
        )
    if dec < 0 and not allow_negative:
        raise ValidationError(f"{field} must be >= 0", code="invalid_input", field=field)
    if dec == 0 and not allow_zero:
        raise ValidationError(f"{field} must be non-zero", code="invalid_input", field=field)
    if maximum is not None and abs(dec) > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}", code="invalid_input", field=field)
    return dec


def coerce_quantity(value: Any, *, field: str, allow_negative: bool = False) -> Decimal:
    return coerce_decimal(
        value,
        field=field,
        places=QUANTITY_PLACES,
        allow_negative=allow_negative,
        allow_zero=False,
    )


def coerce_int(value: Any, *, field: str, minimum: int | None = None) -> int:
    # Integers - strict validation to reject floats and scientific notation
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field)
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be an integer", field=field)
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", field=field)
    else:
        raise ValidationError(f"{field} must be an integer", field=field)

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", field=field)
    return result


def coerce_choice(value: Any, *, field: str, choices: list[str]) -> str:
    if not isinstance(value, str) or value.strip().upper() not in choices:
        raise ValidationError(f"{field} must be one of {choices}", field=field)
    return value.strip().upper()


def coerce_text(value: Any, *, field: str, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}", field=field)
    return text


def coerce_interval(value: Any, *, field: str = "interval") -> str:
    """Time-series bucket size; defaults to day."""
    if value is None or value == "":
        return INTERVAL_DAY
    if not isinstance(value, str) or value.strip().lower() not in VALID_INTERVALS:
        raise ValidationError(f"{field} must be one of {VALID_INTERVALS}", field=field)
    return value.strip().lower()
