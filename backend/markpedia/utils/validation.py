from __future__ import annotations
"""Reusable validation helpers for request payloads.

All helpers raise ValidationFailed (400) so services stay independent of Flask.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional

from markpedia.errors import ValidationFailed

AMOUNT_QUANT = Decimal('0.01')


def validate_choice(value: Any, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that value is inside allowed.

    Returns the value (to enable inline usage) or raises ValidationFailed.
    """
    if value not in tuple(allowed):
        raise ValidationFailed(f"{field_name} invalid")
    return value


def require_fields(data: Mapping[str, Any], *names: str):
    missing = [n for n in names if data.get(n) in (None, '')]
    if missing:
        raise ValidationFailed(f"{', '.join(missing)} required")


def parse_amount(raw: Any, field_name: str = 'amount_requested') -> Decimal:
    """Positive decimal rounded to two places. Floats go through str() to avoid binary noise."""
    if isinstance(raw, bool) or raw is None:
        raise ValidationFailed(f"{field_name} must be a positive number")
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ValidationFailed(f"{field_name} must be a positive number")
    if not value.is_finite() or value <= 0:
        raise ValidationFailed(f"{field_name} must be a positive number")
    return value.quantize(AMOUNT_QUANT)


def parse_date(raw: Any, field_name: str) -> Optional[date]:
    if raw in (None, ''):
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    try:
        if 'T' in text:
            return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
        return date.fromisoformat(text)
    except ValueError:
        raise ValidationFailed(f"{field_name} must be an ISO date (YYYY-MM-DD)")


def parse_bool(raw: Any, field_name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.lower() in ('true', 'false'):
        return raw.lower() == 'true'
    raise ValidationFailed(f"{field_name} must be a boolean")


def parse_string_list(raw: Any, field_name: str) -> List[str]:
    if not isinstance(raw, list) or not raw:
        raise ValidationFailed(f"{field_name} must be a non-empty list")
    out = []
    for item in raw:
        if not isinstance(item, str) or not item.strip():
            raise ValidationFailed(f"{field_name} entries must be non-empty strings")
        out.append(item.strip())
    return out

__all__ = ['validate_choice', 'require_fields', 'parse_amount', 'parse_date', 'parse_bool', 'parse_string_list']
