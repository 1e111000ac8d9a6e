"""Utilities for turning database rows and query strings into API payloads."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple
from uuid import UUID

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

_STATUS_FILTERS = {"active": True, "closed": False, "all": None}


def _to_json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    return value


def to_business_payload(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: _to_json_value(value) for key, value in row.items()}


def _parse_int(raw: Optional[str], default: int) -> int:
    try:
        return int(raw) if raw is not None else default
    except (TypeError, ValueError):
        logger.debug("Ignoring non-numeric paging value %r", raw)
        return default


def parse_paging(page_raw: Optional[str], limit_raw: Optional[str]) -> Tuple[int, int, int]:
    """Return ``(page, limit, offset)`` clamped to sane bounds."""
    page = max(1, _parse_int(page_raw, 1))
    limit = min(MAX_PAGE_SIZE, max(1, _parse_int(limit_raw, DEFAULT_PAGE_SIZE)))
    return page, limit, (page - 1) * limit


def parse_status_filter(status: Optional[str]) -> Optional[bool]:
    """``active`` -> True, ``closed`` -> False, anything else -> no filter."""
    return _STATUS_FILTERS.get((status or "active").lower())


def build_pagination(page: int, limit: int, total_items: int) -> Dict[str, Any]:
    total_pages = -(-total_items // limit) if total_items else 0
    return {
        "page": page,
        "pageSize": limit,
        "totalPages": total_pages,
        "totalItems": total_items,
        "hasNext": page < total_pages,
        "hasPrevious": page > 1,
    }
