"""
Pagination Helpers

Offset pagination (page/limit) with metadata, plus base64 cursors for
keyset pagination over large tables.
"""

import base64
import binascii
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence


DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_pagination(
    page: Any = None,
    limit: Any = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    cursor: Optional[str] = None,
    default_limit: int = DEFAULT_LIMIT,
    default_sort_by: str = "createdAt",
    default_sort_order: str = "desc",
) -> Dict[str, Any]:
    """
    Normalize raw query values.

    page >= 1, limit clamped to 1..100, sort_order asc|desc.
    """
    page = max(1, _to_int(page, 1))
    limit = min(MAX_LIMIT, max(1, _to_int(limit, default_limit)))
    order = (sort_order or default_sort_order).lower()
    if order not in ("asc", "desc"):
        order = default_sort_order

    return {
        "page": page,
        "limit": limit,
        "skip": (page - 1) * limit,
        "cursor": cursor or None,
        "sort_by": sort_by or default_sort_by,
        "sort_order": order,
    }


def build_pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


def paginate(items: Sequence[Any], page: int, limit: int) -> List[Any]:
    start = (page - 1) * limit
    return list(items[start:start + limit])


# =============================================================================
# CURSORS
# =============================================================================

def encode_cursor(value: Any) -> str:
    text = value.isoformat() if isinstance(value, datetime) else str(value)
    return base64.b64encode(text.encode()).decode()


def decode_cursor(cursor: str) -> Optional[str]:
    try:
        return base64.b64decode(cursor.encode(), validate=True).decode()
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None


def build_cursor_pagination(
    items: List[Dict[str, Any]],
    limit: int,
    cursor_field: str = "id",
) -> Dict[str, Any]:
    """
    Metadata for a page fetched with limit + 1 rows.

    The extra row only signals that more exist; callers display items[:limit].
    """
    has_more = len(items) > limit
    shown = items[:limit]
    next_cursor = encode_cursor(shown[-1][cursor_field]) if has_more and shown else None
    return {"limit": limit, "hasMore": has_more, "nextCursor": next_cursor}
