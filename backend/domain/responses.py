"""
Response envelope helpers.

All endpoints use these helpers so every response shares one envelope:
- Success: { "success": true, "data": <payload>, "meta": {...} }
- Error: { "success": false, "error": { "code": "...", "message": "...", "details": {...} } }
"""
import math
from typing import Any


def success_response(data: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Create a standardized success response.

    Args:
        data: The response payload
        meta: Optional metadata (pagination, timestamps, etc.)

    Returns:
        dict: { "success": true, "data": <data>, "meta": <meta> }
    """
    response = {"success": True, "data": data}
    if meta:
        response["meta"] = meta
    return response


def page_meta(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def paginated_response(
    key: str,
    items: list[Any],
    *,
    page: int,
    limit: int,
    total: int,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create a standardized page-based listing.

    The items are returned under `data[key]` next to a `pagination` block,
    and the same block is mirrored in `meta`.

    Returns:
        dict: { "success": true, "data": {<key>: [...], "pagination": {...}}, "meta": {...} }
    """
    pagination = page_meta(page, limit, total)
    data = {key: items, "pagination": pagination}
    if extra:
        data.update(extra)
    return success_response(data=data, meta=pagination)
