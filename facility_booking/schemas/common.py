from math import ceil
from typing import Any


def envelope(success: bool, message: str, **body: Any) -> dict:
    """Every response body, success or failure, is {success, message, ...}."""
    return {"success": success, "message": message, **body}


def success_response(message: str, data: Any = None) -> dict:
    return envelope(True, message, data=data)


def error_response(message: str, code: str, details: list | None = None, field: str | None = None) -> dict:
    return envelope(False, message, error={"code": code, "details": details, "field": field})


def page_meta(total: int, page: int, limit: int) -> dict:
    pages = ceil(total / limit) if limit > 0 else 0
    return {
        "page":       page,
        "limit":      limit,
        "total":      total,
        "totalPages": pages,
        "hasNext":    page < pages,
        "hasPrev":    page > 1,
    }


def paginated_response(message: str, data: list, total: int, page: int, limit: int) -> dict:
    return envelope(True, message, data=data, meta=page_meta(total, page, limit))
