from typing import Tuple

MAX_PAGE_SIZE = 100


def normalize_page(page: int, limit: int) -> Tuple[int, int, int]:
    """Clamp page/limit and return ``(page, limit, skip)``."""
    page = max(1, int(page or 1))
    limit = min(MAX_PAGE_SIZE, max(1, int(limit or 20)))
    return page, limit, (page - 1) * limit


def pagination_meta(total: int, page: int, limit: int) -> dict:
    skip = (page - 1) * limit
    return {
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit,
        "total": total,
        "hasNext": skip + limit < total,
        "hasPrev": page > 1,
    }
