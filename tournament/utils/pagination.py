"""
Pagination helpers shared by list endpoints.
"""

import math
from typing import Dict, Tuple


def page_window(page: int, limit: int) -> Tuple[int, int]:
    """Return (limit, offset) for a 1-based page number."""
    page = max(int(page), 1)
    limit = max(int(limit), 1)
    return limit, (page - 1) * limit


def pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    """Pagination block: page, limit, total and number of pages."""
    page = max(int(page), 1)
    limit = max(int(limit), 1)
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit),
    }
