# bizpulse/sales_analytics/pagination.py
"""
Pagination envelope for list results.

NOTE: `offset` is a PAGE index, not an item index. The slice is
[offset * limit, offset * limit + limit) and current_page = offset + 1.
Existing dashboard clients depend on this contract.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .constants import TOP_N_DEFAULT_LIMIT


@dataclass(frozen=True)
class PaginationInfo:
    total: int
    limit: int
    offset: int
    has_more: bool
    total_pages: int
    current_page: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'limit': self.limit,
            'offset': self.offset,
            'hasMore': self.has_more,
            'totalPages': self.total_pages,
            'currentPage': self.current_page,
        }


@dataclass(frozen=True)
class PaginatedResponse:
    """One page of items plus its pagination info."""
    data: List[Any]
    pagination: PaginationInfo

    def to_dict(self) -> Dict[str, Any]:
        return {
            'data': [item.to_dict() if hasattr(item, 'to_dict') else item for item in self.data],
            'pagination': self.pagination.to_dict(),
        }

    @classmethod
    def empty(cls, limit: int = TOP_N_DEFAULT_LIMIT, offset: int = 0) -> 'PaginatedResponse':
        return paginate([], limit, offset)


def paginate(
    items: Sequence[Any],
    limit: Optional[int] = None,
    offset: Optional[int] = 0,
    default_limit: int = TOP_N_DEFAULT_LIMIT,
) -> PaginatedResponse:
    """
    Slice an already-sorted sequence into one page.

    Args:
        items: Sorted items
        limit: Page size; None or <= 0 falls back to default_limit
        offset: Page index (0-based); negative values are treated as 0
        default_limit: Configured default page size

    Returns:
        PaginatedResponse
    """
    if not limit or limit <= 0:
        limit = default_limit
    offset = max(int(offset or 0), 0)

    items = list(items)
    total = len(items)
    start = offset * limit

    return PaginatedResponse(
        data=items[start:start + limit],
        pagination=PaginationInfo(
            total=total,
            limit=limit,
            offset=offset,
            has_more=(offset + 1) * limit < total,
            total_pages=math.ceil(total / limit),
            current_page=offset + 1,
        ),
    )
