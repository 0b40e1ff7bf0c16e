"""Page-number pagination: parameter parsing and link computation.

``page[size]`` and ``page[number]`` (1-based) select a slice of a
collection. Links are computed from the total item count:

    first = page 1
    last  = ceil(total / size), at least 1
    prev  = number - 1, or null on page 1
    next  = number + 1 while number * size < total, else null
"""

from __future__ import annotations

import math
from urllib.parse import quote

from pydantic import BaseModel, Field

from taskboard.core.errors import InvalidPagination


class PageSpec(BaseModel):
    """A validated page request."""

    size: int = Field(ge=1)
    number: int = Field(ge=1)

    @property
    def offset(self) -> int:
        return (self.number - 1) * self.size


class PageLinks(BaseModel):
    """Pagination links for JSON:API list responses."""

    first: str
    last: str
    prev: str | None = None
    next: str | None = None


def _positive_int(parameter: str, value: str | int | None, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidPagination(parameter, value)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidPagination(parameter, value) from None
    if number < 1:
        raise InvalidPagination(parameter, value)
    return number


def parse_page(
    size: str | int | None,
    number: str | int | None,
    *,
    default_size: int = 20,
    max_size: int = 100,
) -> PageSpec:
    """Parse raw ``page[size]`` / ``page[number]`` values.

    Raises:
        InvalidPagination: If either value is non-numeric, non-positive,
            or the size exceeds ``max_size``.
    """
    page_size = _positive_int("page[size]", size, default_size)
    if page_size > max_size:
        raise InvalidPagination("page[size]", size)
    page_number = _positive_int("page[number]", number, 1)
    return PageSpec(size=page_size, number=page_number)


def last_page(total_count: int, size: int) -> int:
    return max(1, math.ceil(total_count / size))


def page_url(
    base_url: str, size: int, number: int, params: dict[str, str] | None = None
) -> str:
    query = f"page[size]={size}&page[number]={number}"
    for key, value in (params or {}).items():
        query += f"&{key}={quote(value, safe=',-_.')}"
    return f"{base_url}?{query}"


def paginate(
    total_count: int,
    page: PageSpec,
    base_url: str,
    params: dict[str, str] | None = None,
) -> PageLinks:
    """Compute first/last/prev/next links for ``page`` over ``total_count`` items.

    Args:
        total_count: Number of items in the whole collection.
        page: The requested page.
        base_url: Collection URL without a query string.
        params: Other query parameters (sort, include) carried into every link.
    """
    return PageLinks(
        first=page_url(base_url, page.size, 1, params),
        last=page_url(base_url, page.size, last_page(total_count, page.size), params),
        prev=page_url(base_url, page.size, page.number - 1, params) if page.number > 1 else None,
        next=(
            page_url(base_url, page.size, page.number + 1, params)
            if page.number * page.size < total_count
            else None
        ),
    )
