"""Sort parameter parsing and stable in-memory ordering.

``sort=-created_at,title`` sorts by ``created_at`` descending, then by
``title`` ascending. Only fields whitelisted in the resource descriptor are
accepted. Ordering is stable: items with equal keys keep their incoming
relative order (primary-key order when they come from the store).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from taskboard.core.errors import InvalidSortField
from taskboard.core.registry import ResourceTypeDescriptor
from taskboard.schemas.jsonapi import JSONAPIResource


@dataclass(frozen=True)
class SortField:
    name: str
    descending: bool = False


def parse_sort(sort: str | None, descriptor: ResourceTypeDescriptor) -> list[SortField]:
    """Parse a comma-separated sort parameter against the allowed sorts.

    Raises:
        InvalidSortField: If any requested field is not sortable.
    """
    if not sort:
        return []
    fields = []
    for raw in sort.split(","):
        raw = raw.strip()
        if not raw:
            continue
        descending = raw.startswith("-")
        name = raw[1:] if raw[0] in "-+" else raw
        if name not in descriptor.allowed_sorts:
            raise InvalidSortField(descriptor.name, name)
        fields.append(SortField(name, descending))
    return fields


def attribute_value(item: Any, name: str) -> Any:
    """Read a sortable value from a resource object, mapping, or model."""
    if isinstance(item, JSONAPIResource):
        return item.attributes.get(name)
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _key(value: Any) -> tuple[bool, Any]:
    # Nulls sort before any value in ascending order.
    return (value is not None, value if value is not None else 0)


def sort_items(
    items: Iterable[Any],
    requested: str | list[SortField] | None,
    descriptor: ResourceTypeDescriptor,
    value_of: Callable[[Any, str], Any] = attribute_value,
) -> list[Any]:
    """Return ``items`` ordered by the requested fields.

    Applies one stable sort per field, least significant first, which
    yields a lexicographic multi-key ordering that preserves prior order
    for ties.
    """
    fields = parse_sort(requested, descriptor) if isinstance(requested, str) or requested is None else requested
    result = list(items)
    for field in reversed(fields):
        result.sort(
            key=lambda item, name=field.name: _key(value_of(item, name)),
            reverse=field.descending,
        )
    return result
