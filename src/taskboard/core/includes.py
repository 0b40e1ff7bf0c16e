"""Compound-document sideloading.

Invariants:
    - No include is fetched until every requested name has been checked
      against the descriptor, so a rejected include never leaves a
      half-built document behind
    - A (type, id) pair appears at most once in ``included``, however many
      primary resources or relationships reference it, and never when it
      is already primary data
    - Order is first-seen: primary resources in their given order, then
      relationships in descriptor-declared order
    - No requested includes -> ``None`` (the member is omitted), which is
      distinct from an empty list
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence

from taskboard.core.errors import IncludeNotAllowed
from taskboard.core.registry import ResourceTypeDescriptor
from taskboard.schemas.jsonapi import JSONAPIResource, ResourceIdentifier

FetchResources = Callable[[list[ResourceIdentifier]], Awaitable[list[JSONAPIResource]]]


def parse_include(include: str | None) -> list[str]:
    """Split ``"creator,tasks"`` into names, dropping blanks and repeats."""
    if not include:
        return []
    names: list[str] = []
    for raw in include.split(","):
        name = raw.strip()
        if name and name not in names:
            names.append(name)
    return names


def collect_identifiers(
    primary: Sequence[JSONAPIResource],
    names: Sequence[str],
    descriptor: ResourceTypeDescriptor,
) -> list[ResourceIdentifier]:
    """Return the deduplicated identifiers linked through ``names``, first-seen order."""
    wanted = set(names)
    relationships = [rel for rel in descriptor.relationships if rel.name in wanted]
    primary_keys = {resource.identifier for resource in primary}

    seen: dict[ResourceIdentifier, None] = {}
    for resource in primary:
        for rel in relationships:
            linkage = (resource.relationships or {}).get(rel.name)
            if linkage is None or linkage.data is None:
                continue
            linked = linkage.data if isinstance(linkage.data, list) else [linkage.data]
            for identifier in linked:
                if identifier not in primary_keys and identifier not in seen:
                    seen[identifier] = None
    return list(seen)


class IncludeResolver:
    """Resolves requested relationship names into the ``included`` member."""

    async def resolve(
        self,
        primary: JSONAPIResource | Sequence[JSONAPIResource],
        requested: str | Sequence[str] | None,
        descriptor: ResourceTypeDescriptor,
        fetch: FetchResources,
    ) -> list[JSONAPIResource] | None:
        """Build the sideload set for one document.

        Args:
            primary: The primary resource(s), already carrying linkage data
                for the requested relationships.
            requested: Include parameter string or list of relationship names.
            descriptor: Descriptor of the primary resources' type.
            fetch: Async callback returning full resource objects for a list
                of identifiers; identifiers it cannot resolve are skipped.

        Returns:
            The ordered, deduplicated included resources, or None when
            nothing was requested.

        Raises:
            IncludeNotAllowed: If any name is not in ``allowed_includes``.
        """
        names = parse_include(requested) if isinstance(requested, str) or requested is None else list(requested)
        if not names:
            return None
        for name in names:
            if name not in descriptor.allowed_includes:
                raise IncludeNotAllowed(descriptor.name, name)

        resources = [primary] if isinstance(primary, JSONAPIResource) else list(primary)
        identifiers = collect_identifiers(resources, names, descriptor)
        if not identifiers:
            return []

        fetched = {resource.identifier: resource for resource in await fetch(identifiers)}
        return [fetched[identifier] for identifier in identifiers if identifier in fetched]
