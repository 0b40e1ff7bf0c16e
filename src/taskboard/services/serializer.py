"""Turns store records into JSON:API resource objects.

Relationship linkage is loaded for every declared relationship with one
store query per relationship, however many records are serialized.
"""

from __future__ import annotations

from collections.abc import Sequence

from taskboard.core.registry import RelationshipDescriptor, ResourceRegistry
from taskboard.schemas.jsonapi import JSONAPIResource, RelationshipLinkage, ResourceIdentifier
from taskboard.services.store import ResourceRecord, Store


def resource_url(base_url: str, identifier: ResourceIdentifier) -> str:
    return f"{base_url}/{identifier.type}/{identifier.id}"


def relationship_links(
    base_url: str, owner: ResourceIdentifier, relationship: str
) -> dict[str, str]:
    self_url = resource_url(base_url, owner)
    return {
        "self": f"{self_url}/relationships/{relationship}",
        "related": f"{self_url}/{relationship}",
    }


def linkage_data(
    relationship: RelationshipDescriptor, linked: list[ResourceIdentifier]
) -> ResourceIdentifier | list[ResourceIdentifier] | None:
    """Shape linked identifiers as to-many list or to-one identifier/None."""
    if relationship.to_many:
        return list(linked)
    return linked[0] if linked else None


class ResourceSerializer:
    """Builds resource objects with attributes, relationships and links.

    Args:
        registry: Resource registry (relationship declarations).
        store: Store used to load linkage.
        base_url: Absolute API root used for every link.
    """

    def __init__(self, registry: ResourceRegistry, store: Store, base_url: str) -> None:
        self.registry = registry
        self.store = store
        self.base_url = base_url.rstrip("/")

    async def serialize(self, record: ResourceRecord) -> JSONAPIResource:
        return (await self.serialize_many([record]))[0]

    async def serialize_many(self, records: Sequence[ResourceRecord]) -> list[JSONAPIResource]:
        """Serialize records of one or more types, preserving input order."""
        by_type: dict[str, list[ResourceIdentifier]] = {}
        for record in records:
            by_type.setdefault(record.identifier.type, []).append(record.identifier)

        linkage: dict[ResourceIdentifier, dict[str, RelationshipLinkage]] = {
            record.identifier: {} for record in records
        }
        for type_name, owners in by_type.items():
            for relationship in self.registry.describe(type_name).relationships:
                linked = await self.store.related(owners, relationship)
                for owner in owners:
                    linkage[owner][relationship.name] = RelationshipLinkage(
                        links=relationship_links(self.base_url, owner, relationship.name),
                        data=linkage_data(relationship, linked.get(owner, [])),
                    )

        return [
            JSONAPIResource(
                type=record.identifier.type,
                id=record.identifier.id,
                attributes=record.attributes,
                relationships=linkage[record.identifier] or None,
                links={"self": resource_url(self.base_url, record.identifier)},
            )
            for record in records
        ]

    async def fetch(self, identifiers: list[ResourceIdentifier]) -> list[JSONAPIResource]:
        """Fetch-and-serialize callback for the include resolver."""
        return await self.serialize_many(await self.store.fetch_many(identifiers))
