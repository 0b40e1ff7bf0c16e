"""Generic resource service layer.

One code path serves every registered resource type: list, show, create,
update and delete of resources, plus fetch, replace, promote and demote
of relationships. Per-type behaviour comes only from the registry.
"""

from __future__ import annotations

from typing import Any

from taskboard.core.errors import (
    FieldError,
    IncludeNotAllowed,
    NotFound,
    RelationshipNotMutable,
    ResourceIdConflict,
    ValidationFailed,
)
from taskboard.core.includes import IncludeResolver, parse_include
from taskboard.core.registry import ResourceRegistry, ResourceTypeDescriptor
from taskboard.core.relationships import RelationshipEvent, RelationshipSyncEngine, SyncResult
from taskboard.core.sorting import parse_sort, sort_items
from taskboard.core.validation import RequestValidator
from taskboard.schemas.jsonapi import (
    JSONAPIListResponse,
    JSONAPIRelationshipResponse,
    JSONAPISingleResponse,
    ResourceIdentifier,
)
from taskboard.schemas.pagination import page_url, paginate, parse_page
from taskboard.services.notifier import Notifier, dispatch_events
from taskboard.services.serializer import (
    ResourceSerializer,
    linkage_data,
    relationship_links,
    resource_url,
)
from taskboard.services.store import Store


class ResourceService:
    """Service for the JSON:API operations on any registered resource type.

    Args:
        registry: The resource registry.
        store: Persistence collaborator.
        notifier: Relationship-change notification collaborator.
        base_url: Absolute API root used for links.
        actor: Identity of the caller, forwarded to notifications and
            used as the creator of new resources that have a ``user_id``.
        default_page_size: Page size when ``page[size]`` is absent.
        max_page_size: Largest accepted ``page[size]``.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        store: Store,
        notifier: Notifier,
        base_url: str,
        *,
        actor: str | None = None,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ) -> None:
        self.registry = registry
        self.store = store
        self.notifier = notifier
        self.base_url = base_url.rstrip("/")
        self.actor = actor
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

        self.validator = RequestValidator(registry)
        self.serializer = ResourceSerializer(registry, store, self.base_url)
        self.includes = IncludeResolver()
        self.engine = RelationshipSyncEngine(store)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _requested_includes(
        descriptor: ResourceTypeDescriptor, include: str | None
    ) -> list[str]:
        names = parse_include(include)
        for name in names:
            if name not in descriptor.allowed_includes:
                raise IncludeNotAllowed(descriptor.name, name)
        return names

    async def _owner(self, type_name: str, resource_id: str) -> ResourceIdentifier:
        if await self.store.fetch(type_name, resource_id) is None:
            raise NotFound()
        return ResourceIdentifier(type=type_name, id=resource_id)

    async def _dispatch(self, events: tuple[RelationshipEvent, ...]) -> None:
        await dispatch_events(self.notifier, events, self.actor)

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def list_resources(
        self,
        type_name: str,
        *,
        sort: str | None = None,
        page_size: str | int | None = None,
        page_number: str | int | None = None,
        include: str | None = None,
    ) -> JSONAPIListResponse:
        """Return one page of a collection with pagination links.

        Every query parameter is checked before the store is queried.
        """
        descriptor = self.registry.describe(type_name)
        sort_fields = parse_sort(sort, descriptor)
        page = parse_page(
            page_size,
            page_number,
            default_size=self.default_page_size,
            max_size=self.max_page_size,
        )
        names = self._requested_includes(descriptor, include)

        total = await self.store.count(type_name)
        records = await self.store.fetch_page(type_name, sort_fields, page)
        data = await self.serializer.serialize_many(records)
        included = await self.includes.resolve(data, names, descriptor, self.serializer.fetch)

        params = {}
        if sort:
            params["sort"] = sort
        if include:
            params["include"] = include
        collection_url = f"{self.base_url}/{type_name}"
        links = paginate(total, page, collection_url, params)
        return JSONAPIListResponse(
            data=data,
            included=included,
            links={
                "self": page_url(collection_url, page.size, page.number, params),
                **links.model_dump(),
            },
            meta={"total": total},
        )

    async def show_resource(
        self, type_name: str, resource_id: str, *, include: str | None = None
    ) -> JSONAPISingleResponse:
        descriptor = self.registry.describe(type_name)
        names = self._requested_includes(descriptor, include)
        record = await self.store.fetch(type_name, resource_id)
        if record is None:
            raise NotFound()
        resource = await self.serializer.serialize(record)
        included = await self.includes.resolve(resource, names, descriptor, self.serializer.fetch)
        return JSONAPISingleResponse(
            data=resource,
            included=included,
            links={"self": resource_url(self.base_url, record.identifier)},
        )

    async def create_resource(self, type_name: str, payload: Any) -> JSONAPISingleResponse:
        """Validate and store a new resource.

        When the type exposes ``user_id`` and the document does not set it,
        the acting identity becomes the owner.
        """
        descriptor = self.registry.describe(type_name)
        attributes = await self.validator.validate_resource(
            payload, type_name, "create", is_unique=self.store.is_unique
        )
        if "user_id" in descriptor.attributes and "user_id" not in attributes and self.actor:
            attributes["user_id"] = self.actor

        record = await self.store.create(type_name, attributes)
        resource = await self.serializer.serialize(record)
        return JSONAPISingleResponse(
            data=resource,
            links={"self": resource_url(self.base_url, record.identifier)},
        )

    async def update_resource(
        self, type_name: str, resource_id: str, payload: Any
    ) -> JSONAPISingleResponse:
        """Apply a partial update; ``data.id`` must match the URL id.

        Raises:
            NotFound: If the resource does not exist.
            ValidationFailed: If the document breaks the update rules.
            ResourceIdConflict: If ``data.id`` names another resource.
        """
        self.registry.describe(type_name)
        await self._owner(type_name, resource_id)
        attributes = await self.validator.validate_resource(
            payload,
            type_name,
            "update",
            resource_id=resource_id,
            is_unique=self.store.is_unique,
        )
        given = payload["data"]["id"]
        if given != resource_id:
            raise ResourceIdConflict(resource_id, given)

        record = await self.store.update(type_name, resource_id, attributes)
        resource = await self.serializer.serialize(record)
        return JSONAPISingleResponse(
            data=resource,
            links={"self": resource_url(self.base_url, record.identifier)},
        )

    async def delete_resource(self, type_name: str, resource_id: str) -> None:
        self.registry.describe(type_name)
        await self.store.delete(type_name, resource_id)

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    async def show_relationship(
        self, type_name: str, resource_id: str, relationship_name: str
    ) -> JSONAPIRelationshipResponse:
        relationship = self.registry.relationship(type_name, relationship_name)
        owner = await self._owner(type_name, resource_id)
        linked = await self.store.related([owner], relationship)
        return JSONAPIRelationshipResponse(
            data=linkage_data(relationship, linked[owner]),
            links=relationship_links(self.base_url, owner, relationship_name),
        )

    async def show_related(
        self,
        type_name: str,
        resource_id: str,
        relationship_name: str,
        *,
        sort: str | None = None,
    ) -> JSONAPISingleResponse | JSONAPIListResponse:
        """Return the full resource objects a relationship points at."""
        relationship = self.registry.relationship(type_name, relationship_name)
        target = self.registry.describe(relationship.target_type)
        sort_fields = parse_sort(sort, target)
        owner = await self._owner(type_name, resource_id)
        linked = (await self.store.related([owner], relationship))[owner]
        resources = await self.serializer.fetch(linked)
        self_link = {"self": f"{resource_url(self.base_url, owner)}/{relationship_name}"}

        if not relationship.to_many:
            return JSONAPISingleResponse(
                data=resources[0] if resources else None, links=self_link
            )
        return JSONAPIListResponse(
            data=sort_items(resources, sort_fields, target),
            links=self_link,
            meta={"total": len(resources)},
        )

    async def replace_relationship(
        self,
        type_name: str,
        resource_id: str,
        relationship_name: str,
        payload: Any,
    ) -> SyncResult:
        """Replace a to-many membership and notify added/removed targets.

        ``meta`` in the document may set pivot flags for new members.
        Notifications go out only after the store committed the change.
        """
        relationship = self.registry.relationship(type_name, relationship_name)
        if not relationship.to_many or not relationship.mutable:
            raise RelationshipNotMutable(type_name, relationship_name)
        owner = await self._owner(type_name, resource_id)
        targets = self._identifier_list(self.validator.validate_relationship(payload), strict=True)

        pivot = self.validator.validate_pivot_flags(payload, relationship.pivot_flags)

        result = await self.engine.replace(owner, relationship, targets, pivot)
        await self._dispatch(result.events)
        return result

    async def promote_relationship(
        self,
        type_name: str,
        resource_id: str,
        relationship_name: str,
        payload: Any,
    ) -> JSONAPIRelationshipResponse:
        relationship = self.registry.relationship(type_name, relationship_name)
        owner = await self._owner(type_name, resource_id)
        targets = self._identifier_list(self.validator.validate_relationship(payload))
        await self._dispatch(await self.engine.promote(owner, relationship, targets))
        return await self.show_relationship(type_name, resource_id, relationship_name)

    async def demote_relationship(
        self,
        type_name: str,
        resource_id: str,
        relationship_name: str,
        payload: Any,
    ) -> JSONAPIRelationshipResponse:
        relationship = self.registry.relationship(type_name, relationship_name)
        owner = await self._owner(type_name, resource_id)
        targets = self._identifier_list(self.validator.validate_relationship(payload))
        await self._dispatch(await self.engine.demote(owner, relationship, targets))
        return await self.show_relationship(type_name, resource_id, relationship_name)

    @staticmethod
    def _identifier_list(
        data: ResourceIdentifier | list[ResourceIdentifier] | None, *, strict: bool = False
    ) -> list[ResourceIdentifier]:
        if data is None:
            return []
        if isinstance(data, ResourceIdentifier):
            if strict:
                raise ValidationFailed([FieldError("/data", "The data must be an array.")])
            return [data]
        return data

