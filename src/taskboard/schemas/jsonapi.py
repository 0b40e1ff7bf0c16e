"""JSON:API document models using Pydantic v2.

Every response the service produces is one of the document types below:
a primary-data document (single resource, resource collection, or
relationship linkage) or an error document. ``included``, ``links`` and
``meta`` are omitted entirely when unset, so an absent ``included`` is
observably different from an empty one.

Reference: https://jsonapi.org/format/
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, model_serializer

JSONAPI_MEDIA_TYPE = "application/vnd.api+json"


class _OmitWhenNone(BaseModel):
    """Base model that drops selected members from output when they are None."""

    omit_when_none: ClassVar[frozenset[str]] = frozenset()

    @model_serializer(mode="wrap")
    def _drop_absent_members(self, handler: Any) -> dict[str, Any]:
        dumped = handler(self)
        return {
            key: value
            for key, value in dumped.items()
            if not (key in self.omit_when_none and value is None)
        }


# ---------------------------------------------------------------------------
# Identifiers and linkage
# ---------------------------------------------------------------------------


class ResourceIdentifier(BaseModel):
    """A ``{type, id}`` pair. Hashable; equal iff both members match."""

    model_config = ConfigDict(frozen=True)

    type: str
    id: str

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"


class RelationshipLinkage(BaseModel):
    """Relationship object: ``links`` plus to-one or to-many ``data``."""

    links: dict[str, str]
    data: ResourceIdentifier | list[ResourceIdentifier] | None = None


class JSONAPIResource(_OmitWhenNone):
    """A single JSON:API resource object with type, id, attributes, and relationships."""

    omit_when_none: ClassVar[frozenset[str]] = frozenset({"relationships", "links"})

    type: str
    id: str
    attributes: dict[str, Any]
    relationships: dict[str, RelationshipLinkage] | None = None
    links: dict[str, str] | None = None

    @property
    def identifier(self) -> ResourceIdentifier:
        return ResourceIdentifier(type=self.type, id=self.id)


# ---------------------------------------------------------------------------
# Top-level documents
# ---------------------------------------------------------------------------


class JSONAPISingleResponse(_OmitWhenNone):
    """JSON:API document containing a single resource (or null)."""

    omit_when_none: ClassVar[frozenset[str]] = frozenset({"included", "links", "meta"})

    data: JSONAPIResource | None
    included: list[JSONAPIResource] | None = None
    links: dict[str, str | None] | None = None
    meta: dict[str, Any] | None = None


class JSONAPIListResponse(_OmitWhenNone):
    """JSON:API document containing a list of resources."""

    omit_when_none: ClassVar[frozenset[str]] = frozenset({"included", "links", "meta"})

    data: list[JSONAPIResource]
    included: list[JSONAPIResource] | None = None
    links: dict[str, str | None] | None = None
    meta: dict[str, Any] | None = None


class JSONAPIRelationshipResponse(_OmitWhenNone):
    """JSON:API document whose primary data is relationship linkage."""

    omit_when_none: ClassVar[frozenset[str]] = frozenset({"links", "meta"})

    data: ResourceIdentifier | list[ResourceIdentifier] | None
    links: dict[str, str] | None = None
    meta: dict[str, Any] | None = None


class JSONAPIError(_OmitWhenNone):
    """A single JSON:API error object."""

    omit_when_none: ClassVar[frozenset[str]] = frozenset({"detail", "source", "code"})

    status: str
    title: str
    detail: str | None = None
    code: str | None = None
    source: dict[str, str] | None = None


class JSONAPIErrorResponse(BaseModel):
    """JSON:API document containing a list of errors."""

    errors: list[JSONAPIError]
