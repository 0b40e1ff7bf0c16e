"""Generic JSON:API routes serving every registered resource type.

The resource type is a path parameter; the registry decides whether it
exists, which query parameters it accepts, and how its documents validate.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Response

from taskboard.api.deps import get_resource_service
from taskboard.api.responses import JSONAPIResponse
from taskboard.services.resource_service import ResourceService

router = APIRouter(default_response_class=JSONAPIResponse)


def _document(model) -> JSONAPIResponse:
    return JSONAPIResponse(content=model.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


@router.get("/{type_name}")
async def list_resources(
    type_name: str,
    sort: str | None = Query(default=None),
    page_size: str | None = Query(default=None, alias="page[size]"),
    page_number: str | None = Query(default=None, alias="page[number]"),
    include: str | None = Query(default=None),
    service: ResourceService = Depends(get_resource_service),
) -> JSONAPIResponse:
    """List a resource collection with sorting, pagination and includes."""
    document = await service.list_resources(
        type_name,
        sort=sort,
        page_size=page_size,
        page_number=page_number,
        include=include,
    )
    return _document(document)


@router.post("/{type_name}", status_code=201)
async def create_resource(
    type_name: str,
    payload: Any = Body(default=None),
    service: ResourceService = Depends(get_resource_service),
) -> JSONAPIResponse:
    document = await service.create_resource(type_name, payload)
    response = _document(document)
    response.status_code = 201
    response.headers["Location"] = document.data.links["self"]
    return response


@router.get("/{type_name}/{resource_id}")
async def show_resource(
    type_name: str,
    resource_id: str,
    include: str | None = Query(default=None),
    service: ResourceService = Depends(get_resource_service),
) -> JSONAPIResponse:
    return _document(await service.show_resource(type_name, resource_id, include=include))


@router.patch("/{type_name}/{resource_id}")
async def update_resource(
    type_name: str,
    resource_id: str,
    payload: Any = Body(default=None),
    service: ResourceService = Depends(get_resource_service),
) -> JSONAPIResponse:
    return _document(await service.update_resource(type_name, resource_id, payload))


@router.delete("/{type_name}/{resource_id}", status_code=204)
async def delete_resource(
    type_name: str,
    resource_id: str,
    service: ResourceService = Depends(get_resource_service),
) -> Response:
    await service.delete_resource(type_name, resource_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------


@router.get("/{type_name}/{resource_id}/relationships/{relationship}")
async def show_relationship(
    type_name: str,
    resource_id: str,
    relationship: str,
    service: ResourceService = Depends(get_resource_service),
) -> JSONAPIResponse:
    return _document(await service.show_relationship(type_name, resource_id, relationship))


@router.patch("/{type_name}/{resource_id}/relationships/{relationship}", status_code=204)
async def replace_relationship(
    type_name: str,
    resource_id: str,
    relationship: str,
    payload: Any = Body(default=None),
    service: ResourceService = Depends(get_resource_service),
) -> Response:
    """Replace a to-many membership; added and removed members are notified."""
    await service.replace_relationship(type_name, resource_id, relationship, payload)
    return Response(status_code=204)


@router.post("/{type_name}/{resource_id}/relationships/{relationship}/supervisors")
async def promote_relationship(
    type_name: str,
    resource_id: str,
    relationship: str,
    payload: Any = Body(default=None),
    service: ResourceService = Depends(get_resource_service),
) -> JSONAPIResponse:
    """Flag existing members as supervisors and notify exactly those members."""
    return _document(
        await service.promote_relationship(type_name, resource_id, relationship, payload)
    )


@router.delete("/{type_name}/{resource_id}/relationships/{relationship}/supervisors")
async def demote_relationship(
    type_name: str,
    resource_id: str,
    relationship: str,
    payload: Any = Body(default=None),
    service: ResourceService = Depends(get_resource_service),
) -> JSONAPIResponse:
    return _document(
        await service.demote_relationship(type_name, resource_id, relationship, payload)
    )


@router.get("/{type_name}/{resource_id}/{relationship}")
async def show_related(
    type_name: str,
    resource_id: str,
    relationship: str,
    sort: str | None = Query(default=None),
    service: ResourceService = Depends(get_resource_service),
) -> JSONAPIResponse:
    """Return the full resources a relationship points at."""
    return _document(
        await service.show_related(type_name, resource_id, relationship, sort=sort)
    )
