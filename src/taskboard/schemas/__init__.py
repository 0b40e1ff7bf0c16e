"""Pydantic schemas for JSON:API documents and pagination."""

from taskboard.schemas.jsonapi import (
    JSONAPIError,
    JSONAPIErrorResponse,
    JSONAPIListResponse,
    JSONAPIRelationshipResponse,
    JSONAPIResource,
    JSONAPISingleResponse,
    RelationshipLinkage,
    ResourceIdentifier,
)

__all__ = [
    "JSONAPIError",
    "JSONAPIErrorResponse",
    "JSONAPIListResponse",
    "JSONAPIRelationshipResponse",
    "JSONAPIResource",
    "JSONAPISingleResponse",
    "RelationshipLinkage",
    "ResourceIdentifier",
]
