"""Response classes for the JSON:API media type."""

from fastapi.responses import JSONResponse

from taskboard.schemas.jsonapi import JSONAPI_MEDIA_TYPE


class JSONAPIResponse(JSONResponse):
    media_type = JSONAPI_MEDIA_TYPE
