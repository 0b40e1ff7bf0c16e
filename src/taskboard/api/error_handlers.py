"""Global exception handlers rendering every failure as a JSON:API error document.

Invariants:
    - TaskboardError -> its own status and error objects
    - RequestValidationError / HTTPException -> the same envelope, with
      ``source.pointer`` or ``source.parameter`` where the location is known
    - SQLAlchemyError -> 500 store failure
    - Exception (catch-all) -> never leaks internal details
"""

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskboard.api.responses import JSONAPIResponse
from taskboard.core.errors import CollaboratorFailure, TaskboardError, format_error
from taskboard.schemas.jsonapi import JSONAPIError, JSONAPIErrorResponse

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_taskboard_error_handler(app)
    _register_validation_error_handler(app)
    _register_http_error_handler(app)
    _register_store_error_handler(app)
    _register_generic_error_handler(app)


def _render(status_code: int, document: JSONAPIErrorResponse) -> JSONAPIResponse:
    return JSONAPIResponse(status_code=status_code, content=document.model_dump())


def _register_taskboard_error_handler(app: FastAPI) -> None:

    @app.exception_handler(TaskboardError)
    async def taskboard_error_handler(request: Request, exc: TaskboardError):
        status_code, document = format_error(exc)
        log = logger.error if status_code >= 500 else logger.info
        log(
            "%s on %s: %s", type(exc).__name__, request.url.path, exc.detail,
            extra={"path": request.url.path, "status": status_code},
        )
        return _render(status_code, document)


def _json_pointer(loc: tuple) -> str | None:
    segments = [str(s).replace("~", "~0").replace("/", "~1") for s in loc[1:]]
    return "/" + "/".join(segments) if segments else None


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle request parsing errors (malformed JSON, bad path/query types)."""
        logger.warning("Request validation error on %s: %s", request.url.path, exc.errors())
        errors = []
        for raw in exc.errors():
            loc = tuple(raw.get("loc", ()))
            source = None
            if loc and loc[0] == "body":
                pointer = _json_pointer(loc)
                source = {"pointer": pointer or "/"}
            elif loc and loc[0] == "query" and len(loc) > 1:
                source = {"parameter": str(loc[1])}
            errors.append(
                JSONAPIError(
                    status="422",
                    title="Validation Error",
                    detail=str(raw.get("msg", "Invalid request")),
                    code=str(raw.get("type", "VALIDATION_ERROR")),
                    source=source,
                )
            )
        return _render(422, JSONAPIErrorResponse(errors=errors))


def _register_http_error_handler(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        try:
            title = HTTPStatus(exc.status_code).phrase
        except ValueError:
            title = "HTTP Error"
        document = JSONAPIErrorResponse(
            errors=[JSONAPIError(status=str(exc.status_code), title=title, detail=str(exc.detail))]
        )
        return _render(exc.status_code, document)


def _register_store_error_handler(app: FastAPI) -> None:

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Store failure on %s", request.url.path, exc_info=exc)
        status_code, document = format_error(CollaboratorFailure("store"))
        return _render(status_code, document)


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all: never leaks internal details."""
        logger.error(
            "Unhandled exception on %s: %s", request.url.path, exc,
            exc_info=exc,
        )
        status_code, document = format_error(exc)
        return _render(status_code, document)
