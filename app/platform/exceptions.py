import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.platform.response import api_response

logger = logging.getLogger(__name__)


class AuditError(Exception):
    """Base class for audit pipeline failures."""


class RuleEngineError(AuditError):
    """The external accessibility engine failed to load or run on a page."""


class DiscoveryError(AuditError):
    pass


def add_exception_handlers(app):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(message=str(exc.detail) or "Error", status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return api_response(
            message="Validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            data={"errors": exc.errors()},
        )

    @app.exception_handler(AuditError)
    async def audit_exception_handler(request: Request, exc: AuditError):
        logger.error(f"Audit failure on {request.url.path}: {exc}")
        return api_response(message=str(exc), status_code=status.HTTP_502_BAD_GATEWAY)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
