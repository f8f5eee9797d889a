"""
restcore REST API base library

This module contains the error formatter of the API: every failure
that occurs during request handling is translated into exactly one
of the two error status classes `400` (client error) and `500`
(server error) together with an ``APIError`` body. Successful
requests always use the status code `200`.
"""

import time
import logging
from typing import Any, Dict, Optional

import sqlalchemy.exc
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import schemas
from ..persistence import access
from ..schemas.config import GeneralConfig


logger = logging.getLogger(__name__)

startup = time.time()


def classify_status(status_code: int) -> int:
    """
    Reduce any HTTP status code to one of the three status classes used by the API
    """

    if status_code < 400:
        return 200
    elif status_code < 500:
        return 400
    return 500


def _general_config(request: Optional[Request]) -> GeneralConfig:
    settings = getattr(getattr(request, "app", None), "state", None)
    settings = getattr(settings, "settings", None)
    if settings is None:
        return GeneralConfig()
    return settings.general


def make_error(
        status_code: int,
        error_code: schemas.ErrorCode,
        developer_message: str,
        user_message: Optional[str] = None,
        general: Optional[GeneralConfig] = None
) -> schemas.APIError:
    """
    Build the error payload for a failure

    :param status_code: any HTTP status code, which is reduced to `400` or `500`
    :param error_code: stable internal error code
    :param developer_message: technical description of the problem
    :param user_message: optional message that may be shown to end users
    :param general: general config holding the base of the reference link
    :return: error payload which should be sent to the client
    """

    general = general or GeneralConfig()
    return schemas.APIError(
        status=max(classify_status(status_code), 400),
        developer_message=developer_message,
        user_message=user_message,
        error_code=int(error_code),
        more_info=f"{general.error_reference_url.rstrip('/')}/{int(error_code)}"
    )


def _respond(
        request: Request,
        status_code: int,
        error_code: schemas.ErrorCode,
        developer_message: str,
        user_message: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    error = make_error(status_code, error_code, developer_message, user_message, _general_config(request))
    return JSONResponse(jsonable_encoder(error), status_code=error.status, headers=headers)


async def handle_generic_exception(request: Request, _: Exception):
    logger.exception("Unhandled exception caught in base exception handler!")
    return _respond(
        request,
        500,
        schemas.ErrorCode.INTERNAL_ERROR,
        f"Unexpected server error during '{request.method} {request.url.path}'.",
        "The requested action wasn't completed successfully. Please try again later."
    )


async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    msgs = "; ".join([error["msg"] for error in exc.errors()])
    return _respond(
        request,
        400,
        schemas.ErrorCode.BAD_REQUEST,
        f"Failed to process the request: {msgs}",
        "The request was invalid."
    )


async def handle_access_error(request: Request, exc: access.AccessError):
    return await APIException.handle(request, translate(exc))


class APIException(HTTPException):
    """
    Base class for any kind of generic API exception
    """

    def __init__(
            self,
            status_code: int,
            error_code: schemas.ErrorCode,
            detail: str,
            message: Optional[str] = None,
            headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=classify_status(status_code), detail=detail, headers=headers)
        self.error_code = error_code
        self.message = message

    @classmethod
    async def handle(cls, request: Request, exc: StarletteHTTPException) -> Response:
        """
        Handle exceptions in a generic way to produce APIError models
        """

        status_code = getattr(exc, "status_code", 500)
        error_code = getattr(exc, "error_code", None)
        message = getattr(exc, "message", None)

        if not isinstance(exc, StarletteHTTPException):
            logger.error("Invalid exception class for base handler")

        if error_code is None:
            if status_code >= 500:
                error_code = schemas.ErrorCode.INTERNAL_ERROR
            elif status_code == 404:
                error_code = schemas.ErrorCode.UNKNOWN_ENDPOINT
            elif status_code == 405:
                error_code = schemas.ErrorCode.METHOD_NOT_SUPPORTED
            else:
                error_code = schemas.ErrorCode.BAD_REQUEST

        logger.debug(
            f"{type(exc).__name__}: {message} @ '{request.method} "
            f"{request.url.path}' (details: {exc.detail})"
        )
        return _respond(
            request,
            status_code,
            error_code,
            str(exc.detail),
            message,
            headers=getattr(exc, "headers", None)
        )


class BadRequest(APIException):
    """
    Exception when the user probably messed something up

    The `message` field must be user-friendly and not too informative!
    """

    def __init__(
            self,
            message: str,
            detail: Optional[str] = None,
            error_code: schemas.ErrorCode = schemas.ErrorCode.BAD_REQUEST
    ):
        super().__init__(
            status_code=400,
            error_code=error_code,
            detail=detail or message,
            message=message
        )


class MalformedPath(BadRequest):
    def __init__(self, detail: str):
        super().__init__("The requested URL is not a valid resource URL.", detail, schemas.ErrorCode.MALFORMED_PATH)


class UnknownResource(BadRequest):
    def __init__(self, resource: str, detail: Optional[str] = None):
        super().__init__(
            f"There is no resource called {resource!r}.",
            detail or f"Resource {resource!r} is not served by this API",
            schemas.ErrorCode.UNKNOWN_RESOURCE
        )


class NotFound(BadRequest):
    """
    Exception when a requested instance was not found in the system

    Unknown identifiers are a problem of the client, so the status code is `400`.
    """

    def __init__(self, resource: str, detail: Optional[str] = None):
        super().__init__(f"{str(resource)!r} was not found.", detail, schemas.ErrorCode.NOT_FOUND)


class MethodNotSupported(BadRequest):
    def __init__(self, method: str, path: str):
        super().__init__(
            "This operation is not supported.",
            f"Method {method!r} is not supported for {path!r}",
            schemas.ErrorCode.METHOD_NOT_SUPPORTED
        )


class MalformedQuery(BadRequest):
    def __init__(self, detail: str):
        super().__init__("The query parameters of the request are invalid.", detail, schemas.ErrorCode.MALFORMED_QUERY)


class MalformedBody(BadRequest):
    def __init__(self, detail: str):
        super().__init__("The body of the request is invalid.", detail, schemas.ErrorCode.MALFORMED_BODY)


class ValidationFailed(BadRequest):
    def __init__(self, detail: str):
        super().__init__(detail, detail, schemas.ErrorCode.VALIDATION_FAILED)


class InternalServerException(APIException):
    """
    Exception for problems within the server implementation
    """

    def __init__(
            self,
            message: str,
            detail: Optional[str] = None,
            error_code: schemas.ErrorCode = schemas.ErrorCode.INTERNAL_ERROR
    ):
        super().__init__(
            status_code=500,
            error_code=error_code,
            detail=detail or message,
            message=message
        )


def translate(exc: Exception) -> APIException:
    """
    Translate failures of the data access collaborator into API exceptions

    :param exc: any exception raised while handling a request
    :return: API exception carrying the status class and error code of the failure
    """

    if isinstance(exc, APIException):
        return exc
    if isinstance(exc, access.RecordNotFound):
        return NotFound(f"{exc.resource}/{exc.identifier}", f"Instance {exc.identifier!r} of {exc.resource!r} not found")
    if isinstance(exc, access.RecordValidationError):
        return ValidationFailed(exc.message)
    if isinstance(exc, (access.StorageError, sqlalchemy.exc.SQLAlchemyError)):
        return InternalServerException(
            "The storage backend failed to perform the operation.",
            str(exc),
            schemas.ErrorCode.STORAGE_FAILURE
        )
    return InternalServerException("Unexpected server error.", f"{type(exc).__name__}: {exc}")


DEFAULT_EXCEPTION_HANDLERS = {
    StarletteHTTPException: APIException.handle,
    RequestValidationError: handle_request_validation_error,
    access.AccessError: handle_access_error,
    Exception: handle_generic_exception
}


class APIWithoutValidationError(FastAPI):
    """
    FastAPI class that excludes 422 validation error responses in OpenAPI schema
    """

    def openapi(self) -> Dict[str, Any]:
        if not self.openapi_schema:
            super().openapi()
            for path, operations in self.openapi_schema.get("paths", {}).items():
                for method, metadata in operations.items():
                    metadata.get("responses", {}).pop("422", None)
        return self.openapi_schema
