"""
restcore error schemas
"""

import enum
from typing import Optional

import pydantic


@enum.unique
class ErrorCode(enum.IntEnum):
    """
    Stable internal error codes sent in the ``errorCode`` field of every error response

    Codes starting with ``1`` are client errors (status 400),
    codes starting with ``2`` are server errors (status 500).
    """

    MALFORMED_PATH = 10001
    UNKNOWN_RESOURCE = 10002
    NOT_FOUND = 10003
    METHOD_NOT_SUPPORTED = 10004
    MALFORMED_QUERY = 10005
    VALIDATION_FAILED = 10006
    MALFORMED_BODY = 10007
    UNKNOWN_ENDPOINT = 10008
    BAD_REQUEST = 10009

    INTERNAL_ERROR = 20001
    STORAGE_FAILURE = 20002


class APIError(pydantic.BaseModel):
    """
    APIError: shared model for all types of API failures

    Whenever some kind of problem occurs during request handling and some
    exception handler took over, the answer will be this model. The field
    `status` mirrors the HTTP status code of the response and is always
    either `400` (the client should change its request) or `500` (the
    server failed). The field `developerMessage` contains a technical
    description of the problem which is primarily useful for debugging.
    The field `userMessage` holds a short text that may be shown to end
    users, if available. The field `errorCode` contains a stable internal
    error code, and `moreInfo` a link to the documentation of that code.
    """

    model_config = pydantic.ConfigDict(populate_by_name=True)

    status: pydantic.conint(ge=400, le=599)
    developer_message: str = pydantic.Field(alias="developerMessage")
    user_message: Optional[str] = pydantic.Field(default=None, alias="userMessage")
    error_code: pydantic.PositiveInt = pydantic.Field(alias="errorCode")
    more_info: str = pydantic.Field(alias="moreInfo")
