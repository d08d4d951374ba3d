"""
Error Taxonomy and Response Codes

Every terminal failure in the authorization pipeline is one of the ErrorKind
members below. Each kind carries its default HTTP status, application error
code and message, and the envelope responseCode.
"""

import enum
from dataclasses import dataclass

API_VERSION_V1 = "1.0"


class ResponseCode(str, enum.Enum):
    """Envelope-level responseCode values."""
    SUCCESS = "OK"
    CLIENT_ERROR = "CLIENT_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"


@dataclass(frozen=True)
class ErrorDefinition:
    status_code: int
    code: str
    message: str
    response_code: ResponseCode


class ErrorKind(str, enum.Enum):
    TOKEN_MISSING = "TOKEN_MISSING"
    TOKEN_INVALID = "TOKEN_INVALID"
    HIERARCHY_MISSING = "HIERARCHY_MISSING"
    HIERARCHY_ROOT_NOT_FOUND = "HIERARCHY_ROOT_NOT_FOUND"
    CONTENT_FETCH_FAILED = "CONTENT_FETCH_FAILED"
    UPSTREAM_FAILED = "UPSTREAM_FAILED"
    REQUEST_INVALID = "REQUEST_INVALID"

    @property
    def definition(self) -> ErrorDefinition:
        return ERROR_DEFINITIONS[self]


ERROR_DEFINITIONS = {
    ErrorKind.TOKEN_MISSING: ErrorDefinition(
        status_code=401,
        code="ERR_TOKEN_FIELDS_MISSING",
        message="Required fields like token are missing",
        response_code=ResponseCode.UNAUTHORIZED_ACCESS,
    ),
    ErrorKind.TOKEN_INVALID: ErrorDefinition(
        status_code=401,
        code="ERR_TOKEN_INVALID",
        message="Access denied",
        response_code=ResponseCode.UNAUTHORIZED_ACCESS,
    ),
    ErrorKind.HIERARCHY_MISSING: ErrorDefinition(
        status_code=400,
        code="ERR_CONTENT_HIERARCHY_UPDATE_FIELDS_MISSING",
        message="Required fields for update content hierarchy are missing",
        response_code=ResponseCode.CLIENT_ERROR,
    ),
    ErrorKind.HIERARCHY_ROOT_NOT_FOUND: ErrorDefinition(
        status_code=400,
        code="ERR_CONTENT_HIERARCHY_ROOT_NOT_FOUND",
        message="Content hierarchy does not contain a root node",
        response_code=ResponseCode.CLIENT_ERROR,
    ),
    ErrorKind.CONTENT_FETCH_FAILED: ErrorDefinition(
        status_code=500,
        code="ERR_CONTENT_GET_FAILED",
        message="Get content failed",
        response_code=ResponseCode.SERVER_ERROR,
    ),
    ErrorKind.UPSTREAM_FAILED: ErrorDefinition(
        status_code=500,
        code="ERR_CONTENT_UPSTREAM_FAILED",
        message="Content service request failed",
        response_code=ResponseCode.SERVER_ERROR,
    ),
    ErrorKind.REQUEST_INVALID: ErrorDefinition(
        status_code=400,
        code="ERR_REQUEST_FIELDS_INVALID",
        message="Request is missing required fields or has invalid values",
        response_code=ResponseCode.CLIENT_ERROR,
    ),
}
