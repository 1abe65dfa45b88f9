"""Exception handlers rendering provisioning errors on the wire.

Every error body is `{code, message, suggestion?, requestId}` and the
correlation id is echoed in the X-Request-ID header.
"""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from ulid import ULID

from tenancy.domain.exceptions import ProvisioningError, ValidationFailedError
from tenancy.domain.value_objects import ErrorCode

REQUEST_ID_HEADER = "X-Request-ID"

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_FAILED: 422,
    ErrorCode.SLUG_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.EMAIL_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.DUPLICATE_REQUEST: status.HTTP_409_CONFLICT,
    ErrorCode.OWNER_NOT_LINKED: status.HTTP_409_CONFLICT,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.ADMIN_CREDENTIAL_PROTECTION_VIOLATION: status.HTTP_403_FORBIDDEN,
    ErrorCode.TENANT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.IDENTITY_PROVIDER_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.INTEGRITY_VERIFICATION_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def current_request_id(request: Request) -> str:
    """Return the correlation id bound to the request, assigning one if needed."""
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(ULID())
        request.state.request_id = request_id
    return request_id


def error_response(request: Request, error: ProvisioningError) -> JSONResponse:
    """Render a ProvisioningError with its mapped HTTP status.

    A replayed error keeps the request id of the attempt that produced it in
    the body; the header always carries the current request id.
    """
    request_id = current_request_id(request)
    error.with_request_id(request_id)
    return JSONResponse(
        status_code=STATUS_BY_CODE.get(
            error.code, status.HTTP_500_INTERNAL_SERVER_ERROR
        ),
        content=error.to_payload(),
        headers={REQUEST_ID_HEADER: request_id},
    )


async def handle_provisioning_error(
    request: Request, exc: ProvisioningError
) -> JSONResponse:
    return error_response(request, exc)


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies as VALIDATION_FAILED."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    message = "; ".join(str(p) for p in problems) or "Request is malformed"
    return error_response(request, ValidationFailedError(message))


def register_exception_handlers(app: FastAPI) -> None:
    """Install the provisioning error handlers on the application."""
    app.add_exception_handler(ProvisioningError, handle_provisioning_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
