"""Domain errors for the tenancy bounded context.

Every failure that reaches a caller is a ProvisioningError carrying one of
the stable ErrorCode values. The category decides how it propagates:
pre-flight and transactional errors are plain rejections, cross-system
errors may have triggered compensation, and invariant errors are fatal.
"""

from __future__ import annotations

from typing import Any, ClassVar

from tenancy.domain.value_objects import ConflictSource, ErrorCategory, ErrorCode


class ProvisioningError(Exception):
    """Base class for errors returned to provisioning callers.

    Subclasses pin `code` and `category`. Instances can be rendered to the
    wire format with `to_payload()` and rebuilt from a stored payload with
    `from_payload()`, which is how a terminal failure is replayed verbatim
    for a retried idempotency key.
    """

    code: ClassVar[ErrorCode] = ErrorCode.INTERNAL_ERROR
    category: ClassVar[ErrorCategory] = ErrorCategory.INVARIANT

    def __init__(
        self,
        message: str,
        *,
        suggestion: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.request_id = request_id

    def with_request_id(self, request_id: str) -> ProvisioningError:
        """Attach the correlation id if none is set yet."""
        if self.request_id is None:
            self.request_id = request_id
        return self

    def to_payload(self) -> dict[str, Any]:
        """Render the error as `{code, message, suggestion?, requestId}`."""
        payload: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
        }
        if self.suggestion is not None:
            payload["suggestion"] = self.suggestion
        payload["requestId"] = self.request_id
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ProvisioningError:
        """Rebuild an error from a stored wire payload.

        Unknown codes come back as InternalError so a corrupted record never
        masquerades as a success.
        """
        try:
            code = ErrorCode(payload.get("code"))
        except ValueError:
            code = ErrorCode.INTERNAL_ERROR
        error_cls = _ERRORS_BY_CODE.get(code, InternalError)
        return error_cls._build(payload)

    @classmethod
    def _build(cls, payload: dict[str, Any]) -> ProvisioningError:
        return cls(
            str(payload.get("message", "")),
            suggestion=payload.get("suggestion"),
            request_id=payload.get("requestId"),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r})"


class ValidationFailedError(ProvisioningError):
    """Input failed format or business-rule validation."""

    code = ErrorCode.VALIDATION_FAILED
    category = ErrorCategory.PRE_FLIGHT


class SlugUnavailableError(ProvisioningError):
    """The requested slug is reserved or already assigned to a tenant."""

    code = ErrorCode.SLUG_UNAVAILABLE
    category = ErrorCategory.PRE_FLIGHT


class EmailUnavailableError(ProvisioningError):
    """The requested owner email already belongs to some identity."""

    code = ErrorCode.EMAIL_UNAVAILABLE
    category = ErrorCategory.PRE_FLIGHT

    def __init__(
        self,
        message: str,
        *,
        conflicting_source: ConflictSource | None = None,
        suggestion: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message, suggestion=suggestion, request_id=request_id)
        self.conflicting_source = conflicting_source

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.conflicting_source is not None:
            payload["conflictingSource"] = self.conflicting_source.value
        return payload

    @classmethod
    def _build(cls, payload: dict[str, Any]) -> ProvisioningError:
        source = payload.get("conflictingSource")
        return cls(
            str(payload.get("message", "")),
            conflicting_source=ConflictSource(source) if source else None,
            suggestion=payload.get("suggestion"),
            request_id=payload.get("requestId"),
        )


class DuplicateRequestError(ProvisioningError):
    """The idempotency key is in flight or was used with another payload."""

    code = ErrorCode.DUPLICATE_REQUEST
    category = ErrorCategory.PRE_FLIGHT


class IdentityProviderUnavailableFailure(ProvisioningError):
    """The identity provider could not be reached or failed."""

    code = ErrorCode.IDENTITY_PROVIDER_UNAVAILABLE
    category = ErrorCategory.CROSS_SYSTEM


class AdminCredentialProtectionViolation(ProvisioningError):
    """An operation tried to mutate an administrator's credentials."""

    code = ErrorCode.ADMIN_CREDENTIAL_PROTECTION_VIOLATION
    category = ErrorCategory.INVARIANT


class IntegrityVerificationFailedError(ProvisioningError):
    """Tenant and owner records disagree after linkage."""

    code = ErrorCode.INTEGRITY_VERIFICATION_FAILED
    category = ErrorCategory.INVARIANT


class InternalError(ProvisioningError):
    """Unexpected failure."""

    code = ErrorCode.INTERNAL_ERROR
    category = ErrorCategory.CROSS_SYSTEM


class TenantNotFoundError(ProvisioningError):
    """No tenant exists with the given id."""

    code = ErrorCode.TENANT_NOT_FOUND
    category = ErrorCategory.PRE_FLIGHT


class OwnerNotLinkedError(ProvisioningError):
    """The tenant has no linked owner identity yet."""

    code = ErrorCode.OWNER_NOT_LINKED
    category = ErrorCategory.PRE_FLIGHT


class ForbiddenError(ProvisioningError):
    """The requester is not an active administrator."""

    code = ErrorCode.FORBIDDEN
    category = ErrorCategory.PRE_FLIGHT


_ERRORS_BY_CODE: dict[ErrorCode, type[ProvisioningError]] = {
    error_cls.code: error_cls
    for error_cls in (
        ValidationFailedError,
        SlugUnavailableError,
        EmailUnavailableError,
        DuplicateRequestError,
        IdentityProviderUnavailableFailure,
        AdminCredentialProtectionViolation,
        IntegrityVerificationFailedError,
        InternalError,
        TenantNotFoundError,
        OwnerNotLinkedError,
        ForbiddenError,
    )
}


class InvalidStateTransitionError(Exception):
    """Raised when a provisioning request is moved along an edge it lacks.

    This is a programming error in the orchestrator, not a caller error;
    the application layer reports it as INTERNAL_ERROR.
    """

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot transition provisioning request from {current} to {target}")
        self.current = current
        self.target = target


class ProvisioningRequestFinalizedError(Exception):
    """Raised when a finalized provisioning request is mutated."""

    pass
