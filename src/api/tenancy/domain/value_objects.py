"""Value objects for the tenancy domain.

Value objects are immutable descriptors that provide type safety and
domain semantics for identifiers and domain concepts.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from ulid import ULID


@dataclass(frozen=True)
class TenantId:
    """Identifier for a Tenant aggregate.

    Uses ULID for sortability and distribution-friendly generation.
    """

    value: str

    def __str__(self) -> str:
        """Return string representation."""
        return self.value

    @classmethod
    def generate(cls) -> TenantId:
        """Generate a new TenantId using ULID."""
        return cls(value=str(ULID()))

    @classmethod
    def from_string(cls, value: str) -> TenantId:
        """Create TenantId from string value.

        Args:
            value: ULID string (case-insensitive)

        Returns:
            TenantId instance with the canonical uppercase ULID

        Raises:
            ValueError: If value is not a valid ULID
        """
        try:
            parsed = ULID.from_str(value.upper())
        except ValueError as e:
            raise ValueError(f"Invalid TenantId: {value}") from e

        return cls(value=str(parsed))


@dataclass(frozen=True)
class OwnerId:
    """Identifier for an Owner.

    Owner ids are minted by the external identity provider, so no format
    beyond "non-empty" is assumed.
    """

    value: str

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("OwnerId cannot be empty")

    def __str__(self) -> str:
        """Return string representation."""
        return self.value


@dataclass(frozen=True)
class ProvisioningRequestId:
    """Identifier for a ProvisioningRequest ledger record."""

    value: str

    def __str__(self) -> str:
        """Return string representation."""
        return self.value

    @classmethod
    def generate(cls) -> ProvisioningRequestId:
        """Generate a new ProvisioningRequestId using ULID."""
        return cls(value=str(ULID()))


@dataclass(frozen=True)
class IdempotencyKey:
    """Client-supplied idempotency key (a UUID).

    The key is part of the client's durable request draft, so a page reload
    resubmits the same key rather than minting a new one.
    """

    value: str

    def __str__(self) -> str:
        """Return string representation."""
        return self.value

    @classmethod
    def from_string(cls, value: str) -> IdempotencyKey:
        """Create an IdempotencyKey from its string form.

        Args:
            value: UUID string

        Returns:
            IdempotencyKey with the canonical lowercase hyphenated form

        Raises:
            ValueError: If value is not a UUID
        """
        try:
            parsed = UUID(value)
        except (ValueError, AttributeError, TypeError) as e:
            raise ValueError(f"Invalid idempotency key: {value}") from e

        return cls(value=str(parsed))


class TenantStatus(StrEnum):
    """Lifecycle status of a tenant."""

    PROVISIONING = "provisioning"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"

    @property
    def is_transient(self) -> bool:
        """States in which ownerId may still be unset."""
        return self is TenantStatus.PROVISIONING


class OwnerLinkStatus(StrEnum):
    """Status of the provisional owner-linkage row."""

    PENDING = "pending"
    LINKED = "linked"


class ProvisioningStatus(StrEnum):
    """States of the provisioning saga."""

    INITIATED = "initiated"
    VALIDATING = "validating"
    CREATING_TENANT_RECORD = "creating_tenant_record"
    CREATING_IDENTITY = "creating_identity"
    LINKING_IDENTITY = "linking_identity"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLING_BACK = "rolling_back"
    ROLLED_BACK = "rolled_back"


class ErrorCode(StrEnum):
    """Stable, machine-checkable error codes returned to callers."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    SLUG_UNAVAILABLE = "SLUG_UNAVAILABLE"
    EMAIL_UNAVAILABLE = "EMAIL_UNAVAILABLE"
    DUPLICATE_REQUEST = "DUPLICATE_REQUEST"
    IDENTITY_PROVIDER_UNAVAILABLE = "IDENTITY_PROVIDER_UNAVAILABLE"
    ADMIN_CREDENTIAL_PROTECTION_VIOLATION = "ADMIN_CREDENTIAL_PROTECTION_VIOLATION"
    INTEGRITY_VERIFICATION_FAILED = "INTEGRITY_VERIFICATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    TENANT_NOT_FOUND = "TENANT_NOT_FOUND"
    OWNER_NOT_LINKED = "OWNER_NOT_LINKED"
    FORBIDDEN = "FORBIDDEN"


class ErrorCategory(StrEnum):
    """How an error propagates.

    pre_flight and transactional errors have no side effects and are safe
    to retry with corrected input. cross_system errors may leave external
    state behind and go through compensation. invariant errors are never
    retried and are logged at the highest severity.
    """

    PRE_FLIGHT = "pre_flight"
    TRANSACTIONAL = "transactional"
    CROSS_SYSTEM = "cross_system"
    INVARIANT = "invariant"


class ConflictSource(StrEnum):
    """Storage system in which a conflicting email was found."""

    OWNER = "owner"
    ADMINISTRATOR = "administrator"
    IDENTITY_PROVIDER = "identity_provider"


class OwnerRole(StrEnum):
    """Role of a tenant owner identity."""

    TENANT_OWNER = "tenant_owner"


class AdministratorRole(StrEnum):
    """Roles of platform staff identities."""

    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    SUPPORT = "SUPPORT"


class AuditOperation(StrEnum):
    """Operations recorded in the provisioning audit log."""

    PROVISION = "provision"
    CREDENTIAL_UPDATE = "credential_update"
    RECONCILIATION = "reconciliation"
