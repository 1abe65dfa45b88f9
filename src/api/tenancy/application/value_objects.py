"""Application-layer value objects for the tenancy bounded context.

Commands carry normalized caller input into the services; results carry
what is returned to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tenancy.domain.value_objects import (
    ConflictSource,
    IdempotencyKey,
    OwnerId,
    TenantId,
)


@dataclass(frozen=True)
class ProvisionCommand:
    """A normalized provisioning request.

    Built through tenancy.application.validation.build_provision_command,
    so slug and email are already lower-cased and validated.
    """

    idempotency_key: IdempotencyKey
    tenant_name: str
    slug: str
    timezone: str
    currency: str
    owner_email: str
    owner_name: str | None = None

    def canonical_payload(self) -> dict[str, Any]:
        """The form stored in the ledger and compared on replay."""
        return {
            "idempotencyKey": self.idempotency_key.value,
            "tenant": {
                "name": self.tenant_name,
                "slug": self.slug,
                "timezone": self.timezone,
                "currency": self.currency,
            },
            "owner": {
                "email": self.owner_email,
                "name": self.owner_name,
            },
        }


@dataclass(frozen=True)
class ProvisioningResult:
    """Successful provisioning outcome.

    request_id is the correlation id of the attempt that did the work, so a
    replay returns exactly what the first caller received.
    """

    tenant_id: TenantId
    owner_id: OwnerId
    slug: str
    request_id: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "tenantId": self.tenant_id.value,
            "ownerId": self.owner_id.value,
            "slug": self.slug,
            "requestId": self.request_id,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ProvisioningResult:
        return cls(
            tenant_id=TenantId(value=payload["tenantId"]),
            owner_id=OwnerId(value=payload["ownerId"]),
            slug=payload["slug"],
            request_id=payload["requestId"],
        )


@dataclass(frozen=True)
class CredentialUpdateCommand:
    """A normalized credential change for a tenant owner."""

    tenant_id: TenantId
    new_email: str | None = None
    new_password: str | None = None
    generate_password: bool = False


@dataclass(frozen=True)
class CredentialUpdateResult:
    """Outcome of a credential change.

    generated_password is only set when the caller asked for one; it is
    returned once and never stored.
    """

    request_id: str
    email_changed: bool
    password_changed: bool
    generated_password: str | None = None
    owner_created: bool = False

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "updated": True,
            "ownerCreated": self.owner_created,
            "requestId": self.request_id,
        }
        if self.generated_password is not None:
            payload["generatedPassword"] = self.generated_password
        return payload


@dataclass(frozen=True)
class SlugAvailability:
    """Advisory result of a slug check."""

    slug: str
    available: bool
    reason: str | None = None
    suggestion: str | None = None


@dataclass(frozen=True)
class EmailAvailability:
    """Advisory result of an email check."""

    email: str
    available: bool
    reason: str | None = None
    conflicting_source: ConflictSource | None = None


@dataclass(frozen=True)
class ReconciliationReport:
    """Summary of one reconciliation sweep."""

    examined: int
    resumed: list[str]
    rolled_back: list[str]
    compensation_incomplete: list[str]
