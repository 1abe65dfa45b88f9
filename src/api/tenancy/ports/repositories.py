"""Repository protocols (ports) for the tenancy bounded context.

Repositories only add, flush and query. Transaction boundaries belong to
the application services, which wrap each saga step in its own
`async with session.begin()` block.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from tenancy.domain.aggregates import (
    Administrator,
    Owner,
    OwnerLink,
    ProvisioningRequest,
    Tenant,
)
from tenancy.domain.audit import AuditEntry
from tenancy.domain.value_objects import IdempotencyKey, OwnerId, TenantId


@runtime_checkable
class ITenantRepository(Protocol):
    """Repository for Tenant aggregate persistence."""

    async def save(self, tenant: Tenant) -> None:
        """Insert or update a tenant.

        Raises:
            DuplicateSlugError: If the slug is already taken
            OwnerAlreadyLinkedError: If the owner id is referenced by another tenant
        """
        ...

    async def get_by_id(self, tenant_id: TenantId) -> Tenant | None:
        ...

    async def slug_exists(self, slug: str) -> bool:
        """Whether any tenant row currently holds this slug."""
        ...

    async def delete(self, tenant_id: TenantId) -> bool:
        """Hard-delete a tenant and its provisional linkage.

        Returns:
            True if a row was deleted, False if none existed
        """
        ...


@runtime_checkable
class IOwnerLinkRepository(Protocol):
    """Repository for provisional owner-linkage rows."""

    async def save(self, link: OwnerLink) -> None:
        """Insert or update a linkage row.

        Raises:
            DuplicateOwnerEmailError: If another tenant reserved the email
        """
        ...

    async def get_by_tenant(self, tenant_id: TenantId) -> OwnerLink | None:
        ...

    async def email_reserved(self, email: str) -> bool:
        """Whether any tenant has reserved this owner email."""
        ...

    async def delete(self, tenant_id: TenantId) -> bool:
        ...


@runtime_checkable
class IOwnerRepository(Protocol):
    """Repository for owner profile rows."""

    async def save(self, owner: Owner) -> None:
        """Insert or update an owner.

        Raises:
            DuplicateOwnerEmailError: If the email belongs to another owner
            OwnerAlreadyLinkedError: If the tenant already has an owner row
        """
        ...

    async def get_by_id(self, owner_id: OwnerId) -> Owner | None:
        ...

    async def get_by_tenant(self, tenant_id: TenantId) -> Owner | None:
        ...

    async def email_exists(
        self,
        email: str,
        exclude_owner_id: OwnerId | None = None,
    ) -> bool:
        """Whether an owner other than exclude_owner_id uses this email."""
        ...


@runtime_checkable
class IAdministratorRepository(Protocol):
    """Read-only access to platform administrators."""

    async def get_by_id(self, administrator_id: str) -> Administrator | None:
        ...

    async def email_exists(self, email: str) -> bool:
        ...


@runtime_checkable
class IProvisioningRequestRepository(Protocol):
    """Persistence for the idempotency ledger."""

    async def add(self, request: ProvisioningRequest) -> None:
        """Insert a new ledger record.

        Raises:
            DuplicateIdempotencyKeyError: If the key already exists
        """
        ...

    async def save(self, request: ProvisioningRequest) -> None:
        """Persist changes to an existing ledger record."""
        ...

    async def get_by_idempotency_key(
        self, key: IdempotencyKey
    ) -> ProvisioningRequest | None:
        ...

    async def list_compensation_incomplete(self) -> list[ProvisioningRequest]:
        """Records rolled back with orphaned state, oldest first."""
        ...

    async def list_stale(self, started_before: datetime) -> list[ProvisioningRequest]:
        """Non-finalized records started before the cutoff, oldest first."""
        ...


@runtime_checkable
class IAuditLog(Protocol):
    """Append-only audit sink."""

    async def append(self, entry: AuditEntry) -> None:
        ...

    async def list_by_correlation_id(self, correlation_id: str) -> list[AuditEntry]:
        """Entries for one correlation id in recording order."""
        ...
