"""Owner aggregate: the local mirror of a tenant owner's identity."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from tenancy.domain.value_objects import OwnerId, OwnerRole, TenantId


@dataclass
class Owner:
    """Profile row for the identity that manages exactly one tenant.

    The email is a mirror of the identity provider's value and is globally
    unique across owners and administrators.
    """

    id: OwnerId
    email: str
    tenant_id: TenantId
    display_name: str | None = None
    role: OwnerRole = OwnerRole.TENANT_OWNER
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create(
        cls,
        owner_id: OwnerId,
        email: str,
        tenant_id: TenantId,
        display_name: str | None = None,
    ) -> Owner:
        """Create the owner profile for a freshly created identity."""
        return cls(
            id=owner_id,
            email=email,
            tenant_id=tenant_id,
            display_name=display_name,
        )

    def change_email(self, new_email: str) -> None:
        """Update the mirrored email."""
        self.email = new_email
        self.updated_at = datetime.now(UTC)
