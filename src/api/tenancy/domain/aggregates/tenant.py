"""Tenant aggregate for the tenancy context."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from tenancy.domain.value_objects import OwnerId, TenantId, TenantStatus


class TenantOwnerInvariantError(Exception):
    """Raised when a tenant would leave the provisioning state without an owner."""

    pass


@dataclass
class Tenant:
    """Tenant aggregate representing one restaurant account.

    Business rules:
    - Slugs are globally unique (enforced by the database)
    - owner_id stays unset only while status is PROVISIONING
    - A given owner id is referenced by at most one tenant
    """

    id: TenantId
    name: str
    slug: str
    status: TenantStatus
    timezone: str
    currency: str
    owner_id: OwnerId | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create_provisional(
        cls,
        name: str,
        slug: str,
        timezone: str,
        currency: str,
    ) -> Tenant:
        """Create a tenant in the PROVISIONING state with no owner yet.

        Args:
            name: Display name of the restaurant
            slug: Normalized URL slug
            timezone: IANA timezone name
            currency: ISO 4217 currency code

        Returns:
            A new Tenant aggregate with a freshly generated id
        """
        return cls(
            id=TenantId.generate(),
            name=name,
            slug=slug,
            status=TenantStatus.PROVISIONING,
            timezone=timezone,
            currency=currency,
        )

    def activate_with_owner(self, owner_id: OwnerId) -> None:
        """Attach the real owner identity and flip the tenant to ACTIVE.

        Raises:
            TenantOwnerInvariantError: If the tenant is no longer provisioning
                or already points at a different owner
        """
        if self.status is not TenantStatus.PROVISIONING:
            raise TenantOwnerInvariantError(
                f"Tenant {self.id} is {self.status.value}, expected provisioning"
            )
        if self.owner_id is not None and self.owner_id != owner_id:
            raise TenantOwnerInvariantError(
                f"Tenant {self.id} is already linked to a different owner"
            )
        self.owner_id = owner_id
        self.status = TenantStatus.ACTIVE
        self.updated_at = datetime.now(UTC)

    @property
    def has_owner(self) -> bool:
        return self.owner_id is not None

    def satisfies_owner_invariant(self) -> bool:
        """Whether owner_id is set for every non-transient status."""
        return self.status.is_transient or self.owner_id is not None
