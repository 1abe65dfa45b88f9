"""Provisional owner linkage for a tenant being provisioned."""

from __future__ import annotations

from dataclasses import dataclass

from tenancy.domain.value_objects import (
    OwnerId,
    OwnerLinkStatus,
    ProvisioningRequestId,
    TenantId,
)


@dataclass
class OwnerLink:
    """Reservation of an owner email for a tenant.

    Written in the same transaction as the provisional tenant, so the unique
    owner_email constraint closes the race between two requests for the same
    email before any identity is created. Flipped to LINKED once the real
    identity id is known.
    """

    tenant_id: TenantId
    owner_email: str
    provisioning_request_id: ProvisioningRequestId
    owner_id: OwnerId | None = None
    status: OwnerLinkStatus = OwnerLinkStatus.PENDING

    @classmethod
    def reserve(
        cls,
        tenant_id: TenantId,
        owner_email: str,
        provisioning_request_id: ProvisioningRequestId,
    ) -> OwnerLink:
        return cls(
            tenant_id=tenant_id,
            owner_email=owner_email,
            provisioning_request_id=provisioning_request_id,
        )

    def link(self, owner_id: OwnerId) -> None:
        self.owner_id = owner_id
        self.status = OwnerLinkStatus.LINKED
