"""Aggregates for the tenancy bounded context."""

from tenancy.domain.aggregates.administrator import Administrator
from tenancy.domain.aggregates.owner import Owner
from tenancy.domain.aggregates.owner_link import OwnerLink
from tenancy.domain.aggregates.provisioning_request import ProvisioningRequest
from tenancy.domain.aggregates.tenant import Tenant

__all__ = [
    "Administrator",
    "Owner",
    "OwnerLink",
    "ProvisioningRequest",
    "Tenant",
]
