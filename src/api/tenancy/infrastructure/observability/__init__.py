"""Domain probes for tenancy infrastructure."""

from tenancy.infrastructure.observability.identity_provider_probe import (
    DefaultIdentityProviderProbe,
    IdentityProviderProbe,
)
from tenancy.infrastructure.observability.repository_probe import (
    DefaultOwnerRepositoryProbe,
    DefaultProvisioningRequestRepositoryProbe,
    DefaultTenantRepositoryProbe,
    OwnerRepositoryProbe,
    ProvisioningRequestRepositoryProbe,
    TenantRepositoryProbe,
)

__all__ = [
    "DefaultIdentityProviderProbe",
    "DefaultOwnerRepositoryProbe",
    "DefaultProvisioningRequestRepositoryProbe",
    "DefaultTenantRepositoryProbe",
    "IdentityProviderProbe",
    "OwnerRepositoryProbe",
    "ProvisioningRequestRepositoryProbe",
    "TenantRepositoryProbe",
]
