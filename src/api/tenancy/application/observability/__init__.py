"""Domain-Oriented Observability for the tenancy application layer."""

from tenancy.application.observability.availability_probe import (
    AvailabilityProbe,
    DefaultAvailabilityProbe,
)
from tenancy.application.observability.credential_service_probe import (
    CredentialServiceProbe,
    DefaultCredentialServiceProbe,
)
from tenancy.application.observability.provisioning_service_probe import (
    DefaultProvisioningServiceProbe,
    ProvisioningServiceProbe,
)
from tenancy.application.observability.reconciliation_probe import (
    DefaultReconciliationProbe,
    ReconciliationProbe,
)

__all__ = [
    "AvailabilityProbe",
    "DefaultAvailabilityProbe",
    "CredentialServiceProbe",
    "DefaultCredentialServiceProbe",
    "ProvisioningServiceProbe",
    "DefaultProvisioningServiceProbe",
    "ReconciliationProbe",
    "DefaultReconciliationProbe",
]
