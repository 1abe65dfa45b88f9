"""Application services for the tenancy bounded context."""

from tenancy.application.services.availability_service import AvailabilityService
from tenancy.application.services.compensation import (
    CompensationOutcome,
    SagaCompensator,
)
from tenancy.application.services.credential_service import CredentialService
from tenancy.application.services.idempotency_ledger import (
    IdempotencyLedger,
    LedgerEntry,
)
from tenancy.application.services.provisioning_query_service import (
    ProvisioningQueryService,
)
from tenancy.application.services.provisioning_service import ProvisioningService
from tenancy.application.services.reconciliation_service import (
    ReconciliationService,
)

__all__ = [
    "AvailabilityService",
    "CompensationOutcome",
    "CredentialService",
    "IdempotencyLedger",
    "LedgerEntry",
    "ProvisioningQueryService",
    "ProvisioningService",
    "ReconciliationService",
    "SagaCompensator",
]
