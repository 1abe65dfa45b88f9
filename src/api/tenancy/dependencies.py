"""FastAPI dependency providers for the tenancy bounded context.

Every collaborator of a request shares the request's write session, so the
application services can open their short transactions on one connection.
The identity provider client is a process-wide httpx.AsyncClient created
lazily and closed on shutdown.
"""

from __future__ import annotations

from typing import Annotated

import httpx
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.dependencies import get_session
from infrastructure.settings import (
    IdentityProviderSettings,
    ProvisioningSettings,
    get_identity_provider_settings,
    get_provisioning_settings,
)
from tenancy.application.identity_classifier import (
    AdministratorIdentityClassifier,
    IdentityClassifier,
)
from tenancy.application.services import (
    AvailabilityService,
    CredentialService,
    IdempotencyLedger,
    ProvisioningQueryService,
    ProvisioningService,
    ReconciliationService,
    SagaCompensator,
)
from tenancy.domain.exceptions import ForbiddenError
from tenancy.infrastructure.administrator_repository import AdministratorRepository
from tenancy.infrastructure.audit_log_repository import AuditLogRepository
from tenancy.infrastructure.identity_provider import HttpIdentityProvider
from tenancy.infrastructure.owner_repository import (
    OwnerLinkRepository,
    OwnerRepository,
)
from tenancy.infrastructure.provisioning_request_repository import (
    ProvisioningRequestRepository,
)
from tenancy.infrastructure.tenant_repository import TenantRepository
from tenancy.ports.identity_provider import IIdentityProvider
from tenancy.presentation.errors import current_request_id

# Module-level client (created on first use)
_identity_provider_client: httpx.AsyncClient | None = None


def build_identity_provider_client(
    settings: IdentityProviderSettings,
) -> httpx.AsyncClient:
    """Build the admin API client for the identity provider.

    Args:
        settings: Identity provider connection settings

    Returns:
        AsyncClient carrying base URL, service credential and timeout
    """
    service_key = settings.service_key.get_secret_value()
    return httpx.AsyncClient(
        base_url=settings.base_url,
        headers={
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        },
        timeout=settings.timeout_seconds,
    )


def get_identity_provider_client() -> httpx.AsyncClient:
    """Get the shared identity provider client (singleton)."""
    global _identity_provider_client
    if _identity_provider_client is None:
        _identity_provider_client = build_identity_provider_client(
            get_identity_provider_settings()
        )
    return _identity_provider_client


async def close_identity_provider_client() -> None:
    """Close the shared identity provider client, if it was created."""
    global _identity_provider_client
    if _identity_provider_client is not None:
        await _identity_provider_client.aclose()
        _identity_provider_client = None


def get_request_id(request: Request) -> str:
    """Get the correlation id of the current request.

    Uses the id assigned by the request-id middleware, then the
    X-Request-ID header, and generates one when neither is present.
    """
    return current_request_id(request)


def get_requester_id(
    x_requester_id: Annotated[str | None, Header()] = None,
) -> str:
    """Get the authenticated requester's identity id.

    The authenticating gateway sets X-Requester-Id; a request without it
    is rejected before any service runs.

    Raises:
        ForbiddenError: If the header is missing or blank
    """
    if x_requester_id is None or not x_requester_id.strip():
        raise ForbiddenError("Requester identity is required")
    return x_requester_id.strip()


def get_identity_provider(
    client: Annotated[httpx.AsyncClient, Depends(get_identity_provider_client)],
    settings: Annotated[
        IdentityProviderSettings, Depends(get_identity_provider_settings)
    ],
) -> IIdentityProvider:
    """Get the identity provider adapter."""
    return HttpIdentityProvider(
        client=client,
        require_email_verification=settings.require_email_verification,
        page_size=settings.page_size,
    )


def get_tenant_repository(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> TenantRepository:
    return TenantRepository(session=session)


def get_owner_repository(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> OwnerRepository:
    return OwnerRepository(session=session)


def get_owner_link_repository(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> OwnerLinkRepository:
    return OwnerLinkRepository(session=session)


def get_administrator_repository(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AdministratorRepository:
    return AdministratorRepository(session=session)


def get_provisioning_request_repository(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ProvisioningRequestRepository:
    return ProvisioningRequestRepository(session=session)


def get_audit_log(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AuditLogRepository:
    return AuditLogRepository(session=session)


def get_identity_classifier(
    administrators: Annotated[
        AdministratorRepository, Depends(get_administrator_repository)
    ],
) -> IdentityClassifier:
    """Get the classifier that tells administrators from tenant owners."""
    return AdministratorIdentityClassifier(administrator_repository=administrators)


def get_availability_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    tenants: Annotated[TenantRepository, Depends(get_tenant_repository)],
    owners: Annotated[OwnerRepository, Depends(get_owner_repository)],
    owner_links: Annotated[OwnerLinkRepository, Depends(get_owner_link_repository)],
    administrators: Annotated[
        AdministratorRepository, Depends(get_administrator_repository)
    ],
    identity_provider: Annotated[IIdentityProvider, Depends(get_identity_provider)],
    settings: Annotated[ProvisioningSettings, Depends(get_provisioning_settings)],
) -> AvailabilityService:
    """Get AvailabilityService instance.

    Returns:
        AvailabilityService checking every identity-bearing store
    """
    return AvailabilityService(
        session=session,
        tenant_repository=tenants,
        owner_repository=owners,
        owner_link_repository=owner_links,
        administrator_repository=administrators,
        identity_provider=identity_provider,
        settings=settings,
    )


def get_idempotency_ledger(
    session: Annotated[AsyncSession, Depends(get_session)],
    requests: Annotated[
        ProvisioningRequestRepository, Depends(get_provisioning_request_repository)
    ],
) -> IdempotencyLedger:
    return IdempotencyLedger(session=session, repository=requests)


def get_saga_compensator(
    session: Annotated[AsyncSession, Depends(get_session)],
    tenants: Annotated[TenantRepository, Depends(get_tenant_repository)],
    owner_links: Annotated[OwnerLinkRepository, Depends(get_owner_link_repository)],
    identity_provider: Annotated[IIdentityProvider, Depends(get_identity_provider)],
    classifier: Annotated[IdentityClassifier, Depends(get_identity_classifier)],
) -> SagaCompensator:
    return SagaCompensator(
        session=session,
        tenant_repository=tenants,
        owner_link_repository=owner_links,
        identity_provider=identity_provider,
        identity_classifier=classifier,
    )


def get_provisioning_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    ledger: Annotated[IdempotencyLedger, Depends(get_idempotency_ledger)],
    availability: Annotated[AvailabilityService, Depends(get_availability_service)],
    classifier: Annotated[IdentityClassifier, Depends(get_identity_classifier)],
    tenants: Annotated[TenantRepository, Depends(get_tenant_repository)],
    owner_links: Annotated[OwnerLinkRepository, Depends(get_owner_link_repository)],
    owners: Annotated[OwnerRepository, Depends(get_owner_repository)],
    identity_provider: Annotated[IIdentityProvider, Depends(get_identity_provider)],
    audit_log: Annotated[AuditLogRepository, Depends(get_audit_log)],
    compensator: Annotated[SagaCompensator, Depends(get_saga_compensator)],
    settings: Annotated[ProvisioningSettings, Depends(get_provisioning_settings)],
) -> ProvisioningService:
    """Get ProvisioningService instance.

    All collaborators share the request's write session.

    Returns:
        ProvisioningService running the provisioning saga
    """
    return ProvisioningService(
        session=session,
        ledger=ledger,
        availability=availability,
        identity_classifier=classifier,
        tenant_repository=tenants,
        owner_link_repository=owner_links,
        owner_repository=owners,
        identity_provider=identity_provider,
        audit_log=audit_log,
        compensator=compensator,
        settings=settings,
    )


def get_credential_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    classifier: Annotated[IdentityClassifier, Depends(get_identity_classifier)],
    tenants: Annotated[TenantRepository, Depends(get_tenant_repository)],
    owners: Annotated[OwnerRepository, Depends(get_owner_repository)],
    owner_links: Annotated[OwnerLinkRepository, Depends(get_owner_link_repository)],
    availability: Annotated[AvailabilityService, Depends(get_availability_service)],
    identity_provider: Annotated[IIdentityProvider, Depends(get_identity_provider)],
    audit_log: Annotated[AuditLogRepository, Depends(get_audit_log)],
    settings: Annotated[ProvisioningSettings, Depends(get_provisioning_settings)],
) -> CredentialService:
    """Get CredentialService instance.

    Returns:
        CredentialService guarding administrator credentials
    """
    return CredentialService(
        session=session,
        identity_classifier=classifier,
        tenant_repository=tenants,
        owner_repository=owners,
        owner_link_repository=owner_links,
        availability=availability,
        identity_provider=identity_provider,
        audit_log=audit_log,
        settings=settings,
    )


def get_reconciliation_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    ledger: Annotated[IdempotencyLedger, Depends(get_idempotency_ledger)],
    requests: Annotated[
        ProvisioningRequestRepository, Depends(get_provisioning_request_repository)
    ],
    tenants: Annotated[TenantRepository, Depends(get_tenant_repository)],
    owners: Annotated[OwnerRepository, Depends(get_owner_repository)],
    classifier: Annotated[IdentityClassifier, Depends(get_identity_classifier)],
    compensator: Annotated[SagaCompensator, Depends(get_saga_compensator)],
    audit_log: Annotated[AuditLogRepository, Depends(get_audit_log)],
    settings: Annotated[ProvisioningSettings, Depends(get_provisioning_settings)],
) -> ReconciliationService:
    return ReconciliationService(
        session=session,
        ledger=ledger,
        request_repository=requests,
        tenant_repository=tenants,
        owner_repository=owners,
        identity_classifier=classifier,
        compensator=compensator,
        audit_log=audit_log,
        settings=settings,
    )


def get_provisioning_query_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    requests: Annotated[
        ProvisioningRequestRepository, Depends(get_provisioning_request_repository)
    ],
    audit_log: Annotated[AuditLogRepository, Depends(get_audit_log)],
    classifier: Annotated[IdentityClassifier, Depends(get_identity_classifier)],
) -> ProvisioningQueryService:
    return ProvisioningQueryService(
        session=session,
        request_repository=requests,
        audit_log=audit_log,
        identity_classifier=classifier,
    )
