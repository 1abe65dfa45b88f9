"""Integration fixtures for the tenancy bounded context.

Services are wired through the production dependency providers over a
real PostgreSQL session; only the identity provider is an in-memory fake.
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.settings import ProvisioningSettings
from tenancy.application.services import (
    CredentialService,
    ProvisioningQueryService,
    ProvisioningService,
    ReconciliationService,
)
from tenancy.dependencies import (
    get_administrator_repository,
    get_audit_log,
    get_availability_service,
    get_credential_service,
    get_idempotency_ledger,
    get_identity_classifier,
    get_owner_link_repository,
    get_owner_repository,
    get_provisioning_query_service,
    get_provisioning_request_repository,
    get_provisioning_service,
    get_reconciliation_service,
    get_saga_compensator,
    get_tenant_repository,
)
from tenancy.domain.value_objects import AdministratorRole
from tenancy.infrastructure.models import AdministratorModel
from tests.unit.tenancy.fakes import (
    ADMIN_EMAIL,
    ADMIN_ID,
    SUPPORT_ID,
    FakeIdentityProvider,
)


@dataclass
class PostgresWiring:
    identity_provider: FakeIdentityProvider
    provisioning: ProvisioningService
    credentials: CredentialService
    reconciliation: ReconciliationService
    queries: ProvisioningQueryService


@pytest_asyncio.fixture
async def administrators(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Seed one tenant manager and one support administrator."""
    async with session_factory() as session, session.begin():
        session.add_all(
            [
                AdministratorModel(
                    id=ADMIN_ID,
                    email=ADMIN_EMAIL,
                    role=AdministratorRole.SUPER_ADMIN.value,
                    is_active=True,
                ),
                AdministratorModel(
                    id=SUPPORT_ID,
                    email="support@platform.example",
                    role=AdministratorRole.SUPPORT.value,
                    is_active=True,
                ),
            ]
        )


@pytest.fixture
def provisioning_settings() -> ProvisioningSettings:
    return ProvisioningSettings(reserved_slugs=["admin", "api", "www"])


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    idp = FakeIdentityProvider()
    idp.add_account(ADMIN_EMAIL, {"role": "SUPER_ADMIN"}, account_id=ADMIN_ID)
    return idp


@pytest.fixture
def wiring(
    administrators: None,
    async_session: AsyncSession,
    identity_provider: FakeIdentityProvider,
    provisioning_settings: ProvisioningSettings,
) -> PostgresWiring:
    session = async_session
    tenants = get_tenant_repository(session)
    owners = get_owner_repository(session)
    owner_links = get_owner_link_repository(session)
    requests = get_provisioning_request_repository(session)
    audit_log = get_audit_log(session)
    classifier = get_identity_classifier(get_administrator_repository(session))
    availability = get_availability_service(
        session,
        tenants,
        owners,
        owner_links,
        get_administrator_repository(session),
        identity_provider,
        provisioning_settings,
    )
    ledger = get_idempotency_ledger(session, requests)
    compensator = get_saga_compensator(
        session, tenants, owner_links, identity_provider, classifier
    )
    return PostgresWiring(
        identity_provider=identity_provider,
        provisioning=get_provisioning_service(
            session,
            ledger,
            availability,
            classifier,
            tenants,
            owner_links,
            owners,
            identity_provider,
            audit_log,
            compensator,
            provisioning_settings,
        ),
        credentials=get_credential_service(
            session,
            classifier,
            tenants,
            owners,
            owner_links,
            availability,
            identity_provider,
            audit_log,
            provisioning_settings,
        ),
        reconciliation=get_reconciliation_service(
            session,
            ledger,
            requests,
            tenants,
            owners,
            classifier,
            compensator,
            audit_log,
            provisioning_settings,
        ),
        queries=get_provisioning_query_service(
            session, requests, audit_log, classifier
        ),
    )
