"""Fixtures wiring the tenancy services over in-memory fakes."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from infrastructure.settings import ProvisioningSettings
from tenancy.application.identity_classifier import AdministratorIdentityClassifier
from tenancy.application.services import (
    AvailabilityService,
    CredentialService,
    IdempotencyLedger,
    ProvisioningQueryService,
    ProvisioningService,
    ReconciliationService,
    SagaCompensator,
)
from tenancy.application.validation import build_provision_command
from tenancy.application.value_objects import ProvisionCommand
from tenancy.domain.value_objects import AdministratorRole
from tests.unit.tenancy.fakes import (
    ADMIN_EMAIL,
    ADMIN_ID,
    SUPPORT_ID,
    FakeAdministratorRepository,
    FakeAuditLog,
    FakeIdentityProvider,
    FakeOwnerLinkRepository,
    FakeOwnerRepository,
    FakeProvisioningRequestRepository,
    FakeSession,
    FakeTenantRepository,
    InMemoryStore,
)


@dataclass
class Wiring:
    store: InMemoryStore
    session: FakeSession
    identity_provider: FakeIdentityProvider
    settings: ProvisioningSettings
    tenants: FakeTenantRepository
    owners: FakeOwnerRepository
    owner_links: FakeOwnerLinkRepository
    administrators: FakeAdministratorRepository
    requests: FakeProvisioningRequestRepository
    audit_log: FakeAuditLog
    availability: AvailabilityService
    ledger: IdempotencyLedger
    compensator: SagaCompensator
    provisioning: ProvisioningService
    credentials: CredentialService
    reconciliation: ReconciliationService
    queries: ProvisioningQueryService


def build_wiring(
    store: InMemoryStore,
    identity_provider: FakeIdentityProvider,
    settings: ProvisioningSettings,
) -> Wiring:
    session = FakeSession(store)
    tenants = FakeTenantRepository(store)
    owners = FakeOwnerRepository(store)
    owner_links = FakeOwnerLinkRepository(store)
    administrators = FakeAdministratorRepository(store)
    requests = FakeProvisioningRequestRepository(store)
    audit_log = FakeAuditLog(store)
    classifier = AdministratorIdentityClassifier(administrators)

    availability = AvailabilityService(
        session=session,
        tenant_repository=tenants,
        owner_repository=owners,
        owner_link_repository=owner_links,
        administrator_repository=administrators,
        identity_provider=identity_provider,
        settings=settings,
    )
    ledger = IdempotencyLedger(session=session, repository=requests)
    compensator = SagaCompensator(
        session=session,
        tenant_repository=tenants,
        owner_link_repository=owner_links,
        identity_provider=identity_provider,
        identity_classifier=classifier,
    )
    provisioning = ProvisioningService(
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
    credentials = CredentialService(
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
    reconciliation = ReconciliationService(
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
    queries = ProvisioningQueryService(
        session=session,
        request_repository=requests,
        audit_log=audit_log,
        identity_classifier=classifier,
    )
    return Wiring(
        store=store,
        session=session,
        identity_provider=identity_provider,
        settings=settings,
        tenants=tenants,
        owners=owners,
        owner_links=owner_links,
        administrators=administrators,
        requests=requests,
        audit_log=audit_log,
        availability=availability,
        ledger=ledger,
        compensator=compensator,
        provisioning=provisioning,
        credentials=credentials,
        reconciliation=reconciliation,
        queries=queries,
    )


@pytest.fixture
def provisioning_settings() -> ProvisioningSettings:
    return ProvisioningSettings(
        reserved_slugs=["admin", "api", "www"],
        max_slug_suggestions=5,
    )


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    store.add_administrator(ADMIN_ID, ADMIN_EMAIL, AdministratorRole.SUPER_ADMIN)
    store.add_administrator(
        SUPPORT_ID, "support@platform.example", AdministratorRole.SUPPORT
    )
    return store


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    idp = FakeIdentityProvider()
    idp.add_account(ADMIN_EMAIL, {"role": "SUPER_ADMIN"}, account_id=ADMIN_ID)
    return idp


@pytest.fixture
def wiring(store, identity_provider, provisioning_settings) -> Wiring:
    return build_wiring(store, identity_provider, provisioning_settings)


@pytest.fixture
def make_command(provisioning_settings):
    """Build a ProvisionCommand with overridable defaults."""

    def _make(
        idempotency_key: str = "7b0e6a52-0d1c-4b59-9d0a-6f0c3a0e8d11",
        tenant_name: str = "Acme Bistro",
        slug: str = "acme-bistro",
        owner_email: str = "chef@acme.test",
        owner_name: str | None = "Jo Chef",
        timezone: str | None = "Europe/Paris",
        currency: str | None = "EUR",
    ) -> ProvisionCommand:
        return build_provision_command(
            idempotency_key=idempotency_key,
            tenant_name=tenant_name,
            slug=slug,
            owner_email=owner_email,
            settings=provisioning_settings,
            timezone=timezone,
            currency=currency,
            owner_name=owner_name,
        )

    return _make
