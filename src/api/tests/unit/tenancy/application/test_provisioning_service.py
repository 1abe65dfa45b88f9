"""Unit tests for the ProvisioningService saga."""

import asyncio
from unittest.mock import Mock

import pytest

from tenancy.application.validation import build_credential_command
from tenancy.domain.aggregates import Owner, Tenant
from tenancy.domain.exceptions import (
    DuplicateRequestError,
    EmailUnavailableError,
    ForbiddenError,
    IdentityProviderUnavailableFailure,
    IntegrityVerificationFailedError,
    SlugUnavailableError,
    ValidationFailedError,
)
from tenancy.domain.value_objects import (
    AdministratorRole,
    ConflictSource,
    OwnerId,
    OwnerLinkStatus,
    ProvisioningStatus,
    TenantStatus,
)
from tenancy.ports.exceptions import DuplicateOwnerEmailError
from tests.unit.tenancy.fakes import ADMIN_EMAIL, ADMIN_ID, SUPPORT_ID

KEY = "7b0e6a52-0d1c-4b59-9d0a-6f0c3a0e8d11"


def _record(wiring):
    return wiring.store.requests[KEY]


def _stages(wiring, correlation_id: str) -> list[str]:
    return [e.stage for e in wiring.store.audit if e.correlation_id == correlation_id]


def _refuse_owner_rows(wiring) -> None:
    async def refuse(owner):
        raise DuplicateOwnerEmailError(f"{owner.email} was taken concurrently")

    wiring.owners.save = refuse


class TestSuccessfulProvisioning:
    @pytest.mark.asyncio
    async def test_creates_active_tenant_with_linked_owner(self, wiring, make_command):
        result = await wiring.provisioning.provision(
            make_command(), requester_id=ADMIN_ID, request_id="req-1"
        )

        assert result.slug == "acme-bistro"
        assert result.request_id == "req-1"

        tenant = wiring.store.tenants[result.tenant_id.value]
        assert tenant.status is TenantStatus.ACTIVE
        assert tenant.owner_id == result.owner_id
        assert tenant.timezone == "Europe/Paris"

        link = wiring.store.links[result.tenant_id.value]
        assert link.status is OwnerLinkStatus.LINKED
        assert link.owner_id == result.owner_id

        owner = wiring.store.owners[result.owner_id.value]
        assert owner.email == "chef@acme.test"
        assert owner.display_name == "Jo Chef"

    @pytest.mark.asyncio
    async def test_tags_identity_with_tenant_metadata(self, wiring, make_command):
        result = await wiring.provisioning.provision(
            make_command(), requester_id=ADMIN_ID, request_id="req-1"
        )

        account = wiring.identity_provider.accounts[result.owner_id.value]
        assert account.metadata["role"] == "tenant_owner"
        assert account.metadata["tenant_id"] == result.tenant_id.value
        assert account.metadata["tenant_slug"] == "acme-bistro"
        assert account.metadata["provisioning_request_id"] == _record(wiring).id.value

    @pytest.mark.asyncio
    async def test_ledger_records_completion(self, wiring, make_command):
        result = await wiring.provisioning.provision(
            make_command(), requester_id=ADMIN_ID, request_id="req-1"
        )

        record = _record(wiring)
        assert record.status is ProvisioningStatus.COMPLETED
        assert record.is_terminal
        assert record.identity_created
        assert record.response_payload == result.to_payload()

    @pytest.mark.asyncio
    async def test_audit_trail_follows_the_stages(self, wiring, make_command):
        await wiring.provisioning.provision(
            make_command(), requester_id=ADMIN_ID, request_id="req-1"
        )

        assert _stages(wiring, "req-1") == [
            "validating",
            "tenant_record_created",
            "creating_identity",
            "identity_created",
            "identity_linked",
            "verified",
            "completed",
        ]

    @pytest.mark.asyncio
    async def test_each_stage_commits_separately(self, wiring, make_command):
        await wiring.provisioning.provision(
            make_command(), requester_id=ADMIN_ID, request_id="req-1"
        )

        assert wiring.session.rollbacks == 0
        assert wiring.session.commits >= 7


class TestIdempotentReplay:
    @pytest.mark.asyncio
    async def test_replay_returns_the_first_result(self, wiring, make_command):
        first = await wiring.provisioning.provision(
            make_command(), requester_id=ADMIN_ID, request_id="req-1"
        )

        second = await wiring.provisioning.provision(
            make_command(), requester_id=ADMIN_ID, request_id="req-2"
        )

        assert second == first
        assert second.request_id == "req-1"
        assert wiring.identity_provider.calls.count("create_user") == 1
        assert len(wiring.store.tenants) == 1

    @pytest.mark.asyncio
    async def test_different_payload_is_a_duplicate_request(self, wiring, make_command):
        await wiring.provisioning.provision(
            make_command(), requester_id=ADMIN_ID, request_id="req-1"
        )

        with pytest.raises(DuplicateRequestError) as exc_info:
            await wiring.provisioning.provision(
                make_command(slug="other-bistro"),
                requester_id=ADMIN_ID,
                request_id="req-2",
            )

        assert exc_info.value.request_id == "req-2"
        assert len(wiring.store.tenants) == 1

    @pytest.mark.asyncio
    async def test_request_in_progress_is_a_duplicate_request(
        self, wiring, make_command
    ):
        command = make_command()
        await wiring.ledger.begin(
            idempotency_key=command.idempotency_key,
            request_id="req-0",
            requester_id=ADMIN_ID,
            tenant_slug=command.slug,
            owner_email=command.owner_email,
            request_payload=command.canonical_payload(),
        )

        with pytest.raises(DuplicateRequestError):
            await wiring.provisioning.provision(
                command, requester_id=ADMIN_ID, request_id="req-1"
            )

        assert wiring.identity_provider.calls == []

    @pytest.mark.asyncio
    async def test_failed_request_replays_the_same_error(self, wiring, make_command):
        with pytest.raises(SlugUnavailableError) as first:
            await wiring.provisioning.provision(
                make_command(slug="admin"), requester_id=ADMIN_ID, request_id="req-1"
            )

        with pytest.raises(SlugUnavailableError) as second:
            await wiring.provisioning.provision(
                make_command(slug="admin"), requester_id=ADMIN_ID, request_id="req-2"
            )

        assert second.value.message == first.value.message
        assert second.value.request_id == "req-1"


class TestAuthorization:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("requester_id", [SUPPORT_ID, "stranger", ""])
    async def test_non_managers_are_forbidden(
        self, wiring, make_command, requester_id
    ):
        with pytest.raises(ForbiddenError) as exc_info:
            await wiring.provisioning.provision(
                make_command(), requester_id=requester_id, request_id="req-1"
            )

        assert exc_info.value.request_id == "req-1"
        assert wiring.store.requests == {}
        assert wiring.identity_provider.calls == []

    @pytest.mark.asyncio
    async def test_inactive_administrator_is_forbidden(
        self, wiring, store, make_command
    ):
        store.add_administrator(
            "admin-2", "old@platform.example", AdministratorRole.ADMIN, is_active=False
        )

        with pytest.raises(ForbiddenError):
            await wiring.provisioning.provision(
                make_command(), requester_id="admin-2", request_id="req-1"
            )


class TestPreFlightRejection:
    @pytest.mark.asyncio
    async def test_reserved_slug_fails_without_side_effects(self, wiring, make_command):
        with pytest.raises(SlugUnavailableError):
            await wiring.provisioning.provision(
                make_command(slug="admin"), requester_id=ADMIN_ID, request_id="req-1"
            )

        record = _record(wiring)
        assert record.status is ProvisioningStatus.FAILED
        assert record.error_code == "SLUG_UNAVAILABLE"
        assert not record.compensation_incomplete
        assert wiring.store.tenants == {}
        assert "create_user" not in wiring.identity_provider.calls

    @pytest.mark.asyncio
    async def test_taken_slug_comes_with_a_suggestion(self, wiring, make_command):
        existing = Tenant.create_provisional(
            name="Other", slug="acme-bistro", timezone="UTC", currency="USD"
        )
        wiring.store.tenants[existing.id.value] = existing

        with pytest.raises(SlugUnavailableError) as exc_info:
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        assert exc_info.value.suggestion == "acme-bistro-2"
        assert list(wiring.store.tenants) == [existing.id.value]

    @pytest.mark.asyncio
    async def test_administrator_email_is_rejected(self, wiring, make_command):
        with pytest.raises(EmailUnavailableError) as exc_info:
            await wiring.provisioning.provision(
                make_command(owner_email=ADMIN_EMAIL),
                requester_id=ADMIN_ID,
                request_id="req-1",
            )

        assert exc_info.value.conflicting_source is ConflictSource.ADMINISTRATOR
        assert wiring.store.tenants == {}

    @pytest.mark.asyncio
    async def test_email_known_to_identity_provider_is_rejected(
        self, wiring, make_command
    ):
        wiring.identity_provider.add_account("chef@acme.test")

        with pytest.raises(EmailUnavailableError) as exc_info:
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        assert exc_info.value.conflicting_source is ConflictSource.IDENTITY_PROVIDER
        assert "create_user" not in wiring.identity_provider.calls

    @pytest.mark.asyncio
    async def test_existing_owner_email_is_never_reused(self, wiring, make_command):
        existing = Tenant.create_provisional(
            name="Old Bistro", slug="old-bistro", timezone="UTC", currency="USD"
        )
        existing.activate_with_owner(OwnerId(value="idp-owner"))
        wiring.store.tenants[existing.id.value] = existing
        wiring.store.owners["idp-owner"] = Owner.create(
            owner_id=OwnerId(value="idp-owner"),
            email="chef@acme.test",
            tenant_id=existing.id,
        )

        with pytest.raises(EmailUnavailableError) as exc_info:
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        assert exc_info.value.conflicting_source is ConflictSource.OWNER
        assert list(wiring.store.tenants) == [existing.id.value]
        assert list(wiring.store.owners) == ["idp-owner"]
        assert "create_user" not in wiring.identity_provider.calls

    @pytest.mark.asyncio
    async def test_outage_during_checks_fails_cleanly(self, wiring, make_command):
        wiring.identity_provider.unavailable = True

        with pytest.raises(IdentityProviderUnavailableFailure):
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        assert _record(wiring).status is ProvisioningStatus.FAILED
        assert wiring.store.tenants == {}


class TestIdentityCreation:
    @pytest.mark.asyncio
    async def test_single_timeout_is_retried(self, wiring, make_command):
        wiring.identity_provider.create_failures = 1

        result = await wiring.provisioning.provision(
            make_command(), requester_id=ADMIN_ID, request_id="req-1"
        )

        assert wiring.identity_provider.calls.count("create_user") == 2
        assert result.owner_id.value in wiring.identity_provider.accounts

    @pytest.mark.asyncio
    async def test_lost_create_response_adopts_own_account(self, wiring, make_command):
        wiring.identity_provider.lose_create_responses = 1

        result = await wiring.provisioning.provision(
            make_command(), requester_id=ADMIN_ID, request_id="req-1"
        )

        owned = [
            a
            for a in wiring.identity_provider.accounts.values()
            if a.email == "chef@acme.test"
        ]
        assert [a.id for a in owned] == [result.owner_id.value]
        assert _record(wiring).status is ProvisioningStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_refused_account_is_a_validation_failure(
        self, wiring, make_command
    ):
        wiring.identity_provider.rejection = "Unable to validate email address"

        with pytest.raises(ValidationFailedError) as exc_info:
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        assert "Unable to validate email address" in exc_info.value.message
        assert wiring.identity_provider.calls.count("create_user") == 1
        record = _record(wiring)
        assert record.status is ProvisioningStatus.ROLLED_BACK
        assert record.error_code == "VALIDATION_FAILED"
        assert not record.compensation_incomplete
        assert wiring.store.tenants == {}

    @pytest.mark.asyncio
    async def test_persistent_outage_rolls_back_the_tenant(self, wiring, make_command):
        wiring.identity_provider.create_failures = 2

        with pytest.raises(IdentityProviderUnavailableFailure):
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        record = _record(wiring)
        assert record.status is ProvisioningStatus.ROLLED_BACK
        assert record.error_code == "IDENTITY_PROVIDER_UNAVAILABLE"
        assert not record.compensation_incomplete
        assert wiring.store.tenants == {}
        assert wiring.store.links == {}
        assert _stages(wiring, "req-1")[-1] == "rolled_back"

    @pytest.mark.asyncio
    async def test_slug_is_free_again_after_rollback(self, wiring, make_command):
        wiring.identity_provider.create_failures = 2
        with pytest.raises(IdentityProviderUnavailableFailure):
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        result = await wiring.provisioning.provision(
            make_command(idempotency_key="2c1d3f0e-5b8a-4f7e-9c6d-1a2b3c4d5e6f"),
            requester_id=ADMIN_ID,
            request_id="req-2",
        )

        assert result.slug == "acme-bistro"


class TestCompensation:
    @pytest.mark.asyncio
    async def test_link_failure_deletes_created_identity(self, wiring, make_command):
        _refuse_owner_rows(wiring)

        with pytest.raises(EmailUnavailableError) as exc_info:
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        assert exc_info.value.conflicting_source is ConflictSource.OWNER
        record = _record(wiring)
        assert record.status is ProvisioningStatus.ROLLED_BACK
        assert not record.compensation_incomplete
        assert wiring.store.tenants == {}
        assert "delete_user" in wiring.identity_provider.calls
        assert all(
            a.email != "chef@acme.test"
            for a in wiring.identity_provider.accounts.values()
        )

    @pytest.mark.asyncio
    async def test_undeletable_identity_is_flagged_as_orphan(
        self, wiring, make_command
    ):
        _refuse_owner_rows(wiring)
        wiring.identity_provider.delete_failures = 2

        with pytest.raises(EmailUnavailableError):
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        record = _record(wiring)
        assert record.status is ProvisioningStatus.ROLLED_BACK
        assert record.compensation_incomplete
        assert record.orphaned_identity_id == "idp-1"
        assert "idp-1" in wiring.identity_provider.accounts
        assert wiring.store.audit[-1].outcome == "compensation_incomplete"
        assert wiring.store.audit[-1].details["orphaned_identity_id"] == "idp-1"

    @pytest.mark.asyncio
    async def test_single_delete_failure_is_retried(self, wiring, make_command):
        _refuse_owner_rows(wiring)
        wiring.identity_provider.delete_failures = 1

        with pytest.raises(EmailUnavailableError):
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        assert not _record(wiring).compensation_incomplete
        assert wiring.identity_provider.calls.count("delete_user") == 2

    @pytest.mark.asyncio
    async def test_administrator_identity_is_never_deleted(
        self, wiring, store, make_command
    ):
        # The provider hands back an id that already belongs to an administrator
        store.add_administrator("idp-1", "ghost@platform.example")

        with pytest.raises(IntegrityVerificationFailedError):
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        assert _record(wiring).status is ProvisioningStatus.ROLLED_BACK
        assert "idp-1" in wiring.identity_provider.accounts
        assert "delete_user" not in wiring.identity_provider.calls
        assert wiring.store.tenants == {}

    @pytest.mark.asyncio
    async def test_rolled_back_request_replays_its_error(self, wiring, make_command):
        _refuse_owner_rows(wiring)
        with pytest.raises(EmailUnavailableError):
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        with pytest.raises(EmailUnavailableError) as exc_info:
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-2"
            )

        assert exc_info.value.conflicting_source is ConflictSource.OWNER
        assert wiring.identity_provider.calls.count("create_user") == 1


class TestLedgerWriteFailures:
    @pytest.mark.asyncio
    async def test_failed_rollback_write_is_retried(self, wiring, make_command):
        _refuse_owner_rows(wiring)
        wiring.requests.failing_saves[ProvisioningStatus.ROLLING_BACK] = 1

        with pytest.raises(EmailUnavailableError):
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        record = _record(wiring)
        assert record.status is ProvisioningStatus.ROLLED_BACK
        assert not record.compensation_incomplete
        assert wiring.store.tenants == {}
        assert "delete_user" in wiring.identity_provider.calls
        assert all(
            a.email != "chef@acme.test"
            for a in wiring.identity_provider.accounts.values()
        )

    @pytest.mark.asyncio
    async def test_compensation_runs_when_rollback_cannot_be_recorded(
        self, wiring, make_command
    ):
        _refuse_owner_rows(wiring)
        wiring.requests.failing_saves[ProvisioningStatus.ROLLING_BACK] = 2

        with pytest.raises(EmailUnavailableError):
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        assert wiring.store.tenants == {}
        assert "delete_user" in wiring.identity_provider.calls
        assert "idp-1" not in wiring.identity_provider.accounts
        assert _record(wiring).status is ProvisioningStatus.ROLLED_BACK

    @pytest.mark.asyncio
    async def test_unrecorded_rollback_is_reported_critically(
        self, wiring, make_command
    ):
        observer = Mock()
        wiring.provisioning._probe = observer
        _refuse_owner_rows(wiring)
        wiring.identity_provider.delete_failures = 2
        wiring.requests.failing_saves[ProvisioningStatus.ROLLED_BACK] = 2

        with pytest.raises(EmailUnavailableError):
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        assert wiring.store.tenants == {}
        assert _record(wiring).status is ProvisioningStatus.ROLLING_BACK
        bound = observer.with_context.return_value
        bound.ledger_write_retried.assert_called_once()
        bound.rollback_unrecorded.assert_called_once()
        kwargs = bound.rollback_unrecorded.call_args.kwargs
        assert kwargs["orphaned_identity_id"] == "idp-1"
        assert kwargs["orphaned_tenant_id"] is None

    @pytest.mark.asyncio
    async def test_failure_without_side_effects_is_recorded_on_retry(
        self, wiring, make_command
    ):
        wiring.requests.failing_saves[ProvisioningStatus.FAILED] = 1

        with pytest.raises(SlugUnavailableError):
            await wiring.provisioning.provision(
                make_command(slug="admin"), requester_id=ADMIN_ID, request_id="req-1"
            )

        assert _record(wiring).status is ProvisioningStatus.FAILED


class TestProvisioningWalkthrough:
    @pytest.mark.asyncio
    async def test_slug_and_email_conflicts_then_credential_change(
        self, wiring, make_command
    ):
        first = await wiring.provisioning.provision(
            make_command(owner_email="owner1@example.com"),
            requester_id=ADMIN_ID,
            request_id="req-1",
        )
        assert first.slug == "acme-bistro"

        with pytest.raises(SlugUnavailableError) as slug_taken:
            await wiring.provisioning.provision(
                make_command(
                    idempotency_key="5d3c2b1a-0f9e-4d8c-b7a6-958473625140",
                    owner_email="owner2@example.com",
                ),
                requester_id=ADMIN_ID,
                request_id="req-2",
            )
        assert slug_taken.value.suggestion == "acme-bistro-2"

        with pytest.raises(EmailUnavailableError) as email_taken:
            await wiring.provisioning.provision(
                make_command(
                    idempotency_key="9e8d7c6b-5a4f-4e3d-8c2b-1a0f9e8d7c6b",
                    slug="acme-bistro-2",
                    owner_email="owner1@example.com",
                ),
                requester_id=ADMIN_ID,
                request_id="req-3",
            )
        assert email_taken.value.conflicting_source is ConflictSource.OWNER
        assert list(wiring.store.tenants) == [first.tenant_id.value]

        result = await wiring.credentials.update_owner_credentials(
            build_credential_command(
                tenant_id=first.tenant_id.value,
                settings=wiring.settings,
                new_email="owner1-new@example.com",
            ),
            requester_id=ADMIN_ID,
            request_id="req-4",
        )

        assert result.email_changed
        owner_id = first.owner_id.value
        assert (
            wiring.identity_provider.accounts[owner_id].email
            == "owner1-new@example.com"
        )
        assert wiring.store.owners[owner_id].email == "owner1-new@example.com"


class TestCancellation:
    @pytest.mark.asyncio
    async def test_saga_finishes_after_caller_is_cancelled(
        self, wiring, make_command
    ):
        started = asyncio.Event()
        release = asyncio.Event()
        create_user = wiring.identity_provider.create_user

        async def slow_create_user(**kwargs):
            started.set()
            await release.wait()
            return await create_user(**kwargs)

        wiring.identity_provider.create_user = slow_create_user

        task = asyncio.create_task(
            wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )
        )
        await started.wait()
        task.cancel()
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await task

        record = _record(wiring)
        assert record.status is ProvisioningStatus.COMPLETED
        assert wiring.store.tenants[record.tenant_id.value].status is (
            TenantStatus.ACTIVE
        )
