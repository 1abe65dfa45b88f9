"""Unit tests for ProvisioningQueryService."""

import pytest

from tenancy.domain.exceptions import EmailUnavailableError, ForbiddenError
from tenancy.domain.value_objects import IdempotencyKey, ProvisioningStatus
from tenancy.ports.exceptions import DuplicateOwnerEmailError
from tests.unit.tenancy.fakes import ADMIN_ID, SUPPORT_ID

KEY = IdempotencyKey.from_string("7b0e6a52-0d1c-4b59-9d0a-6f0c3a0e8d11")


class TestGetRequest:
    @pytest.mark.asyncio
    async def test_returns_the_ledger_record(self, wiring, make_command):
        await wiring.provisioning.provision(
            make_command(), requester_id=ADMIN_ID, request_id="req-1"
        )

        record = await wiring.queries.get_request(KEY, requester_id=ADMIN_ID)

        assert record is not None
        assert record.status is ProvisioningStatus.COMPLETED
        assert record.request_id == "req-1"

    @pytest.mark.asyncio
    async def test_unknown_key(self, wiring):
        assert await wiring.queries.get_request(KEY, requester_id=ADMIN_ID) is None

    @pytest.mark.asyncio
    async def test_support_is_forbidden(self, wiring):
        with pytest.raises(ForbiddenError):
            await wiring.queries.get_request(KEY, requester_id=SUPPORT_ID)


class TestCompensationIncomplete:
    @pytest.mark.asyncio
    async def test_lists_only_incomplete_rollbacks(self, wiring, make_command):
        await wiring.provisioning.provision(
            make_command(
                idempotency_key="2c1d3f0e-5b8a-4f7e-9c6d-1a2b3c4d5e6f",
                slug="fine-bistro",
                owner_email="fine@acme.test",
            ),
            requester_id=ADMIN_ID,
            request_id="req-0",
        )

        async def refuse(owner):
            raise DuplicateOwnerEmailError("taken concurrently")

        wiring.owners.save = refuse
        wiring.identity_provider.delete_failures = 2
        with pytest.raises(EmailUnavailableError):
            await wiring.provisioning.provision(
                make_command(), requester_id=ADMIN_ID, request_id="req-1"
            )

        records = await wiring.queries.list_compensation_incomplete(
            requester_id=ADMIN_ID
        )

        assert [r.idempotency_key for r in records] == [KEY]
        assert records[0].orphaned_identity_id is not None


class TestAuditEntries:
    @pytest.mark.asyncio
    async def test_entries_for_one_correlation_id(self, wiring, make_command):
        await wiring.provisioning.provision(
            make_command(), requester_id=ADMIN_ID, request_id="req-1"
        )

        entries = await wiring.queries.list_audit_entries(
            "req-1", requester_id=ADMIN_ID
        )

        assert entries
        assert {e.correlation_id for e in entries} == {"req-1"}
        assert entries[-1].stage == "completed"
        assert await wiring.queries.list_audit_entries(
            "req-unknown", requester_id=ADMIN_ID
        ) == []
