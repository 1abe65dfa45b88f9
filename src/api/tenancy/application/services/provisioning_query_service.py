"""Read-only operator queries over the ledger and the audit log."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.application.identity_classifier import (
    IdentityClassifier,
    require_tenant_manager,
)
from tenancy.domain.aggregates import ProvisioningRequest
from tenancy.domain.audit import AuditEntry
from tenancy.domain.value_objects import IdempotencyKey
from tenancy.ports.repositories import IAuditLog, IProvisioningRequestRepository


class ProvisioningQueryService:
    """Lets administrators inspect provisioning attempts.

    Incomplete compensations are surfaced here so that orphaned identities
    and tenants can be cleaned up by hand.
    """

    def __init__(
        self,
        session: AsyncSession,
        request_repository: IProvisioningRequestRepository,
        audit_log: IAuditLog,
        identity_classifier: IdentityClassifier,
    ):
        self._session = session
        self._requests = request_repository
        self._audit_log = audit_log
        self._classifier = identity_classifier

    async def get_request(
        self, idempotency_key: IdempotencyKey, requester_id: str
    ) -> ProvisioningRequest | None:
        async with self._session.begin():
            await require_tenant_manager(self._classifier, requester_id)
            return await self._requests.get_by_idempotency_key(idempotency_key)

    async def list_compensation_incomplete(
        self, requester_id: str
    ) -> list[ProvisioningRequest]:
        async with self._session.begin():
            await require_tenant_manager(self._classifier, requester_id)
            return await self._requests.list_compensation_incomplete()

    async def list_audit_entries(
        self, correlation_id: str, requester_id: str
    ) -> list[AuditEntry]:
        async with self._session.begin():
            await require_tenant_manager(self._classifier, requester_id)
            return await self._audit_log.list_by_correlation_id(correlation_id)
