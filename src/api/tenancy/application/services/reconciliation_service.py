"""Reconciliation of provisioning requests that never reached a terminal state.

A saga can be interrupted by a process crash between two steps. Such a
request stays non-terminal in the ledger and blocks its idempotency key.
The sweep finishes it one way or the other: if every effect of a
successful run is already in place it is completed, otherwise whatever it
created is compensated and it ends rolled back.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.settings import ProvisioningSettings
from shared_kernel.observability_context import ObservationContext
from tenancy.application.identity_classifier import (
    IdentityClassifier,
    require_tenant_manager,
)
from tenancy.application.observability import (
    DefaultProvisioningServiceProbe,
    DefaultReconciliationProbe,
    ProvisioningServiceProbe,
    ReconciliationProbe,
)
from tenancy.application.services.compensation import SagaCompensator
from tenancy.application.services.idempotency_ledger import IdempotencyLedger
from tenancy.application.value_objects import (
    ProvisioningResult,
    ReconciliationReport,
)
from tenancy.domain.aggregates import ProvisioningRequest
from tenancy.domain.audit import AuditEntry
from tenancy.domain.exceptions import InternalError
from tenancy.domain.value_objects import (
    AuditOperation,
    ProvisioningStatus,
    TenantStatus,
)
from tenancy.ports.repositories import (
    IAuditLog,
    IOwnerRepository,
    IProvisioningRequestRepository,
    ITenantRepository,
)


class ReconciliationService:
    """Operator service that settles stale provisioning requests."""

    def __init__(
        self,
        session: AsyncSession,
        ledger: IdempotencyLedger,
        request_repository: IProvisioningRequestRepository,
        tenant_repository: ITenantRepository,
        owner_repository: IOwnerRepository,
        identity_classifier: IdentityClassifier,
        compensator: SagaCompensator,
        audit_log: IAuditLog,
        settings: ProvisioningSettings,
        probe: ReconciliationProbe | None = None,
        saga_probe: ProvisioningServiceProbe | None = None,
    ):
        self._session = session
        self._ledger = ledger
        self._requests = request_repository
        self._tenants = tenant_repository
        self._owners = owner_repository
        self._classifier = identity_classifier
        self._compensator = compensator
        self._audit_log = audit_log
        self._settings = settings
        self._probe = probe or DefaultReconciliationProbe()
        self._saga_probe = saga_probe or DefaultProvisioningServiceProbe()

    async def reconcile_stale(
        self,
        requester_id: str,
        request_id: str,
        now: datetime | None = None,
    ) -> ReconciliationReport:
        """Settle every non-terminal request older than the stale threshold.

        A failure on one request is logged and does not stop the sweep; that
        request stays non-terminal and is retried by the next sweep.

        Args:
            requester_id: Administrator invoking the sweep
            request_id: Correlation id for logs and audit
            now: Reference time (defaults to the current UTC time)

        Returns:
            ReconciliationReport listing the idempotency keys handled

        Raises:
            ForbiddenError: If the requester may not manage tenants
        """
        context = ObservationContext(request_id=request_id, user_id=requester_id)
        probe = self._probe.with_context(context)
        saga_probe = self._saga_probe.with_context(context)

        async with self._session.begin():
            await require_tenant_manager(self._classifier, requester_id)
            cutoff = (now or datetime.now(UTC)) - timedelta(
                seconds=self._settings.stale_request_after_seconds
            )
            stale = await self._requests.list_stale(cutoff)

        probe.sweep_started(len(stale))
        resumed: list[str] = []
        rolled_back: list[str] = []
        incomplete: list[str] = []

        for record in stale:
            key = record.idempotency_key.value
            try:
                if await self._can_resume(record):
                    await self._resume(record, requester_id, request_id)
                    resumed.append(key)
                    probe.request_resumed(key, str(record.tenant_id))
                else:
                    await self._roll_back(record, requester_id, request_id, saga_probe)
                    rolled_back.append(key)
                    if record.compensation_incomplete:
                        incomplete.append(key)
                    probe.request_rolled_back(key, record.compensation_incomplete)
            except Exception as e:
                probe.request_reconciliation_failed(key, repr(e))

        probe.sweep_finished(resumed=len(resumed), rolled_back=len(rolled_back))
        return ReconciliationReport(
            examined=len(stale),
            resumed=resumed,
            rolled_back=rolled_back,
            compensation_incomplete=incomplete,
        )

    async def _can_resume(self, record: ProvisioningRequest) -> bool:
        if record.status in (
            ProvisioningStatus.FAILED,
            ProvisioningStatus.ROLLING_BACK,
        ):
            return False
        if record.tenant_id is None or record.owner_id is None:
            return False

        async with self._session.begin():
            tenant = await self._tenants.get_by_id(record.tenant_id)
            owner = await self._owners.get_by_tenant(record.tenant_id)
            if tenant is None or owner is None:
                return False
            if tenant.status is not TenantStatus.ACTIVE:
                return False
            if tenant.owner_id != record.owner_id or owner.id != record.owner_id:
                return False
            return not await self._classifier.is_administrator(record.owner_id.value)

    async def _resume(
        self,
        record: ProvisioningRequest,
        requester_id: str,
        request_id: str,
    ) -> None:
        assert record.tenant_id is not None and record.owner_id is not None
        result = ProvisioningResult(
            tenant_id=record.tenant_id,
            owner_id=record.owner_id,
            slug=record.tenant_slug,
            request_id=record.request_id,
        )
        async with self._session.begin():
            record.fast_forward(ProvisioningStatus.VERIFYING)
            await self._ledger.complete(
                record, ProvisioningStatus.COMPLETED, result.to_payload()
            )
            await self._audit(record, requester_id, request_id, "resumed")

    async def _roll_back(
        self,
        record: ProvisioningRequest,
        requester_id: str,
        request_id: str,
        saga_probe: ProvisioningServiceProbe,
    ) -> None:
        error = InternalError(
            "Provisioning was interrupted and has been rolled back",
            request_id=record.request_id,
        )
        async with self._session.begin():
            await self._ledger.start_rollback(record, error)

        # An interrupted create may have succeeded without being recorded;
        # the lookup only deletes an account tagged with this request id.
        identity_outcome_unknown = (
            not record.identity_created and record.tenant_id is not None
        )
        outcome = await self._compensator.compensate(
            saga_probe,
            tenant_id=record.tenant_id,
            identity_id=record.owner_id.value if record.owner_id else None,
            unresolved_email=record.owner_email if identity_outcome_unknown else None,
            provisioning_request_id=record.id.value,
        )

        async with self._session.begin():
            await self._ledger.complete(
                record,
                ProvisioningStatus.ROLLED_BACK,
                orphaned_identity_id=outcome.orphaned_identity_id,
                orphaned_tenant_id=outcome.orphaned_tenant_id,
                identity_unresolved=outcome.identity_unresolved,
            )
            await self._audit(
                record,
                requester_id,
                request_id,
                "compensated" if outcome.complete else "compensation_incomplete",
            )

    async def _audit(
        self,
        record: ProvisioningRequest,
        requester_id: str,
        request_id: str,
        outcome: str,
    ) -> None:
        await self._audit_log.append(
            AuditEntry.record(
                correlation_id=request_id,
                operation=AuditOperation.RECONCILIATION,
                stage=record.status.value,
                outcome=outcome,
                idempotency_key=record.idempotency_key.value,
                actor_id=requester_id,
                tenant_id=record.tenant_id.value if record.tenant_id else None,
                details={"original_request_id": record.request_id},
            )
        )
