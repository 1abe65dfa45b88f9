"""PostgreSQL implementation of IAuditLog."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.domain.audit import AuditEntry
from tenancy.domain.value_objects import AuditOperation
from tenancy.infrastructure.models import ProvisioningAuditLogModel
from tenancy.ports.repositories import IAuditLog


class AuditLogRepository(IAuditLog):
    """Append-only audit log stored in provisioning_audit_log.

    Entries are written inside the caller's transaction so a stage and its
    audit record commit together.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, entry: AuditEntry) -> None:
        model = ProvisioningAuditLogModel(
            id=entry.id,
            correlation_id=entry.correlation_id,
            operation=entry.operation.value,
            idempotency_key=entry.idempotency_key,
            actor_id=entry.actor_id,
            tenant_id=entry.tenant_id,
            stage=entry.stage,
            outcome=entry.outcome,
            error_code=entry.error_code,
            error_message=entry.error_message,
            duration_ms=entry.duration_ms,
            details=entry.details,
            recorded_at=entry.recorded_at,
        )
        self._session.add(model)
        await self._session.flush()

    async def list_by_correlation_id(self, correlation_id: str) -> list[AuditEntry]:
        stmt = (
            select(ProvisioningAuditLogModel)
            .where(ProvisioningAuditLogModel.correlation_id == correlation_id)
            .order_by(
                ProvisioningAuditLogModel.recorded_at,
                ProvisioningAuditLogModel.id,
            )
        )
        result = await self._session.execute(stmt)
        return [
            AuditEntry(
                id=model.id,
                correlation_id=model.correlation_id,
                operation=AuditOperation(model.operation),
                stage=model.stage,
                outcome=model.outcome,
                idempotency_key=model.idempotency_key,
                actor_id=model.actor_id,
                tenant_id=model.tenant_id,
                error_code=model.error_code,
                error_message=model.error_message,
                duration_ms=model.duration_ms,
                details=model.details or {},
                recorded_at=model.recorded_at,
            )
            for model in result.scalars().all()
        ]
