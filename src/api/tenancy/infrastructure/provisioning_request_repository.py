"""PostgreSQL implementation of IProvisioningRequestRepository.

The unique constraint on idempotency_key makes `add` the atomic "begin" of
a provisioning attempt: of two concurrent inserts for one key, exactly one
commits and the other surfaces DuplicateIdempotencyKeyError.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.domain.aggregates import ProvisioningRequest
from tenancy.domain.value_objects import (
    IdempotencyKey,
    OwnerId,
    ProvisioningRequestId,
    ProvisioningStatus,
    TenantId,
)
from tenancy.infrastructure.models import ProvisioningRequestModel
from tenancy.infrastructure.observability import (
    DefaultProvisioningRequestRepositoryProbe,
    ProvisioningRequestRepositoryProbe,
)
from tenancy.ports.exceptions import DuplicateIdempotencyKeyError
from tenancy.ports.repositories import IProvisioningRequestRepository


class ProvisioningRequestRepository(IProvisioningRequestRepository):
    """Repository for the idempotency ledger."""

    def __init__(
        self,
        session: AsyncSession,
        probe: ProvisioningRequestRepositoryProbe | None = None,
    ) -> None:
        self._session = session
        self._probe = probe or DefaultProvisioningRequestRepositoryProbe()

    async def add(self, request: ProvisioningRequest) -> None:
        """Insert a new ledger record.

        Raises:
            DuplicateIdempotencyKeyError: If the key already exists
        """
        model = ProvisioningRequestModel(id=request.id.value)
        self._apply(model, request)
        self._session.add(model)

        try:
            await self._session.flush()
        except IntegrityError as e:
            if "uq_provisioning_requests_idempotency_key" in str(e):
                self._probe.duplicate_idempotency_key(request.idempotency_key.value)
                raise DuplicateIdempotencyKeyError(
                    f"Provisioning request {request.idempotency_key} already exists"
                ) from e
            raise

        self._probe.request_recorded(request.idempotency_key.value)

    async def save(self, request: ProvisioningRequest) -> None:
        """Persist the current state of an existing ledger record."""
        stmt = select(ProvisioningRequestModel).where(
            ProvisioningRequestModel.id == request.id.value
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one()

        self._apply(model, request)
        await self._session.flush()

        self._probe.request_updated(
            request.idempotency_key.value, request.status.value
        )

    async def get_by_idempotency_key(
        self, key: IdempotencyKey
    ) -> ProvisioningRequest | None:
        stmt = select(ProvisioningRequestModel).where(
            ProvisioningRequestModel.idempotency_key == key.value
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_compensation_incomplete(self) -> list[ProvisioningRequest]:
        stmt = (
            select(ProvisioningRequestModel)
            .where(ProvisioningRequestModel.compensation_incomplete.is_(True))
            .order_by(ProvisioningRequestModel.started_at)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def list_stale(self, started_before: datetime) -> list[ProvisioningRequest]:
        stmt = (
            select(ProvisioningRequestModel)
            .where(
                ProvisioningRequestModel.completed_at.is_(None),
                ProvisioningRequestModel.started_at < started_before,
            )
            .order_by(ProvisioningRequestModel.started_at)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    @staticmethod
    def _apply(model: ProvisioningRequestModel, request: ProvisioningRequest) -> None:
        model.idempotency_key = request.idempotency_key.value
        model.request_id = request.request_id
        model.requester_id = request.requester_id
        model.tenant_slug = request.tenant_slug
        model.owner_email = request.owner_email
        model.status = request.status.value
        model.tenant_id = request.tenant_id.value if request.tenant_id else None
        model.owner_id = request.owner_id.value if request.owner_id else None
        model.identity_created = request.identity_created
        model.compensation_incomplete = request.compensation_incomplete
        model.orphaned_identity_id = request.orphaned_identity_id
        model.orphaned_tenant_id = request.orphaned_tenant_id
        model.error_code = request.error_code
        model.error_message = request.error_message
        model.request_payload = request.request_payload
        model.response_payload = request.response_payload
        model.started_at = request.started_at
        model.updated_at = request.updated_at
        model.completed_at = request.completed_at

    @staticmethod
    def _to_domain(model: ProvisioningRequestModel) -> ProvisioningRequest:
        return ProvisioningRequest(
            id=ProvisioningRequestId(value=model.id),
            idempotency_key=IdempotencyKey(value=model.idempotency_key),
            request_id=model.request_id,
            requester_id=model.requester_id,
            tenant_slug=model.tenant_slug,
            owner_email=model.owner_email,
            request_payload=model.request_payload,
            status=ProvisioningStatus(model.status),
            tenant_id=TenantId(value=model.tenant_id) if model.tenant_id else None,
            owner_id=OwnerId(value=model.owner_id) if model.owner_id else None,
            identity_created=model.identity_created,
            compensation_incomplete=model.compensation_incomplete,
            orphaned_identity_id=model.orphaned_identity_id,
            orphaned_tenant_id=model.orphaned_tenant_id,
            error_code=model.error_code,
            error_message=model.error_message,
            response_payload=model.response_payload,
            started_at=model.started_at,
            updated_at=model.updated_at,
            completed_at=model.completed_at,
        )
