"""Idempotency ledger for provisioning requests.

`begin` owns its transactions because a losing insert poisons the
transaction it ran in; the re-read of the winning record needs a fresh one.
Every other method joins the caller's transaction, so a stage change
commits together with the writes of that stage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.domain.aggregates import ProvisioningRequest
from tenancy.domain.exceptions import (
    ProvisioningError,
    ProvisioningRequestFinalizedError,
)
from tenancy.domain.value_objects import IdempotencyKey, ProvisioningStatus
from tenancy.ports.exceptions import DuplicateIdempotencyKeyError
from tenancy.ports.repositories import IProvisioningRequestRepository


@dataclass(frozen=True)
class LedgerEntry:
    """Result of IdempotencyLedger.begin."""

    record: ProvisioningRequest
    is_new: bool


class IdempotencyLedger:
    """Durable record of provisioning attempts keyed by idempotency key."""

    def __init__(
        self,
        session: AsyncSession,
        repository: IProvisioningRequestRepository,
    ):
        self._session = session
        self._repository = repository

    async def begin(
        self,
        idempotency_key: IdempotencyKey,
        request_id: str,
        requester_id: str,
        tenant_slug: str,
        owner_email: str,
        request_payload: dict[str, Any],
    ) -> LedgerEntry:
        """Claim the idempotency key or return the record that holds it.

        The unique constraint on the key decides between concurrent callers:
        the first insert wins and every other caller gets the winner's
        record with is_new=False.

        Returns:
            LedgerEntry with the new or existing record
        """
        record = ProvisioningRequest.initiate(
            idempotency_key=idempotency_key,
            request_id=request_id,
            requester_id=requester_id,
            tenant_slug=tenant_slug,
            owner_email=owner_email,
            request_payload=request_payload,
        )
        try:
            async with self._session.begin():
                await self._repository.add(record)
            return LedgerEntry(record=record, is_new=True)
        except DuplicateIdempotencyKeyError:
            pass

        async with self._session.begin():
            existing = await self._repository.get_by_idempotency_key(idempotency_key)
        if existing is None:
            # The winning insert was rolled back after ours failed
            raise DuplicateIdempotencyKeyError(
                f"Provisioning request {idempotency_key} vanished while being claimed"
            )
        return LedgerEntry(record=existing, is_new=False)

    async def get(self, idempotency_key: IdempotencyKey) -> ProvisioningRequest | None:
        return await self._repository.get_by_idempotency_key(idempotency_key)

    async def advance(
        self, record: ProvisioningRequest, status: ProvisioningStatus
    ) -> None:
        """Move the record to the next stage and persist it."""
        record.advance(status)
        await self._repository.save(record)

    async def record_progress(self, record: ProvisioningRequest) -> None:
        """Persist in-memory changes such as a recorded tenant or identity id."""
        await self._repository.save(record)

    async def start_rollback(
        self, record: ProvisioningRequest, error: ProvisioningError
    ) -> None:
        """Record the failure and enter ROLLING_BACK.

        Safe to call again for a record that is already rolling back; the
        record is written again, so a retry after a failed write persists
        it. A record that already failed keeps its original error.
        """
        if record.status is not ProvisioningStatus.ROLLING_BACK:
            if record.status is not ProvisioningStatus.FAILED:
                record.fail(error, finalize=False)
            record.begin_rollback()
        await self._repository.save(record)

    async def complete(
        self,
        record: ProvisioningRequest,
        status: ProvisioningStatus,
        result: dict[str, Any] | ProvisioningError | None = None,
        *,
        orphaned_identity_id: str | None = None,
        orphaned_tenant_id: str | None = None,
        identity_unresolved: bool = False,
    ) -> ProvisioningRequest:
        """Finalize the record with a terminal status.

        Completing an already finalized record with the same status writes
        it again instead of failing, so a finalization retried after a
        failed write persists the record.

        Args:
            record: The record to finalize
            status: COMPLETED, FAILED or ROLLED_BACK
            result: Response payload for COMPLETED, the error for FAILED;
                ignored for ROLLED_BACK, whose error was recorded by
                start_rollback
            orphaned_identity_id: Identity compensation could not delete
            orphaned_tenant_id: Tenant compensation could not delete
            identity_unresolved: An identity may exist but could not be found

        Raises:
            ProvisioningRequestFinalizedError: If already finalized differently
        """
        if record.is_terminal:
            if record.status is not status:
                raise ProvisioningRequestFinalizedError(
                    f"Provisioning request {record.idempotency_key} is already "
                    f"{record.status.value}"
                )
            await self._repository.save(record)
            return record

        if status is ProvisioningStatus.COMPLETED:
            if not isinstance(result, dict):
                raise TypeError("COMPLETED requires a response payload")
            record.complete(result)
        elif status is ProvisioningStatus.FAILED:
            if not isinstance(result, ProvisioningError):
                raise TypeError("FAILED requires the error that ended the attempt")
            record.fail(result, finalize=True)
        elif status is ProvisioningStatus.ROLLED_BACK:
            record.finish_rollback(
                orphaned_identity_id=orphaned_identity_id,
                orphaned_tenant_id=orphaned_tenant_id,
                identity_unresolved=identity_unresolved,
            )
        else:
            raise ValueError(f"{status.value} is not a terminal status")

        await self._repository.save(record)
        return record
