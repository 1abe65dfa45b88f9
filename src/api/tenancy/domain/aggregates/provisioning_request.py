"""ProvisioningRequest aggregate: the idempotency and audit unit of a saga."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from tenancy.domain.exceptions import (
    InvalidStateTransitionError,
    ProvisioningError,
    ProvisioningRequestFinalizedError,
)
from tenancy.domain.value_objects import (
    IdempotencyKey,
    OwnerId,
    ProvisioningRequestId,
    ProvisioningStatus,
    TenantId,
)

_FORWARD_PATH = (
    ProvisioningStatus.INITIATED,
    ProvisioningStatus.VALIDATING,
    ProvisioningStatus.CREATING_TENANT_RECORD,
    ProvisioningStatus.CREATING_IDENTITY,
    ProvisioningStatus.LINKING_IDENTITY,
    ProvisioningStatus.VERIFYING,
    ProvisioningStatus.COMPLETED,
)

ALLOWED_TRANSITIONS: dict[ProvisioningStatus, frozenset[ProvisioningStatus]] = {
    **{
        current: frozenset({following, ProvisioningStatus.FAILED})
        for current, following in zip(_FORWARD_PATH, _FORWARD_PATH[1:])
    },
    ProvisioningStatus.COMPLETED: frozenset(),
    ProvisioningStatus.FAILED: frozenset({ProvisioningStatus.ROLLING_BACK}),
    ProvisioningStatus.ROLLING_BACK: frozenset({ProvisioningStatus.ROLLED_BACK}),
    ProvisioningStatus.ROLLED_BACK: frozenset(),
}


@dataclass
class ProvisioningRequest:
    """One provisioning attempt, keyed by the client's idempotency key.

    The orchestrator is the only writer. The record moves along
    ALLOWED_TRANSITIONS and becomes immutable once finalized, which happens
    on COMPLETED, on ROLLED_BACK, and on FAILED when nothing needed to be
    compensated. Records are never deleted.
    """

    id: ProvisioningRequestId
    idempotency_key: IdempotencyKey
    request_id: str
    requester_id: str
    tenant_slug: str
    owner_email: str
    request_payload: dict[str, Any]
    status: ProvisioningStatus = ProvisioningStatus.INITIATED
    tenant_id: TenantId | None = None
    owner_id: OwnerId | None = None
    identity_created: bool = False
    compensation_incomplete: bool = False
    orphaned_identity_id: str | None = None
    orphaned_tenant_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    response_payload: dict[str, Any] | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @classmethod
    def initiate(
        cls,
        idempotency_key: IdempotencyKey,
        request_id: str,
        requester_id: str,
        tenant_slug: str,
        owner_email: str,
        request_payload: dict[str, Any],
    ) -> ProvisioningRequest:
        """Create the ledger record for a new provisioning attempt.

        Args:
            idempotency_key: Client-supplied key
            request_id: Correlation id of the HTTP request that started it
            requester_id: Administrator who invoked the provisioning
            tenant_slug: Normalized requested slug
            owner_email: Normalized requested owner email
            request_payload: Canonical request body used for replay matching

        Returns:
            A new ProvisioningRequest in the INITIATED state
        """
        return cls(
            id=ProvisioningRequestId.generate(),
            idempotency_key=idempotency_key,
            request_id=request_id,
            requester_id=requester_id,
            tenant_slug=tenant_slug,
            owner_email=owner_email,
            request_payload=request_payload,
        )

    @property
    def is_terminal(self) -> bool:
        """Whether the record has been finalized and may no longer change."""
        return self.completed_at is not None

    @property
    def succeeded(self) -> bool:
        return self.status is ProvisioningStatus.COMPLETED

    def matches_payload(self, payload: dict[str, Any]) -> bool:
        """Whether a retried request carries the same canonical payload."""
        return self.request_payload == payload

    def advance(self, target: ProvisioningStatus) -> None:
        """Move the saga to its next state.

        Raises:
            ProvisioningRequestFinalizedError: If the record is finalized
            InvalidStateTransitionError: If the edge does not exist
        """
        self._ensure_mutable()
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStateTransitionError(self.status.value, target.value)
        self.status = target
        self.updated_at = datetime.now(UTC)

    def fast_forward(self, target: ProvisioningStatus) -> None:
        """Advance along the forward path, one edge at a time, up to target.

        Used when reconciliation finds that every effect of the remaining
        forward stages is already in place.
        """
        if self.status not in _FORWARD_PATH or target not in _FORWARD_PATH:
            raise InvalidStateTransitionError(self.status.value, target.value)
        start = _FORWARD_PATH.index(self.status)
        end = _FORWARD_PATH.index(target)
        if end < start:
            raise InvalidStateTransitionError(self.status.value, target.value)
        for status in _FORWARD_PATH[start + 1 : end + 1]:
            self.advance(status)

    def record_tenant(self, tenant_id: TenantId) -> None:
        self._ensure_mutable()
        self.tenant_id = tenant_id
        self.updated_at = datetime.now(UTC)

    def record_identity(self, owner_id: OwnerId) -> None:
        """Remember the external identity id as soon as it exists."""
        self._ensure_mutable()
        self.owner_id = owner_id
        self.identity_created = True
        self.updated_at = datetime.now(UTC)

    def complete(self, response_payload: dict[str, Any]) -> None:
        """Finalize a successful attempt with its response payload."""
        self.advance(ProvisioningStatus.COMPLETED)
        self.response_payload = response_payload
        self.completed_at = self.updated_at

    def fail(self, error: ProvisioningError, *, finalize: bool) -> None:
        """Record the failure.

        Args:
            error: The error returned to the caller
            finalize: True when nothing was created and the record ends here;
                False when compensation follows
        """
        if self.status is not ProvisioningStatus.FAILED:
            self.advance(ProvisioningStatus.FAILED)
        self.error_code = error.code.value
        self.error_message = error.message
        self.response_payload = error.to_payload()
        if finalize:
            self.completed_at = self.updated_at

    def begin_rollback(self) -> None:
        self.advance(ProvisioningStatus.ROLLING_BACK)

    def finish_rollback(
        self,
        *,
        orphaned_identity_id: str | None = None,
        orphaned_tenant_id: str | None = None,
        identity_unresolved: bool = False,
    ) -> None:
        """Finalize compensation.

        Any orphaned id flags the record as compensation_incomplete so
        operators can find it. identity_unresolved means an identity may
        exist for owner_email but could not be looked up.
        """
        self.advance(ProvisioningStatus.ROLLED_BACK)
        self.orphaned_identity_id = orphaned_identity_id
        self.orphaned_tenant_id = orphaned_tenant_id
        self.compensation_incomplete = (
            orphaned_identity_id is not None
            or orphaned_tenant_id is not None
            or identity_unresolved
        )
        self.completed_at = self.updated_at

    def _ensure_mutable(self) -> None:
        if self.is_terminal:
            raise ProvisioningRequestFinalizedError(
                f"Provisioning request {self.idempotency_key} is finalized "
                f"as {self.status.value}"
            )
