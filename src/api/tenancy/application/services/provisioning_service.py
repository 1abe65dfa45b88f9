"""Provisioning orchestrator for the tenancy bounded context.

Creates a tenant together with its dedicated owner identity. The database
and the identity provider cannot share a transaction, so provisioning runs
as a saga over the ProvisioningRequest state machine:

    initiated -> validating -> creating_tenant_record -> creating_identity
    -> linking_identity -> verifying -> completed

Any failure moves the request to failed. When a tenant row or an identity
already exists at that point the saga continues to rolling_back and
rolled_back, undoing what it created through SagaCompensator.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.settings import ProvisioningSettings
from shared_kernel.observability_context import ObservationContext
from tenancy.application.identity_classifier import (
    IdentityClassifier,
    require_tenant_manager,
)
from tenancy.application.observability import (
    DefaultProvisioningServiceProbe,
    ProvisioningServiceProbe,
)
from tenancy.application.security import generate_password
from tenancy.application.services.availability_service import AvailabilityService
from tenancy.application.services.compensation import SagaCompensator
from tenancy.application.services.idempotency_ledger import IdempotencyLedger
from tenancy.application.value_objects import ProvisionCommand, ProvisioningResult
from tenancy.domain.aggregates import Owner, OwnerLink, ProvisioningRequest, Tenant
from tenancy.domain.aggregates.tenant import TenantOwnerInvariantError
from tenancy.domain.audit import AuditEntry
from tenancy.domain.exceptions import (
    DuplicateRequestError,
    EmailUnavailableError,
    ForbiddenError,
    IdentityProviderUnavailableFailure,
    IntegrityVerificationFailedError,
    InternalError,
    ProvisioningError,
    SlugUnavailableError,
    ValidationFailedError,
)
from tenancy.domain.value_objects import (
    AuditOperation,
    ConflictSource,
    ErrorCategory,
    OwnerId,
    OwnerRole,
    ProvisioningStatus,
    TenantId,
    TenantStatus,
)
from tenancy.ports.exceptions import (
    DuplicateOwnerEmailError,
    DuplicateSlugError,
    EmailAlreadyExistsError,
    IdentityProviderUnavailableError,
    IdentityRequestRejectedError,
    OwnerAlreadyLinkedError,
)
from tenancy.ports.identity_provider import IIdentityProvider
from tenancy.ports.repositories import (
    IAuditLog,
    IOwnerLinkRepository,
    IOwnerRepository,
    ITenantRepository,
)


@dataclass
class _SagaState:
    """What one saga run has created so far."""

    record: ProvisioningRequest
    command: ProvisionCommand
    request_id: str
    requester_id: str
    probe: ProvisioningServiceProbe
    started: float
    tenant_id: TenantId | None = None
    identity_id: str | None = None
    identity_outcome_unknown: bool = False

    @property
    def needs_compensation(self) -> bool:
        return (
            self.tenant_id is not None
            or self.identity_id is not None
            or self.identity_outcome_unknown
        )

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)


class ProvisioningService:
    """Application service that provisions tenants.

    Every database interaction runs in its own short transaction on the
    shared session; identity provider calls happen between them, never
    inside one.
    """

    def __init__(
        self,
        session: AsyncSession,
        ledger: IdempotencyLedger,
        availability: AvailabilityService,
        identity_classifier: IdentityClassifier,
        tenant_repository: ITenantRepository,
        owner_link_repository: IOwnerLinkRepository,
        owner_repository: IOwnerRepository,
        identity_provider: IIdentityProvider,
        audit_log: IAuditLog,
        compensator: SagaCompensator,
        settings: ProvisioningSettings,
        probe: ProvisioningServiceProbe | None = None,
    ):
        """Initialize ProvisioningService with dependencies.

        Args:
            session: Database session shared by all collaborators
            ledger: Idempotency ledger for provisioning requests
            availability: Advisory slug/email checks
            identity_classifier: Decides who is an administrator
            tenant_repository: Tenant persistence
            owner_link_repository: Provisional owner-linkage persistence
            owner_repository: Owner profile persistence
            identity_provider: External identity provider adapter
            audit_log: Append-only audit sink
            compensator: Undoes partial sagas
            settings: Provisioning business rules
            probe: Optional domain probe for observability
        """
        self._session = session
        self._ledger = ledger
        self._availability = availability
        self._classifier = identity_classifier
        self._tenants = tenant_repository
        self._owner_links = owner_link_repository
        self._owners = owner_repository
        self._identity_provider = identity_provider
        self._audit_log = audit_log
        self._compensator = compensator
        self._settings = settings
        self._probe = probe or DefaultProvisioningServiceProbe()

    async def provision(
        self,
        command: ProvisionCommand,
        requester_id: str,
        request_id: str,
    ) -> ProvisioningResult:
        """Provision a tenant and its owner identity.

        A retry with the same idempotency key and payload returns the stored
        outcome of the first attempt (its success payload, or the same error)
        without side effects.

        Once the saga has started it is not abandoned when the caller goes
        away: cancellation of this coroutine waits for the saga to reach a
        terminal state before propagating.

        Args:
            command: Normalized provisioning request
            requester_id: Administrator invoking the operation
            request_id: Correlation id for logs, audit and the response

        Returns:
            ProvisioningResult with tenant id, owner id and slug

        Raises:
            ProvisioningError: With the code describing the failure
        """
        probe = self._probe.with_context(
            ObservationContext(
                request_id=request_id,
                user_id=requester_id,
                idempotency_key=command.idempotency_key.value,
            )
        )

        try:
            async with self._session.begin():
                await require_tenant_manager(self._classifier, requester_id)
        except ForbiddenError as e:
            probe.requester_forbidden(requester_id)
            e.with_request_id(request_id)
            raise

        entry = await self._ledger.begin(
            idempotency_key=command.idempotency_key,
            request_id=request_id,
            requester_id=requester_id,
            tenant_slug=command.slug,
            owner_email=command.owner_email,
            request_payload=command.canonical_payload(),
        )
        if not entry.is_new:
            return self._replay(entry.record, command, request_id, probe)

        probe.provisioning_started(command.slug)
        state = _SagaState(
            record=entry.record,
            command=command,
            request_id=request_id,
            requester_id=requester_id,
            probe=probe,
            started=time.monotonic(),
        )
        saga = asyncio.ensure_future(self._run_saga(state))
        try:
            return await asyncio.shield(saga)
        except asyncio.CancelledError:
            probe.caller_detached(state.record.status.value)
            # The session is released only after the saga is terminal
            while not saga.done():
                try:
                    await asyncio.wait({saga})
                except asyncio.CancelledError:
                    continue
            if not saga.cancelled():
                # Outcome is in the ledger; mark the exception as retrieved
                saga.exception()
            raise

    def _replay(
        self,
        record: ProvisioningRequest,
        command: ProvisionCommand,
        request_id: str,
        probe: ProvisioningServiceProbe,
    ) -> ProvisioningResult:
        if not record.matches_payload(command.canonical_payload()):
            raise DuplicateRequestError(
                "Idempotency key was already used for a different request",
                request_id=request_id,
            )
        if not record.is_terminal:
            raise DuplicateRequestError(
                "A request with this idempotency key is already in progress",
                request_id=request_id,
            )

        probe.provisioning_replayed(record.status.value)
        if record.succeeded and record.response_payload is not None:
            return ProvisioningResult.from_payload(record.response_payload)
        raise ProvisioningError.from_payload(record.response_payload or {})

    async def _run_saga(self, state: _SagaState) -> ProvisioningResult:
        try:
            await self._validate(state)
            tenant = await self._create_tenant_record(state)
            owner_id = await self._create_identity(state, tenant)
            await self._link_identity(state, tenant.id, owner_id)
            result = await self._verify(state, tenant, owner_id)
            await self._complete(state, result)
            return result
        except ProvisioningError as e:
            e.with_request_id(state.request_id)
            await self._fail(state, e)
            raise
        except Exception as e:
            error = InternalError(
                "Provisioning failed unexpectedly", request_id=state.request_id
            )
            await self._fail(state, error, cause=e)
            raise error from e

    async def _validate(self, state: _SagaState) -> None:
        command = state.command
        await self._enter(state, ProvisioningStatus.VALIDATING)

        slug = await self._availability.check_slug(command.slug)
        if not slug.available:
            raise SlugUnavailableError(
                slug.reason or f"Slug '{command.slug}' is not available",
                suggestion=slug.suggestion,
            )

        try:
            email = await self._availability.check_email(command.owner_email)
        except IdentityProviderUnavailableError as e:
            raise IdentityProviderUnavailableFailure(
                "Identity provider is unavailable; try again shortly"
            ) from e
        if not email.available:
            raise EmailUnavailableError(
                email.reason or "Owner email is not available",
                conflicting_source=email.conflicting_source,
            )

    async def _create_tenant_record(self, state: _SagaState) -> Tenant:
        command = state.command
        record = state.record
        tenant = Tenant.create_provisional(
            name=command.tenant_name,
            slug=command.slug,
            timezone=command.timezone,
            currency=command.currency,
        )
        link = OwnerLink.reserve(
            tenant_id=tenant.id,
            owner_email=command.owner_email,
            provisioning_request_id=record.id,
        )

        try:
            async with self._session.begin():
                record.advance(ProvisioningStatus.CREATING_TENANT_RECORD)
                await self._tenants.save(tenant)
                await self._owner_links.save(link)
                record.record_tenant(tenant.id)
                await self._ledger.record_progress(record)
                await self._audit(state, "tenant_record_created", "succeeded")
        except DuplicateSlugError as e:
            availability = await self._availability.check_slug(command.slug)
            raise SlugUnavailableError(
                f"Slug '{command.slug}' is already taken",
                suggestion=availability.suggestion,
            ) from e
        except DuplicateOwnerEmailError as e:
            raise EmailUnavailableError(
                "Owner email is already reserved by another tenant",
                conflicting_source=ConflictSource.OWNER,
            ) from e

        state.tenant_id = tenant.id
        return tenant

    async def _create_identity(self, state: _SagaState, tenant: Tenant) -> OwnerId:
        await self._enter(state, ProvisioningStatus.CREATING_IDENTITY)

        identity_id = await self._create_or_adopt_identity(state, tenant)
        state.identity_id = identity_id
        state.identity_outcome_unknown = False

        owner_id = OwnerId(value=identity_id)
        async with self._session.begin():
            state.record.record_identity(owner_id)
            await self._ledger.record_progress(state.record)
            await self._audit(state, "identity_created", "succeeded")
        return owner_id

    async def _create_or_adopt_identity(
        self, state: _SagaState, tenant: Tenant
    ) -> str:
        """Create the owner identity, retrying once on an unknown outcome.

        An EmailAlreadyExists answer is only accepted as success when the
        existing account was created by this very request (a retried create
        whose first response was lost). Any other existing account is a
        conflict: it is never linked to the new tenant.
        """
        command = state.command
        metadata: dict[str, Any] = {
            "role": OwnerRole.TENANT_OWNER.value,
            "tenant_id": tenant.id.value,
            "tenant_slug": tenant.slug,
            "provisioning_request_id": state.record.id.value,
        }
        if command.owner_name:
            metadata["display_name"] = command.owner_name
        password = generate_password(self._settings.initial_password_length)

        try:
            for attempt in (1, 2):
                try:
                    created = await self._identity_provider.create_user(
                        email=command.owner_email,
                        password=password,
                        metadata=metadata,
                    )
                    return created.id
                except IdentityProviderUnavailableError:
                    state.identity_outcome_unknown = True
                    if attempt == 2:
                        raise
                except IdentityRequestRejectedError as e:
                    state.identity_outcome_unknown = False
                    raise ValidationFailedError(
                        "Identity provider rejected the owner account: "
                        f"{e.reason or 'no reason given'}"
                    ) from e
                except EmailAlreadyExistsError as e:
                    account = await self._identity_provider.find_by_email(
                        command.owner_email
                    )
                    if account is not None and account.belongs_to_request(
                        state.record.id.value
                    ):
                        state.probe.identity_adopted(account.id)
                        return account.id
                    state.identity_outcome_unknown = False
                    raise EmailUnavailableError(
                        "Owner email is already registered with the identity provider",
                        conflicting_source=ConflictSource.IDENTITY_PROVIDER,
                    ) from e
        except IdentityProviderUnavailableError as e:
            raise IdentityProviderUnavailableFailure(
                "Identity provider is unavailable; the request was rolled back"
            ) from e
        raise IdentityProviderUnavailableFailure("Identity provider is unavailable")

    async def _link_identity(
        self, state: _SagaState, tenant_id: TenantId, owner_id: OwnerId
    ) -> None:
        command = state.command
        try:
            async with self._session.begin():
                await self._ledger.advance(
                    state.record, ProvisioningStatus.LINKING_IDENTITY
                )
                if await self._classifier.is_administrator(owner_id.value):
                    raise IntegrityVerificationFailedError(
                        "Created identity belongs to a platform administrator"
                    )

                tenant = await self._tenants.get_by_id(tenant_id)
                link = await self._owner_links.get_by_tenant(tenant_id)
                if tenant is None or link is None:
                    raise IntegrityVerificationFailedError(
                        "Provisional tenant records disappeared before linking"
                    )

                tenant.activate_with_owner(owner_id)
                await self._tenants.save(tenant)
                link.link(owner_id)
                await self._owner_links.save(link)
                await self._owners.save(
                    Owner.create(
                        owner_id=owner_id,
                        email=command.owner_email,
                        tenant_id=tenant_id,
                        display_name=command.owner_name,
                    )
                )
                await self._audit(state, "identity_linked", "succeeded")
        except TenantOwnerInvariantError as e:
            raise IntegrityVerificationFailedError(str(e)) from e
        except OwnerAlreadyLinkedError as e:
            raise IntegrityVerificationFailedError(
                "Owner identity is already linked to another tenant"
            ) from e
        except DuplicateOwnerEmailError as e:
            raise EmailUnavailableError(
                "Owner email is already used by another owner",
                conflicting_source=ConflictSource.OWNER,
            ) from e

    async def _verify(
        self, state: _SagaState, tenant: Tenant, owner_id: OwnerId
    ) -> ProvisioningResult:
        async with self._session.begin():
            await self._ledger.advance(state.record, ProvisioningStatus.VERIFYING)
            stored_tenant = await self._tenants.get_by_id(tenant.id)
            stored_owner = await self._owners.get_by_tenant(tenant.id)
            problem = await self._verification_problem(
                stored_tenant, stored_owner, owner_id
            )
            if problem is not None:
                raise IntegrityVerificationFailedError(problem)
            await self._audit(state, "verified", "succeeded")

        return ProvisioningResult(
            tenant_id=tenant.id,
            owner_id=owner_id,
            slug=tenant.slug,
            request_id=state.request_id,
        )

    async def _verification_problem(
        self,
        tenant: Tenant | None,
        owner: Owner | None,
        owner_id: OwnerId,
    ) -> str | None:
        if tenant is None:
            return "Tenant record is missing after linking"
        if owner is None:
            return "Owner record is missing after linking"
        if tenant.owner_id is None:
            return "Tenant has no owner after linking"
        if tenant.owner_id != owner_id or owner.id != owner_id:
            return "Tenant and owner records reference different identities"
        if tenant.status is not TenantStatus.ACTIVE:
            return "Tenant is not active after linking"
        if await self._classifier.is_administrator(owner_id.value):
            return "Tenant owner is a platform administrator"
        return None

    async def _complete(self, state: _SagaState, result: ProvisioningResult) -> None:
        async with self._session.begin():
            await self._ledger.complete(
                state.record, ProvisioningStatus.COMPLETED, result.to_payload()
            )
            await self._audit(
                state,
                ProvisioningStatus.COMPLETED.value,
                "succeeded",
                tenant_id=result.tenant_id.value,
                duration_ms=state.elapsed_ms(),
            )
        state.probe.provisioning_completed(
            result.tenant_id.value, result.owner_id.value, state.elapsed_ms()
        )

    async def _fail(
        self,
        state: _SagaState,
        error: ProvisioningError,
        cause: Exception | None = None,
    ) -> None:
        """Record the failure and compensate when something was created.

        Every ledger write is attempted twice. Compensation runs even when
        the rollback could not be recorded, so nothing this attempt created
        is left waiting for reconciliation. Errors raised while recording
        are logged and swallowed so the caller still receives the original
        error.
        """
        stage = state.record.status.value
        self._log_failure(state, error, stage, cause)

        if state.record.succeeded:
            # Verified and linked; only the completion write was lost.
            # Reconciliation resumes the record to completed.
            state.probe.completion_unrecorded(
                state.tenant_id.value if state.tenant_id else None,
                state.identity_id,
            )
            return

        if not state.needs_compensation:

            async def record_failure() -> None:
                async with self._session.begin():
                    await self._ledger.complete(
                        state.record, ProvisioningStatus.FAILED, error
                    )
                    await self._audit(
                        state,
                        stage,
                        "failed",
                        error=error,
                        duration_ms=state.elapsed_ms(),
                    )

            await self._write_ledger(state, "record_failure", record_failure)
            return

        async def record_rollback_start() -> None:
            async with self._session.begin():
                await self._ledger.start_rollback(state.record, error)
                await self._audit(state, stage, "rolling_back", error=error)

        await self._write_ledger(state, "start_rollback", record_rollback_start)

        outcome = await self._compensator.compensate(
            state.probe,
            tenant_id=state.tenant_id,
            identity_id=state.identity_id,
            unresolved_email=(
                state.command.owner_email if state.identity_outcome_unknown else None
            ),
            provisioning_request_id=state.record.id.value,
        )

        async def record_rollback_end() -> None:
            async with self._session.begin():
                await self._ledger.complete(
                    state.record,
                    ProvisioningStatus.ROLLED_BACK,
                    orphaned_identity_id=outcome.orphaned_identity_id,
                    orphaned_tenant_id=outcome.orphaned_tenant_id,
                    identity_unresolved=outcome.identity_unresolved,
                )
                await self._audit(
                    state,
                    ProvisioningStatus.ROLLED_BACK.value,
                    "compensated" if outcome.complete else "compensation_incomplete",
                    error=error,
                    duration_ms=state.elapsed_ms(),
                    details={
                        "orphaned_identity_id": outcome.orphaned_identity_id,
                        "orphaned_tenant_id": outcome.orphaned_tenant_id,
                        "identity_unresolved": outcome.identity_unresolved,
                    },
                )

        if not await self._write_ledger(state, "finish_rollback", record_rollback_end):
            state.probe.rollback_unrecorded(
                compensated_tenant_id=(
                    state.tenant_id.value if state.tenant_id else None
                ),
                identity_id=state.identity_id,
                orphaned_identity_id=outcome.orphaned_identity_id,
                orphaned_tenant_id=outcome.orphaned_tenant_id,
                identity_unresolved=outcome.identity_unresolved,
            )

    @staticmethod
    async def _write_ledger(
        state: _SagaState,
        step: str,
        write: Callable[[], Awaitable[None]],
    ) -> bool:
        """Run a ledger transaction, retrying it once. Returns success."""
        try:
            await write()
            return True
        except Exception as e:
            state.probe.ledger_write_retried(step, repr(e))
        try:
            await write()
            return True
        except Exception as e:
            state.probe.cross_system_failure(
                "LEDGER_UPDATE_FAILED", repr(e), state.record.status.value
            )
            return False

    def _log_failure(
        self,
        state: _SagaState,
        error: ProvisioningError,
        stage: str,
        cause: Exception | None,
    ) -> None:
        message = error.message if cause is None else f"{error.message}: {cause!r}"
        if error.category is ErrorCategory.INVARIANT:
            state.probe.invariant_violation(error.code.value, message, stage)
        elif error.category is ErrorCategory.CROSS_SYSTEM or state.needs_compensation:
            state.probe.cross_system_failure(error.code.value, message, stage)
        else:
            state.probe.provisioning_rejected(error.code.value, message, stage)

    async def _enter(self, state: _SagaState, status: ProvisioningStatus) -> None:
        async with self._session.begin():
            await self._ledger.advance(state.record, status)
            await self._audit(state, status.value, "entered")
        state.probe.stage_entered(status.value)

    async def _audit(
        self,
        state: _SagaState,
        stage: str,
        outcome: str,
        *,
        error: ProvisioningError | None = None,
        tenant_id: str | None = None,
        duration_ms: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if tenant_id is None and state.record.tenant_id is not None:
            tenant_id = state.record.tenant_id.value
        await self._audit_log.append(
            AuditEntry.record(
                correlation_id=state.request_id,
                operation=AuditOperation.PROVISION,
                stage=stage,
                outcome=outcome,
                idempotency_key=state.record.idempotency_key.value,
                actor_id=state.requester_id,
                tenant_id=tenant_id,
                error_code=error.code.value if error else None,
                error_message=error.message if error else None,
                duration_ms=duration_ms,
                details=details or {},
            )
        )
