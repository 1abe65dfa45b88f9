"""Compensation for partially completed provisioning sagas.

Used by the orchestrator when a saga fails and by reconciliation when a
saga never finished. Each compensating action is retried once; whatever
still cannot be undone is reported back as orphaned rather than hidden.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.application.identity_classifier import IdentityClassifier
from tenancy.application.observability import ProvisioningServiceProbe
from tenancy.domain.value_objects import TenantId
from tenancy.ports.identity_provider import IIdentityProvider
from tenancy.ports.repositories import IOwnerLinkRepository, ITenantRepository


@dataclass(frozen=True)
class CompensationOutcome:
    """What compensation could not undo."""

    orphaned_identity_id: str | None = None
    orphaned_tenant_id: str | None = None
    identity_unresolved: bool = False

    @property
    def complete(self) -> bool:
        return (
            self.orphaned_identity_id is None
            and self.orphaned_tenant_id is None
            and not self.identity_unresolved
        )


class SagaCompensator:
    """Undo the effects of a provisioning attempt.

    Removes the provisional tenant and linkage rows, then deletes the owner
    identity if (and only if) it was created by this attempt. An identity
    that belongs to an administrator is never deleted.
    """

    def __init__(
        self,
        session: AsyncSession,
        tenant_repository: ITenantRepository,
        owner_link_repository: IOwnerLinkRepository,
        identity_provider: IIdentityProvider,
        identity_classifier: IdentityClassifier,
    ):
        self._session = session
        self._tenants = tenant_repository
        self._owner_links = owner_link_repository
        self._identity_provider = identity_provider
        self._classifier = identity_classifier

    async def compensate(
        self,
        probe: ProvisioningServiceProbe,
        *,
        tenant_id: TenantId | None = None,
        identity_id: str | None = None,
        unresolved_email: str | None = None,
        provisioning_request_id: str | None = None,
    ) -> CompensationOutcome:
        """Run compensation.

        Args:
            probe: Probe bound to the saga's observation context
            tenant_id: Provisional tenant to delete
            identity_id: Identity created or adopted by this attempt
            unresolved_email: Email of an identity create whose outcome is
                unknown; the account is looked up and deleted only if its
                metadata names provisioning_request_id
            provisioning_request_id: Id of the attempt being compensated

        Returns:
            CompensationOutcome describing anything left behind
        """
        probe.compensation_started(
            tenant_id.value if tenant_id else None, identity_id
        )

        orphaned_tenant_id: str | None = None
        if tenant_id is not None:
            deleted = await self._attempt_twice(
                "delete_tenant", lambda: self._delete_tenant_rows(tenant_id), probe
            )
            if not deleted:
                orphaned_tenant_id = tenant_id.value

        identity_unresolved = False
        if identity_id is None and unresolved_email is not None:
            found = await self._attempt_twice(
                "resolve_identity",
                lambda: self._resolve_own_identity(
                    unresolved_email, provisioning_request_id
                ),
                probe,
            )
            if found is False:
                identity_unresolved = True
            elif isinstance(found, str):
                identity_id = found

        orphaned_identity_id: str | None = None
        if identity_id is not None:
            deleted = await self._attempt_twice(
                "delete_identity", lambda: self._delete_identity(identity_id), probe
            )
            if not deleted:
                orphaned_identity_id = identity_id

        outcome = CompensationOutcome(
            orphaned_identity_id=orphaned_identity_id,
            orphaned_tenant_id=orphaned_tenant_id,
            identity_unresolved=identity_unresolved,
        )
        if outcome.complete:
            probe.compensation_completed()
        else:
            probe.compensation_incomplete(orphaned_identity_id, orphaned_tenant_id)
        return outcome

    async def _delete_tenant_rows(self, tenant_id: TenantId) -> bool:
        async with self._session.begin():
            await self._owner_links.delete(tenant_id)
            await self._tenants.delete(tenant_id)
        return True

    async def _resolve_own_identity(
        self, email: str, provisioning_request_id: str | None
    ) -> str | bool:
        account = await self._identity_provider.find_by_email(email)
        if account is None or provisioning_request_id is None:
            return True
        if not account.belongs_to_request(provisioning_request_id):
            return True
        return account.id

    async def _delete_identity(self, identity_id: str) -> bool:
        async with self._session.begin():
            is_administrator = await self._classifier.is_administrator(identity_id)
        if is_administrator:
            # Never touch an administrator account, even on rollback
            return True
        await self._identity_provider.delete_user(identity_id)
        return True

    @staticmethod
    async def _attempt_twice(
        step: str,
        action: Callable[[], Awaitable[str | bool]],
        probe: ProvisioningServiceProbe,
    ) -> str | bool:
        try:
            return await action()
        except Exception as e:
            probe.compensation_step_retried(step, repr(e))
        try:
            return await action()
        except Exception:
            return False
