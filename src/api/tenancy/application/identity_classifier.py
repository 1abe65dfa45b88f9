"""The single place that decides whether an identity is an administrator.

Every code path that authorizes a requester or mutates owner credentials
asks this classifier. It reads through to the administrator store on every
call; there is no cached or global notion of "is admin".
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tenancy.domain.exceptions import ForbiddenError
from tenancy.ports.repositories import IAdministratorRepository


@runtime_checkable
class IdentityClassifier(Protocol):
    """Classifies identity ids as administrators or not."""

    async def is_administrator(self, identity_id: str) -> bool:
        """Whether the id belongs to any administrator, active or not."""
        ...

    async def can_manage_tenants(self, identity_id: str) -> bool:
        """Whether the id belongs to an active SUPER_ADMIN or ADMIN."""
        ...


class AdministratorIdentityClassifier(IdentityClassifier):
    """Read-through classifier over IAdministratorRepository.

    Callers run these queries inside their own transaction.
    """

    def __init__(self, administrator_repository: IAdministratorRepository) -> None:
        self._administrators = administrator_repository

    async def is_administrator(self, identity_id: str) -> bool:
        return await self._administrators.get_by_id(identity_id) is not None

    async def can_manage_tenants(self, identity_id: str) -> bool:
        administrator = await self._administrators.get_by_id(identity_id)
        return administrator is not None and administrator.can_manage_tenants


async def require_tenant_manager(
    classifier: IdentityClassifier, requester_id: str | None
) -> None:
    """Reject requesters that are not active tenant-managing administrators.

    Raises:
        ForbiddenError: If the requester may not manage tenants
    """
    if not requester_id or not await classifier.can_manage_tenants(requester_id):
        raise ForbiddenError("Requester is not an active platform administrator")
