"""Administrator entity (read-only within this context)."""

from __future__ import annotations

from dataclasses import dataclass

from tenancy.domain.value_objects import AdministratorRole


@dataclass(frozen=True)
class Administrator:
    """A platform staff identity.

    Administrators are managed outside this context. They are only ever
    read here, to authorize requesters and to protect their credentials.
    """

    id: str
    email: str
    role: AdministratorRole
    is_active: bool = True

    @property
    def can_manage_tenants(self) -> bool:
        """Whether this administrator may provision and manage tenants."""
        return self.is_active and self.role in (
            AdministratorRole.SUPER_ADMIN,
            AdministratorRole.ADMIN,
        )
