"""PostgreSQL implementation of IAdministratorRepository (read-only)."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.domain.aggregates import Administrator
from tenancy.domain.value_objects import AdministratorRole
from tenancy.infrastructure.models import AdministratorModel
from tenancy.ports.repositories import IAdministratorRepository


class AdministratorRepository(IAdministratorRepository):
    """Reads platform administrators.

    Every call goes to the database; administrator status is never cached.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, administrator_id: str) -> Administrator | None:
        stmt = select(AdministratorModel).where(
            AdministratorModel.id == administrator_id
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            return None

        return Administrator(
            id=model.id,
            email=model.email,
            role=AdministratorRole(model.role),
            is_active=model.is_active,
        )

    async def email_exists(self, email: str) -> bool:
        stmt = select(AdministratorModel.id).where(AdministratorModel.email == email)
        result = await self._session.execute(stmt)
        return result.first() is not None
