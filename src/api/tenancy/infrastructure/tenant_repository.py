"""PostgreSQL implementation of ITenantRepository.

Slug and owner uniqueness are enforced by database constraints; the
repository translates the IntegrityError for each named constraint into
the matching port exception.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.domain.aggregates import Tenant
from tenancy.domain.value_objects import OwnerId, TenantId, TenantStatus
from tenancy.infrastructure.models import TenantModel
from tenancy.infrastructure.observability import (
    DefaultTenantRepositoryProbe,
    TenantRepositoryProbe,
)
from tenancy.ports.exceptions import DuplicateSlugError, OwnerAlreadyLinkedError
from tenancy.ports.repositories import ITenantRepository


class TenantRepository(ITenantRepository):
    """Repository managing PostgreSQL storage for Tenant aggregates."""

    def __init__(
        self,
        session: AsyncSession,
        probe: TenantRepositoryProbe | None = None,
    ) -> None:
        """Initialize repository with database session.

        Args:
            session: AsyncSession from FastAPI dependency injection
            probe: Optional domain probe for observability
        """
        self._session = session
        self._probe = probe or DefaultTenantRepositoryProbe()

    async def save(self, tenant: Tenant) -> None:
        """Insert or update the tenant row.

        Args:
            tenant: The Tenant aggregate to persist

        Raises:
            DuplicateSlugError: If uq_tenants_slug is violated
            OwnerAlreadyLinkedError: If uq_tenants_owner_id is violated
        """
        try:
            stmt = select(TenantModel).where(TenantModel.id == tenant.id.value)
            result = await self._session.execute(stmt)
            model = result.scalar_one_or_none()

            owner_id = tenant.owner_id.value if tenant.owner_id else None
            if model:
                model.name = tenant.name
                model.slug = tenant.slug
                model.owner_id = owner_id
                model.status = tenant.status.value
                model.timezone = tenant.timezone
                model.currency = tenant.currency
            else:
                model = TenantModel(
                    id=tenant.id.value,
                    name=tenant.name,
                    slug=tenant.slug,
                    owner_id=owner_id,
                    status=tenant.status.value,
                    timezone=tenant.timezone,
                    currency=tenant.currency,
                )
                self._session.add(model)

            # Flush so constraint violations surface here, not at commit
            await self._session.flush()

            self._probe.tenant_saved(tenant.id.value, tenant.slug, tenant.status.value)

        except IntegrityError as e:
            if "uq_tenants_slug" in str(e):
                self._probe.duplicate_slug(tenant.slug)
                raise DuplicateSlugError(
                    f"Tenant slug '{tenant.slug}' already exists"
                ) from e
            if "uq_tenants_owner_id" in str(e):
                self._probe.owner_already_linked(
                    tenant.id.value,
                    tenant.owner_id.value if tenant.owner_id else None,
                )
                raise OwnerAlreadyLinkedError(
                    "Owner is already linked to another tenant"
                ) from e
            raise

    async def get_by_id(self, tenant_id: TenantId) -> Tenant | None:
        """Fetch a tenant by id.

        Returns:
            The Tenant aggregate, or None if not found
        """
        stmt = select(TenantModel).where(TenantModel.id == tenant_id.value)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            return None

        self._probe.tenant_retrieved(model.id)
        return self._to_domain(model)

    async def slug_exists(self, slug: str) -> bool:
        stmt = select(TenantModel.id).where(TenantModel.slug == slug)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def delete(self, tenant_id: TenantId) -> bool:
        """Hard-delete the tenant row.

        Linkage and owner rows go with it through ON DELETE CASCADE.

        Returns:
            True if deleted, False if not found
        """
        stmt = select(TenantModel).where(TenantModel.id == tenant_id.value)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            return False

        await self._session.delete(model)
        await self._session.flush()

        self._probe.tenant_deleted(tenant_id.value)
        return True

    @staticmethod
    def _to_domain(model: TenantModel) -> Tenant:
        return Tenant(
            id=TenantId(value=model.id),
            name=model.name,
            slug=model.slug,
            owner_id=OwnerId(value=model.owner_id) if model.owner_id else None,
            status=TenantStatus(model.status),
            timezone=model.timezone,
            currency=model.currency,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
