"""PostgreSQL implementations of IOwnerRepository and IOwnerLinkRepository."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.domain.aggregates import Owner, OwnerLink
from tenancy.domain.value_objects import (
    OwnerId,
    OwnerLinkStatus,
    OwnerRole,
    ProvisioningRequestId,
    TenantId,
)
from tenancy.infrastructure.models import OwnerModel, TenantOwnerLinkModel
from tenancy.infrastructure.observability import (
    DefaultOwnerRepositoryProbe,
    OwnerRepositoryProbe,
)
from tenancy.ports.exceptions import DuplicateOwnerEmailError, OwnerAlreadyLinkedError
from tenancy.ports.repositories import IOwnerLinkRepository, IOwnerRepository


class OwnerRepository(IOwnerRepository):
    """Repository managing owner profile rows.

    An existing owner row is never moved to a different tenant: saving an
    owner whose id already belongs to another tenant raises
    OwnerAlreadyLinkedError instead of silently reusing the identity.
    """

    def __init__(
        self,
        session: AsyncSession,
        probe: OwnerRepositoryProbe | None = None,
    ) -> None:
        self._session = session
        self._probe = probe or DefaultOwnerRepositoryProbe()

    async def save(self, owner: Owner) -> None:
        """Insert or update an owner row.

        Raises:
            DuplicateOwnerEmailError: If uq_owners_email is violated
            OwnerAlreadyLinkedError: If the owner id or tenant already has a row
        """
        try:
            stmt = select(OwnerModel).where(OwnerModel.id == owner.id.value)
            result = await self._session.execute(stmt)
            model = result.scalar_one_or_none()

            if model:
                if model.tenant_id != owner.tenant_id.value:
                    self._probe.owner_already_linked(owner.id.value, model.tenant_id)
                    raise OwnerAlreadyLinkedError(
                        f"Owner {owner.id} already belongs to another tenant"
                    )
                model.email = owner.email
                model.display_name = owner.display_name
                model.role = owner.role.value
            else:
                model = OwnerModel(
                    id=owner.id.value,
                    email=owner.email,
                    display_name=owner.display_name,
                    role=owner.role.value,
                    tenant_id=owner.tenant_id.value,
                )
                self._session.add(model)

            await self._session.flush()

            self._probe.owner_saved(owner.id.value, owner.tenant_id.value)

        except IntegrityError as e:
            if "uq_owners_email" in str(e):
                self._probe.duplicate_owner_email(owner.email)
                raise DuplicateOwnerEmailError(
                    "Owner email is already in use"
                ) from e
            if "uq_owners_tenant_id" in str(e) or "pk_owners" in str(e):
                self._probe.owner_already_linked(
                    owner.id.value, owner.tenant_id.value
                )
                raise OwnerAlreadyLinkedError(
                    "Tenant already has an owner, or the owner is already linked"
                ) from e
            raise

    async def get_by_id(self, owner_id: OwnerId) -> Owner | None:
        stmt = select(OwnerModel).where(OwnerModel.id == owner_id.value)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def get_by_tenant(self, tenant_id: TenantId) -> Owner | None:
        stmt = select(OwnerModel).where(OwnerModel.tenant_id == tenant_id.value)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def email_exists(
        self,
        email: str,
        exclude_owner_id: OwnerId | None = None,
    ) -> bool:
        stmt = select(OwnerModel.id).where(OwnerModel.email == email)
        if exclude_owner_id is not None:
            stmt = stmt.where(OwnerModel.id != exclude_owner_id.value)
        result = await self._session.execute(stmt)
        return result.first() is not None

    @staticmethod
    def _to_domain(model: OwnerModel) -> Owner:
        return Owner(
            id=OwnerId(value=model.id),
            email=model.email,
            tenant_id=TenantId(value=model.tenant_id),
            display_name=model.display_name,
            role=OwnerRole(model.role),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class OwnerLinkRepository(IOwnerLinkRepository):
    """Repository managing provisional owner-linkage rows."""

    def __init__(
        self,
        session: AsyncSession,
        probe: OwnerRepositoryProbe | None = None,
    ) -> None:
        self._session = session
        self._probe = probe or DefaultOwnerRepositoryProbe()

    async def save(self, link: OwnerLink) -> None:
        """Insert or update a linkage row.

        Raises:
            DuplicateOwnerEmailError: If uq_tenant_owner_links_owner_email is violated
        """
        try:
            stmt = select(TenantOwnerLinkModel).where(
                TenantOwnerLinkModel.tenant_id == link.tenant_id.value
            )
            result = await self._session.execute(stmt)
            model = result.scalar_one_or_none()

            owner_id = link.owner_id.value if link.owner_id else None
            if model:
                model.owner_email = link.owner_email
                model.owner_id = owner_id
                model.status = link.status.value
            else:
                model = TenantOwnerLinkModel(
                    tenant_id=link.tenant_id.value,
                    owner_email=link.owner_email,
                    owner_id=owner_id,
                    status=link.status.value,
                    provisioning_request_id=link.provisioning_request_id.value,
                )
                self._session.add(model)

            await self._session.flush()

            self._probe.owner_link_saved(link.tenant_id.value, link.status.value)

        except IntegrityError as e:
            if "uq_tenant_owner_links_owner_email" in str(e):
                self._probe.duplicate_owner_email(link.owner_email)
                raise DuplicateOwnerEmailError(
                    "Owner email is already reserved by another tenant"
                ) from e
            raise

    async def get_by_tenant(self, tenant_id: TenantId) -> OwnerLink | None:
        stmt = select(TenantOwnerLinkModel).where(
            TenantOwnerLinkModel.tenant_id == tenant_id.value
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            return None

        return OwnerLink(
            tenant_id=TenantId(value=model.tenant_id),
            owner_email=model.owner_email,
            provisioning_request_id=ProvisioningRequestId(
                value=model.provisioning_request_id
            ),
            owner_id=OwnerId(value=model.owner_id) if model.owner_id else None,
            status=OwnerLinkStatus(model.status),
        )

    async def email_reserved(self, email: str) -> bool:
        stmt = select(TenantOwnerLinkModel.tenant_id).where(
            TenantOwnerLinkModel.owner_email == email
        )
        result = await self._session.execute(stmt)
        return result.first() is not None

    async def delete(self, tenant_id: TenantId) -> bool:
        stmt = select(TenantOwnerLinkModel).where(
            TenantOwnerLinkModel.tenant_id == tenant_id.value
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            return False

        await self._session.delete(model)
        await self._session.flush()

        self._probe.owner_link_deleted(tenant_id.value)
        return True
