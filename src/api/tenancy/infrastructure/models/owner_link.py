"""SQLAlchemy ORM model for the tenant_owner_links table."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, TimestampMixin


class TenantOwnerLinkModel(Base, TimestampMixin):
    """ORM model for the provisional owner linkage of a tenant.

    One row per tenant, deleted together with the tenant. The unique
    owner_email reserves the email for the whole provisioning attempt.
    """

    __tablename__ = "tenant_owner_links"

    tenant_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        primary_key=True,
    )
    owner_email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    owner_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    provisioning_request_id: Mapped[str] = mapped_column(String(26), nullable=False)

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<TenantOwnerLinkModel(tenant_id={self.tenant_id}, status={self.status})>"
        )
