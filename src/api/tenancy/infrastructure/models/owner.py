"""SQLAlchemy ORM model for the owners table."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, TimestampMixin


class OwnerModel(Base, TimestampMixin):
    """ORM model for owner profiles.

    Note: id is the identity provider's user id. Each owner belongs to
    exactly one tenant (uq_owners_tenant_id).
    """

    __tablename__ = "owners"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    tenant_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<OwnerModel(id={self.id}, tenant_id={self.tenant_id})>"
