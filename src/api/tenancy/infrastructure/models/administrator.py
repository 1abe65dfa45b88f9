"""SQLAlchemy ORM model for the administrators table."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, TimestampMixin


class AdministratorModel(Base, TimestampMixin):
    """ORM model for administrators table.

    Platform staff identities. The id is the identity provider's user id.
    Rows are managed by platform tooling; this context only reads them.
    """

    __tablename__ = "administrators"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<AdministratorModel(id={self.id}, role={self.role})>"
