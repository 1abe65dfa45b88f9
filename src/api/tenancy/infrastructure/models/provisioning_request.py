"""SQLAlchemy ORM model for the provisioning_requests table (idempotency ledger)."""

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, utc_now


class ProvisioningRequestModel(Base):
    """ORM model for provisioning_requests table.

    Rows are never deleted. idempotency_key is unique, which makes
    inserting a row the atomic "begin" of a provisioning attempt.
    """

    __tablename__ = "provisioning_requests"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    idempotency_key: Mapped[str] = mapped_column(
        String(36), nullable=False, unique=True
    )
    request_id: Mapped[str] = mapped_column(String(64), nullable=False)
    requester_id: Mapped[str] = mapped_column(String(255), nullable=False)
    tenant_slug: Mapped[str] = mapped_column(String(50), nullable=False)
    owner_email: Mapped[str] = mapped_column(String(320), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    tenant_id: Mapped[str | None] = mapped_column(String(26), nullable=True)
    owner_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    identity_created: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    compensation_incomplete: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True
    )
    orphaned_identity_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    orphaned_tenant_id: Mapped[str | None] = mapped_column(String(26), nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    request_payload: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    response_payload: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, insert_default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, insert_default=utc_now
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<ProvisioningRequestModel(idempotency_key={self.idempotency_key}, "
            f"status={self.status})>"
        )
