"""SQLAlchemy ORM model for the provisioning_audit_log table."""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, utc_now


class ProvisioningAuditLogModel(Base):
    """ORM model for the append-only audit log.

    Rows are inserted and never updated or deleted.
    """

    __tablename__ = "provisioning_audit_log"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    correlation_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    operation: Mapped[str] = mapped_column(String(32), nullable=False)
    idempotency_key: Mapped[str | None] = mapped_column(String(36), nullable=True)
    actor_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tenant_id: Mapped[str | None] = mapped_column(String(26), nullable=True)
    stage: Mapped[str] = mapped_column(String(64), nullable=False)
    outcome: Mapped[str] = mapped_column(String(32), nullable=False)
    error_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, insert_default=utc_now
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<ProvisioningAuditLogModel(correlation_id={self.correlation_id}, "
            f"stage={self.stage}, outcome={self.outcome})>"
        )
