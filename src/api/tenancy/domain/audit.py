"""Append-only audit entries for provisioning and credential operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ulid import ULID

from tenancy.domain.value_objects import AuditOperation


@dataclass(frozen=True)
class AuditEntry:
    """One structured audit record.

    Every stage of a provisioning attempt and every credential change
    produces an entry carrying the correlation id, so a failure can be
    traced end to end.
    """

    id: str
    correlation_id: str
    operation: AuditOperation
    stage: str
    outcome: str
    idempotency_key: str | None = None
    actor_id: str | None = None
    tenant_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int | None = None
    details: dict[str, Any] = field(default_factory=dict)
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def record(
        cls,
        correlation_id: str,
        operation: AuditOperation,
        stage: str,
        outcome: str,
        **attributes: Any,
    ) -> AuditEntry:
        return cls(
            id=str(ULID()),
            correlation_id=correlation_id,
            operation=operation,
            stage=stage,
            outcome=outcome,
            **attributes,
        )
