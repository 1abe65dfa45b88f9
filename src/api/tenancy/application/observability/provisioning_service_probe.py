"""Protocol for provisioning saga observability.

Severity follows the error taxonomy: pre-flight and transactional
rejections are warnings, cross-system failures and compensation are
errors, and invariant violations or incomplete compensation are critical.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ProvisioningServiceProbe(Protocol):
    """Domain probe for the provisioning orchestrator."""

    def provisioning_started(self, slug: str) -> None:
        ...

    def provisioning_replayed(self, status: str) -> None:
        ...

    def requester_forbidden(self, requester_id: str) -> None:
        ...

    def stage_entered(self, stage: str) -> None:
        ...

    def provisioning_completed(
        self, tenant_id: str, owner_id: str, duration_ms: int
    ) -> None:
        ...

    def provisioning_rejected(self, code: str, message: str, stage: str) -> None:
        ...

    def cross_system_failure(self, code: str, message: str, stage: str) -> None:
        ...

    def invariant_violation(self, code: str, message: str, stage: str) -> None:
        ...

    def identity_adopted(self, identity_id: str) -> None:
        ...

    def compensation_started(self, tenant_id: str | None, identity_id: str | None) -> None:
        ...

    def compensation_step_retried(self, step: str, error: str) -> None:
        ...

    def compensation_completed(self) -> None:
        ...

    def compensation_incomplete(
        self,
        orphaned_identity_id: str | None,
        orphaned_tenant_id: str | None,
    ) -> None:
        ...

    def ledger_write_retried(self, step: str, error: str) -> None:
        ...

    def completion_unrecorded(
        self, compensated_tenant_id: str | None, identity_id: str | None
    ) -> None:
        ...

    def rollback_unrecorded(
        self,
        compensated_tenant_id: str | None,
        identity_id: str | None,
        orphaned_identity_id: str | None,
        orphaned_tenant_id: str | None,
        identity_unresolved: bool,
    ) -> None:
        ...

    def caller_detached(self, stage: str) -> None:
        ...

    def with_context(self, context: ObservationContext) -> ProvisioningServiceProbe:
        ...


class DefaultProvisioningServiceProbe:
    """Default implementation of ProvisioningServiceProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(
        self, context: ObservationContext
    ) -> DefaultProvisioningServiceProbe:
        """Create a new probe with observation context bound."""
        return DefaultProvisioningServiceProbe(logger=self._logger, context=context)

    def provisioning_started(self, slug: str) -> None:
        self._logger.info(
            "provisioning_started",
            slug=slug,
            **self._get_context_kwargs(),
        )

    def provisioning_replayed(self, status: str) -> None:
        self._logger.info(
            "provisioning_replayed",
            status=status,
            **self._get_context_kwargs(),
        )

    def requester_forbidden(self, requester_id: str) -> None:
        self._logger.warning(
            "provisioning_requester_forbidden",
            requester_id=requester_id,
            **self._get_context_kwargs(),
        )

    def stage_entered(self, stage: str) -> None:
        self._logger.debug(
            "provisioning_stage_entered",
            stage=stage,
            **self._get_context_kwargs(),
        )

    def provisioning_completed(
        self, tenant_id: str, owner_id: str, duration_ms: int
    ) -> None:
        self._logger.info(
            "provisioning_completed",
            tenant_id=tenant_id,
            owner_id=owner_id,
            duration_ms=duration_ms,
            **self._get_context_kwargs(),
        )

    def provisioning_rejected(self, code: str, message: str, stage: str) -> None:
        self._logger.warning(
            "provisioning_rejected",
            code=code,
            message=message,
            stage=stage,
            **self._get_context_kwargs(),
        )

    def cross_system_failure(self, code: str, message: str, stage: str) -> None:
        self._logger.error(
            "provisioning_cross_system_failure",
            code=code,
            message=message,
            stage=stage,
            **self._get_context_kwargs(),
        )

    def invariant_violation(self, code: str, message: str, stage: str) -> None:
        self._logger.critical(
            "provisioning_invariant_violation",
            code=code,
            message=message,
            stage=stage,
            **self._get_context_kwargs(),
        )

    def identity_adopted(self, identity_id: str) -> None:
        self._logger.warning(
            "provisioning_identity_adopted",
            identity_id=identity_id,
            **self._get_context_kwargs(),
        )

    def compensation_started(
        self, tenant_id: str | None, identity_id: str | None
    ) -> None:
        self._logger.error(
            "provisioning_compensation_started",
            compensated_tenant_id=tenant_id,
            identity_id=identity_id,
            **self._get_context_kwargs(),
        )

    def compensation_step_retried(self, step: str, error: str) -> None:
        self._logger.error(
            "provisioning_compensation_step_retried",
            step=step,
            error=error,
            **self._get_context_kwargs(),
        )

    def compensation_completed(self) -> None:
        self._logger.info(
            "provisioning_compensation_completed",
            **self._get_context_kwargs(),
        )

    def compensation_incomplete(
        self,
        orphaned_identity_id: str | None,
        orphaned_tenant_id: str | None,
    ) -> None:
        self._logger.critical(
            "provisioning_compensation_incomplete",
            orphaned_identity_id=orphaned_identity_id,
            orphaned_tenant_id=orphaned_tenant_id,
            **self._get_context_kwargs(),
        )

    def ledger_write_retried(self, step: str, error: str) -> None:
        self._logger.error(
            "provisioning_ledger_write_retried",
            step=step,
            error=error,
            **self._get_context_kwargs(),
        )

    def completion_unrecorded(
        self, compensated_tenant_id: str | None, identity_id: str | None
    ) -> None:
        self._logger.error(
            "provisioning_completion_unrecorded",
            compensated_tenant_id=compensated_tenant_id,
            identity_id=identity_id,
            **self._get_context_kwargs(),
        )

    def rollback_unrecorded(
        self,
        compensated_tenant_id: str | None,
        identity_id: str | None,
        orphaned_identity_id: str | None,
        orphaned_tenant_id: str | None,
        identity_unresolved: bool,
    ) -> None:
        self._logger.critical(
            "provisioning_rollback_unrecorded",
            compensated_tenant_id=compensated_tenant_id,
            identity_id=identity_id,
            orphaned_identity_id=orphaned_identity_id,
            orphaned_tenant_id=orphaned_tenant_id,
            identity_unresolved=identity_unresolved,
            **self._get_context_kwargs(),
        )

    def caller_detached(self, stage: str) -> None:
        self._logger.warning(
            "provisioning_caller_detached",
            stage=stage,
            **self._get_context_kwargs(),
        )
