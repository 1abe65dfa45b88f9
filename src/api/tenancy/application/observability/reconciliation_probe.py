"""Protocol for stale provisioning request reconciliation observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ReconciliationProbe(Protocol):
    """Domain probe for the reconciliation sweep."""

    def sweep_started(self, stale_count: int) -> None:
        ...

    def request_resumed(self, idempotency_key: str, tenant_id: str) -> None:
        ...

    def request_rolled_back(
        self, idempotency_key: str, compensation_incomplete: bool
    ) -> None:
        ...

    def request_reconciliation_failed(self, idempotency_key: str, error: str) -> None:
        ...

    def sweep_finished(self, resumed: int, rolled_back: int) -> None:
        ...

    def with_context(self, context: ObservationContext) -> ReconciliationProbe:
        ...


class DefaultReconciliationProbe:
    """Default implementation of ReconciliationProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultReconciliationProbe:
        """Create a new probe with observation context bound."""
        return DefaultReconciliationProbe(logger=self._logger, context=context)

    def sweep_started(self, stale_count: int) -> None:
        self._logger.info(
            "reconciliation_sweep_started",
            stale_count=stale_count,
            **self._get_context_kwargs(),
        )

    def request_resumed(self, idempotency_key: str, tenant_id: str) -> None:
        self._logger.warning(
            "reconciliation_request_resumed",
            reconciled_idempotency_key=idempotency_key,
            reconciled_tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def request_rolled_back(
        self, idempotency_key: str, compensation_incomplete: bool
    ) -> None:
        log = self._logger.critical if compensation_incomplete else self._logger.error
        log(
            "reconciliation_request_rolled_back",
            reconciled_idempotency_key=idempotency_key,
            compensation_incomplete=compensation_incomplete,
            **self._get_context_kwargs(),
        )

    def request_reconciliation_failed(self, idempotency_key: str, error: str) -> None:
        self._logger.error(
            "reconciliation_request_failed",
            reconciled_idempotency_key=idempotency_key,
            error=error,
            **self._get_context_kwargs(),
        )

    def sweep_finished(self, resumed: int, rolled_back: int) -> None:
        self._logger.info(
            "reconciliation_sweep_finished",
            resumed=resumed,
            rolled_back=rolled_back,
            **self._get_context_kwargs(),
        )
