"""Protocol for availability check observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class AvailabilityProbe(Protocol):
    """Domain probe for slug and email availability checks."""

    def slug_checked(
        self, slug: str, available: bool, suggestion: str | None = None
    ) -> None:
        """Record the outcome of a slug check."""
        ...

    def email_checked(self, available: bool, conflicting_source: str | None) -> None:
        """Record the outcome of an email check."""
        ...

    def with_context(self, context: ObservationContext) -> AvailabilityProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultAvailabilityProbe:
    """Default implementation of AvailabilityProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultAvailabilityProbe:
        """Create a new probe with observation context bound."""
        return DefaultAvailabilityProbe(logger=self._logger, context=context)

    def slug_checked(
        self, slug: str, available: bool, suggestion: str | None = None
    ) -> None:
        """Record the outcome of a slug check."""
        self._logger.debug(
            "slug_availability_checked",
            slug=slug,
            available=available,
            suggestion=suggestion,
            **self._get_context_kwargs(),
        )

    def email_checked(self, available: bool, conflicting_source: str | None) -> None:
        """Record the outcome of an email check."""
        self._logger.debug(
            "email_availability_checked",
            available=available,
            conflicting_source=conflicting_source,
            **self._get_context_kwargs(),
        )
