"""Domain probe for the identity provider adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class IdentityProviderProbe(Protocol):
    """Domain probe for calls to the external identity provider."""

    def identity_created(self, user_id: str) -> None:
        ...

    def identity_email_conflict(self, operation: str) -> None:
        ...

    def identity_credentials_updated(
        self, user_id: str, email_changed: bool, password_changed: bool
    ) -> None:
        ...

    def identity_deleted(self, user_id: str, existed: bool) -> None:
        ...

    def identity_provider_unavailable(
        self, operation: str, error: str, status_code: int | None = None
    ) -> None:
        ...

    def identity_request_rejected(
        self, operation: str, error: str, status_code: int
    ) -> None:
        ...

    def with_context(self, context: ObservationContext) -> IdentityProviderProbe:
        ...


class DefaultIdentityProviderProbe:
    """Default implementation of IdentityProviderProbe using structlog.

    Never logs passwords; emails are logged only by the services that own
    the request context.
    """

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

    def with_context(self, context: ObservationContext) -> DefaultIdentityProviderProbe:
        """Create a new probe with observation context bound."""
        return DefaultIdentityProviderProbe(logger=self._logger, context=context)

    def identity_created(self, user_id: str) -> None:
        self._logger.info(
            "identity_created",
            identity_id=user_id,
            **self._get_context_kwargs(),
        )

    def identity_email_conflict(self, operation: str) -> None:
        self._logger.warning(
            "identity_email_conflict",
            operation=operation,
            **self._get_context_kwargs(),
        )

    def identity_credentials_updated(
        self, user_id: str, email_changed: bool, password_changed: bool
    ) -> None:
        self._logger.info(
            "identity_credentials_updated",
            identity_id=user_id,
            email_changed=email_changed,
            password_changed=password_changed,
            **self._get_context_kwargs(),
        )

    def identity_deleted(self, user_id: str, existed: bool) -> None:
        self._logger.info(
            "identity_deleted",
            identity_id=user_id,
            existed=existed,
            **self._get_context_kwargs(),
        )

    def identity_provider_unavailable(
        self, operation: str, error: str, status_code: int | None = None
    ) -> None:
        self._logger.error(
            "identity_provider_unavailable",
            operation=operation,
            error=error,
            status_code=status_code,
            **self._get_context_kwargs(),
        )

    def identity_request_rejected(
        self, operation: str, error: str, status_code: int
    ) -> None:
        self._logger.warning(
            "identity_request_rejected",
            operation=operation,
            error=error,
            status_code=status_code,
            **self._get_context_kwargs(),
        )
