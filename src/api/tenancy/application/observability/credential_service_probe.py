"""Protocol for credential manager observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class CredentialServiceProbe(Protocol):
    """Domain probe for owner credential changes."""

    def credentials_updated(
        self, owner_id: str, email_changed: bool, password_changed: bool
    ) -> None:
        """Record a successful credential change."""
        ...

    def credential_update_rejected(self, code: str, message: str) -> None:
        """Record a rejected credential change (no side effects)."""
        ...

    def admin_protection_violation(self, target_id: str, reason: str) -> None:
        """Record an attempt to mutate administrator credentials."""
        ...

    def identity_provider_failed(self, code: str, message: str) -> None:
        """Record that the identity provider call failed."""
        ...

    def email_reverted(self, owner_id: str) -> None:
        """Record that a provider email change was reverted."""
        ...

    def email_revert_failed(self, owner_id: str, error: str) -> None:
        """Record that reverting a provider email change failed."""
        ...

    def audit_write_failed(self, error: str) -> None:
        """Record that a rejection could not be written to the audit log."""
        ...

    def with_context(self, context: ObservationContext) -> CredentialServiceProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultCredentialServiceProbe:
    """Default implementation of CredentialServiceProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultCredentialServiceProbe:
        """Create a new probe with observation context bound."""
        return DefaultCredentialServiceProbe(logger=self._logger, context=context)

    def credentials_updated(
        self, owner_id: str, email_changed: bool, password_changed: bool
    ) -> None:
        """Record a successful credential change."""
        self._logger.info(
            "owner_credentials_updated",
            owner_id=owner_id,
            email_changed=email_changed,
            password_changed=password_changed,
            **self._get_context_kwargs(),
        )

    def credential_update_rejected(self, code: str, message: str) -> None:
        """Record a rejected credential change (no side effects)."""
        self._logger.warning(
            "owner_credential_update_rejected",
            code=code,
            message=message,
            **self._get_context_kwargs(),
        )

    def admin_protection_violation(self, target_id: str, reason: str) -> None:
        """Record an attempt to mutate administrator credentials."""
        self._logger.critical(
            "admin_credential_protection_violation",
            target_id=target_id,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def identity_provider_failed(self, code: str, message: str) -> None:
        """Record that the identity provider call failed."""
        self._logger.error(
            "owner_credential_identity_provider_failed",
            code=code,
            message=message,
            **self._get_context_kwargs(),
        )

    def email_reverted(self, owner_id: str) -> None:
        """Record that a provider email change was reverted."""
        self._logger.error(
            "owner_credential_email_reverted",
            owner_id=owner_id,
            **self._get_context_kwargs(),
        )

    def email_revert_failed(self, owner_id: str, error: str) -> None:
        """Record that reverting a provider email change failed."""
        self._logger.critical(
            "owner_credential_email_revert_failed",
            owner_id=owner_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def audit_write_failed(self, error: str) -> None:
        """Record that a rejection could not be written to the audit log."""
        self._logger.error(
            "owner_credential_audit_write_failed",
            error=error,
            **self._get_context_kwargs(),
        )
