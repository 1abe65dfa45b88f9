"""Domain probes for tenancy repository operations.

Following Domain-Oriented Observability patterns, these probes capture
domain-significant events of tenant, owner and ledger persistence. Unique
constraint hits are logged at warning: they are the authoritative conflict
signal and are expected under concurrency.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class TenantRepositoryProbe(Protocol):
    """Domain probe for tenant repository operations."""

    def tenant_saved(self, tenant_id: str, slug: str, status: str) -> None:
        ...

    def tenant_retrieved(self, tenant_id: str) -> None:
        ...

    def tenant_deleted(self, tenant_id: str) -> None:
        ...

    def duplicate_slug(self, slug: str) -> None:
        ...

    def owner_already_linked(self, tenant_id: str, owner_id: str | None) -> None:
        ...

    def with_context(self, context: ObservationContext) -> TenantRepositoryProbe:
        ...


class OwnerRepositoryProbe(Protocol):
    """Domain probe for owner and owner-linkage repository operations."""

    def owner_saved(self, owner_id: str, tenant_id: str) -> None:
        ...

    def owner_link_saved(self, tenant_id: str, status: str) -> None:
        ...

    def owner_link_deleted(self, tenant_id: str) -> None:
        ...

    def duplicate_owner_email(self, email: str) -> None:
        ...

    def owner_already_linked(self, owner_id: str, tenant_id: str) -> None:
        ...

    def with_context(self, context: ObservationContext) -> OwnerRepositoryProbe:
        ...


class ProvisioningRequestRepositoryProbe(Protocol):
    """Domain probe for idempotency ledger persistence."""

    def request_recorded(self, idempotency_key: str) -> None:
        ...

    def request_updated(self, idempotency_key: str, status: str) -> None:
        ...

    def duplicate_idempotency_key(self, idempotency_key: str) -> None:
        ...

    def with_context(
        self, context: ObservationContext
    ) -> ProvisioningRequestRepositoryProbe:
        ...


class _StructlogProbe:
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


class DefaultTenantRepositoryProbe(_StructlogProbe):
    """Default implementation of TenantRepositoryProbe using structlog."""

    def with_context(self, context: ObservationContext) -> DefaultTenantRepositoryProbe:
        """Create a new probe with observation context bound."""
        return DefaultTenantRepositoryProbe(logger=self._logger, context=context)

    def tenant_saved(self, tenant_id: str, slug: str, status: str) -> None:
        self._logger.info(
            "tenant_saved",
            tenant_id=tenant_id,
            slug=slug,
            status=status,
            **self._get_context_kwargs(),
        )

    def tenant_retrieved(self, tenant_id: str) -> None:
        self._logger.debug(
            "tenant_retrieved",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def tenant_deleted(self, tenant_id: str) -> None:
        self._logger.info(
            "tenant_deleted",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def duplicate_slug(self, slug: str) -> None:
        self._logger.warning(
            "duplicate_tenant_slug",
            slug=slug,
            **self._get_context_kwargs(),
        )

    def owner_already_linked(self, tenant_id: str, owner_id: str | None) -> None:
        self._logger.warning(
            "tenant_owner_already_linked",
            tenant_id=tenant_id,
            owner_id=owner_id,
            **self._get_context_kwargs(),
        )


class DefaultOwnerRepositoryProbe(_StructlogProbe):
    """Default implementation of OwnerRepositoryProbe using structlog."""

    def with_context(self, context: ObservationContext) -> DefaultOwnerRepositoryProbe:
        """Create a new probe with observation context bound."""
        return DefaultOwnerRepositoryProbe(logger=self._logger, context=context)

    def owner_saved(self, owner_id: str, tenant_id: str) -> None:
        self._logger.info(
            "owner_saved",
            owner_id=owner_id,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def owner_link_saved(self, tenant_id: str, status: str) -> None:
        self._logger.info(
            "owner_link_saved",
            tenant_id=tenant_id,
            status=status,
            **self._get_context_kwargs(),
        )

    def owner_link_deleted(self, tenant_id: str) -> None:
        self._logger.info(
            "owner_link_deleted",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def duplicate_owner_email(self, email: str) -> None:
        self._logger.warning(
            "duplicate_owner_email",
            email=email,
            **self._get_context_kwargs(),
        )

    def owner_already_linked(self, owner_id: str, tenant_id: str) -> None:
        self._logger.warning(
            "owner_already_linked",
            owner_id=owner_id,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )


class DefaultProvisioningRequestRepositoryProbe(_StructlogProbe):
    """Default implementation of ProvisioningRequestRepositoryProbe using structlog."""

    def with_context(
        self, context: ObservationContext
    ) -> DefaultProvisioningRequestRepositoryProbe:
        """Create a new probe with observation context bound."""
        return DefaultProvisioningRequestRepositoryProbe(
            logger=self._logger, context=context
        )

    def request_recorded(self, idempotency_key: str) -> None:
        self._logger.info(
            "provisioning_request_recorded",
            idempotency_key=idempotency_key,
            **self._get_context_kwargs(),
        )

    def request_updated(self, idempotency_key: str, status: str) -> None:
        self._logger.debug(
            "provisioning_request_updated",
            idempotency_key=idempotency_key,
            status=status,
            **self._get_context_kwargs(),
        )

    def duplicate_idempotency_key(self, idempotency_key: str) -> None:
        self._logger.warning(
            "duplicate_idempotency_key",
            idempotency_key=idempotency_key,
            **self._get_context_kwargs(),
        )
