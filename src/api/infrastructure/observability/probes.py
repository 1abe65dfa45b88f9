"""Domain probe for the provisioning database engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class DatabaseProbe(Protocol):
    """Records engine lifecycle events without exposing the logger."""

    def engine_created(
        self, connection_string: str, pool_size: int, statement_timeout_ms: int
    ) -> None:
        ...

    def engine_disposed(self, connection_string: str) -> None:
        ...

    def with_context(self, context: ObservationContext) -> DatabaseProbe:
        ...


class DefaultDatabaseProbe:
    """Default implementation of DatabaseProbe using structlog.

    connection_string must be the password-free form from DatabaseSettings.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultDatabaseProbe:
        return DefaultDatabaseProbe(logger=self._logger, context=context)

    def engine_created(
        self, connection_string: str, pool_size: int, statement_timeout_ms: int
    ) -> None:
        self._logger.info(
            "database_engine_created",
            connection_string=connection_string,
            pool_size=pool_size,
            statement_timeout_ms=statement_timeout_ms,
            **self._get_context_kwargs(),
        )

    def engine_disposed(self, connection_string: str) -> None:
        self._logger.info(
            "database_engine_disposed",
            connection_string=connection_string,
            **self._get_context_kwargs(),
        )
