"""Identity provider port.

The identity provider owns the external authentication account of each
owner. It lives outside every database transaction, so callers must
compensate when a later step fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class IdentityAccount:
    """An account as reported by the identity provider."""

    id: str
    email: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def belongs_to_request(self, provisioning_request_id: str) -> bool:
        """Whether this account was created by the given provisioning request."""
        return self.metadata.get("provisioning_request_id") == provisioning_request_id


@dataclass(frozen=True)
class CreatedIdentity:
    """Result of create_user."""

    id: str
    created: bool


@runtime_checkable
class IIdentityProvider(Protocol):
    """Narrow adapter over the external identity provider.

    Every operation is safe to retry. The provider accepts no idempotency
    token, so a retried create surfaces as EmailAlreadyExistsError and the
    caller decides whether the existing account is its own.
    """

    async def create_user(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
    ) -> CreatedIdentity:
        """Create an account.

        Raises:
            EmailAlreadyExistsError: If the email is already registered
            IdentityProviderUnavailableError: If the outcome is unknown
        """
        ...

    async def find_by_email(self, email: str) -> IdentityAccount | None:
        """Find an account by exact (normalized) email.

        Raises:
            IdentityProviderUnavailableError: If the provider fails
        """
        ...

    async def update_credentials(
        self,
        user_id: str,
        email: str | None = None,
        password: str | None = None,
    ) -> IdentityAccount:
        """Change an account's email and/or password.

        Raises:
            EmailAlreadyExistsError: If the new email is taken
            IdentityNotFoundError: If the account does not exist
            IdentityProviderUnavailableError: If the provider fails
        """
        ...

    async def delete_user(self, user_id: str) -> None:
        """Delete an account. Deleting a missing account succeeds.

        Raises:
            IdentityProviderUnavailableError: If the provider fails
        """
        ...
