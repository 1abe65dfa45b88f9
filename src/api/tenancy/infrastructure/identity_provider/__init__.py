"""Identity provider adapter implementations."""

from tenancy.infrastructure.identity_provider.http_client import HttpIdentityProvider

__all__ = ["HttpIdentityProvider"]
