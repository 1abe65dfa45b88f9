"""httpx implementation of IIdentityProvider.

Talks to a GoTrue-style admin API:

    POST   /admin/users             create a user
    GET    /admin/users?page=N      list users, paged, to find one by email
    PUT    /admin/users/{id}        change email and/or password
    DELETE /admin/users/{id}        delete a user

Transport errors, timeouts, 5xx and auth/rate-limit responses all mean the
outcome is unknown and surface as IdentityProviderUnavailableError. Any
other 4xx that is not an email conflict is a refusal of the request itself
and surfaces as IdentityRequestRejectedError.
"""

from __future__ import annotations

from typing import Any

import httpx

from tenancy.infrastructure.observability import (
    DefaultIdentityProviderProbe,
    IdentityProviderProbe,
)
from tenancy.ports.exceptions import (
    EmailAlreadyExistsError,
    IdentityNotFoundError,
    IdentityProviderUnavailableError,
    IdentityRequestRejectedError,
)
from tenancy.ports.identity_provider import (
    CreatedIdentity,
    IdentityAccount,
    IIdentityProvider,
)

_UNAVAILABLE_STATUSES = frozenset({401, 403, 404, 408, 429})
_EMAIL_CONFLICT_STATUSES = frozenset({400, 409, 422})
_EMAIL_CONFLICT_CODES = frozenset({"email_exists", "user_already_exists"})
_MAX_LOOKUP_PAGES = 1000


class HttpIdentityProvider(IIdentityProvider):
    """Identity provider adapter over an async httpx client.

    The client is expected to carry the base URL, bearer credential and
    timeout (see tenancy.dependencies); tests pass one built on
    httpx.MockTransport.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        require_email_verification: bool = True,
        page_size: int = 100,
        probe: IdentityProviderProbe | None = None,
    ) -> None:
        self._client = client
        self._require_email_verification = require_email_verification
        self._page_size = page_size
        self._probe = probe or DefaultIdentityProviderProbe()

    async def create_user(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
    ) -> CreatedIdentity:
        response = await self._send(
            "create_user",
            "POST",
            "/admin/users",
            json={
                "email": email,
                "password": password,
                "email_confirm": not self._require_email_verification,
                "user_metadata": metadata,
            },
        )

        if self._is_email_conflict(response):
            self._probe.identity_email_conflict("create_user")
            raise EmailAlreadyExistsError("Email is already registered")
        self._raise_for_unexpected(response, "create_user")

        account = self._to_account(self._json(response, "create_user"))
        self._probe.identity_created(account.id)
        return CreatedIdentity(id=account.id, created=True)

    async def find_by_email(self, email: str) -> IdentityAccount | None:
        for page in range(1, _MAX_LOOKUP_PAGES + 1):
            response = await self._send(
                "find_by_email",
                "GET",
                "/admin/users",
                params={"page": page, "per_page": self._page_size},
            )
            self._raise_for_unexpected(response, "find_by_email")

            body = self._json(response, "find_by_email")
            users = body.get("users", []) if isinstance(body, dict) else body
            for user in users:
                if str(user.get("email", "")).lower() == email:
                    return self._to_account(user)
            if len(users) < self._page_size:
                return None

        self._probe.identity_provider_unavailable(
            "find_by_email", f"no end of user list after {_MAX_LOOKUP_PAGES} pages"
        )
        raise IdentityProviderUnavailableError(
            "Identity provider user list did not end"
        )

    async def update_credentials(
        self,
        user_id: str,
        email: str | None = None,
        password: str | None = None,
    ) -> IdentityAccount:
        payload: dict[str, Any] = {}
        if email is not None:
            payload["email"] = email
            payload["email_confirm"] = not self._require_email_verification
        if password is not None:
            payload["password"] = password

        response = await self._send(
            "update_credentials", "PUT", f"/admin/users/{user_id}", json=payload
        )

        if response.status_code == 404:
            raise IdentityNotFoundError(f"Identity {user_id} does not exist")
        if self._is_email_conflict(response):
            self._probe.identity_email_conflict("update_credentials")
            raise EmailAlreadyExistsError("Email is already registered")
        self._raise_for_unexpected(response, "update_credentials")

        self._probe.identity_credentials_updated(
            user_id,
            email_changed=email is not None,
            password_changed=password is not None,
        )
        return self._to_account(self._json(response, "update_credentials"))

    async def delete_user(self, user_id: str) -> None:
        response = await self._send("delete_user", "DELETE", f"/admin/users/{user_id}")
        if response.status_code == 404:
            self._probe.identity_deleted(user_id, existed=False)
            return
        self._raise_for_unexpected(response, "delete_user")
        self._probe.identity_deleted(user_id, existed=True)

    async def _send(
        self, operation: str, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            self._probe.identity_provider_unavailable(operation, repr(e))
            raise IdentityProviderUnavailableError(
                f"Identity provider call '{operation}' failed"
            ) from e

    def _raise_for_unexpected(self, response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return
        status = response.status_code
        if status >= 500 or status in _UNAVAILABLE_STATUSES:
            self._probe.identity_provider_unavailable(
                operation, response.text[:200], status_code=status
            )
            raise IdentityProviderUnavailableError(
                f"Identity provider returned HTTP {status} for '{operation}'"
            )
        reason = self._error_message(response)
        self._probe.identity_request_rejected(
            operation, reason or response.text[:200], status_code=status
        )
        raise IdentityRequestRejectedError(
            f"Identity provider rejected '{operation}' with HTTP {status}",
            reason=reason,
        )

    def _json(self, response: httpx.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            self._probe.identity_provider_unavailable(
                operation, "invalid JSON body", status_code=response.status_code
            )
            raise IdentityProviderUnavailableError(
                f"Identity provider returned an unreadable body for '{operation}'"
            ) from e

    @staticmethod
    def _is_email_conflict(response: httpx.Response) -> bool:
        if response.status_code not in _EMAIL_CONFLICT_STATUSES:
            return False
        try:
            body = response.json()
        except ValueError:
            return False
        if not isinstance(body, dict):
            return False
        if body.get("error_code") in _EMAIL_CONFLICT_CODES:
            return True
        message = str(body.get("msg") or body.get("message") or "").lower()
        return "already" in message and (
            "registered" in message or "exists" in message
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str | None:
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        message = (
            body.get("msg") or body.get("message") or body.get("error_description")
        )
        return str(message) if message else None

    @staticmethod
    def _to_account(body: dict[str, Any]) -> IdentityAccount:
        return IdentityAccount(
            id=str(body["id"]),
            email=str(body.get("email", "")).lower(),
            metadata=dict(body.get("user_metadata") or {}),
        )
