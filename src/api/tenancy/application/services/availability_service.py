"""Availability checks for tenant slugs and owner emails.

Both checks are advisory. Between the check and the insert another request
can take the slug or email; the unique constraints in the tenant
transaction are what decide, and their violations are reported with the
same error codes.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.settings import ProvisioningSettings
from tenancy.application.observability import (
    AvailabilityProbe,
    DefaultAvailabilityProbe,
)
from tenancy.application.validation import (
    EMAIL_PATTERN,
    normalize_email,
    normalize_slug,
    slug_format_error,
)
from tenancy.application.value_objects import EmailAvailability, SlugAvailability
from tenancy.domain.value_objects import ConflictSource, OwnerId
from tenancy.ports.identity_provider import IIdentityProvider
from tenancy.ports.repositories import (
    IAdministratorRepository,
    IOwnerLinkRepository,
    IOwnerRepository,
    ITenantRepository,
)


class AvailabilityService:
    """Checks proposed slugs and emails against every identity-bearing store.

    Each public method runs its database reads in its own short
    transaction, so it must not be called inside another one.
    """

    def __init__(
        self,
        session: AsyncSession,
        tenant_repository: ITenantRepository,
        owner_repository: IOwnerRepository,
        owner_link_repository: IOwnerLinkRepository,
        administrator_repository: IAdministratorRepository,
        identity_provider: IIdentityProvider,
        settings: ProvisioningSettings,
        probe: AvailabilityProbe | None = None,
    ):
        self._session = session
        self._tenants = tenant_repository
        self._owners = owner_repository
        self._owner_links = owner_link_repository
        self._administrators = administrator_repository
        self._identity_provider = identity_provider
        self._settings = settings
        self._probe = probe or DefaultAvailabilityProbe()

    async def check_slug(self, proposed: str) -> SlugAvailability:
        """Check whether a slug can be assigned to a new tenant.

        Reserved, malformed and taken slugs are unavailable. A taken slug
        comes with the lowest free `-N` suggestion (N from 2), or none when
        every attempt is taken.

        Args:
            proposed: Raw slug as typed by the caller

        Returns:
            SlugAvailability for the normalized slug
        """
        slug = normalize_slug(proposed)

        if slug in self._settings.reserved_slugs:
            result = SlugAvailability(
                slug=slug, available=False, reason=f"'{slug}' is a reserved word"
            )
            self._probe.slug_checked(slug, available=False)
            return result

        reason = slug_format_error(slug, self._settings)
        if reason is not None:
            self._probe.slug_checked(slug, available=False)
            return SlugAvailability(slug=slug, available=False, reason=reason)

        async with self._session.begin():
            if not await self._tenants.slug_exists(slug):
                self._probe.slug_checked(slug, available=True)
                return SlugAvailability(slug=slug, available=True)

            suggestion = await self._suggest_slug(slug)

        self._probe.slug_checked(slug, available=False, suggestion=suggestion)
        return SlugAvailability(
            slug=slug,
            available=False,
            reason=f"Slug '{slug}' is already taken",
            suggestion=suggestion,
        )

    async def check_email(
        self,
        proposed: str,
        exclude_owner_id: OwnerId | None = None,
    ) -> EmailAvailability:
        """Check whether an email is free across owners, administrators and
        the identity provider.

        Sources are consulted in that order and the first conflict wins.

        Args:
            proposed: Raw email as typed by the caller
            exclude_owner_id: Owner whose own current email does not count
                (credential changes)

        Returns:
            EmailAvailability naming the conflicting source, if any

        Raises:
            IdentityProviderUnavailableError: If the provider lookup fails
        """
        email = normalize_email(proposed)
        if not EMAIL_PATTERN.match(email):
            self._probe.email_checked(available=False, conflicting_source=None)
            return EmailAvailability(
                email=email, available=False, reason="Invalid email address"
            )

        source: ConflictSource | None = None
        async with self._session.begin():
            if await self._owners.email_exists(email, exclude_owner_id=exclude_owner_id):
                source = ConflictSource.OWNER
            elif await self._owner_links.email_reserved(email):
                source = ConflictSource.OWNER
            elif await self._administrators.email_exists(email):
                source = ConflictSource.ADMINISTRATOR

        if source is None:
            account = await self._identity_provider.find_by_email(email)
            if account is not None and (
                exclude_owner_id is None or account.id != exclude_owner_id.value
            ):
                source = ConflictSource.IDENTITY_PROVIDER

        self._probe.email_checked(
            available=source is None,
            conflicting_source=source.value if source else None,
        )
        if source is None:
            return EmailAvailability(email=email, available=True)
        label = source.value.replace("_", " ")
        return EmailAvailability(
            email=email,
            available=False,
            reason=f"Email is already used by an existing {label} account",
            conflicting_source=source,
        )

    async def _suggest_slug(self, slug: str) -> str | None:
        max_length = self._settings.slug_max_length
        for n in range(2, 2 + self._settings.max_slug_suggestions):
            suffix = f"-{n}"
            base = slug[: max_length - len(suffix)].rstrip("-")
            candidate = f"{base}{suffix}"
            if candidate in self._settings.reserved_slugs:
                continue
            if slug_format_error(candidate, self._settings) is not None:
                continue
            if not await self._tenants.slug_exists(candidate):
                return candidate
        return None
