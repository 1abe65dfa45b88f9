"""Normalization and format validation of caller input.

These checks are pure: they never touch storage. Availability (uniqueness)
is checked separately by AvailabilityService.
"""

from __future__ import annotations

import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from infrastructure.settings import ProvisioningSettings
from tenancy.application.value_objects import CredentialUpdateCommand, ProvisionCommand
from tenancy.domain.exceptions import ValidationFailedError
from tenancy.domain.value_objects import IdempotencyKey, TenantId

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")


def normalize_slug(slug: str) -> str:
    return slug.strip().lower()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def slug_format_error(slug: str, settings: ProvisioningSettings) -> str | None:
    """Return why a normalized slug is not acceptable, or None.

    Covers length bounds and the character set. Reserved words are an
    availability concern and are checked by AvailabilityService.
    """
    if len(slug) < settings.slug_min_length:
        return f"Slug must be at least {settings.slug_min_length} characters"
    if len(slug) > settings.slug_max_length:
        return f"Slug must be at most {settings.slug_max_length} characters"
    if not SLUG_PATTERN.match(slug):
        return (
            "Slug may only contain lowercase letters, digits and single hyphens "
            "between them"
        )
    return None


def validate_email(email: str) -> str:
    """Normalize and validate an email address.

    Raises:
        ValidationFailedError: If the address is malformed
    """
    normalized = normalize_email(email)
    if len(normalized) > 320 or not EMAIL_PATTERN.match(normalized):
        raise ValidationFailedError(f"'{email}' is not a valid email address")
    return normalized


def validate_timezone(timezone: str | None, default: str) -> str:
    value = (timezone or "").strip() or default
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationFailedError(f"'{value}' is not a valid IANA timezone") from e
    return value


def validate_currency(currency: str | None, default: str) -> str:
    value = (currency or "").strip() or default
    if not CURRENCY_PATTERN.match(value):
        raise ValidationFailedError(
            f"'{value}' is not a 3-letter uppercase ISO 4217 currency code"
        )
    return value


def validate_password(password: str, settings: ProvisioningSettings) -> str:
    if len(password) < settings.min_password_length:
        raise ValidationFailedError(
            f"Password must be at least {settings.min_password_length} characters"
        )
    return password


def build_provision_command(
    *,
    idempotency_key: str,
    tenant_name: str,
    slug: str,
    owner_email: str,
    settings: ProvisioningSettings,
    timezone: str | None = None,
    currency: str | None = None,
    owner_name: str | None = None,
) -> ProvisionCommand:
    """Normalize and validate a provisioning request.

    Malformed slugs are reported as VALIDATION_FAILED here; reserved or
    taken slugs are reported later as SLUG_UNAVAILABLE.

    Raises:
        ValidationFailedError: On the first invalid field
    """
    try:
        key = IdempotencyKey.from_string(idempotency_key)
    except ValueError as e:
        raise ValidationFailedError("idempotencyKey must be a UUID") from e

    name = tenant_name.strip()
    if not name:
        raise ValidationFailedError("Tenant name is required")
    if len(name) > 255:
        raise ValidationFailedError("Tenant name must be at most 255 characters")

    normalized_slug = normalize_slug(slug)
    reason = slug_format_error(normalized_slug, settings)
    if reason is not None:
        raise ValidationFailedError(reason)

    return ProvisionCommand(
        idempotency_key=key,
        tenant_name=name,
        slug=normalized_slug,
        timezone=validate_timezone(timezone, settings.default_timezone),
        currency=validate_currency(currency, settings.default_currency),
        owner_email=validate_email(owner_email),
        owner_name=(owner_name or "").strip() or None,
    )


def build_credential_command(
    *,
    tenant_id: str,
    settings: ProvisioningSettings,
    new_email: str | None = None,
    new_password: str | None = None,
    generate_password: bool = False,
) -> CredentialUpdateCommand:
    """Normalize and validate a credential change.

    Raises:
        ValidationFailedError: If nothing is requested, the inputs conflict,
            or a field is malformed
    """
    try:
        parsed_tenant_id = TenantId.from_string(tenant_id)
    except ValueError as e:
        raise ValidationFailedError(f"'{tenant_id}' is not a valid tenant id") from e

    if new_password is not None and generate_password:
        raise ValidationFailedError(
            "Provide either newPassword or generatePassword, not both"
        )
    if new_email is None and new_password is None and not generate_password:
        raise ValidationFailedError("Nothing to update")

    return CredentialUpdateCommand(
        tenant_id=parsed_tenant_id,
        new_email=validate_email(new_email) if new_email is not None else None,
        new_password=(
            validate_password(new_password, settings)
            if new_password is not None
            else None
        ),
        generate_password=generate_password,
    )
