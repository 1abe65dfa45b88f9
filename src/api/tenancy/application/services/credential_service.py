"""Credential manager for tenant owners.

All changes to an owner's email or password go through
CredentialService.update_owner_credentials, which is the single place
where administrator credentials are protected.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.settings import ProvisioningSettings
from shared_kernel.observability_context import ObservationContext
from tenancy.application.identity_classifier import (
    IdentityClassifier,
    require_tenant_manager,
)
from tenancy.application.observability import (
    CredentialServiceProbe,
    DefaultCredentialServiceProbe,
)
from tenancy.application.security import generate_password
from tenancy.application.services.availability_service import AvailabilityService
from tenancy.application.value_objects import (
    CredentialUpdateCommand,
    CredentialUpdateResult,
)
from tenancy.domain.aggregates import Owner
from tenancy.domain.audit import AuditEntry
from tenancy.domain.exceptions import (
    AdminCredentialProtectionViolation,
    EmailUnavailableError,
    IdentityProviderUnavailableFailure,
    IntegrityVerificationFailedError,
    InternalError,
    OwnerNotLinkedError,
    ProvisioningError,
    TenantNotFoundError,
    ValidationFailedError,
)
from tenancy.domain.value_objects import (
    AuditOperation,
    ConflictSource,
    ErrorCategory,
    OwnerId,
)
from tenancy.ports.exceptions import (
    DuplicateOwnerEmailError,
    EmailAlreadyExistsError,
    IdentityNotFoundError,
    IdentityProviderUnavailableError,
    IdentityRequestRejectedError,
)
from tenancy.ports.identity_provider import IIdentityProvider
from tenancy.ports.repositories import (
    IAuditLog,
    IOwnerLinkRepository,
    IOwnerRepository,
    ITenantRepository,
)


class CredentialService:
    """Application service for changing an existing owner's credentials.

    Pre-checks, all of which pass before anything is written:
    1. the requester is an active administrator
    2. the tenant exists and has a linked owner
    3. the owner id is not an administrator and not the requester
    4. the new email is free in every identity store
    """

    def __init__(
        self,
        session: AsyncSession,
        identity_classifier: IdentityClassifier,
        tenant_repository: ITenantRepository,
        owner_repository: IOwnerRepository,
        owner_link_repository: IOwnerLinkRepository,
        availability: AvailabilityService,
        identity_provider: IIdentityProvider,
        audit_log: IAuditLog,
        settings: ProvisioningSettings,
        probe: CredentialServiceProbe | None = None,
    ):
        self._session = session
        self._classifier = identity_classifier
        self._tenants = tenant_repository
        self._owners = owner_repository
        self._owner_links = owner_link_repository
        self._availability = availability
        self._identity_provider = identity_provider
        self._audit_log = audit_log
        self._settings = settings
        self._probe = probe or DefaultCredentialServiceProbe()

    async def update_owner_credentials(
        self,
        command: CredentialUpdateCommand,
        requester_id: str,
        request_id: str,
    ) -> CredentialUpdateResult:
        """Change the email and/or password of a tenant's owner.

        Args:
            command: Normalized credential change
            requester_id: Administrator invoking the operation
            request_id: Correlation id for logs, audit and the response

        Returns:
            CredentialUpdateResult (with the generated password, if requested)

        Raises:
            ProvisioningError: FORBIDDEN, TENANT_NOT_FOUND, OWNER_NOT_LINKED,
                ADMIN_CREDENTIAL_PROTECTION_VIOLATION, EMAIL_UNAVAILABLE,
                IDENTITY_PROVIDER_UNAVAILABLE or INTEGRITY_VERIFICATION_FAILED
        """
        probe = self._probe.with_context(
            ObservationContext(request_id=request_id, user_id=requester_id)
        )
        try:
            return await self._update(command, requester_id, request_id, probe)
        except ProvisioningError as e:
            e.with_request_id(request_id)
            self._log_rejection(probe, e)
            try:
                await self._audit_rejection(command, requester_id, request_id, e)
            except Exception as audit_error:
                probe.audit_write_failed(repr(audit_error))
            raise

    async def _update(
        self,
        command: CredentialUpdateCommand,
        requester_id: str,
        request_id: str,
        probe: CredentialServiceProbe,
    ) -> CredentialUpdateResult:
        async with self._session.begin():
            await require_tenant_manager(self._classifier, requester_id)

            tenant = await self._tenants.get_by_id(command.tenant_id)
            if tenant is None:
                raise TenantNotFoundError(f"Tenant {command.tenant_id} does not exist")
            if tenant.owner_id is None:
                raise OwnerNotLinkedError(
                    f"Tenant {command.tenant_id} has no linked owner yet"
                )
            owner_id = tenant.owner_id
            owner = await self._owners.get_by_id(owner_id)

            if owner_id.value == requester_id:
                probe.admin_protection_violation(owner_id.value, "self_mutation")
                raise AdminCredentialProtectionViolation(
                    "Administrators cannot change their own credentials "
                    "through tenant management"
                )
            if await self._classifier.is_administrator(owner_id.value):
                probe.admin_protection_violation(owner_id.value, "administrator_owner")
                raise AdminCredentialProtectionViolation(
                    "Tenant owner is a platform administrator; refusing to "
                    "change administrator credentials"
                )

            if owner is None or owner.tenant_id != tenant.id:
                raise IntegrityVerificationFailedError(
                    "Owner record is missing or belongs to a different tenant"
                )

        new_email = command.new_email
        if new_email == owner.email:
            new_email = None
        if new_email is not None:
            await self._ensure_email_available(new_email, owner_id)

        new_password = command.new_password
        generated_password: str | None = None
        if command.generate_password:
            generated_password = generate_password(
                self._settings.initial_password_length
            )
            new_password = generated_password

        if new_email is not None or new_password is not None:
            await self._update_identity(owner_id, new_email, new_password, probe)

        previous_email = owner.email
        try:
            async with self._session.begin():
                if new_email is not None:
                    await self._mirror_email(owner, new_email)
                await self._audit_log.append(
                    AuditEntry.record(
                        correlation_id=request_id,
                        operation=AuditOperation.CREDENTIAL_UPDATE,
                        stage="credentials_updated",
                        outcome="succeeded",
                        actor_id=requester_id,
                        tenant_id=command.tenant_id.value,
                        details={
                            "owner_id": owner_id.value,
                            "email_changed": new_email is not None,
                            "password_changed": new_password is not None,
                            "password_generated": generated_password is not None,
                        },
                    )
                )
        except DuplicateOwnerEmailError as e:
            await self._revert_identity_email(owner_id, previous_email, probe)
            raise EmailUnavailableError(
                "Email was taken by another owner during the update",
                conflicting_source=ConflictSource.OWNER,
            ) from e
        except Exception as e:
            if new_email is not None:
                await self._revert_identity_email(owner_id, previous_email, probe)
            raise InternalError(
                "Credentials changed at the identity provider but the local "
                "record could not be updated"
            ) from e

        probe.credentials_updated(
            owner_id.value,
            email_changed=new_email is not None,
            password_changed=new_password is not None,
        )
        return CredentialUpdateResult(
            request_id=request_id,
            email_changed=new_email is not None,
            password_changed=new_password is not None,
            generated_password=generated_password,
        )

    async def _ensure_email_available(self, email: str, owner_id: OwnerId) -> None:
        try:
            availability = await self._availability.check_email(
                email, exclude_owner_id=owner_id
            )
        except IdentityProviderUnavailableError as e:
            raise IdentityProviderUnavailableFailure(
                "Identity provider is unavailable; try again shortly"
            ) from e
        if not availability.available:
            raise EmailUnavailableError(
                availability.reason or "Email is not available",
                conflicting_source=availability.conflicting_source,
            )

    async def _update_identity(
        self,
        owner_id: OwnerId,
        new_email: str | None,
        new_password: str | None,
        probe: CredentialServiceProbe,
    ) -> None:
        try:
            await self._identity_provider.update_credentials(
                owner_id.value, email=new_email, password=new_password
            )
        except EmailAlreadyExistsError as e:
            raise EmailUnavailableError(
                "Email is already registered with the identity provider",
                conflicting_source=ConflictSource.IDENTITY_PROVIDER,
            ) from e
        except IdentityNotFoundError as e:
            raise IntegrityVerificationFailedError(
                "Owner identity no longer exists at the identity provider"
            ) from e
        except IdentityRequestRejectedError as e:
            raise ValidationFailedError(
                "Identity provider rejected the new credentials: "
                f"{e.reason or 'no reason given'}"
            ) from e
        except IdentityProviderUnavailableError as e:
            raise IdentityProviderUnavailableFailure(
                "Identity provider is unavailable; no changes were made"
            ) from e

    async def _mirror_email(self, owner: Owner, new_email: str) -> None:
        owner.change_email(new_email)
        await self._owners.save(owner)
        link = await self._owner_links.get_by_tenant(owner.tenant_id)
        if link is not None:
            link.owner_email = new_email
            await self._owner_links.save(link)

    async def _revert_identity_email(
        self,
        owner_id: OwnerId,
        previous_email: str,
        probe: CredentialServiceProbe,
    ) -> None:
        error = ""
        for _ in range(2):
            try:
                await self._identity_provider.update_credentials(
                    owner_id.value, email=previous_email
                )
                probe.email_reverted(owner_id.value)
                return
            except (
                EmailAlreadyExistsError,
                IdentityNotFoundError,
                IdentityProviderUnavailableError,
                IdentityRequestRejectedError,
            ) as e:
                error = repr(e)
        probe.email_revert_failed(owner_id.value, error)

    def _log_rejection(
        self, probe: CredentialServiceProbe, error: ProvisioningError
    ) -> None:
        if error.category is ErrorCategory.CROSS_SYSTEM:
            probe.identity_provider_failed(error.code.value, error.message)
        elif error.category is not ErrorCategory.INVARIANT:
            probe.credential_update_rejected(error.code.value, error.message)

    async def _audit_rejection(
        self,
        command: CredentialUpdateCommand,
        requester_id: str,
        request_id: str,
        error: ProvisioningError,
    ) -> None:
        async with self._session.begin():
            await self._audit_log.append(
                AuditEntry.record(
                    correlation_id=request_id,
                    operation=AuditOperation.CREDENTIAL_UPDATE,
                    stage="credentials_rejected",
                    outcome="rejected",
                    actor_id=requester_id,
                    tenant_id=command.tenant_id.value,
                    error_code=error.code.value,
                    error_message=error.message,
                )
            )
