"""HTTP routes for the tenancy bounded context.

Two routers: `router` for tenant provisioning and owner credentials, and
`operator_router` for ledger, audit and reconciliation endpoints.
Provisioning errors propagate to the handlers in
tenancy.presentation.errors, which render the stable error payload.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from infrastructure.settings import ProvisioningSettings, get_provisioning_settings
from tenancy.application.services import (
    AvailabilityService,
    CredentialService,
    ProvisioningQueryService,
    ProvisioningService,
    ReconciliationService,
)
from tenancy.application.validation import (
    build_credential_command,
    build_provision_command,
)
from tenancy.dependencies import (
    get_availability_service,
    get_credential_service,
    get_provisioning_query_service,
    get_provisioning_service,
    get_reconciliation_service,
    get_request_id,
    get_requester_id,
)
from tenancy.domain.exceptions import (
    IdentityProviderUnavailableFailure,
    ValidationFailedError,
)
from tenancy.domain.value_objects import IdempotencyKey
from tenancy.ports.exceptions import IdentityProviderUnavailableError
from tenancy.presentation.errors import REQUEST_ID_HEADER
from tenancy.presentation.models import (
    AuditEntryResponse,
    EmailAvailabilityResponse,
    ProvisioningRequestResponse,
    ProvisionTenantRequest,
    ProvisionTenantResponse,
    ReconciliationReportResponse,
    SlugAvailabilityResponse,
    UpdateOwnerCredentialsRequest,
    UpdateOwnerCredentialsResponse,
)

router = APIRouter(prefix="/tenants", tags=["tenants"])
operator_router = APIRouter(prefix="/provisioning", tags=["provisioning"])


@router.post(
    "/provision",
    status_code=status.HTTP_201_CREATED,
    response_model_exclude_none=True,
)
async def provision_tenant(
    request: ProvisionTenantRequest,
    response: Response,
    requester_id: Annotated[str, Depends(get_requester_id)],
    request_id: Annotated[str, Depends(get_request_id)],
    service: Annotated[ProvisioningService, Depends(get_provisioning_service)],
    settings: Annotated[ProvisioningSettings, Depends(get_provisioning_settings)],
) -> ProvisionTenantResponse:
    """Create a tenant together with its owner identity.

    Retrying with the same idempotencyKey and body returns the first
    outcome; the requestId in the body is the one of the attempt that did
    the work.

    Args:
        request: Tenant and owner details plus the idempotency key
        response: Outgoing response (carries X-Request-ID)
        requester_id: Administrator making the call
        request_id: Correlation id of this call
        service: Provisioning service
        settings: Provisioning business rules

    Returns:
        ProvisionTenantResponse with tenantId, ownerId, slug and requestId

    Raises:
        ProvisioningError: Rendered by the registered exception handler
    """
    command = build_provision_command(
        idempotency_key=request.idempotency_key,
        tenant_name=request.tenant.name,
        slug=request.tenant.slug,
        owner_email=request.owner.email,
        settings=settings,
        timezone=request.tenant.timezone,
        currency=request.tenant.currency,
        owner_name=request.owner.name,
    )
    result = await service.provision(
        command, requester_id=requester_id, request_id=request_id
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return ProvisionTenantResponse(
        tenant_id=result.tenant_id.value,
        owner_id=result.owner_id.value,
        slug=result.slug,
        request_id=result.request_id,
    )


@router.patch(
    "/{tenant_id}/owner/credentials",
    response_model_exclude_none=True,
)
async def update_owner_credentials(
    tenant_id: str,
    request: UpdateOwnerCredentialsRequest,
    response: Response,
    requester_id: Annotated[str, Depends(get_requester_id)],
    request_id: Annotated[str, Depends(get_request_id)],
    service: Annotated[CredentialService, Depends(get_credential_service)],
    settings: Annotated[ProvisioningSettings, Depends(get_provisioning_settings)],
) -> UpdateOwnerCredentialsResponse:
    """Change the email and/or password of a tenant's owner.

    Administrator identities are never modified through this endpoint.

    Args:
        tenant_id: Tenant ID (ULID format)
        request: New email, new password, or generatePassword

    Returns:
        UpdateOwnerCredentialsResponse, with generatedPassword when requested

    Raises:
        ProvisioningError: Rendered by the registered exception handler
    """
    command = build_credential_command(
        tenant_id=tenant_id,
        settings=settings,
        new_email=request.new_email,
        new_password=request.new_password,
        generate_password=request.generate_password,
    )
    result = await service.update_owner_credentials(
        command, requester_id=requester_id, request_id=request_id
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return UpdateOwnerCredentialsResponse(
        updated=True,
        owner_created=result.owner_created,
        request_id=result.request_id,
        generated_password=result.generated_password,
    )


@router.get("/availability/slug", response_model_exclude_none=True)
async def check_slug_availability(
    slug: Annotated[str, Query(description="Proposed slug")],
    requester_id: Annotated[str, Depends(get_requester_id)],
    service: Annotated[AvailabilityService, Depends(get_availability_service)],
) -> SlugAvailabilityResponse:
    """Advisory slug check; provisioning re-checks atomically."""
    result = await service.check_slug(slug)
    return SlugAvailabilityResponse.from_result(result)


@router.get("/availability/email", response_model_exclude_none=True)
async def check_email_availability(
    email: Annotated[str, Query(description="Proposed owner email")],
    requester_id: Annotated[str, Depends(get_requester_id)],
    service: Annotated[AvailabilityService, Depends(get_availability_service)],
) -> EmailAvailabilityResponse:
    """Advisory email check across owners, administrators and the identity
    provider.

    Raises:
        IdentityProviderUnavailableFailure: If the identity provider
            cannot be queried
    """
    try:
        result = await service.check_email(email)
    except IdentityProviderUnavailableError as e:
        raise IdentityProviderUnavailableFailure(
            "Identity provider is unavailable; availability is unknown"
        ) from e
    return EmailAvailabilityResponse.from_result(result)


@operator_router.get("/requests/{idempotency_key}")
async def get_provisioning_request(
    idempotency_key: str,
    requester_id: Annotated[str, Depends(get_requester_id)],
    service: Annotated[
        ProvisioningQueryService, Depends(get_provisioning_query_service)
    ],
) -> ProvisioningRequestResponse:
    """Get the ledger record for an idempotency key.

    Raises:
        HTTPException: 404 if no request used this key
    """
    try:
        key = IdempotencyKey.from_string(idempotency_key)
    except ValueError as e:
        raise ValidationFailedError("idempotencyKey must be a UUID") from e

    record = await service.get_request(key, requester_id=requester_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No provisioning request for key {key.value}",
        )
    return ProvisioningRequestResponse.from_domain(record)


@operator_router.get("/requests")
async def list_provisioning_requests(
    requester_id: Annotated[str, Depends(get_requester_id)],
    service: Annotated[
        ProvisioningQueryService, Depends(get_provisioning_query_service)
    ],
    compensation_incomplete: Annotated[bool, Query()] = True,
) -> list[ProvisioningRequestResponse]:
    """List requests whose compensation left orphaned resources behind."""
    if not compensation_incomplete:
        raise ValidationFailedError(
            "Only compensation_incomplete=true listings are supported"
        )
    records = await service.list_compensation_incomplete(requester_id=requester_id)
    return [ProvisioningRequestResponse.from_domain(r) for r in records]


@operator_router.get("/audit/{correlation_id}")
async def list_audit_entries(
    correlation_id: str,
    requester_id: Annotated[str, Depends(get_requester_id)],
    service: Annotated[
        ProvisioningQueryService, Depends(get_provisioning_query_service)
    ],
) -> list[AuditEntryResponse]:
    """List audit entries recorded under a correlation id, oldest first."""
    entries = await service.list_audit_entries(
        correlation_id, requester_id=requester_id
    )
    return [AuditEntryResponse.from_domain(e) for e in entries]


@operator_router.post("/reconcile")
async def reconcile_stale_requests(
    requester_id: Annotated[str, Depends(get_requester_id)],
    request_id: Annotated[str, Depends(get_request_id)],
    service: Annotated[ReconciliationService, Depends(get_reconciliation_service)],
) -> ReconciliationReportResponse:
    """Resume or roll back provisioning requests that stopped mid-saga."""
    report = await service.reconcile_stale(
        requester_id=requester_id, request_id=request_id
    )
    return ReconciliationReportResponse.from_report(report)
