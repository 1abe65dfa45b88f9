"""Pydantic models for tenancy API requests and responses.

The wire format is camelCase; fields are declared in snake_case and
aliased. Request fields are kept loosely typed so that the application
layer's validation reports them with the stable VALIDATION_FAILED code.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tenancy.application.value_objects import (
    EmailAvailability,
    ReconciliationReport,
    SlugAvailability,
)
from tenancy.domain.aggregates import ProvisioningRequest
from tenancy.domain.audit import AuditEntry


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TenantInput(_CamelModel):
    """Tenant part of a provisioning request."""

    name: str = Field(..., description="Display name of the tenant")
    slug: str = Field(..., description="Requested URL-safe identifier")
    timezone: str | None = Field(
        default=None, description="IANA time zone (defaults to UTC)"
    )
    currency: str | None = Field(
        default=None, description="ISO 4217 currency code (defaults to USD)"
    )


class OwnerInput(_CamelModel):
    """Owner part of a provisioning request."""

    email: str = Field(..., description="Email of the tenant owner")
    name: str | None = Field(default=None, description="Owner display name")


class ProvisionTenantRequest(_CamelModel):
    """Request model for provisioning a tenant with its owner."""

    idempotency_key: str = Field(
        ..., description="Client-generated UUID identifying this request"
    )
    tenant: TenantInput
    owner: OwnerInput


class ProvisionTenantResponse(_CamelModel):
    """Response model for a successful (or replayed) provisioning."""

    tenant_id: str = Field(..., description="Tenant ID (ULID format)")
    owner_id: str = Field(..., description="Owner identity ID")
    slug: str = Field(..., description="Assigned slug")
    request_id: str = Field(
        ..., description="Correlation id of the attempt that provisioned the tenant"
    )


class UpdateOwnerCredentialsRequest(_CamelModel):
    """Request model for changing a tenant owner's credentials."""

    new_email: str | None = Field(default=None, description="New owner email")
    new_password: str | None = Field(default=None, description="New owner password")
    generate_password: bool = Field(
        default=False, description="Generate a random password and return it once"
    )


class UpdateOwnerCredentialsResponse(_CamelModel):
    """Response model for a credential change."""

    updated: bool = True
    owner_created: bool = False
    request_id: str
    generated_password: str | None = Field(
        default=None, description="Only present when generatePassword was set"
    )


class SlugAvailabilityResponse(_CamelModel):
    """Advisory slug check result."""

    slug: str
    available: bool
    reason: str | None = None
    suggestion: str | None = None

    @classmethod
    def from_result(cls, result: SlugAvailability) -> SlugAvailabilityResponse:
        return cls(
            slug=result.slug,
            available=result.available,
            reason=result.reason,
            suggestion=result.suggestion,
        )


class EmailAvailabilityResponse(_CamelModel):
    """Advisory email check result."""

    email: str
    available: bool
    reason: str | None = None
    conflicting_source: str | None = None

    @classmethod
    def from_result(cls, result: EmailAvailability) -> EmailAvailabilityResponse:
        return cls(
            email=result.email,
            available=result.available,
            reason=result.reason,
            conflicting_source=(
                result.conflicting_source.value
                if result.conflicting_source is not None
                else None
            ),
        )


class ProvisioningRequestResponse(_CamelModel):
    """Response model for an idempotency ledger record."""

    id: str
    idempotency_key: str
    request_id: str
    requester_id: str
    tenant_slug: str
    owner_email: str
    status: str
    tenant_id: str | None = None
    owner_id: str | None = None
    compensation_incomplete: bool
    orphaned_identity_id: str | None = None
    orphaned_tenant_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    response: dict[str, Any] | None = None
    started_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_domain(cls, record: ProvisioningRequest) -> ProvisioningRequestResponse:
        """Convert a ledger record to its API representation.

        Args:
            record: ProvisioningRequest aggregate

        Returns:
            ProvisioningRequestResponse
        """
        return cls(
            id=record.id.value,
            idempotency_key=record.idempotency_key.value,
            request_id=record.request_id,
            requester_id=record.requester_id,
            tenant_slug=record.tenant_slug,
            owner_email=record.owner_email,
            status=record.status.value,
            tenant_id=record.tenant_id.value if record.tenant_id else None,
            owner_id=record.owner_id.value if record.owner_id else None,
            compensation_incomplete=record.compensation_incomplete,
            orphaned_identity_id=record.orphaned_identity_id,
            orphaned_tenant_id=record.orphaned_tenant_id,
            error_code=record.error_code,
            error_message=record.error_message,
            response=record.response_payload,
            started_at=record.started_at,
            updated_at=record.updated_at,
            completed_at=record.completed_at,
        )


class AuditEntryResponse(_CamelModel):
    """Response model for one audit log entry."""

    id: str
    correlation_id: str
    operation: str
    stage: str
    outcome: str
    idempotency_key: str | None = None
    actor_id: str | None = None
    tenant_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    recorded_at: datetime

    @classmethod
    def from_domain(cls, entry: AuditEntry) -> AuditEntryResponse:
        return cls(
            id=entry.id,
            correlation_id=entry.correlation_id,
            operation=entry.operation.value,
            stage=entry.stage,
            outcome=entry.outcome,
            idempotency_key=entry.idempotency_key,
            actor_id=entry.actor_id,
            tenant_id=entry.tenant_id,
            error_code=entry.error_code,
            error_message=entry.error_message,
            duration_ms=entry.duration_ms,
            details=entry.details,
            recorded_at=entry.recorded_at,
        )


class ReconciliationReportResponse(_CamelModel):
    """Summary of a reconciliation sweep."""

    examined: int
    resumed: list[str]
    rolled_back: list[str]
    compensation_incomplete: list[str]

    @classmethod
    def from_report(cls, report: ReconciliationReport) -> ReconciliationReportResponse:
        return cls(
            examined=report.examined,
            resumed=report.resumed,
            rolled_back=report.rolled_back,
            compensation_incomplete=report.compensation_incomplete,
        )
