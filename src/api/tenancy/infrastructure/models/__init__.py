"""SQLAlchemy ORM models for the tenancy bounded context.

These models map to database tables and are used by repository implementations.
Constraint names come from the shared naming convention and are matched by
the repositories when translating IntegrityError.
"""

from tenancy.infrastructure.models.administrator import AdministratorModel
from tenancy.infrastructure.models.audit_log import ProvisioningAuditLogModel
from tenancy.infrastructure.models.owner import OwnerModel
from tenancy.infrastructure.models.owner_link import TenantOwnerLinkModel
from tenancy.infrastructure.models.provisioning_request import (
    ProvisioningRequestModel,
)
from tenancy.infrastructure.models.tenant import TenantModel

__all__ = [
    "AdministratorModel",
    "OwnerModel",
    "ProvisioningAuditLogModel",
    "ProvisioningRequestModel",
    "TenantModel",
    "TenantOwnerLinkModel",
]
