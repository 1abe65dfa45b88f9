"""create provisioning tables

Revision ID: 3c7d1e2a9b40
Revises:
Create Date: 2026-10-18 09:00:00.000000

Creates administrators, tenants, tenant_owner_links, owners, the
provisioning_requests ledger and the append-only provisioning_audit_log.
Constraint names are matched by the repositories, keep them stable.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3c7d1e2a9b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "administrators",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_administrators"),
        sa.UniqueConstraint("email", name="uq_administrators_email"),
    )

    op.create_table(
        "tenants",
        sa.Column("id", sa.String(26), nullable=False),  # ULID
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(50), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_tenants"),
        sa.UniqueConstraint("slug", name="uq_tenants_slug"),
        sa.UniqueConstraint("owner_id", name="uq_tenants_owner_id"),
        # A tenant may only lack an owner while it is being provisioned
        sa.CheckConstraint(
            "owner_id IS NOT NULL OR status = 'provisioning'",
            name="ck_tenants_owner_required",
        ),
    )

    op.create_table(
        "tenant_owner_links",
        sa.Column("tenant_id", sa.String(26), nullable=False),
        sa.Column("owner_email", sa.String(320), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("provisioning_request_id", sa.String(26), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("tenant_id", name="pk_tenant_owner_links"),
        sa.ForeignKeyConstraint(
            ["tenant_id"],
            ["tenants.id"],
            name="fk_tenant_owner_links_tenant_id_tenants",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint(
            "owner_email", name="uq_tenant_owner_links_owner_email"
        ),
    )

    op.create_table(
        "owners",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("tenant_id", sa.String(26), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_owners"),
        sa.ForeignKeyConstraint(
            ["tenant_id"],
            ["tenants.id"],
            name="fk_owners_tenant_id_tenants",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("email", name="uq_owners_email"),
        sa.UniqueConstraint("tenant_id", name="uq_owners_tenant_id"),
    )

    op.create_table(
        "provisioning_requests",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("idempotency_key", sa.String(36), nullable=False),
        sa.Column("request_id", sa.String(64), nullable=False),
        sa.Column("requester_id", sa.String(255), nullable=False),
        sa.Column("tenant_slug", sa.String(50), nullable=False),
        sa.Column("owner_email", sa.String(320), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("tenant_id", sa.String(26), nullable=True),
        sa.Column("owner_id", sa.String(255), nullable=True),
        sa.Column(
            "identity_created",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column(
            "compensation_incomplete",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("orphaned_identity_id", sa.String(255), nullable=True),
        sa.Column("orphaned_tenant_id", sa.String(26), nullable=True),
        sa.Column("error_code", sa.String(64), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("request_payload", postgresql.JSONB(), nullable=False),
        sa.Column("response_payload", postgresql.JSONB(), nullable=True),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_provisioning_requests"),
        sa.UniqueConstraint(
            "idempotency_key", name="uq_provisioning_requests_idempotency_key"
        ),
    )
    op.create_index(
        "ix_provisioning_requests_status", "provisioning_requests", ["status"]
    )
    op.create_index(
        "ix_provisioning_requests_compensation_incomplete",
        "provisioning_requests",
        ["compensation_incomplete"],
    )

    op.create_table(
        "provisioning_audit_log",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("correlation_id", sa.String(64), nullable=False),
        sa.Column("operation", sa.String(32), nullable=False),
        sa.Column("idempotency_key", sa.String(36), nullable=True),
        sa.Column("actor_id", sa.String(255), nullable=True),
        sa.Column("tenant_id", sa.String(26), nullable=True),
        sa.Column("stage", sa.String(64), nullable=False),
        sa.Column("outcome", sa.String(32), nullable=False),
        sa.Column("error_code", sa.String(64), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("details", postgresql.JSONB(), nullable=False),
        sa.Column(
            "recorded_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_provisioning_audit_log"),
    )
    op.create_index(
        "ix_provisioning_audit_log_correlation_id",
        "provisioning_audit_log",
        ["correlation_id"],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(
        "ix_provisioning_audit_log_correlation_id",
        table_name="provisioning_audit_log",
    )
    op.drop_table("provisioning_audit_log")
    op.drop_index(
        "ix_provisioning_requests_compensation_incomplete",
        table_name="provisioning_requests",
    )
    op.drop_index(
        "ix_provisioning_requests_status", table_name="provisioning_requests"
    )
    op.drop_table("provisioning_requests")
    op.drop_table("owners")
    op.drop_table("tenant_owner_links")
    op.drop_table("tenants")
    op.drop_table("administrators")
