"""
============================================================
TARJETA CRC (Class / Responsibilities / Collaborators)
============================================================
Class: 002_add_audit_event_metadata (Alembic Migration)

Responsibilities:
  - Agregar el enum audit_outcome y las columnas de metadatos
    (changes, event_type, outcome, target_*, session/auth, error_*).
  - Crear la tabla user_org_assignments usada por el scope LDD.
  - Índices para filtros frecuentes.

Collaborators:
  - infrastructure.repositories.postgres.audit_event
  - infrastructure.repositories.postgres.org_assignment

Policy:
  - Migración aditiva: sólo columnas nullable.
============================================================
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "002_add_audit_event_metadata"
down_revision: Union[str, None] = "001_create_audit_events"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


outcome_enum = postgresql.ENUM(
    "success", "failure", "denied", "error", name="audit_outcome", create_type=False
)


def upgrade() -> None:
    outcome_enum.create(op.get_bind(), checkfirst=True)

    op.add_column("audit_events", sa.Column("changes", postgresql.JSONB, nullable=True))
    op.add_column("audit_events", sa.Column("event_type", sa.String(120), nullable=True))
    op.add_column("audit_events", sa.Column("outcome", outcome_enum, nullable=True))
    op.add_column("audit_events", sa.Column("target_kind", sa.String(100), nullable=True))
    op.add_column("audit_events", sa.Column("target_id", sa.String(255), nullable=True))
    op.add_column("audit_events", sa.Column("target_name", sa.String(255), nullable=True))
    op.add_column("audit_events", sa.Column("session_id", sa.String(255), nullable=True))
    op.add_column("audit_events", sa.Column("auth_method", sa.String(50), nullable=True))
    op.add_column("audit_events", sa.Column("mfa_method", sa.String(50), nullable=True))
    op.add_column("audit_events", sa.Column("error_code", sa.String(120), nullable=True))
    op.add_column("audit_events", sa.Column("error_message", sa.Text(), nullable=True))

    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"])
    op.create_index("ix_audit_events_outcome", "audit_events", ["outcome"])
    op.create_index(
        "ix_audit_events_target", "audit_events", ["target_kind", "target_id"]
    )
    op.create_index("ix_audit_events_session_id", "audit_events", ["session_id"])

    # R: asignaciones org (división / departamento / ubicación) por usuario.
    op.create_table(
        "user_org_assignments",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_key", sa.String(255), nullable=False),
        sa.Column("division_id", sa.String(255), nullable=True),
        sa.Column("department_id", sa.String(255), nullable=True),
        sa.Column("location_id", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_user_org_assignments"),
    )
    op.create_index(
        "ix_user_org_assignments_user_key", "user_org_assignments", ["user_key"]
    )


def downgrade() -> None:
    op.drop_index("ix_user_org_assignments_user_key", table_name="user_org_assignments")
    op.drop_table("user_org_assignments")

    op.drop_index("ix_audit_events_session_id", table_name="audit_events")
    op.drop_index("ix_audit_events_target", table_name="audit_events")
    op.drop_index("ix_audit_events_outcome", table_name="audit_events")
    op.drop_index("ix_audit_events_event_type", table_name="audit_events")

    for column in (
        "error_message",
        "error_code",
        "mfa_method",
        "auth_method",
        "session_id",
        "target_name",
        "target_id",
        "target_kind",
        "outcome",
        "event_type",
        "changes",
    ):
        op.drop_column("audit_events", column)

    outcome_enum.drop(op.get_bind(), checkfirst=True)
