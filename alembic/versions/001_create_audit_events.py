"""
============================================================
TARJETA CRC (Class / Responsibilities / Collaborators)
============================================================
Class: 001_create_audit_events (Alembic Migration)

Responsibilities:
  - Crear el enum audit_actor_type y la tabla audit_events (append-only).
  - Crear índices para los accesos reales: entidad, created_at DESC,
    actor, correlación, pack.

Collaborators:
  - PostgreSQL 13+ (gen_random_uuid)
  - infrastructure.repositories.postgres.audit_event (usa este esquema)

Policy:
  - Migración BASELINE. Evoluciones con migraciones aditivas (002+).
============================================================
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_create_audit_events"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


actor_type_enum = postgresql.ENUM(
    "user", "system", "api", name="audit_actor_type", create_type=False
)


def upgrade() -> None:
    actor_type_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "audit_events",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        # Qué cambió
        sa.Column("entity_kind", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.String(255), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("details", postgresql.JSONB, nullable=True),
        # Quién
        sa.Column("actor_id", sa.String(255), nullable=True),
        sa.Column("actor_name", sa.String(255), nullable=True),
        sa.Column(
            "actor_type",
            actor_type_enum,
            server_default=sa.text("'user'"),
            nullable=False,
        ),
        # Correlación / debug
        sa.Column("correlation_id", sa.String(255), nullable=True),
        sa.Column("pack_name", sa.String(100), nullable=True),
        sa.Column("method", sa.String(16), nullable=True),
        sa.Column("path", sa.Text(), nullable=True),
        # Metadatos opcionales del request
        sa.Column("ip_address", sa.String(100), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_audit_events"),
    )

    op.create_index(
        "ix_audit_events_entity", "audit_events", ["entity_kind", "entity_id"]
    )
    op.execute(
        "CREATE INDEX ix_audit_events_created_at ON audit_events (created_at DESC)"
    )
    op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"])
    op.create_index(
        "ix_audit_events_correlation_id", "audit_events", ["correlation_id"]
    )
    op.create_index("ix_audit_events_pack_name", "audit_events", ["pack_name"])


def downgrade() -> None:
    op.drop_table("audit_events")
    actor_type_enum.drop(op.get_bind(), checkfirst=True)
