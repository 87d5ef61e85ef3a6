"""create users, audit_events, agents and list_items tables

Revision ID: 3f1a2b4c5d6e
Revises:
Create Date: 2026-10-18 09:12:40.218311

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a2b4c5d6e'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the admin, audit, agent roster and distributed list tables."""
    # Check if tables already exist (idempotent)
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False, server_default=""),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_user_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
        )

    if "agents" not in existing_tables:
        op.create_table(
            "agents",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("mobile_number", sa.String(64), nullable=False),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_agents_name", "agents", ["name"])

    if "list_items" not in existing_tables:
        # agent_id intentionally has no FK: deleting an agent keeps its items.
        op.create_table(
            "list_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("first_name", sa.String(255), nullable=False),
            sa.Column("phone", sa.String(64), nullable=False),
            sa.Column("notes", sa.Text(), nullable=False, server_default=""),
            sa.Column("agent_id", sa.Integer(), nullable=False),
            sa.Column("original_file_name", sa.String(255), nullable=False),
            sa.Column("uploaded_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_list_items_agent_id", "list_items", ["agent_id"])
        op.create_index("idx_list_items_original_file_name", "list_items", ["original_file_name"])
        op.create_index("idx_list_items_uploaded_at", "list_items", ["uploaded_at"])


def downgrade() -> None:
    op.drop_index("idx_list_items_uploaded_at", table_name="list_items")
    op.drop_index("idx_list_items_original_file_name", table_name="list_items")
    op.drop_index("idx_list_items_agent_id", table_name="list_items")
    op.drop_table("list_items")
    op.drop_index("idx_agents_name", table_name="agents")
    op.drop_table("agents")
    op.drop_table("audit_events")
    op.drop_table("users")
