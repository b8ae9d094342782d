"""Create mailtrack tables

Revision ID: 001
Revises: None
Create Date: 2024-05-01 00:00:00.000000+00:00

What:  Creates users, departments, couriers, incoming_letters,
       outgoing_letters and notifications.
How:   Tables are created in foreign-key order and dropped in reverse.

Rollback: downgrade() drops every table (destructive, all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.String(32),
            nullable=False,
            comment="super_admin, rd_department or other_department",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "departments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("head", sa.String(255), nullable=False),
        sa.Column("contact", sa.String(255), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, comment="active or inactive"),
        sa.Column("user_id", sa.Uuid(), nullable=False, comment="The department's login account"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_departments"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", name="uq_departments_user_id"),
    )
    op.create_index("ix_departments_code", "departments", ["code"], unique=True)

    op.create_table(
        "couriers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("service_name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("contact_person", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_couriers"),
    )
    op.create_index("ix_couriers_code", "couriers", ["code"], unique=True)

    op.create_table(
        "incoming_letters",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("qr_code", sa.String(255), nullable=False),
        sa.Column("sender", sa.String(255), nullable=False, comment="Free-text sender (`from` on the wire)"),
        sa.Column("to_department_id", sa.Uuid(), nullable=False),
        sa.Column("priority", sa.String(16), nullable=False),
        sa.Column("subject", sa.String(500), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("filing", sa.String(255), nullable=True),
        sa.Column(
            "status",
            sa.String(32),
            nullable=False,
            comment="RECEIVED, TRANSFERRED, COLLECTED or ARCHIVED",
        ),
        sa.Column("image", sa.String(255), nullable=True, comment="Path relative to the storage root"),
        sa.Column("received_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("collected_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_incoming_letters"),
        sa.ForeignKeyConstraint(["to_department_id"], ["departments.id"]),
    )
    op.create_index("ix_incoming_letters_qr_code", "incoming_letters", ["qr_code"])
    op.create_index("ix_incoming_letters_to_department_id", "incoming_letters", ["to_department_id"])
    op.create_index("idx_incoming_created_at", "incoming_letters", [sa.text("created_at DESC")])

    op.create_table(
        "outgoing_letters",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("qr_code", sa.String(255), nullable=False),
        sa.Column("from_department_id", sa.Uuid(), nullable=False),
        sa.Column("recipient", sa.String(255), nullable=False, comment="Free-text recipient (`to` on the wire)"),
        sa.Column("priority", sa.String(16), nullable=False),
        sa.Column("subject", sa.String(500), nullable=True),
        sa.Column(
            "status",
            sa.String(32),
            nullable=False,
            comment="PENDING_DISPATCH, DISPATCHED, DELIVERED or RETURNED",
        ),
        sa.Column("image", sa.String(255), nullable=True),
        sa.Column("courier_service_id", sa.Uuid(), nullable=True),
        sa.Column("dispatched_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_outgoing_letters"),
        sa.ForeignKeyConstraint(["from_department_id"], ["departments.id"]),
        sa.ForeignKeyConstraint(["courier_service_id"], ["couriers.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_outgoing_letters_qr_code", "outgoing_letters", ["qr_code"], unique=True)
    op.create_index("ix_outgoing_letters_from_department_id", "outgoing_letters", ["from_department_id"])
    op.create_index("idx_outgoing_created_at", "outgoing_letters", [sa.text("created_at DESC")])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("incoming_id", sa.Uuid(), nullable=True),
        sa.Column("outgoing_id", sa.Uuid(), nullable=True),
        sa.Column("department_id", sa.Uuid(), nullable=True),
        sa.Column("user_id", sa.Uuid(), nullable=True, comment="Recipient; NULL for broadcasts"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
        sa.ForeignKeyConstraint(["incoming_id"], ["incoming_letters.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["outgoing_id"], ["outgoing_letters.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "incoming_id IS NULL OR outgoing_id IS NULL",
            name="ck_notifications_single_letter",
        ),
    )
    op.create_index("idx_notifications_user_created", "notifications", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_notifications_user_created", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("idx_outgoing_created_at", table_name="outgoing_letters")
    op.drop_index("ix_outgoing_letters_from_department_id", table_name="outgoing_letters")
    op.drop_index("ix_outgoing_letters_qr_code", table_name="outgoing_letters")
    op.drop_table("outgoing_letters")

    op.drop_index("idx_incoming_created_at", table_name="incoming_letters")
    op.drop_index("ix_incoming_letters_to_department_id", table_name="incoming_letters")
    op.drop_index("ix_incoming_letters_qr_code", table_name="incoming_letters")
    op.drop_table("incoming_letters")

    op.drop_index("ix_couriers_code", table_name="couriers")
    op.drop_table("couriers")

    op.drop_index("ix_departments_code", table_name="departments")
    op.drop_table("departments")

    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
