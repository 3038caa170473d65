"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for the project request service:
users, projects, project_requests, request_status_history,
payment_orders, payment_captures.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="client"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- projects (catalog) ---
    op.create_table(
        "projects",
        sa.Column("project_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("technologies", sa.JSON, nullable=False),
        sa.Column("category", sa.String(30), nullable=False, server_default="other"),
        sa.Column("price", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- project_requests ---
    op.create_table(
        "project_requests",
        sa.Column("request_id", sa.String(36), primary_key=True),
        sa.Column("client_type", sa.String(20), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("guest_name", sa.String(100), nullable=True),
        sa.Column("guest_email", sa.String(255), nullable=True),
        sa.Column("guest_phone", sa.String(30), nullable=True),
        sa.Column("project_kind", sa.String(20), nullable=False),
        sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.project_id"), nullable=True),
        sa.Column("custom_name", sa.String(200), nullable=True),
        sa.Column("custom_description", sa.Text, nullable=True),
        sa.Column("custom_technologies", sa.JSON, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_option", sa.String(20), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("estimated_price", sa.Integer, nullable=True),
        sa.Column("actual_price", sa.Integer, nullable=True),
        sa.Column("current_module", sa.String(200), nullable=True),
        sa.Column("admin_notes", sa.Text, nullable=True),
        sa.Column("github_link", sa.String(500), nullable=True),
        sa.Column("expected_completion", sa.Date, nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(client_type = 'registered' AND user_id IS NOT NULL AND guest_email IS NULL)"
            " OR (client_type = 'guest' AND user_id IS NULL AND guest_email IS NOT NULL)",
            name="ck_project_requests_requester_variant",
        ),
        sa.CheckConstraint(
            "(project_kind = 'catalog' AND project_id IS NOT NULL AND custom_name IS NULL)"
            " OR (project_kind = 'custom' AND project_id IS NULL AND custom_name IS NOT NULL)",
            name="ck_project_requests_project_variant",
        ),
        sa.CheckConstraint("estimated_price IS NULL OR estimated_price >= 0", name="ck_project_requests_estimated_price"),
        sa.CheckConstraint("actual_price IS NULL OR actual_price >= 0", name="ck_project_requests_actual_price"),
    )
    op.create_index("ix_project_requests_user_id", "project_requests", ["user_id"])
    op.create_index("ix_project_requests_created_at", "project_requests", ["created_at"])

    # --- request_status_history ---
    op.create_table(
        "request_status_history",
        sa.Column("seq", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("request_id", sa.String(36), sa.ForeignKey("project_requests.request_id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("updated_by", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_request_status_history_request_id", "request_status_history", ["request_id"])

    # --- payment_orders ---
    op.create_table(
        "payment_orders",
        sa.Column("order_id", sa.String(64), primary_key=True),
        sa.Column("request_id", sa.String(36), sa.ForeignKey("project_requests.request_id"), nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("purpose", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="created"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_payment_orders_request_id", "payment_orders", ["request_id"])

    # --- payment_captures ---
    op.create_table(
        "payment_captures",
        sa.Column("capture_id", sa.String(36), primary_key=True),
        sa.Column("payment_id", sa.String(64), nullable=False, unique=True),
        sa.Column("order_id", sa.String(64), sa.ForeignKey("payment_orders.order_id"), nullable=True),
        sa.Column("request_id", sa.String(36), sa.ForeignKey("project_requests.request_id"), nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_payment_captures_request_id", "payment_captures", ["request_id"])


def downgrade() -> None:
    op.drop_table("payment_captures")
    op.drop_table("payment_orders")
    op.drop_table("request_status_history")
    op.drop_table("project_requests")
    op.drop_table("projects")
    op.drop_table("users")
