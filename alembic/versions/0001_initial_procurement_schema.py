"""initial procurement schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=128), nullable=False, unique=True),
        sa.Column("email", sa.String(length=256), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=256), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False, server_default=sa.text("'requester'")),
        sa.Column("department", sa.String(length=128), nullable=True),
        sa.Column("contact_number", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "user_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(length=128), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=256), nullable=True),
        sa.Column("is_valid", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_user_sessions_user_id", "user_sessions", ["user_id"])

    op.create_table(
        "password_resets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(length=128), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_password_resets_user_id", "password_resets", ["user_id"])

    op.create_table(
        "requisitions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("aac", sa.String(length=1), nullable=True),
        sa.Column("material_group", sa.String(length=128), nullable=True),
        sa.Column("exchange_rate", sa.Numeric(18, 6), nullable=True),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default=sa.text("'pending_approval_1'")
        ),
        sa.Column("approver_one_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_one_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approver_two_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_two_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "approver_two_id IS NULL OR approver_one_id IS NULL OR approver_two_id <> approver_one_id",
            name="ck_requisitions_distinct_approvers",
        ),
    )
    op.create_index("ix_requisitions_user_id", "requisitions", ["user_id"])
    op.create_index("ix_requisitions_status", "requisitions", ["status"])
    op.create_index("ix_requisitions_user_created", "requisitions", ["user_id", "created_at"])

    op.create_table(
        "requisition_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "requisition_id",
            sa.Integer(),
            sa.ForeignKey("requisitions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("unit", sa.String(length=32), nullable=False),
        sa.Column("estimated_unit_price", sa.Numeric(18, 2), nullable=True),
        sa.Column("freight_cost", sa.Numeric(18, 2), nullable=True),
        sa.Column("insurance_cost", sa.Numeric(18, 2), nullable=True),
        sa.Column("installation_cost", sa.Numeric(18, 2), nullable=True),
        sa.Column("value", sa.Numeric(18, 2), nullable=True),
        sa.Column("amr_id", sa.Integer(), nullable=True),
        sa.CheckConstraint("quantity > 0", name="ck_requisition_items_quantity_positive"),
    )
    op.create_index("ix_requisition_items_requisition_id", "requisition_items", ["requisition_id"])

    op.create_table(
        "tenders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "requisition_id",
            sa.Integer(),
            sa.ForeignKey("requisitions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.String(length=256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=64), nullable=True),
        sa.Column("budget", sa.Numeric(18, 2), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("published_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closing_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bid_opening_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("evaluation_method", sa.String(length=64), nullable=True),
        sa.Column(
            "created_by_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_tenders_requisition_id", "tenders", ["requisition_id"])
    op.create_index("ix_tenders_status_closing", "tenders", ["status", "closing_date"])

    op.create_table(
        "bids",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tender_id", sa.Integer(), sa.ForeignKey("tenders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("bid_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("technical_proposal_url", sa.String(length=512), nullable=True),
        sa.Column("financial_proposal_url", sa.String(length=512), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'submitted'")),
        sa.Column("submission_date", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("bid_amount > 0", name="ck_bids_amount_positive"),
    )
    op.create_index("ix_bids_tender_id", "bids", ["tender_id"])
    op.create_index("ix_bids_supplier_id", "bids", ["supplier_id"])
    op.create_index("ix_bids_tender_submitted", "bids", ["tender_id", "submission_date"])
    op.create_index("ix_bids_supplier_submitted", "bids", ["supplier_id", "submission_date"])

    op.create_table(
        "bid_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("bid_id", sa.Integer(), sa.ForeignKey("bids.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "requisition_item_id",
            sa.Integer(),
            sa.ForeignKey("requisition_items.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("unit", sa.String(length=32), nullable=False),
        sa.Column("offered_unit_price", sa.Numeric(18, 2), nullable=False),
        sa.Column("specification_text", sa.Text(), nullable=True),
        sa.Column("specification_sheet_url", sa.String(length=512), nullable=True),
        sa.Column("item_image_url", sa.String(length=512), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_bid_items_bid_id", "bid_items", ["bid_id"])
    op.create_index("ix_bid_items_requisition_item_id", "bid_items", ["requisition_item_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("actor_role", sa.String(length=32), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("request_id", sa.String(length=128), nullable=True),
        sa.Column("details_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_entity", "audit_logs", ["entity_type", "entity_id"])
    op.create_index("ix_audit_created_at", "audit_logs", ["created_at"])


def downgrade():
    op.drop_table("audit_logs")
    op.drop_table("bid_items")
    op.drop_table("bids")
    op.drop_table("tenders")
    op.drop_table("requisition_items")
    op.drop_table("requisitions")
    op.drop_table("password_resets")
    op.drop_table("user_sessions")
    op.drop_table("users")
