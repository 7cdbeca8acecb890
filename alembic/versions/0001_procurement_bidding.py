"""procurement bidding tables

Revision ID: 0001_procurement_bidding
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001_procurement_bidding'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id():
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _selection_fk():
    return sa.Column(
        "selection_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("selections.id", ondelete="CASCADE"),
        nullable=False,
    )


def _created_at():
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade():
    op.create_table(
        "purchase_processes",
        _id(),
        sa.Column("number", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("judgment_criterion", sa.String(length=32), nullable=False),
        _created_at(),
        sa.UniqueConstraint("number", name="uq_purchase_process_number"),
    )

    op.create_table(
        "selections",
        _id(),
        sa.Column(
            "process_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("purchase_processes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("status", sa.String(length=16), server_default=sa.text("'draft'"), nullable=False),
        sa.Column("ranking_version", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("ranked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_selections_process", "selections", ["process_id"])

    op.create_table(
        "selection_items",
        _id(),
        _selection_fk(),
        sa.Column("item_number", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=1024), nullable=False),
        sa.Column("quantity", sa.Numeric(20, 4), nullable=False),
        sa.Column("unit", sa.String(length=32), nullable=False),
        sa.Column("lot_number", sa.Integer(), nullable=True),
        sa.UniqueConstraint("selection_id", "item_number", name="uq_selection_item_number"),
        sa.CheckConstraint("item_number > 0", name="ck_selection_item_number_positive"),
        sa.CheckConstraint("quantity > 0", name="ck_selection_item_quantity_positive"),
    )

    op.create_table(
        "bids",
        _id(),
        _selection_fk(),
        sa.Column("item_number", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.String(length=128), nullable=False),
        sa.Column("value", sa.Numeric(20, 4), nullable=False),
        sa.Column("bid_type", sa.String(length=16), server_default=sa.text("'normal'"), nullable=False),
        sa.Column("is_winner", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "placed_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint("value > 0", name="ck_bids_value_positive"),
    )
    op.create_index("ix_bids_selection_item", "bids", ["selection_id", "item_number"])
    op.create_index("ix_bids_selection_supplier", "bids", ["selection_id", "supplier_id"])

    op.create_table(
        "disqualifications",
        _id(),
        _selection_fk(),
        sa.Column("supplier_id", sa.String(length=128), nullable=False),
        sa.Column(
            "affected_item_numbers",
            postgresql.JSONB,
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        _created_at(),
        sa.Column("reverted", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("revert_reason", sa.Text(), nullable=True),
        sa.Column("reverted_by", sa.String(length=128), nullable=True),
        sa.Column("reverted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_disqualifications_active", "disqualifications", ["selection_id", "reverted"]
    )

    op.create_table(
        "item_bidding_controls",
        _id(),
        _selection_fk(),
        sa.Column("item_number", sa.Integer(), nullable=False),
        sa.Column("is_open", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("closing_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("seconds_to_close", sa.Integer(), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("in_negotiation", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("negotiation_supplier_id", sa.String(length=128), nullable=True),
        sa.Column("negotiation_concluded", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("skip_negotiation", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.UniqueConstraint("selection_id", "item_number", name="uq_item_bidding_control"),
    )

    op.create_table(
        "audit_logs",
        _id(),
        sa.Column("selection_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_id", sa.String(length=128), nullable=False),
        sa.Column("action", sa.String(length=96), nullable=False),
        sa.Column("request_id", sa.String(length=128), nullable=True),
        sa.Column("payload_hash", sa.String(length=128), nullable=False),
        sa.Column(
            "details_json",
            postgresql.JSONB,
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        _created_at(),
    )
    op.create_index("ix_audit_selection", "audit_logs", ["selection_id"])
    op.create_index("ix_audit_action", "audit_logs", ["action"])
    op.create_index("ix_audit_created_at", "audit_logs", ["created_at"])


def downgrade():
    op.drop_index("ix_audit_created_at", table_name="audit_logs")
    op.drop_index("ix_audit_action", table_name="audit_logs")
    op.drop_index("ix_audit_selection", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("item_bidding_controls")
    op.drop_index("ix_disqualifications_active", table_name="disqualifications")
    op.drop_table("disqualifications")
    op.drop_index("ix_bids_selection_supplier", table_name="bids")
    op.drop_index("ix_bids_selection_item", table_name="bids")
    op.drop_table("bids")
    op.drop_table("selection_items")
    op.drop_index("ix_selections_process", table_name="selections")
    op.drop_table("selections")
    op.drop_table("purchase_processes")
