"""Initial WIP ledger schema

Revision ID: 20260301_wip_ledger
Revises:
Create Date: 2026-03-01
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20260301_wip_ledger"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False, server_default=True):
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("(CURRENT_TIMESTAMP)") if server_default else None,
        nullable=nullable,
    )


def upgrade():
    # Catalog
    op.create_table(
        "parts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(64), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_parts_code"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "sections",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(64), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "operations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(64), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "part_routes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=False),
        sa.Column("op_number", sa.Integer(), nullable=False),
        sa.Column("operation_id", sa.Integer(), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("norm_hours", sa.Numeric(18, 4), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["part_id"], ["parts.id"]),
        sa.ForeignKeyConstraint(["operation_id"], ["operations.id"]),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("part_id", "op_number", name="uq_part_routes_part_op"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("part_routes", schema=None) as batch_op:
        batch_op.create_index("ix_part_routes_part_id", ["part_id"], unique=False)
        batch_op.create_index("ix_part_routes_section_id", ["section_id"], unique=False)
        batch_op.create_index("ix_part_routes_part_op", ["part_id", "op_number"], unique=False)

    # Balances and labels
    op.create_table(
        "wip_balances",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("op_number", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False, server_default=sa.text("0")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("quantity >= 0", name="ck_wip_balances_quantity_non_negative"),
        sa.ForeignKeyConstraint(["part_id"], ["parts.id"]),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("part_id", "section_id", "op_number", name="uq_wip_balances_location"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wip_balances", schema=None) as batch_op:
        batch_op.create_index("ix_wip_balances_part_id", ["part_id"], unique=False)
        batch_op.create_index("ix_wip_balances_section_id", ["section_id"], unique=False)
        batch_op.create_index("ix_wip_balances_part_op", ["part_id", "op_number"], unique=False)

    op.create_table(
        "wip_labels",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=False),
        sa.Column("label_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("label_year", sa.Integer(), nullable=False),
        sa.Column("number", sa.String(16), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("remaining_quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("is_assigned", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "remaining_quantity >= 0 AND remaining_quantity <= quantity",
            name="ck_wip_labels_remaining_bounds",
        ),
        sa.ForeignKeyConstraint(["part_id"], ["parts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("label_year", "number", name="uq_wip_labels_year_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wip_labels", schema=None) as batch_op:
        batch_op.create_index("ix_wip_labels_part_id", ["part_id"], unique=False)
        batch_op.create_index("ix_wip_labels_label_year", ["label_year"], unique=False)

    # Receipts
    op.create_table(
        "wip_receipts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("op_number", sa.Integer(), nullable=False),
        sa.Column("receipt_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("label_id", sa.Integer(), nullable=True),
        sa.Column("comment", sa.String(512), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("user_id", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["part_id"], ["parts.id"]),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"]),
        sa.ForeignKeyConstraint(["label_id"], ["wip_labels.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wip_receipts", schema=None) as batch_op:
        batch_op.create_index("ix_wip_receipts_part_id", ["part_id"], unique=False)
        batch_op.create_index("ix_wip_receipts_label_id", ["label_id"], unique=False)
        batch_op.create_index("ix_wip_receipts_is_deleted", ["is_deleted"], unique=False)
        batch_op.create_index("ix_wip_receipts_location", ["part_id", "section_id", "op_number"], unique=False)

    op.create_table(
        "receipt_audits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("version_id", sa.String(32), nullable=False),
        sa.Column("receipt_id", sa.Integer(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("op_number", sa.Integer(), nullable=False),
        sa.Column("balance_id", sa.Integer(), nullable=True),
        sa.Column("receipt_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("comment", sa.String(512), nullable=True),
        sa.Column("previous_quantity", sa.Numeric(18, 3), nullable=True),
        sa.Column("new_quantity", sa.Numeric(18, 3), nullable=True),
        sa.Column("previous_balance", sa.Numeric(18, 3), nullable=False),
        sa.Column("new_balance", sa.Numeric(18, 3), nullable=False),
        sa.Column("previous_label_id", sa.Integer(), nullable=True),
        sa.Column("new_label_id", sa.Integer(), nullable=True),
        sa.Column("previous_label_assigned", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("new_label_assigned", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        _timestamp("created_at", server_default=False),
        sa.ForeignKeyConstraint(["receipt_id"], ["wip_receipts.id"]),
        sa.ForeignKeyConstraint(["balance_id"], ["wip_balances.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("version_id", name="uq_receipt_audits_version"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("receipt_audits", schema=None) as batch_op:
        batch_op.create_index("ix_receipt_audits_receipt_id", ["receipt_id"], unique=False)
        batch_op.create_index("ix_receipt_audits_balance_id", ["balance_id"], unique=False)
        batch_op.create_index("ix_receipt_audits_action", ["action"], unique=False)
        batch_op.create_index("ix_receipt_audits_receipt_created", ["receipt_id", "created_at"], unique=False)

    # Transfers
    op.create_table(
        "wip_transfers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=False),
        sa.Column("from_section_id", sa.Integer(), nullable=False),
        sa.Column("from_op_number", sa.Integer(), nullable=False),
        sa.Column("to_section_id", sa.Integer(), nullable=True),
        sa.Column("to_op_number", sa.Integer(), nullable=False),
        sa.Column("transfer_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("comment", sa.String(512), nullable=True),
        sa.Column("label_id", sa.Integer(), nullable=True),
        sa.Column("is_warehouse_transfer", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("user_id", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["part_id"], ["parts.id"]),
        sa.ForeignKeyConstraint(["from_section_id"], ["sections.id"]),
        sa.ForeignKeyConstraint(["to_section_id"], ["sections.id"]),
        sa.ForeignKeyConstraint(["label_id"], ["wip_labels.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wip_transfers", schema=None) as batch_op:
        batch_op.create_index("ix_wip_transfers_part_id", ["part_id"], unique=False)
        batch_op.create_index("ix_wip_transfers_label_id", ["label_id"], unique=False)
        batch_op.create_index("ix_wip_transfers_part_date", ["part_id", "transfer_date"], unique=False)

    op.create_table(
        "wip_transfer_operations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("transfer_id", sa.Integer(), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=True),
        sa.Column("op_number", sa.Integer(), nullable=False),
        sa.Column("operation_id", sa.Integer(), nullable=True),
        sa.Column("part_route_id", sa.Integer(), nullable=True),
        sa.Column("quantity_change", sa.Numeric(18, 3), nullable=False),
        sa.ForeignKeyConstraint(["transfer_id"], ["wip_transfers.id"]),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"]),
        sa.ForeignKeyConstraint(["operation_id"], ["operations.id"]),
        sa.ForeignKeyConstraint(["part_route_id"], ["part_routes.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wip_transfer_operations", schema=None) as batch_op:
        batch_op.create_index("ix_wip_transfer_operations_transfer_id", ["transfer_id"], unique=False)

    op.create_table(
        "wip_scraps",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("op_number", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("scrap_type", sa.String(32), nullable=False),
        sa.Column("comment", sa.String(512), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("transfer_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["part_id"], ["parts.id"]),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"]),
        sa.ForeignKeyConstraint(["transfer_id"], ["wip_transfers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wip_scraps", schema=None) as batch_op:
        batch_op.create_index("ix_wip_scraps_part_id", ["part_id"], unique=False)
        batch_op.create_index("ix_wip_scraps_transfer_id", ["transfer_id"], unique=False)
        batch_op.create_index("ix_wip_scraps_part_recorded", ["part_id", "recorded_at"], unique=False)

    op.create_table(
        "warehouse_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=False),
        sa.Column("transfer_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("comment", sa.String(512), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["part_id"], ["parts.id"]),
        sa.ForeignKeyConstraint(["transfer_id"], ["wip_transfers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("warehouse_items", schema=None) as batch_op:
        batch_op.create_index("ix_warehouse_items_part_id", ["part_id"], unique=False)
        batch_op.create_index("ix_warehouse_items_transfer_id", ["transfer_id"], unique=False)

    op.create_table(
        "transfer_audits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("transaction_id", sa.String(32), nullable=False),
        sa.Column("transfer_id", sa.Integer(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=False),
        sa.Column("from_section_id", sa.Integer(), nullable=False),
        sa.Column("from_op_number", sa.Integer(), nullable=False),
        sa.Column("to_section_id", sa.Integer(), nullable=True),
        sa.Column("to_op_number", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("comment", sa.String(512), nullable=True),
        sa.Column("transfer_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("from_balance_before", sa.Numeric(18, 3), nullable=False),
        sa.Column("from_balance_after", sa.Numeric(18, 3), nullable=False),
        sa.Column("to_balance_before", sa.Numeric(18, 3), nullable=False),
        sa.Column("to_balance_after", sa.Numeric(18, 3), nullable=False),
        sa.Column("is_warehouse_transfer", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("label_id", sa.Integer(), nullable=True),
        sa.Column("label_number", sa.String(16), nullable=True),
        sa.Column("label_quantity_before", sa.Numeric(18, 3), nullable=True),
        sa.Column("label_quantity_after", sa.Numeric(18, 3), nullable=True),
        sa.Column("scrap_quantity", sa.Numeric(18, 3), nullable=False, server_default=sa.text("0")),
        sa.Column("scrap_type", sa.String(32), nullable=True),
        sa.Column("scrap_comment", sa.String(512), nullable=True),
        sa.Column("is_reverted", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("reverted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        _timestamp("created_at", server_default=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_id", name="uq_transfer_audits_transaction"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("transfer_audits", schema=None) as batch_op:
        batch_op.create_index("ix_transfer_audits_transfer_id", ["transfer_id"], unique=False)
        batch_op.create_index("ix_transfer_audits_part_id", ["part_id"], unique=False)

    op.create_table(
        "transfer_audit_operations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("transfer_audit_id", sa.Integer(), nullable=False),
        sa.Column("balance_id", sa.Integer(), nullable=True),
        sa.Column("section_id", sa.Integer(), nullable=True),
        sa.Column("op_number", sa.Integer(), nullable=False),
        sa.Column("operation_id", sa.Integer(), nullable=True),
        sa.Column("part_route_id", sa.Integer(), nullable=True),
        sa.Column("balance_before", sa.Numeric(18, 3), nullable=False),
        sa.Column("balance_after", sa.Numeric(18, 3), nullable=False),
        sa.Column("quantity_change", sa.Numeric(18, 3), nullable=False),
        sa.Column("is_warehouse", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("balance_at_revert", sa.Numeric(18, 3), nullable=True),
        sa.ForeignKeyConstraint(["transfer_audit_id"], ["transfer_audits.id"]),
        sa.ForeignKeyConstraint(["balance_id"], ["wip_balances.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("transfer_audit_operations", schema=None) as batch_op:
        batch_op.create_index("ix_transfer_audit_operations_transfer_audit_id", ["transfer_audit_id"], unique=False)
        batch_op.create_index("ix_transfer_audit_operations_balance_id", ["balance_id"], unique=False)

    # Launches
    op.create_table(
        "wip_launches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("from_op_number", sa.Integer(), nullable=False),
        sa.Column("launch_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("sum_hours_to_finish", sa.Numeric(18, 4), nullable=False, server_default=sa.text("0")),
        sa.Column("comment", sa.String(512), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["part_id"], ["parts.id"]),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wip_launches", schema=None) as batch_op:
        batch_op.create_index("ix_wip_launches_part_id", ["part_id"], unique=False)
        batch_op.create_index("ix_wip_launches_part_date", ["part_id", "launch_date"], unique=False)

    op.create_table(
        "wip_launch_operations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("launch_id", sa.Integer(), nullable=False),
        sa.Column("op_number", sa.Integer(), nullable=False),
        sa.Column("operation_id", sa.Integer(), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("part_route_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("hours", sa.Numeric(18, 4), nullable=False),
        sa.Column("norm_hours", sa.Numeric(18, 4), nullable=False),
        sa.ForeignKeyConstraint(["launch_id"], ["wip_launches.id"]),
        sa.ForeignKeyConstraint(["operation_id"], ["operations.id"]),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"]),
        sa.ForeignKeyConstraint(["part_route_id"], ["part_routes.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wip_launch_operations", schema=None) as batch_op:
        batch_op.create_index("ix_wip_launch_operations_launch_id", ["launch_id"], unique=False)

    # Adjustments and cleanup
    op.create_table(
        "wip_balance_adjustments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("balance_id", sa.Integer(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("op_number", sa.Integer(), nullable=False),
        sa.Column("previous_quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("new_quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("delta", sa.Numeric(18, 3), nullable=False),
        sa.Column("comment", sa.String(600), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        _timestamp("created_at", server_default=False),
        sa.ForeignKeyConstraint(["balance_id"], ["wip_balances.id"]),
        sa.ForeignKeyConstraint(["part_id"], ["parts.id"]),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wip_balance_adjustments", schema=None) as batch_op:
        batch_op.create_index("ix_wip_balance_adjustments_balance_id", ["balance_id"], unique=False)
        batch_op.create_index("ix_wip_adjustments_balance_created", ["balance_id", "created_at"], unique=False)

    op.create_table(
        "wip_balance_cleanup_jobs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=True),
        sa.Column("section_id", sa.Integer(), nullable=True),
        sa.Column("op_number", sa.Integer(), nullable=True),
        sa.Column("min_quantity", sa.Numeric(18, 3), nullable=False, server_default=sa.text("0")),
        sa.Column("comment", sa.String(512), nullable=True),
        sa.Column("affected_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("affected_quantity", sa.Numeric(18, 3), nullable=False, server_default=sa.text("0")),
        sa.Column("skipped_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_executed", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        _timestamp("created_at", server_default=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["part_id"], ["parts.id"]),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wip_balance_cleanup_jobs", schema=None) as batch_op:
        batch_op.create_index("ix_wip_balance_cleanup_jobs_is_executed", ["is_executed"], unique=False)

    op.create_table(
        "wip_balance_cleanup_stage_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.Integer(), nullable=False),
        sa.Column("balance_id", sa.Integer(), nullable=False),
        sa.Column("previous_quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="STAGED"),
        sa.ForeignKeyConstraint(["job_id"], ["wip_balance_cleanup_jobs.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("job_id", "balance_id", name="uq_cleanup_stage_job_balance"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wip_balance_cleanup_stage_items", schema=None) as batch_op:
        batch_op.create_index("ix_wip_balance_cleanup_stage_items_job_id", ["job_id"], unique=False)
        batch_op.create_index("ix_wip_balance_cleanup_stage_items_balance_id", ["balance_id"], unique=False)


def downgrade():
    for table in (
        "wip_balance_cleanup_stage_items",
        "wip_balance_cleanup_jobs",
        "wip_balance_adjustments",
        "wip_launch_operations",
        "wip_launches",
        "transfer_audit_operations",
        "transfer_audits",
        "warehouse_items",
        "wip_scraps",
        "wip_transfer_operations",
        "wip_transfers",
        "receipt_audits",
        "wip_receipts",
        "wip_labels",
        "wip_balances",
        "part_routes",
        "operations",
        "sections",
        "parts",
    ):
        op.drop_table(table)
