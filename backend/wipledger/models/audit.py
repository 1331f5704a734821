from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import format_decimal, format_op_number


# Receipt audit actions
RECEIPT_ACTION_CREATED = "Created"
RECEIPT_ACTION_DELETED = "Deleted"
RECEIPT_ACTION_REVERTED = "Reverted"


class ReceiptAudit(db.Model):
    """
    Append-only history of a receipt.

    One row per create/delete/revert. Each row captures the full state before
    and after the action, so the current state of a receipt is always
    "apply the latest row". previous_quantity/new_quantity are NULL when the
    receipt does not exist on that side of the action.

    Rows are never updated or deleted.
    """
    __tablename__ = "receipt_audits"
    __table_args__ = (
        db.UniqueConstraint("version_id", name="uq_receipt_audits_version"),
        db.Index("ix_receipt_audits_receipt_created", "receipt_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    version_id = db.Column(db.String(32), nullable=False)
    receipt_id = db.Column(db.Integer, db.ForeignKey("wip_receipts.id"), nullable=False, index=True)

    part_id = db.Column(db.Integer, nullable=False)
    section_id = db.Column(db.Integer, nullable=False)
    op_number = db.Column(db.Integer, nullable=False)
    balance_id = db.Column(db.Integer, db.ForeignKey("wip_balances.id"), nullable=True, index=True)

    receipt_date = db.Column(db.DateTime(timezone=True), nullable=False)
    comment = db.Column(db.String(512), nullable=True)

    previous_quantity = db.Column(db.Numeric(18, 3), nullable=True)
    new_quantity = db.Column(db.Numeric(18, 3), nullable=True)
    previous_balance = db.Column(db.Numeric(18, 3), nullable=False)
    new_balance = db.Column(db.Numeric(18, 3), nullable=False)

    previous_label_id = db.Column(db.Integer, nullable=True)
    new_label_id = db.Column(db.Integer, nullable=True)
    previous_label_assigned = db.Column(db.Boolean, nullable=False, default=False)
    new_label_assigned = db.Column(db.Boolean, nullable=False, default=False)

    action = db.Column(db.String(16), nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "version_id": self.version_id,
            "receipt_id": self.receipt_id,
            "part_id": self.part_id,
            "section_id": self.section_id,
            "op_number": format_op_number(self.op_number),
            "receipt_date": to_utc_z(self.receipt_date),
            "comment": self.comment,
            "previous_quantity": format_decimal(self.previous_quantity),
            "new_quantity": format_decimal(self.new_quantity),
            "previous_balance": format_decimal(self.previous_balance),
            "new_balance": format_decimal(self.new_balance),
            "previous_label_id": self.previous_label_id,
            "new_label_id": self.new_label_id,
            "previous_label_assigned": self.previous_label_assigned,
            "new_label_assigned": self.new_label_assigned,
            "action": self.action,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


class TransferAudit(db.Model):
    """
    Append-only record of one transfer.

    transfer_id points at the business record (which may later be deleted);
    transaction_id groups every location touched by the transfer. The only
    fields ever updated after insert are is_reverted/reverted_at.
    """
    __tablename__ = "transfer_audits"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", name="uq_transfer_audits_transaction"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(32), nullable=False)
    # No FK: the business record may be deleted while history stays
    transfer_id = db.Column(db.Integer, nullable=False, index=True)

    part_id = db.Column(db.Integer, nullable=False, index=True)
    from_section_id = db.Column(db.Integer, nullable=False)
    from_op_number = db.Column(db.Integer, nullable=False)
    to_section_id = db.Column(db.Integer, nullable=True)
    to_op_number = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Numeric(18, 3), nullable=False)
    comment = db.Column(db.String(512), nullable=True)
    transfer_date = db.Column(db.DateTime(timezone=True), nullable=False)

    from_balance_before = db.Column(db.Numeric(18, 3), nullable=False)
    from_balance_after = db.Column(db.Numeric(18, 3), nullable=False)
    to_balance_before = db.Column(db.Numeric(18, 3), nullable=False)
    to_balance_after = db.Column(db.Numeric(18, 3), nullable=False)
    is_warehouse_transfer = db.Column(db.Boolean, nullable=False, default=False)

    label_id = db.Column(db.Integer, nullable=True)
    label_number = db.Column(db.String(16), nullable=True)
    label_quantity_before = db.Column(db.Numeric(18, 3), nullable=True)
    label_quantity_after = db.Column(db.Numeric(18, 3), nullable=True)

    scrap_quantity = db.Column(db.Numeric(18, 3), nullable=False, default=0)
    scrap_type = db.Column(db.String(32), nullable=True)
    scrap_comment = db.Column(db.String(512), nullable=True)

    is_reverted = db.Column(db.Boolean, nullable=False, default=False)
    reverted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    operations = db.relationship(
        "TransferAuditOperation",
        backref="transfer_audit",
        lazy=True,
        order_by="TransferAuditOperation.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "transfer_id": self.transfer_id,
            "part_id": self.part_id,
            "from_section_id": self.from_section_id,
            "from_op_number": format_op_number(self.from_op_number),
            "to_section_id": self.to_section_id,
            "to_op_number": format_op_number(self.to_op_number),
            "quantity": format_decimal(self.quantity),
            "comment": self.comment,
            "transfer_date": to_utc_z(self.transfer_date),
            "from_balance_before": format_decimal(self.from_balance_before),
            "from_balance_after": format_decimal(self.from_balance_after),
            "to_balance_before": format_decimal(self.to_balance_before),
            "to_balance_after": format_decimal(self.to_balance_after),
            "is_warehouse_transfer": self.is_warehouse_transfer,
            "label_id": self.label_id,
            "label_number": self.label_number,
            "label_quantity_before": format_decimal(self.label_quantity_before),
            "label_quantity_after": format_decimal(self.label_quantity_after),
            "scrap_quantity": format_decimal(self.scrap_quantity),
            "scrap_type": self.scrap_type,
            "scrap_comment": self.scrap_comment,
            "is_reverted": self.is_reverted,
            "reverted_at": to_utc_z(self.reverted_at) if self.reverted_at else None,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "operations": [op.to_dict() for op in self.operations],
        }


class TransferAuditOperation(db.Model):
    """
    Per-location slice of a TransferAudit.

    One row per distinct (section_id, op_number) touched. Revert walks these
    rows and writes balance_before back, whatever the number of legs.
    balance_at_revert keeps the live value that the revert overwrote, so the
    balance history stays reconstructible after a revert.
    """
    __tablename__ = "transfer_audit_operations"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    transfer_audit_id = db.Column(db.Integer, db.ForeignKey("transfer_audits.id"), nullable=False, index=True)

    balance_id = db.Column(db.Integer, db.ForeignKey("wip_balances.id"), nullable=True, index=True)
    section_id = db.Column(db.Integer, nullable=True)
    op_number = db.Column(db.Integer, nullable=False)
    operation_id = db.Column(db.Integer, nullable=True)
    part_route_id = db.Column(db.Integer, nullable=True)

    balance_before = db.Column(db.Numeric(18, 3), nullable=False)
    balance_after = db.Column(db.Numeric(18, 3), nullable=False)
    quantity_change = db.Column(db.Numeric(18, 3), nullable=False)
    is_warehouse = db.Column(db.Boolean, nullable=False, default=False)

    balance_at_revert = db.Column(db.Numeric(18, 3), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "balance_id": self.balance_id,
            "section_id": self.section_id,
            "op_number": format_op_number(self.op_number),
            "operation_id": self.operation_id,
            "balance_before": format_decimal(self.balance_before),
            "balance_after": format_decimal(self.balance_after),
            "quantity_change": format_decimal(self.quantity_change),
            "is_warehouse": self.is_warehouse,
            "balance_at_revert": format_decimal(self.balance_at_revert),
        }
