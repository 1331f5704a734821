from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import format_decimal, format_op_number


# Scrap types
SCRAP_TYPE_TECHNOLOGICAL = "Technological"
SCRAP_TYPE_EMPLOYEE_FAULT = "EmployeeFault"
SCRAP_TYPES = {SCRAP_TYPE_TECHNOLOGICAL, SCRAP_TYPE_EMPLOYEE_FAULT}


class WipBalance(db.Model):
    """
    Current WIP quantity of a part at one (section, operation) location.

    INVARIANTS:
    - (part_id, section_id, op_number) is unique
    - quantity >= 0 at all times (also enforced by a CHECK constraint)
    - Only the ledger services mutate quantity; every mutation leaves a trace
      in receipts audits, transfer audits, launches or adjustments.
    """
    __tablename__ = "wip_balances"
    __table_args__ = (
        db.UniqueConstraint("part_id", "section_id", "op_number", name="uq_wip_balances_location"),
        db.CheckConstraint("quantity >= 0", name="ck_wip_balances_quantity_non_negative"),
        db.Index("ix_wip_balances_part_op", "part_id", "op_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey("parts.id"), nullable=False, index=True)
    section_id = db.Column(db.Integer, db.ForeignKey("sections.id"), nullable=False, index=True)
    op_number = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Numeric(18, 3), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    part = db.relationship("Part")
    section = db.relationship("Section")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def key(self) -> tuple[int, int, int]:
        return (self.part_id, self.section_id, self.op_number)

    def __repr__(self) -> str:
        return (
            f"<WipBalance id={self.id} part_id={self.part_id} section_id={self.section_id} "
            f"op={self.op_number} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "part_id": self.part_id,
            "section_id": self.section_id,
            "op_number": format_op_number(self.op_number),
            "quantity": format_decimal(self.quantity),
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class WipLabel(db.Model):
    """
    Lot/batch label.

    quantity is the issued amount; remaining_quantity is what receipts and
    transfers may still consume. is_assigned flips to True on the first
    consume and never goes back (history marker for "this lot was touched").
    """
    __tablename__ = "wip_labels"
    __table_args__ = (
        db.UniqueConstraint("label_year", "number", name="uq_wip_labels_year_number"),
        db.CheckConstraint(
            "remaining_quantity >= 0 AND remaining_quantity <= quantity",
            name="ck_wip_labels_remaining_bounds",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey("parts.id"), nullable=False, index=True)
    label_date = db.Column(db.DateTime(timezone=True), nullable=False)
    label_year = db.Column(db.Integer, nullable=False, index=True)
    number = db.Column(db.String(16), nullable=False)

    quantity = db.Column(db.Numeric(18, 3), nullable=False)
    remaining_quantity = db.Column(db.Numeric(18, 3), nullable=False)
    is_assigned = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    part = db.relationship("Part")

    def __repr__(self) -> str:
        return f"<WipLabel id={self.id} number={self.number!r} remaining={self.remaining_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "part_id": self.part_id,
            "label_date": to_utc_z(self.label_date),
            "label_year": self.label_year,
            "number": self.number,
            "quantity": format_decimal(self.quantity),
            "remaining_quantity": format_decimal(self.remaining_quantity),
            "is_assigned": self.is_assigned,
        }


class WipReceipt(db.Model):
    """
    Inbound addition to a balance.

    IMMUTABLE except through delete/revert, both of which append a
    ReceiptAudit row. Deleted receipts are kept (is_deleted) so a later revert
    can bring them back under the same id.
    """
    __tablename__ = "wip_receipts"
    __table_args__ = (
        db.Index("ix_wip_receipts_location", "part_id", "section_id", "op_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey("parts.id"), nullable=False, index=True)
    section_id = db.Column(db.Integer, db.ForeignKey("sections.id"), nullable=False)
    op_number = db.Column(db.Integer, nullable=False)

    receipt_date = db.Column(db.DateTime(timezone=True), nullable=False)
    quantity = db.Column(db.Numeric(18, 3), nullable=False)
    label_id = db.Column(db.Integer, db.ForeignKey("wip_labels.id"), nullable=True, index=True)
    comment = db.Column(db.String(512), nullable=True)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)

    user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    label = db.relationship("WipLabel")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "part_id": self.part_id,
            "section_id": self.section_id,
            "op_number": format_op_number(self.op_number),
            "receipt_date": to_utc_z(self.receipt_date),
            "quantity": format_decimal(self.quantity),
            "label_id": self.label_id,
            "comment": self.comment,
            "is_deleted": self.is_deleted,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


class WipTransfer(db.Model):
    """
    Movement of quantity between two locations of the same part.

    to_section_id/to_op_number are the warehouse pseudo-location when
    is_warehouse_transfer is set; in that case no destination balance exists
    and the quantity lands in a WarehouseItem.
    """
    __tablename__ = "wip_transfers"
    __table_args__ = (
        db.Index("ix_wip_transfers_part_date", "part_id", "transfer_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey("parts.id"), nullable=False, index=True)
    from_section_id = db.Column(db.Integer, db.ForeignKey("sections.id"), nullable=False)
    from_op_number = db.Column(db.Integer, nullable=False)
    to_section_id = db.Column(db.Integer, db.ForeignKey("sections.id"), nullable=True)
    to_op_number = db.Column(db.Integer, nullable=False)

    transfer_date = db.Column(db.DateTime(timezone=True), nullable=False)
    quantity = db.Column(db.Numeric(18, 3), nullable=False)
    comment = db.Column(db.String(512), nullable=True)

    label_id = db.Column(db.Integer, db.ForeignKey("wip_labels.id"), nullable=True, index=True)
    is_warehouse_transfer = db.Column(db.Boolean, nullable=False, default=False)

    user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    operations = db.relationship(
        "WipTransferOperation",
        backref="transfer",
        lazy=True,
        cascade="all, delete-orphan",
    )
    label = db.relationship("WipLabel")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "part_id": self.part_id,
            "from_section_id": self.from_section_id,
            "from_op_number": format_op_number(self.from_op_number),
            "to_section_id": self.to_section_id,
            "to_op_number": format_op_number(self.to_op_number),
            "transfer_date": to_utc_z(self.transfer_date),
            "quantity": format_decimal(self.quantity),
            "comment": self.comment,
            "label_id": self.label_id,
            "is_warehouse_transfer": self.is_warehouse_transfer,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


class WipTransferOperation(db.Model):
    """One leg of a transfer; quantity_change is signed (negative = leaving)."""
    __tablename__ = "wip_transfer_operations"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    transfer_id = db.Column(db.Integer, db.ForeignKey("wip_transfers.id"), nullable=False, index=True)
    section_id = db.Column(db.Integer, db.ForeignKey("sections.id"), nullable=True)
    op_number = db.Column(db.Integer, nullable=False)
    operation_id = db.Column(db.Integer, db.ForeignKey("operations.id"), nullable=True)
    part_route_id = db.Column(db.Integer, db.ForeignKey("part_routes.id"), nullable=True)
    quantity_change = db.Column(db.Numeric(18, 3), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transfer_id": self.transfer_id,
            "section_id": self.section_id,
            "op_number": format_op_number(self.op_number),
            "operation_id": self.operation_id,
            "quantity_change": format_decimal(self.quantity_change),
        }


class WipScrap(db.Model):
    """
    Scrap split off during a transfer.

    Scrap quantity leaves the ledger for good: it is deducted from the origin
    together with the transfer quantity and never reaches any destination.
    Reverting the transfer does not bring it back.
    """
    __tablename__ = "wip_scraps"
    __table_args__ = (
        db.Index("ix_wip_scraps_part_recorded", "part_id", "recorded_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey("parts.id"), nullable=False, index=True)
    section_id = db.Column(db.Integer, db.ForeignKey("sections.id"), nullable=False)
    op_number = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Numeric(18, 3), nullable=False)
    scrap_type = db.Column(db.String(32), nullable=False)
    comment = db.Column(db.String(512), nullable=True)

    user_id = db.Column(db.Integer, nullable=False)
    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False)

    transfer_id = db.Column(db.Integer, db.ForeignKey("wip_transfers.id"), nullable=True, index=True)
    transfer = db.relationship("WipTransfer", backref=db.backref("scrap", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "part_id": self.part_id,
            "section_id": self.section_id,
            "op_number": format_op_number(self.op_number),
            "quantity": format_decimal(self.quantity),
            "scrap_type": self.scrap_type,
            "comment": self.comment,
            "user_id": self.user_id,
            "recorded_at": to_utc_z(self.recorded_at),
            "transfer_id": self.transfer_id,
        }


class WarehouseItem(db.Model):
    """Finished quantity moved to the warehouse by a transfer."""
    __tablename__ = "warehouse_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey("parts.id"), nullable=False, index=True)
    transfer_id = db.Column(db.Integer, db.ForeignKey("wip_transfers.id"), nullable=True, index=True)
    quantity = db.Column(db.Numeric(18, 3), nullable=False)
    added_at = db.Column(db.DateTime(timezone=True), nullable=False)
    comment = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "part_id": self.part_id,
            "transfer_id": self.transfer_id,
            "quantity": format_decimal(self.quantity),
            "added_at": to_utc_z(self.added_at),
            "comment": self.comment,
        }


class WipLaunch(db.Model):
    """
    Launch of quantity from an origin balance.

    The child operations are a FORECAST of remaining labor along the route;
    only the origin balance is mutated.
    """
    __tablename__ = "wip_launches"
    __table_args__ = (
        db.Index("ix_wip_launches_part_date", "part_id", "launch_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey("parts.id"), nullable=False, index=True)
    section_id = db.Column(db.Integer, db.ForeignKey("sections.id"), nullable=False)
    from_op_number = db.Column(db.Integer, nullable=False)
    launch_date = db.Column(db.DateTime(timezone=True), nullable=False)
    quantity = db.Column(db.Numeric(18, 3), nullable=False)
    sum_hours_to_finish = db.Column(db.Numeric(18, 4), nullable=False, default=0)
    comment = db.Column(db.String(512), nullable=True)

    user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    operations = db.relationship(
        "WipLaunchOperation",
        backref="launch",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="WipLaunchOperation.op_number",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "part_id": self.part_id,
            "section_id": self.section_id,
            "from_op_number": format_op_number(self.from_op_number),
            "launch_date": to_utc_z(self.launch_date),
            "quantity": format_decimal(self.quantity),
            "sum_hours_to_finish": format_decimal(self.sum_hours_to_finish),
            "comment": self.comment,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "operations": [op.to_dict() for op in self.operations],
        }


class WipLaunchOperation(db.Model):
    __tablename__ = "wip_launch_operations"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    launch_id = db.Column(db.Integer, db.ForeignKey("wip_launches.id"), nullable=False, index=True)
    op_number = db.Column(db.Integer, nullable=False)
    operation_id = db.Column(db.Integer, db.ForeignKey("operations.id"), nullable=False)
    section_id = db.Column(db.Integer, db.ForeignKey("sections.id"), nullable=False)
    part_route_id = db.Column(db.Integer, db.ForeignKey("part_routes.id"), nullable=True)
    quantity = db.Column(db.Numeric(18, 3), nullable=False)
    hours = db.Column(db.Numeric(18, 4), nullable=False)
    norm_hours = db.Column(db.Numeric(18, 4), nullable=False)

    def to_dict(self) -> dict:
        return {
            "op_number": format_op_number(self.op_number),
            "operation_id": self.operation_id,
            "section_id": self.section_id,
            "quantity": format_decimal(self.quantity),
            "hours": format_decimal(self.hours),
            "norm_hours": format_decimal(self.norm_hours),
        }


class WipBalanceAdjustment(db.Model):
    """Manual (or bulk-cleanup) correction of one balance."""
    __tablename__ = "wip_balance_adjustments"
    __table_args__ = (
        db.Index("ix_wip_adjustments_balance_created", "balance_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    balance_id = db.Column(db.Integer, db.ForeignKey("wip_balances.id"), nullable=False, index=True)
    part_id = db.Column(db.Integer, db.ForeignKey("parts.id"), nullable=False)
    section_id = db.Column(db.Integer, db.ForeignKey("sections.id"), nullable=False)
    op_number = db.Column(db.Integer, nullable=False)

    previous_quantity = db.Column(db.Numeric(18, 3), nullable=False)
    new_quantity = db.Column(db.Numeric(18, 3), nullable=False)
    delta = db.Column(db.Numeric(18, 3), nullable=False)
    comment = db.Column(db.String(600), nullable=True)

    user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    balance = db.relationship("WipBalance")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "balance_id": self.balance_id,
            "part_id": self.part_id,
            "section_id": self.section_id,
            "op_number": format_op_number(self.op_number),
            "previous_quantity": format_decimal(self.previous_quantity),
            "new_quantity": format_decimal(self.new_quantity),
            "delta": format_decimal(self.delta),
            "comment": self.comment,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
