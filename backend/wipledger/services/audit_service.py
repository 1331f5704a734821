# Overview: Append-only audit recording for receipts and transfers.

"""
AuditRecorder

- Audit rows are appended inside the same unit of work as the mutation they
  describe.
- Rows carry full before/after snapshots. Revert replays those snapshots,
  it never recomputes what a balance "should" be.
- Receipt audit rows are never updated. Transfer audit rows are only ever
  updated to flag them reverted.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..errors import NotFoundError
from ..models import ReceiptAudit, TransferAudit, TransferAuditOperation, WipReceipt
from ..time_utils import utcnow
from .current_user import get_current_user_id


def new_version_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ReceiptState:
    """State of one receipt on one side of an audited action."""
    quantity: Decimal | None
    balance: Decimal
    label_id: int | None
    label_assigned: bool


@dataclass(frozen=True)
class TransferLeg:
    """One location touched by a transfer, as recorded in the audit."""
    section_id: int | None
    op_number: int
    balance_before: Decimal
    balance_after: Decimal
    balance_id: int | None = None
    operation_id: int | None = None
    part_route_id: int | None = None
    is_warehouse: bool = False

    @property
    def quantity_change(self) -> Decimal:
        return self.balance_after - self.balance_before


def record_receipt_audit(
    *,
    receipt: WipReceipt,
    action: str,
    before: ReceiptState,
    after: ReceiptState,
    balance_id: int | None,
    occurred_at: datetime | None = None,
) -> ReceiptAudit:
    audit = ReceiptAudit(
        version_id=new_version_id(),
        receipt_id=receipt.id,
        part_id=receipt.part_id,
        section_id=receipt.section_id,
        op_number=receipt.op_number,
        balance_id=balance_id,
        receipt_date=receipt.receipt_date,
        comment=receipt.comment,
        previous_quantity=before.quantity,
        new_quantity=after.quantity,
        previous_balance=before.balance,
        new_balance=after.balance,
        previous_label_id=before.label_id,
        new_label_id=after.label_id,
        previous_label_assigned=before.label_assigned,
        new_label_assigned=after.label_assigned,
        action=action,
        user_id=get_current_user_id(),
        created_at=occurred_at or utcnow(),
    )
    db.session.add(audit)
    db.session.flush()
    return audit


def get_receipt_history(receipt_id: int) -> list[ReceiptAudit]:
    """All audit rows of a receipt, oldest first."""
    return (
        db.session.query(ReceiptAudit)
        .filter(ReceiptAudit.receipt_id == receipt_id)
        .order_by(ReceiptAudit.id.asc())
        .all()
    )


def get_latest_receipt_audit(receipt_id: int) -> ReceiptAudit | None:
    return (
        db.session.query(ReceiptAudit)
        .filter(ReceiptAudit.receipt_id == receipt_id)
        .order_by(ReceiptAudit.id.desc())
        .first()
    )


def get_receipt_version(receipt_id: int, version_id: str) -> ReceiptAudit:
    """
    Raises:
        NotFoundError: If the version does not exist or belongs to another receipt
    """
    audit = db.session.query(ReceiptAudit).filter_by(version_id=version_id).first()
    if audit is None or audit.receipt_id != receipt_id:
        raise NotFoundError(f"Version {version_id} not found for receipt {receipt_id}")
    return audit


def record_transfer_audit(
    *,
    transfer,
    from_leg: TransferLeg,
    to_leg: TransferLeg,
    extra_legs: list[TransferLeg] | None = None,
    label=None,
    label_quantity_before: Decimal | None = None,
    label_quantity_after: Decimal | None = None,
    scrap=None,
    occurred_at: datetime | None = None,
) -> TransferAudit:
    """
    Append one TransferAudit plus one TransferAuditOperation per touched location.

    Legs that hit the same (section_id, op_number) are merged so each location
    appears exactly once, with its first before and last after value.
    """
    audit = TransferAudit(
        transaction_id=new_version_id(),
        transfer_id=transfer.id,
        part_id=transfer.part_id,
        from_section_id=transfer.from_section_id,
        from_op_number=transfer.from_op_number,
        to_section_id=transfer.to_section_id,
        to_op_number=transfer.to_op_number,
        quantity=transfer.quantity,
        comment=transfer.comment,
        transfer_date=transfer.transfer_date,
        from_balance_before=from_leg.balance_before,
        from_balance_after=from_leg.balance_after,
        to_balance_before=to_leg.balance_before,
        to_balance_after=to_leg.balance_after,
        is_warehouse_transfer=transfer.is_warehouse_transfer,
        label_id=label.id if label is not None else None,
        label_number=label.number if label is not None else None,
        label_quantity_before=label_quantity_before,
        label_quantity_after=label_quantity_after,
        scrap_quantity=scrap.quantity if scrap is not None else Decimal("0"),
        scrap_type=scrap.scrap_type if scrap is not None else None,
        scrap_comment=scrap.comment if scrap is not None else None,
        is_reverted=False,
        user_id=get_current_user_id(),
        created_at=occurred_at or utcnow(),
    )
    db.session.add(audit)
    db.session.flush()

    merged: dict[tuple, TransferLeg] = {}
    for leg in [from_leg, to_leg, *(extra_legs or [])]:
        location = (leg.is_warehouse, leg.section_id, leg.op_number)
        if location in merged:
            first = merged[location]
            leg = TransferLeg(
                section_id=first.section_id,
                op_number=first.op_number,
                balance_before=first.balance_before,
                balance_after=leg.balance_after,
                balance_id=first.balance_id or leg.balance_id,
                operation_id=first.operation_id,
                part_route_id=first.part_route_id,
                is_warehouse=first.is_warehouse,
            )
        merged[location] = leg

    for leg in merged.values():
        db.session.add(TransferAuditOperation(
            transfer_audit_id=audit.id,
            balance_id=leg.balance_id,
            section_id=leg.section_id,
            op_number=leg.op_number,
            operation_id=leg.operation_id,
            part_route_id=leg.part_route_id,
            balance_before=leg.balance_before,
            balance_after=leg.balance_after,
            quantity_change=leg.quantity_change,
            is_warehouse=leg.is_warehouse,
        ))
    db.session.flush()
    return audit


def get_transfer_audit(transfer_id: int, *, lock: bool = False) -> TransferAudit:
    """
    Raises:
        NotFoundError: If the transfer has no audit record
    """
    query = (
        db.session.query(TransferAudit)
        .filter(TransferAudit.transfer_id == transfer_id)
        .order_by(TransferAudit.id.desc())
    )
    if lock:
        query = query.with_for_update()
    audit = query.first()
    if audit is None:
        raise NotFoundError(f"Transfer {transfer_id} not found")
    return audit
