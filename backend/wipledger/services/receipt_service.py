# Overview: Receipts add quantity to a balance, optionally consuming a label.

"""
ReceiptEngine

Every action on a receipt (create, delete, revert) appends one ReceiptAudit
row holding the state before and after the action. The receipt row itself
only ever changes through delete/revert.

REVERT:
revert_receipt(receipt_id, version_id) brings the receipt back to the state
recorded by that audit version (its new_* values). The balance is
overwritten with the recorded new_balance, not recomputed.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from ..extensions import db
from ..errors import ConflictError, NotFoundError
from ..models import WipLabel, WipReceipt
from ..models.audit import RECEIPT_ACTION_CREATED, RECEIPT_ACTION_DELETED, RECEIPT_ACTION_REVERTED
from ..time_utils import normalize_to_utc, utcnow
from ..validation import format_decimal, format_op_number, normalize_comment, to_positive_quantity
from . import balance_service, label_service, route_service
from .audit_service import (
    ReceiptState,
    get_receipt_version,
    record_receipt_audit,
)
from .balance_service import ZERO, BalanceKey
from .concurrency import lock_for_update, run_with_retry
from .current_user import get_current_user_id


@dataclass(frozen=True)
class ReceiptResult:
    receipt_id: int
    part_id: int
    section_id: int
    op_number: int
    quantity: Decimal | None
    balance_before: Decimal
    balance_after: Decimal
    label_id: int | None
    version_id: str
    action: str

    def to_dict(self) -> dict:
        return {
            "receipt_id": self.receipt_id,
            "part_id": self.part_id,
            "section_id": self.section_id,
            "op_number": format_op_number(self.op_number),
            "quantity": format_decimal(self.quantity),
            "balance_before": format_decimal(self.balance_before),
            "balance_after": format_decimal(self.balance_after),
            "label_id": self.label_id,
            "version_id": self.version_id,
            "action": self.action,
        }


def _result(receipt: WipReceipt, audit) -> ReceiptResult:
    return ReceiptResult(
        receipt_id=receipt.id,
        part_id=receipt.part_id,
        section_id=receipt.section_id,
        op_number=receipt.op_number,
        quantity=audit.new_quantity,
        balance_before=audit.previous_balance,
        balance_after=audit.new_balance,
        label_id=audit.new_label_id,
        version_id=audit.version_id,
        action=audit.action,
    )


def _label_assigned(label_id: int | None) -> bool:
    if label_id is None:
        return False
    label = db.session.get(WipLabel, label_id)
    return bool(label and label.is_assigned)


def get_receipt(receipt_id: int, *, lock: bool = False) -> WipReceipt:
    query = db.session.query(WipReceipt).filter_by(id=receipt_id)
    if lock:
        query = lock_for_update(query)
    receipt = query.first()
    if receipt is None:
        raise NotFoundError(f"Receipt {receipt_id} not found")
    return receipt


def _apply_receipt(
    *,
    part_id: int,
    op_number: int,
    section_id: int,
    receipt_date: datetime | date,
    quantity: Decimal,
    comment: str | None,
    label_id: int | None,
) -> ReceiptResult:
    amount = to_positive_quantity(quantity, "Receipt")
    comment = normalize_comment(comment)

    step = route_service.get_route_step(part_id, op_number)
    if step.section_id != section_id:
        raise ConflictError(
            f"Operation {op_number:03d} of part {part_id} belongs to section {step.section_id}, "
            f"not {section_id}"
        )
    if label_id is not None:
        label_service.ensure_available(label_id, amount, part_id=part_id)

    key = BalanceKey(part_id, section_id, op_number)
    change = balance_service.upsert(key, amount)

    if label_id is not None:
        label_service.consume(label_id, amount)

    receipt = WipReceipt(
        part_id=part_id,
        section_id=section_id,
        op_number=op_number,
        receipt_date=normalize_to_utc(receipt_date),
        quantity=amount,
        label_id=label_id,
        comment=comment,
        is_deleted=False,
        user_id=get_current_user_id(),
    )
    db.session.add(receipt)
    db.session.flush()

    audit = record_receipt_audit(
        receipt=receipt,
        action=RECEIPT_ACTION_CREATED,
        before=ReceiptState(quantity=None, balance=change.quantity_before, label_id=None, label_assigned=False),
        after=ReceiptState(
            quantity=amount,
            balance=change.quantity_after,
            label_id=label_id,
            label_assigned=_label_assigned(label_id),
        ),
        balance_id=change.balance.id,
    )
    return _result(receipt, audit)


def add_receipt(
    part_id: int,
    op_number: int,
    section_id: int,
    receipt_date: datetime | date,
    quantity: Decimal,
    comment: str | None = None,
    label_id: int | None = None,
) -> ReceiptResult:
    """
    Receive quantity into the balance at (part, section, op_number).

    Args:
        part_id: Part being received
        op_number: Route operation the quantity lands on
        section_id: Section owning that operation on the route
        receipt_date: Business date of the receipt
        quantity: Amount received (> 0)
        comment: Optional free text
        label_id: Optional label to consume by `quantity`

    Returns:
        ReceiptResult with balance before/after and the Created version id

    Raises:
        InvalidQuantityError: quantity <= 0 after rounding
        NotFoundError: Operation not on the route, unknown label
        ConflictError: Section mismatch, label of another part
        InsufficientLabelQuantityError: Label has less remaining than quantity
    """
    def _op():
        return _apply_receipt(
            part_id=part_id,
            op_number=op_number,
            section_id=section_id,
            receipt_date=receipt_date,
            quantity=quantity,
            comment=comment,
            label_id=label_id,
        )

    return run_with_retry(_op)


def add_receipts_batch(items: Iterable[dict]) -> list[ReceiptResult]:
    """
    Apply several receipts in one unit of work.

    Each item carries the keyword arguments of add_receipt. The first failing
    item raises and the caller rolls the whole batch back.
    """
    items = list(items)

    def _op():
        return [
            _apply_receipt(
                part_id=item["part_id"],
                op_number=item["op_number"],
                section_id=item["section_id"],
                receipt_date=item["receipt_date"],
                quantity=item["quantity"],
                comment=item.get("comment"),
                label_id=item.get("label_id"),
            )
            for item in items
        ]

    return run_with_retry(_op)


def delete_receipt(receipt_id: int) -> ReceiptResult:
    """
    Undo a receipt's effect: decrement the balance and release its label.

    Raises:
        NotFoundError: Unknown receipt
        ConflictError: Receipt already deleted, or its label cannot take the quantity back
        InsufficientBalanceError: The quantity has already moved on from the balance
    """
    def _op():
        receipt = get_receipt(receipt_id, lock=True)
        if receipt.is_deleted:
            raise ConflictError(f"Receipt {receipt_id} is already deleted")

        key = BalanceKey(receipt.part_id, receipt.section_id, receipt.op_number)
        balance_service.ensure_available(key, receipt.quantity)
        if receipt.label_id is not None:
            label_service.ensure_releasable(receipt.label_id, receipt.quantity)

        before = ReceiptState(
            quantity=receipt.quantity,
            balance=balance_service.current_quantity(key),
            label_id=receipt.label_id,
            label_assigned=_label_assigned(receipt.label_id),
        )

        change = balance_service.decrement(key, receipt.quantity)
        if receipt.label_id is not None:
            label_service.release(receipt.label_id, receipt.quantity)
        receipt.is_deleted = True
        db.session.flush()

        audit = record_receipt_audit(
            receipt=receipt,
            action=RECEIPT_ACTION_DELETED,
            before=before,
            after=ReceiptState(
                quantity=None,
                balance=change.quantity_after,
                label_id=receipt.label_id,
                label_assigned=_label_assigned(receipt.label_id),
            ),
            balance_id=change.balance.id,
        )
        return _result(receipt, audit)

    return run_with_retry(_op)


def _label_consumption(quantity: Decimal | None, label_id: int | None) -> dict[int, Decimal]:
    if quantity is None or label_id is None:
        return {}
    return {label_id: quantity}


def revert_receipt(receipt_id: int, to_version_id: str) -> ReceiptResult:
    """
    Bring a receipt back to the state recorded by one of its audit versions.

    The recorded quantity, label and balance are applied verbatim. Label
    quantities are rebalanced so each label carries exactly what the
    restored receipt consumes. Label is_assigned flags are left untouched.

    Raises:
        NotFoundError: Unknown receipt, or the version belongs to another receipt
        ConflictError: Balance row missing, or a label cannot take quantity back
        InsufficientLabelQuantityError: A label cannot supply the restored quantity
    """
    def _op():
        receipt = get_receipt(receipt_id, lock=True)
        version = get_receipt_version(receipt_id, to_version_id)

        key = BalanceKey(receipt.part_id, receipt.section_id, receipt.op_number)
        balance = balance_service.lock_balance(key)
        if balance is None:
            raise ConflictError(f"WIP balance for {key.describe()} is missing")

        current_quantity = None if receipt.is_deleted else receipt.quantity
        target_quantity = version.new_quantity
        target_label_id = version.new_label_id

        # Net label movement between the current and the restored receipt
        current_use = _label_consumption(current_quantity, receipt.label_id)
        target_use = _label_consumption(target_quantity, target_label_id)
        moves: dict[int, Decimal] = {}
        for label_id in set(current_use) | set(target_use):
            delta = target_use.get(label_id, ZERO) - current_use.get(label_id, ZERO)
            if delta != 0:
                moves[label_id] = delta

        for label_id, delta in moves.items():
            if delta > 0:
                label_service.ensure_available(label_id, delta, part_id=receipt.part_id)
            else:
                label_service.ensure_releasable(label_id, -delta)

        before = ReceiptState(
            quantity=current_quantity,
            balance=balance.quantity,
            label_id=receipt.label_id,
            label_assigned=_label_assigned(receipt.label_id),
        )

        change = balance_service.set_quantity(balance, version.new_balance)
        for label_id, delta in moves.items():
            if delta > 0:
                label_service.consume(label_id, delta)
            else:
                label_service.release(label_id, -delta)

        if target_quantity is None:
            receipt.is_deleted = True
        else:
            receipt.is_deleted = False
            receipt.quantity = target_quantity
            receipt.label_id = target_label_id
        db.session.flush()

        audit = record_receipt_audit(
            receipt=receipt,
            action=RECEIPT_ACTION_REVERTED,
            before=before,
            after=ReceiptState(
                quantity=target_quantity,
                balance=change.quantity_after,
                label_id=target_label_id,
                label_assigned=_label_assigned(target_label_id),
            ),
            balance_id=balance.id,
            occurred_at=utcnow(),
        )
        return _result(receipt, audit)

    return run_with_retry(_op)
