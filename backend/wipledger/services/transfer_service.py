# Overview: Transfers move quantity between two route operations of a part.

"""
TransferEngine

FLOW (one unit of work):
1. Origin balance decremented by quantity + scrap in a single deduction
2. Destination balance upserted by exactly quantity, or a WarehouseItem
   created when the destination is the warehouse operation
3. Scrap row linked to the transfer (scrap never reaches a destination)
4. Label consumed by quantity, when referenced
5. Transfer + one WipTransferOperation per leg
6. One TransferAudit with one TransferAuditOperation per touched location

REVERT:
Each audit operation's balance_before is written back verbatim. The
warehouse leg is undone by removing its WarehouseItem. Scrap stays scrapped.
A transfer can be reverted exactly once.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from flask import current_app

from ..extensions import db
from ..errors import AlreadyRevertedError, ConflictError, NotFoundError, ValidationError
from ..models import TransferAudit, WarehouseItem, WipScrap, WipTransfer, WipTransferOperation
from ..models.wip import SCRAP_TYPES
from ..time_utils import normalize_to_utc, utcnow
from ..validation import format_decimal, format_op_number, normalize_comment, to_positive_quantity
from . import balance_service, label_service, route_service
from .audit_service import TransferLeg, get_transfer_audit, record_transfer_audit
from .balance_service import ZERO, BalanceKey
from .concurrency import lock_for_update, run_with_retry
from .current_user import get_current_user_id


@dataclass(frozen=True)
class ScrapInput:
    quantity: Decimal
    scrap_type: str
    comment: str | None = None

    @classmethod
    def from_value(cls, value) -> "ScrapInput | None":
        if value is None or isinstance(value, ScrapInput):
            return value
        return cls(
            quantity=value["quantity"],
            scrap_type=value["scrap_type"],
            comment=value.get("comment"),
        )


@dataclass(frozen=True)
class TransferResult:
    transfer_id: int
    transaction_id: str
    part_id: int
    from_section_id: int
    from_op_number: int
    to_section_id: int | None
    to_op_number: int
    quantity: Decimal
    from_balance_before: Decimal
    from_balance_after: Decimal
    to_balance_before: Decimal
    to_balance_after: Decimal
    is_warehouse_transfer: bool
    scrap_id: int | None = None
    scrap_quantity: Decimal = ZERO
    label_id: int | None = None
    label_remaining_before: Decimal | None = None
    label_remaining_after: Decimal | None = None
    warehouse_item_id: int | None = None

    def to_dict(self) -> dict:
        return {
            "transfer_id": self.transfer_id,
            "transaction_id": self.transaction_id,
            "part_id": self.part_id,
            "from_section_id": self.from_section_id,
            "from_op_number": format_op_number(self.from_op_number),
            "to_section_id": self.to_section_id,
            "to_op_number": format_op_number(self.to_op_number),
            "quantity": format_decimal(self.quantity),
            "from_balance_before": format_decimal(self.from_balance_before),
            "from_balance_after": format_decimal(self.from_balance_after),
            "to_balance_before": format_decimal(self.to_balance_before),
            "to_balance_after": format_decimal(self.to_balance_after),
            "is_warehouse_transfer": self.is_warehouse_transfer,
            "scrap_id": self.scrap_id,
            "scrap_quantity": format_decimal(self.scrap_quantity),
            "label_id": self.label_id,
            "label_remaining_before": format_decimal(self.label_remaining_before),
            "label_remaining_after": format_decimal(self.label_remaining_after),
            "warehouse_item_id": self.warehouse_item_id,
        }


def warehouse_op_number() -> int:
    return current_app.config.get("WAREHOUSE_OP_NUMBER", 999999)


def get_transfer(transfer_id: int, *, lock: bool = False) -> WipTransfer:
    query = db.session.query(WipTransfer).filter_by(id=transfer_id)
    if lock:
        query = lock_for_update(query)
    transfer = query.first()
    if transfer is None:
        raise NotFoundError(f"Transfer {transfer_id} not found")
    return transfer


def _validate_scrap(scrap: ScrapInput | None) -> ScrapInput | None:
    if scrap is None:
        return None
    quantity = to_positive_quantity(scrap.quantity, "Scrap")
    if scrap.scrap_type not in SCRAP_TYPES:
        raise ValidationError(f"scrap_type must be one of: {', '.join(sorted(SCRAP_TYPES))}")
    return ScrapInput(
        quantity=quantity,
        scrap_type=scrap.scrap_type,
        comment=normalize_comment(scrap.comment, "scrap comment"),
    )


def _apply_transfer(
    *,
    part_id: int,
    from_op_number: int,
    to_op_number: int,
    transfer_date: datetime | date,
    quantity: Decimal,
    comment: str | None,
    scrap: ScrapInput | None,
    label_id: int | None,
) -> TransferResult:
    amount = to_positive_quantity(quantity, "Transfer")
    scrap = _validate_scrap(scrap)
    comment = normalize_comment(comment)

    is_warehouse = to_op_number == warehouse_op_number()

    from_step = route_service.get_route_step(part_id, from_op_number)
    to_step = None
    if not is_warehouse:
        to_step = route_service.get_route_step(part_id, to_op_number)
        if to_op_number <= from_op_number:
            raise ConflictError(
                f"Operation {to_op_number:03d} must come after {from_op_number:03d} on the route"
            )

    from_key = BalanceKey(part_id, from_step.section_id, from_op_number)
    total_out = amount + (scrap.quantity if scrap else ZERO)
    balance_service.ensure_available(from_key, total_out)

    if label_id is not None:
        label = label_service.ensure_available(label_id, amount, part_id=part_id)
    else:
        label = None

    # All checks passed; mutate
    from_change = balance_service.decrement(from_key, total_out)

    to_change = None
    if to_step is not None:
        to_change = balance_service.upsert(BalanceKey(part_id, to_step.section_id, to_op_number), amount)

    transfer = WipTransfer(
        part_id=part_id,
        from_section_id=from_step.section_id,
        from_op_number=from_op_number,
        to_section_id=to_step.section_id if to_step else None,
        to_op_number=to_op_number,
        transfer_date=normalize_to_utc(transfer_date),
        quantity=amount,
        comment=comment,
        label_id=label_id,
        is_warehouse_transfer=is_warehouse,
        user_id=get_current_user_id(),
    )
    db.session.add(transfer)
    db.session.flush()

    transfer.operations.append(WipTransferOperation(
        section_id=from_step.section_id,
        op_number=from_op_number,
        operation_id=from_step.operation_id,
        part_route_id=from_step.id,
        quantity_change=-total_out,
    ))
    transfer.operations.append(WipTransferOperation(
        section_id=to_step.section_id if to_step else None,
        op_number=to_op_number,
        operation_id=to_step.operation_id if to_step else None,
        part_route_id=to_step.id if to_step else None,
        quantity_change=amount,
    ))

    scrap_row = None
    if scrap is not None:
        scrap_row = WipScrap(
            part_id=part_id,
            section_id=from_step.section_id,
            op_number=from_op_number,
            quantity=scrap.quantity,
            scrap_type=scrap.scrap_type,
            comment=scrap.comment,
            user_id=get_current_user_id(),
            recorded_at=utcnow(),
            transfer_id=transfer.id,
        )
        db.session.add(scrap_row)

    label_before = label_after = None
    if label is not None:
        label_before, label_after = label_service.consume(label.id, amount)

    warehouse_item = None
    if is_warehouse:
        warehouse_item = WarehouseItem(
            part_id=part_id,
            transfer_id=transfer.id,
            quantity=amount,
            added_at=transfer.transfer_date,
            comment=comment,
        )
        db.session.add(warehouse_item)
    db.session.flush()

    from_leg = TransferLeg(
        section_id=from_step.section_id,
        op_number=from_op_number,
        balance_before=from_change.quantity_before,
        balance_after=from_change.quantity_after,
        balance_id=from_change.balance.id,
        operation_id=from_step.operation_id,
        part_route_id=from_step.id,
    )
    if to_change is not None:
        to_leg = TransferLeg(
            section_id=to_step.section_id,
            op_number=to_op_number,
            balance_before=to_change.quantity_before,
            balance_after=to_change.quantity_after,
            balance_id=to_change.balance.id,
            operation_id=to_step.operation_id,
            part_route_id=to_step.id,
        )
    else:
        to_leg = TransferLeg(
            section_id=None,
            op_number=to_op_number,
            balance_before=ZERO,
            balance_after=amount,
            is_warehouse=True,
        )

    audit = record_transfer_audit(
        transfer=transfer,
        from_leg=from_leg,
        to_leg=to_leg,
        label=label,
        label_quantity_before=label_before,
        label_quantity_after=label_after,
        scrap=scrap,
    )

    return TransferResult(
        transfer_id=transfer.id,
        transaction_id=audit.transaction_id,
        part_id=part_id,
        from_section_id=transfer.from_section_id,
        from_op_number=from_op_number,
        to_section_id=transfer.to_section_id,
        to_op_number=to_op_number,
        quantity=amount,
        from_balance_before=from_leg.balance_before,
        from_balance_after=from_leg.balance_after,
        to_balance_before=to_leg.balance_before,
        to_balance_after=to_leg.balance_after,
        is_warehouse_transfer=is_warehouse,
        scrap_id=scrap_row.id if scrap_row else None,
        scrap_quantity=scrap.quantity if scrap else ZERO,
        label_id=label_id,
        label_remaining_before=label_before,
        label_remaining_after=label_after,
        warehouse_item_id=warehouse_item.id if warehouse_item else None,
    )


def add_transfer(
    part_id: int,
    from_op_number: int,
    to_op_number: int,
    transfer_date: datetime | date,
    quantity: Decimal,
    comment: str | None = None,
    scrap: ScrapInput | None = None,
    label_id: int | None = None,
) -> TransferResult:
    """
    Move quantity from one route operation of a part to a later one.

    Args:
        part_id: Part being moved
        from_op_number: Origin operation (its balance must exist)
        to_op_number: Destination operation, or the warehouse operation number
        transfer_date: Business date of the transfer
        quantity: Amount arriving at the destination (> 0)
        comment: Optional free text
        scrap: Optional scrap split off at the origin
        label_id: Optional label consumed by `quantity`

    Returns:
        TransferResult with before/after of both legs

    Raises:
        InvalidQuantityError: quantity or scrap quantity <= 0 after rounding
        ValidationError: Unknown scrap type
        NotFoundError: Operation not on the route, unknown label
        ConflictError: Destination not after origin, label of another part
        InsufficientBalanceError: Origin holds less than quantity + scrap
        InsufficientLabelQuantityError: Label has less remaining than quantity
    """
    def _op():
        return _apply_transfer(
            part_id=part_id,
            from_op_number=from_op_number,
            to_op_number=to_op_number,
            transfer_date=transfer_date,
            quantity=quantity,
            comment=comment,
            scrap=ScrapInput.from_value(scrap),
            label_id=label_id,
        )

    return run_with_retry(_op)


def add_transfers_batch(items: Iterable[dict]) -> list[TransferResult]:
    """Apply several transfers in one unit of work, in the given order."""
    items = list(items)

    def _op():
        return [
            _apply_transfer(
                part_id=item["part_id"],
                from_op_number=item["from_op_number"],
                to_op_number=item["to_op_number"],
                transfer_date=item["transfer_date"],
                quantity=item["quantity"],
                comment=item.get("comment"),
                scrap=ScrapInput.from_value(item.get("scrap")),
                label_id=item.get("label_id"),
            )
            for item in items
        ]

    return run_with_retry(_op)


def _revert(audit: TransferAudit) -> TransferAudit:
    if audit.is_reverted:
        raise AlreadyRevertedError(f"Transfer {audit.transfer_id} is already reverted")

    balances = {}
    for op in audit.operations:
        if op.is_warehouse:
            continue
        if op.balance_id is None:
            raise ConflictError(f"Transfer {audit.transfer_id} has a leg without a balance")
        balances[op.id] = balance_service.get_balance_by_id(op.balance_id, lock=True)

    label_delta = ZERO
    if audit.label_id is not None and audit.label_quantity_before is not None:
        label_delta = audit.label_quantity_before - audit.label_quantity_after
        if label_delta > 0:
            label_service.ensure_releasable(audit.label_id, label_delta)

    for op in audit.operations:
        if op.is_warehouse:
            items = db.session.query(WarehouseItem).filter_by(transfer_id=audit.transfer_id).all()
            for item in items:
                db.session.delete(item)
            continue
        balance = balances[op.id]
        op.balance_at_revert = balance.quantity
        balance_service.set_quantity(balance, op.balance_before)

    if label_delta > 0:
        label_service.release(audit.label_id, label_delta)

    audit.is_reverted = True
    audit.reverted_at = utcnow()
    db.session.flush()

    current_app.logger.info(
        "Reverted transfer %s (transaction %s, %s location(s))",
        audit.transfer_id,
        audit.transaction_id,
        len(audit.operations),
    )
    return audit


def revert_transfer(transfer_id: int) -> TransferAudit:
    """
    Undo a transfer by writing back every recorded balance_before.

    Returns:
        The TransferAudit, now flagged reverted

    Raises:
        NotFoundError: No audit for the transfer
        AlreadyRevertedError: Transfer was already reverted
        ConflictError: A label cannot take its quantity back
    """
    def _op():
        audit = get_transfer_audit(transfer_id, lock=True)
        return _revert(audit)

    return run_with_retry(_op)


def delete_transfer(transfer_id: int) -> TransferAudit:
    """
    Remove a transfer's business record, reverting it first when needed.

    The audit history is kept. Scrap rows produced by the transfer stay
    (scrap is never restored) but lose their link to it.
    """
    def _op():
        transfer = get_transfer(transfer_id, lock=True)
        audit = get_transfer_audit(transfer_id, lock=True)
        if not audit.is_reverted:
            _revert(audit)

        db.session.query(WipScrap).filter_by(transfer_id=transfer.id).update(
            {"transfer_id": None}, synchronize_session="fetch"
        )
        db.session.query(WarehouseItem).filter_by(transfer_id=transfer.id).update(
            {"transfer_id": None}, synchronize_session="fetch"
        )
        db.session.delete(transfer)
        db.session.flush()
        return audit

    return run_with_retry(_op)
