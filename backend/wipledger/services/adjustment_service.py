# Overview: Manual correction of a single balance.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..errors import InvalidQuantityError
from ..models import WipBalance, WipBalanceAdjustment
from ..time_utils import to_utc_z, utcnow
from ..validation import format_decimal, normalize_comment, to_quantity
from . import balance_service
from .concurrency import run_with_retry
from .current_user import get_current_user_id


@dataclass(frozen=True)
class AdjustmentResult:
    balance_id: int
    previous_quantity: Decimal
    new_quantity: Decimal
    delta: Decimal
    adjustment_id: int | None
    created_at: datetime | None = None

    @property
    def changed(self) -> bool:
        return self.adjustment_id is not None

    def to_dict(self) -> dict:
        return {
            "balance_id": self.balance_id,
            "previous_quantity": format_decimal(self.previous_quantity),
            "new_quantity": format_decimal(self.new_quantity),
            "delta": format_decimal(self.delta),
            "adjustment_id": self.adjustment_id,
            "created_at": to_utc_z(self.created_at),
        }


def write_adjustment(balance: WipBalance, new_quantity: Decimal, comment: str | None) -> WipBalanceAdjustment:
    """Overwrite the balance and record the correction. Caller validates first."""
    change = balance_service.set_quantity(balance, new_quantity)
    adjustment = WipBalanceAdjustment(
        balance_id=balance.id,
        part_id=balance.part_id,
        section_id=balance.section_id,
        op_number=balance.op_number,
        previous_quantity=change.quantity_before,
        new_quantity=change.quantity_after,
        delta=change.delta,
        comment=comment,
        user_id=get_current_user_id(),
        created_at=utcnow(),
    )
    db.session.add(adjustment)
    db.session.flush()
    return adjustment


def adjust_balance(balance_id: int, new_quantity: Decimal, comment: str | None = None) -> AdjustmentResult:
    """
    Set a balance to an operator-supplied quantity.

    Setting the current value again is a no-op: nothing is written and the
    result has delta 0 and no adjustment id.

    Args:
        balance_id: Balance to correct
        new_quantity: Target quantity (>= 0)
        comment: Optional reason

    Returns:
        AdjustmentResult

    Raises:
        InvalidQuantityError: new_quantity < 0
        NotFoundError: Unknown balance
    """
    def _op():
        if new_quantity is None or new_quantity < 0:
            raise InvalidQuantityError("Balance quantity cannot be negative")
        target = to_quantity(Decimal(new_quantity))
        note = normalize_comment(comment)

        balance = balance_service.get_balance_by_id(balance_id, lock=True)
        previous = balance.quantity
        if previous == target:
            return AdjustmentResult(
                balance_id=balance.id,
                previous_quantity=previous,
                new_quantity=previous,
                delta=Decimal("0"),
                adjustment_id=None,
            )

        adjustment = write_adjustment(balance, target, note)
        return AdjustmentResult(
            balance_id=balance.id,
            previous_quantity=adjustment.previous_quantity,
            new_quantity=adjustment.new_quantity,
            delta=adjustment.delta,
            adjustment_id=adjustment.id,
            created_at=adjustment.created_at,
        )

    return run_with_retry(_op)


def list_adjustments(balance_id: int) -> list[WipBalanceAdjustment]:
    return (
        db.session.query(WipBalanceAdjustment)
        .filter(WipBalanceAdjustment.balance_id == balance_id)
        .order_by(WipBalanceAdjustment.id.asc())
        .all()
    )
