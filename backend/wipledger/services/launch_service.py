# Overview: Launches take quantity out of an origin balance and forecast labor to finish.

"""
LaunchEngine

Only the origin balance is mutated. The WipLaunchOperation rows are a
projection of the hours still needed along the route tail
(op_number >= from_op_number, ascending):

    hours = norm_hours * quantity
    sum_hours_to_finish = sum(hours)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from ..extensions import db
from ..errors import ConflictError, NotFoundError
from ..models import WipLaunch, WipLaunchOperation
from ..time_utils import normalize_to_utc
from ..validation import format_decimal, format_op_number, normalize_comment, to_hours, to_positive_quantity
from . import balance_service, route_service
from .balance_service import BalanceKey
from .concurrency import lock_for_update, run_with_retry
from .current_user import get_current_user_id


@dataclass(frozen=True)
class LaunchResult:
    launch_id: int
    part_id: int
    section_id: int
    from_op_number: int
    quantity: Decimal
    sum_hours_to_finish: Decimal
    balance_before: Decimal
    balance_after: Decimal
    operations: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "launch_id": self.launch_id,
            "part_id": self.part_id,
            "section_id": self.section_id,
            "from_op_number": format_op_number(self.from_op_number),
            "quantity": format_decimal(self.quantity),
            "sum_hours_to_finish": format_decimal(self.sum_hours_to_finish),
            "balance_before": format_decimal(self.balance_before),
            "balance_after": format_decimal(self.balance_after),
            "operations": self.operations,
        }


def get_launch(launch_id: int, *, lock: bool = False) -> WipLaunch:
    query = db.session.query(WipLaunch).filter_by(id=launch_id)
    if lock:
        query = lock_for_update(query)
    launch = query.first()
    if launch is None:
        raise NotFoundError(f"Launch {launch_id} not found")
    return launch


def _apply_launch(
    *,
    part_id: int,
    from_op_number: int,
    launch_date: datetime | date,
    quantity: Decimal,
    comment: str | None,
) -> LaunchResult:
    amount = to_positive_quantity(quantity, "Launch")
    note = normalize_comment(comment)

    origin = route_service.get_route_step(part_id, from_op_number)
    key = BalanceKey(part_id, origin.section_id, from_op_number)
    balance_service.ensure_available(key, amount)

    tail = route_service.get_tail_to_finish(part_id, from_op_number)
    if not tail:
        raise ConflictError(f"Part {part_id} has no route steps from operation {from_op_number:03d}")

    change = balance_service.decrement(key, amount)

    launch = WipLaunch(
        part_id=part_id,
        section_id=origin.section_id,
        from_op_number=from_op_number,
        launch_date=normalize_to_utc(launch_date),
        quantity=amount,
        comment=note,
        user_id=get_current_user_id(),
    )

    total_hours = Decimal("0")
    for step in tail:
        norm_hours = Decimal(step.norm_hours or 0)
        hours = to_hours(norm_hours * amount)
        total_hours += hours
        launch.operations.append(WipLaunchOperation(
            op_number=step.op_number,
            operation_id=step.operation_id,
            section_id=step.section_id,
            part_route_id=step.id,
            quantity=amount,
            hours=hours,
            norm_hours=norm_hours,
        ))
    launch.sum_hours_to_finish = to_hours(total_hours)

    db.session.add(launch)
    db.session.flush()

    return LaunchResult(
        launch_id=launch.id,
        part_id=part_id,
        section_id=origin.section_id,
        from_op_number=from_op_number,
        quantity=amount,
        sum_hours_to_finish=launch.sum_hours_to_finish,
        balance_before=change.quantity_before,
        balance_after=change.quantity_after,
        operations=[op.to_dict() for op in launch.operations],
    )


def add_launch(
    part_id: int,
    from_op_number: int,
    launch_date: datetime | date,
    quantity: Decimal,
    comment: str | None = None,
) -> LaunchResult:
    """
    Launch quantity from (part, from_op_number) and project hours to finish.

    Args:
        part_id: Part being launched
        from_op_number: Origin operation; its section comes from the route
        launch_date: Business date of the launch
        quantity: Amount launched (> 0 at the ledger's quantity scale)
        comment: Optional free text

    Returns:
        LaunchResult with the projection and the origin balance before/after

    Raises:
        InvalidQuantityError: quantity <= 0 after rounding
        NotFoundError: Operation not on the route
        InsufficientBalanceError: Origin holds less than quantity
        ConflictError: Route tail is empty
    """
    def _op():
        return _apply_launch(
            part_id=part_id,
            from_op_number=from_op_number,
            launch_date=launch_date,
            quantity=quantity,
            comment=comment,
        )

    return run_with_retry(_op)


def add_launches_batch(items: Iterable[dict]) -> list[LaunchResult]:
    """
    Apply several launches in one unit of work, in the given order.

    Later items see the origin balances left by earlier ones. Any failure
    raises before the caller commits, so the whole batch is rolled back.
    """
    items = list(items)

    def _op():
        return [
            _apply_launch(
                part_id=item["part_id"],
                from_op_number=item["from_op_number"],
                launch_date=item["launch_date"],
                quantity=item["quantity"],
                comment=item.get("comment"),
            )
            for item in items
        ]

    return run_with_retry(_op)

def delete_launch(launch_id: int) -> WipLaunch:
    """
    Return a launch's quantity to its origin balance and delete it.

    Raises:
        NotFoundError: Unknown launch
        ConflictError: Origin balance row no longer exists
    """
    def _op():
        launch = get_launch(launch_id, lock=True)
        key = BalanceKey(launch.part_id, launch.section_id, launch.from_op_number)
        if balance_service.lock_balance(key) is None:
            raise ConflictError(f"Cannot delete launch {launch_id}: balance missing for {key.describe()}")

        balance_service.increment(key, launch.quantity)
        db.session.delete(launch)
        db.session.flush()
        return launch

    return run_with_retry(_op)
