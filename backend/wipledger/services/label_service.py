# Overview: Service-layer operations for lot labels (consume/release/issue).

"""
LabelStore

INVARIANTS:
- 0 <= remaining_quantity <= quantity
- is_assigned is monotonic: consume sets it, release never clears it.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..errors import ConflictError, InsufficientLabelQuantityError, InvalidQuantityError, NotFoundError
from ..models import Part, WipLabel
from ..time_utils import normalize_to_utc
from ..validation import format_decimal, to_quantity
from .concurrency import lock_for_update, run_with_retry


LABEL_NUMBER_WIDTH = 5


def get_label(label_id: int, *, lock: bool = False) -> WipLabel:
    query = db.session.query(WipLabel).filter_by(id=label_id)
    if lock:
        query = lock_for_update(query)
    label = query.first()
    if label is None:
        raise NotFoundError(f"Label {label_id} not found")
    return label


def ensure_available(label_id: int, amount: Decimal, *, part_id: int | None = None) -> WipLabel:
    """
    Validate that `amount` can be consumed from the label, without mutating.

    Raises:
        NotFoundError: Unknown label
        ConflictError: Label belongs to another part
        InsufficientLabelQuantityError: amount > remaining_quantity
    """
    label = get_label(label_id, lock=True)
    if part_id is not None and label.part_id != part_id:
        raise ConflictError(f"Label {label.number} belongs to part {label.part_id}, not {part_id}")
    if amount > label.remaining_quantity:
        raise InsufficientLabelQuantityError(
            f"Label {label.number} has {format_decimal(label.remaining_quantity)} remaining, "
            f"requested {format_decimal(amount)}"
        )
    return label


def consume(label_id: int, amount: Decimal) -> tuple[Decimal, Decimal]:
    """
    Take `amount` from the label's remaining quantity.

    Returns:
        (previous_remaining, new_remaining)

    Raises:
        InvalidQuantityError, NotFoundError, InsufficientLabelQuantityError
    """
    if amount is None or amount <= 0:
        raise InvalidQuantityError("Label quantity to consume must be greater than zero")
    label = ensure_available(label_id, amount)
    previous = label.remaining_quantity
    label.remaining_quantity = previous - to_quantity(Decimal(amount))
    label.is_assigned = True
    db.session.flush()
    return previous, label.remaining_quantity


def ensure_releasable(label_id: int, amount: Decimal) -> WipLabel:
    """
    Raises:
        NotFoundError: Unknown label
        ConflictError: remaining_quantity + amount would exceed the issued quantity
    """
    label = get_label(label_id, lock=True)
    if label.remaining_quantity + amount > label.quantity:
        raise ConflictError(
            f"Releasing {format_decimal(amount)} would exceed the issued quantity of label {label.number}"
        )
    return label


def release(label_id: int, amount: Decimal) -> tuple[Decimal, Decimal]:
    """
    Give `amount` back to the label (inverse of consume, used by delete/revert).

    is_assigned is left as is. The remaining quantity never exceeds the
    issued quantity.
    """
    if amount is None or amount <= 0:
        raise InvalidQuantityError("Label quantity to release must be greater than zero")
    label = ensure_releasable(label_id, amount)
    previous = label.remaining_quantity
    label.remaining_quantity = previous + to_quantity(Decimal(amount))
    db.session.flush()
    return previous, label.remaining_quantity


def _next_label_number(label_year: int) -> str:
    max_number = (
        db.session.query(func.max(WipLabel.number))
        .filter(WipLabel.label_year == label_year)
        .scalar()
    )
    next_value = int(max_number) + 1 if max_number and max_number.isdigit() else 1
    return str(next_value).zfill(LABEL_NUMBER_WIDTH)


def issue_label(
    *,
    part_id: int,
    label_date: datetime | date,
    quantity: Decimal,
    number: str | None = None,
) -> WipLabel:
    """
    Issue a new label for a part.

    Numbers are unique within the label year; when omitted the next
    zero-padded number of that year is allocated.

    Raises:
        InvalidQuantityError: quantity <= 0
        NotFoundError: Unknown part
        ConflictError: Number already used in that year
    """
    def _op():
        if quantity is None or quantity <= 0:
            raise InvalidQuantityError("Label quantity must be greater than zero")

        if db.session.query(Part).filter_by(id=part_id).first() is None:
            raise NotFoundError(f"Part {part_id} not found")

        issued_at = normalize_to_utc(label_date)
        label_year = issued_at.year

        label_number = number.strip() if number else _next_label_number(label_year)
        if label_number.isdigit():
            label_number = label_number.zfill(LABEL_NUMBER_WIDTH)

        duplicate = db.session.query(WipLabel).filter_by(label_year=label_year, number=label_number).first()
        if duplicate:
            raise ConflictError(f"Label number {label_number} already exists for {label_year}")

        amount = to_quantity(Decimal(quantity))
        label = WipLabel(
            part_id=part_id,
            label_date=issued_at,
            label_year=label_year,
            number=label_number,
            quantity=amount,
            remaining_quantity=amount,
            is_assigned=False,
        )
        db.session.add(label)
        db.session.flush()
        return label

    return run_with_retry(_op)
