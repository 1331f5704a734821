# Overview: Service-layer operations for WIP balances; every quantity mutation goes through here.

"""
BalanceStore

Owns the per-(part, section, operation) quantity record.

INVARIANTS:
- quantity >= 0 at all times; decrement refuses to go below zero.
- Amounts passed to increment/decrement/upsert are strictly positive.
- Reads that precede a write take a row lock (lock_for_update).
- No cross-call state: every function runs inside the caller's unit of work
  and only flushes, never commits.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..extensions import db
from ..errors import InsufficientBalanceError, InvalidQuantityError, NotFoundError
from ..models import WipBalance
from ..validation import format_decimal, to_quantity
from .concurrency import lock_for_update


ZERO = Decimal("0")


@dataclass(frozen=True)
class BalanceKey:
    part_id: int
    section_id: int
    op_number: int

    def describe(self) -> str:
        return f"part {self.part_id}, section {self.section_id}, operation {self.op_number:03d}"


@dataclass(frozen=True)
class BalanceChange:
    """Before/after snapshot of one balance mutation."""
    balance: WipBalance
    quantity_before: Decimal
    quantity_after: Decimal

    @property
    def delta(self) -> Decimal:
        return self.quantity_after - self.quantity_before


def key_of(balance: WipBalance) -> BalanceKey:
    return BalanceKey(balance.part_id, balance.section_id, balance.op_number)


def find_balance(key: BalanceKey, *, lock: bool = False) -> WipBalance | None:
    query = db.session.query(WipBalance).filter_by(
        part_id=key.part_id,
        section_id=key.section_id,
        op_number=key.op_number,
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_balance(key: BalanceKey, *, lock: bool = False) -> WipBalance:
    """
    Raises:
        NotFoundError: If no balance row exists at the key
    """
    balance = find_balance(key, lock=lock)
    if balance is None:
        raise NotFoundError(f"No WIP balance for {key.describe()}")
    return balance


def lock_balance(key: BalanceKey) -> WipBalance | None:
    """SELECT ... FOR UPDATE on the balance at key (None when absent)."""
    return find_balance(key, lock=True)


def get_balance_by_id(balance_id: int, *, lock: bool = False) -> WipBalance:
    query = db.session.query(WipBalance).filter_by(id=balance_id)
    if lock:
        query = lock_for_update(query)
    balance = query.first()
    if balance is None:
        raise NotFoundError(f"WIP balance {balance_id} not found")
    return balance


def current_quantity(key: BalanceKey) -> Decimal:
    """Quantity at the key, zero when the row does not exist yet."""
    balance = find_balance(key)
    return balance.quantity if balance is not None else ZERO


def _require_positive(amount: Decimal) -> Decimal:
    if amount is None or amount <= 0:
        raise InvalidQuantityError("Quantity must be greater than zero")
    return to_quantity(Decimal(amount))


def ensure_available(key: BalanceKey, amount: Decimal, *, balance: WipBalance | None = None) -> WipBalance:
    """
    Validate that a decrement of `amount` at `key` would succeed, without mutating.

    Raises:
        InsufficientBalanceError: If the row is missing or holds less than amount
    """
    amount = _require_positive(amount)
    if balance is None:
        balance = find_balance(key, lock=True)
    if balance is None:
        raise InsufficientBalanceError(f"No WIP balance for {key.describe()}")
    if balance.quantity - amount < 0:
        raise InsufficientBalanceError(
            f"Insufficient WIP balance for {key.describe()}. "
            f"Available: {format_decimal(balance.quantity)}, requested: {format_decimal(amount)}"
        )
    return balance


def increment(key: BalanceKey, amount: Decimal) -> BalanceChange:
    """
    Add `amount` to an existing balance.

    Raises:
        NotFoundError: If the balance row does not exist (use upsert)
    """
    amount = _require_positive(amount)
    balance = get_balance(key, lock=True)
    before = balance.quantity
    balance.quantity = before + amount
    db.session.flush()
    return BalanceChange(balance, before, balance.quantity)


def decrement(key: BalanceKey, amount: Decimal) -> BalanceChange:
    """
    Remove `amount` from a balance.

    Raises:
        InsufficientBalanceError: If current - amount < 0 (or no row exists)
    """
    balance = ensure_available(key, amount)
    amount = to_quantity(Decimal(amount))
    before = balance.quantity
    balance.quantity = before - amount
    db.session.flush()
    return BalanceChange(balance, before, balance.quantity)


def upsert(key: BalanceKey, amount: Decimal) -> BalanceChange:
    """Create the row at zero if absent, then increment it by `amount`."""
    amount = _require_positive(amount)
    balance = find_balance(key, lock=True)
    if balance is None:
        balance = WipBalance(
            part_id=key.part_id,
            section_id=key.section_id,
            op_number=key.op_number,
            quantity=ZERO,
        )
        db.session.add(balance)
    before = balance.quantity
    balance.quantity = before + amount
    db.session.flush()
    return BalanceChange(balance, before, balance.quantity)


def set_quantity(balance: WipBalance, value: Decimal) -> BalanceChange:
    """
    Overwrite a balance with a recorded/target value (revert, adjustment, cleanup).

    Raises:
        InvalidQuantityError: If value is negative
    """
    if value is None or value < 0:
        raise InvalidQuantityError("Balance quantity cannot be negative")
    before = balance.quantity
    balance.quantity = to_quantity(Decimal(value))
    db.session.flush()
    return BalanceChange(balance, before, balance.quantity)
