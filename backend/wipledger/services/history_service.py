# Overview: Rebuild a balance's quantity from the ledger trail.

"""
Balance history.

Every change to a WipBalance leaves exactly one trace:
- receipt create/delete/revert: ReceiptAudit (new_balance - previous_balance)
- transfer: TransferAuditOperation (balance_after - balance_before), and on
  revert (balance_before - balance_at_revert)
- launch: the existing WipLaunch row (-quantity); delete removes the row and
  gives the quantity back
- manual adjustment and bulk cleanup: WipBalanceAdjustment (delta)

Summing these from zero must land on the stored quantity.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import (
    ReceiptAudit,
    TransferAudit,
    TransferAuditOperation,
    WipBalance,
    WipBalanceAdjustment,
    WipLaunch,
)
from ..time_utils import normalize_to_utc, to_utc_z
from ..validation import format_decimal
from .balance_service import ZERO, get_balance_by_id


@dataclass(frozen=True)
class HistoryEntry:
    kind: str
    occurred_at: datetime | None
    delta: Decimal
    reference_id: int | str | None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "occurred_at": to_utc_z(self.occurred_at),
            "delta": format_decimal(self.delta),
            "reference_id": self.reference_id,
        }


def get_balance_history(balance_id: int) -> list[HistoryEntry]:
    """
    All recorded changes of a balance, oldest first.

    Raises:
        NotFoundError: Unknown balance
    """
    balance = get_balance_by_id(balance_id)
    entries: list[HistoryEntry] = []

    receipt_rows = (
        db.session.query(ReceiptAudit)
        .filter(ReceiptAudit.balance_id == balance.id)
        .order_by(ReceiptAudit.id.asc())
        .all()
    )
    for row in receipt_rows:
        entries.append(HistoryEntry(
            kind=f"receipt.{row.action.lower()}",
            occurred_at=row.created_at,
            delta=row.new_balance - row.previous_balance,
            reference_id=row.receipt_id,
        ))

    transfer_rows = (
        db.session.query(TransferAuditOperation, TransferAudit)
        .join(TransferAudit, TransferAudit.id == TransferAuditOperation.transfer_audit_id)
        .filter(TransferAuditOperation.balance_id == balance.id)
        .order_by(TransferAuditOperation.id.asc())
        .all()
    )
    for op, audit in transfer_rows:
        entries.append(HistoryEntry(
            kind="transfer",
            occurred_at=audit.created_at,
            delta=op.balance_after - op.balance_before,
            reference_id=audit.transfer_id,
        ))
        if op.balance_at_revert is not None:
            entries.append(HistoryEntry(
                kind="transfer.reverted",
                occurred_at=audit.reverted_at,
                delta=op.balance_before - op.balance_at_revert,
                reference_id=audit.transfer_id,
            ))

    launches = (
        db.session.query(WipLaunch)
        .filter(
            WipLaunch.part_id == balance.part_id,
            WipLaunch.section_id == balance.section_id,
            WipLaunch.from_op_number == balance.op_number,
        )
        .order_by(WipLaunch.id.asc())
        .all()
    )
    for launch in launches:
        entries.append(HistoryEntry(
            kind="launch",
            occurred_at=launch.created_at,
            delta=-launch.quantity,
            reference_id=launch.id,
        ))

    adjustments = (
        db.session.query(WipBalanceAdjustment)
        .filter(WipBalanceAdjustment.balance_id == balance.id)
        .order_by(WipBalanceAdjustment.id.asc())
        .all()
    )
    for adjustment in adjustments:
        entries.append(HistoryEntry(
            kind="adjustment",
            occurred_at=adjustment.created_at,
            delta=adjustment.delta,
            reference_id=adjustment.id,
        ))

    entries.sort(key=lambda e: normalize_to_utc(e.occurred_at) if e.occurred_at else datetime.max)
    return entries


def reconstruct_balance(balance_id: int) -> Decimal:
    """Quantity implied by the ledger trail of a balance."""
    return sum((entry.delta for entry in get_balance_history(balance_id)), ZERO)


def find_conservation_mismatches() -> list[tuple[WipBalance, Decimal]]:
    """Balances whose stored quantity differs from the reconstructed one."""
    mismatches = []
    for balance in db.session.query(WipBalance).order_by(WipBalance.id.asc()).all():
        expected = reconstruct_balance(balance.id)
        if expected != balance.quantity:
            mismatches.append((balance, expected))
    return mismatches
