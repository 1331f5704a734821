# Overview: Two-phase bulk balance cleanup (preview, then confirmed execute).

"""
CleanupStagingJob

PREVIEW:
- Selects balances with quantity > 0 and quantity >= min_quantity matching
  the optional part/section/op filter.
- Persists one stage item per balance with the quantity seen. Nothing else
  is touched.

EXECUTE:
- Requires confirmed=True and runs at most once per job.
- Re-reads every staged balance under lock. An item whose balance vanished
  or whose quantity no longer equals the staged snapshot is SKIPPED.
- Applied items are set to the cleanup target (zero, or the job's
  min_quantity floor when WIP_CLEANUP_TARGET = "floor") through an
  adjustment tagged BULK-CLEANUP:<job id>.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..errors import AlreadyExecutedError, InvalidQuantityError, NotConfirmedError, NotFoundError
from ..models import WipBalance, WipBalanceCleanupJob, WipBalanceCleanupStageItem
from ..models.cleanup import STAGE_STATUS_APPLIED, STAGE_STATUS_SKIPPED, STAGE_STATUS_STAGED
from ..time_utils import to_utc_z, utcnow
from ..validation import format_decimal, normalize_comment, to_quantity
from .adjustment_service import write_adjustment
from .balance_service import ZERO
from .concurrency import lock_for_update, run_with_retry
from .current_user import get_current_user_id


CLEANUP_TAG = "BULK-CLEANUP"
CLEANUP_TARGET_ZERO = "zero"
CLEANUP_TARGET_FLOOR = "floor"


@dataclass(frozen=True)
class CleanupResult:
    job_id: int
    applied_count: int
    skipped_count: int
    affected_quantity: Decimal
    executed_at: datetime | None
    skipped_balance_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "applied_count": self.applied_count,
            "skipped_count": self.skipped_count,
            "affected_quantity": format_decimal(self.affected_quantity),
            "executed_at": to_utc_z(self.executed_at),
            "skipped_balance_ids": self.skipped_balance_ids,
        }


def _cleanup_target(job: WipBalanceCleanupJob) -> Decimal:
    mode = current_app.config.get("WIP_CLEANUP_TARGET", CLEANUP_TARGET_ZERO)
    if mode == CLEANUP_TARGET_FLOOR:
        return job.min_quantity
    return ZERO


def cleanup_tag(job_id: int) -> str:
    return f"{CLEANUP_TAG}:{job_id}"


def _result_of(job: WipBalanceCleanupJob) -> CleanupResult:
    return CleanupResult(
        job_id=job.id,
        applied_count=job.affected_count,
        skipped_count=job.skipped_count,
        affected_quantity=job.affected_quantity,
        executed_at=job.executed_at,
        skipped_balance_ids=[
            item.balance_id for item in job.stage_items if item.status == STAGE_STATUS_SKIPPED
        ],
    )


def get_cleanup_job(job_id: int, *, lock: bool = False) -> WipBalanceCleanupJob:
    query = db.session.query(WipBalanceCleanupJob).filter_by(id=job_id)
    if lock:
        query = lock_for_update(query)
    job = query.first()
    if job is None:
        raise NotFoundError(f"Cleanup job {job_id} not found")
    return job


def preview_cleanup(
    part_id: int | None = None,
    section_id: int | None = None,
    op_number: int | None = None,
    min_quantity: Decimal = ZERO,
    comment: str | None = None,
) -> WipBalanceCleanupJob:
    """
    Stage a cleanup job without mutating any balance.

    Returns:
        The staged WipBalanceCleanupJob with its stage items

    Raises:
        InvalidQuantityError: min_quantity < 0
    """
    def _op():
        if min_quantity is None or min_quantity < 0:
            raise InvalidQuantityError("min_quantity cannot be negative")
        floor = to_quantity(Decimal(min_quantity))
        note = normalize_comment(comment)

        query = db.session.query(WipBalance).filter(
            WipBalance.quantity > 0,
            WipBalance.quantity >= floor,
        )
        if part_id is not None:
            query = query.filter(WipBalance.part_id == part_id)
        if section_id is not None:
            query = query.filter(WipBalance.section_id == section_id)
        if op_number is not None:
            query = query.filter(WipBalance.op_number == op_number)
        balances = query.order_by(WipBalance.id.asc()).all()

        job = WipBalanceCleanupJob(
            part_id=part_id,
            section_id=section_id,
            op_number=op_number,
            min_quantity=floor,
            comment=note,
            is_executed=False,
            skipped_count=0,
            user_id=get_current_user_id(),
            created_at=utcnow(),
        )
        target = _cleanup_target(job)
        job.affected_count = len(balances)
        job.affected_quantity = sum((b.quantity - target for b in balances), ZERO)
        for balance in balances:
            job.stage_items.append(WipBalanceCleanupStageItem(
                balance_id=balance.id,
                previous_quantity=balance.quantity,
                status=STAGE_STATUS_STAGED,
            ))

        db.session.add(job)
        db.session.flush()
        return job

    return run_with_retry(_op)


def execute_cleanup(job_id: int, confirmed: bool) -> CleanupResult:
    """
    Apply a staged cleanup job.

    Returns:
        CleanupResult with applied/skipped counts

    Raises:
        NotFoundError: Unknown job
        AlreadyExecutedError: Job already executed (carries the first result)
        NotConfirmedError: confirmed is not True
    """
    def _op():
        job = get_cleanup_job(job_id, lock=True)
        if job.is_executed:
            raise AlreadyExecutedError(f"Cleanup job {job_id} was already executed", result=_result_of(job))
        if confirmed is not True:
            raise NotConfirmedError(f"Cleanup job {job_id} must be confirmed before execution")

        target = _cleanup_target(job)
        tag = cleanup_tag(job.id)
        note = f"{tag} {job.comment}" if job.comment else tag

        applied = 0
        skipped = 0
        removed = ZERO
        for item in job.stage_items:
            balance = lock_for_update(db.session.query(WipBalance).filter_by(id=item.balance_id)).first()
            if balance is None or balance.quantity != item.previous_quantity:
                item.status = STAGE_STATUS_SKIPPED
                skipped += 1
                continue
            if balance.quantity != target:
                write_adjustment(balance, target, note)
                removed += item.previous_quantity - target
            item.status = STAGE_STATUS_APPLIED
            applied += 1

        job.is_executed = True
        job.executed_at = utcnow()
        job.affected_count = applied
        job.affected_quantity = removed
        job.skipped_count = skipped
        db.session.flush()

        current_app.logger.info(
            "Executed cleanup job %s: %s applied, %s skipped, %s removed",
            job.id,
            applied,
            skipped,
            format_decimal(removed),
        )
        return _result_of(job)

    return run_with_retry(_op)
