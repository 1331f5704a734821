from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import format_decimal, format_op_number


# Stage item statuses
STAGE_STATUS_STAGED = "STAGED"
STAGE_STATUS_APPLIED = "APPLIED"
STAGE_STATUS_SKIPPED = "SKIPPED"


class WipBalanceCleanupJob(db.Model):
    """
    Staged bulk balance cleanup.

    LIFECYCLE:
    1. Staged (is_executed=False): preview computed, stage items snapshot the
       quantity of every matched balance. Nothing mutated.
    2. Executed (is_executed=True, terminal): matching stage items applied,
       drifted ones skipped.

    An unexecuted job is simply abandoned; no transition is needed.
    """
    __tablename__ = "wip_balance_cleanup_jobs"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)

    # Filter
    part_id = db.Column(db.Integer, db.ForeignKey("parts.id"), nullable=True)
    section_id = db.Column(db.Integer, db.ForeignKey("sections.id"), nullable=True)
    op_number = db.Column(db.Integer, nullable=True)
    min_quantity = db.Column(db.Numeric(18, 3), nullable=False, default=0)

    comment = db.Column(db.String(512), nullable=True)

    # Preview totals until execution, applied totals afterwards
    affected_count = db.Column(db.Integer, nullable=False, default=0)
    affected_quantity = db.Column(db.Numeric(18, 3), nullable=False, default=0)
    skipped_count = db.Column(db.Integer, nullable=False, default=0)

    is_executed = db.Column(db.Boolean, nullable=False, default=False, index=True)
    executed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    stage_items = db.relationship(
        "WipBalanceCleanupStageItem",
        backref="job",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="WipBalanceCleanupStageItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "part_id": self.part_id,
            "section_id": self.section_id,
            "op_number": format_op_number(self.op_number) if self.op_number is not None else None,
            "min_quantity": format_decimal(self.min_quantity),
            "comment": self.comment,
            "affected_count": self.affected_count,
            "affected_quantity": format_decimal(self.affected_quantity),
            "skipped_count": self.skipped_count,
            "is_executed": self.is_executed,
            "executed_at": to_utc_z(self.executed_at) if self.executed_at else None,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["stage_items"] = [item.to_dict() for item in self.stage_items]
        return data


class WipBalanceCleanupStageItem(db.Model):
    """Snapshot of one balance at preview time."""
    __tablename__ = "wip_balance_cleanup_stage_items"
    __table_args__ = (
        db.UniqueConstraint("job_id", "balance_id", name="uq_cleanup_stage_job_balance"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.Integer, db.ForeignKey("wip_balance_cleanup_jobs.id"), nullable=False, index=True)
    # No FK: a staged balance may disappear before execution; that item is then skipped
    balance_id = db.Column(db.Integer, nullable=False, index=True)
    previous_quantity = db.Column(db.Numeric(18, 3), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STAGE_STATUS_STAGED)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "balance_id": self.balance_id,
            "previous_quantity": format_decimal(self.previous_quantity),
            "status": self.status,
        }
