from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import format_decimal


class Part(db.Model):
    """
    Manufactured part (catalog reference data).

    Catalog CRUD lives outside the ledger; rows are created by the CLI seed
    command or imported upstream. The ledger only looks parts up by id.
    """
    __tablename__ = "parts"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_parts_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Part id={self.id} code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "created_at": to_utc_z(self.created_at),
        }


class Section(db.Model):
    """Production section (shop floor area)."""
    __tablename__ = "sections"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(64), nullable=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code}


class Operation(db.Model):
    """Operation kind (turning, milling, ...)."""
    __tablename__ = "operations"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(64), nullable=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code}


class PartRoute(db.Model):
    """
    One step of a part's route.

    ORDERING: steps are ordered by the numeric op_number, ascending.
    (part_id, op_number) is unique, so ties cannot happen.
    """
    __tablename__ = "part_routes"
    __table_args__ = (
        db.UniqueConstraint("part_id", "op_number", name="uq_part_routes_part_op"),
        db.Index("ix_part_routes_part_op", "part_id", "op_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey("parts.id"), nullable=False, index=True)
    op_number = db.Column(db.Integer, nullable=False)
    operation_id = db.Column(db.Integer, db.ForeignKey("operations.id"), nullable=False)
    section_id = db.Column(db.Integer, db.ForeignKey("sections.id"), nullable=False, index=True)

    # Labor hours per unit for this step
    norm_hours = db.Column(db.Numeric(18, 4), nullable=False, default=0)

    part = db.relationship("Part", backref=db.backref("routes", lazy=True))
    operation = db.relationship("Operation")
    section = db.relationship("Section")

    def __repr__(self) -> str:
        return f"<PartRoute part_id={self.part_id} op={self.op_number} section_id={self.section_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "part_id": self.part_id,
            "op_number": self.op_number,
            "operation_id": self.operation_id,
            "section_id": self.section_id,
            "norm_hours": format_decimal(self.norm_hours),
        }
