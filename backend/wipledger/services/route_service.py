# Overview: Read-only route lookups consumed by the ledger engines.

"""
Route collaborator.

Routes are catalog data owned outside the ledger. The engines only need three
questions answered:
- which section/operation does (part, op_number) belong to;
- what is the whole ordered route of a part;
- what is the ordered tail from an operation to the end of the route.

ORDERING: ascending numeric op_number. (part_id, op_number) is unique, so
the order is total.
"""
from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError
from ..models import PartRoute


def get_route(part_id: int) -> list[PartRoute]:
    return (
        db.session.query(PartRoute)
        .filter(PartRoute.part_id == part_id)
        .order_by(PartRoute.op_number.asc())
        .all()
    )


def find_route_step(part_id: int, op_number: int) -> PartRoute | None:
    return db.session.query(PartRoute).filter_by(part_id=part_id, op_number=op_number).first()


def get_route_step(part_id: int, op_number: int) -> PartRoute:
    """
    Resolve (part_id, op_number) to its route step.

    Raises:
        NotFoundError: If the operation is not on the part's route
    """
    step = find_route_step(part_id, op_number)
    if step is None:
        raise NotFoundError(f"Operation {op_number:03d} is not on the route of part {part_id}")
    return step


def get_tail_to_finish(part_id: int, from_op_number: int) -> list[PartRoute]:
    """Route steps with op_number >= from_op_number, ascending."""
    return (
        db.session.query(PartRoute)
        .filter(
            PartRoute.part_id == part_id,
            PartRoute.op_number >= from_op_number,
        )
        .order_by(PartRoute.op_number.asc())
        .all()
    )
