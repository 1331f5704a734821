# Overview: Flask API routes for balance corrections and bulk cleanup.

"""
Admin API routes.

Adjustments and cleanup rewrite balances directly, so they live apart from
the day-to-day receipt/transfer/launch routes.
"""
from flask import Blueprint, jsonify, request

from ..errors import LedgerError
from ..services import adjustment_service, cleanup_service
from ..services.balance_service import ZERO
from ..services.concurrency import run_and_commit
from ..validation import coerce_optional_id, coerce_quantity, parse_op_number, require_fields
from . import ledger_error_response, unexpected_error_response


admin_bp = Blueprint("wip_admin", __name__, url_prefix="/api/wip/admin")


@admin_bp.post("/balances/<int:balance_id>/adjust")
def adjust_balance_route(balance_id: int):
    """
    Set a balance to a new quantity.

    Request body:
    {
        "new_quantity": str | number,   // >= 0
        "comment": str (optional)
    }

    Returns:
        200: Adjusted (or unchanged, with adjustment_id null)
        400: Invalid quantity
        404: Unknown balance
    """
    try:
        data = require_fields(request.get_json(silent=True), "new_quantity")
        new_quantity = coerce_quantity(data["new_quantity"], "new_quantity")
        result = run_and_commit(
            lambda: adjustment_service.adjust_balance(balance_id, new_quantity, data.get("comment"))
        )
        return jsonify(result.to_dict()), 200

    except LedgerError as e:
        return ledger_error_response(e, "Balance adjustment")
    except Exception:
        return unexpected_error_response("adjust balance")


@admin_bp.post("/cleanup/preview")
def preview_cleanup_route():
    """
    Stage a bulk cleanup. No balance is changed.

    Request body (all optional):
    {
        "part_id": int,
        "section_id": int,
        "op_number": str | int,
        "min_quantity": str | number,
        "comment": str
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        op_number = data.get("op_number")
        min_quantity = data.get("min_quantity")
        filters = dict(
            part_id=coerce_optional_id(data.get("part_id"), "part_id"),
            section_id=coerce_optional_id(data.get("section_id"), "section_id"),
            op_number=parse_op_number(op_number) if op_number not in (None, "") else None,
            min_quantity=coerce_quantity(min_quantity, "min_quantity") if min_quantity is not None else ZERO,
            comment=data.get("comment"),
        )
        job = run_and_commit(lambda: cleanup_service.preview_cleanup(**filters))
        return jsonify({"job": job.to_dict(include_items=True)}), 201

    except LedgerError as e:
        return ledger_error_response(e, "Cleanup preview")
    except Exception:
        return unexpected_error_response("preview cleanup")


@admin_bp.get("/cleanup/<int:job_id>")
def get_cleanup_job_route(job_id: int):
    try:
        job = cleanup_service.get_cleanup_job(job_id)
        return jsonify({"job": job.to_dict(include_items=True)}), 200

    except LedgerError as e:
        return ledger_error_response(e, "Cleanup lookup")
    except Exception:
        return unexpected_error_response("load cleanup job")


@admin_bp.post("/cleanup/<int:job_id>/execute")
def execute_cleanup_route(job_id: int):
    """
    Execute a staged cleanup.

    Request body:
    {
        "confirmed": true
    }

    Returns:
        200: Executed
        400: Not confirmed
        404: Unknown job
        409: Already executed (body carries the first result)
    """
    try:
        data = request.get_json(silent=True) or {}
        confirmed = data.get("confirmed") is True
        result = run_and_commit(lambda: cleanup_service.execute_cleanup(job_id, confirmed))
        return jsonify(result.to_dict()), 200

    except LedgerError as e:
        return ledger_error_response(e, "Cleanup execute")
    except Exception:
        return unexpected_error_response("execute cleanup")
