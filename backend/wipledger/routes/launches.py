# Overview: Flask API routes for WIP launches.

from flask import Blueprint, jsonify, request

from ..errors import LedgerError
from ..services import launch_service
from ..services.concurrency import run_and_commit
from ..validation import coerce_id, coerce_quantity, parse_business_date, parse_op_number, require_fields
from . import ledger_error_response, unexpected_error_response


launches_bp = Blueprint("launches", __name__, url_prefix="/api/wip/launches")


def _parse_launch(data) -> dict:
    data = require_fields(data, "part_id", "from_op_number", "launch_date", "quantity")
    return {
        "part_id": coerce_id(data["part_id"], "part_id"),
        "from_op_number": parse_op_number(data["from_op_number"], "from_op_number"),
        "launch_date": parse_business_date(data["launch_date"], "launch_date"),
        "quantity": coerce_quantity(data["quantity"]),
        "comment": data.get("comment"),
    }


@launches_bp.post("")
def add_launch_route():
    """
    Launch quantity from an operation and project the hours to finish.

    Request body:
    {
        "part_id": int,
        "from_op_number": str | int,
        "launch_date": str,         // ISO-8601
        "quantity": str | number,
        "comment": str (optional)
    }
    """
    try:
        params = _parse_launch(request.get_json(silent=True))
        result = run_and_commit(lambda: launch_service.add_launch(**params))
        return jsonify(result.to_dict()), 201

    except LedgerError as e:
        return ledger_error_response(e, "Launch")
    except Exception:
        return unexpected_error_response("add launch")


@launches_bp.post("/batch")
def add_launches_batch_route():
    """
    Launch several items at once; either all are applied or none.

    Request body:
    {
        "items": [ { ...same fields as POST /api/wip/launches... } ]
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), "items")
        if not isinstance(data["items"], list) or not data["items"]:
            return jsonify({"error": "items must be a non-empty list", "code": "validation_error"}), 400

        items = [_parse_launch(item) for item in data["items"]]
        results = run_and_commit(lambda: launch_service.add_launches_batch(items))
        return jsonify({"launches": [r.to_dict() for r in results]}), 201

    except LedgerError as e:
        return ledger_error_response(e, "Launch batch")
    except Exception:
        return unexpected_error_response("add launch batch")


@launches_bp.get("/<int:launch_id>")
def get_launch_route(launch_id: int):
    try:
        launch = launch_service.get_launch(launch_id)
        return jsonify({"launch": launch.to_dict()}), 200

    except LedgerError as e:
        return ledger_error_response(e, "Launch lookup")
    except Exception:
        return unexpected_error_response("load launch")


@launches_bp.delete("/<int:launch_id>")
def delete_launch_route(launch_id: int):
    try:
        launch_id = run_and_commit(lambda: launch_service.delete_launch(launch_id).id)
        return jsonify({"launch_id": launch_id, "deleted": True}), 200

    except LedgerError as e:
        return ledger_error_response(e, "Launch delete")
    except Exception:
        return unexpected_error_response("delete launch")
