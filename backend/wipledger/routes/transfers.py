# Overview: Flask API routes for WIP transfers; parses input and returns JSON responses.

"""
Transfer API routes.
"""
from flask import Blueprint, jsonify, request

from ..errors import LedgerError, ValidationError
from ..services import audit_service, transfer_service
from ..services.concurrency import run_and_commit
from ..services.transfer_service import ScrapInput
from ..validation import (
    coerce_id,
    coerce_optional_id,
    coerce_quantity,
    parse_business_date,
    parse_op_number,
    require_fields,
)
from . import ledger_error_response, unexpected_error_response


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/wip/transfers")


def _parse_scrap(value):
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValidationError("scrap must be an object")
    value = require_fields(value, "quantity", "scrap_type")
    return ScrapInput(
        quantity=coerce_quantity(value["quantity"], "scrap.quantity"),
        scrap_type=value["scrap_type"],
        comment=value.get("comment"),
    )


def _parse_transfer(data) -> dict:
    data = require_fields(data, "part_id", "from_op_number", "to_op_number", "transfer_date", "quantity")
    return {
        "part_id": coerce_id(data["part_id"], "part_id"),
        "from_op_number": parse_op_number(data["from_op_number"], "from_op_number"),
        "to_op_number": parse_op_number(data["to_op_number"], "to_op_number"),
        "transfer_date": parse_business_date(data["transfer_date"], "transfer_date"),
        "quantity": coerce_quantity(data["quantity"]),
        "comment": data.get("comment"),
        "scrap": _parse_scrap(data.get("scrap")),
        "label_id": coerce_optional_id(data.get("label_id"), "label_id"),
    }


@transfers_bp.post("")
def add_transfer_route():
    """
    Move quantity between two operations of a part.

    Request body:
    {
        "part_id": int,
        "from_op_number": str | int,
        "to_op_number": str | int,          // warehouse operation sends to stock
        "transfer_date": str,               // ISO-8601
        "quantity": str | number,
        "comment": str (optional),
        "label_id": int (optional),
        "scrap": {                          // optional
            "quantity": str | number,
            "scrap_type": "Technological" | "EmployeeFault",
            "comment": str (optional)
        }
    }

    Returns:
        201: Transfer created
        400: Invalid request
        404: Unknown route step or label
        409: Insufficient balance, label conflict, bad direction
    """
    try:
        params = _parse_transfer(request.get_json(silent=True))
        result = run_and_commit(lambda: transfer_service.add_transfer(**params))
        return jsonify(result.to_dict()), 201

    except LedgerError as e:
        return ledger_error_response(e, "Transfer")
    except Exception:
        return unexpected_error_response("add transfer")


@transfers_bp.post("/batch")
def add_transfers_batch_route():
    try:
        data = require_fields(request.get_json(silent=True), "items")
        if not isinstance(data["items"], list) or not data["items"]:
            return jsonify({"error": "items must be a non-empty list", "code": "validation_error"}), 400

        items = [_parse_transfer(item) for item in data["items"]]
        results = run_and_commit(lambda: transfer_service.add_transfers_batch(items))
        return jsonify({"transfers": [r.to_dict() for r in results]}), 201

    except LedgerError as e:
        return ledger_error_response(e, "Transfer batch")
    except Exception:
        return unexpected_error_response("add transfer batch")


@transfers_bp.get("/<int:transfer_id>")
def get_transfer_route(transfer_id: int):
    try:
        audit = audit_service.get_transfer_audit(transfer_id)
        return jsonify({"transfer": audit.to_dict()}), 200

    except LedgerError as e:
        return ledger_error_response(e, "Transfer lookup")
    except Exception:
        return unexpected_error_response("load transfer")


@transfers_bp.post("/<int:transfer_id>/revert")
def revert_transfer_route(transfer_id: int):
    """
    Restore every balance touched by the transfer to its recorded value.

    Returns:
        200: Reverted
        404: Unknown transfer
        409: Already reverted
    """
    try:
        audit = run_and_commit(lambda: transfer_service.revert_transfer(transfer_id))
        return jsonify({"transfer": audit.to_dict()}), 200

    except LedgerError as e:
        return ledger_error_response(e, "Transfer revert")
    except Exception:
        return unexpected_error_response("revert transfer")


@transfers_bp.delete("/<int:transfer_id>")
def delete_transfer_route(transfer_id: int):
    try:
        audit = run_and_commit(lambda: transfer_service.delete_transfer(transfer_id))
        return jsonify({"transfer": audit.to_dict(), "deleted": True}), 200

    except LedgerError as e:
        return ledger_error_response(e, "Transfer delete")
    except Exception:
        return unexpected_error_response("delete transfer")
