# Overview: Flask API routes for WIP receipts; parses input and returns JSON responses.

"""
Receipt API routes.
"""
from flask import Blueprint, jsonify, request

from ..errors import LedgerError
from ..services import audit_service, receipt_service
from ..services.concurrency import run_and_commit
from ..validation import (
    coerce_id,
    coerce_optional_id,
    coerce_quantity,
    parse_business_date,
    parse_op_number,
    require_fields,
)
from . import ledger_error_response, unexpected_error_response


receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/wip/receipts")


def _parse_receipt(data) -> dict:
    data = require_fields(data, "part_id", "op_number", "section_id", "receipt_date", "quantity")
    return {
        "part_id": coerce_id(data["part_id"], "part_id"),
        "op_number": parse_op_number(data["op_number"]),
        "section_id": coerce_id(data["section_id"], "section_id"),
        "receipt_date": parse_business_date(data["receipt_date"], "receipt_date"),
        "quantity": coerce_quantity(data["quantity"]),
        "comment": data.get("comment"),
        "label_id": coerce_optional_id(data.get("label_id"), "label_id"),
    }


@receipts_bp.post("")
def add_receipt_route():
    """
    Receive quantity into a balance.

    Request body:
    {
        "part_id": int,
        "op_number": str | int,     // "010" or "010/2"
        "section_id": int,
        "receipt_date": str,        // ISO-8601
        "quantity": str | number,
        "comment": str (optional),
        "label_id": int (optional)
    }

    Returns:
        201: Receipt created
        400: Invalid request
        404: Unknown route step or label
        409: Label conflict or insufficient label quantity
    """
    try:
        params = _parse_receipt(request.get_json(silent=True))
        result = run_and_commit(lambda: receipt_service.add_receipt(**params))
        return jsonify(result.to_dict()), 201

    except LedgerError as e:
        return ledger_error_response(e, "Receipt")
    except Exception:
        return unexpected_error_response("add receipt")


@receipts_bp.post("/batch")
def add_receipts_batch_route():
    """
    Receive several items at once; either all are applied or none.

    Request body:
    {
        "items": [ { ...same fields as POST /api/wip/receipts... } ]
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), "items")
        if not isinstance(data["items"], list) or not data["items"]:
            return jsonify({"error": "items must be a non-empty list", "code": "validation_error"}), 400

        items = [_parse_receipt(item) for item in data["items"]]
        results = run_and_commit(lambda: receipt_service.add_receipts_batch(items))
        return jsonify({"receipts": [r.to_dict() for r in results]}), 201

    except LedgerError as e:
        return ledger_error_response(e, "Receipt batch")
    except Exception:
        return unexpected_error_response("add receipt batch")


@receipts_bp.delete("/<int:receipt_id>")
def delete_receipt_route(receipt_id: int):
    try:
        result = run_and_commit(lambda: receipt_service.delete_receipt(receipt_id))
        return jsonify(result.to_dict()), 200

    except LedgerError as e:
        return ledger_error_response(e, "Receipt delete")
    except Exception:
        return unexpected_error_response("delete receipt")


@receipts_bp.post("/<int:receipt_id>/revert")
def revert_receipt_route(receipt_id: int):
    """
    Restore the receipt to the state recorded by one of its versions.

    Request body:
    {
        "version_id": str
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), "version_id")
        version_id = str(data["version_id"])
        result = run_and_commit(lambda: receipt_service.revert_receipt(receipt_id, version_id))
        return jsonify(result.to_dict()), 200

    except LedgerError as e:
        return ledger_error_response(e, "Receipt revert")
    except Exception:
        return unexpected_error_response("revert receipt")


@receipts_bp.get("/<int:receipt_id>/history")
def receipt_history_route(receipt_id: int):
    try:
        receipt = receipt_service.get_receipt(receipt_id)
        versions = audit_service.get_receipt_history(receipt_id)
        return jsonify({
            "receipt": receipt.to_dict(),
            "versions": [v.to_dict() for v in versions],
        }), 200

    except LedgerError as e:
        return ledger_error_response(e, "Receipt history")
    except Exception:
        return unexpected_error_response("load receipt history")
