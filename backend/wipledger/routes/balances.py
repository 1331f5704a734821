# Overview: Read-only Flask API routes for WIP balances and their history.

from flask import Blueprint, jsonify, request

from ..errors import LedgerError
from ..extensions import db
from ..models import WipBalance
from ..services import balance_service, history_service
from ..validation import coerce_optional_id, format_decimal, parse_op_number
from . import ledger_error_response, unexpected_error_response


balances_bp = Blueprint("balances", __name__, url_prefix="/api/wip/balances")


@balances_bp.get("")
def list_balances_route():
    """
    List balances.

    Query params:
        part_id, section_id, op_number (optional filters)
        non_zero=true to hide empty balances
    """
    try:
        part_id = coerce_optional_id(request.args.get("part_id"), "part_id")
        section_id = coerce_optional_id(request.args.get("section_id"), "section_id")
        op_number = request.args.get("op_number")

        query = db.session.query(WipBalance)
        if part_id is not None:
            query = query.filter(WipBalance.part_id == part_id)
        if section_id is not None:
            query = query.filter(WipBalance.section_id == section_id)
        if op_number:
            query = query.filter(WipBalance.op_number == parse_op_number(op_number))
        if request.args.get("non_zero", "").lower() == "true":
            query = query.filter(WipBalance.quantity > 0)

        balances = query.order_by(WipBalance.part_id, WipBalance.op_number, WipBalance.section_id).all()
        return jsonify({"balances": [b.to_dict() for b in balances]}), 200

    except LedgerError as e:
        return ledger_error_response(e, "Balance list")
    except Exception:
        return unexpected_error_response("list balances")


@balances_bp.get("/<int:balance_id>")
def get_balance_route(balance_id: int):
    try:
        balance = balance_service.get_balance_by_id(balance_id)
        return jsonify({"balance": balance.to_dict()}), 200

    except LedgerError as e:
        return ledger_error_response(e, "Balance lookup")
    except Exception:
        return unexpected_error_response("load balance")


@balances_bp.get("/<int:balance_id>/history")
def balance_history_route(balance_id: int):
    """Ledger trail of a balance with the quantity it reconstructs to."""
    try:
        balance = balance_service.get_balance_by_id(balance_id)
        entries = history_service.get_balance_history(balance_id)
        reconstructed = sum((e.delta for e in entries), balance_service.ZERO)
        return jsonify({
            "balance": balance.to_dict(),
            "entries": [e.to_dict() for e in entries],
            "reconstructed_quantity": format_decimal(reconstructed),
            "is_consistent": reconstructed == balance.quantity,
        }), 200

    except LedgerError as e:
        return ledger_error_response(e, "Balance history")
    except Exception:
        return unexpected_error_response("load balance history")
