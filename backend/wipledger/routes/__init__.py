# Overview: Shared JSON error responses for the ledger blueprints.

from flask import current_app, jsonify

from ..errors import LedgerError
from ..extensions import db


def ledger_error_response(exc: LedgerError, action: str):
    """Roll back the unit of work and report a typed ledger failure."""
    db.session.rollback()
    current_app.logger.warning("%s rejected: %s", action, exc.message)
    return jsonify(exc.to_dict()), exc.status_code


def unexpected_error_response(action: str):
    db.session.rollback()
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500
