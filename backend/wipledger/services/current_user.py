# Overview: Acting-user lookup for audit, adjustment and scrap rows.

from __future__ import annotations

from flask import current_app, g, has_request_context


def get_current_user_id() -> int:
    """
    Return the id of the user performing the current ledger operation.

    Authentication is handled upstream; inside a request the id is taken from
    g.user_id (populated from the X-User-Id header). CLI commands and tests
    without a request fall back to DEFAULT_USER_ID.
    """
    if has_request_context():
        user_id = g.get("user_id")
        if user_id is not None:
            return user_id
    return current_app.config.get("DEFAULT_USER_ID", 1)
