# backend/wipledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/wipledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///wipledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Acting user when no X-User-Id header is present (authentication is external)
    DEFAULT_USER_ID = int(os.environ.get("WIP_DEFAULT_USER_ID", "1"))

    # Destination operation number that routes a transfer to the warehouse
    WAREHOUSE_OP_NUMBER = int(os.environ.get("WIP_WAREHOUSE_OP_NUMBER", "999999"))

    # Bulk cleanup target: "zero" empties balances, "floor" trims them to the job's min_quantity
    WIP_CLEANUP_TARGET = os.environ.get("WIP_CLEANUP_TARGET", "zero")

    WIP_COMMENT_MAX_LENGTH = 512

    # Replays of a unit of work that lost a race (deadlock, stale version_id)
    WIP_RETRY_ATTEMPTS = int(os.environ.get("WIP_RETRY_ATTEMPTS", "3"))
    WIP_RETRY_BACKOFF = float(os.environ.get("WIP_RETRY_BACKOFF", "0.1"))
