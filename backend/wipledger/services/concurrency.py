# Overview: Row locking and retry helpers shared by every ledger operation.

"""
Ledger concurrency.

LOCKING:
Balance and label reads that precede a write go through lock_for_update, so
two operations on the same (part, section, op) key serialize while disjoint
keys proceed in parallel. SQLite ignores SELECT ... FOR UPDATE; there the
version_id columns on WipBalance and WipBalanceCleanupJob catch lost updates.

RETRY:
A unit of work that loses a race (deadlock, lock timeout, stale version) is
rolled back and replayed from the start. Every engine validates before it
mutates, so a replay sees fresh rows and re-checks them. Typed LedgerError
failures are never retried. Callers commit through run_and_commit, which
replays the operation together with its commit.
"""
from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    return query.with_for_update()


def _retry_policy(attempts: int | None, backoff_base: float | None) -> tuple[int, float]:
    if attempts is None:
        attempts = current_app.config.get("WIP_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("WIP_RETRY_BACKOFF", 0.1)
    return max(1, int(attempts)), float(backoff_base)


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run a ledger unit of work, replaying it when it loses a race.

    Args:
        func: Zero-argument callable performing the unit of work (flush only)
        attempts: Total tries, defaults to WIP_RETRY_ATTEMPTS
        backoff_base: First sleep in seconds, doubled per retry (WIP_RETRY_BACKOFF)

    Returns:
        Whatever func returns

    Raises:
        OperationalError / StaleDataError once the attempts are exhausted;
        anything else func raises, immediately
    """
    attempts, backoff_base = _retry_policy(attempts, backoff_base)
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                current_app.logger.error(
                    "Ledger unit of work failed after %s attempt(s): %s",
                    attempts,
                    exc.__class__.__name__,
                )
                raise
            current_app.logger.warning(
                "Concurrent update on ledger rows, retrying (attempt %s/%s): %s",
                attempt,
                attempts,
                exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))


def run_and_commit(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run a ledger operation and commit it as one retryable unit.

    A commit that loses a race rolls the whole unit back, so the operation is
    replayed together with the commit rather than committing an empty session.

    Args:
        func: Zero-argument callable invoking a service operation

    Returns:
        Whatever func returns, once committed
    """
    def _op():
        result = func()
        db.session.commit()
        return result
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
