# Overview: Typed failures raised by the ledger services.

"""
Ledger failure taxonomy.

Every service raises one of these before touching any row, so a caller that
catches a LedgerError can roll back (or simply not commit) and the ledger is
unchanged. Blueprints map status_code onto the HTTP response.
"""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger failures; str(exc) is the human-readable detail."""

    status_code = 400
    code = "ledger_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(LedgerError):
    """Malformed input (unparseable number, date, op number)."""

    code = "validation_error"


class NotFoundError(LedgerError):
    status_code = 404
    code = "not_found"


class InvalidQuantityError(LedgerError):
    code = "invalid_quantity"


class InsufficientBalanceError(LedgerError):
    status_code = 409
    code = "insufficient_balance"


class InsufficientLabelQuantityError(LedgerError):
    status_code = 409
    code = "insufficient_label_quantity"


class AlreadyRevertedError(LedgerError):
    status_code = 409
    code = "already_reverted"


class AlreadyExecutedError(LedgerError):
    """Raised on a second execute; carries the result of the first one."""

    status_code = 409
    code = "already_executed"

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.result is not None:
            data["result"] = self.result.to_dict()
        return data


class NotConfirmedError(LedgerError):
    code = "not_confirmed"


class ConflictError(LedgerError):
    status_code = 409
    code = "conflict"
