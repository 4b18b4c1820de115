"""Error taxonomy surfaced to callers.

Codes are stable: clients match on ``code`` (or ``error``), never on the message.
"""


class LegacyTokenError(Exception):
    """Base exception for Legacy Tokens."""

    code: int = 0
    error: str = "LegacyTokenError"

    def __init__(self, message: str = "", **context):
        self.message = message or self.error
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.error, "code": self.code, "detail": self.message, **self.context}


class NotAuthorized(LegacyTokenError):
    """Raised when the caller is not the current owner of the token."""

    code = 100
    error = "NotAuthorized"


class NftNotFound(LegacyTokenError):
    """Raised when a token id has no record."""

    code = 101
    error = "NftNotFound"


class InvalidStage(LegacyTokenError):
    """Raised for out-of-range, matured, or incompletely configured stages."""

    code = 102
    error = "InvalidStage"


class NotUnlocked(LegacyTokenError):
    """Raised when the current height is below the stage's unlock height."""

    code = 103
    error = "NotUnlocked"


class InvalidSchedule(LegacyTokenError):
    """Raised when creation parameters violate schedule policy."""

    code = 104
    error = "InvalidSchedule"


class ScheduleExists(LegacyTokenError):
    """Reserved for duplicate-schedule detection. No code path raises it."""

    code = 105
    error = "ScheduleExists"


class LedgerError(LegacyTokenError):
    """Raised when the ownership ledger rejects an operation.

    ``ledger_code`` is the ledger's own rejection code, passed through unchanged.
    """

    def __init__(self, ledger_code: int, message: str = "", **context):
        self.ledger_code = ledger_code
        super().__init__(message, ledger_code=ledger_code, **context)


class MintFailure(LedgerError):
    code = 200
    error = "MintFailure"


class TransferFailure(LedgerError):
    code = 201
    error = "TransferFailure"


class TokenBusy(LegacyTokenError):
    """Raised when another worker holds the token's mutation lock."""

    code = 503
    error = "TokenBusy"
