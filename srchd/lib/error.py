"""Tagged errors carried through the Result channel."""

from typing import Literal, Optional

ErrorCode = Literal[
    "resource_creation_error",
    "resource_deletion_error",
    "reading_file_error",
    "script_execution_error",
    "script_timeout_error",
    "computer_error",
]


class SrchdError(Exception):
    def __init__(
        self,
        code: ErrorCode,
        message: str,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause

    def to_dict(self) -> dict:
        data = {"code": self.code, "message": self.message}
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data

    def __repr__(self) -> str:
        return f"SrchdError(code={self.code!r}, message={self.message!r}, cause={self.cause!r})"


def normalize_error(error: object) -> Exception:
    """Coerce anything caught at a boundary into an Exception instance."""
    if isinstance(error, Exception):
        return error
    if isinstance(error, str):
        return Exception(error)
    return Exception(repr(error))
