from __future__ import annotations


class BackendUnavailable(Exception):
    """The primary key-value backend could not serve a command."""

    def __init__(self, op: str, cause: BaseException) -> None:
        super().__init__(f"{op} failed: {cause}")
        self.op = op
        self.cause = cause
