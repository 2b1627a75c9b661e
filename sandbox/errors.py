"""
Mutation errors raised and reported by the read-only sandbox.
"""

from __future__ import annotations

from enum import Enum


class MutationCause(str, Enum):
    UNKNOWN_CAUSE = "unknown_cause"
    PROHIBITED_INSTRUCTION = "prohibited_instruction"
    PROHIBITED_CALL = "prohibited_call"


def _format_error(exc: BaseException) -> str:
    return f"{exc.__class__.__name__}: {exc}"


class MutationError(Exception):
    """
    Raised when an evaluated expression attempts (or may attempt) to change
    program state.

    Any other exception escaping a sandboxed evaluation is converted into a
    MutationError with UNKNOWN_CAUSE; the sandbox never reports an unexplained
    failure as a successful read.
    """

    def __init__(
        self,
        message: str = "Mutation detected!",
        cause: MutationCause = MutationCause.UNKNOWN_CAUSE,
    ) -> None:
        super().__init__(message)
        self._message = message
        self._cause = cause

    @property
    def message(self) -> str:
        return self._message

    @property
    def cause(self) -> MutationCause:
        return self._cause

    @classmethod
    def from_exception(cls, exc: BaseException) -> "MutationError":
        if isinstance(exc, MutationError):
            return exc
        error = cls(_format_error(exc), MutationCause.UNKNOWN_CAUSE)
        error.__cause__ = exc
        return error

    def __repr__(self) -> str:
        return f"<MutationError: {self._message}>"
