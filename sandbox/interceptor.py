"""
Runtime call interception for sandboxed evaluation.

The interceptor is installed with ``sys.setprofile`` on the thread running an
evaluation. Every Python function the expression reaches is re-classified
(local writes allowed) and every built-in call is checked against the call
policy table. A violation removes the hook and raises MutationError, which
CPython delivers in place of the pending call.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from types import CodeType, FrameType

from sandbox import classifier
from sandbox import policy
from sandbox.errors import MutationCause, MutationError

logger = logging.getLogger(__name__)


class CallInterceptor:
    """Profile hook enforcing read-only execution for one evaluation."""

    def __init__(self, trusted_codes: Iterable[CodeType] = ()) -> None:
        self.active: bool = False
        self.violation: MutationError | None = None
        self._trusted: set[CodeType] = set(trusted_codes)
        self._trusted.add(CallInterceptor.disable.__code__)
        self._verdicts: dict[CodeType, MutationError | None] = {}

    def trust(self, code: CodeType) -> None:
        """Mark a code object as already vetted."""
        self._trusted.add(code)

    def enable(self) -> None:
        self.active = True
        sys.setprofile(self)

    def disable(self) -> None:
        self.active = False
        sys.setprofile(None)

    def __call__(self, frame: FrameType, event: str, arg: object) -> None:
        if not self.active:
            return
        if event == "call":
            self.on_call(frame)
        elif event == "c_call":
            self.on_c_call(arg)

    def on_call(self, frame: FrameType) -> None:
        code = frame.f_code
        if code in self._trusted:
            return
        if code not in self._verdicts:
            self._verdicts[code] = classifier.classify_code(code, allow_local_writes=True)
        error = self._verdicts[code]
        if error is not None:
            self.abort(error)

    def on_c_call(self, func: object) -> None:
        if policy.is_builtin_call_allowed(func):  # type: ignore[arg-type]
            return
        self.abort(prohibited_call(func))

    def abort(self, error: MutationError) -> None:
        """Remove the hook, record the first violation and raise it."""
        self.disable()
        if self.violation is None:
            self.violation = error
        logger.debug("Aborting evaluation: %s", error.message)
        raise error


def prohibited_call(func: object) -> MutationError:
    """Build the error reported for a built-in call the policy denies."""
    namespace, call_kind, name = policy.resolve_builtin_call(func)  # type: ignore[arg-type]
    owner = namespace if isinstance(namespace, str) else getattr(namespace, "__qualname__", "?")
    return MutationError(
        f"Invalid operation detected: {call_kind.value} call {owner}.{name}",
        MutationCause.PROHIBITED_CALL,
    )
