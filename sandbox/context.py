"""
Isolated execution context for one sandboxed evaluation.

A breakpoint usually fires inside a ``sys.settrace`` callback, where CPython
suppresses further trace and profile callbacks on the same thread. Each
evaluation therefore runs on its own short-lived thread, with the call
interceptor enabled on entry and disabled on every exit path.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from sandbox.interceptor import CallInterceptor


def run_expression(function: Callable[[], object]) -> object:
    return function()


def truth_of(function: Callable[[], object]) -> bool:
    return bool(function())


def render_of(function: Callable[[], object]) -> tuple[str, str]:
    """Evaluate and render inside the sandbox, so user __repr__ is intercepted."""
    value = function()
    type_name = type(value).__name__
    if isinstance(value, str):
        return type_name, value
    return type_name, repr(value)


# Jobs are entered with interception active; their own frames are vetted.
TRUSTED_JOB_CODES = frozenset(
    {run_expression.__code__, truth_of.__code__, render_of.__code__}
)


class SandboxContext(threading.Thread):
    """Run one job on a dedicated thread under a CallInterceptor."""

    def __init__(
        self,
        job: Callable[..., object],
        args: tuple[object, ...],
        interceptor: CallInterceptor,
        name: str = "breakpoint-evaluator",
    ) -> None:
        super().__init__(name=name, daemon=True)
        self._job = job
        self._args = args
        self._interceptor = interceptor
        self.value: object = None
        self.error: BaseException | None = None

    def run(self) -> None:
        interceptor = self._interceptor
        try:
            interceptor.enable()
            self.value = self._job(*self._args)
        except BaseException as exc:  # noqa: BLE001 - reported to the controller
            self.error = exc
        finally:
            interceptor.disable()

    def run_to_completion(self) -> "SandboxContext":
        """Start the context and block until it finishes."""
        self.start()
        self.join()
        return self
