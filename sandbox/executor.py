"""
Sandbox execution controller for breakpoint expressions.
"""

from __future__ import annotations

import builtins
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import FrameType
from typing import Union

from sandbox import classifier
from sandbox import context
from sandbox.errors import MutationError
from sandbox.guard import TRUSTED_GUARD_CODES, CallGuard
from sandbox.interceptor import CallInterceptor

logger = logging.getLogger(__name__)

Environment = Union[FrameType, Mapping[str, object], None]


class EvaluationState(str, Enum):
    COMPILING = "compiling"
    CLASSIFYING = "classifying"
    REJECTED = "rejected"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class EvaluationResult:
    success: bool
    value: object
    error: MutationError | None
    runtime_ms: float
    state: EvaluationState = EvaluationState.COMPLETED


def _enter(expression: str, state: EvaluationState) -> None:
    logger.debug("Expression %r: %s", expression, state.value)


def build_namespace(environment: Environment) -> dict[str, object]:
    """
    Snapshot the names visible to an expression.

    Frame globals are overlaid with the frame's locals in a fresh dict; the
    debuggee's own namespaces are never handed to the evaluated code.
    """
    namespace: dict[str, object] = {}
    if isinstance(environment, FrameType):
        namespace.update(environment.f_globals)
        namespace.update(dict(environment.f_locals))
    elif environment is not None:
        namespace.update(environment)
    namespace.setdefault("__builtins__", builtins)
    return namespace


class SandboxExecutor:
    """
    Compile, classify and run expressions in a read-only sandbox.

    Every evaluation gets its own thread and CallInterceptor. The caller is
    blocked until the thread finishes; no timeout is imposed here.
    """

    DEFAULT_THREAD_NAME: str = "breakpoint-evaluator"

    def __init__(self, thread_name: str | None = None) -> None:
        self.thread_name: str = thread_name or self.DEFAULT_THREAD_NAME

    def evaluate(self, environment: Environment, expression: str) -> EvaluationResult:
        """Evaluate ``expression`` and return its raw value."""
        return self._execute(environment, expression, context.run_expression)

    def evaluate_truth(self, environment: Environment, expression: str) -> EvaluationResult:
        """Evaluate ``expression`` and reduce it to a bool inside the sandbox."""
        return self._execute(environment, expression, context.truth_of)

    def evaluate_rendered(self, environment: Environment, expression: str) -> EvaluationResult:
        """Evaluate ``expression``; the value is a ``(type_name, text)`` pair."""
        return self._execute(environment, expression, context.render_of)

    def _execute(
        self,
        environment: Environment,
        expression: str,
        job: Callable[[Callable[[], object]], object],
    ) -> EvaluationResult:
        start = time.perf_counter()

        _enter(expression, EvaluationState.COMPILING)
        try:
            program = classifier.compile_expression(expression)
        except MutationError as e:
            verdict: classifier.Verdict = classifier.Rejected(e)
        else:
            _enter(expression, EvaluationState.CLASSIFYING)
            verdict = classifier.classify(program)
        if isinstance(verdict, classifier.Rejected):
            runtime_ms = (time.perf_counter() - start) * 1000
            logger.debug("Expression %r rejected: %s", expression, verdict.error.message)
            return EvaluationResult(
                success=False,
                value=None,
                error=verdict.error,
                runtime_ms=runtime_ms,
                state=EvaluationState.REJECTED,
            )

        _enter(expression, EvaluationState.EXECUTING)
        program = verdict.program
        interceptor = CallInterceptor(context.TRUSTED_JOB_CODES | TRUSTED_GUARD_CODES)
        interceptor.trust(program.code)
        function = program.bind(build_namespace(environment), CallGuard(interceptor))

        sandbox = context.SandboxContext(job, (function,), interceptor, name=self.thread_name)
        sandbox.run_to_completion()
        runtime_ms = (time.perf_counter() - start) * 1000

        # A detected violation wins over whatever the unwinding raised.
        if interceptor.violation is not None:
            error: MutationError | None = interceptor.violation
        elif sandbox.error is not None:
            error = MutationError.from_exception(sandbox.error)
        else:
            error = None

        if error is not None:
            logger.debug("Expression %r aborted: %s", expression, error.message)
            return EvaluationResult(
                success=False,
                value=None,
                error=error,
                runtime_ms=runtime_ms,
                state=EvaluationState.ABORTED,
            )
        return EvaluationResult(True, sandbox.value, None, runtime_ms)
