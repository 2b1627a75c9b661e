"""
Read-only evaluation of breakpoint conditions, expressions and log messages.

Every failure is returned as data: a condition that cannot be evaluated is
False, an expression that cannot be evaluated yields a Variable carrying an
error message. Nothing raised while evaluating crosses this module's API.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from types import FrameType

from debugger_core.schemas import EvaluatorConfig, StackFrame, Variable
from evaluator.formatting import render_log_message
from evaluator.snapshot import capture_stack
from sandbox.executor import Environment, SandboxExecutor

logger = logging.getLogger(__name__)


class BreakpointEvaluator:
    """Evaluate breakpoint inputs against a snapshot of program state."""

    def __init__(
        self,
        config: EvaluatorConfig | None = None,
        executor: SandboxExecutor | None = None,
    ) -> None:
        self.config: EvaluatorConfig = config or EvaluatorConfig()
        self.executor: SandboxExecutor = executor or SandboxExecutor(self.config.thread_name)

    def eval_call_stack(self, call_frames: Sequence[FrameType]) -> list[StackFrame]:
        """Snapshot the call stack, with locals for the top frames only."""
        return capture_stack(
            call_frames,
            depth=self.config.stack_eval_depth,
            max_value_length=self.config.max_value_length,
        )

    def eval_condition(self, environment: Environment, condition: str | None) -> bool:
        """
        Evaluate a breakpoint condition.

        Returns False if the condition is falsy or could not be evaluated
        read-only; a blank condition always holds.
        """
        if condition is None or not condition.strip():
            return True
        try:
            result = self.executor.evaluate_truth(environment, condition)
        except Exception:
            logger.warning("Condition %r failed outside the sandbox", condition, exc_info=True)
            return False
        if not result.success:
            return False
        return result.value is True

    def eval_expression(self, environment: Environment, expression: str) -> Variable:
        try:
            result = self.executor.evaluate_rendered(environment, expression)
        except Exception as exc:
            logger.warning("Expression %r failed outside the sandbox", expression, exc_info=True)
            return Variable.from_error(f"Unable to evaluate expression: {exc}", name=expression)

        if not result.success:
            message = result.error.message if result.error is not None else "Mutation detected!"
            return Variable.from_error(f"Error: {message}", name=expression)

        type_name, text = result.value  # type: ignore[misc]
        return Variable.from_rendered(
            type_name,
            text,
            name=expression,
            max_length=self.config.max_value_length,
        )

    def eval_expressions(
        self,
        environment: Environment,
        expressions: Sequence[str],
    ) -> list[Variable]:
        """Evaluate each expression independently, preserving order."""
        return [self.eval_expression(environment, expression) for expression in expressions]

    def format_log_message(
        self,
        environment: Environment,
        message_format: str,
        expressions: Sequence[str],
    ) -> str:
        """Evaluate ``expressions`` and substitute them into ``message_format``."""
        variables = self.eval_expressions(environment, expressions)
        return render_log_message(message_format, variables)


_default_evaluator: BreakpointEvaluator | None = None


def _evaluator() -> BreakpointEvaluator:
    global _default_evaluator
    if _default_evaluator is None:
        _default_evaluator = BreakpointEvaluator()
    return _default_evaluator


def eval_condition(environment: Environment, condition: str | None) -> bool:
    return _evaluator().eval_condition(environment, condition)


def eval_expressions(environment: Environment, expressions: Sequence[str]) -> list[Variable]:
    return _evaluator().eval_expressions(environment, expressions)


def eval_call_stack(call_frames: Sequence[FrameType]) -> list[StackFrame]:
    return _evaluator().eval_call_stack(call_frames)


def format_log_message(
    environment: Environment,
    message_format: str,
    expressions: Sequence[str],
) -> str:
    return _evaluator().format_log_message(environment, message_format, expressions)
