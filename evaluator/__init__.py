"""
Evaluator Module

Breakpoint-facing evaluation API.

This module provides:
- Condition evaluation (fails closed to False)
- Watch/log expression evaluation returning Variables
- Call stack snapshots with locals for the top frames
- Log message template rendering
"""

__version__ = "0.1.0"

from .breakpoint import (
    BreakpointEvaluator,
    eval_call_stack,
    eval_condition,
    eval_expressions,
    format_log_message,
)
from .formatting import render_log_message
from .snapshot import STACK_EVAL_DEPTH, capture_stack, collect_frames

__all__ = [
    "BreakpointEvaluator",
    "eval_call_stack",
    "eval_condition",
    "eval_expressions",
    "format_log_message",
    "render_log_message",
    "STACK_EVAL_DEPTH",
    "capture_stack",
    "collect_frames",
]
