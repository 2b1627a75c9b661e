"""Call stack snapshots taken when a breakpoint is hit."""

from __future__ import annotations

import os
from collections.abc import Sequence
from types import FrameType

from debugger_core.schemas import (
    DEFAULT_MAX_VALUE_LENGTH,
    SourceLocation,
    StackFrame,
    Variable,
)

STACK_EVAL_DEPTH = 5


def collect_frames(frame: FrameType | None) -> list[FrameType]:
    """Walk the call stack outwards from ``frame``, innermost first."""
    frames: list[FrameType] = []
    while frame is not None:
        frames.append(frame)
        frame = frame.f_back
    return frames


def _function_name(frame: FrameType) -> str:
    code = frame.f_code
    return getattr(code, "co_qualname", code.co_name)


def capture_locals(
    frame: FrameType,
    max_value_length: int = DEFAULT_MAX_VALUE_LENGTH,
) -> list[Variable]:
    return [
        Variable.from_value(value, name=name, max_length=max_value_length)
        for name, value in dict(frame.f_locals).items()
    ]


def capture_stack(
    call_frames: Sequence[FrameType],
    depth: int = STACK_EVAL_DEPTH,
    max_value_length: int = DEFAULT_MAX_VALUE_LENGTH,
) -> list[StackFrame]:
    """
    Snapshot function names and locations of every frame.

    Locals are captured only for the first ``depth`` frames; deeper frames
    report their function and location with empty locals.
    """
    result: list[StackFrame] = []
    for index, frame in enumerate(call_frames):
        location = SourceLocation(
            path=os.path.abspath(frame.f_code.co_filename),
            line=frame.f_lineno or 0,
        )
        stack_frame = StackFrame(function=_function_name(frame), location=location)
        if index < depth:
            stack_frame.locals = capture_locals(frame, max_value_length)
        result.append(stack_frame)
    return result
