"""Log message templates with positional expression placeholders."""

from __future__ import annotations

import re
from collections.abc import Sequence

from debugger_core.schemas import Variable

# "$$" is an escaped dollar sign, "$<n>" refers to the n-th expression.
_PLACEHOLDER = re.compile(r"\$\$|\$(\d+)")


def _rendered(result: object) -> str:
    if isinstance(result, Variable):
        return result.value
    return str(result)


def render_log_message(template: str, evaluated_results: Sequence[object]) -> str:
    """
    Substitute evaluated expressions into a log message template.

    Example:
        render_log_message("Hello $0", ["World"])  # "Hello World"

    Placeholders beyond the end of ``evaluated_results`` render as an empty
    string. The template is scanned once, so substituted text containing
    ``$`` is never interpreted as a placeholder or escape.
    """

    def substitute(match: re.Match[str]) -> str:
        index = match.group(1)
        if index is None:
            return "$"
        position = int(index)
        if position < len(evaluated_results):
            return _rendered(evaluated_results[position])
        return ""

    return _PLACEHOLDER.sub(substitute, template)
