"""
Sandbox Module

Read-only execution of breakpoint expressions inside the debugged process.

This module provides:
- Static classification of compiled expressions (syntax tree and bytecode)
- A call policy table for built-in functions and methods
- A profile hook that vets every call made while an expression runs
- A call guard that vets what built-ins would call or drain on its behalf
- Per-evaluation execution on a dedicated thread

WARNING: This sandbox stops debugger-injected expressions from mutating
program state. It is NOT a defence against deliberately malicious code.
"""

__version__ = "0.1.0"

from .errors import MutationCause, MutationError

__all__ = [
    "MutationCause",
    "MutationError",
]
