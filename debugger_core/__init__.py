"""
Debugger Core Module

Shared schemas, configuration and command line entry point.
"""

__version__ = "0.1.0"

from .schemas import EvaluatorConfig, SourceLocation, StackFrame, Variable

__all__ = [
    "EvaluatorConfig",
    "SourceLocation",
    "StackFrame",
    "Variable",
]
