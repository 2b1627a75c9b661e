"""
Static classification of breakpoint expressions.

An expression is parsed and compiled in ``eval`` mode and then checked twice:
the syntax tree for top-level shapes that write or hide state (assignment
expressions, lambdas, yields, dunder attribute access), and the bytecode of
the compiled program for write instructions and exception handlers. The same
bytecode rules, with local writes permitted, are applied by the call
interceptor to every Python function the expression reaches at runtime.

The compiled code is not the parsed text verbatim: calls and iteration
sources are routed through a call guard (see ``sandbox.guard``) bound into
the namespace under GUARD_NAME.
"""

from __future__ import annotations

import ast
import copy
import dis
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from types import CodeType, FunctionType
from typing import Callable, Union

from sandbox.errors import MutationCause, MutationError

logger = logging.getLogger(__name__)

EXPRESSION_FILENAME = "<breakpoint expression>"

WRITE_INSTRUCTIONS = frozenset(
    {
        "STORE_ATTR",
        "DELETE_ATTR",
        "STORE_GLOBAL",
        "DELETE_GLOBAL",
        "STORE_NAME",
        "DELETE_NAME",
        "STORE_SUBSCR",
        "DELETE_SUBSCR",
        "STORE_SLICE",
        "STORE_DEREF",
        "DELETE_DEREF",
        "LOAD_BUILD_CLASS",
        "SETUP_ANNOTATIONS",
        "IMPORT_NAME",
        "IMPORT_STAR",
    }
)

LOCAL_WRITE_INSTRUCTIONS = frozenset(
    {
        "STORE_FAST",
        "DELETE_FAST",
        "STORE_FAST_STORE_FAST",
        "STORE_FAST_LOAD_FAST",
        "STORE_FAST_MAYBE_NULL",
    }
)

# A handler could swallow the MutationError raised by the interceptor and let
# the program carry on, so try/except and with blocks are never accepted.
EXCEPTION_HANDLER_INSTRUCTIONS = frozenset(
    {
        "PUSH_EXC_INFO",
        "POP_EXCEPT",
        "CHECK_EXC_MATCH",
        "CHECK_EG_MATCH",
        "JUMP_IF_NOT_EXC_MATCH",
        "SETUP_EXCEPT",
        "SETUP_FINALLY",
        "SETUP_WITH",
        "SETUP_ASYNC_WITH",
        "BEFORE_WITH",
        "BEFORE_ASYNC_WITH",
        "WITH_EXCEPT_START",
    }
)

ITERATION_HELPER_NAMES = frozenset({"<listcomp>", "<setcomp>", "<dictcomp>", "<genexpr>"})

READONLY_DUNDER_ATTRIBUTES = frozenset(
    {"__class__", "__name__", "__qualname__", "__module__", "__doc__", "__dict__"}
)

# Name under which the call guard is bound into an expression's namespace.
GUARD_NAME = "__breakpoint_guard__"

ATTRIBUTE_LOOKUP_BUILTINS = frozenset({"getattr", "hasattr"})


def is_forbidden_attribute(name: str) -> bool:
    """True for dunder names outside READONLY_DUNDER_ATTRIBUTES."""
    return name.startswith("__") and name.endswith("__") and name not in READONLY_DUNDER_ATTRIBUTES


@dataclass(frozen=True)
class Expression:
    text: str


@dataclass(frozen=True)
class CompiledProgram:
    """An expression compiled for evaluation; read-only after compilation."""

    expression: Expression
    tree: ast.Expression
    code: CodeType

    def bind(self, namespace: dict[str, object], guard: object) -> Callable[[], object]:
        """Return a zero-argument callable running the program in ``namespace``.

        The namespace serves as both globals and locals, so names inside
        comprehensions resolve against the debuggee's locals as well. Every
        call, unpacking and iteration in the compiled code goes through
        ``guard``, which is stored in the namespace under GUARD_NAME.
        """
        namespace[GUARD_NAME] = guard
        return FunctionType(self.code, namespace, EXPRESSION_FILENAME)


@dataclass(frozen=True)
class Allowed:
    program: CompiledProgram

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    error: MutationError

    @property
    def allowed(self) -> bool:
        return False


Verdict = Union[Allowed, Rejected]


def compile_expression(text: str) -> CompiledProgram:
    """Parse and compile expression text.

    Raises:
        MutationError: with PROHIBITED_INSTRUCTION cause if the text is not a
            valid Python expression.
    """
    try:
        tree = ast.parse(text.strip(), filename=EXPRESSION_FILENAME, mode="eval")
        guarded = ast.fix_missing_locations(_GuardedCalls().visit(copy.deepcopy(tree)))
        code = compile(guarded, EXPRESSION_FILENAME, "eval", dont_inherit=True)
    except (SyntaxError, ValueError) as exc:
        raise MutationError(
            f"Unable to compile expression: {exc}",
            MutationCause.PROHIBITED_INSTRUCTION,
        ) from exc
    return CompiledProgram(Expression(text), tree, code)


def _guard_method(
    method: str,
    location: ast.AST,
    *args: ast.expr,
    keywords: list[ast.keyword] | None = None,
) -> ast.Call:
    call = ast.Call(
        func=ast.Attribute(
            value=ast.Name(id=GUARD_NAME, ctx=ast.Load()),
            attr=method,
            ctx=ast.Load(),
        ),
        args=list(args),
        keywords=keywords or [],
    )
    return ast.copy_location(call, location)


class _GuardedCalls(ast.NodeTransformer):
    """
    Rewrite an expression so the call guard sees what C code would hide.

    Built-in functions call their callable arguments and drain their iterable
    arguments without any profile event, so every call is routed through
    ``guard.call`` and every iteration source (comprehension, ``*`` unpacking,
    ``in``) through ``guard.iterate``. Generator expressions are registered
    with ``guard.own`` because the expression created them.
    """

    def visit_Call(self, node: ast.Call) -> ast.AST:
        self.generic_visit(node)
        return _guard_method("call", node, node.func, *node.args, keywords=node.keywords)

    def visit_Starred(self, node: ast.Starred) -> ast.AST:
        self.generic_visit(node)
        if isinstance(node.ctx, ast.Load):
            node.value = _guard_method("iterate", node.value, node.value)
        return node

    def visit_comprehension(self, node: ast.comprehension) -> ast.AST:
        self.generic_visit(node)
        node.iter = _guard_method("iterate", node.iter, node.iter)
        return node

    def visit_GeneratorExp(self, node: ast.GeneratorExp) -> ast.AST:
        self.generic_visit(node)
        return _guard_method("own", node, node)

    def visit_Compare(self, node: ast.Compare) -> ast.AST:
        self.generic_visit(node)
        node.comparators = [
            _guard_method("iterate", right, right) if isinstance(op, (ast.In, ast.NotIn)) else right
            for op, right in zip(node.ops, node.comparators)
        ]
        return node


class _TopLevelVisitor(ast.NodeVisitor):
    def __init__(self) -> None:
        self.reason: str | None = None

    def _reject(self, reason: str) -> None:
        if self.reason is None:
            self.reason = reason

    def visit_NamedExpr(self, node: ast.NamedExpr) -> None:
        self._reject("assignment expressions are not allowed")

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self._reject("lambda expressions are not allowed")

    def visit_Yield(self, node: ast.Yield) -> None:
        self._reject("yield is not allowed")

    def visit_YieldFrom(self, node: ast.YieldFrom) -> None:
        self._reject("yield is not allowed")

    def visit_Await(self, node: ast.Await) -> None:
        self._reject("await is not allowed")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        name = node.attr
        if is_forbidden_attribute(name):
            self._reject(f"access to attribute '{name}' is not allowed")
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id == GUARD_NAME:
            self._reject(f"name '{GUARD_NAME}' is reserved")

    def visit_Call(self, node: ast.Call) -> None:
        if isinstance(node.func, ast.Name):
            if node.func.id in ATTRIBUTE_LOOKUP_BUILTINS:
                self._check_attribute_lookup(node.func.id, node)
            elif node.func.id == "iter" and len(node.args) + len(node.keywords) > 1:
                self._reject("iter with a sentinel calls its first argument repeatedly")
        self.generic_visit(node)

    def _check_attribute_lookup(self, builtin: str, node: ast.Call) -> None:
        attribute = node.args[1] if len(node.args) > 1 else None
        if not (isinstance(attribute, ast.Constant) and isinstance(attribute.value, str)):
            self._reject(f"{builtin} needs a literal attribute name")
        elif is_forbidden_attribute(attribute.value):
            self._reject(f"access to attribute '{attribute.value}' is not allowed")


def _instructions(code: CodeType) -> Iterator[dis.Instruction]:
    return dis.get_instructions(code)


def _is_inplace_operator(instruction: dis.Instruction) -> bool:
    if instruction.opname.startswith("INPLACE_"):
        return True
    return instruction.opname == "BINARY_OP" and str(instruction.argrepr).endswith("=")


def _prohibited(reason: str) -> MutationError:
    return MutationError(f"Mutation detected! {reason}", MutationCause.PROHIBITED_INSTRUCTION)


def classify_code(code: CodeType, allow_local_writes: bool = True) -> MutationError | None:
    """Check a code object (and the code objects nested in it) for writes.

    Returns the MutationError describing the first violation, or None if the
    code is read-only.
    """
    for instruction in _instructions(code):
        opname = instruction.opname
        if opname in WRITE_INSTRUCTIONS or _is_inplace_operator(instruction):
            return _prohibited(f"Instruction {opname} in {code.co_name}")
        if opname in EXCEPTION_HANDLER_INSTRUCTIONS:
            return _prohibited(f"Exception handler in {code.co_name}")
        if not allow_local_writes and opname in LOCAL_WRITE_INSTRUCTIONS:
            return _prohibited(f"Local variable write in {code.co_name}")

    for const in code.co_consts:
        if not isinstance(const, CodeType):
            continue
        if const.co_name not in ITERATION_HELPER_NAMES:
            return _prohibited(f"Closure {const.co_name} defined in {code.co_name}")
        # Iteration helpers own their loop variables.
        nested = classify_code(const, allow_local_writes=True)
        if nested is not None:
            return nested
    return None


def classify(program: CompiledProgram) -> Verdict:
    """Classify a compiled top-level expression."""
    visitor = _TopLevelVisitor()
    visitor.visit(program.tree)
    if visitor.reason is not None:
        logger.debug("Rejected %r: %s", program.expression.text, visitor.reason)
        return Rejected(_prohibited(visitor.reason.capitalize()))

    # Comprehensions compiled inline store their loop variables as fast
    # locals; assignment expressions were already ruled out on the tree.
    error = classify_code(program.code, allow_local_writes=True)
    if error is not None:
        logger.debug("Rejected %r: %s", program.expression.text, error.message)
        return Rejected(error)
    return Allowed(program)


def check_expression(text: str) -> Verdict:
    """Compile and classify expression text in one step."""
    try:
        program = compile_expression(text)
    except MutationError as exc:
        return Rejected(exc)
    return classify(program)
