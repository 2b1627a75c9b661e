"""
Call guard for sandboxed expressions.

The profile hook only sees calls made from bytecode. Built-in functions call
their callable arguments (``map``, ``sorted(key=...)``, ``functools.reduce``)
and drain the iterators handed to them (``sum``, ``list``, ``str.join``) from
C, where no event is emitted. The classifier therefore compiles every call and
every iteration source of an expression into a call on a CallGuard, which vets
the callable and each argument before anything runs.

Vetting runs with the interceptor paused. It inspects debuggee objects through
type-level lookups only and never calls into them.
"""

from __future__ import annotations

import functools
import inspect
import logging
import operator
from collections.abc import Callable, Mapping
from types import (
    BuiltinFunctionType,
    ClassMethodDescriptorType,
    CodeType,
    FunctionType,
    GeneratorType,
    MethodDescriptorType,
    MethodType,
    MethodWrapperType,
    WrapperDescriptorType,
)

from sandbox import policy
from sandbox.classifier import is_forbidden_attribute
from sandbox.errors import MutationCause, MutationError
from sandbox.interceptor import CallInterceptor, prohibited_call

logger = logging.getLogger(__name__)

BUILTIN_CALLABLE_TYPES = (
    BuiltinFunctionType,
    MethodWrapperType,
    WrapperDescriptorType,
    MethodDescriptorType,
    ClassMethodDescriptorType,
)

# Calling these always builds a new iterator object.
FRESH_ITERATOR_TYPES = (map, filter, zip, enumerate)

_HEAP_TYPE_FLAG = 1 << 9


def _type_lookup(kind: type, name: str) -> object | None:
    for base in kind.__mro__:
        namespace = vars(base)
        if name in namespace:
            return namespace[name]
    return None


def _is_iterator(value: object) -> bool:
    return _type_lookup(type(value), "__next__") is not None


def _is_builtin_type(kind: type) -> bool:
    return not kind.__flags__ & _HEAP_TYPE_FLAG


def _python_code(func: object) -> CodeType | None:
    if type(func) is MethodType:
        func = func.__func__
    if type(func) is FunctionType:
        return func.__code__
    return None


def _attribute_error(name: str) -> MutationError:
    return MutationError(
        f"Invalid operation detected: access to attribute '{name}'",
        MutationCause.PROHIBITED_CALL,
    )


class CallGuard:
    """
    Vets the calls and iterations of one sandboxed evaluation.

    Iterators the expression did not create belong to the debuggee; handing
    one to any call, unpacking it or looping over it would advance it, so it
    is refused. Iterators the expression creates (generator expressions,
    ``iter(items)``, ``map(...)``) are recorded and may be consumed freely.
    """

    def __init__(self, interceptor: CallInterceptor | None = None) -> None:
        self._interceptor = interceptor
        # id -> object; holding the object keeps its id from being reused.
        self._owned: dict[int, object] = {}

    def call(self, func: Callable[..., object], /, *args: object, **kwargs: object) -> object:
        self._paused(self._check_call, func, args, kwargs)
        result = func(*args, **kwargs)
        self._paused(self._adopt, func, args, result)
        return result

    def iterate(self, value: object) -> object:
        self._paused(self.check_argument, value)
        return value

    def own(self, generator: object) -> object:
        self._owned[id(generator)] = generator
        return generator

    def owns(self, value: object) -> bool:
        return self._owned.get(id(value)) is value

    def check_argument(self, value: object) -> MutationError | None:
        """Vet a value handed to a call or iterated by the expression."""
        if self.owns(value):
            return None
        if _is_iterator(value):
            return MutationError(
                f"Invalid operation detected: consuming {type(value).__qualname__} would advance it",
                MutationCause.PROHIBITED_CALL,
            )
        if callable(value):
            return self.check_callable(value)
        return None

    def check_callable(self, func: object) -> MutationError | None:
        """Vet something that will be called, by the expression or by C code."""
        kind = type(func)
        if kind is FunctionType:
            # Python code is classified by the interceptor when entered.
            return None
        if kind is MethodType:
            return self.check_callable(func.__func__)  # type: ignore[attr-defined]
        if kind in BUILTIN_CALLABLE_TYPES:
            return None if policy.is_builtin_call_allowed(func) else prohibited_call(func)  # type: ignore[arg-type]
        if kind is functools.partial:
            error = self.check_callable(func.func)  # type: ignore[attr-defined]
            for value in (*func.args, *func.keywords.values()):  # type: ignore[attr-defined]
                error = error or self.check_argument(value)
            return error
        if kind is operator.itemgetter:
            return None
        if kind is operator.attrgetter:
            for dotted in func.__reduce__()[1]:  # type: ignore[attr-defined]
                for name in dotted.split("."):
                    if is_forbidden_attribute(name):
                        return _attribute_error(name)
            return None
        if issubclass(kind, type):
            # Construction; a Python __init__ or __new__ is classified on entry.
            return None
        if type(_type_lookup(kind, "__call__")) is FunctionType:
            return None
        return MutationError(
            f"Invalid operation detected: call to a {kind.__qualname__} object",
            MutationCause.PROHIBITED_CALL,
        )

    def _check_call(
        self,
        func: object,
        args: tuple[object, ...],
        kwargs: Mapping[str, object],
    ) -> MutationError | None:
        error = self.check_callable(func)
        if error is None and (func is getattr or func is hasattr) and len(args) > 1:
            name = args[1]
            if isinstance(name, str) and is_forbidden_attribute(name):
                error = _attribute_error(name)
        for value in (*args, *kwargs.values()):
            error = error or self.check_argument(value)
        return error

    def _adopt(self, func: object, args: tuple[object, ...], result: object) -> None:
        if self.owns(result) or not _is_iterator(result):
            return None
        if any(func is factory for factory in FRESH_ITERATOR_TYPES):
            fresh = True
        elif func is iter or func is reversed:
            # A Python __iter__ or __reversed__ may hand out a shared iterator.
            fresh = len(args) == 1 and _is_builtin_type(type(args[0]))
        elif issubclass(type(func), type):
            fresh = _is_builtin_type(func) and func.__module__ == "itertools"  # type: ignore[attr-defined]
        else:
            fresh = (
                type(result) is GeneratorType
                and result.gi_code is _python_code(func)
                and inspect.getgeneratorstate(result) == inspect.GEN_CREATED
            )
        if fresh:
            self._owned[id(result)] = result
        return None

    def _paused(self, check: Callable[..., MutationError | None], *args: object) -> None:
        interceptor = self._interceptor
        resume = interceptor is not None and interceptor.active
        if resume:
            interceptor.active = False  # type: ignore[union-attr]
        try:
            error = check(*args)
            if error is not None:
                self._reject(error)
        finally:
            if resume and interceptor.violation is None:  # type: ignore[union-attr]
                interceptor.active = True  # type: ignore[union-attr]

    def _reject(self, error: MutationError) -> None:
        if self._interceptor is None:
            raise error
        self._interceptor.abort(error)


# Guard frames entered while interception is active.
TRUSTED_GUARD_CODES = frozenset(
    {
        CallGuard.call.__code__,
        CallGuard.iterate.__code__,
        CallGuard.own.__code__,
        CallGuard._paused.__code__,
    }
)
