"""
Sandbox call policy: which built-in calls an evaluated expression may make.

Calls into Python code are vetted by the instruction classifier; calls into
built-in (C level) functions and methods are vetted here. A namespace is a
type, or the name of a module whose built-in functions are being called.
Namespaces in IMMUTABLE_NAMESPACES allow every call. Every other namespace
needs an explicit entry for the method name and call kind; anything missing
is disallowed.
"""

from __future__ import annotations

import collections
import datetime
import decimal
import fractions
import re
import threading
import types
from collections.abc import Callable, Mapping
from enum import Enum
from types import MappingProxyType, ModuleType
from typing import Union

Namespace = Union[type, str]


class CallKind(str, Enum):
    CLASS = "class"
    INSTANCE = "instance"


def _names(text: str) -> frozenset[str]:
    return frozenset(text.split())


# Built-ins that must never be reachable from an evaluated expression.
BLOCKED_BUILTINS = _names(
    """
    __import__ breakpoint compile delattr eval exec exit help input next open
    print quit setattr
    """
)

IMMUTABLE_NAMESPACES: frozenset[Namespace] = frozenset(
    {
        int,
        float,
        complex,
        bool,
        str,
        bytes,
        tuple,
        frozenset,
        range,
        slice,
        type(None),
        type(NotImplemented),
        type(Ellipsis),
        re.Pattern,
        re.Match,
        fractions.Fraction,
        decimal.Decimal,
        datetime.date,
        datetime.datetime,
        datetime.time,
        datetime.timedelta,
        datetime.timezone,
        types.MappingProxyType,
        "math",
        "cmath",
    }
)

_DICT_VIEWS = {
    type({}.keys()): _names("isdisjoint"),
    type({}.values()): frozenset(),
    type({}.items()): _names("isdisjoint"),
}

_THREAD_LOCK = type(threading.Lock())
_THREAD_RLOCK = type(threading.RLock())

CLASS_METHOD_ALLOWLIST: Mapping[Namespace, frozenset[str]] = MappingProxyType(
    {
        # Module level built-in functions
        "builtins": _names(
            """
            abs all any ascii bin callable chr dir divmod format getattr
            globals hasattr hash hex id isinstance issubclass iter len locals
            max min oct ord pow repr round sorted sum vars
            """
        ),
        "time": _names(
            """
            asctime ctime get_clock_info gmtime localtime mktime monotonic
            monotonic_ns perf_counter perf_counter_ns process_time
            process_time_ns strftime thread_time thread_time_ns time time_ns
            """
        ),
        "posix": _names("fspath"),
        "nt": _names("fspath"),
        "_thread": _names("_count get_ident get_native_id"),
        "sys": _names(
            """
            getdefaultencoding getfilesystemencoding getrecursionlimit
            getrefcount getsizeof is_finalizing
            """
        ),
        "_functools": _names("reduce"),
        "_operator": _names(
            """
            abs add and_ concat contains countOf eq floordiv ge getitem gt
            index indexOf inv invert is_ is_not le length_hint lshift lt mod
            mul ne neg not_ or_ pos pow rshift sub truediv truth xor
            """
        ),
        # Classes
        dict: _names("fromkeys"),
        bytearray: _names("fromhex maketrans"),
        collections.OrderedDict: _names("fromkeys"),
    }
)

INSTANCE_METHOD_ALLOWLIST: Mapping[Namespace, frozenset[str]] = MappingProxyType(
    {
        object: _names("__dir__ __format__ __sizeof__"),
        type: _names("__dir__ __instancecheck__ __sizeof__ __subclasscheck__ __subclasses__ mro"),
        BaseException: _names("__repr__ __str__"),
        list: _names("__contains__ __getitem__ __len__ copy count index"),
        dict: _names("__contains__ __getitem__ __len__ copy get items keys values"),
        set: _names(
            """
            __contains__ __len__ copy difference intersection isdisjoint
            issubset issuperset symmetric_difference union
            """
        ),
        bytearray: _names(
            """
            capitalize center copy count decode endswith expandtabs find hex
            index isalnum isalpha isascii isdigit islower isspace istitle
            isupper join ljust lower lstrip partition removeprefix
            removesuffix replace rfind rindex rjust rpartition rsplit rstrip
            split splitlines startswith strip swapcase title translate upper
            zfill
            """
        ),
        memoryview: _names("hex tobytes tolist"),
        collections.deque: _names("copy count index"),
        collections.OrderedDict: _names("copy items keys values"),
        collections.defaultdict: _names("copy"),
        _THREAD_LOCK: _names("locked"),
        _THREAD_RLOCK: _names("_is_owned"),
        **_DICT_VIEWS,
    }
)


def is_call_allowed(receiver_type: Namespace, call_kind: CallKind, method_name: str) -> bool:
    """Return True if ``method_name`` may be called on ``receiver_type``."""
    if receiver_type in IMMUTABLE_NAMESPACES:
        return True
    if call_kind is CallKind.CLASS:
        table = CLASS_METHOD_ALLOWLIST
    else:
        table = INSTANCE_METHOD_ALLOWLIST
    return method_name in table.get(receiver_type, frozenset())


def _defining_class(klass: type, name: str) -> type:
    for base in klass.__mro__:
        if name in base.__dict__:
            return base
    return klass


def resolve_builtin_call(func: Callable[..., object]) -> tuple[Namespace | None, CallKind, str]:
    """
    Map a built-in callable, as reported by the profiler, to its policy key.

    Bound methods resolve to the class that defines the method in the
    receiver's MRO, so C level subclasses share their base's entries.
    """
    name = str(getattr(func, "__name__", ""))
    receiver = getattr(func, "__self__", None)
    if isinstance(receiver, ModuleType):
        return receiver.__name__, CallKind.CLASS, name
    if isinstance(receiver, type):
        return _defining_class(receiver, name), CallKind.CLASS, name
    if receiver is None:
        # Unbound method descriptor: no receiver available.
        objclass = getattr(func, "__objclass__", None)
        if isinstance(objclass, type):
            return objclass, CallKind.INSTANCE, name
        return None, CallKind.INSTANCE, name
    return _defining_class(type(receiver), name), CallKind.INSTANCE, name


def is_builtin_call_allowed(func: Callable[..., object]) -> bool:
    """
    Decide whether a built-in call may proceed.

    Class-level calls (the receiver is a type or a module) check the class
    table first and then the metaclass's instance entries; all other calls
    check the instance table of the defining class.
    """
    namespace, call_kind, name = resolve_builtin_call(func)
    if namespace is None or (namespace == "builtins" and name in BLOCKED_BUILTINS):
        return False
    if is_call_allowed(namespace, call_kind, name):
        return True
    receiver = getattr(func, "__self__", None)
    if call_kind is CallKind.CLASS and isinstance(receiver, type):
        return is_call_allowed(_defining_class(type(receiver), name), CallKind.INSTANCE, name)
    return False
