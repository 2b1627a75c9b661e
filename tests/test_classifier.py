import ast

import pytest

from sandbox import classifier
from sandbox.errors import MutationCause, MutationError
from sandbox.guard import CallGuard


def _rejected_cause(text: str) -> MutationCause:
    verdict = classifier.check_expression(text)
    assert isinstance(verdict, classifier.Rejected), f"{text!r} should be rejected"
    assert verdict.allowed is False
    return verdict.error.cause


@pytest.mark.parametrize(
    "text",
    [
        "a + b * 2",
        "items[0]",
        "len(items) > 3 and name.upper() == 'X'",
        "[i * 2 for i in items]",
        "{k: v for k, v in mapping.items()}",
        "sum(x for x in items if x > 1)",
        "obj.__class__.__name__",
        "f'{name}: {count}'",
        "x if x else None",
    ],
)
def test_read_only_expressions_are_allowed(text: str) -> None:
    verdict = classifier.check_expression(text)
    assert isinstance(verdict, classifier.Allowed)
    assert verdict.allowed is True
    assert verdict.program.expression.text == text


@pytest.mark.parametrize(
    "text",
    [
        "(y := 5)",
        "[(z := i) for i in items]",
        "sorted(items, key=lambda v: -v)",
        "obj.__setattr__('a', 1)",
        "items.__setitem__(0, 1)",
        "(yield 1)",
    ],
)
def test_prohibited_shapes_are_rejected(text: str) -> None:
    assert _rejected_cause(text) is MutationCause.PROHIBITED_INSTRUCTION


@pytest.mark.parametrize(
    "text",
    [
        "obj.value = 1",
        "global counter",
        "class Foo: pass",
        "try:\n    x\nexcept Exception:\n    pass",
        "import os",
        "del items[0]",
    ],
)
def test_statements_never_compile(text: str) -> None:
    assert _rejected_cause(text) is MutationCause.PROHIBITED_INSTRUCTION


def test_syntax_error_is_reported_as_rejection() -> None:
    with pytest.raises(MutationError) as excinfo:
        classifier.compile_expression("1 +")
    assert excinfo.value.cause is MutationCause.PROHIBITED_INSTRUCTION
    assert "Unable to compile expression" in excinfo.value.message

    verdict = classifier.check_expression("1 +")
    assert isinstance(verdict, classifier.Rejected)
    assert "Unable to compile expression" in verdict.error.message


def test_rejection_message_names_the_problem() -> None:
    verdict = classifier.check_expression("(y := 5)")
    assert isinstance(verdict, classifier.Rejected)
    assert verdict.error.message.startswith("Mutation detected!")
    assert "ssignment" in verdict.error.message


class Holder:
    value = 0


COUNTER = 0


def _sets_attribute(obj):
    obj.value = 1
    return obj


def _sets_global():
    global COUNTER
    COUNTER = 1
    return COUNTER


def _swallows_errors(items):
    try:
        return items[0]
    except IndexError:
        return None


def _extends_in_place(items):
    items += [1]
    return items


def _defines_class():
    class Inner:
        pass

    return Inner


def _defines_closure(items):
    return sorted(items, key=lambda v: -v)


def _imports_module():
    import json

    return json


def _writes_item(mapping):
    mapping["key"] = 1
    return mapping


def _reads_only(values):
    total = 0
    for value in values:
        total = total + value
    doubled = [v * 2 for v in values]
    return total, doubled, sum(v for v in values)


@pytest.mark.parametrize(
    "func",
    [
        _sets_attribute,
        _sets_global,
        _swallows_errors,
        _extends_in_place,
        _defines_class,
        _defines_closure,
        _imports_module,
        _writes_item,
    ],
)
def test_classify_code_rejects_writing_functions(func) -> None:
    error = classifier.classify_code(func.__code__)
    assert error is not None
    assert error.cause is MutationCause.PROHIBITED_INSTRUCTION


def test_classify_code_allows_local_writes_in_helpers() -> None:
    assert classifier.classify_code(_reads_only.__code__) is None


def test_classify_code_can_forbid_local_writes() -> None:
    error = classifier.classify_code(_reads_only.__code__, allow_local_writes=False)
    assert error is not None
    assert "Local variable write" in error.message


def test_compiled_program_binds_namespace() -> None:
    program = classifier.compile_expression("[v + offset for v in values]")
    function = program.bind({"values": [1, 2], "offset": 10, "__builtins__": __builtins__}, CallGuard())
    assert function() == [11, 12]


@pytest.mark.parametrize(
    "text",
    [
        "any(iter(items.pop, None))",
        "getattr(items, '__setitem__')(0, 99)",
        "hasattr(items, '__delitem__')",
        "getattr(items, name)",
        "__breakpoint_guard__.call(print, 'x')",
    ],
)
def test_attribute_lookups_and_sentinel_iteration_are_rejected(text: str) -> None:
    assert _rejected_cause(text) is MutationCause.PROHIBITED_INSTRUCTION


def test_literal_attribute_lookups_are_allowed() -> None:
    assert classifier.check_expression("getattr(obj, 'value', None)").allowed
    assert classifier.check_expression("hasattr(obj, '__class__')").allowed


@pytest.mark.parametrize(
    "text",
    [
        "any(map(items.append, [4]))",
        "sorted([1], key=items.append)",
        "max([9], key=data.setdefault)",
        "sum(it)",
        "[*it]",
        "3 in it",
    ],
)
def test_calls_and_iteration_are_compiled_through_the_guard(text: str) -> None:
    program = classifier.compile_expression(text)
    assert classifier.GUARD_NAME in program.code.co_names
    assert classifier.GUARD_NAME not in ast.dump(program.tree)
