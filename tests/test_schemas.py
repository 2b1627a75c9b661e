import pytest
from pydantic import ValidationError

from debugger_core.schemas import (
    EvaluatorConfig,
    SourceLocation,
    StackFrame,
    Variable,
    truncate,
)


class BrokenRepr:
    def __repr__(self) -> str:
        raise RuntimeError("no repr for you")


def test_variable_from_value() -> None:
    text = Variable.from_value("hello", name="greeting")
    assert text.name == "greeting"
    assert text.type == "str"
    assert text.value == "hello"

    numbers = Variable.from_value([1, 2], name="numbers")
    assert numbers.type == "list"
    assert numbers.value == "[1, 2]"
    assert numbers.is_error is False


def test_variable_does_not_keep_the_value() -> None:
    data = {"a": 1}
    variable = Variable.from_value(data, name="data")
    data["b"] = 2
    assert variable.value == "{'a': 1}"


def test_variable_with_broken_repr_is_an_error() -> None:
    variable = Variable.from_value(BrokenRepr(), name="obj")
    assert variable.is_error is True
    assert "no repr for you" in variable.value
    assert variable.name == "obj"


def test_truncate() -> None:
    assert truncate("short", 10) == "short"
    assert truncate("x" * 50, 16) == "x" * 13 + "..."


def test_stack_frame_serialize_roundtrip() -> None:
    frame = StackFrame(
        function="handler",
        location=SourceLocation(path="/srv/app.py", line=42),
        locals=[Variable(name="x", type="int", value="1")],
    )
    restored = StackFrame.from_json(frame.to_json())
    assert restored.to_dict() == frame.to_dict()


def test_stack_frame_defaults_to_no_locals() -> None:
    frame = StackFrame.from_dict({"function": "f", "location": {"path": "a.py", "line": 1}})
    assert frame.locals == []


def test_config_defaults_and_validation() -> None:
    config = EvaluatorConfig()
    assert config.stack_eval_depth == 5
    assert config.max_value_length == 256

    with pytest.raises(ValidationError):
        _ = EvaluatorConfig(stack_eval_depth=-1)
    with pytest.raises(ValidationError):
        _ = EvaluatorConfig(max_value_length=4)
