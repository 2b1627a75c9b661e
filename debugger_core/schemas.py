from __future__ import annotations

from collections.abc import Mapping
from typing import TypeVar

from pydantic import BaseModel, Field

DEFAULT_MAX_VALUE_LENGTH = 256

TBaseSchema = TypeVar("TBaseSchema", bound="BaseSchema")


class BaseSchema(BaseModel):
    def to_json(self) -> str:
        return self.model_dump_json()

    def to_dict(self) -> dict[str, object]:
        return self.model_dump()

    @classmethod
    def from_json(cls: type[TBaseSchema], data: str) -> TBaseSchema:
        return cls.model_validate_json(data)

    @classmethod
    def from_dict(cls: type[TBaseSchema], data: Mapping[str, object]) -> TBaseSchema:
        return cls.model_validate(data)


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


class Variable(BaseSchema):
    """Name, type and rendered value of a captured or evaluated value.

    A Variable never holds a reference to the value it was rendered from.
    """

    name: str | None = None
    type: str | None = None
    value: str
    is_error: bool = False

    @classmethod
    def from_value(
        cls,
        value: object,
        name: str | None = None,
        max_length: int = DEFAULT_MAX_VALUE_LENGTH,
    ) -> "Variable":
        try:
            text = value if isinstance(value, str) else repr(value)
        except Exception as exc:  # noqa: BLE001 - a broken __repr__ is reported, not raised
            return cls.from_error(f"Unable to render value: {exc.__class__.__name__}: {exc}", name=name)
        return cls(name=name, type=type(value).__name__, value=truncate(text, max_length))

    @classmethod
    def from_rendered(
        cls,
        type_name: str,
        text: str,
        name: str | None = None,
        max_length: int = DEFAULT_MAX_VALUE_LENGTH,
    ) -> "Variable":
        return cls(name=name, type=type_name, value=truncate(text, max_length))

    @classmethod
    def from_error(cls, message: str, name: str | None = None) -> "Variable":
        return cls(name=name, type=None, value=message, is_error=True)


class SourceLocation(BaseSchema):
    path: str
    line: int = Field(ge=0)


class StackFrame(BaseSchema):
    function: str
    location: SourceLocation
    locals: list[Variable] = Field(default_factory=list)


class EvaluatorConfig(BaseSchema):
    stack_eval_depth: int = Field(default=5, ge=0)
    max_value_length: int = Field(default=DEFAULT_MAX_VALUE_LENGTH, ge=16)
    thread_name: str = "breakpoint-evaluator"
