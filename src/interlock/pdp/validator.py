"""Value validation for call arguments.

Stateless predicate evaluation against declared constraints. Used by the
``validate`` policy step, e.g. to reject leaderboard scores outside
0..1,000,000 or of the wrong type.

Constraint kinds:
    range    numeric, min <= value <= max (either bound optional)
    type     "number" | "integer" | "string" | "boolean"
    enum     membership in a fixed list of values
    pattern  full regex match on strings

``validate`` never raises for a malformed value: a value of the wrong type
or out of range is simply False. Malformed *constraints* are rejected when
they are parsed (policy load time), not when values are checked.

Any object with a ``check(value) -> bool`` method can be passed as a
constraint, so new kinds plug in without touching the engine.

Example:
    >>> validate(0, {"min": 0, "max": 1_000_000})
    True
    >>> validate("5", {"type": "number"})
    False
"""

from __future__ import annotations

__all__ = [
    "Constraint",
    "ConstraintSpec",
    "EnumConstraint",
    "PatternConstraint",
    "RangeConstraint",
    "TypeConstraint",
    "is_number",
    "parse_constraint",
    "validate",
]

import math
import numbers
import re
from typing import Annotated, Any, Literal, Protocol, Self, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator


@runtime_checkable
class Constraint(Protocol):
    """Anything that can judge a single value."""

    def check(self, value: Any) -> bool: ...


def is_number(value: Any) -> bool:
    """True for real numbers, excluding booleans.

    ``True`` is an ``int`` in Python but never a score.
    """
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


class RangeConstraint(BaseModel):
    """Numeric range check. Implies the value is a finite number."""

    kind: Literal["range"] = "range"
    min: float | None = None
    max: float | None = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def bounds_are_ordered(self) -> Self:
        if self.min is None and self.max is None:
            raise ValueError("range constraint needs at least one of min/max")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"range min ({self.min}) is greater than max ({self.max})")
        return self

    def check(self, value: Any) -> bool:
        if not is_number(value):
            return False
        try:
            number = float(value)
        except (OverflowError, TypeError, ValueError):
            return False
        if not math.isfinite(number):
            return False
        if self.min is not None and number < self.min:
            return False
        if self.max is not None and number > self.max:
            return False
        return True


class TypeConstraint(BaseModel):
    """Type check against a small set of portable type names."""

    kind: Literal["type"] = "type"
    type: Literal["number", "integer", "string", "boolean"]

    model_config = ConfigDict(frozen=True)

    def check(self, value: Any) -> bool:
        if self.type == "number":
            return is_number(value)
        if self.type == "integer":
            if isinstance(value, bool):
                return False
            if isinstance(value, numbers.Integral):
                return True
            return isinstance(value, float) and value.is_integer()
        if self.type == "string":
            return isinstance(value, str)
        return isinstance(value, bool)


class EnumConstraint(BaseModel):
    """Membership in a fixed set of values.

    Booleans and numbers are kept apart (True does not match 1).
    """

    kind: Literal["enum"] = "enum"
    values: list[Any] = Field(min_length=1)

    model_config = ConfigDict(frozen=True)

    def check(self, value: Any) -> bool:
        for allowed in self.values:
            if isinstance(allowed, bool) != isinstance(value, bool):
                continue
            try:
                if value == allowed:
                    return True
            except Exception:
                continue
        return False


class PatternConstraint(BaseModel):
    """Full regex match on string values."""

    kind: Literal["pattern"] = "pattern"
    pattern: str = Field(min_length=1)

    model_config = ConfigDict(frozen=True)

    @field_validator("pattern")
    @classmethod
    def pattern_compiles(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid regular expression {v!r}: {e}") from e
        return v

    def check(self, value: Any) -> bool:
        if not isinstance(value, str):
            return False
        return re.fullmatch(self.pattern, value) is not None


ConstraintSpec = Annotated[
    RangeConstraint | TypeConstraint | EnumConstraint | PatternConstraint,
    Field(discriminator="kind"),
]

_constraint_adapter: TypeAdapter[Any] = TypeAdapter(ConstraintSpec)


def parse_constraint(data: Any) -> Constraint:
    """Build a constraint from a model, checker object or plain dict.

    Dicts without a "kind" key are inferred: "min"/"max" make a range,
    "type" a type check, "values" an enum, "pattern" a pattern.

    Raises:
        ValueError: If the dict does not describe a valid constraint.
    """
    if not isinstance(data, dict):
        if isinstance(data, Constraint):
            return data
        raise ValueError(f"Unsupported constraint: {data!r}")

    if "kind" not in data:
        data = dict(data)
        if "min" in data or "max" in data:
            data["kind"] = "range"
        elif "type" in data:
            data["kind"] = "type"
        elif "values" in data:
            data["kind"] = "enum"
        elif "pattern" in data:
            data["kind"] = "pattern"
        else:
            raise ValueError(f"Cannot infer constraint kind from {sorted(data)}")

    return _constraint_adapter.validate_python(data)


def validate(value: Any, constraints: Any) -> bool:
    """Check a value against one constraint or a list of constraints (AND).

    Args:
        value: The value to check, of any type.
        constraints: A constraint, a dict, or a list of either.

    Returns:
        True if every constraint accepts the value. An empty list accepts
        everything.

    Raises:
        ValueError: If a constraint itself is malformed.
    """
    if not isinstance(constraints, (list, tuple)):
        constraints = [constraints]

    for spec in constraints:
        constraint = parse_constraint(spec)
        try:
            if not constraint.check(value):
                return False
        except Exception:
            # A checker tripping over an odd value is a rejection, not a crash
            return False
    return True
