"""
toolbridge.registry.schema

Purpose:
    Explicit description of the arguments a tool accepts, plus a validator that
    returns a structured list of violations (never raises on bad input).

Notes:
    - Schemas are flat: every tool in the catalogue takes primitive arguments.
    - to_json_schema() renders the description clients see during discovery.
    - Booleans never satisfy integer/number fields even though bool subclasses int.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class SchemaError(ValueError):
    """A schema description is malformed (raised at registration time)."""


class FieldType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"


class ViolationCode(str, Enum):
    MISSING = "missing"
    TYPE = "type"
    RANGE = "range"
    INVALID = "invalid"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: FieldType
    description: str = ""
    required: bool = True
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    @property
    def is_numeric(self) -> bool:
        return self.type in (FieldType.INTEGER, FieldType.NUMBER)


@dataclass(frozen=True)
class Violation:
    field: str
    code: ViolationCode
    message: str


@dataclass(frozen=True)
class InputSchema:
    fields: Tuple[FieldSpec, ...] = field(default_factory=tuple)

    def check(self) -> None:
        """Raise SchemaError if this description cannot be used for validation."""
        seen: set[str] = set()
        for spec in self.fields:
            if not isinstance(spec, FieldSpec):
                raise SchemaError(f"Schema field must be FieldSpec, got {type(spec).__name__}")
            if not spec.name or not spec.name.strip():
                raise SchemaError("Schema field name must not be empty")
            if spec.name in seen:
                raise SchemaError(f"Duplicate schema field: {spec.name}")
            seen.add(spec.name)

            if not isinstance(spec.type, FieldType):
                raise SchemaError(f"Field '{spec.name}' has unsupported type {spec.type!r}")

            has_bounds = spec.minimum is not None or spec.maximum is not None
            if has_bounds and not spec.is_numeric:
                raise SchemaError(f"Field '{spec.name}' declares a range but is {spec.type.value}")
            if spec.minimum is not None and spec.maximum is not None and spec.minimum > spec.maximum:
                raise SchemaError(f"Field '{spec.name}' has minimum greater than maximum")

    def to_json_schema(self) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for spec in self.fields:
            prop: Dict[str, Any] = {"type": spec.type.value}
            if spec.description:
                prop["description"] = spec.description
            if spec.minimum is not None:
                prop["minimum"] = spec.minimum
            if spec.maximum is not None:
                prop["maximum"] = spec.maximum
            properties[spec.name] = prop
            if spec.required:
                required.append(spec.name)
        return {"type": "object", "properties": properties, "required": required}


def _matches_type(value: Any, expected: FieldType) -> bool:
    if expected is FieldType.STRING:
        return isinstance(value, str)
    if expected is FieldType.BOOLEAN:
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if expected is FieldType.INTEGER:
        if isinstance(value, int):
            return True
        return isinstance(value, float) and value.is_integer()
    if expected is FieldType.NUMBER:
        return isinstance(value, (int, float))
    return False


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def validate_arguments(schema: InputSchema, arguments: Any) -> List[Violation]:
    """
    Validate a raw arguments payload against a schema.

    Returns violations in schema field order; an empty list means valid.
    Unknown extra keys are ignored.
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        return [
            Violation(
                field="arguments",
                code=ViolationCode.INVALID,
                message=f"Invalid arguments: expected object, received {_describe(arguments)}",
            )
        ]

    violations: List[Violation] = []
    for spec in schema.fields:
        if spec.name not in arguments or arguments[spec.name] is None:
            if spec.required:
                violations.append(
                    Violation(
                        field=spec.name,
                        code=ViolationCode.MISSING,
                        message=f"Missing required field: {spec.name}.",
                    )
                )
            continue

        value = arguments[spec.name]
        if not _matches_type(value, spec.type):
            violations.append(
                Violation(
                    field=spec.name,
                    code=ViolationCode.TYPE,
                    message=(
                        f"Invalid type for {spec.name}: expected {spec.type.value}, "
                        f"received {_describe(value)}."
                    ),
                )
            )
            continue

        if spec.minimum is not None and value < spec.minimum:
            violations.append(
                Violation(
                    field=spec.name,
                    code=ViolationCode.RANGE,
                    message=f"Invalid {spec.name}: must be >= {spec.minimum:g}, received {value}.",
                )
            )
        elif spec.maximum is not None and value > spec.maximum:
            violations.append(
                Violation(
                    field=spec.name,
                    code=ViolationCode.RANGE,
                    message=f"Invalid {spec.name}: must be <= {spec.maximum:g}, received {value}.",
                )
            )

    return violations
