"""
Capability registry: static tool catalogue + argument schemas.
"""

from .registry import CapabilityRegistry, RegistryError, ToolDefinition, ToolHandler
from .schema import (
    FieldSpec,
    FieldType,
    InputSchema,
    SchemaError,
    Violation,
    ViolationCode,
    validate_arguments,
)

__all__ = [
    "CapabilityRegistry",
    "RegistryError",
    "ToolDefinition",
    "ToolHandler",
    "FieldSpec",
    "FieldType",
    "InputSchema",
    "SchemaError",
    "Violation",
    "ViolationCode",
    "validate_arguments",
]
