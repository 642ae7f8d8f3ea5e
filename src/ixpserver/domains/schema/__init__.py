"""Schema Bounded Context.

Checks JSON Schema definitions, compiles them into a recursive tagged union
and validates values against them in strict or advisory mode.
"""
from .value_objects import (
    ArraySchema, ObjectSchema, PrimitiveSchema, SchemaKind, SchemaNode,
    ValidationMode, ValidationResult, Violation, format_path, parse_schema,
)
from .services import SchemaValidator

__all__ = [
    "ArraySchema", "ObjectSchema", "PrimitiveSchema", "SchemaKind", "SchemaNode",
    "ValidationMode", "ValidationResult", "Violation", "format_path", "parse_schema",
    "SchemaValidator",
]
