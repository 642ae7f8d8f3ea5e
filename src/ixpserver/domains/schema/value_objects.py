"""Schema Domain Value Objects.

JSON Schema (Draft 7) definitions are checked against the metaschema once and
compiled into a small recursive tagged union of immutable nodes. The nodes
carry the structure the rest of the server reads (declared properties,
required names, defaults); every node keeps its source mapping so the
validator can hand keyword checking to ``jsonschema``.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, Mapping, Optional, Tuple, Union

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

from ixpserver.domains.shared.errors import SchemaDefinitionError


class SchemaKind(Enum):
    """Tag of a compiled schema node."""
    OBJECT = "object"
    ARRAY = "array"
    PRIMITIVE = "primitive"


class ValidationMode(Enum):
    """How violations are treated by :meth:`SchemaValidator.check`.

    STRICT rejects the value (intent parameters). ADVISORY logs and keeps
    the value (crawler records).
    """
    STRICT = "strict"
    ADVISORY = "advisory"


class _Missing:
    """Sentinel for "no default declared"."""

    def __repr__(self) -> str:
        return "<missing>"


MISSING = _Missing()


@dataclass(frozen=True)
class SchemaNode:
    """Base node: keywords that apply to every kind.

    Attributes:
        source: The JSON Schema mapping this node was compiled from
        types: Declared JSON types; empty means any type
        default: Declared default value, or MISSING
        description: Free-form description carried through from the source
    """
    source: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)
    types: Tuple[str, ...] = ()
    default: Any = MISSING
    description: Optional[str] = None

    kind: ClassVar[SchemaKind] = SchemaKind.PRIMITIVE

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING


@dataclass(frozen=True)
class ObjectSchema(SchemaNode):
    """Object node with named properties.

    ``additional_properties`` is True (anything allowed), False (no
    undeclared keys) or a node every undeclared value must satisfy.
    """
    properties: Dict[str, SchemaNode] = field(default_factory=dict)
    required: Tuple[str, ...] = ()
    additional_properties: Union[bool, SchemaNode] = True

    kind: ClassVar[SchemaKind] = SchemaKind.OBJECT

    def defaults(self) -> Dict[str, Any]:
        """Top-level declared defaults, deep-copied so callers may mutate."""
        return {
            name: copy.deepcopy(node.default)
            for name, node in self.properties.items()
            if node.has_default
        }


@dataclass(frozen=True)
class ArraySchema(SchemaNode):
    """Array node; ``items`` applies to every element."""
    items: Optional[SchemaNode] = None

    kind: ClassVar[SchemaKind] = SchemaKind.ARRAY


@dataclass(frozen=True)
class PrimitiveSchema(SchemaNode):
    """String, number, integer, boolean or null node (or untyped leaf)."""

    kind: ClassVar[SchemaKind] = SchemaKind.PRIMITIVE


@dataclass(frozen=True)
class Violation:
    """A single schema violation.

    Attributes:
        path: Dotted location of the offending value ("" is the root)
        keyword: Schema keyword that failed (e.g. "required", "type")
        message: Human readable description
    """
    path: str
    keyword: str
    message: str

    def __str__(self) -> str:
        return f"{self.path or '$'}: {self.message}"

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "keyword": self.keyword, "message": self.message}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one value against one schema."""
    valid: bool
    errors: Tuple[Violation, ...] = ()

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": [e.to_dict() for e in self.errors]}


def format_path(parts: Iterable[Union[str, int]]) -> str:
    """Render a location as ``items[1].qty`` (empty string for the root)."""
    path = ""
    for part in parts:
        if isinstance(part, int):
            path = f"{path}[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path


# ============================================================
# Compilation
# ============================================================

_OBJECT_KEYWORDS = ("properties", "required", "additionalProperties")
_ARRAY_KEYWORDS = ("items", "minItems", "maxItems")


def parse_schema(raw: Union[Mapping[str, Any], SchemaNode]) -> SchemaNode:
    """Check a JSON Schema mapping and compile it into a :class:`SchemaNode` tree.

    Args:
        raw: The schema mapping (or an already compiled node)

    Returns:
        The compiled node

    Raises:
        SchemaDefinitionError: If the definition is not a valid Draft 7 schema
    """
    if isinstance(raw, SchemaNode):
        return raw
    if not isinstance(raw, Mapping):
        raise SchemaDefinitionError(
            f"Schema must be an object, got {type(raw).__name__}"
        )
    try:
        Draft7Validator.check_schema(raw)
    except SchemaError as exc:
        raise SchemaDefinitionError(
            f"Invalid schema at '{format_path(exc.absolute_path) or '$'}': {exc.message}"
        ) from exc
    return _compile(raw)


def _compile(raw: Union[Mapping[str, Any], bool]) -> SchemaNode:
    # Boolean schemas: true accepts anything, false rejects everything.
    if isinstance(raw, bool):
        return PrimitiveSchema(source={} if raw else {"not": {}})

    raw_type = raw.get("type")
    types = (raw_type,) if isinstance(raw_type, str) else tuple(raw_type or ())
    common: Dict[str, Any] = {
        "source": raw,
        "types": types,
        "default": copy.deepcopy(raw["default"]) if "default" in raw else MISSING,
        "description": raw.get("description"),
    }

    if "object" in types or (not types and any(k in raw for k in _OBJECT_KEYWORDS)):
        additional = raw.get("additionalProperties", True)
        return ObjectSchema(
            properties={
                name: _compile(prop) for name, prop in (raw.get("properties") or {}).items()
            },
            required=tuple(raw.get("required") or ()),
            additional_properties=(
                additional if isinstance(additional, bool) else _compile(additional)
            ),
            **common,
        )
    if "array" in types or (not types and any(k in raw for k in _ARRAY_KEYWORDS)):
        items = raw.get("items")
        # Tuple-form ``items`` stays in the source for the validator only.
        return ArraySchema(
            items=_compile(items) if isinstance(items, (Mapping, bool)) else None,
            **common,
        )
    return PrimitiveSchema(**common)
