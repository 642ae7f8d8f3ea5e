"""Intent Domain Entities.

An IntentDefinition is identified by its ``name``. Definitions are immutable
once created; the registry replaces or removes them as a whole.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Any, Dict, Mapping, Optional, Tuple

from ixpserver.domains.schema.value_objects import ObjectSchema, parse_schema
from ixpserver.domains.shared.errors import InvalidDefinitionError, SchemaDefinitionError
from ixpserver.domains.shared.kernel import pick


@dataclass(frozen=True)
class IntentDefinition:
    """A named, versioned user goal mapped to a remote component.

    Attributes:
        name: Unique registry key
        description: Human readable summary
        parameters: JSON-Schema object describing accepted parameters
        component: Name of the component this intent renders; looked up at
            resolve time, so it may be registered later
        version: Definition version string
        crawlable: Whether crawlers may enumerate this intent
        category: Optional grouping used by discovery filters
        tags: Free-form labels used by discovery filters
        deprecated: Deprecated intents still resolve but log a warning
        ttl: Optional cache hint override in seconds (0 = do not cache)

    Examples:
        >>> IntentDefinition(
        ...     name="greet",
        ...     description="Say hello",
        ...     parameters={"type": "object", "properties": {"name": {"type": "string"}}},
        ...     component="Greeter",
        ...     version="1.0.0",
        ... )
    """
    name: str
    description: str
    parameters: Dict[str, Any]
    component: str
    version: str
    crawlable: bool = False
    category: Optional[str] = None
    tags: Tuple[str, ...] = ()
    deprecated: bool = False
    ttl: Optional[int] = None

    @cached_property
    def parameter_schema(self) -> ObjectSchema:
        """The compiled parameter schema.

        Raises:
            SchemaDefinitionError: If ``parameters`` does not compile
        """
        node = parse_schema(self.parameters)
        if not isinstance(node, ObjectSchema):
            raise SchemaDefinitionError(
                f"Intent '{self.name}' parameters must be of type \"object\""
            )
        return node

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IntentDefinition":
        """Build a definition from its camelCase wire/config form.

        Structural checks are left to :meth:`IntentRegistry.add`.
        """
        if not isinstance(data, Mapping):
            raise InvalidDefinitionError(
                f"Intent definition must be an object, got {type(data).__name__}"
            )
        tags = pick(data, "tags") or ()
        return cls(
            name=data.get("name"),
            description=data.get("description"),
            parameters=data.get("parameters"),
            component=data.get("component"),
            version=data.get("version"),
            crawlable=bool(data.get("crawlable", False)),
            category=data.get("category"),
            tags=tuple(tags) if isinstance(tags, (list, tuple)) else (tags,),
            deprecated=bool(data.get("deprecated", False)),
            ttl=data.get("ttl"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """camelCase representation used by ``GET /ixp/intents``."""
        result: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
            "component": self.component,
            "version": self.version,
            "crawlable": self.crawlable,
            "deprecated": self.deprecated,
            "tags": list(self.tags),
        }
        if self.category is not None:
            result["category"] = self.category
        if self.ttl is not None:
            result["ttl"] = self.ttl
        return result
