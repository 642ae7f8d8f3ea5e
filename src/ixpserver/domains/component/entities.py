"""Component Domain Entities.

A ComponentDefinition is identified by its ``name``. It is a reference to
remote code plus the metadata needed to load it safely; the server never
fetches or executes the bundle itself.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from ixpserver.domains.schema.value_objects import ObjectSchema, parse_schema
from ixpserver.domains.shared.errors import InvalidDefinitionError, SchemaDefinitionError
from ixpserver.domains.shared.kernel import pick

from .value_objects import FallbackReference, PerformanceMetadata, SecurityPolicy, parse_size

WILDCARD_ORIGIN = "*"


@dataclass(frozen=True)
class ComponentDefinition:
    """A framework-tagged remote UI bundle reference.

    Attributes:
        name: Unique registry key
        framework: Opaque framework tag ("react", "vue", "vanilla", ...)
        remote_url: Absolute URL of the ES module bundle
        export_name: Named export the client loader mounts
        props_schema: JSON-Schema object describing accepted props; top-level
            ``default`` values become default props
        version: Definition version string
        allowed_origins: Origins permitted to load the component; ``"*"``
            allows any origin. Never empty.
        bundle_size: Declared bundle size (e.g. "45KB")
        performance: Declared performance metadata
        security_policy: Loading constraints
        fallback: Optional fallback shown when loading fails
        deprecated: Deprecated components still resolve but log a warning
        description: Optional human readable summary
    """
    name: str
    framework: str
    remote_url: str
    export_name: str
    props_schema: Dict[str, Any]
    version: str
    allowed_origins: Tuple[str, ...]
    bundle_size: Optional[str] = None
    performance: PerformanceMetadata = field(default_factory=PerformanceMetadata)
    security_policy: SecurityPolicy = field(default_factory=SecurityPolicy)
    fallback: Optional[FallbackReference] = None
    deprecated: bool = False
    description: Optional[str] = None

    @cached_property
    def props_node(self) -> ObjectSchema:
        """The compiled props schema."""
        node = parse_schema(self.props_schema)
        if not isinstance(node, ObjectSchema):
            raise SchemaDefinitionError(
                f"Component '{self.name}' propsSchema must be of type \"object\""
            )
        return node

    def default_props(self) -> Dict[str, Any]:
        """Defaults declared in the props schema (fresh copy per call)."""
        return self.props_node.defaults()

    @property
    def bundle_origin(self) -> str:
        """``scheme://host[:port]`` of the bundle URL."""
        parts = urlsplit(self.remote_url)
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def bundle_bytes(self) -> Optional[int]:
        return parse_size(self.bundle_size)

    def allows_any_origin(self) -> bool:
        return WILDCARD_ORIGIN in self.allowed_origins

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], name: Optional[str] = None) -> "ComponentDefinition":
        """Build a definition from its camelCase wire/config form.

        ``name`` overrides the mapping's own name; config files key
        components by name.
        """
        if not isinstance(data, Mapping):
            raise InvalidDefinitionError(
                f"Component definition must be an object, got {type(data).__name__}"
            )
        origins = pick(data, "allowedOrigins")
        return cls(
            name=name if name is not None else data.get("name"),
            framework=data.get("framework"),
            remote_url=pick(data, "remoteUrl"),
            export_name=pick(data, "exportName"),
            props_schema=pick(data, "propsSchema"),
            version=data.get("version"),
            allowed_origins=tuple(origins) if isinstance(origins, (list, tuple)) else origins,
            bundle_size=pick(data, "bundleSize"),
            performance=PerformanceMetadata.from_dict(data.get("performance")),
            security_policy=SecurityPolicy.from_dict(pick(data, "securityPolicy")),
            fallback=FallbackReference.from_dict(data.get("fallback")),
            deprecated=bool(data.get("deprecated", False)),
            description=data.get("description"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """camelCase representation used by ``GET /ixp/components``."""
        result: Dict[str, Any] = {
            "name": self.name,
            "framework": self.framework,
            "remoteUrl": self.remote_url,
            "exportName": self.export_name,
            "propsSchema": self.props_schema,
            "version": self.version,
            "allowedOrigins": list(self.allowed_origins),
            "bundleSize": self.bundle_size,
            "performance": self.performance.to_dict(),
            "securityPolicy": self.security_policy.to_dict(),
            "deprecated": self.deprecated,
        }
        if self.fallback is not None:
            result["fallback"] = self.fallback.to_dict()
        if self.description is not None:
            result["description"] = self.description
        return result
