"""Intent Domain Value Objects.

Immutable types that carry no identity. Equality is structural.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from ixpserver.domains.component.entities import ComponentDefinition
from ixpserver.domains.shared.errors import InvalidRequestError

from .entities import IntentDefinition


@dataclass(frozen=True)
class IntentRequest:
    """A caller's request to resolve an intent.

    Attributes:
        name: Registered intent name
        parameters: Parameters validated against the intent's schema
        context: Opaque caller context forwarded to the Data Provider
        ttl: Optional cache hint override in seconds (0 = do not cache)

    Examples:
        >>> IntentRequest(name="greet", parameters={"name": "Ada"})
        >>> IntentRequest.from_dict({"intent": {"name": "greet", "parameters": {}}})
    """
    name: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    context: Optional[Dict[str, Any]] = None
    ttl: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IntentRequest":
        """Accept the ``POST /ixp/render`` body or a bare intent mapping.

        Raises:
            InvalidRequestError: If the intent name is missing or the
                parameters are not an object
        """
        if not isinstance(data, Mapping):
            raise InvalidRequestError("Request body must be a JSON object")
        intent = data.get("intent", data)
        if not isinstance(intent, Mapping):
            raise InvalidRequestError("'intent' must be an object")
        name = intent.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidRequestError("Intent name is required")
        parameters = intent.get("parameters")
        if parameters is None:
            parameters = {}
        if not isinstance(parameters, Mapping):
            raise InvalidRequestError("Intent parameters must be an object")
        context = data.get("context") if "intent" in data else intent.get("context")
        if context is not None and not isinstance(context, Mapping):
            raise InvalidRequestError("'context' must be an object")
        return cls(
            name=name,
            parameters=dict(parameters),
            context=dict(context) if context is not None else None,
            ttl=data.get("ttl", intent.get("ttl")),
        )


@dataclass(frozen=True)
class ResolutionRecord:
    """The outcome of resolving an intent.

    Ephemeral: built per request and never stored by the resolver.

    Attributes:
        module_url: Remote bundle URL of the mapped component
        export_name: Named export the client loader mounts
        props: Merged props (component defaults < provider data < parameters)
        resolved_at: UTC time of resolution
        ttl: Cache hint in seconds; 0 means do not cache
        cache_hit: Always False; the resolver has no cache
        intent: The resolved intent definition
        component: The mapped component definition
    """
    module_url: str
    export_name: str
    props: Dict[str, Any]
    ttl: int
    intent: IntentDefinition
    component: ComponentDefinition
    resolved_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cache_hit: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "moduleUrl": self.module_url,
            "exportName": self.export_name,
            "props": self.props,
            "resolvedAt": self.resolved_at.isoformat(),
            "ttl": self.ttl,
            "cacheHit": self.cache_hit,
        }

    def to_component_payload(self) -> Dict[str, Any]:
        """The ``component`` object of a successful ``/ixp/render`` answer."""
        return {
            "name": self.component.name,
            "framework": self.component.framework,
            "remoteUrl": self.module_url,
            "exportName": self.export_name,
            "props": self.props,
            "version": self.component.version,
        }
