"""Component Domain Aggregate Root.

The ComponentRegistry owns all ComponentDefinitions and answers the origin
checks the composition root performs before handing a component out.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union
from urllib.parse import urlsplit

from ixpserver.domains.shared.errors import (
    DuplicateNameError,
    InvalidDefinitionError,
    SchemaDefinitionError,
)
from ixpserver.domains.shared.listeners import ChangeListeners

from .entities import WILDCARD_ORIGIN, ComponentDefinition
from .value_objects import parse_size

logger = logging.getLogger(__name__)

ComponentLike = Union[ComponentDefinition, Mapping[str, Any]]
ComponentCollection = Union[Mapping[str, Mapping[str, Any]], Iterable[ComponentLike]]


@dataclass
class ComponentRegistry:
    """Registry of component definitions keyed by name.

    Invariants:
        - Each name has at most one definition
        - ``allowed_origins`` is never empty
        - ``remote_url`` is an absolute http(s) URL

    The declared ``bundle_size`` is compared with
    ``security_policy.max_bundle_size`` on registration, but only a warning
    is logged when the budget is exceeded.
    """
    _components: Dict[str, ComponentDefinition] = field(default_factory=dict)
    _config_path: Optional[Path] = None
    _listeners: ChangeListeners = field(
        default_factory=lambda: ChangeListeners("component registry")
    )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, component: ComponentLike) -> ComponentDefinition:
        """Register a new component.

        Raises:
            DuplicateNameError: If the name is already registered
            InvalidDefinitionError: If the definition is malformed
        """
        definition = self._coerce(component)
        self.validate_component(definition)
        if definition.name in self._components:
            raise DuplicateNameError("Component", definition.name)

        self._check_bundle_budget(definition)
        self._components[definition.name] = definition
        logger.debug("Registered component '%s' (%s) from %s",
                     definition.name, definition.framework, definition.remote_url)
        self._listeners.notify()
        return definition

    def add_all(self, components: Iterable[ComponentLike]) -> None:
        for component in components:
            self.add(component)

    def remove(self, name: str) -> bool:
        removed = self._components.pop(name, None) is not None
        if removed:
            self._listeners.notify()
        return removed

    def load(self, components: ComponentCollection) -> None:
        """Replace the registry contents after validating every entry.

        Accepts either a ``{name: definition}`` mapping (config file shape)
        or an iterable of definitions.
        """
        staged: Dict[str, ComponentDefinition] = {}
        for definition in _iter_definitions(components):
            self.validate_component(definition)
            if definition.name in staged:
                raise DuplicateNameError("Component", definition.name)
            staged[definition.name] = definition

        for definition in staged.values():
            self._check_bundle_budget(definition)
        self._components = staged
        self._listeners.notify()

    def clear(self) -> None:
        self._components = {}
        self._listeners.notify()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, name: str) -> Optional[ComponentDefinition]:
        return self._components.get(name)

    def get_all(self) -> List[ComponentDefinition]:
        return list(self._components.values())

    def has(self, name: str) -> bool:
        return name in self._components

    def __len__(self) -> int:
        return len(self._components)

    def is_origin_allowed(self, name: str, origin: str) -> bool:
        """True if ``origin`` may load component ``name``.

        Unknown components answer False rather than raising.
        """
        component = self._components.get(name)
        if component is None:
            return False
        return WILDCARD_ORIGIN in component.allowed_origins or origin in component.allowed_origins

    def find_by_criteria(
        self,
        framework: Optional[str] = None,
        deprecated: Optional[bool] = None,
        sandboxed: Optional[bool] = None,
    ) -> List[ComponentDefinition]:
        results = []
        for component in self._components.values():
            if framework is not None and component.framework != framework:
                continue
            if deprecated is not None and component.deprecated != deprecated:
                continue
            if sandboxed is not None and component.security_policy.sandboxed != sandboxed:
                continue
            results.append(component)
        return results

    def get_stats(self) -> Dict[str, Any]:
        by_framework: Dict[str, int] = {}
        deprecated = sandboxed = 0
        sizes: List[int] = []
        for component in self._components.values():
            by_framework[component.framework] = by_framework.get(component.framework, 0) + 1
            deprecated += int(component.deprecated)
            sandboxed += int(component.security_policy.sandboxed)
            if component.bundle_bytes is not None:
                sizes.append(component.bundle_bytes)

        average = round(sum(sizes) / len(sizes) / 1024) if sizes else 0
        return {
            "total": len(self._components),
            "byFramework": by_framework,
            "deprecated": deprecated,
            "sandboxed": sandboxed,
            "averageBundleSize": f"{average}KB",
        }

    # ------------------------------------------------------------------
    # Change notification and file loading
    # ------------------------------------------------------------------

    def on_change(self, listener: Callable[[], None]) -> Callable[[], None]:
        return self._listeners.add(listener)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ComponentRegistry":
        """Create a registry from a ``{"components": {name: {...}}}`` file."""
        registry = cls(_config_path=Path(path))
        registry.load(_read_component_file(registry._config_path))
        logger.info("Loaded %d components from %s", len(registry), path)
        return registry

    def reload(self) -> bool:
        if self._config_path is None:
            return False
        self.load(_read_component_file(self._config_path))
        logger.info("Reloaded %d components from %s", len(self), self._config_path)
        return True

    def close(self) -> None:
        self._listeners.clear()
        self._components = {}

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_component(component: ComponentDefinition) -> None:
        """Check the structural invariants of a definition.

        Raises:
            InvalidDefinitionError: On the first structural problem found
        """
        if not isinstance(component.name, str) or not component.name:
            raise InvalidDefinitionError("Component must have a valid name")
        name = component.name
        for attr, label in (
            ("framework", "framework"),
            ("export_name", "exportName"),
            ("version", "version"),
            ("remote_url", "remoteUrl"),
        ):
            value = getattr(component, attr)
            if not isinstance(value, str) or not value:
                raise InvalidDefinitionError(f"Component '{name}' must have a non-empty {label}")

        parts = urlsplit(component.remote_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise InvalidDefinitionError(
                f"Component '{name}' has invalid remoteUrl format: {component.remote_url!r}"
            )

        if not isinstance(component.props_schema, Mapping):
            raise InvalidDefinitionError(f"Component '{name}' must have a propsSchema")
        if component.props_schema.get("type") != "object":
            raise InvalidDefinitionError(
                f"Component '{name}' propsSchema must be of type \"object\""
            )
        try:
            component.props_node
        except SchemaDefinitionError as exc:
            raise InvalidDefinitionError(
                f"Component '{name}' has an invalid propsSchema: {exc.message}"
            ) from exc

        origins = component.allowed_origins
        if not isinstance(origins, tuple) or not origins:
            raise InvalidDefinitionError(
                f"Component '{name}' must have a non-empty allowedOrigins array"
            )
        for origin in origins:
            if not isinstance(origin, str) or not origin:
                raise InvalidDefinitionError(
                    f"Component '{name}' has an invalid allowed origin: {origin!r}"
                )

        policy = component.security_policy
        if not isinstance(policy.allow_eval, bool):
            raise InvalidDefinitionError(
                f"Component '{name}' securityPolicy.allowEval must be boolean"
            )
        if not isinstance(policy.sandboxed, bool):
            raise InvalidDefinitionError(
                f"Component '{name}' securityPolicy.sandboxed must be boolean"
            )

    @staticmethod
    def _check_bundle_budget(component: ComponentDefinition) -> None:
        # Advisory only: an oversized bundle is reported, never rejected.
        budget = parse_size(component.security_policy.max_bundle_size)
        size = component.bundle_bytes
        if budget is not None and size is not None and size > budget:
            logger.warning(
                "Component '%s' bundle size %s exceeds securityPolicy.maxBundleSize %s",
                component.name,
                component.bundle_size,
                component.security_policy.max_bundle_size,
            )

    @staticmethod
    def _coerce(component: ComponentLike) -> ComponentDefinition:
        if isinstance(component, ComponentDefinition):
            return component
        return ComponentDefinition.from_dict(component)


def _iter_definitions(components: ComponentCollection) -> Iterable[ComponentDefinition]:
    if isinstance(components, Mapping):
        for name, data in components.items():
            if isinstance(data, ComponentDefinition):
                yield data
            else:
                yield ComponentDefinition.from_dict(data, name=name)
        return
    for item in components:
        yield ComponentRegistry._coerce(item)


def _read_component_file(path: Path) -> Any:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidDefinitionError(
            f"Component configuration {path} is not valid JSON: {exc}"
        ) from exc

    if isinstance(data, Mapping):
        data = data.get("components")
    if not isinstance(data, (Mapping, list)):
        raise InvalidDefinitionError(
            f"Invalid component configuration {path}: missing or invalid \"components\" object"
        )
    return data
