"""Intent Domain Aggregate Root.

The IntentRegistry owns all IntentDefinitions and enforces the invariants
across the collection.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from ixpserver.domains.shared.errors import (
    DuplicateNameError,
    InvalidDefinitionError,
    SchemaDefinitionError,
)
from ixpserver.domains.shared.listeners import ChangeListeners

from .entities import IntentDefinition

logger = logging.getLogger(__name__)

IntentLike = Union[IntentDefinition, Mapping[str, Any]]


@dataclass
class IntentRegistry:
    """Registry of intent definitions keyed by name.

    Invariants:
        - Each name has at most one definition
        - Every stored definition passed :meth:`validate_intent`
        - The mapped component is NOT checked here; forward references are
          allowed and resolved lazily by the IntentResolver

    Concurrency:
        Read-heavy, write-rare. Writes are single dict assignments and
        readers tolerate last-writer-wins; no locking.
    """
    _intents: Dict[str, IntentDefinition] = field(default_factory=dict)
    _config_path: Optional[Path] = None
    _listeners: ChangeListeners = field(
        default_factory=lambda: ChangeListeners("intent registry")
    )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, intent: IntentLike) -> IntentDefinition:
        """Register a new intent.

        Args:
            intent: The definition, or its camelCase mapping form

        Returns:
            The stored IntentDefinition

        Raises:
            DuplicateNameError: If the name is already registered
            InvalidDefinitionError: If the definition is malformed
        """
        definition = self._coerce(intent)
        self.validate_intent(definition)
        if definition.name in self._intents:
            raise DuplicateNameError("Intent", definition.name)

        self._intents[definition.name] = definition
        logger.debug("Registered intent '%s' -> component '%s'",
                     definition.name, definition.component)
        self._listeners.notify()
        return definition

    def add_all(self, intents: Iterable[IntentLike]) -> None:
        for intent in intents:
            self.add(intent)

    def remove(self, name: str) -> bool:
        """Remove an intent by name; False if it was not registered."""
        removed = self._intents.pop(name, None) is not None
        if removed:
            self._listeners.notify()
        return removed

    def load(self, intents: Iterable[IntentLike]) -> None:
        """Replace the registry contents.

        Every definition is validated before anything is swapped in, so a
        bad batch leaves the previous contents untouched.
        """
        staged: Dict[str, IntentDefinition] = {}
        for intent in intents:
            definition = self._coerce(intent)
            self.validate_intent(definition)
            if definition.name in staged:
                raise DuplicateNameError("Intent", definition.name)
            staged[definition.name] = definition

        self._intents = staged
        self._listeners.notify()

    def clear(self) -> None:
        self._intents = {}
        self._listeners.notify()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, name: str) -> Optional[IntentDefinition]:
        return self._intents.get(name)

    def get_all(self) -> List[IntentDefinition]:
        """All intents in insertion order."""
        return list(self._intents.values())

    def has(self, name: str) -> bool:
        return name in self._intents

    def __len__(self) -> int:
        return len(self._intents)

    def find_by_criteria(
        self,
        crawlable: Optional[bool] = None,
        category: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        deprecated: Optional[bool] = None,
        component: Optional[str] = None,
    ) -> List[IntentDefinition]:
        """Filter intents; every provided criterion must match.

        ``tags`` matches intents carrying all of the given tags.
        """
        wanted_tags = set(tags) if tags else set()
        results = []
        for intent in self._intents.values():
            if crawlable is not None and intent.crawlable != crawlable:
                continue
            if category is not None and intent.category != category:
                continue
            if deprecated is not None and intent.deprecated != deprecated:
                continue
            if component is not None and intent.component != component:
                continue
            if wanted_tags and not wanted_tags.issubset(intent.tags):
                continue
            results.append(intent)
        return results

    def get_stats(self) -> Dict[str, Any]:
        by_component: Dict[str, int] = {}
        crawlable = deprecated = 0
        for intent in self._intents.values():
            crawlable += int(intent.crawlable)
            deprecated += int(intent.deprecated)
            by_component[intent.component] = by_component.get(intent.component, 0) + 1
        return {
            "total": len(self._intents),
            "crawlable": crawlable,
            "deprecated": deprecated,
            "byComponent": by_component,
        }

    # ------------------------------------------------------------------
    # Change notification and file loading
    # ------------------------------------------------------------------

    def on_change(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Subscribe to mutations; returns an unsubscribe callable."""
        return self._listeners.add(listener)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "IntentRegistry":
        """Create a registry from a ``{"intents": [...]}`` JSON file."""
        registry = cls(_config_path=Path(path))
        registry.load(_read_intent_file(registry._config_path))
        logger.info("Loaded %d intents from %s", len(registry), path)
        return registry

    def reload(self) -> bool:
        """Re-read the backing file; False when the registry has none."""
        if self._config_path is None:
            return False
        self.load(_read_intent_file(self._config_path))
        logger.info("Reloaded %d intents from %s", len(self), self._config_path)
        return True

    def close(self) -> None:
        """Drop listeners and definitions at shutdown."""
        self._listeners.clear()
        self._intents = {}

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_intent(intent: IntentDefinition) -> None:
        """Check the structural invariants of a definition.

        Raises:
            InvalidDefinitionError: On the first structural problem found
        """
        if not isinstance(intent.name, str) or not intent.name:
            raise InvalidDefinitionError("Intent must have a valid name")
        for attr in ("description", "component", "version"):
            value = getattr(intent, attr)
            if not isinstance(value, str) or not value:
                raise InvalidDefinitionError(
                    f"Intent '{intent.name}' must have a non-empty {attr}"
                )
        if not isinstance(intent.parameters, Mapping):
            raise InvalidDefinitionError(
                f"Intent '{intent.name}' must have a parameters definition"
            )
        if intent.parameters.get("type") != "object":
            raise InvalidDefinitionError(
                f"Intent '{intent.name}' parameters must be of type \"object\""
            )
        if intent.ttl is not None and (
            isinstance(intent.ttl, bool) or not isinstance(intent.ttl, int) or intent.ttl < 0
        ):
            raise InvalidDefinitionError(
                f"Intent '{intent.name}' ttl must be a non-negative integer"
            )
        try:
            intent.parameter_schema
        except SchemaDefinitionError as exc:
            raise InvalidDefinitionError(
                f"Intent '{intent.name}' has an invalid parameter schema: {exc.message}"
            ) from exc

    @staticmethod
    def _coerce(intent: IntentLike) -> IntentDefinition:
        if isinstance(intent, IntentDefinition):
            return intent
        return IntentDefinition.from_dict(intent)


def _read_intent_file(path: Path) -> List[Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidDefinitionError(f"Intent configuration {path} is not valid JSON: {exc}") from exc

    if isinstance(data, Mapping):
        data = data.get("intents")
    if not isinstance(data, list):
        raise InvalidDefinitionError(
            f"Invalid intent configuration {path}: missing or invalid \"intents\" array"
        )
    return data
