"""Dependency Injection Container for the IXP bounded contexts.

This container wires together:
- Intent Context: IntentRegistry and IntentResolver
- Component Context: ComponentRegistry and ComponentRenderer
- Crawler Context: CrawlerDataSourceRegistry

Each server instance owns one container. There is no module-level
instance: two containers never share a registry.

Usage:
    from ixpserver.container import IXPContainer

    container = IXPContainer(config=IXPConfig.from_env())
    container.startup()
    record = await container.intent_resolver.resolve_intent(request)
    container.shutdown()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, TYPE_CHECKING

from ixpserver import __version__
from ixpserver.models.config_models import IXPConfig

if TYPE_CHECKING:
    from ixpserver.domains.component import ComponentRegistry, ComponentRenderer
    from ixpserver.domains.crawler import CrawlerDataSourceRegistry
    from ixpserver.domains.intent import IntentRegistry, IntentResolver
    from ixpserver.domains.shared.events import EventCollector

logger = logging.getLogger(__name__)


@dataclass
class IXPContainer:
    """Owns the registries and services of one IXP server instance.

    Attributes:
        config: Server configuration
        data_provider: Optional external Data Provider

    Lifecycle:
        ``startup()`` loads configured definition files and validates the
        configuration; registry errors propagate so a misconfigured server
        fails fast. ``shutdown()`` drops listeners and definitions.
    """

    config: IXPConfig = field(default_factory=IXPConfig)
    data_provider: Optional[Any] = None

    _intent_registry: Optional["IntentRegistry"] = field(default=None, repr=False)
    _component_registry: Optional["ComponentRegistry"] = field(default=None, repr=False)
    _crawler_registry: Optional["CrawlerDataSourceRegistry"] = field(default=None, repr=False)
    _intent_resolver: Optional["IntentResolver"] = field(default=None, repr=False)
    _renderer: Optional["ComponentRenderer"] = field(default=None, repr=False)
    _event_collector: Optional["EventCollector"] = field(default=None, repr=False)
    _started: bool = field(default=False, repr=False)

    @property
    def intent_registry(self) -> "IntentRegistry":
        """Get the intent registry."""
        if self._intent_registry is None:
            from ixpserver.domains.intent import IntentRegistry
            self._intent_registry = IntentRegistry()
        return self._intent_registry

    @property
    def component_registry(self) -> "ComponentRegistry":
        """Get the component registry."""
        if self._component_registry is None:
            from ixpserver.domains.component import ComponentRegistry
            self._component_registry = ComponentRegistry()
        return self._component_registry

    @property
    def crawler_registry(self) -> "CrawlerDataSourceRegistry":
        """Get the crawler data source registry."""
        if self._crawler_registry is None:
            from ixpserver.domains.crawler import CrawlerDataSourceRegistry
            self._crawler_registry = CrawlerDataSourceRegistry()
        return self._crawler_registry

    @property
    def event_collector(self) -> "EventCollector":
        """Get the domain event collector."""
        if self._event_collector is None:
            from ixpserver.domains.shared.events import EventCollector
            self._event_collector = EventCollector()
        return self._event_collector

    @property
    def intent_resolver(self) -> "IntentResolver":
        """Get the intent resolver."""
        if self._intent_resolver is None:
            from ixpserver.domains.intent import IntentResolver, TtlPolicy
            self._intent_resolver = IntentResolver(
                intent_registry=self.intent_registry,
                component_registry=self.component_registry,
                data_provider=self.data_provider,
                event_publisher=self.event_collector,
                ttl_policy=TtlPolicy(default=self.config.DEFAULT_TTL),
            )
        return self._intent_resolver

    @property
    def renderer(self) -> "ComponentRenderer":
        """Get the component renderer."""
        if self._renderer is None:
            from ixpserver.domains.component import ComponentRenderer
            self._renderer = ComponentRenderer(
                component_registry=self.component_registry,
                validate_props=self.config.VALIDATE_RENDER_PROPS,
            )
        return self._renderer

    @property
    def started(self) -> bool:
        return self._started

    def startup(self) -> None:
        """Validate configuration and load definition files.

        Raises:
            ValueError: If the configuration is invalid
            InvalidDefinitionError: If a definition file is malformed
            DuplicateNameError: If a definition file repeats a name
            OSError: If a configured file cannot be read
        """
        if self._started:
            return
        errors = self.config.validate()
        if errors:
            raise ValueError("Invalid IXP configuration: " + "; ".join(errors))

        if self.config.INTENTS_FILE:
            from ixpserver.domains.intent import IntentRegistry
            self._intent_registry = IntentRegistry.from_file(self.config.INTENTS_FILE)
            self._intent_resolver = None
        if self.config.COMPONENTS_FILE:
            from ixpserver.domains.component import ComponentRegistry
            self._component_registry = ComponentRegistry.from_file(self.config.COMPONENTS_FILE)
            self._intent_resolver = None
            self._renderer = None

        self._started = True
        logger.info(
            "IXP container started: %d intents, %d components, %d crawler sources",
            len(self.intent_registry),
            len(self.component_registry),
            len(self.crawler_registry),
        )

    def shutdown(self) -> None:
        """Release registries and listeners."""
        if self._intent_registry is not None:
            self._intent_registry.close()
        if self._component_registry is not None:
            self._component_registry.close()
        if self._crawler_registry is not None:
            self._crawler_registry.clear()
        if self._event_collector is not None:
            self._event_collector.clear()
        self._started = False
        logger.info("IXP container shut down")

    def reload(self) -> Dict[str, bool]:
        """Re-read file-backed registries.

        Returns:
            Which registries were reloaded
        """
        return {
            "intents": self.intent_registry.reload(),
            "components": self.component_registry.reload(),
        }

    def get_health(self) -> Dict[str, Any]:
        """Summary used by ``GET /ixp/health``."""
        return {
            "status": "ok" if self._started else "starting",
            "version": __version__,
            "intents": self.intent_registry.get_stats(),
            "components": self.component_registry.get_stats(),
            "crawlerSources": self.crawler_registry.get_stats(),
        }
