"""Tests for the IXPContainer lifecycle and wiring."""

__test__ = True

import json

import pytest

from ixpserver.container import IXPContainer
from ixpserver.domains.intent import IntentRequest, IntentResolved
from ixpserver.domains.shared.errors import InvalidDefinitionError
from ixpserver.models.config_models import IXPConfig
from tests.helpers import make_intent


class TestLifecycle:
    def test_startup_loads_files(self, container):
        assert container.started
        assert container.intent_registry.has("greet")
        assert container.component_registry.has("Greeter")

    def test_startup_is_idempotent(self, container):
        registry = container.intent_registry
        container.startup()
        assert container.intent_registry is registry

    def test_startup_without_files(self):
        container = IXPContainer()
        container.startup()
        assert len(container.intent_registry) == 0
        assert len(container.component_registry) == 0

    def test_invalid_config_fails_fast(self):
        container = IXPContainer(config=IXPConfig(DEFAULT_TTL=-5))
        with pytest.raises(ValueError, match="Invalid IXP configuration"):
            container.startup()
        assert not container.started

    def test_bad_definition_file_fails_fast(self, tmp_path):
        path = tmp_path / "intents.json"
        path.write_text(json.dumps({"intents": [make_intent(version="")]}), encoding="utf-8")
        container = IXPContainer(config=IXPConfig(INTENTS_FILE=str(path)))
        with pytest.raises(InvalidDefinitionError):
            container.startup()

    def test_missing_definition_file(self, tmp_path):
        container = IXPContainer(config=IXPConfig(COMPONENTS_FILE=str(tmp_path / "missing.json")))
        with pytest.raises(OSError):
            container.startup()

    def test_shutdown_clears_state(self, container):
        container.event_collector.publish("event")
        container.shutdown()
        assert not container.started
        assert len(container.intent_registry) == 0
        assert container.event_collector.events == []

    def test_containers_do_not_share_registries(self):
        first, second = IXPContainer(), IXPContainer()
        first.intent_registry.add(make_intent())
        assert not second.intent_registry.has("greet")


class TestWiring:
    def test_resolver_uses_container_registries(self, container):
        resolver = container.intent_resolver
        assert resolver.intent_registry is container.intent_registry
        assert resolver.component_registry is container.component_registry
        assert resolver.ttl_policy.default == container.config.DEFAULT_TTL

    def test_renderer_respects_config(self, definition_files):
        config = IXPConfig(
            COMPONENTS_FILE=str(definition_files["components"]),
            VALIDATE_RENDER_PROPS=False,
        )
        container = IXPContainer(config=config)
        container.startup()
        assert container.renderer.validate_props is False
        assert container.renderer.component_registry is container.component_registry

    @pytest.mark.asyncio
    async def test_events_reach_collector(self, container):
        await container.intent_resolver.resolve_intent(
            IntentRequest(name="greet", parameters={"name": "Ada"})
        )
        assert len(container.event_collector.of_type(IntentResolved)) == 1

    def test_data_provider_is_passed_through(self):
        provider = object()
        container = IXPContainer(data_provider=provider)
        assert container.intent_resolver.data_provider is provider


class TestReloadAndHealth:
    def test_reload(self, container, definition_files):
        definition_files["intents"].write_text(
            json.dumps({"intents": [make_intent(), make_intent(name="second")]}),
            encoding="utf-8",
        )
        assert container.reload() == {"intents": True, "components": True}
        assert container.intent_registry.has("second")

    def test_reload_without_files(self):
        container = IXPContainer()
        container.startup()
        assert container.reload() == {"intents": False, "components": False}

    def test_health(self, container):
        health = container.get_health()
        assert health["status"] == "ok"
        assert health["intents"]["total"] == 1
        assert health["components"]["total"] == 1
        assert health["crawlerSources"]["total"] == 0

    def test_health_before_startup(self):
        assert IXPContainer().get_health()["status"] == "starting"
