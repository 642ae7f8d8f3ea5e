"""Pytest configuration for the IXP server test suite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pytest

from ixpserver.container import IXPContainer
from ixpserver.domains.component import ComponentRegistry
from ixpserver.domains.intent import IntentRegistry
from ixpserver.models.config_models import IXPConfig
from tests.helpers import make_component, make_intent


# =============================================================================
# Definition fixtures
# =============================================================================


@pytest.fixture
def greet_intent() -> Dict[str, Any]:
    return make_intent()


@pytest.fixture
def greeter_component() -> Dict[str, Any]:
    return make_component()


@pytest.fixture
def intent_registry(greet_intent) -> IntentRegistry:
    registry = IntentRegistry()
    registry.add(greet_intent)
    return registry


@pytest.fixture
def component_registry(greeter_component) -> ComponentRegistry:
    registry = ComponentRegistry()
    registry.add(greeter_component)
    return registry


# =============================================================================
# File-backed configuration
# =============================================================================


@pytest.fixture
def definition_files(tmp_path: Path, greet_intent, greeter_component) -> Dict[str, Path]:
    """Write intent and component files in their on-disk shapes."""
    intents_file = tmp_path / "intents.json"
    components_file = tmp_path / "components.json"
    intents_file.write_text(json.dumps({"intents": [greet_intent]}), encoding="utf-8")
    component = dict(greeter_component)
    name = component.pop("name")
    components_file.write_text(json.dumps({"components": {name: component}}), encoding="utf-8")
    return {"intents": intents_file, "components": components_file}


@pytest.fixture
def container(definition_files):
    config = IXPConfig(
        INTENTS_FILE=str(definition_files["intents"]),
        COMPONENTS_FILE=str(definition_files["components"]),
    )
    container = IXPContainer(config=config)
    container.startup()
    yield container
    container.shutdown()
