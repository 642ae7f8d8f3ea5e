"""Unit tests for the IntentRegistry aggregate.

Tests cover: registration invariants, filtering, change notification and
file-backed loading.
"""

__test__ = True

import json

import pytest

from ixpserver.domains.intent import IntentDefinition, IntentRegistry
from ixpserver.domains.shared.errors import DuplicateNameError, InvalidDefinitionError
from tests.helpers import make_intent


# =============================================================================
# Registration
# =============================================================================


class TestRegistration:
    """Test add/remove/load."""

    def test_add_and_get(self, greet_intent):
        registry = IntentRegistry()
        stored = registry.add(greet_intent)

        assert isinstance(stored, IntentDefinition)
        found = registry.get("greet")
        assert found is stored
        assert found.name == greet_intent["name"]
        assert found.description == greet_intent["description"]
        assert found.parameters == greet_intent["parameters"]
        assert found.component == "Greeter"
        assert found.version == "1.0.0"

    def test_to_dict_round_trips_declared_fields(self, greet_intent):
        registry = IntentRegistry()
        data = registry.add(greet_intent).to_dict()
        for key, value in greet_intent.items():
            assert data[key] == value

    def test_duplicate_name_rejected(self, intent_registry, greet_intent):
        with pytest.raises(DuplicateNameError) as exc_info:
            intent_registry.add(greet_intent)
        assert exc_info.value.code == "DUPLICATE_NAME"
        assert len(intent_registry) == 1

    def test_component_may_be_registered_later(self):
        registry = IntentRegistry()
        registry.add(make_intent(component="NotYetThere"))
        assert registry.has("greet")

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"name": ""}, "valid name"),
            ({"description": None}, "description"),
            ({"component": ""}, "component"),
            ({"version": None}, "version"),
            ({"parameters": None}, "parameters definition"),
            ({"parameters": {"type": "array"}}, 'type "object"'),
            ({"parameters": {"type": "object", "properties": {"x": {"type": "bogus"}}}}, "invalid parameter schema"),
            ({"ttl": -5}, "ttl"),
            ({"ttl": True}, "ttl"),
        ],
    )
    def test_invalid_definitions_rejected(self, overrides, message):
        registry = IntentRegistry()
        with pytest.raises(InvalidDefinitionError, match=message):
            registry.add(make_intent(**overrides))
        assert len(registry) == 0

    def test_non_mapping_rejected(self):
        with pytest.raises(InvalidDefinitionError):
            IntentRegistry().add(["greet"])

    def test_remove(self, intent_registry):
        assert intent_registry.remove("greet") is True
        assert intent_registry.remove("greet") is False
        assert intent_registry.get("greet") is None

    def test_failed_load_keeps_previous_contents(self, intent_registry):
        with pytest.raises(InvalidDefinitionError):
            intent_registry.load([make_intent(name="ok"), make_intent(name="bad", version="")])
        assert [i.name for i in intent_registry.get_all()] == ["greet"]

    def test_load_rejects_duplicates_in_batch(self):
        registry = IntentRegistry()
        with pytest.raises(DuplicateNameError):
            registry.load([make_intent(), make_intent()])


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    """Test filtering and statistics."""

    @pytest.fixture
    def registry(self):
        registry = IntentRegistry()
        registry.add_all([
            make_intent(name="a", crawlable=True, category="blog", tags=["news", "en"]),
            make_intent(name="b", crawlable=False, category="blog", tags=["news"]),
            make_intent(name="c", crawlable=True, deprecated=True, component="Other"),
        ])
        return registry

    def test_insertion_order(self, registry):
        assert [i.name for i in registry.get_all()] == ["a", "b", "c"]

    def test_filter_crawlable(self, registry):
        assert [i.name for i in registry.find_by_criteria(crawlable=True)] == ["a", "c"]

    def test_filter_category_and_tags(self, registry):
        assert [i.name for i in registry.find_by_criteria(category="blog", tags=["news"])] == ["a", "b"]
        assert [i.name for i in registry.find_by_criteria(tags=["news", "en"])] == ["a"]

    def test_filter_component_and_deprecated(self, registry):
        assert [i.name for i in registry.find_by_criteria(component="Other")] == ["c"]
        assert [i.name for i in registry.find_by_criteria(deprecated=False)] == ["a", "b"]

    def test_no_criteria_returns_everything(self, registry):
        assert len(registry.find_by_criteria()) == 3

    def test_stats(self, registry):
        stats = registry.get_stats()
        assert stats == {
            "total": 3,
            "crawlable": 2,
            "deprecated": 1,
            "byComponent": {"Greeter": 2, "Other": 1},
        }


# =============================================================================
# Change notification
# =============================================================================


class TestChangeListeners:
    """Test on_change subscriptions."""

    def test_listener_called_on_mutation(self, greet_intent):
        registry = IntentRegistry()
        calls = []
        registry.on_change(lambda: calls.append("changed"))

        registry.add(greet_intent)
        registry.remove("greet")
        registry.remove("greet")

        assert calls == ["changed", "changed"]

    def test_unsubscribe(self, greet_intent):
        registry = IntentRegistry()
        calls = []
        unsubscribe = registry.on_change(lambda: calls.append(1))
        unsubscribe()
        registry.add(greet_intent)
        assert calls == []

    def test_failing_listener_does_not_block_others(self, greet_intent, caplog):
        registry = IntentRegistry()
        calls = []

        def broken():
            raise RuntimeError("boom")

        registry.on_change(broken)
        registry.on_change(lambda: calls.append(1))
        registry.add(greet_intent)

        assert calls == [1]
        assert registry.has("greet")
        assert "Error in intent registry change listener" in caplog.text


# =============================================================================
# File loading
# =============================================================================


class TestFileLoading:
    """Test from_file and reload."""

    def test_from_file(self, definition_files):
        registry = IntentRegistry.from_file(definition_files["intents"])
        assert registry.has("greet")

    def test_bare_list_file(self, tmp_path, greet_intent):
        path = tmp_path / "intents.json"
        path.write_text(json.dumps([greet_intent]), encoding="utf-8")
        assert len(IntentRegistry.from_file(path)) == 1

    def test_reload_picks_up_changes(self, definition_files):
        registry = IntentRegistry.from_file(definition_files["intents"])
        definition_files["intents"].write_text(
            json.dumps({"intents": [make_intent(name="other")]}), encoding="utf-8"
        )
        assert registry.reload() is True
        assert [i.name for i in registry.get_all()] == ["other"]

    def test_reload_without_file(self):
        assert IntentRegistry().reload() is False

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "intents.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(InvalidDefinitionError, match="not valid JSON"):
            IntentRegistry.from_file(path)

    def test_missing_intents_array(self, tmp_path):
        path = tmp_path / "intents.json"
        path.write_text(json.dumps({"items": []}), encoding="utf-8")
        with pytest.raises(InvalidDefinitionError, match='"intents" array'):
            IntentRegistry.from_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            IntentRegistry.from_file(tmp_path / "nope.json")
