"""Tests for IXPConfig."""

__test__ = True

import logging

import pytest

from ixpserver.models.config_models import IXPConfig


class TestIXPConfig:
    def test_defaults_are_valid(self):
        config = IXPConfig()
        assert config.validate() == []
        assert config.DEFAULT_TTL == 300
        assert config.log_level == logging.INFO

    def test_from_dict_ignores_unknown_keys(self):
        config = IXPConfig.from_dict({"DEFAULT_TTL": 30, "NOT_A_KEY": 1})
        assert config.DEFAULT_TTL == 30
        assert not hasattr(config, "NOT_A_KEY")

    def test_update_rejects_unknown_keys(self):
        config = IXPConfig()
        config.update(PAGE_TITLE="Docs")
        assert config.PAGE_TITLE == "Docs"
        with pytest.raises(ValueError, match="Unknown configuration key"):
            config.update(BOGUS=True)

    def test_to_dict(self):
        data = IXPConfig().to_dict()
        assert data["CRAWLER_MAX_LIMIT"] == 1000
        assert data["ENFORCE_ORIGIN_CHECK"] is True

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"DEFAULT_TTL": -1}, "DEFAULT_TTL"),
            ({"CRAWLER_DEFAULT_LIMIT": 0}, "CRAWLER_DEFAULT_LIMIT must be positive"),
            ({"CRAWLER_MAX_LIMIT": 0}, "CRAWLER_MAX_LIMIT must be positive"),
            ({"CRAWLER_DEFAULT_LIMIT": 50, "CRAWLER_MAX_LIMIT": 10}, "cannot exceed"),
            ({"LOG_LEVEL": "LOUD"}, "LOG_LEVEL"),
        ],
    )
    def test_validate(self, overrides, message):
        errors = IXPConfig.from_dict(overrides).validate()
        assert any(message in error for error in errors)


class TestFromEnv:
    def test_reads_prefixed_variables(self):
        config = IXPConfig.from_env({
            "IXP_INTENTS_FILE": "/etc/ixp/intents.json",
            "IXP_DEFAULT_TTL": "42",
            "IXP_ENFORCE_ORIGIN_CHECK": "false",
            "IXP_VALIDATE_RENDER_PROPS": "yes",
            "IXP_LOG_LEVEL": "debug",
        })
        assert config.INTENTS_FILE == "/etc/ixp/intents.json"
        assert config.DEFAULT_TTL == 42
        assert config.ENFORCE_ORIGIN_CHECK is False
        assert config.VALIDATE_RENDER_PROPS is True
        assert config.log_level == logging.DEBUG

    def test_empty_values_keep_defaults(self):
        config = IXPConfig.from_env({"IXP_DEFAULT_TTL": "  ", "UNRELATED": "x"})
        assert config.DEFAULT_TTL == 300

    def test_bad_integer(self):
        with pytest.raises(ValueError, match="IXP_CRAWLER_MAX_LIMIT must be an integer"):
            IXPConfig.from_env({"IXP_CRAWLER_MAX_LIMIT": "many"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("IXP_PAGE_TITLE", "From env")
        assert IXPConfig.from_env().PAGE_TITLE == "From env"
