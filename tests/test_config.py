"""Tests for runtime configuration."""

import pytest

from statewarden.config import Config


def test_defaults():
    config = Config()
    assert config.table_prefix == "statewarden"
    assert config.full_sweep_interval == 300.0
    assert config.tick_interval == 1.0
    assert config.tool_timeout == 300.0
    assert config.max_concurrent == 1
    assert config.fail_on_empty_result is True
    assert config.slack_webhook_url is None


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"full_sweep_interval": 0}, "full_sweep_interval must be positive"),
        ({"tick_interval": -1}, "tick_interval must be positive"),
        ({"tool_timeout": 0}, "tool_timeout must be positive"),
        ({"max_concurrent": 0}, "max_concurrent must be at least 1"),
        ({"table_prefix": ""}, "table_prefix is required"),
        ({"log_level": "LOUD"}, "log_level must be one of"),
    ],
)
def test_invalid_values(kwargs, message):
    with pytest.raises(ValueError, match=message):
        Config(**kwargs)


def test_log_level_is_case_insensitive():
    assert Config(log_level="debug").log_level == "debug"
