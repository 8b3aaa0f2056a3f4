"""
Tests for configuration loading and log formatting.

Run with: pytest test_config.py -v
"""

import json
import logging

import pytest

import config as config_module
from config import GameDefaults, ServerConfig, reload_config
from game import GameOptions
from logging_config import (
    DevelopmentFormatter,
    JSONFormatter,
    get_logger,
    game_id_var,
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ("PORT", "DEBUG", "MAX_SESSIONS", "HAND_SIZE", "END_TURN_DELAY", "DECK_SEED"):
        monkeypatch.delenv(key, raising=False)
    yield monkeypatch
    monkeypatch.undo()
    reload_config()


class TestServerConfig:

    def test_defaults(self, clean_env):
        cfg = ServerConfig.from_env()
        assert cfg.PORT == 8000
        assert cfg.MAX_SESSIONS == 100
        assert cfg.game_defaults.hand_size == 7
        assert cfg.game_defaults.deck_seed is None

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("PORT", "9001")
        clean_env.setenv("DEBUG", "yes")
        clean_env.setenv("HAND_SIZE", "5")
        clean_env.setenv("END_TURN_DELAY", "0.1")
        clean_env.setenv("DECK_SEED", "42")

        cfg = ServerConfig.from_env()
        assert cfg.PORT == 9001
        assert cfg.DEBUG is True
        assert cfg.game_defaults.hand_size == 5
        assert cfg.game_defaults.end_turn_delay == 0.1
        assert cfg.game_defaults.deck_seed == 42

    def test_invalid_values_fall_back(self, clean_env):
        clean_env.setenv("PORT", "not-a-port")
        clean_env.setenv("DECK_SEED", "abc")

        cfg = ServerConfig.from_env()
        assert cfg.PORT == 8000
        assert cfg.game_defaults.deck_seed is None

    def test_reload_replaces_global(self, clean_env):
        clean_env.setenv("MAX_SESSIONS", "3")
        cfg = reload_config()
        assert cfg.MAX_SESSIONS == 3
        assert config_module.config is cfg

    def test_game_options_from_defaults(self):
        options = GameOptions.from_defaults(GameDefaults(hand_size=4, deal_stagger=0.0, deck_seed=8))
        assert options.hand_size == 4
        assert options.deal_stagger == 0.0
        assert options.deck_seed == 8


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("crazy_eights", logging.INFO, __file__, 1, "Card played", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogging:

    def test_json_formatter_includes_extras(self):
        line = JSONFormatter().format(make_record(session_code="ABCD", player_id=0))
        data = json.loads(line)
        assert data["message"] == "Card played"
        assert data["session_code"] == "ABCD"
        assert data["player_id"] == 0

    def test_json_formatter_reads_context_vars(self):
        token = game_id_var.set("game-123")
        try:
            data = json.loads(JSONFormatter().format(make_record()))
        finally:
            game_id_var.reset(token)
        assert data["game_id"] == "game-123"

    def test_development_formatter_context(self):
        output = DevelopmentFormatter().format(make_record(session_code="WXYZ", player_id=1))
        assert "session=WXYZ" in output
        assert "player=1" in output
        assert "Card played" in output

    def test_context_logger_merges_extra(self, caplog):
        logger = get_logger("crazy_eights.test").with_context(session_code="QRST")
        with caplog.at_level(logging.INFO, logger="crazy_eights.test"):
            logger.info("hello", extra={"player_id": 1})
        record = caplog.records[-1]
        assert record.session_code == "QRST"
        assert record.player_id == 1
