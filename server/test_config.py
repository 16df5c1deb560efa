"""
Test suite for environment-driven settings.

Run with: pytest test_config.py -v
"""

import pytest

from config import GameRules, ServerConfig, get_env_bool, get_env_int


class TestEnvHelpers:

    def test_int_parsed(self, monkeypatch):
        monkeypatch.setenv("PORT", "9001")
        assert get_env_int("PORT", 8000) == 9001

    def test_bad_int_falls_back(self, monkeypatch):
        monkeypatch.setenv("PORT", "eighty")
        assert get_env_int("PORT", 8000) == 8000

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("YES", True), ("0", False), ("off", False), ("maybe", True),
    ])
    def test_bool(self, monkeypatch, raw, expected):
        monkeypatch.setenv("DEBUG", raw)
        assert get_env_bool("DEBUG", True) is expected


class TestServerConfig:

    def test_defaults(self, monkeypatch):
        for key in ("MAX_PLAYERS_PER_ROOM", "MIN_PLAYERS_TO_START", "HAND_SIZE", "TARGET_SCORE"):
            monkeypatch.delenv(key, raising=False)
        settings = ServerConfig.from_env()
        assert settings.MAX_PLAYERS_PER_ROOM == 6
        assert settings.MIN_PLAYERS_TO_START == 2
        assert settings.rules == GameRules(hand_size=5, target_score=50,
                                           joker_hand_penalty=5, joker_display_value=0)

    def test_rules_from_env(self, monkeypatch):
        monkeypatch.setenv("TARGET_SCORE", "80")
        monkeypatch.setenv("JOKER_HAND_PENALTY", "7")
        rules = ServerConfig.from_env().rules
        assert rules.target_score == 80
        assert rules.joker_hand_penalty == 7

    def test_hand_size_must_fit_deck(self, monkeypatch):
        monkeypatch.setenv("HAND_SIZE", "14")
        with pytest.raises(ValueError):
            ServerConfig.from_env()

    def test_max_below_min_rejected(self, monkeypatch):
        monkeypatch.setenv("MAX_PLAYERS_PER_ROOM", "3")
        monkeypatch.setenv("MIN_PLAYERS_TO_START", "4")
        with pytest.raises(ValueError):
            ServerConfig.from_env()
