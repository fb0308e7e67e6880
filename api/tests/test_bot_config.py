"""
Tests for BotSettings - typed view over ai_config.
"""

import asyncio

import pytest

from services.bot_config import BotSettings, ProviderKind, load_bot_settings
from services.bot_errors import ConfigError


def _rows(**values):
    return [{"key": k, "value": v} for k, v in values.items()]


def test_defaults_for_missing_keys():
    settings = BotSettings.from_rows([])
    assert settings.bot_user_id is None
    assert settings.system_instruction == "You are a helpful assistant."
    assert settings.bot_temperature == 0.7
    assert settings.ai_provider == ProviderKind.GOOGLE
    assert settings.bot_tone == 30
    assert settings.auto_post_creation is True
    assert settings.bot_require_mention is True


def test_blank_and_null_values_fall_back_to_defaults():
    settings = BotSettings.from_rows(_rows(ai_model="", bot_temperature="null", system_instruction="undefined"))
    assert settings.ai_model == "gemini-2.0-flash"
    assert settings.bot_temperature == 0.7
    assert settings.system_instruction == "You are a helpful assistant."


def test_parses_string_values():
    settings = BotSettings.from_rows(_rows(
        bot_temperature="0.2",
        bot_tone="250",
        ai_provider=" OpenAI ",
        bot_emoji_level="NONE",
        auto_post_creation="false",
        bot_require_mention="FALSE",
    ))
    assert settings.bot_temperature == 0.2
    assert settings.bot_tone == 100
    assert settings.ai_provider == ProviderKind.OPENAI
    assert settings.bot_emoji_level == "none"
    assert settings.auto_post_creation is False
    assert settings.bot_require_mention is False


def test_unparseable_numbers_use_defaults():
    settings = BotSettings.from_rows(_rows(bot_temperature="warm", bot_tone="loud"))
    assert settings.bot_temperature == 0.7
    assert settings.bot_tone == 30


def test_unknown_provider_is_chat_completions():
    settings = BotSettings.from_rows(_rows(ai_provider="groq"))
    assert settings.ai_provider == ProviderKind.CUSTOM
    assert settings.mention_keyword == "@bot"


def test_require_bot_identity():
    with pytest.raises(ConfigError):
        BotSettings.from_rows([]).require_bot_identity()
    assert BotSettings.from_rows(_rows(bot_user_id="b1")).require_bot_identity() == "b1"


def test_provider_config_default_urls_and_key_precedence():
    google = BotSettings.from_rows([]).provider_config("env-key")
    assert google.base_url == "https://generativelanguage.googleapis.com/v1beta"
    assert google.api_key == "env-key"

    ollama = BotSettings.from_rows(_rows(ai_provider="ollama", ai_api_key="cfg-key")).provider_config("env-key")
    assert ollama.base_url == "http://localhost:11434/v1"
    assert ollama.api_key == "cfg-key"

    custom = BotSettings.from_rows(_rows(ai_provider="custom", ai_base_url="https://llm.local/v1/")).provider_config()
    assert custom.base_url == "https://llm.local/v1"


def test_load_bot_settings_reads_ai_config(fake_client):
    settings = asyncio.run(load_bot_settings(fake_client))
    assert settings.bot_user_id == "bot-0001"
    assert settings.ai_api_key == "test-key"


def test_load_bot_settings_read_failure(fake_client):
    fake_client.failures[("ai_config", "select")] = RuntimeError("connection refused")
    with pytest.raises(ConfigError):
        asyncio.run(load_bot_settings(fake_client))


def test_non_string_values_are_coerced():
    settings = BotSettings.from_rows([
        {"key": "system_instruction", "value": 12},
        {"key": "bot_user_id", "value": 4021},
        {"key": "bot_temperature", "value": 0.4},
        {"key": "bot_tone", "value": 75},
        {"key": "auto_post_creation", "value": False},
        {"key": "bot_require_mention", "value": True},
    ])
    assert settings.system_instruction == "12"
    assert settings.require_bot_identity() == "4021"
    assert settings.bot_temperature == 0.4
    assert settings.bot_tone == 75
    assert settings.auto_post_creation is False
    assert settings.bot_require_mention is True
