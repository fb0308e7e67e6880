"""
Bot Settings - typed view over the flat ai_config table.

The ai_config table is a key/value bag edited from the admin console. It is
read once per invocation into BotSettings so every optional key has a named
default and nothing downstream does dynamic key lookups.

Usage:
    from services.bot_config import load_bot_settings

    settings = await load_bot_settings(client)
    provider = settings.provider_config(env_api_key)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from services.bot_errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_INSTRUCTION = "You are a helpful assistant."
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_TONE = 30
DEFAULT_TIMEOUT_SECONDS = 30.0

CONFIG_KEYS = [
    "bot_user_id",
    "system_instruction",
    "bot_temperature",
    "ai_model",
    "ai_provider",
    "ai_base_url",
    "ai_api_key",
    "bot_personality_preset",
    "bot_tone",
    "bot_emoji_level",
    "bot_expertise_level",
    "bot_verbosity",
    "auto_post_creation",
    "bot_require_mention",
    "firebase_project_id",
]


class ProviderKind(str, Enum):
    """Generation backends. Selects the wire shape, never the URL."""
    GOOGLE = "google"          # generateContent REST
    OPENAI = "openai"          # chat completions
    OLLAMA = "ollama"          # chat completions, key optional
    ANTHROPIC = "anthropic"    # messages API
    CUSTOM = "custom"          # any chat-completions compatible endpoint


DEFAULT_BASE_URLS = {
    ProviderKind.GOOGLE: "https://generativelanguage.googleapis.com/v1beta",
    ProviderKind.OPENAI: "https://api.openai.com/v1",
    ProviderKind.OLLAMA: "http://localhost:11434/v1",
}

# Keyword a message must mention for the bot to answer
PROVIDER_MENTIONS = {
    ProviderKind.GOOGLE: "@gemini",
    ProviderKind.OPENAI: "@gpt",
    ProviderKind.OLLAMA: "@ollama",
    ProviderKind.ANTHROPIC: "@claude",
}
FALLBACK_MENTION = "@bot"


@dataclass(frozen=True)
class ProviderConfig:
    """Parameters for one generation call."""
    provider: ProviderKind
    base_url: Optional[str]
    api_key: Optional[str]
    model_name: str
    temperature: float
    system_instruction: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


def _is_unset(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return stripped == "" or stripped.lower() in ("null", "undefined")
    return False


def _flag(value: Any) -> bool:
    """Flags default on; only an explicit "false" turns them off."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() != "false"


class BotSettings(BaseModel):
    """Snapshot of ai_config, read-only for one invocation."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    bot_user_id: Optional[str] = None
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
    bot_temperature: float = DEFAULT_TEMPERATURE
    ai_model: str = DEFAULT_MODEL
    ai_provider: ProviderKind = ProviderKind.GOOGLE
    ai_base_url: Optional[str] = None
    ai_api_key: Optional[str] = None

    # Personality (all optional)
    bot_personality_preset: str = "friendly"
    bot_tone: int = DEFAULT_TONE
    bot_emoji_level: str = "moderate"
    bot_expertise_level: str = "intermediate"
    bot_verbosity: str = "balanced"

    auto_post_creation: bool = True
    bot_require_mention: bool = True

    firebase_project_id: Optional[str] = None

    @field_validator("bot_temperature", mode="before")
    @classmethod
    def _parse_temperature(cls, value: Any) -> float:
        try:
            return float(value)
        except (ValueError, TypeError):
            return DEFAULT_TEMPERATURE

    @field_validator("bot_tone", mode="before")
    @classmethod
    def _parse_tone(cls, value: Any) -> int:
        try:
            tone = int(float(value))
        except (ValueError, TypeError):
            return DEFAULT_TONE
        return max(0, min(100, tone))

    @field_validator("ai_provider", mode="before")
    @classmethod
    def _parse_provider(cls, value: Any) -> ProviderKind:
        if isinstance(value, ProviderKind):
            return value
        try:
            return ProviderKind(str(value).strip().lower())
        except ValueError:
            logger.warning(f"[BOT_CONFIG] Unknown ai_provider {value!r}, using chat-completions")
            return ProviderKind.CUSTOM

    @field_validator(
        "bot_personality_preset", "bot_emoji_level", "bot_expertise_level", "bot_verbosity",
        mode="before",
    )
    @classmethod
    def _normalize_choice(cls, value: Any) -> str:
        return str(value).strip().lower()

    @field_validator("auto_post_creation", "bot_require_mention", mode="before")
    @classmethod
    def _parse_flag(cls, value: Any) -> bool:
        return _flag(value)

    @classmethod
    def from_rows(cls, rows: list[dict]) -> "BotSettings":
        """Build settings from ai_config rows, ignoring blank or "null" values."""
        values = {}
        for row in rows or []:
            key = row.get("key")
            value = row.get("value")
            if key and not _is_unset(value):
                # jsonb values may arrive as numbers or booleans
                values[key] = str(value).strip()
        try:
            return cls.model_validate(values)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid ai_config values: {e}") from e

    def require_bot_identity(self) -> str:
        if not self.bot_user_id:
            raise ConfigError("Bot not configured: bot_user_id missing from ai_config")
        return self.bot_user_id

    @property
    def mention_keyword(self) -> str:
        return PROVIDER_MENTIONS.get(self.ai_provider, FALLBACK_MENTION)

    def provider_config(self, env_api_key: Optional[str] = None) -> ProviderConfig:
        """Resolve the provider parameters, filling per-provider default URLs."""
        base_url = self.ai_base_url or DEFAULT_BASE_URLS.get(self.ai_provider)
        return ProviderConfig(
            provider=self.ai_provider,
            base_url=base_url.rstrip("/") if base_url else None,
            api_key=self.ai_api_key or env_api_key,
            model_name=self.ai_model,
            temperature=self.bot_temperature,
            system_instruction=self.system_instruction,
        )


async def load_bot_settings(client: Any) -> BotSettings:
    """
    Read ai_config into BotSettings.

    Raises:
        ConfigError: the config table could not be read or holds invalid values
    """
    try:
        result = client.table("ai_config").select("key, value").in_("key", CONFIG_KEYS).execute()
    except Exception as e:
        logger.error(f"[BOT_CONFIG] Failed to read ai_config: {e}")
        raise ConfigError(f"Failed to read ai_config: {e}") from e

    return BotSettings.from_rows(result.data or [])
