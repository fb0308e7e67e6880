"""
Supabase client configuration
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from supabase import create_client, Client

from services.bot_errors import ConfigError


def _first_env(*names: str) -> Optional[str]:
    """Return the first non-empty environment variable among names."""
    for name in names:
        value = os.environ.get(name)
        if value and value.strip():
            return value.strip()
    return None


@lru_cache()
def get_supabase_url() -> str:
    url = _first_env("SUPABASE_URL", "VITE_SUPABASE_URL")
    if not url:
        raise ConfigError("SUPABASE_URL must be set")
    return url


@lru_cache()
def get_service_client() -> Client:
    """Get Supabase client with service key (bypasses RLS)."""
    url = get_supabase_url()
    key = _first_env(
        "SUPABASE_SERVICE_KEY",
        "SUPABASE_SERVICE_ROLE_KEY",
        "VITE_SUPABASE_ANON_KEY",
    )
    if not key:
        raise ConfigError("SUPABASE_SERVICE_KEY must be set")
    return create_client(url, key)


def get_env_ai_api_key() -> Optional[str]:
    """Provider key from the environment, used when ai_config has none."""
    return _first_env("AI_API_KEY", "VITE_AI_API_KEY", "GEMINI_API_KEY")
