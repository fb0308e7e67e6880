"""
Error taxonomy for the AI responder pipeline.

ConfigError is the only one that fails a request (HTTP 500). Everything else
is recovered inside the pipeline:
  - ProviderError / ParseError -> fixed apology reply
  - ValidationError            -> user-visible refusal, no mutation
  - RaceLost                   -> {"message": "duplicate ignored"}
  - LogError                   -> logged, never surfaced
"""

from typing import Optional


class BotError(Exception):
    """Base class for responder errors."""


class ConfigError(BotError):
    """Missing credentials or bot identity. Fatal to the request."""


class ProviderError(BotError):
    """Generation call failed, timed out, or had no credentials."""

    def __init__(self, reason: str, status_code: Optional[int] = None):
        self.reason = reason
        self.status_code = status_code
        detail = f"{status_code}: {reason}" if status_code is not None else reason
        super().__init__(detail)


class ParseError(BotError):
    """Model output was not a usable JSON decision."""


class ValidationError(BotError):
    """Decision failed a guard (bad vote option, non-deletable table)."""

    def __init__(self, user_text: str):
        self.user_text = user_text
        super().__init__(user_text)


class RaceLost(BotError):
    """Another invocation owns this trigger."""


class LogError(BotError):
    """Secondary log or realtime store write failed."""
