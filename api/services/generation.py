"""
Generation Client - one request/response call against the configured provider.

Wire shapes (selected by ProviderConfig.provider, never by URL):
  google               - POST {base}/models/{model}:generateContent (httpx)
  openai/ollama/custom - chat completions, [system, user] (openai SDK)
  anthropic            - messages API (anthropic SDK)

Every failure (non-2xx, timeout, transport error, missing key, empty
response) surfaces as ProviderError. Callers fall back to an apology reply.

Usage:
    from services.generation import generate_text

    text = await generate_text(prompt, settings.provider_config(env_key))
"""

import logging
from typing import Any, Optional

import httpx
import openai
import anthropic
from openai import AsyncOpenAI
from anthropic import AsyncAnthropic

from services.bot_config import ProviderConfig, ProviderKind
from services.bot_errors import ProviderError

logger = logging.getLogger(__name__)

ANTHROPIC_MAX_TOKENS = 2048
# The openai SDK insists on a key; local Ollama ignores it
KEYLESS_PLACEHOLDER = "ollama"


async def generate_text(
    prompt: str,
    config: ProviderConfig,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    Generate text for a single prompt.

    Args:
        prompt: Full prompt (user turn)
        config: Provider parameters
        http_client: Optional httpx client (google shape only)

    Returns:
        Model output text

    Raises:
        ProviderError: on any failure
    """
    logger.info(f"[GENERATION] provider={config.provider.value} model={config.model_name}")

    if config.provider == ProviderKind.GOOGLE:
        return await _generate_google(prompt, config, http_client)
    if config.provider == ProviderKind.ANTHROPIC:
        return await _generate_anthropic(prompt, config)
    return await _generate_chat_completion(prompt, config)


def _google_model_path(model_name: str) -> str:
    return model_name if model_name.startswith("models/") else f"models/{model_name}"


async def _generate_google(
    prompt: str,
    config: ProviderConfig,
    http_client: Optional[httpx.AsyncClient],
) -> str:
    if not config.api_key:
        raise ProviderError("Missing Google API key")
    if not config.base_url:
        raise ProviderError("No base URL configured")

    url = f"{config.base_url}/{_google_model_path(config.model_name)}:generateContent"
    payload = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {"temperature": config.temperature},
    }

    try:
        if http_client is not None:
            response = await http_client.post(
                url, params={"key": config.api_key}, json=payload, timeout=config.timeout_seconds,
            )
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url, params={"key": config.api_key}, json=payload, timeout=config.timeout_seconds,
                )
    except httpx.TimeoutException as e:
        raise ProviderError(f"Google API timeout: {e}") from e
    except httpx.HTTPError as e:
        raise ProviderError(f"Google API transport error: {e}") from e

    if response.status_code >= 300:
        logger.error(f"[GENERATION] Google API error: {response.status_code} - {response.text[:500]}")
        raise ProviderError("Google API error", status_code=response.status_code)

    try:
        data = response.json()
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise ProviderError(f"Unexpected Google response shape: {e}") from e
    if not text:
        raise ProviderError("Empty Google response")
    return text


def _openai_client(config: ProviderConfig) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=config.api_key or KEYLESS_PLACEHOLDER,
        base_url=config.base_url,
        timeout=config.timeout_seconds,
        max_retries=0,
    )


async def _generate_chat_completion(prompt: str, config: ProviderConfig) -> str:
    if config.provider == ProviderKind.OPENAI and not config.api_key:
        raise ProviderError("Missing OpenAI API key")
    if not config.base_url:
        raise ProviderError("No base URL configured")

    client = _openai_client(config)
    try:
        response = await client.chat.completions.create(
            model=config.model_name,
            messages=[
                {"role": "system", "content": config.system_instruction},
                {"role": "user", "content": prompt},
            ],
            temperature=config.temperature,
            stream=False,
        )
    except openai.APITimeoutError as e:
        raise ProviderError(f"Provider timeout: {e}") from e
    except openai.APIStatusError as e:
        logger.error(f"[GENERATION] Provider API error {e.status_code}: {e.message}")
        raise ProviderError("Provider API error", status_code=e.status_code) from e
    except openai.OpenAIError as e:
        raise ProviderError(f"Provider call failed: {e}") from e

    text = _first_choice_text(response)
    if not text:
        raise ProviderError("Empty provider response")
    return text


def _first_choice_text(response: Any) -> Optional[str]:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None)


def _anthropic_client(config: ProviderConfig) -> AsyncAnthropic:
    kwargs: dict[str, Any] = {
        "api_key": config.api_key,
        "timeout": config.timeout_seconds,
        "max_retries": 0,
    }
    if config.base_url:
        kwargs["base_url"] = config.base_url
    return AsyncAnthropic(**kwargs)


async def _generate_anthropic(prompt: str, config: ProviderConfig) -> str:
    if not config.api_key:
        raise ProviderError("Missing Anthropic API key")

    client = _anthropic_client(config)
    try:
        response = await client.messages.create(
            model=config.model_name,
            max_tokens=ANTHROPIC_MAX_TOKENS,
            system=config.system_instruction,
            temperature=config.temperature,
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.APITimeoutError as e:
        raise ProviderError(f"Anthropic timeout: {e}") from e
    except anthropic.APIStatusError as e:
        logger.error(f"[GENERATION] Anthropic API error {e.status_code}: {e.message}")
        raise ProviderError("Anthropic API error", status_code=e.status_code) from e
    except anthropic.AnthropicError as e:
        raise ProviderError(f"Anthropic call failed: {e}") from e

    text = "".join(
        block.text for block in response.content if getattr(block, "type", None) == "text"
    )
    if not text:
        raise ProviderError("Empty Anthropic response")
    return text
