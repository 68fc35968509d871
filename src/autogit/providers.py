"""Text-generation backends that turn a diff into a commit message.

Each supported backend is one subclass of `CommitMessageProvider` with its own
endpoint, request body and auth header; callers only ever see `generate(diff)`.
"""

import logging
from enum import Enum
from typing import Any

import requests

from .constants import APP_NAME, REQUEST_TIMEOUT, SYSTEM_PROMPT
from .errors import GenerationError, ValidationError

logger = logging.getLogger(APP_NAME)

QUOTE_CHARS = "\"'`"

Request = tuple[str, dict[str, str], dict[str, Any]]
"""(url, headers, json body) for one outbound call."""


class Provider(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    ANTHROPIC = "anthropic"


PROVIDER_ALIASES = {"claude": Provider.ANTHROPIC}


def parse_provider(name: str) -> Provider:
    """Resolves a provider identifier, accepting aliases and any letter case.

    Raises:
        ValidationError: If the identifier names no supported backend.
    """
    key = (name or "").strip().lower()
    if key in PROVIDER_ALIASES:
        return PROVIDER_ALIASES[key]
    try:
        return Provider(key)
    except ValueError:
        choices = ", ".join(p.value for p in Provider)
        raise ValidationError(
            f"Unknown AI provider: '{name}' (choose from {choices})"
        ) from None


def validate_api_key(provider: str, api_key: str) -> Provider:
    """Rejects credentials whose shape cannot belong to `provider`.

    This is a local check only; no request is made.

    Args:
        provider (str): The provider identifier.
        api_key (str): The credential to check.

    Returns:
        Provider: The resolved provider.

    Raises:
        ValidationError: If the provider is unknown or the key is malformed.
    """
    resolved = parse_provider(provider)
    if not api_key or not api_key.strip():
        raise ValidationError("API key is required")

    if resolved is Provider.GEMINI:
        if len(api_key) < 20:
            raise ValidationError("Gemini API key appears to be invalid (too short)")
    elif resolved in (Provider.OPENAI, Provider.OPENROUTER):
        if not api_key.startswith(("sk-", "sk_")):
            raise ValidationError(
                "OpenAI/OpenRouter API key should start with 'sk-' or 'sk_'"
            )
    elif resolved is Provider.ANTHROPIC:
        if not api_key.startswith("sk-ant-"):
            raise ValidationError("Anthropic API key should start with 'sk-ant-'")

    return resolved


def clean_message(text: str) -> str:
    """Strips whitespace and wrapping quote characters from a reply."""
    return text.strip().strip(QUOTE_CHARS).strip()


class CommitMessageProvider:
    """Base class defining the interface for commit message generation."""

    name = "base"
    timeout = REQUEST_TIMEOUT

    def __init__(self, api_key: str, base_url: str = ""):
        self.api_key = api_key
        self.base_url = base_url

    def generate(self, diff: str) -> str:
        """Asks the backend for a one-line Conventional Commit message.

        Args:
            diff (str): The diff to describe, already truncated by the caller.

        Returns:
            str: The cleaned commit message.

        Raises:
            GenerationError: On network failure, timeout, a non-200 reply,
                an unexpected response shape, or an empty message.
        """
        if not self.api_key:
            raise GenerationError(f"{self.name} API key is not set")

        prompt = f"{SYSTEM_PROMPT}\n\nCode diff:\n{diff}"
        url, headers, body = self.build_request(prompt)
        data = self._post(url, headers, body)

        try:
            raw = self.parse_response(data)
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError(f"No response from {self.name} API: {e}") from e
        if not isinstance(raw, str):
            raise GenerationError(f"No text in {self.name} API response")

        message = clean_message(raw)
        # Multi-line replies are trimmed to their subject line.
        message = message.splitlines()[0].strip() if message else ""
        message = clean_message(message)
        if not message:
            raise GenerationError(f"{self.name} API returned an empty message")
        return message

    def build_request(self, prompt: str) -> Request:
        """Returns (url, headers, json body) for a prompt."""
        raise NotImplementedError

    def parse_response(self, data: Any) -> str:
        """Extracts the generated text from a decoded JSON reply."""
        raise NotImplementedError

    def _post(self, url: str, headers: dict[str, str], body: dict[str, Any]) -> Any:
        logger.debug(f"Requesting commit message from {self.name}")
        try:
            response = requests.post(
                url, headers=headers, json=body, timeout=self.timeout
            )
        except requests.Timeout as e:
            raise GenerationError(
                f"{self.name} API timed out after {self.timeout}s"
            ) from e
        except requests.RequestException as e:
            raise GenerationError(f"Request to {self.name} API failed: {e}") from e

        if response.status_code != 200:
            raise GenerationError(
                f"API error (status {response.status_code}): {response.text[:500]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise GenerationError(f"Failed to decode {self.name} response: {e}") from e


class GeminiProvider(CommitMessageProvider):
    """Google Gemini `generateContent` endpoint."""

    name = "Gemini"
    model = "gemini-1.5-flash"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    def build_request(self, prompt: str) -> Request:
        base = (self.base_url or self.default_base_url).rstrip("/")
        url = f"{base}/models/{self.model}:generateContent?key={self.api_key}"
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        return url, {"Content-Type": "application/json"}, body

    def parse_response(self, data: Any) -> str:
        return data["candidates"][0]["content"]["parts"][0]["text"]


class OpenAIProvider(CommitMessageProvider):
    """OpenAI-compatible `chat/completions` endpoint (OpenAI, OpenRouter, custom)."""

    name = "OpenAI"
    default_base_url = "https://api.openai.com/v1"

    @property
    def is_openrouter(self) -> bool:
        return "openrouter" in self.base_url

    def build_request(self, prompt: str) -> Request:
        base = (self.base_url or self.default_base_url).rstrip("/")
        model = "openai/gpt-3.5-turbo" if self.is_openrouter else "gpt-3.5-turbo"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        if self.is_openrouter:
            headers["HTTP-Referer"] = "https://github.com/aadityansha/autogit"
            headers["X-Title"] = "Autogit"
        body = {"model": model, "messages": [{"role": "user", "content": prompt}]}
        return f"{base}/chat/completions", headers, body

    def parse_response(self, data: Any) -> str:
        return data["choices"][0]["message"]["content"]


class OpenRouterProvider(OpenAIProvider):
    name = "OpenRouter"
    default_base_url = "https://openrouter.ai/api/v1"

    def __init__(self, api_key: str, base_url: str = ""):
        super().__init__(api_key, base_url or self.default_base_url)


class AnthropicProvider(CommitMessageProvider):
    """Anthropic Messages API."""

    name = "Anthropic"
    model = "claude-3-haiku-20240307"
    default_base_url = "https://api.anthropic.com/v1"

    def build_request(self, prompt: str) -> Request:
        base = (self.base_url or self.default_base_url).rstrip("/")
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
        }
        body = {
            "model": self.model,
            "max_tokens": 1024,
            "messages": [{"role": "user", "content": prompt}],
        }
        return f"{base}/messages", headers, body

    def parse_response(self, data: Any) -> str:
        return data["content"][0]["text"]


_PROVIDERS: dict[Provider, type[CommitMessageProvider]] = {
    Provider.GEMINI: GeminiProvider,
    Provider.OPENAI: OpenAIProvider,
    Provider.OPENROUTER: OpenRouterProvider,
    Provider.ANTHROPIC: AnthropicProvider,
}


def get_provider(name: str, api_key: str, base_url: str = "") -> CommitMessageProvider:
    """Factory function returning the adapter for a provider identifier.

    Raises:
        ValidationError: If the identifier is unknown.
    """
    return _PROVIDERS[parse_provider(name)](api_key, base_url)
