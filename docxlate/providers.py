"""Translation provider abstractions."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests

from .errors import ConfigurationError, OracleError
from .structures import HostedApiConfig, LocalModelConfig, TranslationConfig

REQUEST_TIMEOUT = 30.0
TEMPERATURE = 0.7
TOP_P = 0.9

SYSTEM_PROMPT = (
    "You are a professional translation engine. Follow these rules strictly: "
    "1. Output only the translated text. "
    "2. The translation must correspond to the source one to one, adding and "
    "omitting nothing. "
    "3. Never output prompts, rules, explanations, notes or markers. "
    "4. If something is ambiguous, pick the most reasonable translation. "
    "5. Keep it concise and precise. Any extra content makes the result unusable."
)


def build_user_prompt(text: str, source_language: str, target_language: str) -> str:
    return (
        f"Translate the following {source_language} text into {target_language}. "
        f"Output only the translation:\n\n{text}"
    )


def build_messages(text: str, source_language: str, target_language: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(text, source_language, target_language)},
    ]


class ReplyShape(Enum):
    """Shapes a local model server reply may take."""

    MESSAGE_CONTENT = "message.content"
    RESPONSE_FIELD = "response"
    CONTENT_FIELD = "content"
    BARE_STRING = "string"
    DEEPEST_STRING = "deepest-string"
    RAW_TEXT = "raw-text"


@dataclass(frozen=True)
class DecodedReply:
    shape: ReplyShape
    text: str


def find_longest_string(payload: Any, max_depth: int = 3) -> Optional[str]:
    """Heuristic: the longest plausible string anywhere in a reply object.

    A string qualifies when it is longer than ten characters or sits under a
    key mentioning ``text`` or ``content``.
    """

    found: List[str] = []

    def walk(node: Any, depth: int) -> None:
        if depth > max_depth:
            return
        if isinstance(node, dict):
            items = node.items()
        elif isinstance(node, list):
            items = enumerate(node)
        else:
            return
        for key, value in items:
            if isinstance(value, str):
                if not value.strip():
                    continue
                label = str(key).lower()
                if len(value) > 10 or "text" in label or "content" in label:
                    found.append(value)
            elif isinstance(value, (dict, list)):
                walk(value, depth + 1)

    walk(payload, 0)
    if not found:
        return None
    return max(found, key=len)


def decode_local_reply(body: str) -> DecodedReply:
    """Decode a local model reply body by explicit shape matching."""

    if not body or not body.strip():
        raise OracleError("Local model returned an empty response.")

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return DecodedReply(ReplyShape.RAW_TEXT, body.strip())

    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return DecodedReply(ReplyShape.MESSAGE_CONTENT, message["content"].strip())
        if isinstance(payload.get("response"), str):
            return DecodedReply(ReplyShape.RESPONSE_FIELD, payload["response"].strip())
        if isinstance(payload.get("content"), str):
            return DecodedReply(ReplyShape.CONTENT_FIELD, payload["content"].strip())
    if isinstance(payload, str):
        return DecodedReply(ReplyShape.BARE_STRING, payload.strip())

    # Last resort: no known shape matched.
    fallback = find_longest_string(payload)
    if fallback is None:
        raise OracleError("Local model response format not recognised.")
    return DecodedReply(ReplyShape.DEEPEST_STRING, fallback.strip())


class TranslationProvider(ABC):
    """Abstract adapter for translation backends."""

    name = "abstract"

    @abstractmethod
    def translate(
        self,
        text: str,
        *,
        source_language: str,
        target_language: str,
        config: TranslationConfig,
    ) -> str:
        """Translate ``text`` and return the raw model output."""


class EchoProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    def translate(
        self,
        text: str,
        *,
        source_language: str,
        target_language: str,
        config: TranslationConfig,
    ) -> str:
        return text


class _DebugMixin:
    debug: bool
    logger: logging.Logger

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not self.debug:
            return
        try:
            if isinstance(payload, (dict, list)):
                message = json.dumps(payload, ensure_ascii=False, indent=2)
            else:
                message = str(payload)
        except (TypeError, ValueError):
            message = repr(payload)
        self.logger.debug("[provider-debug] %s:\n%s", label, message)


class LocalModelProvider(_DebugMixin, TranslationProvider):
    """Chat endpoint of a locally hosted model server (``/api/chat``)."""

    name = "local"

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        debug: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout
        self.debug = debug
        self.logger = logger or logging.getLogger("docxlate.providers.local")

    def translate(
        self,
        text: str,
        *,
        source_language: str,
        target_language: str,
        config: TranslationConfig,
    ) -> str:
        if not isinstance(config, LocalModelConfig):
            raise ConfigurationError("Local model provider requires a local model configuration.")
        if not config.endpoint or not config.model:
            raise ConfigurationError("Local model configuration needs an endpoint and a model name.")

        url = f"{config.endpoint.rstrip('/')}/api/chat"
        payload = {
            "model": config.model,
            "messages": build_messages(text, source_language, target_language),
            "stream": False,
            "think": False,
            "options": {"temperature": TEMPERATURE, "top_p": TOP_P},
        }
        self._log_debug("provider.request.payload", payload)
        self.logger.debug("Calling local model %s at %s", config.model, url)

        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.Timeout as exc:
            raise OracleError(
                "Local model request timed out; check that the model is available."
            ) from exc
        except requests.ConnectionError as exc:
            raise OracleError(
                f"Cannot reach the local model server at {config.endpoint}. "
                "Check that it is running and the URL is correct."
            ) from exc
        except requests.RequestException as exc:
            raise OracleError(f"Local model request failed: {exc}") from exc

        body = response.text
        self._log_debug("provider.response.raw", body)
        if response.status_code >= 400:
            raise OracleError(
                f"Local model returned HTTP {response.status_code}: {body[:200]}"
            )

        reply = decode_local_reply(body)
        self.logger.debug("Local model reply decoded as %s", reply.shape.value)
        if not reply.text:
            raise OracleError("Local model returned an empty translation.")
        return reply.text


class HostedApiProvider(_DebugMixin, TranslationProvider):
    """OpenAI-compatible hosted chat completion API."""

    name = "hosted"

    def __init__(
        self,
        *,
        client: Any = None,
        timeout: float = REQUEST_TIMEOUT,
        debug: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._client_key: Optional[tuple[str, str]] = None
        self.timeout = timeout
        self.debug = debug
        self.logger = logger or logging.getLogger("docxlate.providers.hosted")

    def _client_for(self, config: HostedApiConfig) -> Any:
        if self._client is not None and self._client_key in (None, (config.api_key, config.base_url)):
            return self._client
        try:
            from openai import OpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise ConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc

        # Retries are owned by the orchestrator, so the SDK must not add its own.
        self._client = OpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=self.timeout,
            max_retries=0,
        )
        self._client_key = (config.api_key, config.base_url)
        return self._client

    def translate(
        self,
        text: str,
        *,
        source_language: str,
        target_language: str,
        config: TranslationConfig,
    ) -> str:
        if not isinstance(config, HostedApiConfig):
            raise ConfigurationError("Hosted API provider requires a hosted API configuration.")
        if not config.api_key or not config.api_key.strip():
            raise ConfigurationError("Hosted API key is not set.")

        client = self._client_for(config)
        messages = build_messages(text, source_language, target_language)
        self._log_debug("provider.request.messages", messages)

        try:
            response = client.chat.completions.create(
                model=config.model,
                messages=messages,
                stream=False,
                temperature=TEMPERATURE,
                top_p=TOP_P,
            )
        except Exception as exc:  # pragma: no cover - network call
            raise OracleError(self._describe_failure(exc)) from exc

        content = self._extract_content(response)
        self._log_debug("provider.response.content", content)
        if not content.strip():
            raise OracleError("Hosted API returned an empty translation.")
        return content.strip()

    def _describe_failure(self, exc: Exception) -> str:
        message = str(exc)
        name = type(exc).__name__
        if name == "AuthenticationError" or "invalid_api_key" in message:
            return "Hosted API key is invalid; check the configured key."
        if "insufficient_quota" in message or "quota_exceeded" in message:
            return "Hosted API quota exhausted; check the account balance."
        if name == "APITimeoutError":
            return "Hosted API request timed out; try again later."
        if name == "APIConnectionError":
            return "Cannot reach the hosted API; check the network connection."
        return f"Hosted API request failed: {message}"

    def _extract_content(self, response: Any) -> str:
        """Return ``choices[0].message.content`` from an SDK response."""

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise OracleError("Hosted API response contained no choices.")
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if isinstance(content, list):
            parts: List[str] = []
            for part in content:
                text_value = getattr(part, "text", None)
                if text_value is None and isinstance(part, dict):
                    text_value = part.get("text")
                if text_value:
                    parts.append(str(text_value))
            content = "\n".join(parts)
        if not isinstance(content, str):
            raise OracleError("Hosted API response content is not text.")
        return content


PROVIDER_ALIASES = {
    "local": {"local", "local-model", "ollama"},
    "hosted": {"hosted", "hosted-api", "api", "deepseek", "openai"},
    "echo": {"echo", "noop", "mock"},
}


def provider_kind(name: str | None) -> str:
    """Resolve a provider name or alias to ``local``, ``hosted`` or ``echo``."""

    normalized = (name or "local").strip().lower().replace("_", "-")
    for kind, aliases in PROVIDER_ALIASES.items():
        if normalized in aliases:
            return kind
    raise ConfigurationError(f"Unknown translation provider '{name}'.")


def build_provider(
    name: str | None,
    *,
    debug: bool = False,
    logger: Optional[logging.Logger] = None,
) -> TranslationProvider:
    """Factory to create providers by name."""

    kind = provider_kind(name)
    if kind == "local":
        return LocalModelProvider(debug=debug, logger=logger)
    if kind == "hosted":
        return HostedApiProvider(debug=debug, logger=logger)
    return EchoProvider()


def validate_translation_config(config: TranslationConfig) -> None:
    """Reject configurations that cannot possibly reach a backend."""

    if isinstance(config, LocalModelConfig):
        if not config.endpoint or not config.model:
            raise ConfigurationError(
                "Local model configuration is invalid: check the URL and model name."
            )
        parsed = urlparse(config.endpoint)
        try:
            port = parsed.port
        except ValueError:
            port = None
        if not parsed.hostname or not port:
            raise ConfigurationError(
                f"Local model URL '{config.endpoint}' must include a host and a port."
            )
        return
    if isinstance(config, HostedApiConfig):
        if not config.api_key or not config.api_key.strip():
            raise ConfigurationError(
                "Hosted API key is not set; provide HOSTED_API_KEY or --api-key."
            )
        return
    raise ConfigurationError(f"Unsupported translation configuration: {config!r}")


def provider_for_config(
    config: TranslationConfig,
    *,
    debug: bool = False,
    logger: Optional[logging.Logger] = None,
) -> TranslationProvider:
    """Pick the provider matching a configuration variant."""

    if isinstance(config, LocalModelConfig):
        return build_provider("local", debug=debug, logger=logger)
    if isinstance(config, HostedApiConfig):
        return build_provider("hosted", debug=debug, logger=logger)
    raise ConfigurationError(f"Unsupported translation configuration: {config!r}")
