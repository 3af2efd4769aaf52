from __future__ import annotations

from dataclasses import dataclass
import http.client
import json
import logging
from typing import Any, Callable, Iterable, Mapping
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from finance_backend.settings import AiSettings

logger = logging.getLogger(__name__)

GEMINI_PROVIDERS = {"gemini", "google", "googleai", "google-ai", "google_gemini"}


class AiUnavailable(RuntimeError):
    """Raised when the AI provider is not configured or returns nothing usable."""


class AiRequestFailed(RuntimeError):
    """Raised when the AI provider cannot be reached or rejects the request."""


@dataclass(frozen=True)
class AiMessage:
    role: str
    content: str


@dataclass
class AiClient:
    settings: AiSettings
    timeout: int = 60
    opener: Callable[..., Any] = urlopen

    @property
    def is_configured(self) -> bool:
        return bool(
            self.settings.api_key.strip()
            and self.settings.base_url.strip()
            and self.settings.model.strip()
        )

    @property
    def provider(self) -> str:
        provider = (self.settings.provider or "").strip().lower()
        return provider or "gemini"

    def generate(self, messages: Iterable[AiMessage]) -> str:
        if not self.is_configured:
            raise AiUnavailable("AI provider is not configured. Set the API key and model first.")
        messages = list(messages)
        if self.provider in GEMINI_PROVIDERS:
            return self._generate_with_gemini(messages)
        return self._generate_with_openai(messages)

    def _generate_with_openai(self, messages: list[AiMessage]) -> str:
        payload = {
            "model": self.settings.model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in messages],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens if self.settings.max_tokens > 0 else None,
        }
        response = self._post_json(self.openai_endpoint(), payload, provider_name="AI provider")
        try:
            content = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not isinstance(content, str) or not content.strip():
            raise AiUnavailable("AI response was empty or unreadable.")
        return content.strip()

    def _generate_with_gemini(self, messages: list[AiMessage]) -> str:
        system_instructions = [
            msg.content for msg in messages if msg.role.strip().lower() == "system"
        ]
        contents = [
            {"role": map_gemini_role(msg.role), "parts": [{"text": msg.content}]}
            for msg in messages
            if msg.role.strip().lower() != "system"
        ]
        if not contents:
            contents = [{"role": "user", "parts": [{"text": ""}]}]

        payload: dict[str, Any] = {
            "contents": contents,
            "generation_config": {
                "temperature": self.settings.temperature,
                "max_output_tokens": self.settings.max_tokens if self.settings.max_tokens > 0 else None,
            },
        }
        if system_instructions:
            payload["system_instruction"] = {
                "parts": [{"text": "\n\n".join(system_instructions)}]
            }

        response = self._post_json(self.gemini_endpoint(), payload, provider_name="Gemini")
        for candidate in response.get("candidates") or []:
            parts = ((candidate or {}).get("content") or {}).get("parts") or []
            for part in parts:
                text = (part or {}).get("text")
                if isinstance(text, str) and text.strip():
                    return text.strip()
        raise AiUnavailable("Gemini response was empty or unreadable.")

    def openai_endpoint(self) -> str:
        base_url = self._base_url("AI")
        if not base_url.endswith("/"):
            base_url += "/"
        return f"{base_url}chat/completions"

    def gemini_endpoint(self) -> str:
        base_url = self._base_url("Gemini").rstrip("/")
        model = (self.settings.model or "").strip()
        if not model:
            raise AiUnavailable("Gemini model is not set.")
        return f"{base_url}/models/{model}:generateContent"

    def _base_url(self, provider_name: str) -> str:
        base_url = (self.settings.base_url or "").strip()
        parsed = urlparse(base_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise AiUnavailable(f"{provider_name} base URL is invalid.")
        return base_url

    def build_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        header_name = (self.settings.api_key_header or "").strip()
        if header_name and header_name.lower() != "authorization":
            headers[header_name] = self.settings.api_key
        elif self.settings.use_bearer_prefix:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"
        else:
            headers["Authorization"] = self.settings.api_key
        if self.settings.organization and self.settings.organization.strip():
            headers["OpenAI-Organization"] = self.settings.organization.strip()
        return headers

    def _post_json(self, url: str, payload: Mapping[str, Any], provider_name: str) -> dict:
        body = json.dumps(_drop_nulls(payload)).encode("utf-8")
        request = Request(url, data=body, headers=self.build_headers(), method="POST")
        try:
            with self.opener(request, timeout=self.timeout) as response:
                raw = response.read().decode("utf-8")
        except HTTPError as exc:
            logger.warning("%s returned status %s", provider_name, exc.code)
            raise AiRequestFailed(
                f"Failed to call {provider_name} (status {exc.code}). {exc.reason}"
            ) from exc
        except (URLError, OSError, http.client.HTTPException) as exc:
            logger.warning("%s is unreachable: %s", provider_name, exc)
            raise AiRequestFailed(f"Failed to reach {provider_name}.") from exc

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise AiUnavailable(f"{provider_name} response was empty or unreadable.") from exc
        if not isinstance(parsed, dict):
            raise AiUnavailable(f"{provider_name} response was empty or unreadable.")
        return parsed


def map_gemini_role(role: str) -> str:
    normalized = (role or "").strip().lower()
    if normalized in {"assistant", "model"}:
        return "model"
    return "user"


def _drop_nulls(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _drop_nulls(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [_drop_nulls(item) for item in value]
    return value
