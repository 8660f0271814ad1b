"""
Provider wire-format table.

Each provider is described as data: an endpoint template, an auth scheme,
a request-body builder and the field path holding the generated text. The
HTTP client in :mod:`summarizator.services.llm.client` consumes these
entries through a single send/receive path.

| Provider      | Auth                     | Response path                         |
|---------------|--------------------------|---------------------------------------|
| OpenAI        | Authorization: Bearer    | choices[0].message.content            |
| Anthropic     | x-api-key + version      | content[0].text                       |
| Google Gemini | ?key= query parameter    | candidates[0].content.parts[0].text   |
| Mistral AI    | Authorization: Bearer    | choices[0].message.content            |
| Ollama        | none                     | response                              |
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any
from urllib.parse import quote

from summarizator.core.config import Settings

TEMPERATURE = 0.3


class LLMProvider(StrEnum):
    """Supported providers; values are the display names used in summary labels."""

    openai = "OpenAI"
    anthropic = "Anthropic"
    gemini = "Google Gemini"
    mistral = "Mistral AI"
    ollama = "Ollama"

    @property
    def credential_key(self) -> str:
        """Key under which the provider's API key is kept in the secret store."""
        return self.name

    @classmethod
    def parse(cls, value: "str | LLMProvider") -> "LLMProvider":
        """Resolve an enum name ("gemini") or display name ("Google Gemini")."""
        if isinstance(value, cls):
            return value
        needle = value.strip().lower()
        for member in cls:
            if needle in (member.name, member.value.lower()):
                return member
        allowed = ", ".join(member.name for member in cls)
        raise ValueError(f"Unknown LLM provider '{value}'. Allowed: {allowed}")


class AuthScheme(StrEnum):
    """How the API key travels with the request."""

    bearer = "bearer"
    header = "header"
    query = "query"
    none = "none"


BodyBuilder = Callable[[str, str, str], dict[str, Any]]


def _joined_prompt(text: str, instruction: str) -> str:
    return f"{instruction}\n\n{text}" if instruction else text


def _chat_messages(text: str, instruction: str) -> list[dict[str, str]]:
    messages = []
    if instruction:
        messages.append({"role": "system", "content": instruction})
    messages.append({"role": "user", "content": text})
    return messages


def _openai_body(text: str, instruction: str, model: str) -> dict[str, Any]:
    return {
        "model": model,
        "messages": _chat_messages(text, instruction),
        "temperature": TEMPERATURE,
    }


def _mistral_body(text: str, instruction: str, model: str) -> dict[str, Any]:
    body = _openai_body(text, instruction, model)
    body["max_tokens"] = 4096
    return body


def _anthropic_body(text: str, instruction: str, model: str) -> dict[str, Any]:
    return {
        "model": model,
        "messages": [{"role": "user", "content": _joined_prompt(text, instruction)}],
        "max_tokens": 4000,
        "temperature": TEMPERATURE,
    }


def _gemini_body(text: str, instruction: str, model: str) -> dict[str, Any]:
    return {
        "contents": [
            {"role": "user", "parts": [{"text": _joined_prompt(text, instruction)}]},
        ],
        "generationConfig": {
            "temperature": TEMPERATURE,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": 8192,
        },
    }


def _ollama_body(text: str, instruction: str, model: str) -> dict[str, Any]:
    return {
        "model": model,
        "prompt": _joined_prompt(text, instruction),
        "stream": False,
        "options": {"temperature": TEMPERATURE, "num_predict": 4096},
    }


def _no_headers(_settings: Settings) -> dict[str, str]:
    return {}


def _anthropic_headers(settings: Settings) -> dict[str, str]:
    return {"anthropic-version": settings.anthropic_version}


def extract_path(payload: Any, path: tuple[str | int, ...]) -> str:
    """Walk *path* through nested dicts/lists and return the string at its end.

    Raises:
        ValueError: If a step is missing or the leaf is not a string.
    """
    node = payload
    for step in path:
        try:
            node = node[step]
        except (KeyError, IndexError, TypeError):
            raise ValueError(f"missing field at {format_path(path)}") from None
    if not isinstance(node, str):
        raise ValueError(f"field at {format_path(path)} is not text")
    return node


def format_path(path: tuple[str | int, ...]) -> str:
    """Render a field path the way it is written in provider docs."""
    rendered = ""
    for step in path:
        rendered += f"[{step}]" if isinstance(step, int) else f".{step}"
    return rendered.lstrip(".")


@dataclass(frozen=True)
class ProviderSpec:
    """Wire-format description of one provider."""

    provider: LLMProvider
    base_url_setting: str
    endpoint: str
    auth: AuthScheme
    build_body: BodyBuilder
    response_path: tuple[str | int, ...]
    default_model: str
    available_models: tuple[str, ...]
    auth_name: str = ""
    extra_headers: Callable[[Settings], dict[str, str]] = field(default=_no_headers)

    @property
    def requires_credential(self) -> bool:
        return self.auth != AuthScheme.none

    def url(self, settings: Settings, model: str) -> str:
        base_url = str(getattr(settings, self.base_url_setting)).rstrip("/")
        return self.endpoint.format(base_url=base_url, model=quote(model, safe=""))

    def headers(self, settings: Settings, secret: str | None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(self.extra_headers(settings))
        if secret is not None:
            if self.auth == AuthScheme.bearer:
                headers["Authorization"] = f"Bearer {secret}"
            elif self.auth == AuthScheme.header:
                headers[self.auth_name] = secret
        return headers

    def params(self, secret: str | None) -> dict[str, str]:
        if secret is not None and self.auth == AuthScheme.query:
            return {self.auth_name: secret}
        return {}

    def extract(self, payload: Any) -> str:
        return extract_path(payload, self.response_path)


PROVIDER_SPECS: dict[LLMProvider, ProviderSpec] = {
    LLMProvider.openai: ProviderSpec(
        provider=LLMProvider.openai,
        base_url_setting="openai_base_url",
        endpoint="{base_url}/chat/completions",
        auth=AuthScheme.bearer,
        build_body=_openai_body,
        response_path=("choices", 0, "message", "content"),
        default_model="gpt-4o",
        available_models=("gpt-4o", "gpt-4-turbo", "gpt-3.5-turbo"),
    ),
    LLMProvider.anthropic: ProviderSpec(
        provider=LLMProvider.anthropic,
        base_url_setting="anthropic_base_url",
        endpoint="{base_url}/messages",
        auth=AuthScheme.header,
        auth_name="x-api-key",
        extra_headers=_anthropic_headers,
        build_body=_anthropic_body,
        response_path=("content", 0, "text"),
        default_model="claude-3-opus-20240229",
        available_models=(
            "claude-3-opus-20240229",
            "claude-3-sonnet-20240229",
            "claude-3-haiku-20240307",
        ),
    ),
    LLMProvider.gemini: ProviderSpec(
        provider=LLMProvider.gemini,
        base_url_setting="gemini_base_url",
        endpoint="{base_url}/models/{model}:generateContent",
        auth=AuthScheme.query,
        auth_name="key",
        build_body=_gemini_body,
        response_path=("candidates", 0, "content", "parts", 0, "text"),
        default_model="gemini-1.5-pro",
        available_models=("gemini-1.5-pro", "gemini-1.5-flash", "gemini-pro"),
    ),
    LLMProvider.mistral: ProviderSpec(
        provider=LLMProvider.mistral,
        base_url_setting="mistral_base_url",
        endpoint="{base_url}/chat/completions",
        auth=AuthScheme.bearer,
        build_body=_mistral_body,
        response_path=("choices", 0, "message", "content"),
        default_model="mistral-large-latest",
        available_models=(
            "mistral-large-latest",
            "mistral-medium-latest",
            "mistral-small-latest",
        ),
    ),
    LLMProvider.ollama: ProviderSpec(
        provider=LLMProvider.ollama,
        base_url_setting="ollama_base_url",
        endpoint="{base_url}/generate",
        auth=AuthScheme.none,
        build_body=_ollama_body,
        response_path=("response",),
        default_model="llama3",
        available_models=("llama3", "mistral", "gemma"),
    ),
}


def get_spec(provider: LLMProvider | str) -> ProviderSpec:
    """Return the wire-format entry for *provider* (name or display name)."""
    return PROVIDER_SPECS[LLMProvider.parse(provider)]


def summary_label(provider: LLMProvider, model: str) -> str:
    """Label stored on a Summary, e.g. ``"OpenAI - gpt-4o"``."""
    return f"{provider.value} - {model}"
