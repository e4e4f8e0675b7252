from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

NO_CORRECTION_MESSAGE = "Could not get a correction."
UNKNOWN_ERROR_MESSAGE = "Unknown error"

SYSTEM_PROMPT = "You are a helpful assistant"


def correction_prompt(text: str) -> str:
    return f"Correct this text: {text}"


@dataclass(frozen=True)
class Success:
    text: str


@dataclass(frozen=True)
class Errored:
    message: str


@dataclass(frozen=True)
class Malformed:
    reason: str = ""


Outcome = Union[Success, Errored, Malformed]


@dataclass(frozen=True)
class ProviderRequest:
    url: str
    payload: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderConfig:
    """One upstream LLM service: where to send text and how to read the answer."""

    name: str
    display_name: str
    endpoint_url: str
    api_key: Optional[str]
    build_request: Callable[[str], ProviderRequest]
    extract: Callable[[Any], Outcome]


def parse_chat_completion(data: Any) -> Outcome:
    """choices[0].message.content of an OpenAI-style chat completion."""

    if not isinstance(data, dict):
        return Malformed("body is not an object")
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return Malformed("no choices")
    first = choices[0]
    if not isinstance(first, dict):
        return Malformed("choice is not an object")
    message = first.get("message")
    if not isinstance(message, dict):
        return Malformed("choice has no message")
    content = message.get("content")
    if not isinstance(content, str) or not content:
        return Malformed("message has no content")
    return Success(content)


def parse_generate_content(data: Any) -> Outcome:
    """candidates[0].content.parts[0].text, or the body's error object."""

    if not isinstance(data, dict):
        return Malformed("body is not an object")

    candidates = data.get("candidates")
    if isinstance(candidates, list) and candidates:
        first = candidates[0]
        content = first.get("content") if isinstance(first, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
            return Malformed("candidate has no parts")
        text = parts[0].get("text")
        if not isinstance(text, str) or not text:
            return Malformed("part has no text")
        return Success(text)

    error = data.get("error")
    if error is not None:
        message = error.get("message") if isinstance(error, dict) else None
        if not isinstance(message, str) or not message:
            message = UNKNOWN_ERROR_MESSAGE
        return Errored(message)

    return Malformed("neither candidates nor error")


def outcome_text(outcome: Outcome) -> str:
    if isinstance(outcome, Success):
        return outcome.text
    if isinstance(outcome, Errored):
        return f"API Error: {outcome.message}"
    if isinstance(outcome, Malformed):
        return NO_CORRECTION_MESSAGE
    raise TypeError(f"unexpected outcome: {outcome!r}")


OPENAI_URL = "https://api.openai.com/v1/chat/completions"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


def openai_provider(
    api_key: Optional[str],
    *,
    model: str = "gpt-4",
    max_tokens: int = 100,
    temperature: float = 1.0,
) -> ProviderConfig:
    def build_request(text: str) -> ProviderRequest:
        return ProviderRequest(
            url=OPENAI_URL,
            headers={"Authorization": f"Bearer {api_key}"},
            payload={
                "model": model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": correction_prompt(text)},
                ],
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
        )

    return ProviderConfig(
        name="openai",
        display_name="OpenAI",
        endpoint_url=OPENAI_URL,
        api_key=api_key,
        build_request=build_request,
        extract=parse_chat_completion,
    )


def gemini_provider(
    api_key: Optional[str],
    *,
    model: str = "gemini-1.5-flash",
    max_tokens: int = 100,
    temperature: float = 1.0,
) -> ProviderConfig:
    url = GEMINI_URL.format(model=model)

    def build_request(text: str) -> ProviderRequest:
        return ProviderRequest(
            url=url,
            # Gemini takes the key as a query parameter, not a header.
            params={"key": api_key or ""},
            payload={
                "contents": [{"role": "user", "parts": [{"text": correction_prompt(text)}]}],
                "generationConfig": {"maxOutputTokens": max_tokens, "temperature": temperature},
            },
        )

    return ProviderConfig(
        name="gemini",
        display_name="Gemini",
        endpoint_url=url,
        api_key=api_key,
        build_request=build_request,
        extract=parse_generate_content,
    )


PROVIDERS: Dict[str, Callable[..., ProviderConfig]] = {
    "openai": openai_provider,
    "gemini": gemini_provider,
}

_API_KEY_ENV = {
    "openai": "OPENAI_KEY",
    "gemini": "GEMINI_API_KEY",
}


def api_key_env(name: str) -> str:
    try:
        return _API_KEY_ENV[name]
    except KeyError:
        raise ValueError(f"unknown provider: {name}") from None


def build_provider(
    name: str,
    api_key: Optional[str],
    *,
    model: str = "",
    max_tokens: int = 100,
    temperature: float = 1.0,
) -> ProviderConfig:
    factory = PROVIDERS.get(name)
    if factory is None:
        raise ValueError(f"unknown provider: {name}")
    kwargs: Dict[str, Any] = {"max_tokens": max_tokens, "temperature": temperature}
    if model:
        kwargs["model"] = model
    return factory(api_key, **kwargs)
