"""Text-generation backends and the adapter the pipeline calls.

A backend implements one of two protocols:

    RichGenerator    async generate(prompt, *, quiet_to_loud, trim_names, api) -> str
    SimpleGenerator  async generate_quiet(*, quiet_prompt, quiet_name) -> str

GenerationAdapter picks the variant once, at construction. Rich backends are
preferred because they honour routing: before each call the adapter applies
the tag-generation RouteSettings to the shared ChatSettings and restores the
previous values afterwards, whether or not the call succeeded.

HttpGenerator is the bundled RichGenerator: a plain HTTP client for KoboldCpp
and OpenAI-compatible backends.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Literal, Protocol, get_args, runtime_checkable

import httpx

from scene_tagger.models import ChatSettings, RouteSettings

logger = logging.getLogger(__name__)

SOURCE_KEY = "chat_completion_source"

MODEL_KEY_BY_SOURCE: dict[str, str] = {
    "openai": "openai_model",
    "claude": "claude_model",
    "makersuite": "google_model",
    "vertexai": "vertexai_model",
    "openrouter": "openrouter_model",
    "ai21": "ai21_model",
    "mistralai": "mistralai_model",
    "cohere": "cohere_model",
    "perplexity": "perplexity_model",
    "groq": "groq_model",
    "chutes": "chutes_model",
    "siliconflow": "siliconflow_model",
    "electronhub": "electronhub_model",
    "nanogpt": "nanogpt_model",
    "deepseek": "deepseek_model",
    "aimlapi": "aimlapi_model",
    "xai": "xai_model",
}

QUIET_NAME = "danbooru-tag-gen"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class GenerationError(RuntimeError):
    """Base class for tag-generation backend failures."""


class GenerationUnavailable(GenerationError):
    """No usable generation capability was supplied."""


class GenerationFailed(GenerationError):
    """The backend was called but raised or returned an unusable response."""


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

@runtime_checkable
class RichGenerator(Protocol):
    async def generate(
        self,
        prompt: str,
        *,
        quiet_to_loud: bool = False,
        trim_names: bool = True,
        api: str | None = None,
    ) -> str | None: ...


@runtime_checkable
class SimpleGenerator(Protocol):
    async def generate_quiet(self, *, quiet_prompt: str, quiet_name: str) -> str | None: ...


# ---------------------------------------------------------------------------
# Route override
# ---------------------------------------------------------------------------

_MISSING = object()


def model_key_for(route: RouteSettings, chat_settings: ChatSettings) -> str:
    """Settings key holding the model name for the effective chat source."""
    if route.model_setting_key:
        return route.model_setting_key
    source = route.chat_source or str(chat_settings.get(SOURCE_KEY) or "")
    return MODEL_KEY_BY_SOURCE.get(source, "")


@contextmanager
def route_override(chat_settings: ChatSettings | None, route: RouteSettings) -> Iterator[None]:
    """Temporarily point chat_settings at the route's source and model.

    Previous values are restored exactly once when the block exits, including
    on exceptions. Keys that did not exist before are removed again.
    """
    if chat_settings is None:
        yield
        return

    saved: dict[str, object] = {}
    model_key = model_key_for(route, chat_settings)
    if route.chat_source:
        saved[SOURCE_KEY] = chat_settings.get(SOURCE_KEY, _MISSING)
        chat_settings[SOURCE_KEY] = route.chat_source
    if model_key and route.model:
        saved.setdefault(model_key, chat_settings.get(model_key, _MISSING))
        chat_settings[model_key] = route.model
    if saved:
        logger.debug("route override applied keys=%s", sorted(saved))

    try:
        yield
    finally:
        for key, value in reversed(list(saved.items())):
            if value is _MISSING:
                chat_settings.pop(key, None)
            else:
                chat_settings[key] = value


# ---------------------------------------------------------------------------
# GenerationAdapter
# ---------------------------------------------------------------------------

class GenerationAdapter:
    """Single entry point for tag generation over either backend protocol.

    Args:
        backend:       Object implementing RichGenerator and/or SimpleGenerator.
        chat_settings: Shared backend configuration the route override is
                       applied to. Only used with rich backends.
        quiet_name:    Caller name passed to simple backends.
    """

    def __init__(
        self,
        backend: object | None,
        chat_settings: ChatSettings | None = None,
        quiet_name: str = QUIET_NAME,
    ) -> None:
        self._rich: RichGenerator | None = None
        self._simple: SimpleGenerator | None = None
        if isinstance(backend, RichGenerator):
            self._rich = backend
        elif isinstance(backend, SimpleGenerator):
            self._simple = backend
        self._chat_settings = chat_settings
        self._quiet_name = quiet_name

    @property
    def kind(self) -> Literal["rich", "simple"] | None:
        if self._rich is not None:
            return "rich"
        if self._simple is not None:
            return "simple"
        return None

    async def invoke(self, prompt: str, route: RouteSettings | None = None) -> str:
        """Run one generation and return the stripped text.

        Raises GenerationUnavailable when no capability exists and
        GenerationFailed when the backend raises.
        """
        route = route or RouteSettings()
        logger.debug("tag generation kind=%s prompt_len=%d", self.kind, len(prompt))
        try:
            if self._rich is not None:
                with route_override(self._chat_settings, route):
                    result = await self._rich.generate(
                        prompt,
                        quiet_to_loud=False,
                        trim_names=True,
                        api=route.api or None,
                    )
            elif self._simple is not None:
                result = await self._simple.generate_quiet(
                    quiet_prompt=prompt,
                    quiet_name=self._quiet_name,
                )
            else:
                raise GenerationUnavailable("No generation API found on backend")
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationFailed(f"Tag generation failed: {e}") from e

        text = (result or "").strip()
        logger.debug("tag generation response len=%d", len(text))
        return text


# ---------------------------------------------------------------------------
# HttpGenerator — connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai"]


class HttpGenerator:
    """Async HTTP client for text-completion backends (RichGenerator).

    Supported formats:
      "koboldcpp"  — POST /api/v1/generate  {"prompt": ...}
                     Response: {"results": [{"text": "..."}]}
      "openai"     — POST /v1/completions   {"model": ..., "prompt": ...}
                     Response: {"choices": [{"text": "..."}]}

    The model is read from chat_settings at call time, using the key mapped
    from its chat_completion_source, so an active route override applies.
    An ``api`` argument naming a supported format overrides provider_format
    for that call.

    Args:
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "koboldcpp".
        chat_settings:   Shared backend configuration (may be None).
        timeout:         HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "koboldcpp",
        chat_settings: ChatSettings | None = None,
        timeout: float = 120.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._chat_settings = chat_settings if chat_settings is not None else {}
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _model(self) -> str:
        source = str(self._chat_settings.get(SOURCE_KEY) or "")
        key = MODEL_KEY_BY_SOURCE.get(source, "")
        return str(self._chat_settings.get(key) or "") if key else ""

    def _build_request(self, prompt: str, fmt: ProviderFormat) -> tuple[str, dict]:
        """Return (url, body) for the given format."""
        if fmt == "openai":
            url = f"{self._base_url}/v1/completions"
            body: dict = {"prompt": prompt}
            model = self._model()
            if model:
                body["model"] = model
            return url, body

        # koboldcpp (default)
        url = f"{self._base_url}/api/v1/generate"
        return url, {"prompt": prompt}

    def _parse_response(self, data: dict, fmt: ProviderFormat) -> str:
        """Extract the completion text from the response body."""
        if fmt == "openai":
            choices = data.get("choices")
            if not choices or "text" not in choices[0]:
                raise GenerationFailed("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["text"]

        # koboldcpp
        results = data.get("results")
        if not results or "text" not in results[0]:
            raise GenerationFailed("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    async def generate(
        self,
        prompt: str,
        *,
        quiet_to_loud: bool = False,
        trim_names: bool = True,
        api: str | None = None,
    ) -> str:
        fmt: ProviderFormat = api if api in get_args(ProviderFormat) else self._format
        url, body = self._build_request(prompt, fmt)
        logger.debug("http generate url=%s prompt_len=%d", url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise GenerationFailed(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise GenerationFailed(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise GenerationFailed(f"LLM backend timed out after {self._timeout}s") from e

        return self._parse_response(resp.json(), fmt)
