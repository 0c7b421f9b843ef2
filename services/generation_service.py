"""Generative-text clients.

Requests are expressed as Gemini-style ``contents``::

    [{"role": "user" | "model", "parts": [{"text": "..."}]}, ...]

Each client returns the generated text, None when the service answered but
carried no usable text, or raises GenerationError when the call itself failed.
"""
import logging
from typing import Any, Dict, List, Optional

import anthropic
import httpx
from openai import AsyncOpenAI

from config import Settings, get_settings

logger = logging.getLogger("scripture_chat.generation")

Contents = List[Dict[str, Any]]


class GenerationError(Exception):
    """Raised when the generative-text service is unreachable or errors."""


def user_contents(prompt: str) -> Contents:
    """Single-turn request for one prompt"""
    return [{"role": "user", "parts": [{"text": prompt}]}]


def _content_text(entry: Dict[str, Any]) -> str:
    return "".join(part.get("text", "") for part in entry.get("parts", []))


def to_chat_messages(contents: Contents) -> List[Dict[str, str]]:
    """Convert contents into OpenAI/Anthropic chat messages (model -> assistant)"""
    return [
        {
            "role": "assistant" if entry.get("role") == "model" else "user",
            "content": _content_text(entry),
        }
        for entry in contents
    ]


class TextGenerator:
    name = "base"

    async def generate(self, contents: Contents) -> Optional[str]:
        raise NotImplementedError


class GeminiTextGenerator(TextGenerator):
    """Gemini ``generateContent`` over plain HTTP"""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str,
        api_base: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/{self.model}:generateContent"

    async def generate(self, contents: Contents) -> Optional[str]:
        payload = {"contents": contents}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.endpoint, params={"key": self.api_key}, json=payload)
        except httpx.TimeoutException as exc:
            raise GenerationError(f"Request timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise GenerationError(str(exc) or exc.__class__.__name__) from exc

        if not resp.is_success:
            raise GenerationError(f"API error! Status: {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise GenerationError(f"Invalid JSON from generative service: {exc}") from exc

        return extract_candidate_text(data)


def extract_candidate_text(data: Any) -> Optional[str]:
    """Read candidates[0].content.parts[0].text; None when the path is missing or empty."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(text, str) or not text:
        return None
    return text


class OpenAITextGenerator(TextGenerator):
    name = "openai"

    def __init__(self, api_key: str, model: str, max_tokens: int, timeout: float, client: Optional[AsyncOpenAI] = None):
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def generate(self, contents: Contents) -> Optional[str]:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=to_chat_messages(contents),
                max_tokens=self.max_tokens,
            )
        except Exception as exc:
            raise GenerationError(f"OpenAI error: {exc}") from exc

        if not response.choices:
            return None
        return response.choices[0].message.content or None


class AnthropicTextGenerator(TextGenerator):
    name = "anthropic"

    def __init__(self, api_key: str, model: str, max_tokens: int, timeout: float, client: Optional[anthropic.AsyncAnthropic] = None):
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def generate(self, contents: Contents) -> Optional[str]:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=to_chat_messages(contents),
            )
        except Exception as exc:
            raise GenerationError(f"Claude error: {exc}") from exc

        for block in response.content or []:
            text = getattr(block, "text", None)
            if text:
                return text
        return None


def get_text_generator(settings: Optional[Settings] = None) -> TextGenerator:
    """Build the generator selected by GENERATION_PROVIDER"""
    settings = settings or get_settings()
    provider = settings.GENERATION_PROVIDER
    if provider == "gemini":
        if not settings.has_gemini_key:
            logger.warning("GEMINI_API_KEY is not set; generation requests will fail")
        return GeminiTextGenerator(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            api_base=settings.GEMINI_API_BASE,
            timeout=settings.REQUEST_TIMEOUT,
        )
    if provider == "openai":
        return OpenAITextGenerator(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            max_tokens=settings.MAX_TOKENS,
            timeout=settings.REQUEST_TIMEOUT,
        )
    if provider == "anthropic":
        return AnthropicTextGenerator(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.CLAUDE_MODEL,
            max_tokens=settings.MAX_TOKENS,
            timeout=settings.REQUEST_TIMEOUT,
        )
    raise ValueError(f"Unknown generation provider: {provider!r}")
