"""
Short explanations of scanned text with an LLM.

Supports:
- Hugging Face Inference (Mistral 7B Instruct, default)
- Anthropic Claude (via anthropic library)
- OpenAI GPT (via openai library)
- Google Gemini (via google-genai library)

When no provider is available or the call fails, a plain preview built from
the first sentences of the text is returned instead.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterator
import logging
import os
import re

from .config import Settings

logger = logging.getLogger(__name__)

EXPLAIN_SYSTEM_PROMPT = "Summarize this in 3 sentences."

_SENTENCE = re.compile(r"[^.!?]+[.!?]+")


class LLMProvider(ABC):
    """A hosted model that turns one prompt into streamed text."""

    max_tokens: int = 200
    temperature: float = 0.5

    @abstractmethod
    def stream(self, prompt: str, system_prompt: str, **kwargs: Any) -> Iterator[str]:
        """
        Stream the model's answer to a single user prompt.

        Args:
            prompt: User message (the scanned text)
            system_prompt: Instruction sent ahead of it
            **kwargs: max_tokens / temperature overrides

        Yields:
            Text chunks as they arrive
        """
        pass

    def _option(self, kwargs: dict[str, Any], name: str) -> Any:
        return kwargs.get(name, getattr(self, name))


def _require_key(api_key: str | None, env_var: str) -> str:
    key = api_key or os.getenv(env_var)
    if not key:
        raise ValueError(f"{env_var} not found in environment")
    return key


class HuggingFaceProvider(LLMProvider):
    """Hugging Face Inference chat completion."""

    def __init__(self,
                 api_key: str | None = None,
                 model: str = "mistralai/Mistral-7B-Instruct-v0.3",
                 max_tokens: int = 200,
                 temperature: float = 0.5):
        """
        Args:
            api_key: Hugging Face token (default: HUGGINGFACE_API_KEY env var)
            model: Hub model id
            max_tokens: Maximum tokens in the summary
            temperature: Sampling temperature
        """
        from huggingface_hub import InferenceClient

        self.api_key = _require_key(api_key, "HUGGINGFACE_API_KEY")
        self.client = InferenceClient(token=self.api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def stream(self, prompt: str, system_prompt: str, **kwargs: Any) -> Iterator[str]:
        chunks = self.client.chat_completion(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            model=self.model,
            max_tokens=self._option(kwargs, "max_tokens"),
            temperature=self._option(kwargs, "temperature"),
            stream=True,
        )
        for chunk in chunks:
            piece = chunk.choices[0].delta.content
            if piece:
                yield piece


class AnthropicProvider(LLMProvider):
    """Anthropic Claude."""

    def __init__(self,
                 api_key: str | None = None,
                 model: str = "claude-sonnet-4-5-20250929",
                 max_tokens: int = 200):
        from anthropic import Anthropic

        self.api_key = _require_key(api_key, "ANTHROPIC_API_KEY")
        self.client = Anthropic(api_key=self.api_key)
        self.model = model
        self.max_tokens = max_tokens

    def stream(self, prompt: str, system_prompt: str, **kwargs: Any) -> Iterator[str]:
        # Claude takes the system prompt as its own parameter
        with self.client.messages.stream(
            model=self.model,
            max_tokens=self._option(kwargs, "max_tokens"),
            temperature=self._option(kwargs, "temperature"),
            system=system_prompt,
            messages=[{"role": "user", "content": prompt}],
        ) as response:
            yield from response.text_stream


class OpenAIProvider(LLMProvider):
    """OpenAI GPT."""

    def __init__(self,
                 api_key: str | None = None,
                 model: str = "gpt-5.1-2025-11-13",
                 max_tokens: int = 200):
        from openai import OpenAI

        self.api_key = _require_key(api_key, "OPENAI_API_KEY")
        self.client = OpenAI(api_key=self.api_key)
        self.model = model
        self.max_tokens = max_tokens

    def stream(self, prompt: str, system_prompt: str, **kwargs: Any) -> Iterator[str]:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            max_completion_tokens=self._option(kwargs, "max_tokens"),
            stream=True,
        )
        for chunk in response:
            # The final usage chunk has no choices
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content


class GeminiProvider(LLMProvider):
    """Google Gemini."""

    def __init__(self,
                 api_key: str | None = None,
                 model: str = "gemini-2.5-flash",
                 max_tokens: int = 200):
        from google import genai

        self.api_key = _require_key(api_key, "GOOGLE_API_KEY")
        self.client = genai.Client(api_key=self.api_key)
        self.model = model
        self.max_tokens = max_tokens

    def stream(self, prompt: str, system_prompt: str, **kwargs: Any) -> Iterator[str]:
        response = self.client.models.generate_content_stream(
            model=self.model,
            contents=prompt,
            config={
                "system_instruction": system_prompt,
                "max_output_tokens": self._option(kwargs, "max_tokens"),
                "temperature": self._option(kwargs, "temperature"),
            },
        )
        for chunk in response:
            if chunk.text:
                yield chunk.text


_PROVIDERS: dict[str, type[LLMProvider]] = {
    "huggingface": HuggingFaceProvider,
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def create_provider(provider_name: str, **provider_kwargs: Any) -> LLMProvider | None:
    """
    Build an LLM provider by name.

    Returns None for "none" so callers fall back to the plain preview.

    Raises:
        ValueError: For unknown providers or missing API keys
    """
    if provider_name == "none":
        return None
    provider_cls = _PROVIDERS.get(provider_name)
    if provider_cls is None:
        raise ValueError(f"Unsupported provider: {provider_name}")
    return provider_cls(**provider_kwargs)


def sentence_preview(text: str, sentences: int = 3) -> str:
    """First `sentences` sentences of text, or all of it if none end in .!?"""
    found: list[str] = _SENTENCE.findall(text)
    if not found:
        return text
    return " ".join(s.strip() for s in found[:sentences])


def fallback_summary(text: str) -> str:
    return f"(AI Unavailable) Preview: {sentence_preview(text)}..."


class Explainer:
    """Produces a three sentence summary of scanned text."""

    def __init__(self, provider: LLMProvider | None = None, system_prompt: str = EXPLAIN_SYSTEM_PROMPT):
        self.provider = provider
        self.system_prompt = system_prompt

    def stream(self, text: str, **kwargs: Any) -> Iterator[str]:
        """
        Stream the explanation chunk by chunk.

        Raises:
            ValueError: If text is empty
            RuntimeError: If no provider is configured
        """
        if not text:
            raise ValueError("Text is required")
        if self.provider is None:
            raise RuntimeError("No explanation provider configured")
        yield from self.provider.stream(text, self.system_prompt, **kwargs)

    def explain(self, text: str, **kwargs: Any) -> str:
        """
        Summarize text, degrading to a sentence preview on any failure.

        Raises:
            ValueError: If text is empty
        """
        if not text:
            raise ValueError("Text is required")

        if self.provider is None:
            return fallback_summary(text)

        try:
            summary = "".join(self.stream(text, **kwargs)).strip()
        except Exception as e:
            logger.error("Explanation error: %s", e)
            return fallback_summary(text)

        return summary or "No summary generated."


def create_explainer(provider_name: str, **provider_kwargs: Any) -> Explainer:
    """
    Build an Explainer, falling back to preview-only mode when the provider
    cannot be created (e.g. missing API key).
    """
    try:
        provider = create_provider(provider_name, **provider_kwargs)
    except (ValueError, ImportError) as e:
        logger.warning("Explanation provider %s unavailable: %s", provider_name, e)
        provider = None
    return Explainer(provider=provider)


def explainer_from_settings(settings: Settings) -> Explainer:
    provider_kwargs: dict[str, Any] = {}
    if settings.explain_provider == "huggingface" and settings.huggingface_api_key:
        provider_kwargs["api_key"] = settings.huggingface_api_key
    return create_explainer(settings.explain_provider, **provider_kwargs)
