"""
Translation of OCR text with a local memo in front of the backend.

Supports:
- Google Translate (via deep-translator)
- A mock backend for running without network access or credentials
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
import re

from .cache import TranslationCache
from .languages import DEFAULT_SOURCE_LANG, DEFAULT_TARGET_LANG

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK = re.compile(r"(\n\s*\n)")
_SENTENCE_BREAK = re.compile(r"((?<=[.!?।])\s+)")
_WORD_BREAK = re.compile(r"(\s+)")


class TranslationError(RuntimeError):
    """Raised when the translation backend fails."""


@dataclass
class TranslationResult:
    text: str
    target_lang: str
    cached: bool = False
    is_mock: bool = False


class Translator(ABC):
    """Abstract base class for translation backends."""

    name: str = "base"
    is_mock: bool = False

    @abstractmethod
    def translate(self, text: str, target_lang: str, source_lang: str = DEFAULT_SOURCE_LANG) -> str:
        """
        Translate text.

        Args:
            text: Text to translate
            target_lang: Two-letter target language code
            source_lang: Two-letter source language code

        Returns:
            Translated text

        Raises:
            TranslationError: If the backend fails
        """
        pass


class GoogleTranslator(Translator):
    """Google Translate through deep-translator."""

    name = "google"

    # Google rejects single requests above 5000 characters
    max_chunk: int = 4500

    def translate(self, text: str, target_lang: str, source_lang: str = DEFAULT_SOURCE_LANG) -> str:
        from deep_translator import GoogleTranslator as _Google

        try:
            translator = _Google(source=source_lang, target=target_lang)
            parts = [(translator.translate(chunk) or "", sep) for chunk, sep in self._chunks(text)]
        except Exception as e:
            raise TranslationError(f"Google Translate failed: {e}") from e

        return "".join(part + sep for part, sep in parts).strip()

    def _chunks(self, text: str) -> list[tuple[str, str]]:
        """
        Pack text into pieces under max_chunk.

        Paragraphs are kept whole where possible; longer ones are cut between
        sentences, then between words. Each piece carries the whitespace that
        followed it in the source so the translation keeps the same layout.

        Returns:
            List of (piece, separator) pairs
        """
        if len(text) <= self.max_chunk:
            return [(text, "")]

        chunks: list[tuple[str, str]] = []
        current, current_sep = "", ""
        for unit, sep in self._units(text):
            if current and len(current) + len(current_sep) + len(unit) > self.max_chunk:
                chunks.append((current, current_sep))
                current, current_sep = unit, sep
            elif current:
                current, current_sep = current + current_sep + unit, sep
            else:
                current, current_sep = unit, sep
        if current:
            chunks.append((current, current_sep))
        return chunks

    def _units(self, text: str) -> list[tuple[str, str]]:
        """Smallest pieces that fit in one request, with their trailing separators."""
        units: list[tuple[str, str]] = []
        for piece, sep in _split_keep(text, _PARAGRAPH_BREAK):
            if len(piece) <= self.max_chunk:
                _append_unit(units, piece, sep)
                continue
            for sentence, sentence_sep in _split_keep(piece, _SENTENCE_BREAK):
                if len(sentence) <= self.max_chunk:
                    _append_unit(units, sentence, sentence_sep)
                    continue
                for word, word_sep in _split_keep(sentence, _WORD_BREAK):
                    # A single word longer than a request has to be cut
                    while len(word) > self.max_chunk:
                        _append_unit(units, word[:self.max_chunk], "")
                        word = word[self.max_chunk:]
                    _append_unit(units, word, word_sep)
            if units:
                units[-1] = (units[-1][0], units[-1][1] + sep)
        return units


def _split_keep(text: str, pattern: re.Pattern[str]) -> list[tuple[str, str]]:
    """Split text on pattern, pairing each piece with the separator after it."""
    parts = pattern.split(text)
    pieces = parts[0::2]
    separators = parts[1::2] + [""]
    return list(zip(pieces, separators))


def _append_unit(units: list[tuple[str, str]], piece: str, sep: str) -> None:
    if piece:
        units.append((piece, sep))
    elif units:
        # Empty piece (e.g. leading whitespace): fold its separator into the previous one
        units[-1] = (units[-1][0], units[-1][1] + sep)


class MockTranslator(Translator):
    """Echo backend used when no translation provider is configured."""

    name = "mock"
    is_mock = True

    def translate(self, text: str, target_lang: str, source_lang: str = DEFAULT_SOURCE_LANG) -> str:
        return f"[MOCK TRANSLATION to {target_lang}]: {text}"


def create_translator(name: str) -> Translator:
    if name == "google":
        return GoogleTranslator()
    elif name == "mock":
        logger.warning("No translation provider configured. Returning mock translations.")
        return MockTranslator()
    else:
        raise ValueError(f"Unsupported translator: {name}")


class TranslationService:
    """
    Translate through the cache.

    Only successful, non-mock results are remembered, so a later run with a
    real backend is not served stale placeholders.
    """

    def __init__(self,
                 translator: Translator,
                 cache: TranslationCache | None = None,
                 source_lang: str = DEFAULT_SOURCE_LANG):
        self.translator = translator
        self.cache = cache if cache is not None else TranslationCache()
        self.source_lang = source_lang

    def translate(self, text: str, target_lang: str | None = None) -> TranslationResult:
        target = target_lang or DEFAULT_TARGET_LANG

        if not text:
            return TranslationResult(text="", target_lang=target)

        cached = self.cache.get(text, target)
        if cached:
            logger.debug("Translation cache hit for %s", target)
            return TranslationResult(text=cached, target_lang=target, cached=True)

        translated = self.translator.translate(text, target, self.source_lang)
        logger.info("Translated %d characters to %s with %s", len(text), target, self.translator.name)

        if translated and not self.translator.is_mock:
            self.cache.put(text, target, translated)

        return TranslationResult(
            text=translated,
            target_lang=target,
            is_mock=self.translator.is_mock,
        )
