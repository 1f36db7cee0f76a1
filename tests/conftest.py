"""Shared fakes for the external OCR and translation services."""

import cv2
import numpy as np
import pytest
from cv2.typing import MatLike
from numpy.typing import NDArray

from sahayak.cache import TranslationCache
from sahayak.languages import DEFAULT_SOURCE_LANG
from sahayak.ocr import OCREngine
from sahayak.translation import TranslationService, Translator


class FakeOCREngine(OCREngine):
    """Returns canned text and records what it was asked to read."""

    name = "fake"

    def __init__(self, text: str = "Hello world", error: Exception | None = None):
        self.text = text
        self.error = error
        self.language = "eng"
        self.calls: list[MatLike] = []

    def set_language(self, language: str) -> None:
        self.language = language

    def extract_text(self, image: MatLike) -> str:
        self.calls.append(image)
        if self.error is not None:
            raise self.error
        return self.text

    def extract_text_with_confidence(self, image: MatLike) -> tuple[str, float]:
        text = self.extract_text(image)
        return text, 100.0 if text else 0.0


class FakeTranslator(Translator):
    """Upper-cases text and counts backend calls."""

    name = "fake"

    def __init__(self, result: str | None = None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[tuple[str, str, str]] = []

    def translate(self, text: str, target_lang: str, source_lang: str = DEFAULT_SOURCE_LANG) -> str:
        self.calls.append((text, target_lang, source_lang))
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return f"{text.upper()} ({target_lang})"


@pytest.fixture
def document_image() -> NDArray[np.uint8]:
    """White page with a few dark bars standing in for text lines."""
    img = np.ones((100, 200, 3), dtype=np.uint8) * 255
    for y in range(20, 90, 25):
        cv2.rectangle(img, (20, y), (180, y + 10), (0, 0, 0), -1)
    return img


@pytest.fixture
def png_bytes(document_image: NDArray[np.uint8]) -> bytes:
    ok, buffer = cv2.imencode(".png", document_image)
    assert ok
    return buffer.tobytes()


@pytest.fixture
def fake_engine() -> FakeOCREngine:
    return FakeOCREngine()


@pytest.fixture
def fake_translator() -> FakeTranslator:
    return FakeTranslator()


@pytest.fixture
def cache(tmp_path) -> TranslationCache:
    return TranslationCache(tmp_path / "translation-cache.json")


@pytest.fixture
def translation(fake_translator: FakeTranslator, cache: TranslationCache) -> TranslationService:
    return TranslationService(fake_translator, cache)
