"""
Scan session: the capture → crop → OCR → translate → speak/share sequence.

ScanSession keeps the same state the scanner screen shows (current image,
languages, OCR and translation text) and turns library errors into the
status messages a user sees.
"""

from dataclasses import dataclass
from pathlib import Path
import logging

import cv2
from cv2.typing import MatLike

from .cache import TranslationCache, split_key
from .imaging import (
    CropBox,
    capture_frame,
    Flip,
    crop_image,
    load_image,
    preprocess_for_ocr,
    rotated_canvas_size,
    to_data_url,
)
from .languages import DEFAULT_OCR_LANG, DEFAULT_TARGET_LANG, to_ocr_language
from .ocr import OCREngine, OCRError
from .share import render_share_card, share_text
from .speech import synthesize
from .summarizer import Explainer
from .translation import TranslationError, TranslationService

logger = logging.getLogger(__name__)

NO_TEXT_DETECTED = "No text detected. Try better lighting or tighter crop."
OCR_FAILED = "Failed to read text."
TRANSLATION_FAILED = "Failed to translate."
TRANSLATION_EMPTY = "Translation failed."


@dataclass
class HistoryEntry:
    key: str
    original: str
    lang: str
    translated: str


class ScanSession:
    """State and actions of one scanning screen."""

    def __init__(self,
                 ocr_engine: OCREngine,
                 translation: TranslationService,
                 explainer: Explainer | None = None,
                 source_lang: str = DEFAULT_OCR_LANG,
                 target_lang: str = DEFAULT_TARGET_LANG,
                 preprocess: bool = True):
        """
        Args:
            ocr_engine: Engine used by process_image
            translation: Cached translation service
            explainer: Summary generator (preview-only when None)
            source_lang: Document language
            target_lang: Language to translate into
            preprocess: Clean crops up before OCR for engines that want it
        """
        self.ocr_engine = ocr_engine
        self.translation = translation
        self.explainer = explainer or Explainer()
        self.preprocess = preprocess

        self.source_lang = to_ocr_language(source_lang)
        self.target_lang = target_lang
        self.ocr_engine.set_language(self.source_lang)

        self.image: MatLike | None = None
        self.ocr_text: str = ""
        self.translated_text: str = ""
        self.debug_image: str | None = None
        self.is_processing = False
        self.is_translating = False

    @property
    def cache(self) -> TranslationCache:
        return self.translation.cache

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def load_image(self, source: str | bytes | Path) -> None:
        """Load an uploaded photo or scan and clear previous results."""
        self.image = load_image(source)
        self.reset_results()

    def capture(self, device: int = 0) -> None:
        """Take a webcam snapshot and clear previous results."""
        self.image = capture_frame(device)
        self.reset_results()

    def crop(self, box: CropBox | None = None, rotation: float = 0, flip: Flip = Flip()) -> None:
        """
        Replace the working image with a rotated/flipped crop of it.

        Without a box the whole rotated canvas is kept.
        """
        if self.image is None:
            raise ValueError("No image loaded")
        if box is None:
            height, width = self.image.shape[:2]
            box = CropBox(0, 0, *rotated_canvas_size(width, height, rotation))
        self.image = crop_image(self.image, box, rotation=rotation, flip=flip)

    def set_source_lang(self, lang: str) -> None:
        self.source_lang = to_ocr_language(lang)
        self.ocr_engine.set_language(self.source_lang)

    def set_target_lang(self, lang: str) -> None:
        self.target_lang = lang

    # ------------------------------------------------------------------
    # OCR / translation
    # ------------------------------------------------------------------

    def process_image(self) -> str:
        """
        Run OCR on the working image.

        Returns:
            The recognised text or a status message; also stored in ocr_text
        """
        if self.image is None:
            return self.ocr_text

        self.is_processing = True
        try:
            self.debug_image = to_data_url(self.image, "png")
            image = self.image
            if self.preprocess and self.ocr_engine.wants_preprocessing:
                image = preprocess_for_ocr(image)

            text = self.ocr_engine.extract_text(image).strip()
            self.ocr_text = text if text else NO_TEXT_DETECTED
        except (OCRError, RuntimeError, ValueError, cv2.error) as e:
            # RuntimeError covers pytesseract timeouts; cv2.error comes from preprocessing
            logger.error("OCR error: %s", e)
            self.ocr_text = OCR_FAILED
        finally:
            self.is_processing = False

        return self.ocr_text

    def has_text(self) -> bool:
        return bool(self.ocr_text) and self.ocr_text not in (NO_TEXT_DETECTED, OCR_FAILED)

    def translate(self, target_lang: str | None = None) -> str:
        """
        Translate the OCR text into the target language (cached).

        Returns:
            The translation or a status message; also stored in translated_text
        """
        if target_lang:
            self.target_lang = target_lang
        if not self.has_text():
            return self.translated_text

        self.is_translating = True
        try:
            result = self.translation.translate(self.ocr_text, self.target_lang)
            self.translated_text = result.text or TRANSLATION_EMPTY
        except TranslationError as e:
            logger.error("Translation error: %s", e)
            self.translated_text = TRANSLATION_FAILED
        finally:
            self.is_translating = False

        return self.translated_text

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def speak(self, slow: bool = False) -> bytes:
        """MP3 of the translation in the target language."""
        return synthesize(self.translated_text, self.target_lang, slow=slow)

    def explain(self) -> str:
        return self.explainer.explain(self.ocr_text)

    def share(self) -> dict[str, str]:
        return share_text(self.translated_text)

    def share_card(self) -> bytes:
        return render_share_card(self.ocr_text, self.translated_text, self.target_lang)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def history(self) -> list[HistoryEntry]:
        """Saved translations, newest first."""
        entries: list[HistoryEntry] = []
        for key, translated in self.cache.entries():
            original, lang = split_key(key)
            entries.append(HistoryEntry(key=key, original=original, lang=lang, translated=translated))
        return entries

    def select_history(self, key: str) -> HistoryEntry:
        """Load a saved translation back into the session."""
        for entry in self.history():
            if entry.key == key:
                self.ocr_text = entry.original
                self.translated_text = entry.translated
                if entry.lang:
                    self.target_lang = entry.lang
                self.image = None
                self.debug_image = None
                return entry
        raise KeyError(key)

    def delete_history(self, key: str) -> bool:
        return self.cache.delete(key)

    # ------------------------------------------------------------------

    def reset_results(self) -> None:
        self.ocr_text = ""
        self.translated_text = ""
        self.debug_image = None

    def reset(self) -> None:
        """Back to the camera: drop the image and all results."""
        self.image = None
        self.reset_results()
