from abc import ABC, abstractmethod
import logging

import numpy as np
import pytesseract  # type: ignore[import]
from cv2.typing import MatLike
from PIL import Image

from .config import Settings
from .imaging import encode_image, to_pil, to_data_url
from .languages import DEFAULT_OCR_LANG, to_ocr_language

logger = logging.getLogger(__name__)


class OCRError(RuntimeError):
    """Raised when an OCR engine fails to process an image."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.details = details or message


# Typed wrappers for pytesseract functions to satisfy type checker
def _image_to_string(image: Image.Image, lang: str, config: str) -> str:
    """Typed wrapper for pytesseract.image_to_string."""
    result = pytesseract.image_to_string(image, lang=lang, config=config)  # type: ignore[attr-defined]
    if isinstance(result, str):
        return result
    return str(result)  # type: ignore[arg-type]


def _image_to_data(image: Image.Image, lang: str, config: str) -> dict[str, list[str | int]]:
    """Typed wrapper for pytesseract.image_to_data (dict output)."""
    output_dict: int = getattr(getattr(pytesseract, 'Output'), 'DICT')
    result = pytesseract.image_to_data(image, lang=lang, config=config, output_type=output_dict)  # type: ignore[attr-defined]
    if isinstance(result, dict):
        return result  # type: ignore[return-value]
    return dict(result)  # type: ignore[arg-type]


class OCREngine(ABC):
    """Abstract base class for OCR engines."""

    name: str = "base"

    # Local engines read cleaned-up binary crops better; hosted ones
    # prefer the original colour photo.
    wants_preprocessing: bool = False

    @abstractmethod
    def extract_text(self, image: MatLike) -> str:
        """
        Extract text from an image.

        Args:
            image: BGR, grayscale or binary image

        Returns:
            Extracted text, stripped of surrounding whitespace

        Raises:
            OCRError: If the engine fails
        """
        pass

    @abstractmethod
    def extract_text_with_confidence(self, image: MatLike) -> tuple[str, float]:
        """
        Extract text with confidence score.

        Returns:
            Tuple of (text, confidence_score) where confidence is 0-100
        """
        pass

    def set_language(self, language: str) -> None:
        """Switch the document language. Engines that auto-detect ignore it."""
        pass


class TesseractOCR(OCREngine):
    """Local Tesseract engine."""

    name = "tesseract"
    wants_preprocessing = True

    def __init__(self,
                 language: str = DEFAULT_OCR_LANG,
                 config: str = "",
                 tesseract_cmd: str | None = None):
        """
        Initialize Tesseract OCR.

        Args:
            language: Document language, two-letter or Tesseract code (default: "eng")
            config: Custom Tesseract config string (e.g., "--psm 6")
            tesseract_cmd: Path to tesseract executable (None = use default)
        """
        self.language = to_ocr_language(language)
        self.config = config

        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def set_language(self, language: str) -> None:
        """Re-initialise for a new document language."""
        new_language = to_ocr_language(language)
        if new_language == self.language:
            return
        logger.info("Switching Tesseract language %s -> %s", self.language, new_language)
        self.language = new_language

    def extract_text(self, image: MatLike) -> str:
        """Extract text using Tesseract."""
        pil_image = to_pil(image)
        try:
            text: str = _image_to_string(pil_image, self.language, self.config)
        except (RuntimeError, pytesseract.TesseractNotFoundError) as e:  # TesseractError, timeouts
            raise OCRError(f"Tesseract failed: {e}", details=str(e)) from e
        return text.strip()

    def extract_text_with_confidence(self, image: MatLike) -> tuple[str, float]:
        """Extract text with the mean word confidence."""
        pil_image = to_pil(image)
        try:
            data = _image_to_data(pil_image, self.language, self.config)
        except (RuntimeError, pytesseract.TesseractNotFoundError) as e:
            raise OCRError(f"Tesseract failed: {e}", details=str(e)) from e

        texts: list[str] = []
        confidences: list[float] = []

        for conf, text_item in zip(data['conf'], data['text']):
            conf_value = float(conf)
            if conf_value == -1:  # -1 means no text detected
                continue
            text_str = str(text_item)
            if text_str.strip():
                texts.append(text_str)
                confidences.append(conf_value)

        full_text = ' '.join(texts)
        avg_confidence = float(np.mean(confidences)) if confidences else 0.0
        return full_text.strip(), avg_confidence


class CloudVisionOCR(OCREngine):
    """
    Google Cloud Vision text detection.

    Credentials come from a service account given as separate fields
    (GOOGLE_CLIENT_EMAIL / GOOGLE_PRIVATE_KEY / GOOGLE_PROJECT_ID). When they
    are not set, the client falls back to application default credentials.
    """

    name = "vision"

    def __init__(self,
                 client_email: str | None = None,
                 private_key: str | None = None,
                 project_id: str | None = None):
        self.client_email = client_email
        # Keys pasted into .env files usually carry literal "\n" sequences
        self.private_key = private_key.replace("\\n", "\n") if private_key else None
        self.project_id = project_id
        self._client = None

    @property
    def client(self):
        """Lazily build the ImageAnnotatorClient."""
        if self._client is None:
            from google.cloud import vision

            if self.client_email and self.private_key:
                from google.oauth2 import service_account

                credentials = service_account.Credentials.from_service_account_info({
                    "type": "service_account",
                    "client_email": self.client_email,
                    "private_key": self.private_key,
                    "project_id": self.project_id,
                    "token_uri": "https://oauth2.googleapis.com/token",
                })
                self._client = vision.ImageAnnotatorClient(credentials=credentials)
            else:
                self._client = vision.ImageAnnotatorClient()
        return self._client

    def extract_text(self, image: MatLike) -> str:
        """Run text detection; the first annotation holds the full text."""
        from google.cloud import vision

        content = encode_image(image, "png")
        try:
            response = self.client.text_detection(image=vision.Image(content=content))
        except Exception as e:
            details = getattr(e, "message", None) or str(e) or "Unknown error occurred"
            logger.error("Google Cloud Vision error: %s", details)
            raise OCRError(f"Failed to process image: {details}", details=details) from e

        if response.error.message:
            details = response.error.message
            logger.error("Google Cloud Vision error: %s", details)
            raise OCRError(f"Failed to process image: {details}", details=details)

        annotations = response.text_annotations
        if not annotations:
            return ""
        return annotations[0].description.strip()

    def extract_text_with_confidence(self, image: MatLike) -> tuple[str, float]:
        # text_detection does not report a usable overall confidence
        text = self.extract_text(image)
        return text, 100.0 if text else 0.0


class MistralOCR(OCREngine):
    """
    Mistral hosted OCR model.

    Better for handwriting and complex layouts than local Tesseract.
    """

    name = "mistral"

    def __init__(self, api_key: str, model: str = "mistral-ocr-latest"):
        """
        Initialize Mistral OCR.

        Args:
            api_key: Mistral API key
            model: Mistral OCR model to use (default: mistral-ocr-latest)
        """
        from mistralai import Mistral

        self.api_key = api_key
        self.model = model
        self.client = Mistral(api_key=api_key)

    def extract_text(self, image: MatLike) -> str:
        """Extract text using the Mistral OCR API."""
        try:
            ocr_response = self.client.ocr.process(
                model=self.model,
                document={
                    "type": "image_url",
                    "image_url": to_data_url(image, "png"),
                }
            )
        except Exception as e:
            raise OCRError(f"Failed to process image: {e}", details=str(e)) from e

        pages = getattr(ocr_response, 'pages', None)
        if pages:
            markdown = getattr(pages[0], 'markdown', None)
            if markdown:
                return markdown.strip()

        return ""

    def extract_text_with_confidence(self, image: MatLike) -> tuple[str, float]:
        # Mistral doesn't provide confidence scores, return 100 if successful
        text = self.extract_text(image)
        return text, 100.0 if text else 0.0


def create_ocr_engine(name: str, settings: Settings, language: str = DEFAULT_OCR_LANG) -> OCREngine:
    """
    Build the OCR engine selected by name.

    Args:
        name: "tesseract", "vision" or "mistral"
        settings: Credentials and paths
        language: Initial document language (Tesseract only)

    Raises:
        ValueError: For an unknown engine or missing credentials
    """
    if name == "tesseract":
        return TesseractOCR(language=language, tesseract_cmd=settings.tesseract_cmd)
    elif name == "vision":
        return CloudVisionOCR(
            client_email=settings.google_client_email,
            private_key=settings.google_private_key,
            project_id=settings.google_project_id,
        )
    elif name == "mistral":
        if not settings.mistral_api_key:
            raise ValueError("MISTRAL_API_KEY not found in environment")
        return MistralOCR(api_key=settings.mistral_api_key)
    else:
        raise ValueError(f"Unsupported OCR engine: {name}")
