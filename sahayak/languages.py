"""Language tables shared by the OCR, translation and speech layers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TranslationLanguage:
    code: str
    label: str
    voice: str


@dataclass(frozen=True)
class OCRLanguage:
    code: str
    label: str


TRANSLATION_LANGUAGES: tuple[TranslationLanguage, ...] = (
    TranslationLanguage("hi", "Hindi (हिंदी)", "hi-IN"),
    TranslationLanguage("bn", "Bengali (বাংলা)", "bn-IN"),
    TranslationLanguage("ta", "Tamil (தமிழ்)", "ta-IN"),
    TranslationLanguage("te", "Telugu (తెలుగు)", "te-IN"),
    TranslationLanguage("kn", "Kannada (ಕನ್ನಡ)", "kn-IN"),
    TranslationLanguage("ml", "Malayalam (മലയാളം)", "ml-IN"),
    TranslationLanguage("en", "English", "en-US"),
)

OCR_LANGUAGES: tuple[OCRLanguage, ...] = (
    OCRLanguage("eng", "English"),
    OCRLanguage("hin", "Hindi (हिंदी)"),
    OCRLanguage("ben", "Bengali (বাংলা)"),
    OCRLanguage("tam", "Tamil (தமிழ்)"),
    OCRLanguage("tel", "Telugu (తెలుగు)"),
    OCRLanguage("kan", "Kannada (ಕನ್ನಡ)"),
    OCRLanguage("mal", "Malayalam (മലയാളം)"),
)

DEFAULT_TARGET_LANG = "hi"
DEFAULT_SOURCE_LANG = "en"
DEFAULT_OCR_LANG = "eng"
DEFAULT_VOICE = "hi-IN"

# Document language (as picked in the scanner) -> Tesseract traineddata name
_OCR_LANG_MAP: dict[str, str] = {
    "en": "eng",
    "hi": "hin",
    "bn": "ben",
    "ta": "tam",
    "te": "tel",
    "kn": "kan",
    "ml": "mal",
}


def to_ocr_language(code: str) -> str:
    """
    Map a document language code to the Tesseract language name.

    Accepts both two-letter codes ("hi") and Tesseract names ("hin").
    Anything unknown falls back to English.
    """
    code = code.strip().lower()
    if code in _OCR_LANG_MAP:
        return _OCR_LANG_MAP[code]
    if any(lang.code == code for lang in OCR_LANGUAGES):
        return code
    return DEFAULT_OCR_LANG


def voice_for(code: str) -> str:
    """Speech voice tag for a translation language (hi-IN when unknown)."""
    for lang in TRANSLATION_LANGUAGES:
        if lang.code == code:
            return lang.voice
    return DEFAULT_VOICE


def is_supported_target(code: str) -> bool:
    return any(lang.code == code for lang in TRANSLATION_LANGUAGES)


def label_for(code: str) -> str:
    for lang in TRANSLATION_LANGUAGES:
        if lang.code == code:
            return lang.label
    return code
