from pydantic import BaseModel


class OCRRequest(BaseModel):
    """Snapshot to read, as a data URL or bare base64"""

    image: str | None = None
    lang: str | None = None  # document language, Tesseract only


class OCRResponse(BaseModel):
    text: str


class TranslateRequest(BaseModel):
    text: str | None = None
    targetLang: str | None = None


class TranslateResponse(BaseModel):
    translatedText: str
    isMock: bool | None = None


class ExplainRequest(BaseModel):
    text: str | None = None


class ExplainResponse(BaseModel):
    summary: str


class SpeakRequest(BaseModel):
    text: str | None = None
    lang: str | None = None
    slow: bool = False


class ShareCardRequest(BaseModel):
    original: str = ""
    translated: str | None = None
    lang: str | None = None


class LanguageOption(BaseModel):
    code: str
    label: str
    voice: str | None = None


class LanguagesResponse(BaseModel):
    translation: list[LanguageOption]
    ocr: list[LanguageOption]


class HealthResponse(BaseModel):
    status: str
    ocr_engine: str
    translator: str
