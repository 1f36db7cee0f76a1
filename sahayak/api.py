import asyncio
import copy
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from .cache import TranslationCache
from .config import Settings, configure_logging
from .imaging import decode_base64, decode_image_bytes, preprocess_for_ocr
from .languages import DEFAULT_TARGET_LANG, OCR_LANGUAGES, TRANSLATION_LANGUAGES
from .ocr import OCREngine, OCRError, create_ocr_engine
from .ratelimit import RateLimiter, client_key
from .schemas import (
    ExplainRequest,
    ExplainResponse,
    HealthResponse,
    LanguageOption,
    LanguagesResponse,
    OCRRequest,
    OCRResponse,
    ShareCardRequest,
    SpeakRequest,
    TranslateRequest,
    TranslateResponse,
)
from .share import CARD_FILENAME, render_share_card
from .speech import SpeechError, synthesize
from .summarizer import Explainer, explainer_from_settings
from .translation import TranslationError, TranslationService, create_translator

logger = logging.getLogger(__name__)

MAX_IMAGE_SIZE = 20 * 1024 * 1024  # 20 MB


def _error(status: int, message: str, **extra: str) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status)


def create_app(
    settings: Settings | None = None,
    ocr_engine: OCREngine | None = None,
    translation: TranslationService | None = None,
    explainer: Explainer | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """
    Build the API. Collaborators not passed in are built from settings.

    Run with: uvicorn sahayak.api:create_app --factory
    """
    if settings is None:
        settings = Settings.from_env()
        configure_logging(settings.log_level)

    if ocr_engine is None:
        ocr_engine = create_ocr_engine(settings.ocr_engine, settings)
    if translation is None:
        translation = TranslationService(
            create_translator(settings.translator),
            TranslationCache(settings.cache_path),
        )
    if explainer is None:
        explainer = explainer_from_settings(settings)
    if rate_limiter is None:
        rate_limiter = RateLimiter(
            limit=settings.rate_limit,
            window=settings.rate_window,
            max_clients=settings.rate_max_clients,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Sahayak API ready (ocr=%s, translator=%s)",
            ocr_engine.name, translation.translator.name,
        )
        yield

    app = FastAPI(title="Sahayak API", version="0.1.0", lifespan=lifespan)
    app.state.ocr_engine = ocr_engine
    app.state.translation = translation
    app.state.explainer = explainer
    app.state.rate_limiter = rate_limiter

    # ------------------------------------------------------------------
    # Middleware
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        if request.url.path.startswith("/api/"):
            key = client_key(dict(request.headers))
            if not rate_limiter.check(key):
                logger.warning("Rate limit exceeded for %s", key)
                return _error(429, "Too many requests. Please try again later.")
        return await call_next(request)

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------
    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(
            status="ok",
            ocr_engine=ocr_engine.name,
            translator=translation.translator.name,
        )

    @app.get("/api/languages", response_model=LanguagesResponse)
    async def languages():
        return LanguagesResponse(
            translation=[LanguageOption(code=lang.code, label=lang.label, voice=lang.voice) for lang in TRANSLATION_LANGUAGES],
            ocr=[LanguageOption(code=lang.code, label=lang.label) for lang in OCR_LANGUAGES],
        )

    @app.post("/api/ocr", response_model=OCRResponse)
    async def ocr(req: OCRRequest):
        if not req.image:
            return _error(400, "Image is required")

        try:
            data = decode_base64(req.image)
        except ValueError:
            return _error(400, "Invalid base64 data")
        if len(data) > MAX_IMAGE_SIZE:
            return _error(413, "Image exceeds 20 MB limit")

        engine = ocr_engine
        if req.lang:
            # Per-request copy so concurrent requests keep their own language
            engine = copy.copy(ocr_engine)
            engine.set_language(req.lang)

        def run() -> str:
            image = decode_image_bytes(data)
            if engine.wants_preprocessing:
                image = preprocess_for_ocr(image)
            return engine.extract_text(image)

        try:
            text = await asyncio.to_thread(run)
        except ValueError as e:
            return _error(400, str(e))
        except OCRError as e:
            logger.error("OCR error: %s", e.details)
            return _error(500, f"Failed to process image: {e.details}", details=e.details)

        return OCRResponse(text=text)

    @app.post("/api/translate", response_model=TranslateResponse, response_model_exclude_none=True)
    async def translate(req: TranslateRequest):
        if not req.text:
            return _error(400, "Text is required")

        try:
            result = await asyncio.to_thread(
                translation.translate, req.text, req.targetLang or DEFAULT_TARGET_LANG
            )
        except TranslationError as e:
            logger.error("Translation error: %s", e)
            return _error(500, "Failed to translate")

        return TranslateResponse(
            translatedText=result.text,
            isMock=True if result.is_mock else None,
        )

    @app.post("/api/explain", response_model=ExplainResponse)
    async def explain(req: ExplainRequest):
        if not req.text:
            return _error(400, "Text is required")
        summary = await asyncio.to_thread(explainer.explain, req.text)
        return ExplainResponse(summary=summary)

    @app.post("/api/speak")
    async def speak(req: SpeakRequest):
        if not req.text:
            return _error(400, "Text is required")
        try:
            audio = await asyncio.to_thread(
                synthesize, req.text, req.lang or DEFAULT_TARGET_LANG, req.slow
            )
        except ValueError as e:
            return _error(400, str(e))
        except SpeechError as e:
            logger.error("Speech error: %s", e)
            return _error(500, "Failed to synthesize speech")
        return Response(content=audio, media_type="audio/mpeg")

    @app.post("/api/share-card")
    async def share_card(req: ShareCardRequest):
        if not req.translated:
            return _error(400, "Translated text is required")
        png = await asyncio.to_thread(
            render_share_card, req.original, req.translated, req.lang or DEFAULT_TARGET_LANG
        )
        return Response(
            content=png,
            media_type="image/png",
            headers={"Content-Disposition": f'attachment; filename="{CARD_FILENAME}"'},
        )

    return app
