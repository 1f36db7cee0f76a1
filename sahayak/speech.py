"""Speech synthesis for translated text, plus word spans for highlighting."""

from io import BytesIO
import logging

from .languages import DEFAULT_VOICE, is_supported_target, voice_for

logger = logging.getLogger(__name__)

# gTTS rejects very long inputs; longer text is cut here
MAX_TTS_LENGTH = 3000


class SpeechError(RuntimeError):
    """Raised when speech synthesis fails."""


def tts_language(lang: str) -> str:
    """
    gTTS language for a translation language or voice tag.

    "hi" -> "hi", "ta-IN" -> "ta", unknown -> language of the default voice.
    """
    if is_supported_target(lang):
        return lang
    base = lang.split("-")[0].lower()
    if is_supported_target(base):
        return base
    return DEFAULT_VOICE.split("-")[0]


def synthesize(text: str, lang: str, slow: bool = False) -> bytes:
    """
    Render text as MP3 audio.

    Args:
        text: Text to speak
        lang: Translation language code or voice tag
        slow: Slower speech for learners (default: False)

    Returns:
        MP3 bytes

    Raises:
        ValueError: If text is empty
        SpeechError: If the TTS backend fails
    """
    from gtts import gTTS, gTTSError

    text = text.strip()
    if not text:
        raise ValueError("Text is required")

    if len(text) > MAX_TTS_LENGTH:
        logger.warning("Text truncated to %d characters for audio generation", MAX_TTS_LENGTH)
        text = text[:MAX_TTS_LENGTH] + "..."

    language = tts_language(lang)
    logger.info("Synthesizing %d characters as %s (voice %s)", len(text), language, voice_for(language))

    try:
        tts = gTTS(text=text, lang=language, slow=slow)
        audio_fp = BytesIO()
        tts.write_to_fp(audio_fp)
    except (gTTSError, ValueError, AssertionError) as e:
        raise SpeechError(f"TTS error: {e}") from e

    return audio_fp.getvalue()


def word_boundaries(text: str) -> list[tuple[int, int]]:
    """
    (start, end) character spans of each word, end being the next space.

    Used to highlight the word currently being spoken.
    """
    spans: list[tuple[int, int]] = []
    index = 0
    length = len(text)
    while index < length:
        if text[index].isspace():
            index += 1
            continue
        next_space = text.find(" ", index)
        end = length if next_space == -1 else next_space
        # Newlines and tabs also end a word
        for i in range(index, end):
            if text[i].isspace():
                end = i
                break
        spans.append((index, end))
        index = end
    return spans
