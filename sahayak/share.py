"""
Sharing translated text: plain text payloads and PNG "cards".
"""

from io import BytesIO
import logging

from PIL import Image, ImageDraw, ImageFont

from .languages import label_for

logger = logging.getLogger(__name__)

SHARE_TITLE = "Sahayak"
CARD_FILENAME = "sahayak-translation.png"

CARD_WIDTH = 800
CARD_PADDING = 40
CARD_BACKGROUND = "#020617"
CARD_ACCENT = "#60a5fa"
CARD_TEXT = "#f8fafc"
CARD_MUTED = "#94a3b8"

# Tried in order; Noto covers the Indic scripts the translator produces
_FONT_CANDIDATES = (
    "NotoSans-Regular.ttf",
    "NotoSansDevanagari-Regular.ttf",
    "DejaVuSans.ttf",
)


def share_text(text: str) -> dict[str, str]:
    """Payload for a system share sheet."""
    return {"title": SHARE_TITLE, "text": text}


def _load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    for name in _FONT_CANDIDATES:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    logger.debug("No TrueType font found, using Pillow default")
    return ImageFont.load_default(size=size)


def _wrap(draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> list[str]:
    """Greedy word wrap by rendered width."""
    lines: list[str] = []
    for paragraph in text.splitlines() or [""]:
        words = paragraph.split()
        if not words:
            lines.append("")
            continue
        current = words[0]
        for word in words[1:]:
            candidate = f"{current} {word}"
            if draw.textlength(candidate, font=font) <= max_width:
                current = candidate
            else:
                lines.append(current)
                current = word
        lines.append(current)
    return lines


def render_share_card(original: str, translated: str, lang: str) -> bytes:
    """
    Draw the translation (large) above the original text (small) on a dark card.

    Returns:
        PNG bytes
    """
    if not translated:
        raise ValueError("Nothing to share: translation is empty")

    title_font = _load_font(22)
    body_font = _load_font(32)
    small_font = _load_font(20)

    text_width = CARD_WIDTH - 2 * CARD_PADDING
    measure = ImageDraw.Draw(Image.new("RGB", (1, 1)))
    translated_lines = _wrap(measure, translated, body_font, text_width)
    original_lines = _wrap(measure, original, small_font, text_width) if original else []

    body_step = 44
    small_step = 28
    height = (
        CARD_PADDING
        + 40  # header
        + body_step * len(translated_lines)
        + (24 + small_step * len(original_lines) if original_lines else 0)
        + CARD_PADDING
    )

    card = Image.new("RGB", (CARD_WIDTH, height), CARD_BACKGROUND)
    draw = ImageDraw.Draw(card)

    y = CARD_PADDING
    draw.text((CARD_PADDING, y), f"{SHARE_TITLE} · {label_for(lang)}", font=title_font, fill=CARD_ACCENT)
    y += 40

    for line in translated_lines:
        draw.text((CARD_PADDING, y), line, font=body_font, fill=CARD_TEXT)
        y += body_step

    if original_lines:
        y += 24
        for line in original_lines:
            draw.text((CARD_PADDING, y), line, font=small_font, fill=CARD_MUTED)
            y += small_step

    buffer = BytesIO()
    card.save(buffer, format="PNG")
    return buffer.getvalue()
