"""
Interactive CLI for scanning and translating documents.

Allows users to:
- Load a photo or scan (file path or data URL), or take a webcam snapshot
- Crop / rotate / flip it
- Extract text with OCR
- Translate it (with a local translation history)
- Save speech audio or a shareable card
- Run the HTTP API
"""

import argparse
import sys
from pathlib import Path

from .cache import TranslationCache
from .config import Settings, configure_logging
from .imaging import CameraError, CropBox, Flip
from .languages import (
    DEFAULT_OCR_LANG,
    DEFAULT_TARGET_LANG,
    OCR_LANGUAGES,
    TRANSLATION_LANGUAGES,
    is_supported_target,
)
from .ocr import create_ocr_engine
from .pipeline import ScanSession
from .share import CARD_FILENAME
from .speech import SpeechError
from .summarizer import explainer_from_settings
from .translation import TranslationService, create_translator


def print_header() -> None:
    """Print CLI header."""
    print("\n" + "=" * 60)
    print("📷 Sahayak - Scan & Translate")
    print("=" * 60 + "\n")


def print_separator() -> None:
    """Print section separator."""
    print("\n" + "-" * 60 + "\n")


def print_languages() -> None:
    print("Translation languages:")
    for lang in TRANSLATION_LANGUAGES:
        print(f"  {lang.code:<4} {lang.label}")
    print("Document (OCR) languages:")
    for ocr_lang in OCR_LANGUAGES:
        print(f"  {ocr_lang.code:<4} {ocr_lang.label}")


def build_session(settings: Settings, engine: str, source_lang: str, target_lang: str) -> ScanSession:
    """Wire the OCR engine, translator, cache and explainer together."""
    ocr_engine = create_ocr_engine(engine, settings, language=source_lang)
    translation = TranslationService(
        create_translator(settings.translator),
        TranslationCache(settings.cache_path),
    )
    return ScanSession(
        ocr_engine=ocr_engine,
        translation=translation,
        explainer=explainer_from_settings(settings),
        source_lang=source_lang,
        target_lang=target_lang,
    )


def get_source_input() -> str:
    """
    Prompt user for the image to scan.

    Returns:
        Path to an existing image file
    """
    print("Enter the image to scan (photo or scan of a document):")
    print()

    while True:
        source: str = input("Image: ").strip()

        if not source:
            print("❌ Please enter a valid path\n")
            continue

        source_path = Path(source).expanduser()
        if not source_path.exists():
            print(f"❌ File not found: {source}\n")
            continue

        return str(source_path)


def scan(session: ScanSession,
         source: str | None,
         crop: CropBox | None,
         rotation: float,
         flip: Flip,
         camera: int | None = None) -> str:
    """
    Load (or capture), crop and OCR the image.

    Args:
        session: Session to scan into
        source: Image path or data URL; ignored when camera is given
        crop: Crop rectangle in rotated-canvas coordinates
        rotation: Clockwise rotation in degrees
        flip: Mirror options
        camera: Webcam index to take a snapshot from

    Returns:
        Recognised text (exits on unreadable input)
    """
    print_separator()

    try:
        if camera is not None:
            print(f"📸 Capturing from camera {camera}...")
            session.capture(camera)
        else:
            session.load_image(source or "")
        if crop is not None or rotation or flip.horizontal or flip.vertical:
            session.crop(crop, rotation=rotation, flip=flip)
    except (FileNotFoundError, ValueError, CameraError) as e:
        print(f"❌ Error loading image: {e}")
        sys.exit(1)

    print("📖 Reading text from image...")
    text = session.process_image()
    if not session.has_text():
        print(f"❌ {text}")
        sys.exit(1)

    print(f"✅ Extracted {len(text)} characters")
    print(f"   Preview: {text[:200]}...")
    return text


def do_translate(session: ScanSession, lang: str | None = None) -> None:
    if lang and not is_supported_target(lang):
        print(f"⚠️  Unknown language '{lang}', using '{session.target_lang}'")
        lang = None
    print(f"\n🌐 Translation ({session.target_lang if not lang else lang}):\n")
    print(session.translate(lang))
    print()


def do_speak(session: ScanSession, path: str) -> None:
    if not session.translated_text:
        print("❌ Nothing to speak yet. Use /translate first.\n")
        return
    try:
        audio = session.speak()
    except (SpeechError, ValueError) as e:
        print(f"❌ Error: {e}\n")
        return
    Path(path).write_bytes(audio)
    print(f"🔊 Saved speech to {path}\n")


def do_card(session: ScanSession, path: str) -> None:
    try:
        png = session.share_card()
    except ValueError as e:
        print(f"❌ Error: {e}\n")
        return
    Path(path).write_bytes(png)
    print(f"🖼️  Saved share card to {path}\n")


def print_history(session: ScanSession) -> None:
    entries = session.history()
    if not entries:
        print("No saved translations yet.\n")
        return
    for i, entry in enumerate(entries, start=1):
        print(f"  {i}. [{entry.lang}] {entry.translated[:60]}")
        print(f"      {entry.original[:60]}")
    print()


def _history_key(session: ScanSession, arg: str) -> str | None:
    entries = session.history()
    try:
        index = int(arg) - 1
    except ValueError:
        print("❌ Please give the history number\n")
        return None
    if not 0 <= index < len(entries):
        print(f"❌ No history entry {arg}\n")
        return None
    return entries[index].key


def interactive_mode(session: ScanSession) -> None:
    """
    Enter interactive command loop.

    Args:
        session: Session holding the scanned text
    """
    print_separator()
    print("Commands:")
    print("  /translate [lang] - Translate scanned text (hi, bn, ta, te, kn, ml, en)")
    print("  /speak [file]     - Save translation as speech (MP3)")
    print("  /explain          - Summarize the scanned text")
    print("  /share            - Print share text")
    print("  /card [file]      - Save a shareable PNG card")
    print("  /history          - List saved translations")
    print("  /select N         - Load saved translation N")
    print("  /delete N         - Remove saved translation N")
    print("  /clear            - Clear saved translations")
    print("  /exit             - Exit program")
    print()

    while True:
        try:
            user_input: str = input("> ").strip()

            if not user_input:
                continue

            parts: list[str] = user_input.split(maxsplit=1)
            command: str = parts[0].lower()
            arg: str = parts[1].strip() if len(parts) > 1 else ""

            if command == "/exit":
                print("\n👋 Goodbye!")
                sys.exit(0)

            elif command == "/translate":
                do_translate(session, arg.lower() or None)

            elif command == "/speak":
                do_speak(session, arg or "translation.mp3")

            elif command == "/explain":
                if not session.has_text():
                    print("❌ No scanned text to explain\n")
                    continue
                print("\n🤖 Summary:\n")
                print(session.explain())
                print()

            elif command == "/share":
                payload = session.share()
                if not payload["text"]:
                    print("❌ Nothing to share yet. Use /translate first.\n")
                    continue
                print(f"\n{payload['title']}\n{payload['text']}\n")

            elif command == "/card":
                do_card(session, arg or CARD_FILENAME)

            elif command == "/history":
                print_history(session)

            elif command == "/select":
                key = _history_key(session, arg)
                if key is not None:
                    entry = session.select_history(key)
                    print(f"\n{entry.original}\n\n🌐 {entry.translated}\n")

            elif command == "/delete":
                key = _history_key(session, arg)
                if key is not None:
                    session.delete_history(key)
                    print("✅ Removed from history\n")

            elif command == "/clear":
                session.cache.clear()
                print("✅ Translation history cleared\n")

            else:
                print(f"⚠️  Unknown command '{command}'\n")

        except (KeyboardInterrupt, EOFError):
            print("\n\n👋 Goodbye!")
            sys.exit(0)


def serve(host: str, port: int) -> None:
    import uvicorn

    uvicorn.run("sahayak.api:create_app", host=host, port=port, factory=True)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Sahayak - scan documents, extract text and translate it"
    )
    parser.add_argument(
        "source",
        nargs="?",
        help="Image to scan. If not provided, will prompt interactively."
    )
    parser.add_argument(
        "--camera",
        nargs="?",
        type=int,
        const=0,
        metavar="DEVICE",
        help="Take a snapshot from a webcam instead of reading a file (default device: 0)"
    )
    parser.add_argument("--crop", type=CropBox.parse, help="Crop rectangle x,y,width,height (after rotation)")
    parser.add_argument("--rotate", type=float, default=0.0, help="Rotate clockwise by degrees")
    parser.add_argument("--flip-h", action="store_true", help="Flip horizontally")
    parser.add_argument("--flip-v", action="store_true", help="Flip vertically")
    parser.add_argument(
        "--ocr-lang",
        default=DEFAULT_OCR_LANG,
        help=f"Document language (default: {DEFAULT_OCR_LANG})"
    )
    parser.add_argument(
        "--target",
        default=DEFAULT_TARGET_LANG,
        choices=[lang.code for lang in TRANSLATION_LANGUAGES],
        help=f"Translation language (default: {DEFAULT_TARGET_LANG})"
    )
    parser.add_argument(
        "--engine",
        choices=["tesseract", "vision", "mistral"],
        default=None,
        help="OCR engine (default: SAHAYAK_OCR_ENGINE or tesseract)"
    )
    parser.add_argument("--speak", metavar="FILE", help="Save translation speech to FILE and exit")
    parser.add_argument("--card", metavar="FILE", help="Save a share card PNG to FILE and exit")
    parser.add_argument("--explain", action="store_true", help="Print a short summary and exit")
    parser.add_argument("--languages", action="store_true", help="List supported languages and exit")
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    if args.languages:
        print_languages()
        sys.exit(0)

    if args.serve:
        serve(args.host, args.port)
        return

    print_header()

    try:
        session = build_session(settings, args.engine or settings.ocr_engine, args.ocr_lang, args.target)
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    source: str | None = args.source
    if args.camera is None:
        if source:
            print(f"📷 Source: {source}")
        else:
            source = get_source_input()

    scan(session, source, args.crop, args.rotate, Flip(args.flip_h, args.flip_v), camera=args.camera)

    one_shot = bool(args.speak or args.card or args.explain)
    if one_shot:
        if args.explain:
            print_separator()
            print("🤖 Summary:\n")
            print(session.explain())
        if args.speak or args.card:
            do_translate(session)
        if args.speak:
            do_speak(session, args.speak)
        if args.card:
            do_card(session, args.card)
        sys.exit(0)

    do_translate(session)
    interactive_mode(session)


if __name__ == "__main__":
    main()
