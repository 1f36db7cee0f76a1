"""
Image acquisition, cropping and OCR preprocessing.

Covers the capture half of the scanner:
- Webcam snapshots and uploads (data URLs, base64, bytes, file paths)
- Rotating, flipping and cropping the captured frame
- Cleaning the crop up before it is handed to an OCR engine
"""

import base64
import binascii
import os
import re
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np
from cv2.typing import MatLike
from numpy.typing import NDArray
from PIL import Image


_DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")

_MIME_TO_EXT: dict[str, str] = {
    "jpeg": ".jpg",
    "png": ".png",
}


@dataclass(frozen=True)
class CropBox:
    """Pixel rectangle in the coordinates of the rotated canvas."""
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def parse(cls, value: str) -> "CropBox":
        """Parse "x,y,width,height" (as typed on the command line)."""
        parts = [p.strip() for p in value.split(",")]
        if len(parts) != 4:
            raise ValueError(f"Crop must be x,y,width,height: {value!r}")
        try:
            x, y, w, h = (int(round(float(p))) for p in parts)
        except ValueError:
            raise ValueError(f"Crop values must be numbers: {value!r}")
        return cls(x, y, w, h)


@dataclass(frozen=True)
class Flip:
    horizontal: bool = False
    vertical: bool = False


# ----------------------------------------------------------------------------
# Decoding / encoding
# ----------------------------------------------------------------------------

def strip_data_url(data: str) -> str:
    """Remove a "data:image/...;base64," prefix if present."""
    return _DATA_URL_PREFIX.sub("", data.strip(), count=1)


def decode_image_bytes(data: bytes) -> MatLike:
    """
    Decode encoded image bytes (JPEG, PNG, ...) into a BGR array.

    Raises:
        ValueError: If the bytes are not a decodable image
    """
    if not data:
        raise ValueError("Image data is empty")
    buffer: NDArray[np.uint8] = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if img is None:
        raise ValueError("Invalid image data")
    return img


def decode_base64(data: str) -> bytes:
    """Decode a data URL or bare base64 string into raw bytes."""
    try:
        return base64.b64decode(strip_data_url(data), validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Invalid base64 image data")


def load_image(source: str | bytes | Path) -> MatLike:
    """
    Load an image from whatever the capture step produced.

    Args:
        source: Raw encoded bytes, a data URL, a bare base64 string,
            or a path to an image file

    Returns:
        BGR image array

    Raises:
        FileNotFoundError: If a string source is neither an existing file
            nor an encoded image
        ValueError: If the data cannot be decoded as an image
    """
    if isinstance(source, bytes):
        return decode_image_bytes(source)

    if isinstance(source, Path):
        return _read_file(source)

    if source.startswith("data:"):
        return decode_image_bytes(decode_base64(source))

    # os.path.isfile swallows "name too long" errors from base64 payloads
    path = Path(source).expanduser()
    if os.path.isfile(path):
        return _read_file(path)

    # Short names like "scan" are valid base64 too; only an actual image counts
    try:
        return decode_image_bytes(decode_base64(source))
    except ValueError:
        raise FileNotFoundError(f"Image file not found: {source}")


class CameraError(RuntimeError):
    """Raised when no frame can be taken from the camera."""


def capture_frame(device: int = 0, warmup_frames: int = 5) -> MatLike:
    """
    Take a snapshot from a webcam.

    Args:
        device: OpenCV camera index (0 = default camera)
        warmup_frames: Frames read and thrown away while exposure settles

    Returns:
        BGR image array

    Raises:
        CameraError: If the camera cannot be opened or returns no frame
    """
    cap = cv2.VideoCapture(device)
    try:
        if not cap.isOpened():
            raise CameraError(f"Could not open camera {device}")

        ok, frame = False, None
        for _ in range(warmup_frames + 1):
            ok, frame = cap.read()
        if not ok or frame is None:
            raise CameraError(f"Camera {device} returned no frame")
        return frame
    finally:
        cap.release()


def _read_file(path: Path) -> MatLike:
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")
    img = cv2.imread(str(path))
    if img is None:
        raise ValueError(f"Invalid image format or corrupted file: {path}")
    return img


def encode_image(image: MatLike, fmt: str = "jpeg") -> bytes:
    """Encode a BGR (or grayscale) array as JPEG or PNG bytes."""
    ext = _MIME_TO_EXT.get(fmt)
    if ext is None:
        raise ValueError(f"Unsupported image format: {fmt}")
    ok, buffer = cv2.imencode(ext, image)
    if not ok:
        raise ValueError(f"Failed to encode image as {fmt}")
    return buffer.tobytes()


def to_data_url(image: MatLike, fmt: str = "jpeg") -> str:
    """Encode an image as a base64 data URL."""
    encoded = base64.b64encode(encode_image(image, fmt)).decode("utf-8")
    return f"data:image/{fmt};base64,{encoded}"


def to_pil(image: MatLike) -> Image.Image:
    """Convert an OpenCV image to a PIL image (BGR -> RGB)."""
    if len(image.shape) == 2:
        return Image.fromarray(image)
    elif len(image.shape) == 3:
        rgb_image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        return Image.fromarray(rgb_image)
    else:
        raise ValueError(f"Unsupported image shape: {image.shape}")


# ----------------------------------------------------------------------------
# Crop / rotate
# ----------------------------------------------------------------------------

def rotated_canvas_size(width: int, height: int, rotation: float) -> tuple[int, int]:
    """Bounding box of a width x height frame rotated by `rotation` degrees."""
    radians = np.deg2rad(rotation)
    sin = abs(float(np.sin(radians)))
    cos = abs(float(np.cos(radians)))
    box_width = int(width * cos + height * sin)
    box_height = int(width * sin + height * cos)
    return box_width, box_height


def rotate_image(img: MatLike, angle: float, border_value: int = 255) -> MatLike:
    """
    Rotate the whole image around its centre, growing the canvas so no
    corner is cut off.

    Args:
        img: Input image
        angle: Rotation in degrees, positive = clockwise
        border_value: Fill for the uncovered canvas corners

    Returns:
        Rotated image
    """
    if abs(angle) < 0.01:
        return img

    height, width = img.shape[:2]
    box_width, box_height = rotated_canvas_size(width, height, angle)

    # OpenCV treats positive angles as counter-clockwise
    matrix = cv2.getRotationMatrix2D((width / 2, height / 2), -angle, 1.0)
    matrix[0, 2] += box_width / 2 - width / 2
    matrix[1, 2] += box_height / 2 - height / 2

    fill = (border_value,) * 3 if len(img.shape) == 3 else border_value
    return cv2.warpAffine(img, matrix, (box_width, box_height), borderValue=fill)


def crop_image(img: MatLike,
               crop: CropBox,
               rotation: float = 0,
               flip: Flip = Flip()) -> MatLike:
    """
    Rotate, flip and cut a rectangle out of a captured frame.

    The crop rectangle is expressed in the coordinates of the rotated canvas,
    i.e. what the user saw in the cropper after turning the image.
    Parts of the rectangle that fall outside the canvas are clipped.

    Raises:
        ValueError: If the crop is empty or lies completely outside the canvas
    """
    if crop.width <= 0 or crop.height <= 0:
        raise ValueError(f"Crop size must be positive: {crop.width}x{crop.height}")

    canvas = rotate_image(img, rotation)
    if flip.horizontal and flip.vertical:
        canvas = cv2.flip(canvas, -1)
    elif flip.horizontal:
        canvas = cv2.flip(canvas, 1)
    elif flip.vertical:
        canvas = cv2.flip(canvas, 0)

    canvas_height, canvas_width = canvas.shape[:2]
    x1 = max(0, crop.x)
    y1 = max(0, crop.y)
    x2 = min(canvas_width, crop.x + crop.width)
    y2 = min(canvas_height, crop.y + crop.height)

    if x1 >= x2 or y1 >= y2:
        raise ValueError("Crop area lies outside the image")

    return canvas[y1:y2, x1:x2].copy()


# ----------------------------------------------------------------------------
# OCR preprocessing
# ----------------------------------------------------------------------------

def resize_if_needed(img: MatLike,
                     min_dimension: int = 1000,
                     max_dimension: int = 3000) -> MatLike:
    """
    Upscale small crops and downscale huge photos, keeping aspect ratio.

    Phone snapshots of a single line of text are usually tiny after cropping;
    Tesseract reads them much better once the short side is ~1000px.
    """
    height, width = img.shape[:2]
    min_side = min(height, width)
    max_side = max(height, width)

    if min_side < min_dimension:
        # Never blow the long side past max_dimension
        scale = min(min_dimension / min_side, max_dimension / max_side)
        if scale <= 1:
            return img
        size = (int(width * scale), int(height * scale))
        return cv2.resize(img, size, interpolation=cv2.INTER_CUBIC)

    if max_side > max_dimension:
        scale = max_dimension / max_side
        size = (int(width * scale), int(height * scale))
        return cv2.resize(img, size, interpolation=cv2.INTER_AREA)

    return img


def grayscale(img: MatLike) -> MatLike:
    if len(img.shape) == 2:
        return img
    return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)


def denoise(gray_img: MatLike, method: str = "bilateral") -> MatLike:
    """
    Denoise a grayscale crop.

    Args:
        gray_img: Grayscale input image
        method: "gaussian" (fast, light noise) or "bilateral" (edge preserving)
    """
    if method == "gaussian":
        return cv2.GaussianBlur(gray_img, (5, 5), 0)
    elif method == "bilateral":
        return cv2.bilateralFilter(gray_img, 9, 75, 75)
    else:
        raise ValueError(f"Unknown denoising method: {method}")


def detect_skew_angle(gray_img: MatLike, angle_range: int = 45) -> float:
    """
    Estimate the skew of text lines with a probabilistic Hough transform.

    Returns:
        Median line angle in degrees, 0.0 if no lines were found
    """
    edges = cv2.Canny(gray_img, 50, 150, apertureSize=3)
    lines = cv2.HoughLinesP(
        edges,
        rho=1,
        theta=np.pi / 180,
        threshold=100,
        minLineLength=min(gray_img.shape[:2]) // 4,
        maxLineGap=20,
    )

    # HoughLinesP returns None when nothing is found
    if lines is None or len(lines) == 0:
        return 0.0

    angles: list[float] = []
    for line in lines:
        x1, y1, x2, y2 = (float(v) for v in line[0])
        angle = float(np.degrees(np.arctan2(y2 - y1, x2 - x1)))
        if angle < -90:
            angle += 180
        elif angle > 90:
            angle -= 180
        if abs(angle) <= angle_range:
            angles.append(angle)

    if not angles:
        return 0.0
    return float(np.median(np.array(angles, dtype=np.float64)))


def deskew(gray_img: MatLike, max_angle: float = 45.0) -> MatLike:
    """Straighten a grayscale image by undoing the detected skew."""
    angle = detect_skew_angle(gray_img, angle_range=int(max_angle))
    if abs(angle) < 0.1:
        return gray_img
    # Lines tilted clockwise by `angle` are fixed by turning them back
    return rotate_image(gray_img, -angle, border_value=255)


def binarize(gray_img: MatLike, method: str = "otsu") -> MatLike:
    """
    Turn a grayscale image into black text on white.

    Args:
        gray_img: Grayscale input image
        method: "otsu" (global, bimodal histograms) or
            "adaptive" (local threshold, uneven phone lighting)
    """
    if method == "otsu":
        _, binary = cv2.threshold(gray_img, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        return binary
    elif method == "adaptive":
        return cv2.adaptiveThreshold(
            gray_img, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
            cv2.THRESH_BINARY, 11, 2
        )
    else:
        raise ValueError(f"Unknown binarization method: {method}")


def preprocess_for_ocr(img: MatLike,
                       denoise_method: str = "bilateral",
                       binarize_method: str = "otsu",
                       apply_denoise: bool = True,
                       apply_deskew: bool = True) -> NDArray[np.uint8]:
    """
    Resize, grayscale, denoise, deskew and binarize a crop for OCR.

    Returns:
        Binary uint8 image
    """
    img = resize_if_needed(img)
    gray = grayscale(img)

    if apply_denoise:
        gray = denoise(gray, method=denoise_method)

    if apply_deskew:
        gray = deskew(gray)

    binary = binarize(gray, method=binarize_method)
    return np.asarray(binary, dtype=np.uint8)
