"""
Unit tests for image acquisition, cropping and preprocessing using synthetic
images.
"""

import base64
from unittest.mock import Mock, patch

import cv2
import numpy as np
import pytest
from numpy.typing import NDArray
from pathlib import Path

from sahayak.imaging import (
    CameraError,
    CropBox,
    Flip,
    binarize,
    capture_frame,
    crop_image,
    decode_base64,
    denoise,
    load_image,
    preprocess_for_ocr,
    resize_if_needed,
    rotate_image,
    rotated_canvas_size,
    strip_data_url,
    to_data_url,
)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def marked_image() -> NDArray[np.uint8]:
    """200x100 white frame with a red 10x10 block in the top-left corner."""
    img = np.ones((100, 200, 3), dtype=np.uint8) * 255
    img[0:10, 0:10] = (0, 0, 255)
    return img


def _is_red(region: NDArray[np.uint8]) -> bool:
    mean = region.reshape(-1, 3).mean(axis=0)
    return bool(mean[2] > 200 and mean[0] < 60 and mean[1] < 60)


# ============================================================================
# Decoding
# ============================================================================

def test_strip_data_url():
    assert strip_data_url("data:image/png;base64,AAAA") == "AAAA"
    assert strip_data_url("data:image/jpeg;base64,BBBB") == "BBBB"
    assert strip_data_url("CCCC") == "CCCC"


def test_load_image_from_bytes(png_bytes: bytes):
    img = load_image(png_bytes)
    assert img.shape == (100, 200, 3)


def test_load_image_from_data_url(png_bytes: bytes):
    data_url = "data:image/png;base64," + base64.b64encode(png_bytes).decode()
    img = load_image(data_url)
    assert img.shape == (100, 200, 3)


def test_load_image_from_bare_base64(png_bytes: bytes):
    img = load_image(base64.b64encode(png_bytes).decode())
    assert img.shape == (100, 200, 3)


def test_load_image_from_path(document_image: NDArray[np.uint8], tmp_path: Path):
    path = tmp_path / "page.png"
    cv2.imwrite(str(path), document_image)

    assert load_image(str(path)).shape == (100, 200, 3)
    assert load_image(path).shape == (100, 200, 3)


def test_load_image_missing_file():
    with pytest.raises(FileNotFoundError, match="Image file not found"):
        load_image("/nonexistent/photo.jpg")


def test_load_image_invalid_bytes():
    with pytest.raises(ValueError, match="Invalid image data"):
        load_image(b"definitely not an image")


def test_load_image_corrupted_file(tmp_path: Path):
    path = tmp_path / "broken.png"
    path.write_text("not an image")

    with pytest.raises(ValueError, match="Invalid image format"):
        load_image(path)


def test_decode_base64_rejects_garbage():
    with pytest.raises(ValueError, match="Invalid base64"):
        decode_base64("data:image/png;base64,@@@not-base64@@@")


def test_to_data_url_prefix(document_image: NDArray[np.uint8]):
    assert to_data_url(document_image).startswith("data:image/jpeg;base64,")
    png_url = to_data_url(document_image, "png")
    assert png_url.startswith("data:image/png;base64,")
    # PNG is lossless
    assert np.array_equal(load_image(png_url), document_image)


def test_to_data_url_unknown_format(document_image: NDArray[np.uint8]):
    with pytest.raises(ValueError, match="Unsupported image format"):
        to_data_url(document_image, "gif")


# ============================================================================
# Crop / rotate
# ============================================================================

def test_crop_box_parse():
    assert CropBox.parse("10, 20, 30, 40") == CropBox(10, 20, 30, 40)
    assert CropBox.parse("1.6,0,5,5") == CropBox(2, 0, 5, 5)


@pytest.mark.parametrize("value", ["1,2,3", "a,b,c,d"])
def test_crop_box_parse_invalid(value: str):
    with pytest.raises(ValueError):
        CropBox.parse(value)


def test_rotated_canvas_size():
    assert rotated_canvas_size(200, 100, 0) == (200, 100)
    assert rotated_canvas_size(200, 100, 90) == (100, 200)
    # 45 degrees: both sides become (w + h) / sqrt(2)
    w, h = rotated_canvas_size(200, 100, 45)
    assert w == h == int(300 / np.sqrt(2))


def test_crop_without_rotation(marked_image: NDArray[np.uint8]):
    result = crop_image(marked_image, CropBox(0, 0, 20, 30))

    assert result.shape == (30, 20, 3)
    assert _is_red(result[0:10, 0:10])
    assert result[20:30, 10:20].min() == 255


def test_crop_after_rotating_clockwise(marked_image: NDArray[np.uint8]):
    rotated = rotate_image(marked_image, 90)
    assert rotated.shape[:2] == (200, 100)
    # Top-left corner ends up top-right after a clockwise quarter turn
    assert _is_red(rotated[2:8, 93:98])

    result = crop_image(marked_image, CropBox(80, 0, 20, 20), rotation=90)
    assert result.shape == (20, 20, 3)
    assert _is_red(result[2:8, 13:18])


def test_crop_horizontal_flip(marked_image: NDArray[np.uint8]):
    result = crop_image(marked_image, CropBox(0, 0, 200, 100), flip=Flip(horizontal=True))
    assert _is_red(result[0:10, 190:200])
    assert not _is_red(result[0:10, 0:10])


def test_crop_vertical_flip(marked_image: NDArray[np.uint8]):
    result = crop_image(marked_image, CropBox(0, 0, 200, 100), flip=Flip(vertical=True))
    assert _is_red(result[90:100, 0:10])


def test_crop_is_clipped_to_canvas(marked_image: NDArray[np.uint8]):
    result = crop_image(marked_image, CropBox(-10, -10, 50, 50))
    assert result.shape == (40, 40, 3)
    assert _is_red(result[0:10, 0:10])


def test_crop_outside_canvas(marked_image: NDArray[np.uint8]):
    with pytest.raises(ValueError, match="outside"):
        crop_image(marked_image, CropBox(500, 500, 10, 10))


def test_crop_empty_size(marked_image: NDArray[np.uint8]):
    with pytest.raises(ValueError, match="positive"):
        crop_image(marked_image, CropBox(0, 0, 0, 10))


def test_crop_does_not_modify_source(marked_image: NDArray[np.uint8]):
    original = marked_image.copy()
    result = crop_image(marked_image, CropBox(0, 0, 20, 20))
    result[:] = 0
    assert np.array_equal(marked_image, original)


# ============================================================================
# Preprocessing
# ============================================================================

def test_resize_upscales_small_crops():
    img = np.ones((100, 300, 3), dtype=np.uint8) * 255
    resized = resize_if_needed(img)
    # Long side capped at 3000 even though the short side wants 1000
    assert resized.shape[:2] == (1000, 3000)


def test_resize_downscales_large_images():
    img = np.ones((4000, 2000), dtype=np.uint8)
    resized = resize_if_needed(img)
    assert max(resized.shape[:2]) == 3000


def test_resize_keeps_good_sizes():
    img = np.ones((1200, 1600), dtype=np.uint8)
    assert resize_if_needed(img) is img


def test_denoise_unknown_method(document_image: NDArray[np.uint8]):
    gray = cv2.cvtColor(document_image, cv2.COLOR_BGR2GRAY)
    with pytest.raises(ValueError, match="Unknown denoising method"):
        denoise(gray, method="median")


def test_binarize_methods(document_image: NDArray[np.uint8]):
    gray = cv2.cvtColor(document_image, cv2.COLOR_BGR2GRAY)
    for method in ("otsu", "adaptive"):
        binary = binarize(gray, method=method)
        assert set(np.unique(binary)).issubset({0, 255})

    with pytest.raises(ValueError, match="Unknown binarization method"):
        binarize(gray, method="sauvola")


def test_preprocess_for_ocr_returns_binary(document_image: NDArray[np.uint8]):
    result = preprocess_for_ocr(document_image, denoise_method="gaussian")

    assert result.dtype == np.uint8
    assert len(result.shape) == 2
    assert min(result.shape) >= 1000
    assert set(np.unique(result)).issubset({0, 255})


@pytest.mark.parametrize("name", ["scan", "page1", "/tmp/missing-photo.png"])
def test_load_image_missing_name_that_decodes_as_base64(name: str):
    with pytest.raises(FileNotFoundError, match="Image file not found"):
        load_image(name)


# ============================================================================
# Camera
# ============================================================================

@patch('sahayak.imaging.cv2.VideoCapture')
def test_capture_frame(mock_capture: Mock, document_image: NDArray[np.uint8]):
    cap = mock_capture.return_value
    cap.isOpened.return_value = True
    cap.read.return_value = (True, document_image)

    frame = capture_frame(device=1, warmup_frames=3)

    assert frame is document_image
    mock_capture.assert_called_once_with(1)
    assert cap.read.call_count == 4
    cap.release.assert_called_once()


@patch('sahayak.imaging.cv2.VideoCapture')
def test_capture_frame_camera_unavailable(mock_capture: Mock):
    cap = mock_capture.return_value
    cap.isOpened.return_value = False

    with pytest.raises(CameraError, match="Could not open camera 0"):
        capture_frame()
    cap.release.assert_called_once()


@patch('sahayak.imaging.cv2.VideoCapture')
def test_capture_frame_no_frame(mock_capture: Mock):
    cap = mock_capture.return_value
    cap.isOpened.return_value = True
    cap.read.return_value = (False, None)

    with pytest.raises(CameraError, match="no frame"):
        capture_frame(warmup_frames=0)
    cap.release.assert_called_once()
