"""
Tests for the frame normalizer.
"""

import numpy as np
import pytest

from sightline.errors import UnsupportedFormat
from sightline.frame import Frame, PixelFormat
from sightline.normalizer import normalize, to_rgb


def _bgr(h=48, w=64, color=(255, 0, 0)):
    image = np.zeros((h, w, 3), dtype=np.uint8)
    image[:, :] = color
    return Frame.from_bgr(image)


def test_bgr_is_swapped_to_rgb():
    """Pure blue BGR input ends up in the last RGB channel."""
    tensor = normalize(_bgr(color=(255, 0, 0)), 32, 32, "uint8")

    assert tensor.shape == (32, 32, 3)
    assert tensor.dtype == np.uint8
    assert np.all(tensor[:, :, 2] == 255)
    assert np.all(tensor[:, :, 0] == 0)


def test_resize_to_exact_target():
    """Output is exactly target_height x target_width regardless of aspect."""
    tensor = normalize(_bgr(h=480, w=640), 320, 200, np.uint8)
    assert tensor.shape == (200, 320, 3)


def test_float_target_scaled_to_unit_range():
    tensor = normalize(_bgr(color=(255, 255, 255)), 16, 16, "float32")

    assert tensor.dtype == np.float32
    assert tensor.max() == pytest.approx(1.0)
    assert tensor.min() >= 0.0


def test_integer_target_is_not_rescaled():
    tensor = normalize(_bgr(color=(200, 100, 50)), 16, 16, np.uint8)
    assert tuple(tensor[0, 0]) == (50, 100, 200)


def test_signed_integer_target_is_clipped():
    tensor = normalize(_bgr(color=(200, 100, 50)), 8, 8, np.int8)
    assert tensor.dtype == np.int8
    assert tuple(tensor[0, 0]) == (50, 100, 127)


def test_input_frame_not_modified():
    frame = Frame(
        data=np.full((8, 8, 3), 10, dtype=np.uint8),
        pixel_format=PixelFormat.RGB,
        width=8,
        height=8,
    )
    tensor = normalize(frame, 8, 8, np.uint8)
    tensor[:] = 0

    assert np.all(frame.data == 10)


def test_nv21_converts_to_neutral_rgb():
    """Mid-grey chroma (128) yields equal R, G and B."""
    w, h = 16, 8
    plane = np.full((h * 3 // 2, w), 128, dtype=np.uint8)
    frame = Frame(data=plane, pixel_format=PixelFormat.NV21, width=w, height=h)

    rgb = to_rgb(frame)

    assert rgb.shape == (h, w, 3)
    r, g, b = (int(c) for c in rgb[0, 0])
    assert abs(r - g) <= 1 and abs(g - b) <= 1


def test_gray_and_rgba_supported():
    gray = Frame(np.zeros((4, 6), dtype=np.uint8), PixelFormat.GRAY, 6, 4)
    rgba = Frame(np.zeros((4, 6, 4), dtype=np.uint8), PixelFormat.RGBA, 6, 4)

    assert to_rgb(gray).shape == (4, 6, 3)
    assert to_rgb(rgba).shape == (4, 6, 3)


def test_planar_shape_mismatch_rejected():
    plane = np.zeros((8, 16), dtype=np.uint8)   # missing chroma rows
    frame = Frame(data=plane, pixel_format=PixelFormat.I420, width=16, height=8)

    with pytest.raises(UnsupportedFormat, match="I420"):
        normalize(frame, 8, 8)


def test_unknown_pixel_format_rejected():
    frame = Frame(np.zeros((4, 4, 2), dtype=np.uint8), "yuyv", 4, 4)
    with pytest.raises(UnsupportedFormat, match="Unknown pixel format"):
        normalize(frame, 4, 4)


def test_packed_channel_mismatch_rejected():
    frame = Frame(np.zeros((4, 4, 4), dtype=np.uint8), PixelFormat.BGR, 4, 4)
    with pytest.raises(UnsupportedFormat):
        normalize(frame, 4, 4)


def test_empty_frame_rejected():
    frame = Frame(np.array([], dtype=np.uint8), PixelFormat.BGR, 0, 0)
    with pytest.raises(UnsupportedFormat, match="empty"):
        normalize(frame, 4, 4)


def test_unsupported_target_dtype():
    with pytest.raises(ValueError, match="dtype"):
        normalize(_bgr(), 4, 4, np.bool_)
