"""
Frame normalization for the sightline pipeline.

Responsibility:
    Convert a raw camera Frame into the fixed-size (H, W, 3) RGB tensor
    the detection model expects, quantized or scaled to the model's
    declared input dtype.

Non-goals:
    - No frame acquisition or I/O.
    - No inference or coordinate mapping.
    - No mean/std normalization beyond [0, 1] scaling for float models.

Hard-coded:
    - Output channel order is RGB.
    - Resampling is bilinear (cv2.INTER_LINEAR).
"""

from typing import Union

import cv2
import numpy as np

from sightline.errors import UnsupportedFormat
from sightline.frame import Frame, PixelFormat

_PACKED_CONVERSIONS = {
    PixelFormat.BGR: (3, cv2.COLOR_BGR2RGB),
    PixelFormat.RGBA: (4, cv2.COLOR_RGBA2RGB),
}

_PLANAR_CONVERSIONS = {
    PixelFormat.NV21: cv2.COLOR_YUV2RGB_NV21,
    PixelFormat.I420: cv2.COLOR_YUV2RGB_I420,
}


def to_rgb(frame: Frame) -> np.ndarray:
    """Convert a frame of any supported pixel format to interleaved RGB.

    Args:
        frame: Source frame.

    Returns:
        A uint8 array of shape (frame.height, frame.width, 3).

    Raises:
        UnsupportedFormat: If the format is unknown, or the buffer shape
                           does not match the declared format and size.
    """
    data = frame.data
    fmt = frame.pixel_format

    if not isinstance(data, np.ndarray) or data.size == 0:
        raise UnsupportedFormat(
            "Frame buffer is empty or not a numpy array. "
            "Ensure the frame source is providing valid buffers."
        )

    if data.dtype != np.uint8:
        raise UnsupportedFormat(
            f"Expected 8-bit samples, got dtype {data.dtype} for format {fmt}."
        )

    if not isinstance(fmt, PixelFormat):
        raise UnsupportedFormat(f"Unknown pixel format: {fmt!r}.")

    if fmt.is_planar:
        expected = (frame.height * 3 // 2, frame.width)
        if frame.height % 2 or frame.width % 2 or data.shape != expected:
            raise UnsupportedFormat(
                f"{fmt.name} frame of {frame.width}x{frame.height} must be a "
                f"single plane of shape {expected} with even dimensions, "
                f"got {data.shape}."
            )
        return cv2.cvtColor(data, _PLANAR_CONVERSIONS[fmt])

    if fmt is PixelFormat.GRAY:
        if data.shape != (frame.height, frame.width):
            raise UnsupportedFormat(
                f"GRAY frame must have shape {(frame.height, frame.width)}, "
                f"got {data.shape}."
            )
        return cv2.cvtColor(data, cv2.COLOR_GRAY2RGB)

    channels = 3 if fmt is PixelFormat.RGB else _PACKED_CONVERSIONS[fmt][0]
    expected = (frame.height, frame.width, channels)
    if data.shape != expected:
        raise UnsupportedFormat(
            f"{fmt.name} frame must have shape {expected}, got {data.shape}."
        )

    if fmt is PixelFormat.RGB:
        return data
    return cv2.cvtColor(data, _PACKED_CONVERSIONS[fmt][1])


def normalize(
    frame: Frame,
    target_width: int,
    target_height: int,
    target_type: Union[str, np.dtype, type] = np.uint8,
) -> np.ndarray:
    """Convert a frame into the model's input tensor.

    Args:
        frame: Source frame (not modified).
        target_width: Model input width in pixels.
        target_height: Model input height in pixels.
        target_type: Model input dtype. Integer dtypes receive raw
                     samples clipped to the dtype's range; float dtypes
                     receive samples scaled to [0, 1].

    Returns:
        A fresh array of shape (target_height, target_width, 3) with
        dtype ``target_type``.

    Raises:
        UnsupportedFormat: If the frame cannot be converted to RGB.
        ValueError: If the target size or dtype is invalid.
    """
    if target_width <= 0 or target_height <= 0:
        raise ValueError(
            f"Target size must be positive, got {target_width}x{target_height}."
        )

    dtype = np.dtype(target_type)
    rgb = to_rgb(frame)

    if rgb.shape[:2] != (target_height, target_width):
        rgb = cv2.resize(
            rgb, (target_width, target_height), interpolation=cv2.INTER_LINEAR
        )

    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        return np.clip(rgb.astype(np.int64), info.min, info.max).astype(dtype)

    if np.issubdtype(dtype, np.floating):
        return rgb.astype(dtype) / dtype.type(255.0)

    raise ValueError(
        f"Unsupported target dtype: {dtype}. Use an integer or float dtype."
    )
