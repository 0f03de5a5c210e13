"""
Frame container for the sightline pipeline.

A Frame is an immutable grid of pixel samples plus a pixel-format tag.
It may carry a release callback that hands the underlying buffer back to
its source (camera frame pools stall if buffers are never returned).

Planar formats (NV21, I420) are stored the way camera HALs deliver them:
a single uint8 plane of shape (height * 3 / 2, width), luma followed by
chroma.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)


class PixelFormat(enum.Enum):
    """Pixel layouts accepted by the normalizer."""

    RGB = "rgb"
    BGR = "bgr"
    RGBA = "rgba"
    GRAY = "gray"
    NV21 = "nv21"
    I420 = "i420"

    @property
    def is_planar(self) -> bool:
        return self in (PixelFormat.NV21, PixelFormat.I420)


@dataclass(frozen=True, eq=False)
class Frame:
    """A single camera frame.

    Attributes:
        data: Raw sample buffer. Packed formats are (H, W, C) or (H, W)
              for GRAY; planar formats are (H * 3 / 2, W).
        pixel_format: Layout tag for ``data``.
        width: Frame width in pixels.
        height: Frame height in pixels.
        on_release: Optional callback returning the buffer to its source.
    """

    data: np.ndarray
    pixel_format: PixelFormat
    width: int
    height: int
    on_release: Optional[Callable[[], None]] = field(default=None, repr=False)
    _released: bool = field(default=False, init=False, repr=False)

    @classmethod
    def from_bgr(
        cls,
        image: np.ndarray,
        on_release: Optional[Callable[[], None]] = None,
    ) -> "Frame":
        """Wrap an OpenCV BGR image (as returned by VideoCapture.read())."""
        h, w = image.shape[:2]
        return cls(
            data=image,
            pixel_format=PixelFormat.BGR,
            width=w,
            height=h,
            on_release=on_release,
        )

    @property
    def size(self):
        """(width, height) of the frame."""
        return self.width, self.height

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Return the frame to its source. Only the first call has effect."""
        if self._released:
            logger.debug("Frame already released, ignoring.")
            return
        # Frozen dataclass: bypass immutability for the release flag only
        object.__setattr__(self, "_released", True)
        if self.on_release is not None:
            self.on_release()
