"""
Frame acquisition for the sightline pipeline.

Responsibility:
    Turn a camera, video file, single image or image directory into a
    stream of releasable Frames, one in flight at a time.

Live sources (webcams) are read on a background grabber thread into a
single-slot buffer. When the pipeline is slower than the camera, an
unconsumed frame is overwritten by the next one and counted as dropped,
so the pipeline always sees the newest scene. Video files and images
are read on demand instead: nothing is produced ahead of the consumer,
so there is never a backlog to drop.

Non-goals:
    - No detection, drawing, or speech.
    - No infinite retry on bad sources.
    - No implicit fallback between source types.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple, Union

import cv2
import numpy as np

from sightline.frame import Frame

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp"}
VIDEO_EXTENSIONS = {".mp4", ".avi", ".mov", ".mkv", ".wmv", ".flv"}

# Consecutive failed webcam reads before the stream is declared dead
MAX_READ_FAILURES = 30

CaptureFactory = Callable[[Union[str, int]], "cv2.VideoCapture"]


def classify_source(source: Union[str, int]) -> Tuple[str, Union[int, str, List[str]]]:
    """Work out what kind of source this is.

    Returns:
        (mode, target): mode is 'webcam', 'video', 'image' or 'directory'.
        target is the device index, the video path, or the image paths.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the file type is unsupported or a directory holds
                    no images.
    """
    text = str(source).strip()

    if text.isdigit():
        return "webcam", int(text)

    if os.path.isdir(text):
        paths = sorted(
            str(p) for p in Path(text).iterdir()
            if p.suffix.lower() in IMAGE_EXTENSIONS
        )
        if not paths:
            raise ValueError(
                f"No image files found in directory: '{text}'. "
                f"Supported extensions: {sorted(IMAGE_EXTENSIONS)}."
            )
        return "directory", paths

    if not os.path.isfile(text):
        raise FileNotFoundError(
            f"Input source not found: '{text}'. "
            f"Provide a valid file path, directory, or device index."
        )

    suffix = Path(text).suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return "image", [text]
    if suffix in VIDEO_EXTENSIONS:
        return "video", text
    raise ValueError(
        f"Unrecognized file extension: '{suffix}' for source '{text}'. "
        f"Supported images: {sorted(IMAGE_EXTENSIONS)}. "
        f"Supported videos: {sorted(VIDEO_EXTENSIONS)}."
    )


class LatestFrameSlot:
    """Single-slot hand-off between a producer thread and one consumer.

    ``put`` overwrites an unconsumed item; ``get`` blocks until an item
    is available or the slot is closed. Items put before ``close`` are
    still delivered.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._item: Optional[Tuple[int, np.ndarray]] = None
        self._closed = False
        self.dropped = 0

    def put(self, item: Tuple[int, np.ndarray]) -> None:
        with self._cond:
            if self._item is not None:
                self.dropped += 1
                logger.debug("Dropped stale frame %d.", self._item[0])
            self._item = item
            self._cond.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[Tuple[int, np.ndarray]]:
        """Take the newest item; None once closed and drained, or on timeout."""
        with self._cond:
            self._cond.wait_for(
                lambda: self._item is not None or self._closed, timeout
            )
            item, self._item = self._item, None
            return item

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


class LatestFrameGrabber:
    """Reads a capture continuously on a daemon thread into a LatestFrameSlot.

    Iterating yields ``(frame_id, image)`` for the newest frame each time
    the consumer asks; ids count successful reads, so gaps mark frames
    that were dropped.
    """

    def __init__(self, capture, max_failures: int = MAX_READ_FAILURES) -> None:
        self._capture = capture
        self._max_failures = max_failures
        self._slot = LatestFrameSlot()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def dropped(self) -> int:
        return self._slot.dropped

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, name="frame-grabber", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        self._slot.close()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Frame grabber did not stop within %.1fs.", timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def __iter__(self) -> Iterator[Tuple[int, np.ndarray]]:
        while True:
            item = self._slot.get()
            if item is None:
                return
            yield item

    def _run(self) -> None:
        frame_id = 0
        failures = 0
        try:
            while not self._stop.is_set():
                ok, image = self._capture.read()
                if not ok or image is None:
                    failures += 1
                    if failures >= self._max_failures:
                        logger.error(
                            "Camera produced %d consecutive failed reads; "
                            "stopping the stream.", failures,
                        )
                        break
                    continue
                failures = 0
                self._slot.put((frame_id, image))
                frame_id += 1
        finally:
            self._slot.close()
            logger.debug("Frame grabber exited after %d frames.", frame_id)


class InputHandler:
    """Iterates ``(frame_id, Frame)`` pairs from any supported source.

    The source type is auto-detected: a digit string is a webcam index,
    a directory yields its images in sorted order, and files are matched
    by extension.

    Usage:
        handler = InputHandler(source="0")
        for frame_id, frame in handler:
            coordinator.process_frame(frame)   # releases the frame
        handler.release()

    ``outstanding`` counts frames handed out but not yet released, and
    ``dropped`` counts live frames overwritten before they were consumed.
    """

    def __init__(
        self,
        source: Union[str, int],
        resize_width: Optional[int] = None,
        capture_factory: CaptureFactory = cv2.VideoCapture,
    ) -> None:
        """Validate the source and open it.

        Raises:
            FileNotFoundError: If a file/directory source does not exist.
            ValueError: If the source type cannot be determined.
            RuntimeError: If a video/webcam source cannot be opened.
        """
        self._capture = None
        self._grabber: Optional[LatestFrameGrabber] = None
        self._outstanding = 0
        self._resize_width = resize_width
        self._mode, self._target = classify_source(source)

        if self._mode in ("webcam", "video"):
            self._capture = capture_factory(self._target)
            if not self._capture.isOpened():
                raise RuntimeError(
                    f"Failed to open {self._mode} source {self._target!r}. "
                    f"Ensure the source exists and is accessible."
                )
        if self._mode == "webcam":
            self._grabber = LatestFrameGrabber(self._capture)

        logger.info("InputHandler initialized: mode=%s, source=%s", self._mode, source)

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def outstanding(self) -> int:
        """Frames handed out and not yet released."""
        return self._outstanding

    @property
    def dropped(self) -> int:
        """Live frames overwritten before the pipeline asked for them."""
        return self._grabber.dropped if self._grabber is not None else 0

    def __iter__(self) -> Iterator[Tuple[int, Frame]]:
        if self._grabber is not None:
            self._grabber.start()
            images = iter(self._grabber)
        elif self._mode == "video":
            images = self._read_video()
        else:
            images = self._read_images()

        for frame_id, image in images:
            if self._outstanding:
                logger.warning(
                    "%d frame(s) not released before frame %d.",
                    self._outstanding, frame_id,
                )
            self._outstanding += 1
            yield frame_id, Frame.from_bgr(
                downscale(image, self._resize_width), on_release=self._on_release
            )

    def _on_release(self) -> None:
        self._outstanding -= 1

    def _read_images(self) -> Iterator[Tuple[int, np.ndarray]]:
        for frame_id, path in enumerate(self._target):
            image = cv2.imread(path)
            if image is None:
                logger.warning("Skipping unreadable image %d: %s", frame_id, path)
                continue
            yield frame_id, image

    def _read_video(self) -> Iterator[Tuple[int, np.ndarray]]:
        frame_id = 0
        while self._capture is not None:
            ok, image = self._capture.read()
            if not ok or image is None:
                logger.info("End of video reached after %d frames.", frame_id)
                return
            yield frame_id, image
            frame_id += 1

    def release(self) -> None:
        """Stop the grabber thread and close the capture device."""
        if self._capture is None:
            return
        if self._grabber is not None:
            self._grabber.stop()
            logger.info("Frame grabber stopped (%d frames dropped).", self._grabber.dropped)
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.debug("Capture released.")

    def __del__(self) -> None:
        self.release()


def downscale(image: np.ndarray, width: Optional[int]) -> np.ndarray:
    """Shrink to ``width`` pixels wide, keeping aspect ratio. Never enlarges."""
    if width is None:
        return image
    h, w = image.shape[:2]
    if w <= width:
        return image
    return cv2.resize(image, (width, int(h * width / w)), interpolation=cv2.INTER_AREA)
