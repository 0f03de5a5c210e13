"""
Presentation and speech sinks for the sightline pipeline.

Responsibility:
    Hand pipeline results off to whatever context owns the display or
    audio device. The pipeline only ever calls a sink; it never touches
    presentation or audio state directly.

Contracts:
    - Presentation sink: each call REPLACES the previously displayed set.
    - Speech sink: each call is one utterance to speak now. A pending
      utterance that has not started yet is flushed, never queued behind.

Non-goals:
    - No audio synthesis of our own (delegated to pyttsx3).
    - No rendering (see visualizer).
"""

import logging
import queue
import threading
from typing import Callable, Iterable, List, Optional

import pyttsx3

from sightline.detection import Detection

logger = logging.getLogger(__name__)

DetectionSink = Callable[[List[Detection]], None]
LabelSink = Callable[[Iterable[str]], None]


def format_utterance(labels: Iterable[str], prefix: str = "I see: ") -> str:
    """Phrase a label set as one sentence, e.g. "I see: cat, dog"."""
    return prefix + ", ".join(sorted(labels))


class LatestDetectionsSink:
    """Holds the most recent detection set for a UI thread to pick up.

    Written by the pipeline context, read by the display context.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._detections: List[Detection] = []
        self._version = 0

    def __call__(self, detections: List[Detection]) -> None:
        with self._lock:
            self._detections = list(detections)
            self._version += 1

    def latest(self) -> List[Detection]:
        with self._lock:
            return list(self._detections)

    @property
    def version(self) -> int:
        """Number of updates received so far."""
        with self._lock:
            return self._version


class SpeechSink:
    """Speaks label sets on a background thread using pyttsx3.

    The TTS engine is created and driven exclusively by the worker thread.
    Utterances are passed through a single-slot queue; submitting a new one
    discards any utterance still waiting, so speech never lags behind the
    scene.

    Usage:
        sink = SpeechSink(rate=160)
        sink.start()
        sink({"chair", "dog"})     # "I see: chair, dog"
        ...
        sink.close()
    """

    _SENTINEL = None

    def __init__(
        self,
        rate: int = 160,
        prefix: str = "I see: ",
        engine_factory: Optional[Callable[[], object]] = None,
    ) -> None:
        self._rate = rate
        self._prefix = prefix
        self._engine_factory = engine_factory or pyttsx3.init
        self._queue: "queue.Queue[Optional[str]]" = queue.Queue(maxsize=1)
        self._thread: Optional[threading.Thread] = None
        self._failed = False

    def start(self) -> None:
        """Start the worker thread. Idempotent."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, name="speech-sink", daemon=True
        )
        self._thread.start()
        logger.info("Speech worker started (rate=%d).", self._rate)

    def __call__(self, labels: Iterable[str]) -> None:
        labels = list(labels)
        if not labels:
            return

        if self._failed:
            logger.debug("Speech engine unavailable, dropping: %s", labels)
            return

        text = format_utterance(labels, self._prefix)
        self._flush_pending()
        try:
            self._queue.put_nowait(text)
        except queue.Full:
            logger.debug("Speech queue busy, dropping utterance: %s", text)
            return
        logger.debug("Queued utterance: %s", text)

    def close(self, timeout: float = 5.0) -> None:
        """Let the current utterance finish, then stop the worker.

        Returns within roughly ``2 * timeout`` even when the worker has
        died or is stuck inside the engine.
        """
        if self._thread is None:
            return
        if self._thread.is_alive():
            try:
                self._queue.put(self._SENTINEL, timeout=timeout)
            except queue.Full:
                logger.warning("Speech worker is not consuming; skipping stop signal.")
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Speech worker did not stop within %.1fs.", timeout)
        self._flush_pending()
        self._thread = None
        logger.info("Speech worker stopped.")

    @property
    def available(self) -> bool:
        """False once the speech engine could not be created."""
        return not self._failed

    def _flush_pending(self) -> None:
        while True:
            try:
                dropped = self._queue.get_nowait()
            except queue.Empty:
                return
            logger.debug("Flushed pending utterance: %s", dropped)

    def _run(self) -> None:
        try:
            engine = self._engine_factory()
            engine.setProperty("rate", self._rate)
        except Exception as e:
            self._failed = True
            logger.error("Speech engine unavailable, announcements disabled: %s", e)
            return

        while True:
            text = self._queue.get()
            if text is self._SENTINEL:
                break
            try:
                engine.say(text)
                engine.runAndWait()
            except Exception as e:
                logger.warning("Speech engine failed on '%s': %s", text, e)

        try:
            engine.stop()
        except Exception as e:
            logger.debug("Speech engine stop failed: %s", e)
