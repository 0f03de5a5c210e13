"""
PipelineCoordinator: the per-frame entry point of sightline.

Public contract:
    PipelineCoordinator.process_frame(frame: Frame)
        -> (list[Detection], set[str])

Per frame: normalize → infer → decode → debounce, then hand results to
the presentation and speech sinks.

Constraints:
    - One bad frame never aborts the session: UnsupportedFormat,
      ShapeMismatch and InferenceFailure are logged and yield an empty
      result.
    - The input frame is released exactly once on every exit path.
    - Single-threaded: at most one process_frame call in flight.
"""

import logging
import time
from typing import Callable, List, Optional, Sequence, Set, Tuple

from sightline.config import AppConfig, load_config
from sightline.debouncer import AnnouncementDebouncer, AnnouncementPolicy
from sightline.decoder import decode
from sightline.detection import Detection, RawDetectionBatch
from sightline.errors import InferenceFailure, SightlineError
from sightline.frame import Frame
from sightline.inference import InferenceAdapter
from sightline.normalizer import normalize
from sightline.sinks import DetectionSink, LabelSink

logger = logging.getLogger(__name__)

FrameResult = Tuple[List[Detection], Set[str]]


class PipelineCoordinator:
    """Wires the normalizer, inference adapter, decoder and debouncer.

    Usage:
        coordinator = PipelineCoordinator(labels, infer, config,
                                          overlay_sink=overlay,
                                          speech_sink=speech)
        detections, spoken = coordinator.process_frame(frame)
        coordinator.reset()            # new session, forget history

    Detections are mapped to ``display_size`` when given, otherwise to the
    size of each incoming frame.
    """

    def __init__(
        self,
        labels: Sequence[str],
        inference: InferenceAdapter,
        config: Optional[AppConfig] = None,
        overlay_sink: Optional[DetectionSink] = None,
        speech_sink: Optional[LabelSink] = None,
        debouncer: Optional[AnnouncementDebouncer] = None,
        display_size: Optional[Tuple[int, int]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if config is None:
            config = load_config()
        if not labels:
            raise ValueError("Label table is empty; the pipeline cannot run without labels.")
        if display_size is not None and (display_size[0] <= 0 or display_size[1] <= 0):
            raise ValueError(
                f"display_size must be positive (width, height), got {display_size}."
            )

        self._config = config
        self._labels = list(labels)
        self._inference = inference
        self._overlay_sink = overlay_sink
        self._speech_sink = speech_sink
        self._display_size = display_size
        self._clock = clock

        if debouncer is None:
            debouncer = AnnouncementDebouncer(
                policy=AnnouncementPolicy(config.announcement.policy),
                speak_delay_ms=config.announcement.speak_delay_ms,
            )
        self._debouncer = debouncer

        logger.info(
            "PipelineCoordinator initialized (labels=%d, threshold=%.2f, policy=%s)",
            len(self._labels),
            config.detection.score_threshold,
            self._debouncer.policy.value,
        )

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    @property
    def debouncer(self) -> AnnouncementDebouncer:
        return self._debouncer

    def reset(self) -> None:
        """Start a new session: forget which labels were announced."""
        self._debouncer.reset_history()

    def process_frame(self, frame: Frame) -> FrameResult:
        """Run one frame through the pipeline.

        Args:
            frame: The camera frame. Ownership passes to this call; the
                   frame is released before returning.

        Returns:
            (detections, labels_to_speak). Both are empty when the frame
            could not be processed.
        """
        try:
            try:
                detections = self._detect(frame)
            except SightlineError as e:
                logger.warning("Dropping frame: %s: %s", type(e).__name__, e)
                return [], set()

            spoken = self._debouncer.decide(detections, self._clock())
            self._dispatch(detections, spoken)
            return detections, spoken
        finally:
            frame.release()

    def _detect(self, frame: Frame) -> List[Detection]:
        model_cfg = self._config.model
        width, height = model_cfg.input_size

        tensor = normalize(frame, width, height, model_cfg.input_type)
        batch = self._infer(tensor)

        return decode(
            batch,
            self._labels,
            score_threshold=self._config.detection.score_threshold,
            source_size=(width, height),
            dest_size=self._display_size or frame.size,
            exclude_unknown=self._config.detection.exclude_unknown,
        )

    def _infer(self, tensor) -> RawDetectionBatch:
        """Call the inference boundary, folding its failures into InferenceFailure."""
        try:
            batch = self._inference(tensor)
        except SightlineError:
            raise
        except Exception as e:
            raise InferenceFailure(f"Inference raised {type(e).__name__}: {e}") from e

        if not isinstance(batch, RawDetectionBatch):
            raise InferenceFailure(
                f"Inference returned {type(batch).__name__}, expected RawDetectionBatch."
            )
        return batch

    def _dispatch(self, detections: List[Detection], spoken: Set[str]) -> None:
        if self._overlay_sink is not None:
            self._overlay_sink(detections)

        if spoken and self._speech_sink is not None:
            logger.debug("Announcing: %s", sorted(spoken))
            self._speech_sink(spoken)
