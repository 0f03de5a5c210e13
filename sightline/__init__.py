"""
sightline: spoken object detection for low-vision users.

Public API:
    - PipelineCoordinator: per-frame entry point (frame → detections,
      labels to speak).
    - Frame, PixelFormat: input frame container.
    - Detection, RawDetectionBatch: decoded result and raw model output.
    - AnnouncementDebouncer, AnnouncementPolicy: speech throttling.
    - UnsupportedFormat, ShapeMismatch, InferenceFailure: per-frame errors.

Usage:
    from sightline import PipelineCoordinator, Frame

    coordinator = PipelineCoordinator(labels, infer)
    detections, spoken = coordinator.process_frame(Frame.from_bgr(image))
"""

from sightline.coordinator import PipelineCoordinator
from sightline.debouncer import AnnouncementDebouncer, AnnouncementPolicy
from sightline.detection import Detection, RawDetectionBatch
from sightline.errors import InferenceFailure, ShapeMismatch, UnsupportedFormat
from sightline.frame import Frame, PixelFormat

__all__ = [
    "PipelineCoordinator",
    "AnnouncementDebouncer",
    "AnnouncementPolicy",
    "Detection",
    "RawDetectionBatch",
    "Frame",
    "PixelFormat",
    "UnsupportedFormat",
    "ShapeMismatch",
    "InferenceFailure",
]
