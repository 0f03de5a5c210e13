"""
Detection data transfer objects.

Defines the raw model output container (RawDetectionBatch) and the
decoded, display-space result (Detection). Both are frozen containers
with no behavior beyond data access and light shape helpers.

Non-goals:
    - No rendering logic.
    - No thresholding or coordinate mapping (that belongs in decoder).
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned box in destination (display) pixel coordinates."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def to_dict(self) -> dict:
        return {
            "left": round(self.left, 2),
            "top": round(self.top, 2),
            "right": round(self.right, 2),
            "bottom": round(self.bottom, 2),
        }


@dataclass(frozen=True, slots=True)
class Detection:
    """A single recognized object.

    Attributes:
        label: Class name from the label table (e.g. "dog", "chair").
        score: Confidence score in [0.0, 1.0].
        box: Bounding box in destination coordinates, clamped to the
             destination's [0, width] x [0, height] range.
    """

    label: str
    score: float
    box: BoundingBox

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "label": self.label,
            "score": round(self.score, 4),
            "box": self.box.to_dict(),
        }

    @property
    def width(self) -> float:
        """Bounding box width in pixels."""
        return self.box.width

    @property
    def height(self) -> float:
        """Bounding box height in pixels."""
        return self.box.height

    @property
    def area(self) -> float:
        """Bounding box area in pixels."""
        return self.width * self.height


@dataclass(frozen=True, eq=False)
class RawDetectionBatch:
    """Raw detection tensors as produced by the inference boundary.

    Four parallel fixed-capacity arrays plus a count. Only the first
    ``count`` slots are meaningful; trailing slots hold stale buffer
    contents and must be ignored.

    Attributes:
        boxes: (capacity, 4) array, each row (top, left, bottom, right)
               normalized to [0, 1] relative to the model input tensor.
        classes: (capacity,) class indices (may be float-typed).
        scores: (capacity,) confidence scores.
        count: Number of valid leading slots.
    """

    boxes: np.ndarray
    classes: np.ndarray
    scores: np.ndarray
    count: int

    @property
    def capacity(self) -> int:
        """Number of slots in the raw arrays (valid or not)."""
        return int(np.shape(self.scores)[0]) if np.ndim(self.scores) else 0

    @classmethod
    def from_outputs(
        cls,
        boxes: np.ndarray,
        classes: np.ndarray,
        scores: np.ndarray,
        num_detections,
    ) -> "RawDetectionBatch":
        """Build a batch from detection-postprocess style outputs.

        Accepts the common ``[1, N, 4]``, ``[1, N]``, ``[1, N]``, ``[1]``
        layout (leading batch dimension of one) and strips the batch
        dimension. ``num_detections`` may be a float, as many exported
        models emit it. A count that is not a whole number is kept as-is
        so that decoding rejects the batch with ShapeMismatch.
        """
        boxes = np.asarray(boxes, dtype=np.float32)
        classes = np.asarray(classes, dtype=np.float32)
        scores = np.asarray(scores, dtype=np.float32)

        if boxes.ndim == 3 and boxes.shape[0] == 1:
            boxes = boxes[0]
        if classes.ndim == 2 and classes.shape[0] == 1:
            classes = classes[0]
        if scores.ndim == 2 and scores.shape[0] == 1:
            scores = scores[0]

        raw_count = float(np.asarray(num_detections, dtype=np.float32).reshape(-1)[0])
        count = int(raw_count) if raw_count.is_integer() else raw_count
        return cls(boxes=boxes, classes=classes, scores=scores, count=count)
