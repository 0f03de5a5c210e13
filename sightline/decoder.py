"""
Detection decoding for the sightline pipeline.

Responsibility:
    Turn a RawDetectionBatch into a list of Detection objects: bound the
    iteration by the batch count, apply the score threshold and class
    index validation, drop policy-excluded labels, and map normalized
    boxes into destination (display) coordinates.

Non-goals:
    - No drawing or speech logic.
    - No model loading or inference.
    - No non-maximum suppression or re-sorting; slot order is preserved.

Hard-coded:
    - Raw box layout is (top, left, bottom, right), normalized to [0, 1]
      relative to the model input tensor.
"""

import logging
import math
from typing import List, Sequence, Tuple

import numpy as np

from sightline.detection import BoundingBox, Detection, RawDetectionBatch
from sightline.errors import ShapeMismatch

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "unknown"


def _check_shape(batch: RawDetectionBatch) -> int:
    """Validate parallel array shapes and return the slot count to iterate.

    Raises:
        ShapeMismatch: If the arrays disagree with each other or with count.
    """
    boxes = np.asarray(batch.boxes)
    classes = np.asarray(batch.classes)
    scores = np.asarray(batch.scores)

    if scores.ndim != 1:
        raise ShapeMismatch(
            f"scores must be 1-dimensional (capacity,), got shape {scores.shape}."
        )
    capacity = scores.shape[0]

    if classes.shape != (capacity,):
        raise ShapeMismatch(
            f"classes shape {classes.shape} does not match scores capacity "
            f"({capacity},)."
        )
    if boxes.shape != (capacity, 4):
        raise ShapeMismatch(
            f"boxes shape {boxes.shape} does not match expected ({capacity}, 4)."
        )

    try:
        raw_count = float(batch.count)
    except (TypeError, ValueError):
        raise ShapeMismatch(
            f"Detection count {batch.count!r} is not numeric."
        ) from None
    if not math.isfinite(raw_count) or raw_count != math.floor(raw_count):
        raise ShapeMismatch(
            f"Detection count {batch.count!r} is not a whole number."
        )

    count = int(raw_count)
    if not 0 <= count <= capacity:
        raise ShapeMismatch(
            f"Detection count {batch.count} outside [0, {capacity}]."
        )
    return count


def is_unknown_label(label: str) -> bool:
    """Return True for the placeholder "unknown" class name."""
    return label.strip().lower() == UNKNOWN_LABEL


def decode(
    batch: RawDetectionBatch,
    labels: Sequence[str],
    score_threshold: float,
    source_size: Tuple[int, int],
    dest_size: Tuple[int, int],
    exclude_unknown: bool = True,
) -> List[Detection]:
    """Decode raw model output into destination-space detections.

    Args:
        batch: Raw detection tensors from the inference boundary.
        labels: Label table; index i names raw class index i.
        score_threshold: Slots must score strictly above this value.
        source_size: (width, height) of the model input tensor. Boxes are
                     already normalized to it, so it only documents the
                     coordinate space being mapped from.
        dest_size: (width, height) of the surface detections are drawn on.
        exclude_unknown: Drop slots whose label is "unknown".

    Returns:
        Accepted detections in raw slot order. Empty if none qualify.

    Raises:
        ShapeMismatch: If the raw arrays are inconsistent with the count,
                       or source_size / dest_size is not positive.
    """
    src_w, src_h = source_size
    dest_w, dest_h = dest_size
    if src_w <= 0 or src_h <= 0 or dest_w <= 0 or dest_h <= 0:
        raise ShapeMismatch(
            f"Sizes must be positive, got source={source_size}, dest={dest_size}."
        )

    count = _check_shape(batch)
    detections: List[Detection] = []

    for i in range(count):
        score = float(batch.scores[i])

        # NaN fails both comparisons
        if not (score > score_threshold and score <= 1.0):
            continue

        raw_class = float(batch.classes[i])
        if not math.isfinite(raw_class):
            continue
        # floor, not int(): -0.5 must not truncate to class 0
        class_index = math.floor(raw_class)
        if not 0 <= class_index < len(labels):
            logger.debug("Slot %d: class index %d out of range.", i, class_index)
            continue

        label = labels[class_index]
        if exclude_unknown and is_unknown_label(label):
            continue

        box = np.asarray(batch.boxes[i], dtype=np.float64)
        if not np.all(np.isfinite(box)):
            continue
        top, left, bottom, right = np.clip(box, 0.0, 1.0)

        detections.append(Detection(
            label=label,
            score=score,
            box=BoundingBox(
                left=float(left * dest_w),
                top=float(top * dest_h),
                right=float(right * dest_w),
                bottom=float(bottom * dest_h),
            ),
        ))

    logger.debug(
        "Decoded %d/%d slots (model %dx%d -> dest %dx%d).",
        len(detections), count, src_w, src_h, dest_w, dest_h,
    )
    return detections
