"""
Inference boundary for the sightline pipeline.

The pipeline treats inference as an opaque callable:

    InferenceAdapter = Callable[[np.ndarray], RawDetectionBatch]

Any callable with that shape can be handed to the PipelineCoordinator.
DnnInferenceAdapter is the stock implementation backed by cv2.dnn.

Hard-coded:
    - SSD detection-output layout: [1, 1, N, 7] where each row is
      [batch_id, class_id, score, x1, y1, x2, y2] with coordinates
      normalized to [0, 1].
"""

import logging
from typing import Callable

import cv2
import numpy as np

from sightline.detection import RawDetectionBatch
from sightline.errors import InferenceFailure

logger = logging.getLogger(__name__)

InferenceAdapter = Callable[[np.ndarray], RawDetectionBatch]


def ssd_output_to_batch(
    output: np.ndarray,
    capacity: int,
    class_offset: int = 0,
) -> RawDetectionBatch:
    """Convert an SSD detection-output tensor into a RawDetectionBatch.

    Rows beyond ``capacity`` are dropped; short outputs are zero-padded
    to ``capacity`` so the batch always has the negotiated shape.

    Raises:
        InferenceFailure: If the tensor is not (1, 1, N, 7).
    """
    output = np.asarray(output, dtype=np.float32)
    if output.ndim != 4 or output.shape[:2] != (1, 1) or output.shape[3] != 7:
        raise InferenceFailure(
            f"Unexpected network output shape {output.shape}; "
            f"expected (1, 1, N, 7) SSD detection output."
        )

    rows = output[0, 0, :capacity]
    count = rows.shape[0]

    boxes = np.zeros((capacity, 4), dtype=np.float32)
    classes = np.zeros(capacity, dtype=np.float32)
    scores = np.zeros(capacity, dtype=np.float32)

    # SSD rows are x1, y1, x2, y2; the batch wants top, left, bottom, right
    boxes[:count] = rows[:, [4, 3, 6, 5]]
    classes[:count] = rows[:, 1] - class_offset
    scores[:count] = rows[:, 2]

    return RawDetectionBatch(boxes=boxes, classes=classes, scores=scores, count=count)


class DnnInferenceAdapter:
    """Runs a cv2.dnn.Net on a normalized tensor.

    The tensor is already RGB and model-sized, so the blob is built
    without resizing, mean subtraction, or channel swapping.

    Usage:
        net = load_model(config.model)
        infer = DnnInferenceAdapter(net, capacity=25)
        batch = infer(tensor)
    """

    def __init__(self, net: cv2.dnn.Net, capacity: int = 25, class_offset: int = 0) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}.")
        self._net = net
        self._capacity = capacity
        self._class_offset = class_offset

    @property
    def capacity(self) -> int:
        return self._capacity

    def __call__(self, tensor: np.ndarray) -> RawDetectionBatch:
        """Run the network on one (H, W, 3) tensor.

        Raises:
            InferenceFailure: If OpenCV fails or the output is unusable.
        """
        try:
            blob = cv2.dnn.blobFromImage(
                image=tensor,
                scalefactor=1.0,
                swapRB=False,   # Tensor is already RGB
                crop=False,
            )
            self._net.setInput(blob)
            output = self._net.forward()
        except cv2.error as e:
            raise InferenceFailure(f"Network forward pass failed: {e}") from e

        return ssd_output_to_batch(output, self._capacity, self._class_offset)
