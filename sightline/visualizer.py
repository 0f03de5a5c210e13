"""
Overlay rendering for the sightline pipeline.

Responsibility:
    Draw bounding boxes and class labels onto a frame. This is a pure
    rendering module: it produces an annotated copy of the frame and
    performs no I/O beyond the optional preview window.

Non-goals:
    - No file writing.
    - No detection or model logic.
"""

from typing import List

import cv2
import numpy as np

from sightline.config import VisualizationConfig
from sightline.detection import Detection

# Hard-coded rendering constants (cosmetic internals, not user-facing)
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_FONT_SCALE = 0.9
_FONT_THICKNESS = 2
_LABEL_OFFSET = 15
_LABEL_MIN_Y = 30
_WINDOW_NAME = "sightline"


def _caption(det: Detection, config: VisualizationConfig) -> str:
    if config.show_confidence:
        return f"{det.label} {det.score:.2f}"
    return det.label


def draw_detections(
    frame: np.ndarray,
    detections: List[Detection],
    config: VisualizationConfig,
) -> np.ndarray:
    """Draw bounding boxes and labels onto a frame.

    Args:
        frame: Input BGR image (not modified, a copy is returned).
        detections: Detections in the frame's pixel coordinates.
        config: Visualization parameters (color, thickness, labels).

    Returns:
        A new BGR numpy array with detections drawn.
    """
    annotated = frame.copy()

    for det in detections:
        box = det.box
        x1, y1 = int(round(box.left)), int(round(box.top))
        x2, y2 = int(round(box.right)), int(round(box.bottom))

        cv2.rectangle(
            annotated,
            (x1, y1),
            (x2, y2),
            color=config.box_color,
            thickness=config.thickness,
        )

        if not config.show_label:
            continue

        # Keep the caption on screen when the box touches the top edge
        label_y = max(y1 - _LABEL_OFFSET, _LABEL_MIN_Y)
        origin = (x1 + 10, label_y)
        caption = _caption(det, config)

        # Dark outline under white text for contrast on any background
        cv2.putText(annotated, caption, origin, _FONT, _FONT_SCALE,
                    (0, 0, 0), _FONT_THICKNESS + 3, cv2.LINE_AA)
        cv2.putText(annotated, caption, origin, _FONT, _FONT_SCALE,
                    (255, 255, 255), _FONT_THICKNESS, cv2.LINE_AA)

    return annotated


def show_frame(
    frame: np.ndarray,
    detections: List[Detection],
    config: VisualizationConfig,
) -> int:
    """Show annotated frame in a window and return key press.

    Returns:
        The key code (int) pressed during waitKey, or -1 if no key.
    """
    annotated = draw_detections(frame, detections, config)
    cv2.imshow(_WINDOW_NAME, annotated)
    return cv2.waitKey(1) & 0xFF


def close_windows() -> None:
    cv2.destroyAllWindows()
