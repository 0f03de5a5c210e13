"""
Model loading for the sightline pipeline.

Responsibility:
    Load the object detection network from disk, configure the compute
    backend, and return a ready-to-infer cv2.dnn.Net object.

Non-goals:
    - No preprocessing, inference, or frame-level logic.
    - No automatic model downloading.
    - No fallback to alternative models.

Failure behavior:
    - Missing model files raise FileNotFoundError with the exact
      missing path and expected location.
    - Incompatible backend raises RuntimeError.
"""

import logging

import cv2

from sightline.config import ModelConfig, resolve_path

logger = logging.getLogger(__name__)


def load_model(config: ModelConfig) -> cv2.dnn.Net:
    """Load and configure the detection model.

    Args:
        config: ModelConfig containing file paths and backend preference.
                ``config_path`` may be empty for self-describing formats
                (ONNX, TFLite).

    Returns:
        A configured cv2.dnn.Net ready for inference.

    Raises:
        FileNotFoundError: If the weights or definition file does not exist.
        RuntimeError: If the requested backend is unavailable.
    """
    weights = resolve_path(config.model_path)

    # Fail fast with actionable messages
    if not weights.is_file():
        raise FileNotFoundError(
            f"Model weights not found.\n"
            f"  Expected: {weights}\n"
            f"  Download the model file and place it at the path above,\n"
            f"  or update 'model.model_path' in your config."
        )

    definition = ""
    if config.config_path:
        definition_path = resolve_path(config.config_path)
        if not definition_path.is_file():
            raise FileNotFoundError(
                f"Model definition not found.\n"
                f"  Expected: {definition_path}\n"
                f"  Provide the file or set 'model.config_path' to an empty value."
            )
        definition = str(definition_path)

    logger.info("Loading model: weights=%s, definition=%s", weights, definition or "-")
    net = cv2.dnn.readNet(str(weights), definition)

    # Configure backend and target
    if config.backend == "cuda":
        logger.info("Setting CUDA backend and target.")
        try:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        except cv2.error as e:
            raise RuntimeError(
                f"Failed to set CUDA backend. Ensure OpenCV was built with "
                f"CUDA support (opencv-contrib-python or custom build).\n"
                f"  OpenCV error: {e}"
            ) from e
    else:
        logger.info("Using CPU backend.")
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    logger.info("Model loaded successfully.")
    return net
