"""
Tests for the cv2.dnn inference adapter.
"""

from pathlib import Path

import cv2
import numpy as np
import pytest

from sightline.config import AppConfig, ModelConfig
from sightline.decoder import decode
from sightline.errors import InferenceFailure
from sightline.inference import DnnInferenceAdapter, ssd_output_to_batch
from sightline.labels import load_labels
from sightline.model_loader import load_model

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_MODEL_EXISTS = (
    (_PROJECT_ROOT / ModelConfig().model_path).exists() and
    (_PROJECT_ROOT / ModelConfig().config_path).exists()
)


class FakeNet:
    """Stands in for cv2.dnn.Net."""

    def __init__(self, output=None, error=None):
        self.output = output
        self.error = error
        self.blob = None

    def setInput(self, blob):
        self.blob = blob

    def forward(self):
        if self.error is not None:
            raise self.error
        return self.output


def _ssd(rows):
    return np.array([[rows]], dtype=np.float32)


def test_ssd_rows_reordered_to_top_left_bottom_right():
    output = _ssd([[0, 3, 0.9, 0.2, 0.1, 0.8, 0.6]])

    batch = ssd_output_to_batch(output, capacity=10)

    assert batch.count == 1
    assert batch.capacity == 10
    np.testing.assert_allclose(batch.boxes[0], [0.1, 0.2, 0.6, 0.8])
    assert batch.classes[0] == 3
    assert batch.scores[0] == pytest.approx(0.9)


def test_ssd_output_truncated_to_capacity():
    output = _ssd([[0, 1, 0.9, 0, 0, 1, 1]] * 30)
    batch = ssd_output_to_batch(output, capacity=25)
    assert batch.count == 25
    assert batch.boxes.shape == (25, 4)


def test_class_offset_applied():
    output = _ssd([[0, 18, 0.9, 0, 0, 1, 1]])
    batch = ssd_output_to_batch(output, capacity=5, class_offset=1)
    assert batch.classes[0] == 17


def test_default_offset_and_label_map_name_ssd_ids():
    """SSD ids 1 (person), 3 (car) and 77 (cell phone) decode by name."""
    config = AppConfig()
    labels = load_labels(config.labels.path)
    output = _ssd([
        [0, 1, 0.9, 0.1, 0.1, 0.2, 0.2],
        [0, 3, 0.9, 0.3, 0.3, 0.4, 0.4],
        [0, 77, 0.9, 0.5, 0.5, 0.6, 0.6],
    ])
    batch = ssd_output_to_batch(
        output, capacity=config.model.capacity, class_offset=config.model.class_offset,
    )

    detections = decode(batch, labels, 0.5, config.model.input_size, (640, 480))

    assert [d.label for d in detections] == ["person", "car", "cell phone"]


def test_unexpected_output_shape():
    with pytest.raises(InferenceFailure, match="output shape"):
        ssd_output_to_batch(np.zeros((1, 25, 4), dtype=np.float32), capacity=25)


def test_adapter_builds_nchw_blob():
    net = FakeNet(output=_ssd([[0, 1, 0.9, 0, 0, 1, 1]]))
    adapter = DnnInferenceAdapter(net, capacity=5)

    batch = adapter(np.zeros((32, 48, 3), dtype=np.uint8))

    assert net.blob.shape == (1, 3, 32, 48)
    assert batch.count == 1


def test_adapter_wraps_opencv_errors():
    net = FakeNet(error=cv2.error("forward failed"))
    adapter = DnnInferenceAdapter(net)

    with pytest.raises(InferenceFailure, match="forward"):
        adapter(np.zeros((8, 8, 3), dtype=np.uint8))


def test_invalid_capacity():
    with pytest.raises(ValueError, match="capacity"):
        DnnInferenceAdapter(FakeNet(), capacity=0)


def test_missing_model_file():
    config = ModelConfig(model_path="models/does_not_exist.pb")
    with pytest.raises(FileNotFoundError, match="Model weights not found"):
        load_model(config)


@pytest.mark.skipif(not _MODEL_EXISTS, reason="Model files not found")
def test_adapter_integration_smoke():
    """Smoke test: real network runs on a blank tensor."""
    adapter = DnnInferenceAdapter(load_model(ModelConfig()), capacity=25)
    batch = adapter(np.zeros((320, 320, 3), dtype=np.uint8))
    assert 0 <= batch.count <= batch.capacity
