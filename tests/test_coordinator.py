"""
Tests for the pipeline coordinator.
"""

import numpy as np
import pytest

from sightline.config import AnnouncementConfig, AppConfig, ModelConfig
from sightline.coordinator import PipelineCoordinator
from sightline.detection import RawDetectionBatch
from sightline.errors import InferenceFailure
from sightline.frame import Frame, PixelFormat

LABELS = ["person", "dog", "cat"]
CONFIG = AppConfig(model=ModelConfig(input_size=(32, 32)))


class FakeInference:
    """Returns a canned batch and records the tensors it saw."""

    def __init__(self, classes=(1,), scores=(0.9,), capacity=10):
        self.calls = []
        self.classes = list(classes)
        self.scores = list(scores)
        self.capacity = capacity

    def __call__(self, tensor):
        self.calls.append(tensor)
        n = len(self.scores)
        boxes = np.zeros((self.capacity, 4), dtype=np.float32)
        boxes[:n] = [0.1, 0.2, 0.6, 0.8]
        classes = np.zeros(self.capacity, dtype=np.float32)
        classes[:n] = self.classes
        scores = np.zeros(self.capacity, dtype=np.float32)
        scores[:n] = self.scores
        return RawDetectionBatch(boxes=boxes, classes=classes, scores=scores, count=n)


class ReleaseCounter:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1


def _frame(counter, w=400, h=300):
    return Frame.from_bgr(np.zeros((h, w, 3), dtype=np.uint8), on_release=counter)


def _coordinator(inference=None, config=CONFIG, **kwargs):
    return PipelineCoordinator(LABELS, inference or FakeInference(), config, **kwargs)


def test_process_frame_happy_path():
    """Detections are mapped to the frame size and new labels are spoken."""
    overlay, speech = [], []
    coordinator = _coordinator(overlay_sink=overlay.append, speech_sink=speech.append)
    counter = ReleaseCounter()

    detections, spoken = coordinator.process_frame(_frame(counter))

    assert [d.label for d in detections] == ["dog"]
    assert detections[0].box.left == pytest.approx(80.0)
    assert detections[0].box.top == pytest.approx(30.0)
    assert spoken == {"dog"}
    assert overlay == [detections]
    assert speech == [{"dog"}]
    assert counter.count == 1


def test_tensor_matches_model_input():
    inference = FakeInference()
    config = AppConfig(model=ModelConfig(input_size=(40, 24), input_type="float32"))
    coordinator = _coordinator(inference, config=config)

    coordinator.process_frame(_frame(ReleaseCounter()))

    tensor = inference.calls[0]
    assert tensor.shape == (24, 40, 3)
    assert tensor.dtype == np.float32


def test_display_size_overrides_frame_size():
    coordinator = _coordinator(display_size=(1000, 500))
    detections, _ = coordinator.process_frame(_frame(ReleaseCounter()))
    assert detections[0].box.right == pytest.approx(800.0)
    assert detections[0].box.bottom == pytest.approx(300.0)


def test_repeat_frames_are_not_respoken():
    speech = []
    coordinator = _coordinator(speech_sink=speech.append)

    coordinator.process_frame(_frame(ReleaseCounter()))
    _, spoken = coordinator.process_frame(_frame(ReleaseCounter()))

    assert spoken == set()
    assert speech == [{"dog"}]


def test_reset_allows_reannouncement():
    coordinator = _coordinator()
    coordinator.process_frame(_frame(ReleaseCounter()))

    coordinator.reset()
    _, spoken = coordinator.process_frame(_frame(ReleaseCounter()))

    assert spoken == {"dog"}


def test_cooldown_policy_from_config_uses_clock():
    times = iter([0.0, 1.0, 2.5])
    config = AppConfig(
        model=ModelConfig(input_size=(32, 32)),
        announcement=AnnouncementConfig(policy="cooldown", speak_delay_ms=2000),
    )
    coordinator = _coordinator(config=config, clock=lambda: next(times))

    spoken = [coordinator.process_frame(_frame(ReleaseCounter()))[1] for _ in range(3)]

    assert spoken == [{"dog"}, set(), {"dog"}]


def test_unsupported_format_yields_empty_result():
    counter = ReleaseCounter()
    overlay = []
    coordinator = _coordinator(overlay_sink=overlay.append)
    bad = Frame(np.zeros((4, 4, 2), dtype=np.uint8), PixelFormat.BGR, 4, 4,
                on_release=counter)

    assert coordinator.process_frame(bad) == ([], set())
    assert counter.count == 1
    assert overlay == []


def test_shape_mismatch_yields_empty_result():
    def broken(tensor):
        return RawDetectionBatch(
            boxes=np.zeros((5, 4)), classes=np.zeros(5), scores=np.zeros(5), count=9,
        )

    counter = ReleaseCounter()
    coordinator = _coordinator(broken)

    assert coordinator.process_frame(_frame(counter)) == ([], set())
    assert counter.count == 1


@pytest.mark.parametrize("error", [InferenceFailure("boom"), RuntimeError("boom")])
def test_inference_errors_yield_empty_result(error):
    def failing(tensor):
        raise error

    counter = ReleaseCounter()
    coordinator = _coordinator(failing)

    assert coordinator.process_frame(_frame(counter)) == ([], set())
    assert counter.count == 1


def test_inference_returning_wrong_type_is_a_failure():
    counter = ReleaseCounter()
    coordinator = _coordinator(lambda tensor: None)

    assert coordinator.process_frame(_frame(counter)) == ([], set())
    assert counter.count == 1


def test_session_survives_bad_frame():
    coordinator = _coordinator()
    bad = Frame(np.zeros((4, 4, 2), dtype=np.uint8), PixelFormat.BGR, 4, 4)

    coordinator.process_frame(bad)
    detections, spoken = coordinator.process_frame(_frame(ReleaseCounter()))

    assert len(detections) == 1
    assert spoken == {"dog"}


def test_frame_released_when_sink_raises():
    """Unexpected errors propagate, but the frame is still released once."""
    def exploding_sink(detections):
        raise KeyError("sink")

    counter = ReleaseCounter()
    coordinator = _coordinator(overlay_sink=exploding_sink)

    with pytest.raises(KeyError):
        coordinator.process_frame(_frame(counter))
    assert counter.count == 1


def test_frame_release_is_idempotent():
    counter = ReleaseCounter()
    frame = _frame(counter)
    frame.release()
    frame.release()
    assert counter.count == 1
    assert frame.released


def test_empty_labels_rejected():
    with pytest.raises(ValueError, match="Label table"):
        PipelineCoordinator([], FakeInference(), CONFIG)


@pytest.mark.parametrize("count", [float("nan"), None, 2.5])
def test_malformed_count_yields_empty_result(count):
    def malformed(tensor):
        return RawDetectionBatch(
            boxes=np.zeros((5, 4)), classes=np.zeros(5), scores=np.zeros(5), count=count,
        )

    counter = ReleaseCounter()
    overlay = []
    coordinator = _coordinator(malformed, overlay_sink=overlay.append)

    assert coordinator.process_frame(_frame(counter)) == ([], set())
    assert counter.count == 1
    assert overlay == []


@pytest.mark.parametrize("size", [(0, 0), (640, 0), (-640, 480)])
def test_non_positive_display_size_rejected(size):
    with pytest.raises(ValueError, match="display_size"):
        _coordinator(display_size=size)
