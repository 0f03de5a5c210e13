"""
Configuration management for the sightline assistance pipeline.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No detection logic, I/O, or model loading belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: sightline/config.py → project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


def resolve_path(path: str) -> Path:
    """Resolve a possibly relative path against the project root."""
    resolved = Path(path)
    if not resolved.is_absolute():
        resolved = _PROJECT_ROOT / resolved
    return resolved


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Model-related configuration.

    Attributes:
        model_path: Path to the network weights (relative to project root).
        config_path: Optional network definition file (.pbtxt/.prototxt),
                     empty when the weights file is self-describing.
        backend: Compute backend, 'cpu' or 'cuda'.
        input_size: Spatial dimensions (width, height) of the model input.
        input_type: Model input dtype, 'uint8' or 'float32'.
        capacity: Number of detection slots the model emits per frame.
        class_offset: Constant subtracted from raw class ids. The default
                      label map keeps id 0 ("unknown", background) and the
                      COCO id gaps, so SSD ids index it directly with 0.
                      Use 1 with a cleaned 0-based label map.
    """

    model_path: str = "models/ssd_mobilenet_v2_coco.pb"
    config_path: str = "models/ssd_mobilenet_v2_coco.pbtxt"
    backend: str = "cpu"
    input_size: Tuple[int, int] = (320, 320)
    input_type: str = "uint8"
    capacity: int = 25
    class_offset: int = 0


@dataclass(frozen=True)
class LabelsConfig:
    """Label table location.

    Attributes:
        path: Text file with one class name per line (relative to project root).
              Line i names raw class id i after class_offset is applied.
    """

    path: str = "models/labelmap.txt"


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds and label policy.

    Attributes:
        score_threshold: Detections must score strictly above this value.
        exclude_unknown: Drop detections whose label is "unknown".
    """

    score_threshold: float = 0.5
    exclude_unknown: bool = True


@dataclass(frozen=True)
class AnnouncementConfig:
    """Spoken-announcement policy.

    Attributes:
        policy: 'set_difference' (announce only newly seen labels) or
                'cooldown' (repeat identical text after speak_delay_ms).
        speak_delay_ms: Cooldown window in milliseconds.
        prefix: Phrase spoken before the label list.
    """

    policy: str = "set_difference"
    speak_delay_ms: int = 2000
    prefix: str = "I see: "


@dataclass(frozen=True)
class SpeechConfig:
    """Text-to-speech engine settings.

    Attributes:
        enabled: Whether to speak at all.
        rate: Speech rate in words per minute.
    """

    enabled: bool = True
    rate: int = 160


@dataclass(frozen=True)
class InputConfig:
    """Input source configuration.

    Attributes:
        source: Input source: file path, directory path, video path,
                or integer device index (as string or int).
        resize_width: Optional width to downscale input frames before detection.
                      None means no resizing.
    """

    source: str = "0"
    resize_width: Optional[int] = None


@dataclass(frozen=True)
class VisualizationConfig:
    """Overlay rendering parameters.

    Attributes:
        box_color: BGR color tuple for bounding boxes.
        thickness: Line thickness in pixels.
        show_label: Whether to render the class label.
        show_confidence: Whether to append the confidence score to the label.
    """

    box_color: Tuple[int, int, int] = (0, 255, 255)
    thickness: int = 6
    show_label: bool = True
    show_confidence: bool = False


@dataclass(frozen=True)
class DisplayConfig:
    """On-screen preview.

    Attributes:
        enabled: Show the annotated preview window.
    """

    enabled: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    labels: LabelsConfig = field(default_factory=LabelsConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    announcement: AnnouncementConfig = field(default_factory=AnnouncementConfig)
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    input: InputConfig = field(default_factory=InputConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_BACKENDS = {"cpu", "cuda"}
_VALID_INPUT_TYPES = {"uint8", "float32"}
_VALID_POLICIES = {"set_difference", "cooldown"}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if config.model.backend not in _VALID_BACKENDS:
        raise ValueError(
            f"Invalid model.backend: '{config.model.backend}'. "
            f"Must be one of {_VALID_BACKENDS}."
        )

    if config.model.input_type not in _VALID_INPUT_TYPES:
        raise ValueError(
            f"Invalid model.input_type: '{config.model.input_type}'. "
            f"Must be one of {_VALID_INPUT_TYPES}."
        )

    if len(config.model.input_size) != 2:
        raise ValueError(
            f"model.input_size must be a (width, height) tuple, "
            f"got {config.model.input_size}."
        )

    if any(d <= 0 for d in config.model.input_size):
        raise ValueError(
            f"model.input_size dimensions must be positive, "
            f"got {config.model.input_size}."
        )

    if config.model.capacity <= 0:
        raise ValueError(
            f"model.capacity must be positive, got {config.model.capacity}."
        )

    if not (0.0 <= config.detection.score_threshold <= 1.0):
        raise ValueError(
            f"detection.score_threshold must be in [0.0, 1.0], "
            f"got {config.detection.score_threshold}."
        )

    if config.announcement.policy not in _VALID_POLICIES:
        raise ValueError(
            f"Invalid announcement.policy: '{config.announcement.policy}'. "
            f"Must be one of {_VALID_POLICIES}."
        )

    if config.announcement.speak_delay_ms < 0:
        raise ValueError(
            f"announcement.speak_delay_ms must be >= 0, "
            f"got {config.announcement.speak_delay_ms}."
        )

    if config.speech.rate <= 0:
        raise ValueError(
            f"speech.rate must be positive, got {config.speech.rate}."
        )

    if config.input.resize_width is not None and config.input.resize_width <= 0:
        raise ValueError(
            f"input.resize_width must be positive or None, "
            f"got {config.input.resize_width}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    """Interpret YAML booleans and env-var strings ('1', 'true', 'no', ...)."""
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Cannot interpret '{value}' as a boolean.")
    return bool(value)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "model_path" in raw:
        kwargs["model_path"] = str(raw["model_path"])
    if "config_path" in raw:
        kwargs["config_path"] = str(raw["config_path"] or "")
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "input_type" in raw:
        kwargs["input_type"] = str(raw["input_type"]).lower()
    if "capacity" in raw:
        kwargs["capacity"] = int(raw["capacity"])
    if "class_offset" in raw:
        kwargs["class_offset"] = int(raw["class_offset"])
    return ModelConfig(**kwargs)


def _build_labels_config(raw: dict) -> LabelsConfig:
    """Build LabelsConfig from a raw YAML dict."""
    kwargs = {}
    if "path" in raw:
        kwargs["path"] = str(raw["path"])
    return LabelsConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "score_threshold" in raw:
        kwargs["score_threshold"] = float(raw["score_threshold"])
    if "exclude_unknown" in raw:
        kwargs["exclude_unknown"] = _parse_bool(raw["exclude_unknown"])
    return DetectionConfig(**kwargs)


def _build_announcement_config(raw: dict) -> AnnouncementConfig:
    """Build AnnouncementConfig from a raw YAML dict."""
    kwargs = {}
    if "policy" in raw:
        kwargs["policy"] = str(raw["policy"]).lower()
    if "speak_delay_ms" in raw:
        kwargs["speak_delay_ms"] = int(raw["speak_delay_ms"])
    if "prefix" in raw:
        kwargs["prefix"] = str(raw["prefix"])
    return AnnouncementConfig(**kwargs)


def _build_speech_config(raw: dict) -> SpeechConfig:
    """Build SpeechConfig from a raw YAML dict."""
    kwargs = {}
    if "enabled" in raw:
        kwargs["enabled"] = _parse_bool(raw["enabled"])
    if "rate" in raw:
        kwargs["rate"] = int(raw["rate"])
    return SpeechConfig(**kwargs)


def _build_input_config(raw: dict) -> InputConfig:
    """Build InputConfig from a raw YAML dict."""
    kwargs = {}
    if "source" in raw:
        kwargs["source"] = str(raw["source"])
    if "resize_width" in raw:
        val = raw["resize_width"]
        kwargs["resize_width"] = int(val) if val is not None else None
    return InputConfig(**kwargs)


def _build_visualization_config(raw: dict) -> VisualizationConfig:
    """Build VisualizationConfig from a raw YAML dict."""
    kwargs = {}
    if "box_color" in raw:
        kwargs["box_color"] = _parse_tuple(raw["box_color"], 3, int)
    if "thickness" in raw:
        kwargs["thickness"] = int(raw["thickness"])
    if "show_label" in raw:
        kwargs["show_label"] = _parse_bool(raw["show_label"])
    if "show_confidence" in raw:
        kwargs["show_confidence"] = _parse_bool(raw["show_confidence"])
    return VisualizationConfig(**kwargs)


def _build_display_config(raw: dict) -> DisplayConfig:
    """Build DisplayConfig from a raw YAML dict."""
    kwargs = {}
    if "enabled" in raw:
        kwargs["enabled"] = _parse_bool(raw["enabled"])
    return DisplayConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "SIGHTLINE_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        SIGHTLINE_MODEL_BACKEND=cuda
        SIGHTLINE_DETECTION_SCORE_THRESHOLD=0.6
        SIGHTLINE_ANNOUNCEMENT_POLICY=cooldown

    Only the keys listed below can be overridden from the environment.
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_PATH": ("model", "model_path"),
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}MODEL_INPUT_TYPE": ("model", "input_type"),
        f"{_ENV_PREFIX}LABELS_PATH": ("labels", "path"),
        f"{_ENV_PREFIX}DETECTION_SCORE_THRESHOLD": ("detection", "score_threshold"),
        f"{_ENV_PREFIX}DETECTION_EXCLUDE_UNKNOWN": ("detection", "exclude_unknown"),
        f"{_ENV_PREFIX}ANNOUNCEMENT_POLICY": ("announcement", "policy"),
        f"{_ENV_PREFIX}ANNOUNCEMENT_SPEAK_DELAY_MS": ("announcement", "speak_delay_ms"),
        f"{_ENV_PREFIX}SPEECH_ENABLED": ("speech", "enabled"),
        f"{_ENV_PREFIX}INPUT_SOURCE": ("input", "source"),
        f"{_ENV_PREFIX}INPUT_RESIZE_WIDTH": ("input", "resize_width"),
        f"{_ENV_PREFIX}DISPLAY_ENABLED": ("display", "enabled"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults (safe for
                     programmatic usage).

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = resolve_path(config_path)

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        model=_build_model_config(raw.get("model", {})),
        labels=_build_labels_config(raw.get("labels", {})),
        detection=_build_detection_config(raw.get("detection", {})),
        announcement=_build_announcement_config(raw.get("announcement", {})),
        speech=_build_speech_config(raw.get("speech", {})),
        input=_build_input_config(raw.get("input", {})),
        visualization=_build_visualization_config(raw.get("visualization", {})),
        display=_build_display_config(raw.get("display", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config
