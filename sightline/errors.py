"""
Error taxonomy for the sightline pipeline.

Every error raised here is per-frame and recoverable: the
PipelineCoordinator catches them, logs, and emits an empty result for the
offending frame. Setup failures (missing model, missing labels, invalid
config) use the standard FileNotFoundError / ValueError / RuntimeError
and are the caller's responsibility.
"""


class SightlineError(Exception):
    """Base class for recoverable per-frame pipeline errors."""


class UnsupportedFormat(SightlineError, ValueError):
    """The frame's pixel format cannot be converted to interleaved RGB."""


class ShapeMismatch(SightlineError, ValueError):
    """Raw detection arrays disagree with each other or with the count."""


class InferenceFailure(SightlineError, RuntimeError):
    """The inference boundary failed or returned an unusable result."""
