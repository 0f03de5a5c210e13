"""
Announcement debouncing for the sightline pipeline.

Responsibility:
    Decide, frame by frame, which detected labels are worth speaking so
    the user hears new objects promptly without repetitive or
    overlapping speech.

Policies:
    - SET_DIFFERENCE: speak labels absent from the previous announcement.
      The remembered set is replaced by the full current label set each
      time something is announced.
    - COOLDOWN: speak the current label text if it differs from the last
      spoken text, or if SPEAK_DELAY has elapsed since it was spoken.

Constraints:
    - State lives in an explicit AnnouncementState, owned by one
      debouncer. Separate sessions never share history.
    - Not thread-safe. Call from the single pipeline-driving context.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Set

from sightline.detection import Detection

logger = logging.getLogger(__name__)

SPEAK_DELAY_MS = 2000


class AnnouncementPolicy(enum.Enum):
    """Selectable debounce strategies."""

    SET_DIFFERENCE = "set_difference"
    COOLDOWN = "cooldown"


@dataclass
class AnnouncementState:
    """Mutable memory of what was last announced.

    Attributes:
        last_labels: Labels of the most recent announcement batch
                     (set-difference policy).
        last_text: Text of the most recent announcement (cooldown policy).
        last_time: Timestamp, in seconds, of the most recent announcement.
    """

    last_labels: Set[str] = field(default_factory=set)
    last_text: Optional[str] = None
    last_time: Optional[float] = None

    def clear(self) -> None:
        self.last_labels.clear()
        self.last_text = None
        self.last_time = None


def unique_labels(detections: Iterable[Detection]) -> Set[str]:
    return {d.label for d in detections}


class AnnouncementDebouncer:
    """Filters per-frame detections down to the labels to speak now.

    Usage:
        debouncer = AnnouncementDebouncer()                       # set-difference
        debouncer = AnnouncementDebouncer(AnnouncementPolicy.COOLDOWN)
        to_speak = debouncer.decide(detections, time.monotonic())
        debouncer.reset_history()                                 # new session
    """

    def __init__(
        self,
        policy: AnnouncementPolicy = AnnouncementPolicy.SET_DIFFERENCE,
        speak_delay_ms: int = SPEAK_DELAY_MS,
        state: Optional[AnnouncementState] = None,
    ) -> None:
        if speak_delay_ms < 0:
            raise ValueError(f"speak_delay_ms must be >= 0, got {speak_delay_ms}.")

        self._policy = AnnouncementPolicy(policy)
        self._speak_delay = speak_delay_ms / 1000.0
        self._state = state if state is not None else AnnouncementState()

    @property
    def policy(self) -> AnnouncementPolicy:
        return self._policy

    @property
    def state(self) -> AnnouncementState:
        return self._state

    def decide(self, detections: Iterable[Detection], now: float) -> Set[str]:
        """Return the labels that should be spoken for this frame.

        Args:
            detections: The decoded detections for the current frame.
            now: Monotonic timestamp in seconds.

        Returns:
            A possibly empty set of labels.
        """
        current = unique_labels(detections)

        if self._policy is AnnouncementPolicy.COOLDOWN:
            return self._decide_cooldown(current, now)
        return self._decide_set_difference(current, now)

    def reset_history(self) -> None:
        """Forget everything announced so far."""
        self._state.clear()
        logger.debug("Announcement history cleared.")

    def _decide_set_difference(self, current: Set[str], now: float) -> Set[str]:
        new_labels = current - self._state.last_labels
        if not new_labels:
            return set()

        self._state.last_labels = set(current)
        self._state.last_time = now
        return new_labels

    def _decide_cooldown(self, current: Set[str], now: float) -> Set[str]:
        if not current:
            return set()

        text = ", ".join(sorted(current))
        state = self._state
        changed = state.last_text is None or text.lower() != state.last_text.lower()
        expired = state.last_time is None or now - state.last_time >= self._speak_delay

        if not (changed or expired):
            return set()

        state.last_text = text
        state.last_time = now
        return set(current)
