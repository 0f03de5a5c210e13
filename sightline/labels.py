"""
Label table loading.

The label table is an ordered list of class names: index i names the
class the model reports as raw class index i. It is loaded once at
startup; the pipeline cannot run without it, so failures here are fatal
and raised to the caller.
"""

import logging
from typing import List

from sightline.config import resolve_path

logger = logging.getLogger(__name__)


def load_labels(path: str) -> List[str]:
    """Read a label map file, one class name per line.

    Surrounding whitespace is stripped and blank lines are skipped.

    Args:
        path: Label file path (relative paths resolve against project root).

    Returns:
        The ordered list of labels.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file contains no labels.
    """
    resolved = resolve_path(path)
    if not resolved.is_file():
        raise FileNotFoundError(
            f"Label map not found.\n"
            f"  Expected: {resolved}\n"
            f"  Provide the file or update 'labels.path' in your config."
        )

    with open(resolved, "r", encoding="utf-8") as f:
        labels = [line.strip() for line in f if line.strip()]

    if not labels:
        raise ValueError(f"Label map is empty: {resolved}")

    logger.info("Loaded %d labels from %s", len(labels), resolved)
    return labels
