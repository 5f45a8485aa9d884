"""
Audio file path helpers.

Resolves where a mantra's rendered MP3 lives and removes files with the
exists/unlink/log policy shared by every deletion path.
"""

import logging
import os
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class RemovalOutcome(str, Enum):
    """What happened when a file removal was attempted."""
    DELETED = "deleted"
    MISSING = "missing"
    FAILED = "failed"


def resolve_mantra_path(
    file_path: Optional[str],
    filename: Optional[str],
    output_dir: Optional[str],
) -> Optional[str]:
    """
    Build the full path of a mantra's MP3 file.

    The stored directory wins; otherwise the configured output directory is
    used. Returns None when there is no filename or no directory to join it to.
    """
    if not filename:
        return None
    directory = file_path or output_dir
    if not directory:
        return None
    return os.path.join(directory, filename)


def remove_file(path: str, label: str = "file") -> RemovalOutcome:
    """
    Remove a file if it exists.

    Never raises: a missing file is logged as a warning and an OSError from
    unlink is logged as an error. Callers that must fail on FAILED check the
    returned outcome.
    """
    try:
        if not os.path.exists(path):
            logger.warning(f"⚠️ {label} not found, skipping: {path}")
            return RemovalOutcome.MISSING
        os.unlink(path)
    except OSError as e:
        logger.error(f"❌ Failed to delete {label} {path}: {e}")
        return RemovalOutcome.FAILED

    logger.info(f"🗑️ Deleted {label}: {path}")
    return RemovalOutcome.DELETED
