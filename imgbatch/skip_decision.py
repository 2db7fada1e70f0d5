"""
SkipDecision - Decides whether an input's existing outputs can be reused.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .cache_store import Cache

SKIP_CACHED = 'cached (up to date)'
SKIP_OUTPUT_NEWER = 'output newer than input'

REASON_FORCED = 'forced'
REASON_INPUT_UNREADABLE = 'input unreadable'
REASON_NO_OUTPUTS = 'no outputs expected'
REASON_MISSING_OUTPUT = 'must produce'
REASON_STALE = 'input newer than outputs'
REASON_SETTINGS_CHANGED = 'settings changed'


@dataclass(frozen=True)
class SkipDecision:
    """
    Outcome of the skip check for one input.

    Attributes:
        skip: True when existing outputs can be reused
        reason: Human-readable explanation
    """
    skip: bool
    reason: str

    def __bool__(self) -> bool:
        return self.skip


def decide(
    input_path: Path,
    key: str,
    expected_outputs: Sequence[Path],
    fingerprint: str,
    force: bool,
    cache: Cache,
    logger: Optional[logging.Logger] = None
) -> SkipDecision:
    """
    Decide whether processing of one input can be skipped.

    Outputs must all exist and the newest of them must be strictly newer
    than the input. A cache record with a different fingerprint forces
    reprocessing. Outputs that look current but have no cache record are
    still reused.

    Args:
        input_path: Path to the source image
        key: Normalized input key used in the cache
        expected_outputs: Every output path the input should have
        fingerprint: Settings fingerprint of the current run
        force: Never skip when True
        cache: Cache loaded at the start of the run
        logger: Optional logger instance

    Returns:
        SkipDecision
    """
    logger = logger or logging.getLogger(__name__)

    if force:
        return SkipDecision(False, REASON_FORCED)

    try:
        input_mtime = os.stat(input_path).st_mtime
    except OSError as e:
        # Let the processing path surface the real error
        logger.debug(f"Cannot stat {input_path}: {e}")
        return SkipDecision(False, REASON_INPUT_UNREADABLE)

    if not expected_outputs:
        return SkipDecision(False, REASON_NO_OUTPUTS)

    newest_output = 0.0
    for output in expected_outputs:
        try:
            newest_output = max(newest_output, os.stat(output).st_mtime)
        except OSError:
            return SkipDecision(False, REASON_MISSING_OUTPUT)

    if newest_output <= input_mtime:
        return SkipDecision(False, REASON_STALE)

    record = cache.get(key)
    if record is None:
        return SkipDecision(True, SKIP_OUTPUT_NEWER)

    if record.fingerprint == fingerprint:
        return SkipDecision(True, SKIP_CACHED)

    return SkipDecision(False, REASON_SETTINGS_CHANGED)
