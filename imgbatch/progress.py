"""
Progress - Tracks and displays pipeline progress.
"""

import logging
import time
from typing import List, Optional

from .run_result import RunResult


class Progress:
    """
    Displays progress with optional per-file output.

    Called only from the pipeline's coordinating thread.
    """

    def __init__(
        self,
        show_files: bool = False,
        min_interval: float = 0.5,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize progress tracker.

        Args:
            show_files: If True, print each file as it settles
            min_interval: Minimum seconds between summary lines (when not show_files)
            logger: Optional logger instance
        """
        self.show_files = show_files
        self.min_interval = min_interval
        self.logger = logger or logging.getLogger(__name__)
        self.last_logged = 0.0

    def on_start(self, total: int) -> None:
        if not self.show_files:
            self.logger.info(f"Processing {total} files...")

    def on_file_processed(self, key: str, outputs: List[str]) -> None:
        if self.show_files:
            print(f"  [OK] {key} -> {', '.join(outputs)}")

    def on_file_cached(self, key: str, reason: str) -> None:
        if self.show_files:
            print(f"  [CACHED] {key} - {reason}")

    def on_file_failed(self, key: str, error: str) -> None:
        if self.show_files:
            print(f"  [ERROR] {key} - Skipped: {error}")

    def on_dry_run(self, key: str, outputs: List[str]) -> None:
        if self.show_files:
            print(f"  [DRY RUN] {key} -> would write {', '.join(outputs)}")

    def on_progress_update(self, result: RunResult, current: str) -> None:
        """
        Called after each input settles to report overall progress.

        Args:
            result: Result accumulated so far
            current: Key of the input that just settled
        """
        if self.show_files:
            return

        now = time.time()
        done = result.completed_count
        finished = done >= result.total_found
        if not finished and now - self.last_logged < self.min_interval:
            return
        self.last_logged = now

        percent = (done / result.total_found * 100) if result.total_found else 100.0
        self.logger.info(
            f"Progress: {done}/{result.total_found} files ({percent:.0f}%) | "
            f"Elapsed: {result.elapsed_seconds:.0f}s | "
            f"ETA: {result.estimated_remaining_seconds:.0f}s | Current: {current}"
        )
