"""
Reporter - Human-readable run summaries and manifest reports.
"""

import logging
import sys
from collections import defaultdict
from typing import Dict, Optional, TextIO

from .manifest import Manifest
from .run_result import RunResult


class Reporter:
    """
    Generates human-readable reports from run results and manifests.
    """

    def __init__(
        self,
        output: Optional[TextIO] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize reporter.

        Args:
            output: Output stream (default: stdout)
            logger: Optional logger instance
        """
        self.output = output or sys.stdout
        self.logger = logger or logging.getLogger(__name__)

    def _print(self, text: str = "") -> None:
        """Print to output stream."""
        print(text, file=self.output)

    def _format_bytes(self, bytes_val: float) -> str:
        """Format bytes as human-readable string."""
        for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
            if bytes_val < 1024:
                return f"{bytes_val:.1f} {unit}"
            bytes_val /= 1024
        return f"{bytes_val:.1f} PB"

    def _format_duration(self, seconds: float) -> str:
        """Format duration as human-readable string."""
        if seconds < 60:
            return f"{seconds:.1f} seconds"
        elif seconds < 3600:
            return f"{seconds / 60:.1f} minutes"
        else:
            return f"{seconds / 3600:.1f} hours"

    def report_run(self, result: RunResult) -> None:
        """Print the end-of-run summary: processed, cached and failed inputs."""
        self._print()
        self._print("=" * 50)
        self._print("SUMMARY" + (" (DRY RUN)" if result.dry_run else ""))
        self._print("=" * 50)
        self._print(f"Total files found: {result.total_found}")
        self._print(f"Successfully processed: {result.processed_count}")
        self._print(f"Cached (skipped): {result.cached_count}")
        self._print(f"Skipped (errors): {result.failed_count}")
        self._print(f"Time: {self._format_duration(result.elapsed_seconds)}")

        if result.cached:
            self._print()
            self._print("Cached files:")
            for outcome in result.cached:
                self._print(f"  {outcome.file} - {outcome.reason}")

        if result.failed:
            self._print()
            self._print("Skipped files:")
            for outcome in result.failed:
                self._print(f"  {outcome.file} - {outcome.reason}")

        if result.persistence_errors:
            self._print()
            self._print("Write errors:")
            for error in result.persistence_errors:
                self._print(f"  {error}")

        if result.processed:
            self._print()
            verb = "Would process" if result.dry_run else "Processed"
            self._print(f"{verb} {result.processed_count} file(s) successfully.")
        self._print("=" * 50)

    def report_manifest(self, manifest: Manifest) -> None:
        """Print a summary of a manifest: inputs, outputs and bytes per format."""
        self._print("=" * 70)
        self._print("IMAGE MANIFEST SUMMARY")
        self._print("=" * 70)
        self._print()

        if not len(manifest):
            self._print("Manifest contains no entries.")
            self._print()
            return

        self._print(f"  Inputs:      {len(manifest):>12,}")
        self._print(f"  Outputs:     {manifest.total_outputs:>12,}")
        self._print(f"  Total Size:  {self._format_bytes(manifest.total_bytes):>12}")
        self._print()

        counts: Dict[str, int] = defaultdict(int)
        widths: Dict[str, set] = defaultdict(set)
        for entry in manifest.iter_entries():
            counts[entry.format] += 1
            widths[entry.format].add(entry.width)

        bytes_by_format = manifest.bytes_by_format()
        self._print(f"  {'Format':<8} {'Count':>10} {'Total Size':>14} {'Avg Size':>12}  Widths")
        self._print(f"  {'-'*8} {'-'*10} {'-'*14} {'-'*12}  {'-'*20}")
        for fmt in sorted(counts):
            count = counts[fmt]
            total_bytes = bytes_by_format[fmt]
            avg_bytes = total_bytes // count if count > 0 else 0
            width_list = ', '.join(str(w) for w in sorted(widths[fmt]))
            self._print(
                f"  {fmt:<8} {count:>10,} {self._format_bytes(total_bytes):>14} "
                f"{self._format_bytes(avg_bytes):>12}  {width_list}"
            )
        self._print()
