"""
RunResult - Outcome of a pipeline run.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import PersistenceError
from .manifest import Manifest
from .work_item import OutputUnit


@dataclass(frozen=True)
class FileOutcome:
    """
    One input's entry in the run summary.

    Attributes:
        file: Input identity key
        reason: Why it was cached or failed (verbatim error message)
        outputs: Output paths relative to the output root
    """
    file: str
    reason: str = ''
    outputs: List[str] = field(default_factory=list)


@dataclass
class RunResult:
    """
    Summary of a pipeline run.

    Attributes:
        total_found: Number of inputs enumerated
        processed: Inputs transcoded this run
        cached: Inputs skipped because their outputs were current
        failed: Inputs skipped because of an error
        manifest: Manifest of the run, None when no input produced entries
        units: Produced variants per input key (buffer-only mode)
        persistence_errors: Cache/manifest write failures
        dry_run: Whether the run wrote nothing
        start_time: Start timestamp
        end_time: End timestamp, set when the run finishes
    """
    total_found: int = 0
    processed: List[FileOutcome] = field(default_factory=list)
    cached: List[FileOutcome] = field(default_factory=list)
    failed: List[FileOutcome] = field(default_factory=list)
    manifest: Optional[Manifest] = None
    units: Dict[str, List[OutputUnit]] = field(default_factory=dict)
    persistence_errors: List[PersistenceError] = field(default_factory=list)
    dry_run: bool = False
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    @property
    def processed_count(self) -> int:
        return len(self.processed)

    @property
    def cached_count(self) -> int:
        return len(self.cached)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def completed_count(self) -> int:
        """Total settled (processed + cached + failed)."""
        return self.processed_count + self.cached_count + self.failed_count

    @property
    def remaining_count(self) -> int:
        return self.total_found - self.completed_count

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time in seconds."""
        end = self.end_time if self.end_time is not None else time.time()
        return end - self.start_time

    @property
    def rate_per_second(self) -> float:
        """Settled inputs per second."""
        if self.elapsed_seconds > 0:
            return self.completed_count / self.elapsed_seconds
        return 0.0

    @property
    def estimated_remaining_seconds(self) -> float:
        if self.rate_per_second > 0:
            return self.remaining_count / self.rate_per_second
        return 0.0

    @property
    def ok(self) -> bool:
        """True when no input failed and all artifacts were written."""
        return not self.failed and not self.persistence_errors

    def finish(self) -> None:
        self.end_time = time.time()
