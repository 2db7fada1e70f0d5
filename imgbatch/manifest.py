"""
Manifest - Index of every produced output, organized by source input.
"""

import json
import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .errors import ManifestWriteError


@dataclass(frozen=True)
class ManifestEntry:
    """
    One produced output of a source image.

    Attributes:
        src: Output path relative to the output root, '/' separated
        width: Output width in pixels
        height: Output height in pixels
        format: Output format ('webp', 'avif', 'jpeg')
        bytes: Output size in bytes
        original_file: Identity key of the source input
    """
    src: str
    width: int
    height: int
    format: str
    bytes: int
    original_file: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'ManifestEntry':
        return cls(
            src=data['src'],
            width=int(data['width']),
            height=int(data['height']),
            format=data['format'],
            bytes=int(data['bytes']),
            original_file=data['original_file'],
        )


@dataclass
class Manifest:
    """
    Mapping of input identity key to its ordered output entries.

    Attributes:
        entries: input key -> entries in (size, format) production order
    """
    entries: Dict[str, List[ManifestEntry]]

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: str) -> bool:
        return key in self.entries

    def __getitem__(self, key: str) -> List[ManifestEntry]:
        return self.entries[key]

    def keys(self) -> List[str]:
        return list(self.entries.keys())

    def iter_entries(self) -> Iterator[ManifestEntry]:
        """Yield every entry across all inputs."""
        for entries in self.entries.values():
            yield from entries

    @property
    def total_outputs(self) -> int:
        return sum(len(e) for e in self.entries.values())

    @property
    def total_bytes(self) -> int:
        return sum(e.bytes for e in self.iter_entries())

    def bytes_by_format(self) -> Dict[str, int]:
        """Total output bytes per format."""
        totals: Dict[str, int] = {}
        for entry in self.iter_entries():
            totals[entry.format] = totals.get(entry.format, 0) + entry.bytes
        return totals

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            key: [entry.to_dict() for entry in entries]
            for key, entries in self.entries.items()
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Manifest':
        """Create from dictionary."""
        return cls(entries={
            key: [ManifestEntry.from_dict(e) for e in entries]
            for key, entries in data.items()
        })

    def save(self, filepath: Path) -> None:
        """
        Write the manifest as JSON, replacing any previous file.

        Raises:
            ManifestWriteError: If the file cannot be written
        """
        path = Path(filepath)
        tmp = path.with_name(path.name + '.tmp')
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, indent=2)
            os.replace(tmp, path)
        except OSError as e:
            raise ManifestWriteError(str(path), e) from e

    @classmethod
    def load(cls, filepath: Path) -> 'Manifest':
        """Load manifest from JSON file."""
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls.from_dict(data)


class ManifestAggregator:
    """
    Accumulates per-input entry lists during a run.

    Not thread-safe: the pipeline calls it only from its coordinating
    thread. record() is called at most once per input key per run.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._entries: Dict[str, List[ManifestEntry]] = {}
        self.logger = logger or logging.getLogger(__name__)

    def record(self, key: str, entries: List[ManifestEntry]) -> None:
        """Add the complete entry list for one input."""
        if not entries:
            return
        if key in self._entries:
            self.logger.warning(f"Replacing manifest entries recorded twice for {key}")
        self._entries[key] = list(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def finalize(self) -> Manifest:
        """Return the accumulated manifest (possibly empty), keys sorted."""
        return Manifest(entries=dict(sorted(self._entries.items())))
