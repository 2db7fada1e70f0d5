"""
CacheStore - Durable record of which inputs were processed, and how.
"""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .errors import CacheIOError, CacheWriteError
from .manifest import ManifestEntry

Cache = Dict[str, 'CacheRecord']


@dataclass
class CacheRecord:
    """
    Proof that an input was processed under a given fingerprint.

    Attributes:
        input_path: Resolved path of the input
        input_mtime: Input modification time (seconds) at processing time
        fingerprint: Settings fingerprint used
        output_files: Output paths relative to the output root, in order
        timestamp: When the record was created (seconds since epoch)
        entries: Manifest entries produced, so skips need not re-read outputs
    """
    input_path: str
    input_mtime: float
    fingerprint: str
    output_files: List[str]
    timestamp: float = field(default_factory=time.time)
    entries: List[ManifestEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'input_path': self.input_path,
            'input_mtime': self.input_mtime,
            'fingerprint': self.fingerprint,
            'output_files': list(self.output_files),
            'timestamp': self.timestamp,
            'entries': [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CacheRecord':
        """
        Create from dictionary.

        Raises:
            KeyError, TypeError, ValueError: If required fields are missing or malformed
        """
        output_files = data['output_files']
        if not isinstance(output_files, list):
            raise TypeError("output_files must be a list")
        return cls(
            input_path=str(data['input_path']),
            input_mtime=float(data['input_mtime']),
            fingerprint=str(data['fingerprint']),
            output_files=[str(p) for p in output_files],
            timestamp=float(data.get('timestamp', 0.0)),
            entries=[ManifestEntry.from_dict(e) for e in data.get('entries', [])],
        )


class CacheStore:
    """
    Loads and saves the cache file for one output root.

    A missing or corrupt cache is a cold start, never an error. Saves
    overwrite the whole file through a temp file and rename.
    """

    def __init__(self, path: Path, logger: Optional[logging.Logger] = None):
        """
        Initialize cache store.

        Args:
            path: Location of the cache file
            logger: Optional logger instance
        """
        self.path = Path(path)
        self.logger = logger or logging.getLogger(__name__)

    def load(self) -> Cache:
        """
        Read the cache.

        Returns:
            Mapping of input key to CacheRecord (empty on missing/corrupt file)
        """
        try:
            data = self._read()
        except FileNotFoundError:
            self.logger.debug(f"No cache at {self.path}, starting cold")
            return {}
        except CacheIOError as e:
            self.logger.warning(f"Ignoring cache: {e}")
            return {}

        cache: Cache = {}
        for key, record_data in data.items():
            try:
                cache[key] = CacheRecord.from_dict(record_data)
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning(f"Dropping malformed cache record for {key}: {e}")

        self.logger.debug(f"Loaded {len(cache)} cache record(s) from {self.path}")
        return cache

    def _read(self) -> dict:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            raise
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CacheIOError(f"cannot read {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise CacheIOError(f"{self.path} does not contain a JSON object")
        return data

    def save(self, cache: Cache) -> None:
        """
        Replace the cache file with the given cache.

        Raises:
            CacheWriteError: If the file cannot be written
        """
        tmp = self.path.with_name(self.path.name + '.tmp')
        data = {key: record.to_dict() for key, record in sorted(cache.items())}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            raise CacheWriteError(str(self.path), e) from e
        self.logger.debug(f"Saved {len(cache)} cache record(s) to {self.path}")
