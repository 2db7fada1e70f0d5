"""
Exception taxonomy for batch transcoding runs.

Fatal errors abort a run before any work is dispatched. Per-item errors
are caught at the input level and recorded on the run result. Persistence
errors happen after dispatching and are reported separately.
"""

from typing import List, Optional


class ImgbatchError(Exception):
    """Base exception for imgbatch errors."""

    pass


class FatalError(ImgbatchError):
    """A condition that makes all work in a run impossible."""

    pass


class InputRootError(FatalError):
    """Input root does not exist or is not a directory."""

    def __init__(self, root: str, reason: str = 'does not exist'):
        self.root = root
        super().__init__(f"Input root {reason}: {root}")


class ConfigError(FatalError):
    """Effective configuration failed validation."""

    def __init__(self, problems: List[str], path: Optional[str] = None):
        self.problems = problems
        self.path = path
        message = '; '.join(problems) or 'invalid configuration'
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class PerItemError(ImgbatchError):
    """Failure confined to a single input."""

    pass


class CodecError(PerItemError):
    """The image codec could not decode or encode an image."""

    pass


class ReconstructionError(PerItemError):
    """An existing output could not be read back for the manifest."""

    pass


class CacheIOError(ImgbatchError):
    """Cache file is unreadable or corrupt."""

    pass


class PersistenceError(ImgbatchError):
    """Writing run artifacts failed after dispatching."""

    artifact = 'Artifact'

    def __init__(self, path: str, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"{self.artifact} write failed for {path}: {cause}")


class CacheWriteError(PersistenceError):
    artifact = 'Cache'


class ManifestWriteError(PersistenceError):
    artifact = 'Manifest'


class OutputCollisionError(PerItemError):
    """Two inputs map to the same output file."""

    def __init__(self, rel_path: str, owner: str):
        self.rel_path = rel_path
        self.owner = owner
        super().__init__(f"Output {rel_path} is already produced by {owner}")
