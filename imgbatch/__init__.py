"""
Batch image transcoding with a durable cache.

Each run:
    1. Enumerates source images under an input root
    2. Skips inputs whose outputs are current for the same settings
    3. Resizes and re-encodes the rest on a bounded worker pool
    4. Writes a manifest of every output and a cache for the next run
"""

__version__ = "0.3.0"

from .errors import (
    ImgbatchError,
    FatalError,
    InputRootError,
    ConfigError,
    PerItemError,
    CodecError,
    ReconstructionError,
    OutputCollisionError,
    CacheIOError,
    PersistenceError,
    CacheWriteError,
    ManifestWriteError,
)
from .config import TranscodeConfig, load_config, find_config_file, resolve_config
from .fingerprint import fingerprint
from .work_item import PathInput, BufferInput, WorkItem, OutputUnit
from .manifest import ManifestEntry, Manifest, ManifestAggregator
from .cache_store import CacheRecord, CacheStore
from .skip_decision import SkipDecision, decide
from .image_codec import ImageCodec, EncodeOptions, EncodedImage
from .scheduler import WorkScheduler, TaskOutcome
from .scanner import Scanner
from .run_result import RunResult, FileOutcome
from .progress import Progress
from .pipeline import Pipeline, PipelineState, transcode
from .reporter import Reporter
from .markup import generate_srcset, generate_picture

__all__ = [
    "ImgbatchError",
    "FatalError",
    "InputRootError",
    "ConfigError",
    "PerItemError",
    "CodecError",
    "ReconstructionError",
    "OutputCollisionError",
    "CacheIOError",
    "PersistenceError",
    "CacheWriteError",
    "ManifestWriteError",
    "TranscodeConfig",
    "load_config",
    "find_config_file",
    "resolve_config",
    "fingerprint",
    "PathInput",
    "BufferInput",
    "WorkItem",
    "OutputUnit",
    "ManifestEntry",
    "Manifest",
    "ManifestAggregator",
    "CacheRecord",
    "CacheStore",
    "SkipDecision",
    "decide",
    "ImageCodec",
    "EncodeOptions",
    "EncodedImage",
    "WorkScheduler",
    "TaskOutcome",
    "Scanner",
    "RunResult",
    "FileOutcome",
    "Progress",
    "Pipeline",
    "PipelineState",
    "transcode",
    "Reporter",
    "generate_srcset",
    "generate_picture",
]
