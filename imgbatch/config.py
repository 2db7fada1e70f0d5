"""
TranscodeConfig - Effective configuration for a transcoding run.

Settings are resolved in layers: built-in defaults, then an optional JSON
config file, then command line flags. The result is one immutable value
that the pipeline treats as already merged.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConfigError

CONFIG_FILENAME = 'imgbatch.config.json'
SUPPORTED_FORMATS = ('webp', 'avif', 'jpeg')
DEFAULT_PATTERN = ('**/*.{jpg,jpeg,JPG,JPEG,png}',)

# Settings that may appear in a config file or on the command line.
# input_root/output_root are positional CLI arguments only.
LAYERED_FIELDS = (
    'width',
    'height',
    'sizes',
    'without_enlargement',
    'formats',
    'suffix',
    'quality',
    'effort',
    'concurrency',
    'pattern',
    'strip_metadata',
    'verbose',
    'quiet',
    'force',
    'dry_run',
)

# Fields whose values change the bytes of produced outputs.
OUTPUT_AFFECTING_FIELDS = (
    'width',
    'height',
    'sizes',
    'formats',
    'suffix',
    'quality',
    'effort',
    'strip_metadata',
    'without_enlargement',
)


def _default_concurrency() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class TranscodeConfig:
    """
    Effective configuration for one pipeline run.

    Attributes:
        input_root: Directory searched for source images
        output_root: Directory receiving outputs, cache and manifest.
            None selects buffer-only mode (nothing is written).
        width: Target width when no explicit sizes are given
        height: Optional bounding height (fit inside)
        sizes: Explicit list of target widths
        without_enlargement: Never upscale images smaller than the target
        formats: Output formats, in production order
        suffix: Filename suffix pattern; '{w}' is replaced by the size
        quality: Encoder quality (1-100)
        effort: Encoder effort (0-9)
        concurrency: Maximum number of inputs processed at once
        pattern: Glob patterns (relative to input_root) selecting inputs
        strip_metadata: Drop EXIF/ICC metadata from outputs
        verbose: Print a line per file
        quiet: Suppress progress and summary output
        force: Reprocess every input regardless of cache
        dry_run: Decide and compute paths only; write nothing
    """
    input_root: str
    output_root: Optional[str] = None
    width: int = 1000
    height: Optional[int] = None
    sizes: Optional[Tuple[int, ...]] = None
    without_enlargement: bool = True
    formats: Tuple[str, ...] = ('webp',)
    suffix: str = '{w}w'
    quality: int = 78
    effort: int = 6
    concurrency: int = field(default_factory=_default_concurrency)
    pattern: Tuple[str, ...] = DEFAULT_PATTERN
    strip_metadata: bool = True
    verbose: bool = False
    quiet: bool = False
    force: bool = False
    dry_run: bool = False

    def __post_init__(self):
        # Sequences are stored as tuples
        for name in ('sizes', 'formats', 'pattern'):
            value = getattr(self, name)
            if isinstance(value, (list, str)):
                value = (value,) if isinstance(value, str) else tuple(value)
                object.__setattr__(self, name, value)

    @property
    def effective_sizes(self) -> Tuple[int, ...]:
        """Widths to produce: explicit sizes, or the single target width."""
        return tuple(self.sizes) if self.sizes else (self.width,)

    @property
    def buffer_only(self) -> bool:
        """True when outputs are kept in memory instead of written."""
        return self.output_root is None

    @property
    def cache_path(self) -> Optional[Path]:
        if self.output_root is None:
            return None
        return Path(self.output_root) / '.imgbatch-cache.json'

    @property
    def manifest_path(self) -> Optional[Path]:
        if self.output_root is None:
            return None
        return Path(self.output_root) / 'imgbatch-manifest.json'

    def output_settings(self) -> Dict[str, Any]:
        """Return only the settings that change output bytes."""
        settings = {}
        for name in OUTPUT_AFFECTING_FIELDS:
            value = getattr(self, name)
            settings[name] = list(value) if isinstance(value, tuple) else value
        return settings

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.input_root:
            errors.append("input_root is required")

        if not self.formats:
            errors.append("at least one output format is required")
        for fmt in self.formats:
            if fmt not in SUPPORTED_FORMATS:
                errors.append(
                    f"unsupported format '{fmt}' (choose from {', '.join(SUPPORTED_FORMATS)})"
                )

        for size in self.effective_sizes:
            if not isinstance(size, int) or isinstance(size, bool) or size <= 0:
                errors.append(f"size must be a positive integer, got {size!r}")

        if self.height is not None and (not isinstance(self.height, int) or self.height <= 0):
            errors.append(f"height must be a positive integer, got {self.height!r}")

        if not isinstance(self.quality, int) or not 1 <= self.quality <= 100:
            errors.append(f"quality must be in range [1, 100], got {self.quality!r}")

        if not isinstance(self.effort, int) or not 0 <= self.effort <= 9:
            errors.append(f"effort must be in range [0, 9], got {self.effort!r}")

        if not isinstance(self.concurrency, int) or self.concurrency < 1:
            errors.append(f"concurrency must be at least 1, got {self.concurrency!r}")

        if '{w}' not in self.suffix:
            errors.append(f"suffix must contain '{{w}}', got '{self.suffix}'")

        if not self.pattern:
            errors.append("at least one input pattern is required")

        return errors

    def validated(self) -> 'TranscodeConfig':
        """Return self, raising ConfigError if invalid."""
        errors = self.validate()
        if errors:
            raise ConfigError(errors)
        return self

    def with_overrides(self, **overrides: Any) -> 'TranscodeConfig':
        """Return a copy with the given fields replaced (None values ignored)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def find_config_file(working_dir: str, custom_path: Optional[str] = None) -> Optional[Path]:
    """
    Locate a config file.

    Args:
        working_dir: Directory searched for imgbatch.config.json
        custom_path: Explicit path given with --config

    Returns:
        Path to an existing config file, or None
    """
    if custom_path:
        path = Path(custom_path).resolve()
        return path if path.is_file() else None

    path = Path(working_dir) / CONFIG_FILENAME
    if path.is_file():
        return path
    return None


def load_config(
    working_dir: str,
    custom_path: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> Dict[str, Any]:
    """
    Load settings from a config file.

    A missing or unreadable file is not an error; it contributes no settings.

    Returns:
        Dict of recognized settings from the file
    """
    logger = logger or logging.getLogger(__name__)
    path = find_config_file(working_dir, custom_path)

    if path is None:
        if custom_path:
            logger.warning(f"Config file not found: {custom_path}")
        return {}

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: expected a JSON object")
        return {}

    settings = {}
    for key, value in data.items():
        if key in LAYERED_FIELDS:
            settings[key] = value
        else:
            logger.warning(f"Unknown config key '{key}' in {path}")

    logger.debug(f"Loaded {len(settings)} setting(s) from {path}")
    return settings


def resolve_config(
    input_root: str,
    output_root: Optional[str],
    file_values: Optional[Dict[str, Any]] = None,
    cli_values: Optional[Dict[str, Any]] = None
) -> TranscodeConfig:
    """
    Merge defaults < config file < CLI flags into one effective config.

    Args:
        input_root: Input directory
        output_root: Output directory (None for buffer-only mode)
        file_values: Settings from the config file
        cli_values: Settings from command line flags; None means "not set"

    Returns:
        Validated TranscodeConfig

    Raises:
        ConfigError: If the merged configuration is invalid
    """
    merged: Dict[str, Any] = {}
    known = {f.name for f in fields(TranscodeConfig)}

    for layer in (file_values or {}, cli_values or {}):
        for key, value in layer.items():
            if key in known and value is not None:
                merged[key] = value

    try:
        config = TranscodeConfig(
            input_root=input_root,
            output_root=output_root,
            **merged
        )
    except TypeError as e:
        raise ConfigError([str(e)])

    return config.validated()
