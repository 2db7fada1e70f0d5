"""
WorkItem - One source image and the outputs requested for it.
"""

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple, Union


@dataclass(frozen=True)
class PathInput:
    """
    Source image on disk.

    Attributes:
        path: Absolute path to the image
        root: Input root the path was enumerated from
    """
    path: Path
    root: Path

    @property
    def key(self) -> str:
        """Identity key: path relative to the input root, '/' separated."""
        return self.path.relative_to(self.root).as_posix()

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class BufferInput:
    """
    Source image held in memory.

    Attributes:
        identifier: Synthetic relative name (e.g. 'uploads/hero.jpg')
        data: Encoded image bytes
    """
    identifier: str
    data: bytes = field(repr=False)

    @property
    def key(self) -> str:
        return PurePosixPath(self.identifier).as_posix()

    @property
    def filename(self) -> str:
        return PurePosixPath(self.identifier).name


WorkInput = Union[PathInput, BufferInput]


def output_rel_path(key: str, suffix: str, size: int, fmt: str) -> str:
    """
    Compute an output path relative to the output root.

    'photos/cat.jpg' with suffix '{w}w', size 640, format 'webp'
    becomes 'photos/cat-640w.webp'.
    """
    rel = PurePosixPath(key)
    size_suffix = suffix.replace('{w}', str(size))
    name = f"{rel.stem}-{size_suffix}.{fmt}"
    return (rel.parent / name).as_posix()


@dataclass(frozen=True)
class WorkItem:
    """
    One input plus every (size, format) pair to produce for it.

    Attributes:
        source: PathInput or BufferInput
        variants: (size, format) pairs in production order
        output_root: Output directory, or None in buffer-only mode
    """
    source: WorkInput
    variants: Tuple[Tuple[int, str], ...]
    output_root: Optional[Path] = None

    @classmethod
    def create(
        cls,
        source: WorkInput,
        sizes: Tuple[int, ...],
        formats: Tuple[str, ...],
        output_root: Optional[Path] = None
    ) -> 'WorkItem':
        """Build a work item producing every size in every format, sizes outermost."""
        variants = tuple((size, fmt) for size in sizes for fmt in formats)
        return cls(source=source, variants=variants, output_root=output_root)

    @property
    def key(self) -> str:
        return self.source.key

    @property
    def is_buffer(self) -> bool:
        return isinstance(self.source, BufferInput)

    def rel_output(self, size: int, fmt: str, suffix: str) -> str:
        return output_rel_path(self.key, suffix, size, fmt)

    def output_path(self, size: int, fmt: str, suffix: str) -> Optional[Path]:
        """Absolute output path for one variant, or None in buffer-only mode."""
        if self.output_root is None:
            return None
        return self.output_root / self.rel_output(size, fmt, suffix)

    def expected_outputs(self, suffix: str) -> List[Path]:
        """All output paths for this item, in production order."""
        if self.output_root is None:
            return []
        return [self.output_path(size, fmt, suffix) for size, fmt in self.variants]


@dataclass
class OutputUnit:
    """
    One produced (size, format) variant of a work item.

    Attributes:
        size: Requested target width
        format: Output format tag ('webp', 'avif', 'jpeg')
        rel_path: Output path relative to the output root
        path: Absolute output path, None in buffer-only mode
        width: Resulting width in pixels (0 in dry-run mode)
        height: Resulting height in pixels (0 in dry-run mode)
        byte_length: Encoded size in bytes
        data: Encoded bytes, kept only in buffer-only mode
    """
    size: int
    format: str
    rel_path: str
    path: Optional[Path] = None
    width: int = 0
    height: int = 0
    byte_length: int = 0
    data: Optional[bytes] = field(default=None, repr=False)
