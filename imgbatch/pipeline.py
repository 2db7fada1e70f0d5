"""
Pipeline - Cache-aware, concurrency-bounded batch transcoding.

A run moves through Enumerating -> CacheLoaded -> Dispatching ->
Aggregating -> Persisting -> Done. Only Dispatching is concurrent: worker
threads decide and transcode one input each and hand back an ItemOutcome.
The cache, manifest and result lists are mutated only by the thread
that calls run().
"""

import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .cache_store import Cache, CacheRecord, CacheStore
from .config import TranscodeConfig
from .errors import (
    CodecError, ManifestWriteError, CacheWriteError, OutputCollisionError, ReconstructionError
)
from .fingerprint import fingerprint
from .image_codec import EncodeOptions, ImageCodec
from .manifest import Manifest, ManifestAggregator, ManifestEntry
from .progress import Progress
from .run_result import FileOutcome, RunResult
from .scanner import Scanner
from .scheduler import TaskOutcome, WorkScheduler
from .skip_decision import SkipDecision, decide
from .work_item import BufferInput, OutputUnit, PathInput, WorkInput, WorkItem

STATUS_PROCESSED = 'processed'
STATUS_CACHED = 'cached'
STATUS_FAILED = 'failed'

# Stricter encoder ceilings for AVIF
AVIF_MAX_QUALITY = 60
AVIF_MAX_EFFORT = 6


class PipelineState(Enum):
    ENUMERATING = 'enumerating'
    CACHE_LOADED = 'cache_loaded'
    DISPATCHING = 'dispatching'
    AGGREGATING = 'aggregating'
    PERSISTING = 'persisting'
    DONE = 'done'


@dataclass
class ItemOutcome:
    """
    Result of one work item's task, folded into the run by the coordinator.

    Attributes:
        item: The work item
        status: 'processed', 'cached' or 'failed'
        reason: Skip reason or verbatim error message
        outputs: Output paths relative to the output root
        entries: Manifest entries (may be empty)
        units: Produced variants (processed items only)
        record: Replacement cache record (processed path inputs only)
    """
    item: WorkItem
    status: str
    reason: str = ''
    outputs: List[str] = field(default_factory=list)
    entries: List[ManifestEntry] = field(default_factory=list)
    units: List[OutputUnit] = field(default_factory=list)
    record: Optional[CacheRecord] = None

    @classmethod
    def failure(cls, item: WorkItem, error: BaseException) -> 'ItemOutcome':
        return cls(item=item, status=STATUS_FAILED, reason=str(error) or error.__class__.__name__)


def clamp_encoding(fmt: str, quality: int, effort: int) -> Tuple[int, int]:
    """Apply per-format quality/effort ceilings before calling the codec."""
    if fmt == 'avif':
        return min(quality, AVIF_MAX_QUALITY), min(effort, AVIF_MAX_EFFORT)
    return quality, effort


def parse_size_marker(filename: str, suffix: str) -> Optional[int]:
    """
    Recover the target size embedded in an output filename.

    'cat-640w.webp' with suffix '{w}w' -> 640
    """
    before, _, after = suffix.partition('{w}')
    pattern = re.compile('-' + re.escape(before) + r'(\d+)' + re.escape(after) + r'\.[^.]+$')
    match = pattern.search(filename)
    if match:
        return int(match.group(1))
    return None


class Pipeline:
    """
    Transcodes a batch of images into resized variants, reusing outputs
    from previous runs when they are still current.
    """

    def __init__(
        self,
        config: TranscodeConfig,
        codec: Optional[ImageCodec] = None,
        scanner: Optional[Scanner] = None,
        progress: Optional[Progress] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize pipeline.

        Args:
            config: Effective configuration
            codec: Image codec (default: Pillow-backed ImageCodec)
            scanner: Input enumerator
            progress: Optional progress tracker
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.codec = codec or ImageCodec(self.logger)
        self.scanner = scanner or Scanner(self.logger)
        self.progress = progress
        self.fingerprint = fingerprint(config)
        self.state = PipelineState.ENUMERATING
        self.cache: Cache = {}
        self._scheduler: Optional[WorkScheduler] = None
        self._stop_requested = False

    def stop(self) -> None:
        """Request the pipeline to start no further inputs."""
        self._stop_requested = True
        if self._scheduler is not None:
            self._scheduler.stop()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def run(self, inputs: Optional[Sequence[WorkInput]] = None) -> RunResult:
        """
        Execute a full run.

        Args:
            inputs: Explicit inputs; by default inputs are enumerated from
                the configured input root and patterns

        Returns:
            RunResult describing processed, cached and failed inputs

        Raises:
            ConfigError: If the configuration is invalid
            InputRootError: If the input root is missing
        """
        config = self.config.validated()
        result = RunResult(dry_run=config.dry_run)
        output_root = None if config.buffer_only else Path(config.output_root).resolve()

        self._set_state(PipelineState.ENUMERATING)
        if inputs is None:
            sources = self._enumerate(output_root)
        else:
            sources = self._dedupe(inputs)
        result.total_found = len(sources)

        if not sources:
            self.logger.info("No input files matched")
            self._set_state(PipelineState.DONE)
            result.finish()
            return result

        if output_root is not None and not config.dry_run:
            output_root.mkdir(parents=True, exist_ok=True)

        store = CacheStore(config.cache_path, self.logger) if config.cache_path else None
        self.cache = store.load() if store else {}
        self._set_state(PipelineState.CACHE_LOADED)

        items = [
            WorkItem.create(source, config.effective_sizes, config.formats, output_root)
            for source in sources
        ]

        self._set_state(PipelineState.DISPATCHING)
        mode_str = " [DRY RUN]" if config.dry_run else ""
        self.logger.debug(
            f"Starting run: {len(items)} inputs x {len(items[0].variants)} variants, "
            f"concurrency {config.concurrency}{mode_str}"
        )
        if self.progress:
            self.progress.on_start(len(items))

        aggregator = ManifestAggregator(self.logger)
        next_cache: Cache = {}
        self._scheduler = WorkScheduler(config.concurrency, self.logger)
        if self._stop_requested:
            self._scheduler.stop()

        settled = set()
        items, collided = self._split_collisions(items)
        for outcome in collided:
            self._fold(outcome, result, aggregator, next_cache)
            settled.add(outcome.item.key)

        for task_outcome in self._scheduler.run(items, self._process_item):
            outcome = self._settle(task_outcome)
            self._fold(outcome, result, aggregator, next_cache)
            settled.add(outcome.item.key)

        # Inputs never started after a stop keep their previous records
        for item in items:
            if item.key not in settled and item.key in self.cache:
                next_cache[item.key] = self.cache[item.key]

        self._set_state(PipelineState.AGGREGATING)
        manifest = aggregator.finalize()
        result.manifest = manifest if len(manifest) else None

        self._set_state(PipelineState.PERSISTING)
        if store is not None and not config.dry_run:
            self._persist(store, next_cache, manifest, result)

        self._set_state(PipelineState.DONE)
        result.finish()

        self.logger.info(
            f"Run complete: {result.processed_count} processed, "
            f"{result.cached_count} cached, {result.failed_count} errors "
            f"({result.elapsed_seconds:.1f}s){mode_str}"
        )
        return result

    def _set_state(self, state: PipelineState) -> None:
        self.state = state
        self.logger.debug(f"Pipeline state: {state.value}")

    def _enumerate(self, output_root: Optional[Path]) -> List[WorkInput]:
        root = Path(self.config.input_root).resolve()
        paths = self.scanner.scan(root, self.config.pattern, exclude_dir=output_root)
        return [PathInput(path=p, root=root) for p in paths]

    def _dedupe(self, inputs: Sequence[WorkInput]) -> List[WorkInput]:
        """Keep the first input per identity key."""
        seen: Dict[str, WorkInput] = {}
        for source in inputs:
            if source.key in seen:
                self.logger.warning(f"Ignoring duplicate input {source.key}")
                continue
            seen[source.key] = source
        return list(seen.values())

    def _split_collisions(self, items: List[WorkItem]) -> Tuple[List[WorkItem], List[ItemOutcome]]:
        """
        Fail inputs whose outputs are already claimed by an earlier input.

        'p.jpg' and 'p.png' both map to 'p-640w.webp'; the first in
        enumeration order keeps it and the later one is never dispatched.
        """
        claimed: Dict[str, str] = {}
        dispatch: List[WorkItem] = []
        collided: List[ItemOutcome] = []

        for item in items:
            rels = self._rel_outputs(item)
            clash = next((rel for rel in rels if rel in claimed), None)
            if clash is not None:
                error = OutputCollisionError(clash, claimed[clash])
                collided.append(ItemOutcome.failure(item, error))
                continue
            for rel in rels:
                claimed[rel] = item.key
            dispatch.append(item)

        return dispatch, collided

    def _settle(self, task_outcome: TaskOutcome) -> ItemOutcome:
        if task_outcome.ok:
            return task_outcome.result
        return ItemOutcome.failure(task_outcome.item, task_outcome.error)

    # Worker-thread side

    def _process_item(self, item: WorkItem) -> ItemOutcome:
        """Decide, then reuse or transcode one input. Never raises."""
        try:
            decision = self._decide(item)
            if decision.skip:
                return self._reuse(item, decision)
            self.logger.debug(f"Processing {item.key}: {decision.reason}")
            return self._transcode(item)
        except Exception as e:
            return ItemOutcome.failure(item, e)

    def _decide(self, item: WorkItem) -> SkipDecision:
        if item.is_buffer:
            return SkipDecision(False, 'in-memory input')
        if item.output_root is None:
            return SkipDecision(False, 'buffer-only mode')
        return decide(
            input_path=item.source.path,
            key=item.key,
            expected_outputs=item.expected_outputs(self.config.suffix),
            fingerprint=self.fingerprint,
            force=self.config.force,
            cache=self.cache,
            logger=self.logger,
        )

    def _rel_outputs(self, item: WorkItem) -> List[str]:
        return [item.rel_output(size, fmt, self.config.suffix) for size, fmt in item.variants]

    def _reuse(self, item: WorkItem, decision: SkipDecision) -> ItemOutcome:
        """Build the outcome for a skipped input, recovering its manifest entries."""
        entries = self._cached_entries(item)
        if entries is None:
            try:
                entries = [self._entry_from_file(item, size, fmt) for size, fmt in item.variants]
            except ReconstructionError as e:
                self.logger.warning(f"No manifest entries for {item.key}: {e}")
                entries = []

        return ItemOutcome(
            item=item,
            status=STATUS_CACHED,
            reason=decision.reason,
            outputs=self._rel_outputs(item),
            entries=entries,
        )

    def _cached_entries(self, item: WorkItem) -> Optional[List[ManifestEntry]]:
        """Entries stored with a matching cache record, or None."""
        record = self.cache.get(item.key)
        if record is None or record.fingerprint != self.fingerprint:
            return None
        if [e.src for e in record.entries] != self._rel_outputs(item):
            return None
        return list(record.entries)

    def _entry_from_file(self, item: WorkItem, size: int, fmt: str) -> ManifestEntry:
        """
        Re-derive a manifest entry from an existing output file.

        Raises:
            ReconstructionError: If the output cannot be read
        """
        rel = item.rel_output(size, fmt, self.config.suffix)
        path = item.output_path(size, fmt, self.config.suffix)
        try:
            byte_size = os.stat(path).st_size
            probed_width, probed_height = self.codec.probe(path)
        except (OSError, CodecError) as e:
            raise ReconstructionError(f"{rel}: {e}") from e

        width = parse_size_marker(path.name, self.config.suffix) or probed_width
        return ManifestEntry(
            src=rel,
            width=width,
            height=probed_height,
            format=fmt,
            bytes=byte_size,
            original_file=item.key,
        )

    def _transcode(self, item: WorkItem) -> ItemOutcome:
        """Produce every variant of one input, in declared order."""
        config = self.config
        source = item.source.data if isinstance(item.source, BufferInput) else item.source.path

        input_mtime = None
        if isinstance(item.source, PathInput):
            input_mtime = os.stat(item.source.path).st_mtime

        units: List[OutputUnit] = []
        entries: List[ManifestEntry] = []

        for size, fmt in item.variants:
            rel = item.rel_output(size, fmt, config.suffix)
            path = item.output_path(size, fmt, config.suffix)

            if config.dry_run:
                units.append(OutputUnit(size=size, format=fmt, rel_path=rel, path=path))
                continue

            quality, effort = clamp_encoding(fmt, config.quality, config.effort)
            encoded = self.codec.transform(source, EncodeOptions(
                target_width=size,
                target_height=config.height,
                allow_upscale=not config.without_enlargement,
                strip_metadata=config.strip_metadata,
                format=fmt,
                quality=quality,
                effort=effort,
            ))

            if path is not None:
                self._write_output(path, encoded.data)

            units.append(OutputUnit(
                size=size,
                format=fmt,
                rel_path=rel,
                path=path,
                width=encoded.width,
                height=encoded.height,
                byte_length=len(encoded.data),
                data=encoded.data if path is None else None,
            ))
            entries.append(ManifestEntry(
                src=rel,
                width=encoded.width,
                height=encoded.height,
                format=fmt,
                bytes=len(encoded.data),
                original_file=item.key,
            ))

        record = None
        if input_mtime is not None and item.output_root is not None and not config.dry_run:
            record = CacheRecord(
                input_path=str(item.source.path),
                input_mtime=input_mtime,
                fingerprint=self.fingerprint,
                output_files=[u.rel_path for u in units],
                entries=entries,
            )

        return ItemOutcome(
            item=item,
            status=STATUS_PROCESSED,
            outputs=[u.rel_path for u in units],
            entries=entries,
            units=units,
            record=record,
        )

    @staticmethod
    def _write_output(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = tempfile.NamedTemporaryFile(
            dir=path.parent, prefix=path.name + '.', suffix='.part', delete=False
        )
        try:
            with tmp:
                tmp.write(data)
            os.chmod(tmp.name, 0o644)
            os.replace(tmp.name, path)
        except OSError:
            os.unlink(tmp.name)
            raise

    # Coordinator side

    def _fold(
        self,
        outcome: ItemOutcome,
        result: RunResult,
        aggregator: ManifestAggregator,
        next_cache: Cache
    ) -> None:
        """Apply one settled outcome to the run's shared state."""
        key = outcome.item.key

        if outcome.status == STATUS_PROCESSED:
            result.processed.append(FileOutcome(file=key, outputs=outcome.outputs))
            result.units[key] = outcome.units
            aggregator.record(key, outcome.entries)
            if outcome.record is not None:
                next_cache[key] = outcome.record
            if self.progress:
                if result.dry_run:
                    self.progress.on_dry_run(key, outcome.outputs)
                else:
                    self.progress.on_file_processed(key, outcome.outputs)

        elif outcome.status == STATUS_CACHED:
            result.cached.append(FileOutcome(file=key, reason=outcome.reason, outputs=outcome.outputs))
            aggregator.record(key, outcome.entries)
            previous = self.cache.get(key)
            if previous is not None:
                next_cache[key] = previous
            if self.progress:
                self.progress.on_file_cached(key, outcome.reason)

        else:
            result.failed.append(FileOutcome(file=key, reason=outcome.reason))
            self.logger.error(f"Error processing {key}: {outcome.reason}")
            if self.progress:
                self.progress.on_file_failed(key, outcome.reason)

        if self.progress:
            self.progress.on_progress_update(result, key)

    def _persist(
        self,
        store: CacheStore,
        cache: Cache,
        manifest: Manifest,
        result: RunResult
    ) -> None:
        """Write cache and manifest; failures are recorded, not raised."""
        try:
            store.save(cache)
        except CacheWriteError as e:
            self.logger.error(str(e))
            result.persistence_errors.append(e)

        if not len(manifest):
            self.logger.debug("No manifest entries, manifest not written")
            return

        try:
            manifest.save(self.config.manifest_path)
            self.logger.info(f"Manifest written to: {self.config.manifest_path}")
        except ManifestWriteError as e:
            self.logger.error(str(e))
            result.persistence_errors.append(e)


def transcode(
    config: TranscodeConfig,
    inputs: Optional[Sequence[WorkInput]] = None,
    codec: Optional[ImageCodec] = None,
    logger: Optional[logging.Logger] = None
) -> RunResult:
    """Run the pipeline once with the given configuration."""
    return Pipeline(config, codec=codec, logger=logger).run(inputs)
