"""
Pytest fixtures for imgbatch tests.
"""

import io
import os
import threading
import time

import pytest

from imgbatch.errors import CodecError
from imgbatch.image_codec import EncodedImage

# Inputs are dated an hour back so freshly written outputs are always newer
INPUT_AGE_SECONDS = 3600


def write_image(path, size=(1200, 900), color='red', mode='RGB', fmt='JPEG'):
    """Write a solid-color image and return its path."""
    from PIL import Image

    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new(mode, size, color=color)
    img.save(path, format=fmt)
    return path


def age_file(path, seconds=INPUT_AGE_SECONDS):
    """Set a file's mtime to `seconds` in the past."""
    past = time.time() - seconds
    os.utime(path, (past, past))


class FakeCodec:
    """
    Instrumented stand-in for ImageCodec.

    Records every call and the highest number of concurrent calls. Output
    bytes are derived from the options, height is 3/4 of the width.
    """

    def __init__(self, delay=0.0, fail_on=None):
        self.delay = delay
        self.fail_on = fail_on
        self.calls = []
        self.active = 0
        self.high_water = 0
        self._lock = threading.Lock()

    def transform(self, source, options):
        with self._lock:
            self.active += 1
            self.high_water = max(self.high_water, self.active)
            self.calls.append((source, options))
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.fail_on and self.fail_on in str(source):
                raise CodecError("image file is truncated")
            data = f"{options.format}:{options.target_width}:{options.quality}".encode()
            return EncodedImage(
                data=data,
                width=options.target_width,
                height=options.target_width * 3 // 4,
            )
        finally:
            with self._lock:
                self.active -= 1

    def probe(self, path):
        raise CodecError(f"cannot probe {path}")


@pytest.fixture
def image_writer():
    """Fixture providing the write_image helper."""
    return write_image


@pytest.fixture
def file_ager():
    """Fixture providing the age_file helper."""
    return age_file


@pytest.fixture
def codec_factory():
    """Fixture providing the FakeCodec class for tests needing several codecs."""
    return FakeCodec


@pytest.fixture
def fake_codec():
    """Fixture providing an instrumented fake codec."""
    return FakeCodec()


@pytest.fixture
def input_tree(tmp_path):
    """Fixture providing an input directory with three JPEG images."""
    root = tmp_path / 'images'
    for rel in ('a.jpg', 'b.jpg', 'nested/c.jpg'):
        age_file(write_image(root / rel))
    return root


@pytest.fixture
def output_root(tmp_path):
    """Fixture providing an (initially missing) output directory."""
    return tmp_path / 'public'


@pytest.fixture
def make_config(input_tree, output_root):
    """Fixture providing a TranscodeConfig factory bound to the test tree."""
    from imgbatch.config import TranscodeConfig

    def factory(**overrides):
        values = {
            'input_root': str(input_tree),
            'output_root': str(output_root),
            'concurrency': 2,
        }
        values.update(overrides)
        return TranscodeConfig(**values)

    return factory


@pytest.fixture
def sample_image_bytes():
    """Fixture providing sample JPEG image bytes."""
    from PIL import Image

    img = Image.new('RGB', (100, 100), color='red')
    buffer = io.BytesIO()
    img.save(buffer, format='JPEG')
    return buffer.getvalue()


@pytest.fixture
def sample_png_bytes():
    """Fixture providing sample PNG image bytes with transparency."""
    from PIL import Image

    img = Image.new('RGBA', (100, 100), color=(255, 0, 0, 128))
    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def sample_entries():
    """Fixture providing manifest entries for one input."""
    from imgbatch.manifest import ManifestEntry

    entries = []
    for width in (1000, 640):
        for fmt in ('webp', 'avif', 'jpeg'):
            entries.append(ManifestEntry(
                src=f"photos/cat-{width}w.{fmt}",
                width=width,
                height=width * 3 // 4,
                format=fmt,
                bytes=width * 10,
                original_file='photos/cat.jpg',
            ))
    return entries


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    import logging
    return logging.getLogger('test')
