"""Tests for CacheStore and CacheRecord."""

import json

import pytest
from imgbatch.cache_store import CacheRecord, CacheStore
from imgbatch.errors import CacheWriteError
from imgbatch.manifest import ManifestEntry


@pytest.fixture
def sample_record():
    """Fixture providing a cache record with one entry."""
    return CacheRecord(
        input_path='/srv/images/a.jpg',
        input_mtime=1700000000.5,
        fingerprint='abc123',
        output_files=['a-640w.webp'],
        timestamp=1700000100.0,
        entries=[ManifestEntry(
            src='a-640w.webp', width=640, height=480,
            format='webp', bytes=1234, original_file='a.jpg',
        )],
    )


class TestCacheRecord:
    """Tests for CacheRecord dataclass."""

    def test_to_dict(self, sample_record):
        """Test conversion to dictionary."""
        data = sample_record.to_dict()

        assert data['fingerprint'] == 'abc123'
        assert data['output_files'] == ['a-640w.webp']
        assert data['entries'][0]['width'] == 640

    def test_from_dict_without_entries(self):
        """Test records without entries load with an empty list."""
        record = CacheRecord.from_dict({
            'input_path': '/srv/images/a.jpg',
            'input_mtime': 1,
            'fingerprint': 'abc',
            'output_files': ['a-640w.webp'],
        })

        assert record.entries == []
        assert record.input_mtime == 1.0

    def test_from_dict_missing_field(self):
        """Test a record without a fingerprint is rejected."""
        with pytest.raises(KeyError):
            CacheRecord.from_dict({'input_path': 'a', 'input_mtime': 1, 'output_files': []})

    def test_from_dict_bad_outputs(self):
        """Test output_files must be a list."""
        with pytest.raises(TypeError):
            CacheRecord.from_dict({
                'input_path': 'a', 'input_mtime': 1,
                'fingerprint': 'x', 'output_files': 'a.webp',
            })


class TestCacheStore:
    """Tests for CacheStore class."""

    def test_load_missing(self, tmp_path, logger):
        """Test a missing cache file is an empty cache."""
        store = CacheStore(tmp_path / '.imgbatch-cache.json', logger)
        assert store.load() == {}

    def test_load_corrupt(self, tmp_path, logger, caplog):
        """Test a corrupt cache file is an empty cache with a warning."""
        path = tmp_path / '.imgbatch-cache.json'
        path.write_text('{"a.jpg": {"input_path":')

        assert CacheStore(path, logger).load() == {}
        assert 'Ignoring cache' in caplog.text

    def test_load_non_object(self, tmp_path, logger):
        """Test a cache file holding a list is an empty cache."""
        path = tmp_path / '.imgbatch-cache.json'
        path.write_text('[]')

        assert CacheStore(path, logger).load() == {}

    def test_load_drops_malformed_records(self, tmp_path, logger, sample_record):
        """Test bad records are dropped while good ones are kept."""
        path = tmp_path / '.imgbatch-cache.json'
        path.write_text(json.dumps({
            'a.jpg': sample_record.to_dict(),
            'b.jpg': {'input_path': 'b.jpg'},
        }))

        cache = CacheStore(path, logger).load()

        assert list(cache) == ['a.jpg']

    def test_save_and_load(self, tmp_path, logger, sample_record):
        """Test a saved cache loads back equal."""
        store = CacheStore(tmp_path / 'out' / '.imgbatch-cache.json', logger)

        store.save({'a.jpg': sample_record})
        loaded = store.load()

        assert loaded == {'a.jpg': sample_record}

    def test_save_replaces_file(self, tmp_path, logger, sample_record):
        """Test save overwrites the previous cache and leaves no temp file."""
        path = tmp_path / '.imgbatch-cache.json'
        store = CacheStore(path, logger)
        store.save({'a.jpg': sample_record, 'b.jpg': sample_record})

        store.save({'b.jpg': sample_record})

        assert list(json.loads(path.read_text())) == ['b.jpg']
        assert not (tmp_path / '.imgbatch-cache.json.tmp').exists()

    def test_save_failure(self, tmp_path, logger, sample_record):
        """Test write failures raise CacheWriteError."""
        path = tmp_path / '.imgbatch-cache.json'
        path.mkdir()

        with pytest.raises(CacheWriteError) as exc_info:
            CacheStore(path, logger).save({'a.jpg': sample_record})

        assert exc_info.value.path == str(path)
        assert 'Cache write failed' in str(exc_info.value)
