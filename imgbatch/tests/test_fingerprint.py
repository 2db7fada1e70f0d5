"""Tests for settings fingerprint."""

import pytest
from imgbatch.config import TranscodeConfig
from imgbatch.fingerprint import fingerprint, stable_json


def _config(**overrides):
    return TranscodeConfig(input_root='images', output_root='public', **overrides)


class TestStableJson:
    """Tests for canonical serialization."""

    def test_key_order_ignored(self):
        """Test key order does not change the serialization."""
        assert stable_json({'b': 1, 'a': [1, 2]}) == stable_json({'a': [1, 2], 'b': 1})

    def test_compact(self):
        """Test no insignificant whitespace is emitted."""
        assert stable_json({'a': 1, 'b': None}) == '{"a":1,"b":null}'


class TestFingerprint:
    """Tests for fingerprint function."""

    def test_deterministic(self):
        """Test equal settings give equal fingerprints."""
        assert fingerprint(_config()) == fingerprint(_config())

    @pytest.mark.parametrize('overrides', [
        {'width': 800},
        {'height': 600},
        {'sizes': [640, 1000]},
        {'formats': ['webp', 'avif']},
        {'formats': ['avif', 'webp']},
        {'suffix': '{w}px'},
        {'quality': 70},
        {'effort': 4},
        {'strip_metadata': False},
        {'without_enlargement': False},
    ])
    def test_output_settings_change_fingerprint(self, overrides):
        """Test each output-affecting setting changes the fingerprint."""
        assert fingerprint(_config(**overrides)) != fingerprint(_config())

    @pytest.mark.parametrize('overrides', [
        {'concurrency': 17},
        {'verbose': True},
        {'quiet': True},
        {'force': True},
        {'dry_run': True},
        {'pattern': ['**/*.png']},
        {'input_root': 'elsewhere'},
        {'output_root': 'elsewhere'},
    ])
    def test_runtime_settings_ignored(self, overrides):
        """Test settings that do not change outputs leave the fingerprint alone."""
        values = {'input_root': 'images', 'output_root': 'public'}
        values.update(overrides)

        assert fingerprint(TranscodeConfig(**values)) == fingerprint(_config())

    def test_dict_matches_config(self):
        """Test a settings dict fingerprints like the equivalent config."""
        config = _config(sizes=[640, 1000], formats=['webp', 'avif'])
        settings = dict(config.output_settings(), concurrency=4)

        assert fingerprint(settings) == fingerprint(config)
