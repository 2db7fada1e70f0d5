"""
Settings fingerprint - stable digest of the settings that change output bytes.
"""

import hashlib
import json
from typing import Any, Dict, Union

from .config import OUTPUT_AFFECTING_FIELDS, TranscodeConfig


def stable_json(obj: Any) -> str:
    """Serialize with a canonical key order and no insignificant whitespace."""
    return json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False)


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def fingerprint(config: Union[TranscodeConfig, Dict[str, Any]]) -> str:
    """
    Compute the settings fingerprint for a configuration.

    Only output-affecting settings participate: concurrency, verbosity,
    force, dry-run and path fields never change the result.

    Args:
        config: Effective config, or a dict of output-affecting settings

    Returns:
        Hex digest
    """
    if isinstance(config, TranscodeConfig):
        settings = config.output_settings()
    else:
        settings = {}
        for name in OUTPUT_AFFECTING_FIELDS:
            value = config.get(name)
            settings[name] = list(value) if isinstance(value, tuple) else value
    return sha256_text(stable_json(settings))
