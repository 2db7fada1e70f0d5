"""
Scanner - Enumerates source images under an input root.
"""

import logging
import re
import time
from pathlib import Path
from typing import List, Optional, Sequence, Set

from .errors import InputRootError

# Innermost {a,b,c} group without nested braces
BRACE_PATTERN = re.compile(r'\{([^{}]*,[^{}]*)\}')


def expand_braces(pattern: str) -> List[str]:
    """
    Expand shell-style brace alternatives.

    '**/*.{jpg,png}' -> ['**/*.jpg', '**/*.png']
    """
    match = BRACE_PATTERN.search(pattern)
    if not match:
        return [pattern]

    expanded = []
    head, tail = pattern[:match.start()], pattern[match.end():]
    for option in match.group(1).split(','):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


class Scanner:
    """
    Matches glob patterns against an input root.

    Patterns are relative to the root and support '**' and {a,b}
    alternatives. A pattern starting with '!' excludes its matches.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize scanner.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger(__name__)

    def scan(
        self,
        root: Path,
        patterns: Sequence[str],
        exclude_dir: Optional[Path] = None
    ) -> List[Path]:
        """
        Find input files.

        Args:
            root: Input root directory
            patterns: Glob patterns relative to root
            exclude_dir: Directory whose contents are never inputs
                (the output root, when nested in the input root)

        Returns:
            Sorted absolute paths; empty when nothing matches

        Raises:
            InputRootError: If root does not exist or is not a directory
        """
        start_time = time.time()
        root = Path(root).resolve()

        if not root.exists():
            raise InputRootError(str(root))
        if not root.is_dir():
            raise InputRootError(str(root), 'is not a directory')

        included: Set[Path] = set()
        excluded: Set[Path] = set()

        for pattern in patterns:
            target = excluded if pattern.startswith('!') else included
            for expanded in expand_braces(pattern.lstrip('!')):
                target.update(self._glob(root, expanded))

        files = included - excluded
        if exclude_dir is not None:
            exclude_dir = Path(exclude_dir).resolve()
            # Excluded only when nested below the input root
            if root in exclude_dir.parents:
                files = {f for f in files if exclude_dir not in f.parents}

        result = sorted(files)
        self.logger.debug(
            f"Scan of {root} matched {len(result)} file(s) "
            f"({time.time() - start_time:.2f}s)"
        )
        return result

    def _glob(self, root: Path, pattern: str) -> Set[Path]:
        try:
            return {p for p in root.glob(pattern) if p.is_file()}
        except ValueError as e:
            self.logger.warning(f"Ignoring invalid pattern '{pattern}': {e}")
            return set()
