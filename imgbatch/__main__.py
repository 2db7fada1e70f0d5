"""
Main entry point for running the package as a module.

Usage:
    python -m imgbatch build images/ public/img --sizes 640,1000 -f webp,avif
    python -m imgbatch report --manifest public/img/imgbatch-manifest.json
    python -m imgbatch picture --manifest public/img/imgbatch-manifest.json photos/cat.jpg
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
