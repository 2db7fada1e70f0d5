"""
HTML helpers for responsive images built from manifest entries.
"""

from html import escape
from typing import List, Optional, Sequence

from .manifest import ManifestEntry


def generate_srcset(entries: Sequence[ManifestEntry], fmt: Optional[str] = None) -> str:
    """
    Build a srcset attribute value.

    Args:
        entries: Manifest entries for one input
        fmt: Only include this format (default: all)

    Returns:
        'a-640w.webp 640w, a-1000w.webp 1000w' ordered by width
    """
    selected = [e for e in entries if fmt is None or e.format == fmt]
    selected.sort(key=lambda e: e.width)
    return ', '.join(f"{e.src} {e.width}w" for e in selected)


def _largest(entries: List[ManifestEntry]) -> ManifestEntry:
    return max(entries, key=lambda e: e.width)


def generate_picture(entries: Sequence[ManifestEntry], alt: str = '') -> str:
    """
    Build a <picture> element: AVIF source, WebP source, then an <img>
    fallback using JPEG when available.
    """
    avif = [e for e in entries if e.format == 'avif']
    webp = [e for e in entries if e.format == 'webp']
    jpeg = [e for e in entries if e.format == 'jpeg']

    lines = ['<picture>']
    if avif:
        lines.append(f'  <source srcset="{escape(generate_srcset(avif))}" type="image/avif">')
    if webp:
        lines.append(f'  <source srcset="{escape(generate_srcset(webp))}" type="image/webp">')

    fallback = jpeg or list(entries)
    if fallback:
        largest = _largest(fallback)
        lines.append(
            f'  <img src="{escape(largest.src)}" srcset="{escape(generate_srcset(fallback))}" '
            f'alt="{escape(alt)}">'
        )

    lines.append('</picture>')
    return '\n'.join(lines)
