"""Label comparison for enumerated field options.

Matching is exact after trimming surrounding whitespace and lowercasing.
"""

from __future__ import annotations


def normalize_label(label: str | None) -> str:
    """Return the comparison key for a human-readable label."""
    return (label or "").strip().lower()


def labels_match(a: str | None, b: str | None) -> bool:
    """Return True if both labels share the same comparison key."""
    return normalize_label(a) == normalize_label(b)
