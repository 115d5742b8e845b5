"""Domain list file helpers."""

from __future__ import annotations

from pathlib import Path

from .domains import normalize_domain


def read_domain_list(path: Path) -> set[str]:
    """Read list entries from disk (normalized, comments skipped)."""
    if not path.exists():
        return set()

    entries: set[str] = set()
    for line in path.read_text().splitlines():
        value = line.strip()
        if not value or value.startswith("#"):
            continue
        normalized = normalize_domain(value)
        if normalized:
            entries.add(normalized)
    return entries
