"""
utils.py – Canonical keys, ring IDs and time helpers.

Canonical deduplication
-----------------------
A cycle [A,B,C] found from A, B and C (or a chain reached from several start
nodes) is the same physical grouping.  Sorting the member IDs gives a key that
is independent of rotation and traversal start, so each grouping is recorded
and materialised once.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Hashable, Iterable, Iterator, List, Sequence, Tuple

MS_PER_HOUR = 60 * 60 * 1000
MS_PER_DAY = 24 * MS_PER_HOUR


def canonical_key(nodes: Iterable[str]) -> Tuple[str, ...]:
    """Sorted member tuple; identical for every rotation / start point."""
    return tuple(sorted(nodes))


def ring_signature(pattern: str, nodes: Iterable[str]) -> str:
    """Pattern-qualified canonical signature, e.g. ``cycle_length_3::A,B,C``."""
    return f"{pattern}::{','.join(canonical_key(nodes))}"


def format_ring_id(n: int) -> str:
    return f"RING_{n:03d}"


def unique_in_order(items: Iterable[Hashable]) -> List:
    """Distinct items in first-seen order."""
    return list(dict.fromkeys(items))


def to_epoch_ms(ts: datetime) -> int:
    """Epoch milliseconds; naive timestamps are taken as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp() * 1000)


def iter_chunks(items: Sequence, size: int) -> Iterator[Sequence]:
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]
