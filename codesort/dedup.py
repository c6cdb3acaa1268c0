"""
Deduplication & Cross-Reference Index — which categories hold which content.

Identical bytes may legitimately belong to several categories (two
recovered copies of one file can classify differently, e.g. through
their extension).  The index guarantees:
  • at most ONE copy of a content hash per category container
  • every category a hash was classified under receives a copy, but only
    at the end of the run (reconcile), never inline by a worker

Locking is per hash bucket (first two hex digits → 256 buckets), so
workers only contend when they register hashes with the same prefix.
The index is ephemeral: one per run, cleared after reconciliation.
"""

from __future__ import annotations

import os
import hashlib
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from .categories import Category

logger = logging.getLogger(__name__)

BUCKET_COUNT = 256
HASH_CHUNK = 1024 * 1024


def hash_file(path: str, chunk_size: int = HASH_CHUNK) -> str:
    """SHA-256 of the full file content (streamed)."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass
class HashEntry:
    """Every placement of one content hash during a run."""
    content_hash: str
    first_source: str
    categories: list[Category] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    placements: dict[str, str] = field(default_factory=dict)  # label → output path

    @property
    def labels(self) -> list[str]:
        return [c.label for c in self.categories]

    def copy_source(self) -> Optional[str]:
        """Best path to copy the content from: a written copy, else a surviving source."""
        for path in self.placements.values():
            if os.path.exists(path):
                return path
        for path in self.sources:
            if os.path.exists(path):
                return path
        return None


@dataclass(frozen=True)
class RegisterResult:
    is_new_for_category: bool
    is_new_hash: bool = False
    # Known hash, new category: the copy is made by reconcile()
    deferred: bool = False


@dataclass
class ReconcileReport:
    entries: int = 0            # entries with at least one missing placement
    propagated: int = 0         # copies made
    failed: int = 0


class _Bucket:
    __slots__ = ("lock", "entries")

    def __init__(self):
        self.lock = threading.Lock()
        self.entries: dict[str, HashEntry] = {}


class CrossReferenceIndex:
    """Thread-safe content-hash → categories index for one run."""

    def __init__(self):
        self._buckets = [_Bucket() for _ in range(BUCKET_COUNT)]

    def _bucket(self, content_hash: str) -> _Bucket:
        return self._buckets[int(content_hash[:2], 16) % BUCKET_COUNT]

    def register(
        self,
        content_hash: str,
        category: Category,
        source_path: str = "",
    ) -> RegisterResult:
        """
        Record that `content_hash` was classified under `category`.

        Returns is_new_for_category=True only for the first sighting of
        the hash; the caller writes exactly then.  A repeat under the same
        category is a duplicate; a repeat under a different category is
        recorded (deferred=True) and copied by reconcile().
        """
        bucket = self._bucket(content_hash)
        with bucket.lock:
            entry = bucket.entries.get(content_hash)
            if entry is None:
                bucket.entries[content_hash] = HashEntry(
                    content_hash=content_hash,
                    first_source=source_path,
                    categories=[category],
                    sources=[source_path] if source_path else [],
                )
                return RegisterResult(is_new_for_category=True, is_new_hash=True)

            if source_path:
                entry.sources.append(source_path)
            if any(c.label == category.label for c in entry.categories):
                return RegisterResult(is_new_for_category=False)
            entry.categories.append(category)
            return RegisterResult(is_new_for_category=False, deferred=True)

    def mark_written(self, content_hash: str, category: Category, path: str):
        bucket = self._bucket(content_hash)
        with bucket.lock:
            entry = bucket.entries.get(content_hash)
            if entry is not None:
                entry.placements.setdefault(category.label, path)

    def get(self, content_hash: str) -> Optional[HashEntry]:
        bucket = self._bucket(content_hash)
        with bucket.lock:
            return bucket.entries.get(content_hash)

    def entries(self) -> list[HashEntry]:
        out: list[HashEntry] = []
        for bucket in self._buckets:
            with bucket.lock:
                out.extend(bucket.entries.values())
        return out

    def __len__(self) -> int:
        return sum(len(b.entries) for b in self._buckets)

    def reconcile(
        self,
        materialize: Callable[[HashEntry, Category], Optional[str]],
    ) -> ReconcileReport:
        """
        Copy content into every category that still has no placement.

        Covers both multi-category hashes and hashes whose first write
        failed (later identical files were treated as duplicates).

        `materialize(entry, category)` writes one copy and returns its
        path (or None).  Categories that already hold a placement are
        never written again, so each container gets exactly one copy.
        """
        report = ReconcileReport()
        for entry in self.entries():
            missing = [c for c in list(entry.categories)
                       if c.label not in entry.placements]
            if not missing:
                continue
            report.entries += 1
            for category in missing:
                try:
                    path = materialize(entry, category)
                except OSError as e:
                    logger.warning("Reconcile: could not copy %s into %s: %s",
                                   entry.content_hash[:12], category.directory, e)
                    report.failed += 1
                    continue
                if path:
                    self.mark_written(entry.content_hash, category, path)
                    report.propagated += 1
                else:
                    report.failed += 1

        logger.info("Reconcile: %d incomplete hashes, %d copies propagated, %d failed",
                    report.entries, report.propagated, report.failed)
        return report

    def clear(self):
        for bucket in self._buckets:
            with bucket.lock:
                bucket.entries.clear()
