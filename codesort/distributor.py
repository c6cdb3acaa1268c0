"""
Work Distributor — shard the candidate list across worker threads.

Architecture:
  • Candidates are enumerated once and split into N contiguous shards
    whose lengths differ by at most one.
  • One worker thread per shard runs  load → filter → classify → hash →
    register → write  for each candidate, in shard order.
  • Workers share exactly two things: the ProgressCounter (one lock) and
    the CrossReferenceIndex (one lock per hash bucket).
  • Output paths are  <dest>/<category dir>/<name>_<hash[:12]><ext>,  and
    the index hands out each (hash, category) pair once, so no two
    workers ever write the same path.

Every candidate is counted exactly once — written, duplicate, deferred,
skipped or failed — so the counter always ends at the candidate total
unless the run is cancelled.
"""

from __future__ import annotations

import os
import time
import queue
import shutil
import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from .categories import Category, project_category
from .classifier import Candidate, ClassificationResult, Classifier, file_extension
from .config import SortConfig
from .dedup import CrossReferenceIndex, HashEntry, ReconcileReport, hash_bytes, hash_file
from .progress import ProgressCounter

logger = logging.getLogger(__name__)

# ── Candidate outcomes ──
WRITTEN = "written"
DUPLICATE = "duplicate"
DEFERRED = "deferred"
SKIPPED = "skipped"
FAILED = "failed"

PART_SUFFIX = ".part"


@dataclass
class WorkerResult:
    """Counts from a single worker thread."""
    worker_id: int
    shard_size: int
    processed: int = 0
    written: int = 0
    duplicates: int = 0
    deferred: int = 0
    skipped: int = 0
    failed: int = 0
    elapsed: float = 0.0
    by_category: Counter = field(default_factory=Counter)

    def record(self, status: str, label: str = ""):
        self.processed += 1
        if status == WRITTEN:
            self.written += 1
        elif status == DUPLICATE:
            self.duplicates += 1
        elif status == DEFERRED:
            self.deferred += 1
        elif status == SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
        if label and status != SKIPPED:
            self.by_category[label] += 1


@dataclass
class RunResult:
    total: int
    workers: list[WorkerResult] = field(default_factory=list)
    cancelled: bool = False
    elapsed: float = 0.0
    reconcile: Optional[ReconcileReport] = None

    def _sum(self, attr: str) -> int:
        return sum(getattr(w, attr) for w in self.workers)

    @property
    def processed(self) -> int:
        return self._sum("processed")

    @property
    def written(self) -> int:
        return self._sum("written")

    @property
    def duplicates(self) -> int:
        return self._sum("duplicates")

    @property
    def deferred(self) -> int:
        return self._sum("deferred")

    @property
    def skipped(self) -> int:
        return self._sum("skipped")

    @property
    def failed(self) -> int:
        return self._sum("failed")

    @property
    def by_category(self) -> Counter:
        total: Counter = Counter()
        for w in self.workers:
            total.update(w.by_category)
        return total


# ─────────────────────────────────────────────────────────────
#  Enumeration & sharding
# ─────────────────────────────────────────────────────────────

def enumerate_candidates(source_dirs: list[str], exclude: tuple[str, ...] = ()) -> list[str]:
    """All regular files under the source directories, sorted, excluding `exclude` trees."""
    excluded = {os.path.abspath(e) for e in exclude}
    found: list[str] = []
    for src in source_dirs:
        for root, dirs, files in os.walk(src):
            dirs[:] = sorted(d for d in dirs
                             if os.path.abspath(os.path.join(root, d)) not in excluded)
            for name in sorted(files):
                path = os.path.join(root, name)
                if os.path.isfile(path) and not os.path.islink(path):
                    found.append(path)
    return found


def optimal_worker_count(candidate_count: int, config: SortConfig) -> int:
    """
    Number of worker threads for a run.

    Rules:
      • An explicit shard_count wins, clamped to [1, candidate_count].
      • Otherwise min(cpu_count, max_workers, candidate_count).
    """
    if candidate_count <= 0:
        return 1
    if config.shard_count > 0:
        return max(1, min(config.shard_count, candidate_count))
    cpu_count = os.cpu_count() or 2
    return max(1, min(cpu_count, config.max_workers, candidate_count))


def split_shards(items: list, shard_count: int) -> list[list]:
    """
    Split `items` into contiguous shards whose lengths differ by at most one.

    shard_count is clamped to [1, len(items)]; an empty list gives [[]].
    """
    if not items:
        return [[]]
    n = max(1, min(shard_count, len(items)))
    base, extra = divmod(len(items), n)
    shards = []
    start = 0
    for i in range(n):
        size = base + (1 if i < extra else 0)
        shards.append(items[start:start + size])
        start += size
    return shards


# ─────────────────────────────────────────────────────────────
#  Writing
# ─────────────────────────────────────────────────────────────

def output_name(source_path: str, category: Category, content_hash: str,
                rename_by_category: bool = True) -> str:
    stem, ext = os.path.splitext(os.path.basename(source_path))
    tag = content_hash[:12]
    # Project categories have no extension of their own
    if rename_by_category and category.extension:
        return f"{stem}_{tag}.{category.extension}"
    return f"{stem}_{tag}{ext}"


def write_file(src: str, dest: str, move: bool = False):
    """Copy (or move) src to dest through a temporary .part file."""
    os.makedirs(os.path.dirname(dest), exist_ok=True)
    tmp = dest + PART_SUFFIX
    try:
        shutil.copy2(src, tmp)
        os.replace(tmp, dest)
    except OSError:
        try:
            os.remove(tmp)
        except OSError:
            pass
        raise
    if move:
        try:
            os.remove(src)
        except OSError as e:
            logger.warning("Copied but could not remove source %s: %s", src, e)


# ─────────────────────────────────────────────────────────────
#  Distributor
# ─────────────────────────────────────────────────────────────

class WorkDistributor:
    """Runs one worker thread per shard over a fixed candidate list."""

    def __init__(
        self,
        config: SortConfig,
        classifier: Optional[Classifier] = None,
        index: Optional[CrossReferenceIndex] = None,
        progress_channel: Optional[queue.Queue] = None,
    ):
        self.config = config
        self.classifier = classifier or Classifier(config.classifier_config())
        self.index = index if index is not None else CrossReferenceIndex()
        self.counter: Optional[ProgressCounter] = None
        self._channel = progress_channel
        self._cancel = threading.Event()
        self._records: list[dict] = []
        self._records_lock = threading.Lock()
        self._skip_exts = {e.lower().lstrip(".") for e in config.skip_extensions}
        self._keywords = [(k, k.casefold()) for k in config.project_keywords]

    # ── Control ──

    def cancel(self):
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def get_records(self) -> list[dict]:
        with self._records_lock:
            return list(self._records)

    # ── Run ──

    def run(self, candidates: list[str], shard_count: int) -> RunResult:
        """
        Process every candidate exactly once across `shard_count` workers.

        A KeyboardInterrupt while waiting cancels the run: no new
        candidates are started, in-flight writes finish, and the result
        comes back with cancelled=True.
        """
        start = time.time()
        shards = split_shards(list(candidates), shard_count)
        self.counter = ProgressCounter(len(candidates), self._channel)
        result = RunResult(
            total=len(candidates),
            workers=[WorkerResult(worker_id=i, shard_size=len(s))
                     for i, s in enumerate(shards)],
        )
        if not candidates:
            return result

        logger.info("Distributing %d candidates across %d workers",
                    len(candidates), len(shards))

        threads = [
            threading.Thread(
                target=self._worker,
                args=(i, shard, result.workers[i]),
                name=f"sort-worker-{i}",
                daemon=True,
            )
            for i, shard in enumerate(shards)
        ]
        for t in threads:
            t.start()

        try:
            for t in threads:
                # Short joins keep the main thread responsive to Ctrl+C
                while t.is_alive():
                    t.join(timeout=0.2)
        except KeyboardInterrupt:
            logger.warning("Interrupted — waiting for in-flight files to finish")
            self.cancel()
            for t in threads:
                t.join()

        result.cancelled = self.cancelled
        result.elapsed = time.time() - start
        logger.info(
            "Distribution %s: %d/%d processed (%d written, %d duplicate, "
            "%d deferred, %d skipped, %d failed) in %.1fs",
            "cancelled" if result.cancelled else "complete",
            result.processed, result.total, result.written, result.duplicates,
            result.deferred, result.skipped, result.failed, result.elapsed,
        )
        return result

    def _worker(self, worker_id: int, shard: list[str], result: WorkerResult):
        start = time.time()
        for path in shard:
            if self._cancel.is_set():
                break
            try:
                status, label = self._process(path)
            except Exception as e:
                logger.error("Worker %d: unexpected error on %s: %s",
                             worker_id, path, e, exc_info=True)
                status, label = FAILED, ""
                self._log(path, None, "", "", FAILED, reason=str(e))
            result.record(status, label)
            self.counter.increment(path, label)
        result.elapsed = time.time() - start
        logger.debug("Worker %d finished: %d/%d in %.2fs",
                     worker_id, result.processed, result.shard_size, result.elapsed)

    # ── Per-candidate pipeline ──

    def _process(self, path: str) -> tuple[str, str]:
        cfg = self.config
        if self._skip_exts and file_extension(path) in self._skip_exts:
            self._log(path, None, "", "", SKIPPED, reason="extension")
            return SKIPPED, ""

        try:
            candidate = Candidate.from_path(path, cfg.sample_bytes, cfg.sample_lines)
        except OSError as e:
            logger.warning("Skipping unreadable file %s: %s", path, e)
            self._log(path, None, "", "", SKIPPED, reason=f"unreadable: {e}")
            return SKIPPED, ""

        if cfg.max_size and candidate.size > cfg.max_size:
            self._log(path, None, "", "", SKIPPED, reason="too large")
            return SKIPPED, ""
        if cfg.min_size and candidate.size < cfg.min_size:
            self._log(path, None, "", "", SKIPPED, reason="too small")
            return SKIPPED, ""

        try:
            content_hash, classification = self._hash_and_classify(candidate)
        except OSError as e:
            logger.warning("Skipping unreadable file %s: %s", path, e)
            self._log(path, None, "", "", SKIPPED, reason=f"unreadable: {e}")
            return SKIPPED, ""

        category = classification.category
        reg = self.index.register(content_hash, category, path)
        if not reg.is_new_for_category:
            status = DEFERRED if reg.deferred else DUPLICATE
            self._log(path, classification, content_hash, "", status)
            return status, category.label

        dest = os.path.join(
            cfg.dest_dir, category.directory,
            output_name(path, category, content_hash, cfg.rename_by_category),
        )
        try:
            write_file(path, dest, move=cfg.move)
        except OSError as e:
            logger.warning("Write failed for %s → %s: %s", path, dest, e)
            self._log(path, classification, content_hash, "", FAILED, reason=str(e))
            return FAILED, category.label

        self.index.mark_written(content_hash, category, dest)
        self._log(path, classification, content_hash, dest, WRITTEN)
        return WRITTEN, category.label

    def _hash_and_classify(self, candidate: Candidate) -> tuple[str, ClassificationResult]:
        """Hash the full content; project keywords (if any) short-circuit the classifier."""
        if not self._keywords:
            return hash_file(candidate.path), self.classifier.detect(candidate)

        with open(candidate.path, "rb") as f:
            data = f.read()
        folded = data.decode("utf-8", errors="replace").casefold()
        for keyword, needle in self._keywords:
            if needle in folded:
                logger.debug("Project match (%s): %s", keyword, candidate.name)
                return hash_bytes(data), ClassificationResult(
                    category=project_category(keyword),
                    matched=(f"project:{keyword}",),
                    rule="project",
                )
        return hash_bytes(data), self.classifier.detect(candidate)

    # ── Reconciliation ──

    def materialize(self, entry: HashEntry, category: Category) -> Optional[str]:
        """Write one copy of `entry` into `category` (used by reconcile)."""
        src = entry.copy_source()
        if src is None:
            logger.warning("Reconcile: no surviving copy of %s for %s",
                           entry.content_hash[:12], category.directory)
            return None
        dest = os.path.join(
            self.config.dest_dir, category.directory,
            output_name(entry.first_source or src, category, entry.content_hash,
                        self.config.rename_by_category),
        )
        write_file(src, dest, move=False)
        logger.debug("Reconcile: %s → %s", src, dest)
        return dest

    def reconcile(self) -> ReconcileReport:
        return self.index.reconcile(self.materialize)

    # ── Run log ──

    def _log(self, path: str, classification: Optional[ClassificationResult],
             content_hash: str, saved_to: str, status: str, reason: str = ""):
        rec = {
            "source": path,
            "category": classification.label if classification else "",
            "rule": classification.rule if classification else "",
            "score": classification.score if classification else None,
            "matched": list(classification.matched) if classification else [],
            "hash": content_hash,
            "saved_to": saved_to,
            "status": status,
        }
        if reason:
            rec["reason"] = reason
        with self._records_lock:
            self._records.append(rec)
