"""
Sort Manager — Orchestrates enumeration, distribution, reconciliation and reporting.
"""

from __future__ import annotations

import os
import json
import time
import queue
import shutil
import logging
from dataclasses import dataclass, field
from typing import Optional

from .categories import (
    ALL_CATEGORIES, CAT_BINARY, CAT_UNKNOWN, Category,
    get_composite_categories, project_category,
)
from .classifier import Classifier
from .config import SortConfig
from .dedup import CrossReferenceIndex
from .distributor import RunResult, WorkDistributor, enumerate_candidates, optimal_worker_count
from .fragments import FragmentReconstructor, SynthesizedDocument
from .progress import ProgressObserver

logger = logging.getLogger(__name__)


@dataclass
class SortSession:
    """One sorting run."""
    session_id: str
    source_dirs: list[str]
    dest_dir: str
    start_time: float = 0.0
    end_time: float = 0.0
    candidates: int = 0
    workers: int = 0
    result: Optional[RunResult] = None
    reconstructed: list[SynthesizedDocument] = field(default_factory=list)
    archive_path: str = ""
    was_cancelled: bool = False

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def duration_human(self) -> str:
        d = self.duration
        if d < 60:
            return f"{d:.1f}s"
        if d < 3600:
            return f"{d / 60:.1f}m"
        return f"{d / 3600:.1f}h"

    @property
    def summary(self) -> dict:
        r = self.result
        reconcile = r.reconcile if r else None
        return {
            "total": self.candidates,
            "processed": r.processed if r else 0,
            "written": r.written if r else 0,
            "duplicates": r.duplicates if r else 0,
            "deferred": r.deferred if r else 0,
            "propagated": reconcile.propagated if reconcile else 0,
            "skipped": r.skipped if r else 0,
            "failed": r.failed if r else 0,
            "reconstructed": len(self.reconstructed),
            "cancelled": self.was_cancelled,
            "duration": self.duration_human,
            "categories": dict(sorted(r.by_category.items())) if r else {},
        }


class SortManager:
    """High-level manager for one sorting run over recovered files."""

    def __init__(self, config: SortConfig):
        self.config = config
        self.classifier = Classifier(config.classifier_config())
        self.index = CrossReferenceIndex()
        self.current_session: Optional[SortSession] = None
        self._distributor: Optional[WorkDistributor] = None

    def output_categories(self) -> list[Category]:
        """Category containers this run may write into."""
        if self.config.filter_types:
            wanted = set(self.config.filter_types) | {CAT_BINARY.label, CAT_UNKNOWN.label}
            cats = [c for c in ALL_CATEGORIES if c.label in wanted]
        else:
            cats = list(ALL_CATEGORIES)
        cats.extend(project_category(k) for k in self.config.project_keywords)
        return cats

    def prepare_output(self):
        os.makedirs(self.config.dest_dir, exist_ok=True)
        for cat in self.output_categories():
            os.makedirs(os.path.join(self.config.dest_dir, cat.directory), exist_ok=True)

    def enumerate_candidates(self, source_dirs: list[str]) -> list[str]:
        return enumerate_candidates(source_dirs, exclude=(self.config.dest_dir,))

    def cancel(self):
        if self._distributor is not None:
            self._distributor.cancel()

    def run(self, show_progress: bool = True) -> SortSession:
        """
        validate → bootstrap dirs → enumerate → distribute → reconcile →
        reconstruct (optional) → sorting_log.json → zip (optional).

        Raises ConfigError before touching any file.
        """
        cfg = self.config
        source_dirs = cfg.validate()

        session = SortSession(
            session_id=f"sort_{int(time.time())}",
            source_dirs=source_dirs,
            dest_dir=cfg.dest_dir,
            start_time=time.time(),
        )
        self.current_session = session

        self.prepare_output()
        candidates = self.enumerate_candidates(source_dirs)
        session.candidates = len(candidates)
        session.workers = optimal_worker_count(len(candidates), cfg)
        logger.info("Found %d candidate files in %d source dir(s)",
                    len(candidates), len(source_dirs))

        channel: queue.Queue = queue.Queue()
        self._distributor = WorkDistributor(
            cfg, classifier=self.classifier, index=self.index,
            progress_channel=channel,
        )
        observer = None
        if show_progress and candidates:
            observer = ProgressObserver(channel, len(candidates))
            observer.start()
        try:
            result = self._distributor.run(candidates, session.workers)
        finally:
            if observer is not None:
                observer.close()

        session.result = result
        session.was_cancelled = result.cancelled

        if result.cancelled:
            logger.warning("Run cancelled: reconciliation skipped")
        else:
            result.reconcile = self._distributor.reconcile()
            if cfg.reconstruct_fragments:
                session.reconstructed = self.reconstruct()
        self.index.clear()

        session.end_time = time.time()
        try:
            self.save_log(cfg.log_path)
        except OSError as e:
            logger.warning("Could not write %s: %s", cfg.log_path, e)

        if cfg.zip_output and not result.cancelled:
            session.archive_path = self.zip_output()
        return session

    def reconstruct(self) -> list[SynthesizedDocument]:
        # Templates land in vue/ while typed scripts land in vue-ts/
        containers = [os.path.join(self.config.dest_dir, cat.directory)
                      for cat in get_composite_categories()]
        return FragmentReconstructor().reconstruct(*containers)

    # ─── Reports ──────────────────────────────────────────────

    def save_log(self, filepath: str):
        s = self.current_session
        data = {
            "session": s.session_id if s else "",
            "date": time.strftime("%Y-%m-%d %H:%M:%S"),
            "source_dirs": s.source_dirs if s else [],
            "dest_dir": self.config.dest_dir,
            "summary": s.summary if s else {},
            "reconstructed": [
                {"path": d.path, "sources": d.sources}
                for d in (s.reconstructed if s else [])
            ],
            "log": self._distributor.get_records() if self._distributor else [],
        }
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)

    def zip_output(self) -> str:
        dest = os.path.abspath(self.config.dest_dir.rstrip("/\\"))
        archive = shutil.make_archive(dest, "zip", root_dir=dest)
        logger.info("Archived output to %s", archive)
        return archive


def fmt_size(n: int) -> str:
    s = float(n)
    for u in ("B", "KB", "MB", "GB"):
        if s < 1024:
            return f"{s:.1f} {u}"
        s /= 1024
    return f"{s:.1f} TB"
