"""
Classifier — assign exactly one category to a recovered file.

HOW IT DECIDES
──────────────
1.  Read a bounded sample (first `sample_bytes` bytes).  Nothing beyond
    the sample is ever examined, so results are defined by that window.
2.  Walk the ordered rule tuple from the ClassifierConfig; the first rule
    that fires decides (see rules.py for the order).
3.  If no rule fires (fallback disabled, nothing matched) → "unknown".

`detect()` is a pure function of (sample, path name, config): no shared
state, no I/O.  Loading the sample is the caller's job (Candidate.from_path).
"""

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field
from typing import Optional

from .categories import Category, CAT_UNKNOWN
from .rules import ClassifierConfig, build_classifier_config

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_BYTES = 16000
DEFAULT_SAMPLE_LINES = 40


def file_extension(name: str) -> str:
    """Lower-case extension without the dot; '.env' → 'env', 'f0001' → ''."""
    base = os.path.basename(name)
    ext = os.path.splitext(base)[1]
    if not ext and base.startswith(".") and len(base) > 1:
        return base[1:].lower()
    return ext[1:].lower()


@dataclass
class Candidate:
    """A recovered file under consideration, with its bounded sample."""
    path: str
    size: int
    sample: bytes
    sample_lines: int = DEFAULT_SAMPLE_LINES
    text: str = field(init=False, repr=False)
    first_line: str = field(init=False, repr=False)
    window: str = field(init=False, repr=False)

    def __post_init__(self):
        self.text = self.sample.decode("utf-8", errors="replace")
        lines = self.text.splitlines()
        self.first_line = lines[0] if lines else ""
        self.window = "\n".join(lines[:self.sample_lines])

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    @property
    def extension(self) -> str:
        return file_extension(self.path)

    @classmethod
    def from_path(
        cls,
        path: str,
        sample_bytes: int = DEFAULT_SAMPLE_BYTES,
        sample_lines: int = DEFAULT_SAMPLE_LINES,
    ) -> "Candidate":
        """Stat and sample a file. Raises OSError if it vanished or is unreadable."""
        size = os.stat(path).st_size
        with open(path, "rb") as f:
            sample = f.read(sample_bytes)
        return cls(path=path, size=size, sample=sample, sample_lines=sample_lines)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        path: str = "f0000000",
        sample_bytes: int = DEFAULT_SAMPLE_BYTES,
        sample_lines: int = DEFAULT_SAMPLE_LINES,
    ) -> "Candidate":
        return cls(path=path, size=len(data), sample=data[:sample_bytes],
                   sample_lines=sample_lines)


@dataclass(frozen=True)
class ClassificationResult:
    category: Category
    score: Optional[int] = None
    matched: tuple[str, ...] = ()
    rule: str = "default"

    @property
    def label(self) -> str:
        return self.category.label


class Classifier:
    """Layered rule classifier. One instance is safe to share across threads."""

    def __init__(self, config: Optional[ClassifierConfig] = None):
        self.config = config or build_classifier_config()

    def detect(self, candidate: Candidate) -> ClassificationResult:
        for rule in self.config.rules:
            match = rule.evaluate(candidate)
            if match is not None:
                logger.debug("%s → %s (%s: %s)", candidate.name,
                             match.category.label, match.kind,
                             ", ".join(match.matched))
                return ClassificationResult(
                    category=match.category,
                    score=match.score,
                    matched=match.matched,
                    rule=match.kind,
                )
        return ClassificationResult(category=CAT_UNKNOWN)
