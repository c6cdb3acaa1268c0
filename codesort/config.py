"""Configuration: sort options, size parsing, validation."""

from __future__ import annotations

import os
import re
import glob
from dataclasses import dataclass
from typing import Iterable, Optional

from .categories import CATEGORY_BY_LABEL
from .classifier import DEFAULT_SAMPLE_BYTES, DEFAULT_SAMPLE_LINES
from .rules import ClassifierConfig, build_classifier_config

DEFAULT_SOURCE_PATTERN = "./recup_dir.*"
DEFAULT_DEST_DIR = "./recovered_code"
LOG_FILENAME = "sorting_log.json"

_SIZE_UNITS = {
    "": 1,
    "k": 1024,
    "m": 1024 ** 2,
    "g": 1024 ** 3,
    "t": 1024 ** 4,
}
_SIZE_RE = re.compile(r"^\s*(\d+)\s*([kmgt]?)(?:i?b)?\s*$", re.IGNORECASE)


class ConfigError(ValueError):
    """Invalid configuration, detected before any file is touched."""


def parse_size(text: str) -> int:
    """
    Parse a human-readable byte size.

    '512' → 512, '100k' → 102400, '10M' → 10485760, '2GB' / '2GiB' →
    2147483648, '1t' → 1099511627776.  Anything else raises ConfigError.
    """
    m = _SIZE_RE.match(str(text))
    if not m:
        raise ConfigError(f"Invalid size '{text}' (expected e.g. 512, 100k, 10M, 2G, 1T)")
    return int(m.group(1)) * _SIZE_UNITS[m.group(2).lower()]


def parse_list(text: Optional[str]) -> tuple[str, ...]:
    """Comma-separated list → tuple, blanks dropped."""
    if not text:
        return ()
    return tuple(p.strip() for p in text.split(",") if p.strip())


def normalize_extensions(exts: Iterable[str]) -> frozenset[str]:
    return frozenset(e.strip().lstrip(".").lower() for e in exts if e.strip().lstrip("."))


def resolve_source_dirs(patterns: Iterable[str]) -> list[str]:
    """Expand glob patterns (e.g. ./recup_dir.*) into existing directories."""
    dirs: list[str] = []
    for pattern in patterns:
        matches = sorted(glob.glob(pattern)) if glob.has_magic(pattern) else [pattern]
        for path in matches:
            if os.path.isdir(path) and path not in dirs:
                dirs.append(path)
    return dirs


@dataclass(frozen=True)
class SortConfig:
    """Everything one sorting run needs."""
    source_dirs: tuple[str, ...] = (DEFAULT_SOURCE_PATTERN,)
    dest_dir: str = DEFAULT_DEST_DIR
    shard_count: int = 0                    # 0 = auto-detect
    max_workers: int = 8
    skip_extensions: frozenset[str] = frozenset()
    max_size: int = 0                       # 0 = no limit
    min_size: int = 0                       # 0 = no minimum
    sample_bytes: int = DEFAULT_SAMPLE_BYTES
    sample_lines: int = DEFAULT_SAMPLE_LINES
    project_keywords: tuple[str, ...] = ()
    filter_types: tuple[str, ...] = ()
    rename_by_category: bool = True
    enable_fallback: bool = True
    reconstruct_fragments: bool = False
    move: bool = False
    zip_output: bool = False

    @property
    def log_path(self) -> str:
        return os.path.join(self.dest_dir, LOG_FILENAME)

    def validate(self) -> list[str]:
        """Check the configuration; returns the resolved source directories."""
        if self.max_size < 0 or self.min_size < 0:
            raise ConfigError("Sizes must not be negative")
        if self.max_size and self.min_size > self.max_size:
            raise ConfigError(
                f"Minimum size ({self.min_size}) exceeds maximum size ({self.max_size})")
        if self.sample_bytes <= 0 or self.sample_lines <= 0:
            raise ConfigError("Sample bytes and sample lines must be positive")
        if self.shard_count < 0 or self.max_workers <= 0:
            raise ConfigError("Worker counts must be positive (0 = auto)")
        unknown = [t for t in self.filter_types if t not in CATEGORY_BY_LABEL]
        if unknown:
            raise ConfigError(
                f"Unknown type(s) in filter: {', '.join(unknown)} "
                f"(see --list-categories)")
        if any(not k.strip() for k in self.project_keywords):
            raise ConfigError("Project keywords must not be blank")

        dirs = resolve_source_dirs(self.source_dirs)
        if not dirs:
            raise ConfigError(
                f"Source directory not found: {', '.join(self.source_dirs)}")
        dest = os.path.abspath(self.dest_dir)
        for d in dirs:
            if os.path.abspath(d) == dest:
                raise ConfigError(f"Output directory must differ from source: {d}")
        return dirs

    def classifier_config(self) -> ClassifierConfig:
        return build_classifier_config(
            enable_fallback=self.enable_fallback,
            enabled_labels=self.filter_types or None,
        )
