"""
Content-Type Probe — decide whether an unclassified sample is binary.

Only consulted by the weighted fallback when no category scores above
zero, so it answers a single question: "binary" or "unknown text".

Checks, cheapest first:
  • Known magic headers (executables, archives, images, databases, PDF)
  • Image headers are confirmed with Pillow (format + dimensions)
  • NUL bytes anywhere in the sample
  • Non-text byte ratio and Shannon entropy for undecodable samples
"""

from __future__ import annotations

import io
import math
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# ── Thresholds ────────────────────────────────────────────────
MAX_NON_TEXT_RATIO = 0.30       # share of control bytes tolerated in text
BINARY_ENTROPY = 7.5            # bits/byte; compressed/encrypted data sits near 8.0

_TEXT_CONTROL = {0x08, 0x09, 0x0A, 0x0C, 0x0D, 0x1B}


@dataclass(frozen=True)
class ProbeResult:
    is_binary: bool
    kind: str               # "text", "empty", "image", "executable", ...
    mime: str = ""
    detail: str = ""


# (magic, kind, mime) — longest headers first so e.g. RIFF/WEBP wins over RIFF
MAGIC_HEADERS: list[tuple[bytes, str, str]] = sorted(
    [
        (b"\x7fELF", "executable", "application/x-elf"),
        (b"MZ", "executable", "application/x-msdownload"),
        (b"\xCA\xFE\xBA\xBE", "executable", "application/java-vm"),
        (b"\xCF\xFA\xED\xFE", "executable", "application/x-mach-binary"),
        (b"\x00asm", "executable", "application/wasm"),
        (b"PK\x03\x04", "archive", "application/zip"),
        (b"\x1F\x8B\x08", "archive", "application/gzip"),
        (b"7z\xBC\xAF\x27\x1C", "archive", "application/x-7z-compressed"),
        (b"Rar!\x1A\x07", "archive", "application/vnd.rar"),
        (b"\xFD7zXZ\x00", "archive", "application/x-xz"),
        (b"%PDF-", "document", "application/pdf"),
        (b"\xD0\xCF\x11\xE0\xA1\xB1\x1A\xE1", "document", "application/x-ole-storage"),
        (b"SQLite format 3\x00", "database", "application/vnd.sqlite3"),
        (b"\x89PNG\r\n\x1A\n", "image", "image/png"),
        (b"\xFF\xD8\xFF", "image", "image/jpeg"),
        (b"GIF87a", "image", "image/gif"),
        (b"GIF89a", "image", "image/gif"),
        (b"II*\x00", "image", "image/tiff"),
        (b"MM\x00*", "image", "image/tiff"),
        (b"ID3", "audio", "audio/mpeg"),
        (b"OggS", "media", "application/ogg"),
        (b"fLaC", "audio", "audio/flac"),
        (b"\x1A\x45\xDF\xA3", "media", "video/x-matroska"),
    ],
    key=lambda x: len(x[0]),
    reverse=True,
)


def calculate_entropy(data: bytes) -> float:
    """Shannon entropy of a byte sequence (0.0–8.0)."""
    if not data:
        return 0.0
    length = len(data)
    counts = [0] * 256
    for b in data:
        counts[b] += 1
    entropy = 0.0
    for c in counts:
        if c > 0:
            p = c / length
            entropy -= p * math.log2(p)
    return entropy


def non_text_ratio(data: bytes) -> float:
    """Share of bytes that are control characters outside normal text."""
    if not data:
        return 0.0
    bad = sum(1 for b in data if (b < 0x20 and b not in _TEXT_CONTROL) or b == 0x7F)
    return bad / len(data)


def _match_magic(sample: bytes):
    for magic, kind, mime in MAGIC_HEADERS:
        if sample.startswith(magic):
            return kind, mime
    # RIFF containers carry the real type at offset 8
    if sample[:4] == b"RIFF" and len(sample) >= 12:
        sub = sample[8:12]
        if sub == b"WEBP":
            return "image", "image/webp"
        if sub in (b"WAVE", b"AVI "):
            return "media", "audio/wav" if sub == b"WAVE" else "video/x-msvideo"
    if len(sample) >= 12 and sample[4:8] == b"ftyp":
        return "media", "video/mp4"
    return None


def _identify_image(sample: bytes) -> str:
    """Parse the image header with Pillow. Returns '' if Pillow rejects it."""
    try:
        with Image.open(io.BytesIO(sample)) as img:
            w, h = img.size
            return f"{img.format} {w}x{h}"
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as exc:
        logger.debug("Pillow could not identify image sample: %s", exc)
        return ""


def probe_content(sample: bytes) -> ProbeResult:
    """Classify a bounded sample as binary or text."""
    if not sample:
        return ProbeResult(is_binary=False, kind="empty", mime="inode/x-empty")

    magic = _match_magic(sample)
    if magic is not None:
        kind, mime = magic
        detail = _identify_image(sample) if kind == "image" else ""
        return ProbeResult(is_binary=True, kind=kind, mime=mime, detail=detail)

    if b"\x00" in sample:
        return ProbeResult(is_binary=True, kind="data",
                           mime="application/octet-stream", detail="NUL bytes")

    try:
        sample.decode("utf-8")
        return ProbeResult(is_binary=False, kind="text", mime="text/plain")
    except UnicodeDecodeError:
        pass

    ratio = non_text_ratio(sample)
    if ratio > MAX_NON_TEXT_RATIO:
        return ProbeResult(is_binary=True, kind="data",
                           mime="application/octet-stream",
                           detail=f"non-text ratio {ratio:.2f}")

    ent = calculate_entropy(sample)
    if ent > BINARY_ENTROPY:
        return ProbeResult(is_binary=True, kind="data",
                           mime="application/octet-stream",
                           detail=f"entropy {ent:.2f}")

    # Legacy 8-bit encodings (latin-1, cp1252) still read as text
    return ProbeResult(is_binary=False, kind="text", mime="text/plain",
                       detail="non-utf8")
