"""
Fragment Reconstructor — reassemble split single-file components.

Recovery tools often split one component across several recovered files:
one holds the <template> block, another the <script> block, a third the
<style> block.  This pass pairs them back up across the containers of one
composite family (vue and vue-ts) and writes merged documents under
<container>/merged/.

Pairing is deliberately naive (first available fragment wins), so a
merged document is a structural guess, not a verified reconstruction.
Files that already hold every required section are left alone.
"""

from __future__ import annotations

import os
import re
import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

MERGED_DIRNAME = "merged"


@dataclass(frozen=True)
class SectionSpec:
    """One delimited section: opening tag regex + literal closing tag."""
    name: str
    open_pattern: str
    close_tag: str
    required: bool = True
    # Nested blocks (e.g. <template v-if>) close on the outermost tag
    last_close: bool = False

    def extract(self, text: str) -> Optional[str]:
        """Block from the opening marker through its closing marker, or None."""
        m = re.search(self.open_pattern, text, re.IGNORECASE)
        if not m:
            return None
        lowered = text.lower()
        close = self.close_tag.lower()
        if self.last_close:
            end = lowered.rfind(close)
        else:
            end = lowered.find(close, m.end())
        if end < m.end():
            return None
        return text[m.start():end + len(close)]


@dataclass(frozen=True)
class CompositeFormat:
    name: str
    sections: tuple[SectionSpec, ...]
    extension: str

    @property
    def required(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.sections if s.required)


VUE_FORMAT = CompositeFormat(
    name="vue",
    sections=(
        SectionSpec("template", r"<template\b", "</template>", last_close=True),
        SectionSpec("script", r"<script\b", "</script>"),
        SectionSpec("style", r"<style\b", "</style>", required=False),
    ),
    extension="vue",
)


@dataclass
class SynthesizedDocument:
    path: str
    sources: list[str] = field(default_factory=list)
    text: str = ""


@dataclass
class _Fragment:
    path: str
    blocks: dict[str, str]
    container: str = ""
    used: bool = False


class FragmentReconstructor:
    """Pairs template / script / style fragments across one format family."""

    def __init__(self, fmt: CompositeFormat = VUE_FORMAT):
        self.fmt = fmt

    def _load(self, path: str) -> Optional[_Fragment]:
        try:
            with open(path, "rb") as f:
                text = f.read().decode("utf-8", errors="replace")
        except OSError as e:
            logger.debug("Fragment unreadable, ignored: %s (%s)", path, e)
            return None
        blocks = {}
        for spec in self.fmt.sections:
            block = spec.extract(text)
            if block is not None:
                blocks[spec.name] = block
        if not blocks:
            return None
        if all(name in blocks for name in self.fmt.required):
            return None     # complete document
        return _Fragment(path, blocks)

    def find_fragments(self, container: str) -> list[_Fragment]:
        if not os.path.isdir(container):
            return []
        fragments = []
        for name in sorted(os.listdir(container)):
            path = os.path.join(container, name)
            if not os.path.isfile(path) or name.endswith(".part"):
                continue
            frag = self._load(path)
            if frag is not None:
                frag.container = container
                fragments.append(frag)
        return fragments

    def reconstruct(self, *containers: str) -> list[SynthesizedDocument]:
        """
        Merge fragments found at the top level of `containers`.

        Containers of one format family (vue, vue-ts) are pooled: a
        template recovered into one may pair with a script recovered into
        another.  For each template fragment, in container then name
        order, the first unused script fragment is attached, then the
        first unused style-only fragment if the pair carries no style of
        its own.  The merged document goes to  <script container>/merged/
        since the script decides whether the component is typed.
        Nothing is written when no pairing exists.
        """
        fragments = [f for c in containers for f in self.find_fragments(c)]
        templates = [f for f in fragments if "template" in f.blocks]
        scripts = [f for f in fragments
                   if "script" in f.blocks and "template" not in f.blocks]
        styles = [f for f in fragments if set(f.blocks) == {"style"}]

        next_numbers: dict[str, int] = {}
        documents: list[SynthesizedDocument] = []

        for tpl in templates:
            script = next((s for s in scripts if not s.used), None)
            if script is None:
                break
            parts = [tpl, script]
            has_style = any("style" in p.blocks for p in parts)
            if not has_style:
                style = next((s for s in styles if not s.used), None)
                if style is not None:
                    parts.append(style)

            merged: dict[str, str] = {}
            for part in parts:
                for name, block in part.blocks.items():
                    merged.setdefault(name, block)
            text = "\n\n".join(merged[s.name] for s in self.fmt.sections
                               if s.name in merged) + "\n"

            out_dir = os.path.join(script.container, MERGED_DIRNAME)
            if out_dir not in next_numbers:
                next_numbers[out_dir] = self._next_number(out_dir)
            path = os.path.join(
                out_dir, f"merged_{next_numbers[out_dir]:04d}.{self.fmt.extension}")
            try:
                _write_text(path, text)
            except OSError as e:
                logger.warning("Could not write merged document %s: %s", path, e)
                continue
            for part in parts:
                part.used = True
            next_numbers[out_dir] += 1
            documents.append(SynthesizedDocument(
                path=path, sources=[p.path for p in parts], text=text))
            logger.debug("Merged %s ← %s", os.path.basename(path),
                         ", ".join(p.path for p in parts))

        if documents:
            logger.info("Reconstructed %d %s document(s) from %s",
                        len(documents), self.fmt.name, ", ".join(containers))
        return documents

    @staticmethod
    def _next_number(out_dir: str) -> int:
        if not os.path.isdir(out_dir):
            return 1
        numbers = [0]
        for name in os.listdir(out_dir):
            m = re.match(r"merged_(\d+)\.", name)
            if m:
                numbers.append(int(m.group(1)))
        return max(numbers) + 1


def _write_text(path: str, text: str):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    tmp = path + ".part"
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(text)
    os.replace(tmp, path)
