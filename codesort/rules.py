"""
Rule Database — the ordered rule set behind the Classifier.

RULE KINDS
──────────
Every rule is a frozen dataclass with one `evaluate(candidate)` method,
so the Classifier walks a single ordered tuple and never special-cases:
  • ShebangRule          — interpreter directive on the first line
  • SignatureRule        — structural content patterns for one category
  • ExtensionRule        — static extension → category table
  • WeightedFallbackRule — keyword scoring, then the binary/text probe

PRIORITY
────────
The tuple order IS the priority order (first match wins):
  shebang → composite markup (typed → untyped → plain HTML)
          → framework idioms → typed languages before untyped ones
          → other languages (C++ before C) → extension → weighted fallback

Exported:
  • DEFAULT_RULES      — the full ordered tuple
  • ClassifierConfig   — immutable bundle handed to the Classifier
  • build_classifier_config(enable_fallback, enabled_labels)
"""

from __future__ import annotations

import os
import re
import logging
from dataclasses import dataclass, field
from typing import Optional, Iterable

from .categories import (
    Category,
    CAT_VUE_TS, CAT_VUE, CAT_HTML,
    CAT_ANGULAR, CAT_REACT, CAT_NUXT, CAT_VITE, CAT_SUPABASE, CAT_EXPRESS,
    CAT_TYPESCRIPT, CAT_JAVASCRIPT, CAT_PYTHON, CAT_SHELL, CAT_RUBY,
    CAT_PERL, CAT_PHP, CAT_RUST, CAT_GO, CAT_JAVA, CAT_KOTLIN,
    CAT_CPP, CAT_C, CAT_SQL,
    CAT_CSS, CAT_JSON, CAT_MARKDOWN, CAT_YAML, CAT_ENV,
    CAT_BINARY, CAT_UNKNOWN,
)
from .probe import probe_content

logger = logging.getLogger(__name__)

_M = re.MULTILINE
_MI = re.MULTILINE | re.IGNORECASE


@dataclass(frozen=True)
class RuleMatch:
    """What a rule reports when it fires."""
    category: Category
    kind: str
    score: Optional[int] = None
    matched: tuple[str, ...] = ()


class Rule:
    """Base of the rule variants. Subclasses set `kind` and `evaluate`."""
    kind = "rule"

    def evaluate(self, candidate) -> Optional[RuleMatch]:
        raise NotImplementedError

    def restricted_to(self, labels: frozenset[str]) -> Optional["Rule"]:
        """Copy limited to `labels`, or None if nothing is left."""
        return self


# ══════════════════════════════════════════════════════════════
#  S H E B A N G
# ══════════════════════════════════════════════════════════════

_VERSION_SUFFIX = re.compile(r"[\d.]+$")


def parse_shebang(first_line: str) -> str:
    """Return the interpreter name from a `#!` line ('' if none).

    `#!/usr/bin/env -S python3.11 -u` → 'python'
    `#!/bin/bash`                     → 'bash'
    """
    if not first_line.startswith("#!"):
        return ""
    parts = first_line[2:].strip().split()
    if not parts:
        return ""
    prog = os.path.basename(parts[0])
    if prog == "env":
        args = [p for p in parts[1:] if not p.startswith("-") and "=" not in p]
        if not args:
            return ""
        prog = os.path.basename(args[0])
    return _VERSION_SUFFIX.sub("", prog).lower()


@dataclass(frozen=True)
class ShebangRule(Rule):
    interpreters: tuple[tuple[str, Category], ...]
    kind = "shebang"

    def evaluate(self, candidate) -> Optional[RuleMatch]:
        interp = parse_shebang(candidate.first_line)
        if not interp:
            return None
        for name, category in self.interpreters:
            if interp == name:
                return RuleMatch(category, self.kind, matched=(f"shebang:{interp}",))
        return None


# ══════════════════════════════════════════════════════════════
#  S T R U C T U R A L   S I G N A T U R E S
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Signature:
    """Named predicate: all (or any) of its patterns must occur in the sample."""
    name: str
    patterns: tuple[re.Pattern, ...]
    require_all: bool = False

    def matches(self, text: str) -> bool:
        if self.require_all:
            return all(p.search(text) for p in self.patterns)
        return any(p.search(text) for p in self.patterns)


def sig(name: str, *patterns: str, flags: int = _M, require_all: bool = False) -> Signature:
    return Signature(
        name=name,
        patterns=tuple(re.compile(p, flags) for p in patterns),
        require_all=require_all,
    )


@dataclass(frozen=True)
class SignatureRule(Rule):
    category: Category
    signatures: tuple[Signature, ...]
    kind = "signature"

    def evaluate(self, candidate) -> Optional[RuleMatch]:
        text = candidate.text
        hits = tuple(s.name for s in self.signatures if s.matches(text))
        if not hits:
            return None
        return RuleMatch(self.category, self.kind, matched=hits)

    def restricted_to(self, labels: frozenset[str]) -> Optional[Rule]:
        return self if self.category.label in labels else None


# ══════════════════════════════════════════════════════════════
#  E X T E N S I O N
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ExtensionRule(Rule):
    table: tuple[tuple[str, Category], ...]
    # Composite formats are only believed when their section markers are
    # present, which the signature rules have already checked.
    untrusted: frozenset[str] = frozenset()
    kind = "extension"

    def evaluate(self, candidate) -> Optional[RuleMatch]:
        ext = candidate.extension
        if not ext or ext in self.untrusted:
            return None
        for known, category in self.table:
            if ext == known:
                return RuleMatch(category, self.kind, matched=(f"ext:{ext}",))
        return None

    def restricted_to(self, labels: frozenset[str]) -> Optional[Rule]:
        table = tuple((e, c) for e, c in self.table if c.label in labels)
        if not table:
            return None
        return ExtensionRule(table=table, untrusted=self.untrusted)


# ══════════════════════════════════════════════════════════════
#  W E I G H T E D   F A L L B A C K
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WeightedPattern:
    name: str
    pattern: re.Pattern
    weight: int = 1

    def score(self, text: str) -> int:
        return sum(1 for _ in self.pattern.finditer(text)) * self.weight


def wp(pattern: str, weight: int = 1, flags: int = _M) -> WeightedPattern:
    return WeightedPattern(name=pattern, pattern=re.compile(pattern, flags), weight=weight)


@dataclass(frozen=True)
class WeightedFallbackRule(Rule):
    """Keyword scoring over the line window; always decides."""
    banks: tuple[tuple[Category, tuple[WeightedPattern, ...]], ...]
    kind = "fallback"

    def score_all(self, text: str) -> list[tuple[Category, int, tuple[str, ...]]]:
        scores = []
        for category, patterns in self.banks:
            total = 0
            hits = []
            for p in patterns:
                s = p.score(text)
                if s > 0:
                    total += s
                    hits.append(f"{p.name}({s})")
            scores.append((category, total, tuple(hits)))
        return scores

    def evaluate(self, candidate) -> Optional[RuleMatch]:
        best: Optional[tuple[Category, int, tuple[str, ...]]] = None
        for category, total, hits in self.score_all(candidate.window):
            # strictly greater: earlier categories keep ties
            if best is None or total > best[1]:
                best = (category, total, hits)

        if best is not None and best[1] > 0:
            return RuleMatch(best[0], self.kind, score=best[1], matched=best[2])

        probe = probe_content(candidate.sample)
        if probe.is_binary:
            detail = f"probe:{probe.kind}" + (f" {probe.detail}" if probe.detail else "")
            return RuleMatch(CAT_BINARY, "probe", score=0, matched=(detail,))
        return RuleMatch(CAT_UNKNOWN, "probe", score=0, matched=(f"probe:{probe.kind}",))

    def restricted_to(self, labels: frozenset[str]) -> Optional[Rule]:
        # Still returned when empty: the probe decision is always needed.
        return WeightedFallbackRule(
            banks=tuple((c, p) for c, p in self.banks if c.label in labels)
        )


# ═════════════════════════════════════════════════════════════
#  Default rule set
# ═════════════════════════════════════════════════════════════

SHEBANG_RULE = ShebangRule(interpreters=(
    ("python", CAT_PYTHON),
    ("ruby", CAT_RUBY),
    ("node", CAT_JAVASCRIPT),
    ("nodejs", CAT_JAVASCRIPT),
    ("deno", CAT_JAVASCRIPT),
    ("perl", CAT_PERL),
    ("bash", CAT_SHELL),
    ("sh", CAT_SHELL),
    ("zsh", CAT_SHELL),
    ("dash", CAT_SHELL),
    ("ksh", CAT_SHELL),
    ("php", CAT_PHP),
))

SIGNATURE_RULES: tuple[SignatureRule, ...] = (
    # ── Composite markup: typed script section first ──
    SignatureRule(CAT_VUE_TS, (
        sig("typed-script-section", r"<script\b[^>]*\blang\s*=\s*[\"']ts[\"']"),
    )),
    SignatureRule(CAT_VUE, (
        sig("template-and-script", r"<template[\s>]", r"<script[\s>]", require_all=True),
        sig("script-setup", r"<script\s+setup\b"),
        sig("root-template", r"^<template[\s>]"),
        sig("scoped-style", r"<style\b[^>]*\bscoped\b"),
    )),
    SignatureRule(CAT_HTML, (
        sig("doctype-html", r"<!DOCTYPE\s+html\b", flags=_MI),
        sig("html-root", r"<html[\s>]", flags=_MI),
    )),

    # ── Framework idioms ──
    SignatureRule(CAT_ANGULAR, (
        sig("ng-module", r"@NgModule\s*\("),
        sig("ng-component", r"@Component\s*\(\s*\{"),
        sig("ng-lifecycle", r"\bngOnInit\s*\("),
    )),
    SignatureRule(CAT_REACT, (
        sig("import-react", r"^\s*import\s+React\b"),
        sig("from-react", r"from\s+[\"']react[\"']"),
        sig("require-react", r"require\(\s*[\"']react[\"']\s*\)"),
    )),
    SignatureRule(CAT_NUXT, (
        sig("nuxt-config", r"\bdefineNuxtConfig\s*\("),
        sig("nuxt-app", r"\buseNuxtApp\s*\("),
    )),
    SignatureRule(CAT_VITE, (
        sig("define-config", r"\bdefineConfig\s*\("),
    )),
    SignatureRule(CAT_SUPABASE, (
        sig("supabase-import", r"[\"']@supabase/supabase-js[\"']"),
        sig("create-client", r"\bcreateClient\s*\("),
    )),
    SignatureRule(CAT_EXPRESS, (
        sig("express-app", r"\bexpress\s*\(\s*\)"),
        sig("app-listen", r"\bapp\.listen\s*\("),
    )),
    SignatureRule(CAT_PHP, (
        sig("php-open-tag", r"<\?php\b"),
    )),

    # ── Typed before untyped ──
    SignatureRule(CAT_TYPESCRIPT, (
        sig("interface-declaration",
            r"^\s*(?:export\s+)?(?:declare\s+)?interface\s+[A-Za-z_$][\w$]*(?:<[^>]*>)?\s*(?:extends\s+[\w$<>,\s]+)?\{"),
        sig("type-alias", r"^\s*(?:export\s+)?type\s+[A-Za-z_$][\w$]*(?:<[^>]*>)?\s*=\s*\S"),
        sig("import-type", r"^\s*import\s+type\s"),
        sig("typed-parameter",
            r"\(\s*\w+\s*:\s*(?:string|number|boolean|any|unknown|void)\b"),
    )),
    SignatureRule(CAT_JAVASCRIPT, (
        sig("es-import", r"^\s*import\s+[\w{}\s,*$]+\s+from\s+[\"']"),
        sig("export-default", r"^\s*export\s+default\b"),
        sig("module-exports", r"\bmodule\.exports\b"),
        sig("require-call", r"\brequire\s*\(\s*[\"'][^\"']+[\"']\s*\)"),
        sig("arrow-binding", r"^\s*(?:const|let|var)\s+\w+\s*=\s*(?:async\s*)?\([^)]*\)\s*=>"),
    )),

    # ── Other languages ──
    SignatureRule(CAT_RUST, (
        sig("fn-main", r"\bfn\s+main\s*\(\s*\)"),
        sig("use-std", r"^\s*use\s+std::"),
        sig("impl-for", r"^\s*impl(?:<[^>]*>)?\s+\w+(?:<[^>]*>)?\s+for\s+\w+"),
        sig("let-mut", r"\blet\s+mut\s+\w+"),
    )),
    SignatureRule(CAT_GO, (
        sig("package-clause", r"^package\s+\w+\s*$", r"^func\s", require_all=True),
        sig("func-main", r"^func\s+main\s*\(\s*\)"),
        sig("fmt-print", r"\bfmt\.Print(?:ln|f)?\s*\("),
    )),
    SignatureRule(CAT_JAVA, (
        sig("public-class", r"\bpublic\s+(?:final\s+|abstract\s+)?class\s+\w+"),
        # Kotlin imports java.* too, without the semicolon
        sig("import-java", r"^\s*import\s+java\.[\w.]*[\w*]\s*;"),
        sig("system-out", r"\bSystem\.out\.print"),
    )),
    SignatureRule(CAT_KOTLIN, (
        sig("fun-main", r"\bfun\s+main\s*\("),
        sig("suspend-fun", r"\bsuspend\s+fun\b"),
        sig("data-class", r"^\s*data\s+class\s+\w+"),
        sig("fun-declaration",
            r"^\s*(?:(?:private|internal|public|override|inline)\s+)*fun\s+[\w.<>]+\s*\("),
        sig("val-binding", r"^\s*(?:private\s+|internal\s+)?val\s+\w+\s*(?::\s*\w|=)"),
    )),
    SignatureRule(CAT_CPP, (
        sig("std-namespace", r"\bstd::"),
        sig("template-declaration", r"^\s*template\s*<"),
        sig("using-namespace", r"^\s*using\s+namespace\s+\w+\s*;"),
        sig("cpp-header",
            r"#include\s*<(?:iostream|vector|string|map|memory|algorithm|unordered_map)>"),
    )),
    SignatureRule(CAT_C, (
        sig("include", r"^\s*#include\s*[<\"]"),
        sig("int-main", r"\bint\s+main\s*\("),
    )),
    SignatureRule(CAT_PYTHON, (
        sig("def", r"^def\s+\w+\s*\("),
        sig("class", r"^class\s+\w+(?:\([^)]*\))?\s*:"),
        sig("from-import", r"^from\s+[\w.]+\s+import\s"),
        sig("import", r"^import\s+[\w.]+(?:\s+as\s+\w+)?\s*$"),
        sig("main-guard", r"if\s+__name__\s*==\s*[\"']__main__[\"']"),
    )),
    SignatureRule(CAT_SQL, (
        sig("create-table", r"\bCREATE\s+TABLE\b", flags=_MI),
        sig("insert-into", r"\bINSERT\s+INTO\b", flags=_MI),
        sig("alter-table", r"\bALTER\s+TABLE\b", flags=_MI),
        sig("select-from", r"^\s*SELECT\s+.+?\s+FROM\s+\w+", flags=_MI),
    )),
)

EXTENSION_RULE = ExtensionRule(
    table=(
        ("py", CAT_PYTHON), ("pyw", CAT_PYTHON),
        ("sh", CAT_SHELL), ("bash", CAT_SHELL), ("zsh", CAT_SHELL),
        ("js", CAT_JAVASCRIPT), ("mjs", CAT_JAVASCRIPT), ("cjs", CAT_JAVASCRIPT),
        ("ts", CAT_TYPESCRIPT), ("mts", CAT_TYPESCRIPT), ("cts", CAT_TYPESCRIPT),
        ("jsx", CAT_REACT), ("tsx", CAT_REACT),
        ("vue", CAT_VUE),
        ("html", CAT_HTML), ("htm", CAT_HTML),
        ("css", CAT_CSS), ("scss", CAT_CSS), ("less", CAT_CSS),
        ("json", CAT_JSON),
        ("md", CAT_MARKDOWN), ("markdown", CAT_MARKDOWN),
        ("yml", CAT_YAML), ("yaml", CAT_YAML),
        ("env", CAT_ENV),
        ("sql", CAT_SQL),
        ("rs", CAT_RUST),
        ("go", CAT_GO),
        ("java", CAT_JAVA),
        ("kt", CAT_KOTLIN), ("kts", CAT_KOTLIN),
        ("c", CAT_C), ("h", CAT_C),
        ("cpp", CAT_CPP), ("cc", CAT_CPP), ("cxx", CAT_CPP), ("hpp", CAT_CPP),
        ("rb", CAT_RUBY),
        ("pl", CAT_PERL), ("pm", CAT_PERL),
        ("php", CAT_PHP),
    ),
    untrusted=frozenset({"vue"}),
)

FALLBACK_RULE = WeightedFallbackRule(banks=(
    (CAT_VUE, (wp(r"<template>", 5), wp(r"<script setup.*>", 5), wp(r"defineComponent", 4))),
    (CAT_TYPESCRIPT, (wp(r"import type", 3), wp(r"export const", 2))),
    (CAT_JAVASCRIPT, (wp(r"import .* from", 2), wp(r"export default", 2))),
    (CAT_HTML, (wp(r"<html>", 5), wp(r"<!DOCTYPE html>", 4, _MI))),
    (CAT_CSS, (wp(r"@import", 2), wp(r":root", 2), wp(r"^\s*[.#][\w-]+\s*\{", 1))),
    (CAT_JSON, (wp(r"\"name\":", 2), wp(r"\"scripts\":", 2), wp(r"^\s*\"[\w-]+\":\s", 1))),
    (CAT_MARKDOWN, (wp(r"^#{1,6} ", 2), wp(r"^---$", 2), wp(r"\[[^\]]+\]\([^)]+\)", 1))),
    (CAT_YAML, (wp(r"^version:", 2), wp(r"^services:", 2), wp(r"^\s*- [\w-]+:\s", 1))),
    (CAT_ENV, (wp(r"^[A-Z_][A-Z0-9_]*=.*", 2),)),
    (CAT_PYTHON, (wp(r"^\s*def ", 3), wp(r"^\s*import .*", 2))),
    (CAT_SHELL, (wp(r"#!/bin/(?:ba|z)?sh", 5), wp(r"^\s*(?:echo|export) ", 1))),
    (CAT_SQL, (wp(r"create table", 3, _MI), wp(r"select .* from", 2, _MI))),
    (CAT_KOTLIN, (wp(r"fun main", 3), wp(r"\bval ", 2))),
    (CAT_JAVA, (wp(r"public class", 3), wp(r"import java", 2))),
    (CAT_C, (wp(r"#include <.*>", 3), wp(r"int main\(", 2))),
    (CAT_CPP, (wp(r"std::cout", 2), wp(r"template <", 2))),
))

DEFAULT_RULES: tuple[Rule, ...] = (
    (SHEBANG_RULE,) + SIGNATURE_RULES + (EXTENSION_RULE, FALLBACK_RULE)
)


@dataclass(frozen=True)
class ClassifierConfig:
    """Immutable rule configuration handed to a Classifier."""
    rules: tuple[Rule, ...] = DEFAULT_RULES
    enabled_labels: Optional[frozenset[str]] = None
    enable_fallback: bool = True
    description: str = field(default="default", compare=False)


def build_classifier_config(
    enable_fallback: bool = True,
    enabled_labels: Optional[Iterable[str]] = None,
    rules: tuple[Rule, ...] = DEFAULT_RULES,
) -> ClassifierConfig:
    """
    Build a ClassifierConfig from the default (or given) ordered rules.

    `enabled_labels` limits signature/extension/fallback rules to those
    categories; the shebang rule is an explicit declaration and always
    applies.  With the fallback disabled the weighted rule (and the
    binary probe behind it) is dropped, so undecided files end as
    "unknown".
    """
    labels = frozenset(enabled_labels) if enabled_labels else None
    selected: list[Rule] = []
    for rule in rules:
        if isinstance(rule, WeightedFallbackRule) and not enable_fallback:
            continue
        if labels is not None and not isinstance(rule, ShebangRule):
            rule = rule.restricted_to(labels)
            if rule is None:
                continue
        selected.append(rule)
    logger.debug("Classifier rules: %d (fallback=%s, filter=%s)",
                 len(selected), enable_fallback,
                 ",".join(sorted(labels)) if labels else "all")
    return ClassifierConfig(
        rules=tuple(selected),
        enabled_labels=labels,
        enable_fallback=enable_fallback,
        description="custom" if labels or not enable_fallback else "default",
    )
