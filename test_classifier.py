"""
Test the classifier rule layers against small synthetic samples.
Covers: shebang precedence, signature order, untrusted .vue extension,
weighted fallback, content-type probe, category filter.
"""
from codesort.categories import get_category
from codesort.classifier import Candidate, Classifier, file_extension
from codesort.rules import build_classifier_config, parse_shebang


def detect(text, name="f0000001", **config):
    data = text.encode("utf-8") if isinstance(text, str) else text
    classifier = Classifier(build_classifier_config(**config))
    return classifier.detect(Candidate.from_bytes(data, path=name))


def test_file_extension():
    print("── Test: file extension ──")
    assert file_extension("/tmp/a/f123.PY") == "py"
    assert file_extension("f0001") == ""
    assert file_extension(".env") == "env"
    assert file_extension("archive.tar.gz") == "gz"
    print("  ✅ file extension: PASS")


def test_shebang_parsing():
    print("── Test: shebang parsing ──")
    assert parse_shebang("#!/usr/bin/env python3") == "python"
    assert parse_shebang("#!/usr/bin/python3.11 -u") == "python"
    assert parse_shebang("#!/bin/bash") == "bash"
    assert parse_shebang("#!/usr/bin/env -S node --harmony") == "node"
    assert parse_shebang("# not a shebang") == ""
    assert parse_shebang("#!") == ""
    print("  ✅ shebang parsing: PASS")


def test_shebang_wins_over_content():
    print("── Test: shebang precedence ──")
    r = detect("#!/usr/bin/env python3\nconsole.log('hi');\nmodule.exports = {};\n")
    assert r.label == "python", r
    assert r.rule == "shebang"

    r = detect("#!/bin/sh\nimport React from 'react'\n", name="x.js")
    assert r.label == "shell"

    r = detect("#!/usr/bin/env node\nprint('x')\n")
    assert r.label == "javascript"

    # Unknown interpreter falls through to content
    r = detect("#!/usr/bin/awk -f\n<?php echo 1; ?>\n")
    assert r.label == "php"
    print("  ✅ shebang precedence: PASS")


def test_vue_ts_before_vue_and_html():
    print("── Test: typed composite first ──")
    src = (
        "<template>\n  <div>{{ msg }}</div>\n</template>\n\n"
        "<script setup lang=\"ts\">\nconst msg: string = 'hi'\n</script>\n"
    )
    r = detect(src)
    assert r.label == "vue-ts", r
    assert "typed-script-section" in r.matched

    r = detect("<template>\n  <p/>\n</template>\n<script>\nexport default {}\n</script>\n")
    assert r.label == "vue"

    r = detect("<!DOCTYPE html>\n<html><body><script>var a = 1</script></body></html>\n")
    assert r.label == "html"
    print("  ✅ typed composite first: PASS")


def test_signature_order():
    print("── Test: signature order ──")
    assert detect("import React from 'react'\nexport default () => null\n").label == "react"
    assert detect("export default defineNuxtConfig({})\n").label == "nuxt"
    assert detect("import { defineConfig } from 'vite'\nexport default defineConfig({})\n").label == "vite"
    assert detect("const app = express()\napp.listen(3000)\n").label == "express"
    assert detect("@NgModule({})\nexport class AppModule {}\n").label == "angular"
    assert detect("export interface User {\n  id: number\n}\n").label == "typescript"
    assert detect("const x = require('fs')\nmodule.exports = x\n").label == "javascript"
    assert detect("use std::io;\nfn main() {\n}\n").label == "rust"
    assert detect("package main\n\nfunc main() {\n}\n").label == "go"
    assert detect("public class Main {\n}\n").label == "java"
    assert detect("fun main(args: Array<String>) {\n}\n").label == "kotlin"
    assert detect("#include <iostream>\nint main() { std::cout << 1; }\n").label == "cpp"
    assert detect("#include <stdio.h>\nint main(void) { return 0; }\n").label == "c"
    assert detect("import os\n\ndef main():\n    pass\n").label == "python"
    assert detect("CREATE TABLE users (id int);\n").label == "sql"
    print("  ✅ signature order: PASS")


def test_kotlin_importing_java():
    print("── Test: kotlin with java imports ──")
    kt = "import java.util.*\nimport java.io.File\n\nval names = listOf(\"a\")\n"
    r = detect(kt)
    assert r.label == "kotlin"
    assert "val-binding" in r.matched
    r = detect("import java.time.Instant\n\nprivate fun stamp(): Long = Instant.now().toEpochMilli()\n")
    assert r.label == "kotlin"
    assert detect("import java.util.*;\n\nclass Box {\n}\n").label == "java"
    assert detect("import java.util.List;\n").label == "java"
    print("  ✅ kotlin with java imports: PASS")


def test_deterministic():
    print("── Test: determinism ──")
    classifier = Classifier()
    cand = Candidate.from_bytes(b"fn main() {}\nlet mut x = 1;\n")
    results = {classifier.detect(cand) for _ in range(20)}
    assert len(results) == 1
    print("  ✅ determinism: PASS")


def test_extension_fallback():
    print("── Test: extension fallback ──")
    r = detect("hello world\n", name="notes.py")
    assert r.label == "python" and r.rule == "extension"
    r = detect("hello world\n", name="notes.sql")
    assert r.label == "sql"
    # Content beats the extension
    r = detect("<?php echo 1;\n", name="page.txt.js")
    assert r.label == "php"
    print("  ✅ extension fallback: PASS")


def test_markerless_vue_uses_content_rules():
    print("── Test: marker-less .vue ──")
    r = detect("just some notes\nnothing else here\n", name="broken.vue")
    assert r.label == "unknown", r
    assert r.rule == "probe"

    r = detect("export default {\n  name: 'x'\n}\n", name="broken.vue")
    assert r.label == "javascript"
    print("  ✅ marker-less .vue: PASS")


def test_weighted_fallback():
    print("── Test: weighted fallback ──")
    r = detect("# Title\n\nSome text with a [link](http://x)\n## Sub\n")
    assert r.label == "markdown", r
    assert r.rule == "fallback" and r.score > 0

    r = detect("DATABASE_URL=postgres://x\nSECRET_KEY=abc\n")
    assert r.label == "env"
    print("  ✅ weighted fallback: PASS")


def test_fallback_window():
    print("── Test: fallback line window ──")
    text = "plain words\n" * 50 + "# Heading\n"
    assert detect(text).label == "unknown"
    classifier = Classifier()
    cand = Candidate.from_bytes(text.encode(), sample_lines=60)
    assert classifier.detect(cand).label == "markdown"
    print("  ✅ fallback line window: PASS")


def test_tiny_and_binary():
    print("── Test: tiny / binary samples ──")
    r = detect("abcde")
    assert r.label in ("unknown", "binary")
    assert detect(b"").label == "unknown"
    r = detect(b"\x7fELF\x02\x01\x01\x00" + b"\x00" * 64)
    assert r.label == "binary", r
    print("  ✅ tiny / binary samples: PASS")


def test_fallback_disabled():
    print("── Test: fallback disabled ──")
    r = detect("# Title\n\n## Sub\n", enable_fallback=False)
    assert r.label == "unknown" and r.rule == "default"
    r = detect(b"\x7fELF" + b"\x00" * 32, enable_fallback=False)
    assert r.label == "unknown"
    print("  ✅ fallback disabled: PASS")


def test_category_filter():
    print("── Test: category filter ──")
    # Only python enabled: a C file can no longer be detected as c
    r = detect("#include <stdio.h>\nint main(void) { return 0; }\n",
               enabled_labels=["python"])
    assert r.label != "c"
    # Shebang rule is never filtered
    r = detect("#!/bin/bash\necho hi\n", enabled_labels=["python"])
    assert r.label == "shell"
    assert get_category("python").directory == "py"
    print("  ✅ category filter: PASS")


def main():
    print("=" * 60)
    print("  Classifier — Test Suite")
    print("=" * 60)
    print()
    test_file_extension()
    test_shebang_parsing()
    test_shebang_wins_over_content()
    test_vue_ts_before_vue_and_html()
    test_signature_order()
    test_kotlin_importing_java()
    test_deterministic()
    test_extension_fallback()
    test_markerless_vue_uses_content_rules()
    test_weighted_fallback()
    test_fallback_window()
    test_tiny_and_binary()
    test_fallback_disabled()
    test_category_filter()
    print()
    print("=" * 60)
    print("  ALL TESTS PASSED ✅")
    print("=" * 60)


if __name__ == "__main__":
    main()
