"""
End-to-end test: SortManager over a synthetic PhotoRec-style output tree.
Checks directory bootstrap, sorting, reconciliation, reconstruction,
sorting_log.json and the zip archive.
"""
import os
import json
import shutil
import zipfile
import tempfile

from codesort.categories import ALL_CATEGORIES
from codesort.config import SortConfig
from codesort.manager import SortManager
from main import main as cli_main

SAMPLES = [
    ("f0000001.txt", "#!/usr/bin/env python3\nprint('hi')\n"),
    ("f0000002.txt", "import React from 'react'\nexport default () => null\n"),
    ("f0000003.txt", "<template>\n  <div/>\n</template>\n<script setup lang=\"ts\">\n"
                     "const a: number = 1\n</script>\n"),
    ("f0000004.txt", "#!/usr/bin/env python3\nprint('hi')\n"),      # duplicate of 0001
    ("f0000005.py", "hello world\n"),
    ("f0000006.sql", "hello world\n"),                                # same bytes, other category
    ("f0000007.vue", "<template>\n  <p>frag</p>\n</template>\n"),
    ("f0000008.vue", "<script setup>\nconst name = 'frag'\n</script>\n"),
    ("f0000009", "abcde"),
]


def build_recup_dir(root):
    src = os.path.join(root, "recup_dir.1")
    os.makedirs(src)
    for name, text in SAMPLES:
        with open(os.path.join(src, name), "w") as f:
            f.write(text)
    return src


def test_full_run():
    print("── Test: full run ──")
    tmpdir = tempfile.mkdtemp(prefix="codesort_test_")
    try:
        build_recup_dir(tmpdir)
        dest = os.path.join(tmpdir, "recovered_code")
        config = SortConfig(
            source_dirs=(os.path.join(tmpdir, "recup_dir.*"),),
            dest_dir=dest,
            shard_count=3,
            reconstruct_fragments=True,
            zip_output=True,
        )
        session = SortManager(config).run(show_progress=False)

        summary = session.summary
        assert summary["total"] == len(SAMPLES)
        assert summary["processed"] == len(SAMPLES)
        assert summary["duplicates"] == 1
        assert summary["deferred"] == 1 and summary["propagated"] == 1
        assert not session.was_cancelled

        # Every category container exists, even when empty
        for cat in ALL_CATEGORIES:
            assert os.path.isdir(os.path.join(dest, cat.directory)), cat.directory

        def files(d):
            return sorted(n for n in os.listdir(os.path.join(dest, d))
                          if os.path.isfile(os.path.join(dest, d, n)))

        assert len(files("py")) == 2            # shebang script + "hello world"
        assert len(files("sql")) == 1
        assert files("react")[0].startswith("f0000002_")
        assert files("react")[0].endswith(".jsx")
        assert len(files("vue-ts")) == 1
        assert len(files("unknown")) == 1

        # Fragments classified as vue were merged
        assert len(session.reconstructed) == 1
        merged = session.reconstructed[0]
        assert merged.path.startswith(os.path.join(dest, "vue", "merged"))
        assert "<template>" in merged.text and "<script setup>" in merged.text

        with open(config.log_path) as f:
            log = json.load(f)
        assert log["summary"]["total"] == len(SAMPLES)
        assert len(log["log"]) == len(SAMPLES)
        statuses = sorted(r["status"] for r in log["log"])
        assert statuses.count("duplicate") == 1 and statuses.count("deferred") == 1
        by_source = {os.path.basename(r["source"]): r for r in log["log"]}
        assert by_source["f0000001.txt"]["rule"] == "shebang"
        assert by_source["f0000003.txt"]["category"] == "vue-ts"

        assert session.archive_path.endswith(".zip")
        with zipfile.ZipFile(session.archive_path) as zf:
            assert "sorting_log.json" in zf.namelist()
        print("  ✅ full run: PASS")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_typed_fragments_reconstructed():
    print("── Test: typed fragment reconstruction ──")
    tmpdir = tempfile.mkdtemp(prefix="codesort_test_")
    try:
        src = os.path.join(tmpdir, "recup_dir.1")
        os.makedirs(src)
        with open(os.path.join(src, "f0000001.vue"), "w") as f:
            f.write("<template>\n  <h1>{{ title }}</h1>\n</template>\n")
        with open(os.path.join(src, "f0000002.vue"), "w") as f:
            f.write("<script setup lang=\"ts\">\nconst title: string = 'x'\n</script>\n")
        dest = os.path.join(tmpdir, "out")
        config = SortConfig(source_dirs=(src,), dest_dir=dest,
                            reconstruct_fragments=True)
        session = SortManager(config).run(show_progress=False)

        with open(config.log_path) as f:
            records = json.load(f)["log"]
        by_source = {os.path.basename(r["source"]): r["category"] for r in records}
        assert by_source == {"f0000001.vue": "vue", "f0000002.vue": "vue-ts"}
        assert session.summary["reconstructed"] == 1
        merged = session.reconstructed[0]
        assert os.path.dirname(merged.path) == os.path.join(dest, "vue-ts", "merged")
        assert "<h1>" in merged.text and "lang=\"ts\"" in merged.text
        assert os.path.isfile(merged.path)
        print("  ✅ typed fragment reconstruction: PASS")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_filtered_bootstrap():
    print("── Test: filtered bootstrap ──")
    tmpdir = tempfile.mkdtemp(prefix="codesort_test_")
    try:
        src = build_recup_dir(tmpdir)
        dest = os.path.join(tmpdir, "out")
        config = SortConfig(source_dirs=(src,), dest_dir=dest,
                            filter_types=("python",), project_keywords=("react",))
        session = SortManager(config).run(show_progress=False)
        dirs = sorted(os.listdir(dest))
        assert "projects" in dirs and "py" in dirs and "unknown" in dirs
        assert "sql" not in dirs
        assert os.path.isdir(os.path.join(dest, "projects", "react"))
        assert session.summary["categories"]["project:react"] == 1
        print("  ✅ filtered bootstrap: PASS")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_cli_run():
    print("── Test: CLI run ──")
    tmpdir = tempfile.mkdtemp(prefix="codesort_test_")
    try:
        src = build_recup_dir(tmpdir)
        dest = os.path.join(tmpdir, "out")
        code = cli_main(["-s", src, "-o", dest, "-j", "2", "--no-progress",
                         "--min-size", "10"])
        assert code == 0
        with open(os.path.join(dest, "sorting_log.json")) as f:
            log = json.load(f)
        assert log["summary"]["skipped"] == 1        # the 5-byte file
        assert os.listdir(os.path.join(dest, "unknown")) == []
        print("  ✅ CLI run: PASS")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def main():
    print("=" * 60)
    print("  Sort Manager — Test Suite")
    print("=" * 60)
    print()
    test_full_run()
    test_typed_fragments_reconstructed()
    test_filtered_bootstrap()
    test_cli_run()
    print()
    print("=" * 60)
    print("  ALL TESTS PASSED ✅")
    print("=" * 60)


if __name__ == "__main__":
    main()
