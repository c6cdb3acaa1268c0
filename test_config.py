"""
Test configuration parsing and validation, plus the CLI argument mapping.
"""
import os
import shutil
import tempfile

from codesort.config import (
    ConfigError, SortConfig, normalize_extensions, parse_list, parse_size,
    resolve_source_dirs,
)
from main import EXIT_CONFIG, build_config, build_parser, main as cli_main


def expect_config_error(fn, *args, **kwargs):
    try:
        fn(*args, **kwargs)
    except ConfigError:
        return
    assert False, f"{fn.__name__}{args} did not raise ConfigError"


def test_parse_size():
    print("── Test: size parsing ──")
    assert parse_size("512") == 512
    assert parse_size("100k") == 100 * 1024
    assert parse_size("10M") == 10 * 1024 ** 2
    assert parse_size("2GB") == 2 * 1024 ** 3
    assert parse_size("2GiB") == 2 * 1024 ** 3
    assert parse_size(" 1t ") == 1024 ** 4
    for bad in ("", "abc", "10X", "-5", "1.5M", "M"):
        expect_config_error(parse_size, bad)
    print("  ✅ size parsing: PASS")


def test_lists():
    print("── Test: list parsing ──")
    assert parse_list("a, b,,c ") == ("a", "b", "c")
    assert parse_list("") == ()
    assert parse_list(None) == ()
    assert normalize_extensions([".JPG", "png", " ", "."]) == frozenset({"jpg", "png"})
    print("  ✅ list parsing: PASS")


def test_validate():
    print("── Test: validation ──")
    tmpdir = tempfile.mkdtemp(prefix="codesort_test_")
    try:
        src1 = os.path.join(tmpdir, "recup_dir.1")
        src2 = os.path.join(tmpdir, "recup_dir.2")
        os.makedirs(src1)
        os.makedirs(src2)
        dest = os.path.join(tmpdir, "out")

        pattern = os.path.join(tmpdir, "recup_dir.*")
        assert resolve_source_dirs([pattern]) == [src1, src2]
        assert SortConfig(source_dirs=(pattern,), dest_dir=dest).validate() == [src1, src2]

        missing = SortConfig(source_dirs=(os.path.join(tmpdir, "nope"),), dest_dir=dest)
        expect_config_error(missing.validate)
        expect_config_error(SortConfig(source_dirs=(src1,), dest_dir=dest,
                                       min_size=100, max_size=10).validate)
        expect_config_error(SortConfig(source_dirs=(src1,), dest_dir=dest,
                                       max_size=-1).validate)
        expect_config_error(SortConfig(source_dirs=(src1,), dest_dir=dest,
                                       filter_types=("cobol",)).validate)
        expect_config_error(SortConfig(source_dirs=(src1,), dest_dir=dest,
                                       sample_lines=0).validate)
        expect_config_error(SortConfig(source_dirs=(src1,), dest_dir=src1).validate)

        cfg = SortConfig(source_dirs=(src1,), dest_dir=dest, filter_types=("python",),
                         enable_fallback=False)
        cc = cfg.classifier_config()
        assert cc.enabled_labels == frozenset({"python"}) and not cc.enable_fallback
        assert cfg.log_path == os.path.join(dest, "sorting_log.json")
        print("  ✅ validation: PASS")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def test_cli_mapping():
    print("── Test: CLI mapping ──")
    args = build_parser().parse_args([
        "-s", "a", "-s", "b", "-o", "out", "-j", "3", "-p", "x,y",
        "-f", "python,sql", "-x", ".jpg,png", "--size", "10M", "--min-size", "1k",
        "-l", "25", "--no-fallback", "--no-rename", "--reconstruct", "--move", "--zip",
    ])
    cfg = build_config(args)
    assert cfg.source_dirs == ("a", "b")
    assert cfg.dest_dir == "out" and cfg.shard_count == 3
    assert cfg.project_keywords == ("x", "y")
    assert cfg.filter_types == ("python", "sql")
    assert cfg.skip_extensions == frozenset({"jpg", "png"})
    assert cfg.max_size == 10 * 1024 ** 2 and cfg.min_size == 1024
    assert cfg.sample_lines == 25
    assert not cfg.enable_fallback and not cfg.rename_by_category
    assert cfg.reconstruct_fragments and cfg.move and cfg.zip_output

    args = build_parser().parse_args([])
    cfg = build_config(args)
    assert cfg.source_dirs == ("./recup_dir.*",) and cfg.shard_count == 0

    expect_config_error(build_config, build_parser().parse_args(["--size", "huge"]))
    print("  ✅ CLI mapping: PASS")


def test_cli_exit_codes():
    print("── Test: CLI exit codes ──")
    tmpdir = tempfile.mkdtemp(prefix="codesort_test_")
    try:
        missing = os.path.join(tmpdir, "nope")
        assert cli_main(["-s", missing, "-o", os.path.join(tmpdir, "out"),
                         "--no-progress"]) == EXIT_CONFIG
        assert cli_main(["--size", "lots", "-s", tmpdir]) == EXIT_CONFIG
        assert cli_main(["--list-categories"]) == 0
        print("  ✅ CLI exit codes: PASS")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def main():
    print("=" * 60)
    print("  Configuration — Test Suite")
    print("=" * 60)
    print()
    test_parse_size()
    test_lists()
    test_validate()
    test_cli_mapping()
    test_cli_exit_codes()
    print()
    print("=" * 60)
    print("  ALL TESTS PASSED ✅")
    print("=" * 60)


if __name__ == "__main__":
    main()
