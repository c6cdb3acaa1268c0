"""
Test the content-type probe (magic headers, Pillow image check, entropy).
"""
import io
import random

from PIL import Image

from codesort.probe import calculate_entropy, non_text_ratio, probe_content


def test_text_samples():
    print("── Test: text samples ──")
    assert probe_content(b"").kind == "empty"
    assert not probe_content(b"").is_binary
    r = probe_content("print('héllo')\n".encode("utf-8"))
    assert not r.is_binary and r.kind == "text"
    # latin-1 text with a few high bytes is still text
    r = probe_content("caf\xe9 cr\xe8me br\xfbl\xe9e\n".encode("latin-1") * 10)
    assert not r.is_binary and r.detail == "non-utf8"
    print("  ✅ text samples: PASS")


def test_magic_headers():
    print("── Test: magic headers ──")
    assert probe_content(b"\x7fELF\x02\x01\x01").kind == "executable"
    assert probe_content(b"PK\x03\x04" + b"\x14" * 20).mime == "application/zip"
    assert probe_content(b"%PDF-1.7\n").kind == "document"
    assert probe_content(b"SQLite format 3\x00" + b"\x00" * 10).kind == "database"
    r = probe_content(b"RIFF\x00\x00\x00\x00WEBPVP8 ")
    assert r.is_binary and r.mime == "image/webp"
    print("  ✅ magic headers: PASS")


def test_pillow_image():
    print("── Test: Pillow image check ──")
    buf = io.BytesIO()
    Image.new("RGB", (7, 5), (255, 0, 0)).save(buf, format="PNG")
    r = probe_content(buf.getvalue())
    assert r.is_binary and r.kind == "image" and r.mime == "image/png"
    assert r.detail == "PNG 7x5", r.detail

    # A truncated header is still binary, Pillow just cannot describe it
    r = probe_content(b"\x89PNG\r\n\x1A\n\x00\x00")
    assert r.is_binary and r.detail == ""
    print("  ✅ Pillow image check: PASS")


def test_statistics():
    print("── Test: entropy / control bytes ──")
    assert calculate_entropy(b"") == 0.0
    assert calculate_entropy(b"aaaa") == 0.0
    assert abs(calculate_entropy(bytes(range(256))) - 8.0) < 1e-9
    assert non_text_ratio(b"abc\n") == 0.0
    assert non_text_ratio(b"\x01\x02ab") == 0.5

    random.seed(7)
    noise = bytes(random.randint(1, 0xFF) for _ in range(8192))
    assert probe_content(noise).is_binary
    assert probe_content(b"text\x00with nul").is_binary
    print("  ✅ entropy / control bytes: PASS")


def main():
    print("=" * 60)
    print("  Content Probe — Test Suite")
    print("=" * 60)
    print()
    test_text_samples()
    test_magic_headers()
    test_pillow_image()
    test_statistics()
    print()
    print("=" * 60)
    print("  ALL TESTS PASSED ✅")
    print("=" * 60)


if __name__ == "__main__":
    main()
