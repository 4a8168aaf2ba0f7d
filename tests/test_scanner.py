from pathlib import Path

from gopro_sync.media.scanner import find_folder, resolve_inputs, scan


def test_find_folder_searches_recursively(tmp_path: Path):
    target = tmp_path / "store_00010001" / "DCIM"
    (target / "100GOPRO").mkdir(parents=True)
    (tmp_path / "other").mkdir()

    assert find_folder(tmp_path, "DCIM") == target


def test_find_folder_returns_none_when_absent(tmp_path: Path):
    (tmp_path / "a" / "b").mkdir(parents=True)

    assert find_folder(tmp_path, "DCIM") is None
    assert find_folder(tmp_path / "missing", "DCIM") is None


def test_scan_matches_pattern_recursively(tmp_path: Path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "b.MP4").write_bytes(b"x")
    (tmp_path / "sub" / "a.MP4").write_bytes(b"x")
    (tmp_path / "c.txt").write_text("x")

    found = scan(tmp_path, "*.MP4")

    assert [p.name for p in found] == ["b.MP4", "a.MP4"]
    assert [p.name for p in scan(tmp_path, "*.MP4", recursive=False)] == ["b.MP4"]


def test_scan_missing_directory_is_empty(tmp_path: Path):
    assert scan(tmp_path / "nope", "*.MP4") == []


def test_resolve_inputs_accepts_paths_and_bare_names(tmp_path: Path):
    default_dir = tmp_path / "unprocessed"
    default_dir.mkdir()
    (default_dir / "GH010001.MP4").write_bytes(b"x")
    elsewhere = tmp_path / "GH020001.MP4"
    elsewhere.write_bytes(b"x")

    resolved = resolve_inputs(["GH010001.MP4", str(elsewhere), "missing.MP4"], default_dir)

    assert resolved == [(default_dir / "GH010001.MP4").resolve(), elsewhere.resolve()]
