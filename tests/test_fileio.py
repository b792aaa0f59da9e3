from __future__ import annotations

from pathlib import Path

from plugbuild.fileio import atomic_write_bytes, restore_files, snapshot_files


def test_atomic_write_replaces_existing_file(tmp_path: Path) -> None:
    target = tmp_path / "index.js"
    target.write_bytes(b"old")
    atomic_write_bytes(target, b"new")
    assert target.read_bytes() == b"new"
    assert [item.name for item in tmp_path.iterdir()] == ["index.js"]


def test_restore_puts_previous_bytes_back(tmp_path: Path) -> None:
    out_dir = tmp_path / "alpha"
    out_dir.mkdir()
    (out_dir / "index.js").write_bytes(b"previous artifact")
    snapshot = snapshot_files(out_dir, ["index.js", "manifest.json"])
    assert snapshot == {"index.js": b"previous artifact", "manifest.json": None}

    (out_dir / "index.js").write_bytes(b"half written")
    (out_dir / "manifest.json").write_bytes(b"{}")
    restore_files(out_dir, snapshot, existed=True)

    assert (out_dir / "index.js").read_bytes() == b"previous artifact"
    assert not (out_dir / "manifest.json").exists()


def test_restore_removes_directory_created_by_failed_attempt(tmp_path: Path) -> None:
    out_dir = tmp_path / "alpha"
    snapshot = snapshot_files(out_dir, ["index.js", "manifest.json"])
    out_dir.mkdir()
    (out_dir / "index.js").write_bytes(b"new")
    (out_dir / ".index.js.abc.tmp").write_bytes(b"partial")
    restore_files(out_dir, snapshot, existed=False)
    assert not out_dir.exists()


def test_restore_without_output_directory_is_a_no_op(tmp_path: Path) -> None:
    out_dir = tmp_path / "alpha"
    restore_files(out_dir, {"index.js": None}, existed=False)
    assert not out_dir.exists()
