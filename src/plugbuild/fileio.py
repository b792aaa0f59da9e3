from __future__ import annotations

import os
import tempfile
from pathlib import Path


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` so readers see either the old or the new file.

    The parent directory must already exist. Raises ``OSError`` on failure and
    removes the temporary file it created.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def snapshot_files(directory: Path, names: list[str]) -> dict[str, bytes | None]:
    """Capture the current bytes of ``names`` under ``directory`` (``None`` when absent)."""
    snapshot: dict[str, bytes | None] = {}
    for name in names:
        path = directory / name
        snapshot[name] = path.read_bytes() if path.is_file() else None
    return snapshot


def restore_files(directory: Path, snapshot: dict[str, bytes | None], *, existed: bool) -> None:
    if not directory.exists():
        return
    for name, data in snapshot.items():
        path = directory / name
        if data is None:
            path.unlink(missing_ok=True)
        elif not path.is_file() or path.read_bytes() != data:
            atomic_write_bytes(path, data)
    if not existed:
        for leftover in directory.iterdir():
            if leftover.name.startswith(".") and leftover.name.endswith(".tmp"):
                leftover.unlink(missing_ok=True)
        if not any(directory.iterdir()):
            directory.rmdir()
