from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from plugbuild.config import MANIFEST_NAME
from plugbuild.errors import DigestError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1 << 16


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def digest_artifact(path: Path) -> str:
    """Hash the artifact as persisted on disk, never an in-memory copy."""
    digest = hashlib.sha256()
    try:
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as exc:
        raise DigestError(f"cannot read artifact {path}: {exc}") from exc
    value = digest.hexdigest()
    logger.debug("artifact digest path=%s sha256=%s", path, value)
    return value


@dataclass(frozen=True)
class VerifyResult:
    unit_id: str
    ok: bool
    message: str
    expected: str | None = None
    actual: str | None = None


def verify_output(unit_dir: Path) -> VerifyResult:
    unit_id = unit_dir.name
    manifest_path = unit_dir / MANIFEST_NAME
    try:
        payload = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        return VerifyResult(unit_id=unit_id, ok=False, message=f"unreadable manifest: {exc}")
    if not isinstance(payload, dict):
        return VerifyResult(unit_id=unit_id, ok=False, message="manifest is not an object")
    expected = payload.get("hash")
    main = payload.get("main")
    if not isinstance(expected, str) or not isinstance(main, str):
        return VerifyResult(unit_id=unit_id, ok=False, message="manifest missing main/hash")
    try:
        actual = digest_artifact(unit_dir / main)
    except DigestError as exc:
        return VerifyResult(unit_id=unit_id, ok=False, message=str(exc), expected=expected)
    if actual != expected:
        return VerifyResult(
            unit_id=unit_id,
            ok=False,
            message="hash mismatch",
            expected=expected,
            actual=actual,
        )
    return VerifyResult(unit_id=unit_id, ok=True, message="ok", expected=expected, actual=actual)
