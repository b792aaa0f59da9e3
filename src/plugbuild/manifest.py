from __future__ import annotations

import json
import logging
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    PrivateAttr,
    ValidationError,
    field_validator,
    model_validator,
)

from plugbuild.errors import ManifestError
from plugbuild.fileio import atomic_write_bytes

logger = logging.getLogger(__name__)


class UnitManifest(BaseModel):
    """Plugin metadata document; unknown fields are carried through untouched."""

    model_config = ConfigDict(extra="allow")

    name: str
    main: str
    hash: str | None = None

    _key_order: tuple[str, ...] = PrivateAttr(default=())

    @model_validator(mode="wrap")
    @classmethod
    def _remember_key_order(cls, data: Any, handler: Any) -> UnitManifest:
        manifest = handler(data)
        if isinstance(data, dict):
            manifest._key_order = tuple(data)
        return manifest

    @field_validator("main")
    @classmethod
    def _main_is_relative(cls, value: str) -> str:
        normalized = value.replace("\\", "/").strip()
        if not normalized:
            raise ValueError("main must not be empty")
        path = PurePosixPath(normalized)
        if path.is_absolute() or ".." in path.parts:
            raise ValueError(f"main must be a path inside the plugin directory: {value}")
        return value

    def document(self) -> dict[str, object]:
        payload = self.model_dump(mode="json")
        if self.hash is None:
            payload.pop("hash", None)
        # keep the key order the document was read with
        ordered = {key: payload[key] for key in self._key_order if key in payload}
        ordered.update((key, value) for key, value in payload.items() if key not in ordered)
        return ordered


def load_manifest(path: Path) -> UnitManifest:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"cannot read manifest {path}: {exc}") from exc
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ManifestError(f"manifest {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"manifest {path} must be a JSON object")
    try:
        return UnitManifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestError(f"manifest {path} is invalid: {exc}") from exc


def rewrite_manifest(manifest: UnitManifest, *, digest: str, artifact_name: str) -> UnitManifest:
    payload = manifest.document()
    payload["main"] = artifact_name
    payload["hash"] = digest
    return UnitManifest.model_validate(payload)


def manifest_bytes(manifest: UnitManifest) -> bytes:
    return json.dumps(manifest.document(), separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


def save_manifest(path: Path, manifest: UnitManifest) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_bytes(path, manifest_bytes(manifest))
    except OSError as exc:
        raise ManifestError(f"cannot write manifest {path}: {exc}") from exc
    logger.info("manifest saved path=%s hash=%s", path, manifest.hash)
