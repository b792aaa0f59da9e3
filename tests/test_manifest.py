from __future__ import annotations

import json
from pathlib import Path

import pytest

from plugbuild.errors import ManifestError
from plugbuild.manifest import (
    UnitManifest,
    load_manifest,
    manifest_bytes,
    rewrite_manifest,
    save_manifest,
)

DIGEST = "ab" * 32


def _write_manifest(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload))
    return path


def test_load_keeps_unknown_fields(tmp_path: Path) -> None:
    path = _write_manifest(
        tmp_path / "manifest.json",
        {"name": "Alpha", "main": "src/index.ts", "authors": [{"name": "x"}], "vendetta": {}},
    )
    manifest = load_manifest(path)
    assert manifest.name == "Alpha"
    assert manifest.main == "src/index.ts"
    assert manifest.hash is None
    assert manifest.document() == {
        "name": "Alpha",
        "main": "src/index.ts",
        "authors": [{"name": "x"}],
        "vendetta": {},
    }


def test_rewrite_replaces_main_and_hash_only() -> None:
    manifest = UnitManifest.model_validate(
        {"name": "Alpha", "main": "src/index.ts", "hash": "old", "description": "demo"}
    )
    updated = rewrite_manifest(manifest, digest=DIGEST, artifact_name="index.js")
    assert updated.document() == {
        "name": "Alpha",
        "main": "index.js",
        "hash": DIGEST,
        "description": "demo",
    }
    assert manifest.main == "src/index.ts"


def test_rewrite_keeps_source_key_order(tmp_path: Path) -> None:
    path = _write_manifest(
        tmp_path / "manifest.json",
        {"description": "demo", "name": "Alpha", "authors": [], "main": "src/index.ts"},
    )
    updated = rewrite_manifest(load_manifest(path), digest=DIGEST, artifact_name="index.js")
    assert list(updated.document()) == ["description", "name", "authors", "main", "hash"]
    target = tmp_path / "dist" / "manifest.json"
    save_manifest(target, updated)
    assert list(json.loads(target.read_text())) == [
        "description",
        "name",
        "authors",
        "main",
        "hash",
    ]


def test_existing_hash_keeps_its_position() -> None:
    manifest = UnitManifest.model_validate(
        {"hash": "old", "name": "Alpha", "main": "index.js", "vendetta": {"icon": "x"}}
    )
    updated = rewrite_manifest(manifest, digest=DIGEST, artifact_name="index.js")
    assert list(updated.document()) == ["hash", "name", "main", "vendetta"]
    assert updated.hash == DIGEST


def test_save_writes_compact_json(tmp_path: Path) -> None:
    manifest = UnitManifest.model_validate({"name": "Ünit", "main": "index.js", "hash": DIGEST})
    target = tmp_path / "dist" / "alpha" / "manifest.json"
    save_manifest(target, manifest)
    raw = target.read_bytes()
    assert raw == manifest_bytes(manifest)
    assert b" " not in raw
    assert json.loads(raw) == {"name": "Ünit", "main": "index.js", "hash": DIGEST}
    assert [item.name for item in target.parent.iterdir()] == ["manifest.json"]


def test_save_failure_is_manifest_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    manifest = UnitManifest(name="Alpha", main="index.js")
    with pytest.raises(ManifestError, match="cannot write manifest"):
        save_manifest(blocker / "manifest.json", manifest)


def test_missing_manifest(tmp_path: Path) -> None:
    with pytest.raises(ManifestError, match="cannot read manifest"):
        load_manifest(tmp_path / "manifest.json")


def test_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "manifest.json"
    path.write_text("{name: Alpha}")
    with pytest.raises(ManifestError, match="not valid JSON"):
        load_manifest(path)


@pytest.mark.parametrize(
    "payload",
    [
        ["name", "main"],
        {"main": "index.js"},
        {"name": "Alpha"},
        {"name": "Alpha", "main": ""},
        {"name": "Alpha", "main": "../outside.js"},
        {"name": "Alpha", "main": "/abs/index.js"},
    ],
)
def test_invalid_manifest_documents(tmp_path: Path, payload: object) -> None:
    path = _write_manifest(tmp_path / "manifest.json", payload)
    with pytest.raises(ManifestError):
        load_manifest(path)
