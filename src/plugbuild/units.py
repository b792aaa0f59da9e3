from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from plugbuild.config import MANIFEST_NAME
from plugbuild.errors import ManifestError, ResolutionError
from plugbuild.manifest import UnitManifest, load_manifest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unit:
    id: str
    source_root: Path
    manifest: UnitManifest

    @property
    def entry_path(self) -> Path:
        return self.source_root / self.manifest.main


def discover_units(units_dir: Path) -> list[str]:
    """Return unit ids (one per subdirectory), sorted by name."""
    if not units_dir.is_dir():
        raise ManifestError(f"units directory not found: {units_dir}")
    unit_ids = sorted(
        item.name
        for item in units_dir.iterdir()
        if item.is_dir() and not item.name.startswith(".")
    )
    logger.info("units discovered dir=%s count=%s", units_dir, len(unit_ids))
    return unit_ids


def load_unit(units_dir: Path, unit_id: str) -> Unit:
    source_root = units_dir / unit_id
    manifest = load_manifest(source_root / MANIFEST_NAME)
    unit = Unit(id=unit_id, source_root=source_root, manifest=manifest)
    if not unit.entry_path.is_file():
        raise ResolutionError(
            f"entry module {manifest.main!r} not found for unit {unit_id}",
            unit_id=unit_id,
        )
    return unit
