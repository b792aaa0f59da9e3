from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from rich.console import Console
from rich.markup import escape

from plugbuild.bundle.bundler import Bundler, warning_handler, write_artifact
from plugbuild.bundle.externals import default_policy
from plugbuild.bundle.graph import WarningHandler
from plugbuild.config import MANIFEST_NAME, BuildConfig
from plugbuild.engines import resolve_engine_name
from plugbuild.engines.base import SyntaxEngine
from plugbuild.engines.node import NodeEngine
from plugbuild.engines.stub import StubEngine
from plugbuild.errors import BuildError, BundleWriteError
from plugbuild.fileio import restore_files, snapshot_files
from plugbuild.integrity import digest_artifact
from plugbuild.manifest import rewrite_manifest, save_manifest
from plugbuild.units import load_unit

logger = logging.getLogger(__name__)

UnitState = Literal["pending", "building", "succeeded", "failed"]


@dataclass
class UnitResult:
    unit_id: str
    state: UnitState = "pending"
    name: str | None = None
    artifact_path: Path | None = None
    digest: str | None = None
    error: str | None = None
    error_kind: str | None = None


@dataclass
class BuildReport:
    results: list[UnitResult] = field(default_factory=list)
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return all(result.state == "succeeded" for result in self.results)

    def by_state(self, state: UnitState) -> list[UnitResult]:
        return [result for result in self.results if result.state == state]


def select_engine(config: BuildConfig) -> SyntaxEngine:
    engine_kind = resolve_engine_name(config.engine)
    if engine_kind == "node":
        logger.info(
            "engine selected node swc=%s esbuild=%s", config.swc_bin, config.esbuild_bin
        )
        return NodeEngine(swc_bin=config.swc_bin, esbuild_bin=config.esbuild_bin)
    if engine_kind == "unknown":
        raise ValueError(f"unknown engine: {config.engine!r} (expected node or stub)")
    logger.info("engine selected stub")
    return StubEngine()


class BuildOrchestrator:
    """Build units one at a time: bundle, write, hash, then rewrite the manifest."""

    def __init__(
        self,
        config: BuildConfig,
        engine: SyntaxEngine | None = None,
        *,
        console: Console | None = None,
        on_warning: WarningHandler | None = None,
    ) -> None:
        self.config = config
        self.engine = engine or select_engine(config)
        self.console = console or Console()
        self.bundler = Bundler(
            self.engine,
            policy=default_policy(config.extra_globals),
            on_warning=on_warning or warning_handler(config.warnings),
        )

    def run(self, unit_ids: Sequence[str]) -> BuildReport:
        report = BuildReport(results=[UnitResult(unit_id=unit_id) for unit_id in unit_ids])
        logger.info(
            "build run start units=%s engine=%s fail_fast=%s",
            len(unit_ids),
            self.engine.name,
            self.config.fail_fast,
        )
        for result in report.results:
            self._build_unit(result)
            if result.state == "failed" and self.config.fail_fast:
                report.aborted = True
                logger.error("build run aborted unit=%s", result.unit_id)
                break
        logger.info(
            "build run complete ok=%s succeeded=%s failed=%s pending=%s",
            report.ok,
            len(report.by_state("succeeded")),
            len(report.by_state("failed")),
            len(report.by_state("pending")),
        )
        return report

    def _build_unit(self, result: UnitResult) -> None:
        unit_id = result.unit_id
        out_dir = self.config.paths.out_dir / unit_id
        names = [self.config.artifact_name, MANIFEST_NAME]
        existed = out_dir.is_dir()
        result.state = "building"
        logger.info("unit build start unit=%s", unit_id)
        try:
            snapshot = snapshot_files(out_dir, names)
        except OSError as exc:
            self._record_failure(
                result, BundleWriteError(f"cannot read previous output in {out_dir}: {exc}")
            )
            return
        try:
            self._build(result, out_dir)
        except BuildError as exc:
            restore_files(out_dir, snapshot, existed=existed)
            self._record_failure(result, exc)
            return
        except BaseException:
            restore_files(out_dir, snapshot, existed=existed)
            result.state = "failed"
            raise
        result.state = "succeeded"
        logger.info("unit build complete unit=%s sha256=%s", unit_id, result.digest)
        self.console.print(f"Successfully built {escape(result.name or unit_id)}!")

    def _record_failure(self, result: UnitResult, exc: BuildError) -> None:
        unit_id = result.unit_id
        exc.unit_id = exc.unit_id or unit_id
        result.state = "failed"
        result.error = str(exc)
        result.error_kind = exc.kind
        logger.error("unit build failed unit=%s kind=%s error=%s", unit_id, exc.kind, exc)
        self.console.print(f"[red]Failed to build {escape(unit_id)}: {escape(str(exc))}[/red]")

    def _build(self, result: UnitResult, out_dir: Path) -> None:
        unit = load_unit(self.config.paths.units_dir, result.unit_id)
        result.name = unit.manifest.name
        data = self.bundler.bundle(unit.entry_path)
        artifact_path = out_dir / self.config.artifact_name
        write_artifact(artifact_path, data)
        digest = digest_artifact(artifact_path)
        manifest = rewrite_manifest(
            unit.manifest, digest=digest, artifact_name=self.config.artifact_name
        )
        save_manifest(out_dir / MANIFEST_NAME, manifest)
        result.artifact_path = artifact_path
        result.digest = digest
