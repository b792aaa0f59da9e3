from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from plugbuild.config import (
    MANIFEST_NAME,
    Paths,
    default_config,
    parse_globals,
    resolve_warning_policy,
)
from plugbuild.engines import resolve_engine_name
from plugbuild.errors import BuildError
from plugbuild.integrity import verify_output
from plugbuild.manifest import load_manifest
from plugbuild.orchestrator import BuildOrchestrator
from plugbuild.runtime import initialize_runtime
from plugbuild.units import discover_units

app = typer.Typer(help="Build plugin units into single-file artifacts")

console = Console()
logger = logging.getLogger(__name__)

UNITS_DIR_OPTION = typer.Option(None, "--units-dir", file_okay=False)
OUT_DIR_OPTION = typer.Option(None, "--out-dir", "--out", file_okay=False)
ENGINE_OPTION = typer.Option(None, "--engine", help="node (default) or stub")
KEEP_GOING_OPTION = typer.Option(False, "--keep-going", help="Continue after a unit fails")
WARNINGS_OPTION = typer.Option(None, "--warnings", help="discard or log")
GLOBAL_OPTION = typer.Option(None, "--global", help="Extra external, as pkg=global.path")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v")
UNITS_ARGUMENT = typer.Argument(None, help="Unit ids to build (default: all)")


def _select_units(available: list[str], requested: list[str] | None) -> list[str]:
    if not requested:
        return available
    unknown = sorted(set(requested) - set(available))
    if unknown:
        console.print(f"Unknown unit(s): {escape(', '.join(unknown))}")
        raise typer.Exit(code=1)
    wanted = set(requested)
    return [unit_id for unit_id in available if unit_id in wanted]


@app.command("build")
def build(
    units: list[str] | None = UNITS_ARGUMENT,
    units_dir: Path | None = UNITS_DIR_OPTION,
    out_dir: Path | None = OUT_DIR_OPTION,
    engine: str | None = ENGINE_OPTION,
    keep_going: bool = KEEP_GOING_OPTION,
    warnings: str | None = WARNINGS_OPTION,
    extra_global: list[str] | None = GLOBAL_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    initialize_runtime(verbose=verbose, logger=logger)
    try:
        config = default_config()
        extra_globals = {**config.extra_globals, **parse_globals(",".join(extra_global or []))}
        policy = resolve_warning_policy(warnings) if warnings is not None else None
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    paths = Paths(
        root=config.paths.root,
        units_dir=units_dir or config.paths.units_dir,
        out_dir=out_dir or config.paths.out_dir,
    )
    config = config.with_overrides(
        paths=paths,
        engine=engine,
        warnings=policy,
        fail_fast=not keep_going,
        extra_globals=extra_globals,
    )
    if resolve_engine_name(config.engine) == "unknown":
        raise typer.BadParameter(
            f"unknown engine: {config.engine!r} (expected node or stub)", param_hint="--engine"
        )
    logger.info("build start units_dir=%s out_dir=%s", paths.units_dir, paths.out_dir)
    try:
        unit_ids = _select_units(discover_units(paths.units_dir), units)
    except BuildError as exc:
        console.print(f"Build failed: {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    if not unit_ids:
        console.print("No units found")
        return
    report = BuildOrchestrator(config, console=console).run(unit_ids)
    if not report.ok:
        failed = ", ".join(result.unit_id for result in report.by_state("failed"))
        console.print(f"Build FAIL: {escape(failed)}")
        raise typer.Exit(code=1)
    console.print(f"Build OK: {len(report.results)} unit(s)")


@app.command("list")
def list_units(units_dir: Path | None = UNITS_DIR_OPTION) -> None:
    initialize_runtime(logger=logger)
    directory = units_dir or default_config().paths.units_dir
    try:
        unit_ids = discover_units(directory)
    except BuildError as exc:
        console.print(escape(str(exc)))
        raise typer.Exit(code=1) from exc
    if not unit_ids:
        console.print("No units found")
        return
    for unit_id in unit_ids:
        try:
            name = load_manifest(directory / unit_id / MANIFEST_NAME).name
        except BuildError as exc:
            console.print(f"{escape(unit_id)}: <invalid: {escape(exc.message)}>")
            continue
        console.print(f"{escape(unit_id)}: {escape(name)}")


@app.command("verify")
def verify(out_dir: Path | None = OUT_DIR_OPTION) -> None:
    initialize_runtime(logger=logger)
    directory = out_dir or default_config().paths.out_dir
    if not directory.is_dir():
        console.print(f"Output directory not found: {escape(str(directory))}")
        raise typer.Exit(code=1)
    results = [
        verify_output(item)
        for item in sorted(directory.iterdir())
        if item.is_dir() and not item.name.startswith(".")
    ]
    failures = [result for result in results if not result.ok]
    for result in results:
        status = "PASS" if result.ok else f"FAIL: {result.message}"
        console.print(f"{escape(result.unit_id)} {escape(status)}")
    if failures:
        logger.error("verify failed units=%s", [result.unit_id for result in failures])
        raise typer.Exit(code=1)
    console.print(f"Verify OK: {len(results)} unit(s)")


if __name__ == "__main__":
    app()
