from __future__ import annotations

import json
import os
import platform
import sys
import uuid
from importlib import metadata
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from elevex.bundler import write_json, zip_report
from elevex.config import AppConfig, config_to_snapshot, load_config
from elevex.model import Manifest, Report
from elevex.pe import read_exports_from_path
from elevex.registry import RegistryReader, RegistryUnavailable, WinRegReader, enumerate_elevatable
from elevex.reporters.console import render_console, render_exports
from elevex.reporters.csv_report import write_summary_csv
from elevex.scanner import ScanLimits, collect_binaries, scan_binaries, scan_com_candidates

app = typer.Typer(add_completion=False)

# Callable returning a RegistryReader.
registry_factory = WinRegReader


def _tool_version() -> str:
    try:
        return metadata.version("elevex")
    except metadata.PackageNotFoundError:
        return "0.1.0-dev"


def version_callback(value: bool):
    if value:
        typer.echo(f"elevex version: {_tool_version()}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None, "--version", callback=version_callback, is_eager=True, help="Show version and exit."
    ),
):
    """
    Static export triage for auto-elevatable COM servers.
    """
    pass


def env_snapshot() -> dict:
    return {
        "os": platform.system(),
        "os_release": platform.release(),
        "machine": platform.machine(),
        "python": sys.version,
    }


def _limits_from_cfg(cfg: AppConfig, workers: Optional[int]) -> ScanLimits:
    return ScanLimits(
        max_file_size_bytes=cfg.limits.max_file_size_bytes,
        max_input_bytes=cfg.limits.max_input_bytes,
        workers=max(1, workers if workers is not None else cfg.scan.workers),
        rules=cfg.triage,
    )


def _load(config: Optional[str], outdir: Optional[str]) -> AppConfig:
    try:
        cfg = load_config(config)
    except FileNotFoundError:
        raise typer.BadParameter(f"Config file not found: {config}")
    if outdir:
        cfg.output_dir = outdir
    return cfg


def _write_outputs(report: Report, cfg: AppConfig, non_interactive: bool) -> Path:
    out_base = Path(cfg.output_dir).expanduser().resolve()
    out_base.mkdir(parents=True, exist_ok=True)

    manifest = Manifest(
        schema_version=cfg.schema_version,
        scan_id=report.scan_id,
        tool={"name": "elevex", "version": _tool_version()},
        environment=env_snapshot(),
        config_snapshot=config_to_snapshot(cfg),
    ).model_dump()
    report_dict = report.model_dump()

    scan_dir = out_base / f"elevex_{report.scan_id}"
    scan_dir.mkdir(parents=True, exist_ok=True)

    files = {
        "manifest.json": scan_dir / "manifest.json",
        "report.json": scan_dir / "report.json",
        "summary.csv": scan_dir / "summary.csv",
    }
    write_json(files["manifest.json"], manifest)
    write_json(files["report.json"], report_dict)
    write_summary_csv(files["summary.csv"], report_dict)

    report_zip = out_base / f"elevex_{report.scan_id}.zip"
    zip_report(report_zip, files)

    if not non_interactive:
        render_console(report_dict, report_zip)
    else:
        typer.echo(f"Report -> {report_zip.name}")
    return report_zip


def _warn_errors(errors: List[Dict[str, Any]]) -> None:
    for e in errors:
        where = e.get("path") or e.get("clsid") or ""
        typer.secho(f"{e.get('code')}: {e.get('message')} {where}".rstrip(), fg=typer.colors.YELLOW, err=True)


@app.command()
def exports(
    path: str = typer.Argument(..., help="PE file to read exports from."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    config: str = typer.Option(None, "--config", help="Path to YAML config."),
):
    """
    Print the exported names of one binary.
    """
    cfg = _load(config, None)
    p = Path(path).expanduser()
    res = read_exports_from_path(p, max_bytes=cfg.limits.max_input_bytes)

    if as_json:
        typer.echo(json.dumps(res.to_dict(), indent=2))
    elif res.ok:
        for name in res.names:
            typer.echo(name)
    else:
        typer.secho(f"{res.describe()} {p}", fg=typer.colors.YELLOW, err=res.failed)

    if res.failed:
        raise typer.Exit(code=1)


@app.command()
def scan(
    paths: List[str] = typer.Argument(..., help="Binaries or directories to scan."),
    config: str = typer.Option(None, "--config", help="Path to YAML config."),
    outdir: str = typer.Option(None, "--outdir", help="Override output directory."),
    workers: Optional[int] = typer.Option(None, "--workers", help="Parallel file scans."),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Plain output (batch mode)."),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Recurse into subdirectories."),
):
    """
    Read and triage the exports of binaries on disk.
    """
    cfg = _load(config, outdir)

    inputs = [Path(p).expanduser().resolve() for p in paths]
    for p in inputs:
        if not p.exists():
            raise typer.BadParameter(f"Path does not exist: {p}")

    files = collect_binaries(inputs, recursive=recursive, extensions=cfg.scan.extensions)
    if not files:
        typer.echo("No binaries found to scan.")
        return

    typer.echo(f"Scanning {len(files)} binaries.")
    binaries, errors = scan_binaries(files, limits=_limits_from_cfg(cfg, workers))
    _warn_errors(errors)

    report = Report(scan_id=str(uuid.uuid4()), mode="files", binaries=binaries, errors=errors)
    _write_outputs(report, cfg, non_interactive)


@app.command()
def registry(
    config: str = typer.Option(None, "--config", help="Path to YAML config."),
    outdir: str = typer.Option(None, "--outdir", help="Override output directory."),
    workers: Optional[int] = typer.Option(None, "--workers", help="Parallel file scans."),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Plain output (batch mode)."),
):
    """
    Enumerate auto-elevatable COM classes and triage the exports of their servers.
    """
    cfg = _load(config, outdir)

    try:
        reader: RegistryReader = registry_factory()
    except RegistryUnavailable as e:
        typer.secho(f"E_REGISTRY_UNAVAILABLE: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    candidates = list(enumerate_elevatable(reader))
    typer.echo(f"Found {len(candidates)} auto-elevatable COM classes.")

    env = dict(os.environ)
    env.update(cfg.env)
    com_objects, errors = scan_com_candidates(candidates, limits=_limits_from_cfg(cfg, workers), env=env)
    _warn_errors(errors)

    report = Report(scan_id=str(uuid.uuid4()), mode="registry", com_objects=com_objects, errors=errors)
    _write_outputs(report, cfg, non_interactive)


@app.command("show")
def show(
    path: str = typer.Argument(..., help="PE file to list in a table."),
):
    """
    Render the exported names of one binary as a table.
    """
    p = Path(path).expanduser()
    res = read_exports_from_path(p)
    render_exports(str(p), res.describe(), res.names)
    if res.failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
