from __future__ import annotations

import hashlib
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from elevex.model import BinaryRecord, ComRecord, ExportFindings, TriageFindings
from elevex.paths import resolve_server_path
from elevex.pe import ExportReadResult, ExportStatus, read_exports
from elevex.registry import ComCandidate
from elevex.triage import DEFAULT_RULES, triage_exports


def file_hashes(path: Path) -> tuple[str, str]:
    sha256 = hashlib.sha256()
    md5 = hashlib.md5()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            sha256.update(chunk)
            md5.update(chunk)
    return sha256.hexdigest(), md5.hexdigest()


@dataclass(frozen=True)
class ScanLimits:
    max_file_size_bytes: int = 200_000_000
    max_input_bytes: int = 20_000_000
    workers: int = 1
    rules: Mapping[str, Sequence[str]] = field(default_factory=lambda: dict(DEFAULT_RULES))


def read_file_bytes(path: Path, *, max_bytes: int) -> tuple[bytes, bool]:
    with path.open("rb") as f:
        data = f.read(max_bytes + 1)
    if len(data) > max_bytes:
        return data[:max_bytes], True
    return data, False


def _err(code: str, message: str, **extra: Any) -> Dict[str, Any]:
    d = {"code": code, "message": message}
    d.update(extra)
    return d


def _findings(res: ExportReadResult, *, truncated: bool = False) -> ExportFindings:
    return ExportFindings(
        status=res.status.value,
        label=res.describe(),
        names=list(res.names),
        detail=res.detail,
        truncated_input=truncated,
    )


def scan_binary(path: Path, *, limits: ScanLimits = ScanLimits()) -> Tuple[BinaryRecord, List[Dict[str, Any]]]:
    """
    Returns (record, errors) for one binary on disk.
    Never raises for file-level problems; those become a failed export status plus an error entry.
    """
    errors: List[Dict[str, Any]] = []

    if not path.is_file():
        res = ExportReadResult(status=ExportStatus.FILE_NOT_FOUND, detail=str(path))
        errors.append(_err("E_FILE_NOT_FOUND", "Binary not found.", path=str(path)))
        return BinaryRecord(path=str(path), exports=_findings(res)), errors

    try:
        size = path.stat().st_size
        if size > limits.max_file_size_bytes:
            res = ExportReadResult(
                status=ExportStatus.DECODE_FAILED,
                detail=f"file exceeds max_file_size_bytes={limits.max_file_size_bytes}",
            )
            errors.append(_err("E_FILE_TOO_LARGE", "Binary skipped: file too large.", path=str(path), file_size=size))
            return BinaryRecord(path=str(path), file_size=size, exports=_findings(res)), errors

        sha256, md5 = file_hashes(path)
        data, truncated = read_file_bytes(path, max_bytes=limits.max_input_bytes)
    except OSError as e:
        res = ExportReadResult(status=ExportStatus.DECODE_FAILED, detail=f"{type(e).__name__}: {e}")
        errors.append(_err("E_FILE_UNREADABLE", f"Binary could not be read: {type(e).__name__}", path=str(path)))
        return BinaryRecord(path=str(path), exports=_findings(res)), errors

    if truncated:
        errors.append(
            _err(
                "E_INPUT_TRUNCATED",
                f"Input truncated to max_input_bytes={limits.max_input_bytes}.",
                path=str(path),
            )
        )

    res = read_exports(data)
    tri = triage_exports(res.names, limits.rules)

    record = BinaryRecord(
        path=str(path),
        file_size=size,
        sha256=sha256,
        md5=md5,
        exports=_findings(res, truncated=truncated),
        triage=TriageFindings(flags=tri.flags, categories=tri.categories),
    )
    return record, errors


def scan_binaries(
    paths: Sequence[Path],
    *,
    limits: ScanLimits = ScanLimits(),
) -> Tuple[List[BinaryRecord], List[Dict[str, Any]]]:
    """
    Scan each binary independently; results keep input order.
    """
    if limits.workers > 1 and len(paths) > 1:
        with ThreadPoolExecutor(max_workers=limits.workers) as pool:
            results = list(pool.map(lambda p: scan_binary(p, limits=limits), paths))
    else:
        results = [scan_binary(p, limits=limits) for p in paths]

    records: List[BinaryRecord] = []
    errors: List[Dict[str, Any]] = []
    for rec, errs in results:
        records.append(rec)
        errors.extend(errs)
    return records, errors


def collect_binaries(
    inputs: Iterable[Path],
    *,
    recursive: bool = False,
    extensions: Sequence[str] = (".dll", ".exe"),
) -> List[Path]:
    """
    Expand files and directories into a sorted, de-duplicated list of candidate binaries.
    Explicit file arguments are kept regardless of extension.
    """
    exts = {e.lower() for e in extensions}
    seen = set()
    out: List[Path] = []

    def add(p: Path) -> None:
        key = str(p)
        if key not in seen:
            seen.add(key)
            out.append(p)

    for p in inputs:
        if p.is_dir():
            pattern = "**/*" if recursive else "*"
            for f in sorted(p.glob(pattern)):
                if f.is_file() and f.suffix.lower() in exts and not f.name.startswith("."):
                    add(f)
        else:
            add(p)
    return out


def scan_com_candidates(
    candidates: Iterable[ComCandidate],
    *,
    limits: ScanLimits = ScanLimits(),
    env: Optional[Mapping[str, str]] = None,
    exists: Callable[[str], bool] = os.path.isfile,
) -> Tuple[List[ComRecord], List[Dict[str, Any]]]:
    """
    Resolve each candidate's server path and read the exports of the binary behind it.
    Candidates sharing a binary are scanned once.
    """
    environ = dict(os.environ) if env is None else dict(env)
    errors: List[Dict[str, Any]] = []
    records: List[ComRecord] = []
    to_scan: List[Path] = []

    for c in candidates:
        rec = ComRecord(
            clsid=c.clsid,
            name=c.name,
            app_id=c.app_id,
            server_kind=c.server_kind,
            server_value=c.server_value,
        )
        if c.server_value:
            rp = resolve_server_path(c.server_value, env=environ, exists=exists)
            rec.normalized_path = rp.normalized or None
            rec.resolved_path = rp.resolved
            rec.redirected = rp.redirected
            if rp.resolved is None:
                errors.append(
                    _err(
                        "E_SERVER_PATH_UNRESOLVED",
                        "Server binary not found at normalized path or its alternates.",
                        clsid=c.clsid,
                        server_value=c.server_value,
                        normalized=rp.normalized,
                    )
                )
            elif Path(rp.resolved) not in to_scan:
                to_scan.append(Path(rp.resolved))
        records.append(rec)

    binaries, scan_errs = scan_binaries(to_scan, limits=limits)
    errors.extend(scan_errs)
    by_path = {b.path: b for b in binaries}

    for rec in records:
        if rec.resolved_path is not None:
            rec.binary = by_path.get(str(Path(rec.resolved_path)))
        elif rec.normalized_path:
            res = ExportReadResult(status=ExportStatus.FILE_NOT_FOUND, detail=rec.normalized_path)
            rec.binary = BinaryRecord(path=rec.normalized_path, exports=_findings(res))

    return records, errors
