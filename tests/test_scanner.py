from __future__ import annotations

from pathlib import Path

from elevex.registry import ComCandidate
from elevex.scanner import (
    ScanLimits,
    collect_binaries,
    file_hashes,
    scan_binaries,
    scan_binary,
    scan_com_candidates,
)


def test_file_hashes(tmp_path: Path):
    p = tmp_path / "x.bin"
    p.write_bytes(b"abc123")
    sha256, md5 = file_hashes(p)
    assert len(sha256) == 64
    assert len(md5) == 32


def test_scan_binary_triages_exports(tmp_path: Path, pe_image):
    p = tmp_path / "helper.dll"
    p.write_bytes(pe_image(names=(b"DllGetClassObject", b"LaunchElevated", b"WriteBlob")))

    rec, errors = scan_binary(p)
    assert errors == []
    assert rec.exports.status == "ok"
    assert rec.exports.names == ["DllGetClassObject", "LaunchElevated", "WriteBlob"]
    assert rec.triage.flags == ["command_execution", "file_write", "privilege"]
    assert rec.triage.categories["privilege"] == ["LaunchElevated"]
    assert rec.sha256 and rec.md5
    assert rec.file_size == p.stat().st_size


def test_scan_binary_missing(tmp_path: Path):
    rec, errors = scan_binary(tmp_path / "nope.dll")
    assert rec.exports.status == "file_not_found"
    assert rec.exports.label == "[File not found]"
    assert errors[0]["code"] == "E_FILE_NOT_FOUND"


def test_scan_binary_too_large(tmp_path: Path, pe_image):
    p = tmp_path / "big.dll"
    p.write_bytes(pe_image())
    rec, errors = scan_binary(p, limits=ScanLimits(max_file_size_bytes=10))
    assert rec.exports.status == "decode_failed"
    assert errors[0]["code"] == "E_FILE_TOO_LARGE"


def test_scan_binary_truncated_input_still_decodes_headers(tmp_path: Path, pe_image):
    p = tmp_path / "t.dll"
    p.write_bytes(pe_image())
    rec, errors = scan_binary(p, limits=ScanLimits(max_input_bytes=0x100))
    assert rec.exports.truncated_input is True
    assert rec.exports.status != "ok"
    assert any(e["code"] == "E_INPUT_TRUNCATED" for e in errors)


def test_scan_binaries_parallel_keeps_order(tmp_path: Path, pe_image):
    paths = []
    for i in range(6):
        p = tmp_path / f"m{i}.dll"
        p.write_bytes(pe_image(names=(f"Export{i}".encode(),)) if i % 2 == 0 else b"not a pe")
        paths.append(p)

    serial, _ = scan_binaries(paths, limits=ScanLimits(workers=1))
    parallel, _ = scan_binaries(paths, limits=ScanLimits(workers=4))

    assert [r.path for r in parallel] == [str(p) for p in paths]
    assert [r.model_dump() for r in parallel] == [r.model_dump() for r in serial]
    assert parallel[0].exports.names == ["Export0"]
    assert parallel[1].exports.status == "invalid_pe"


def test_collect_binaries(tmp_path: Path):
    (tmp_path / "a.dll").write_bytes(b"x")
    (tmp_path / "b.EXE").write_bytes(b"x")
    (tmp_path / "c.txt").write_bytes(b"x")
    (tmp_path / ".hidden.dll").write_bytes(b"x")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "d.dll").write_bytes(b"x")
    loose = tmp_path / "c.txt"

    flat = collect_binaries([tmp_path])
    assert [p.name for p in flat] == ["a.dll", "b.EXE"]

    deep = collect_binaries([tmp_path, loose], recursive=True)
    assert [p.name for p in deep] == ["a.dll", "b.EXE", "d.dll", "c.txt"]


def test_scan_com_candidates(tmp_path: Path, pe_image):
    dll = tmp_path / "shared.dll"
    dll.write_bytes(pe_image(names=(b"ShellRun",)))

    cands = [
        ComCandidate(clsid="{A}", name="A", server_kind="InprocServer32", server_value=str(dll)),
        ComCandidate(clsid="{B}", name="B", server_kind="LocalServer32", server_value=f'"{dll}" -Embedding'),
        ComCandidate(clsid="{C}", name="C", server_kind="InprocServer32", server_value="%NOPE%\\gone.dll"),
        ComCandidate(clsid="{D}", name="D", server_kind=None, server_value=None),
    ]
    records, errors = scan_com_candidates(cands, env={})

    a, b, c, d = records
    assert a.resolved_path == str(dll)
    assert a.binary is not None and a.binary.exports.names == ["ShellRun"]
    assert b.binary is not None and b.binary.sha256 == a.binary.sha256
    assert a.binary.triage.flags == ["command_execution"]

    assert c.resolved_path is None
    assert c.binary is not None and c.binary.exports.status == "file_not_found"
    assert d.binary is None

    assert [e["code"] for e in errors] == ["E_SERVER_PATH_UNRESOLVED"]
