from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Dict, List

FIELDNAMES = [
    "clsid",
    "name",
    "server_kind",
    "server_value",
    "resolved_path",
    "status",
    "status_label",
    "export_count",
    "flags",
    "flagged_exports",
    "sha256",
]


def _binary_cells(binary: Dict[str, Any]) -> Dict[str, Any]:
    if not binary:
        return {
            "status": "",
            "status_label": "",
            "export_count": 0,
            "flags": "",
            "flagged_exports": "",
            "sha256": "",
        }
    exports = binary.get("exports", {}) or {}
    triage = binary.get("triage", {}) or {}
    categories = triage.get("categories", {}) or {}

    flagged = sorted({n for names in categories.values() for n in (names or [])})

    return {
        "status": exports.get("status", ""),
        "status_label": exports.get("label", ""),
        "export_count": len(exports.get("names", []) or []),
        "flags": ";".join(triage.get("flags", []) or []),
        "flagged_exports": ";".join(flagged),
        "sha256": binary.get("sha256") or "",
    }


def report_rows(report: Dict[str, Any]) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []

    for com in report.get("com_objects", []) or []:
        row = {
            "clsid": com.get("clsid", ""),
            "name": com.get("name") or "",
            "server_kind": com.get("server_kind") or "",
            "server_value": com.get("server_value") or "",
            "resolved_path": com.get("resolved_path") or "",
        }
        row.update(_binary_cells(com.get("binary") or {}))
        rows.append(row)

    for binary in report.get("binaries", []) or []:
        row = {
            "clsid": "",
            "name": "",
            "server_kind": "",
            "server_value": "",
            "resolved_path": binary.get("path", ""),
        }
        row.update(_binary_cells(binary))
        rows.append(row)

    return rows


def write_summary_csv(path: Path, report: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
        writer.writeheader()
        for row in report_rows(report):
            writer.writerow(row)
