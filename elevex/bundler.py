from __future__ import annotations
from pathlib import Path
import json
import zipfile
from typing import Dict, Any

REPORT_ARCNAMES = ("manifest.json", "report.json", "summary.csv")

def write_json(path: Path, obj: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2, ensure_ascii=False), encoding="utf-8")

def zip_report(report_zip_path: Path, files: Dict[str, Path]) -> None:
    report_zip_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(report_zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for arcname in REPORT_ARCNAMES:
            if arcname in files:
                zf.write(files[arcname], arcname=arcname)
