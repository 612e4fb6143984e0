from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def utc_now_iso() -> str:
    """
    UTC timestamp in ISO-8601 with 'Z' suffix, seconds precision.
    Example: 2026-01-08T17:12:34Z
    """
    return (
        datetime.now(timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )


class ExportFindings(BaseModel):
    status: str
    label: str
    names: List[str] = Field(default_factory=list)
    detail: Optional[str] = None
    truncated_input: bool = False


class TriageFindings(BaseModel):
    flags: List[str] = Field(default_factory=list)
    categories: Dict[str, List[str]] = Field(default_factory=dict)


class BinaryRecord(BaseModel):
    path: str
    file_size: Optional[int] = None
    sha256: Optional[str] = None
    md5: Optional[str] = None
    exports: ExportFindings
    triage: TriageFindings = Field(default_factory=TriageFindings)


class ComRecord(BaseModel):
    clsid: str
    name: Optional[str] = None
    app_id: Optional[str] = None
    server_kind: Optional[str] = None
    server_value: Optional[str] = None
    normalized_path: Optional[str] = None
    resolved_path: Optional[str] = None
    redirected: bool = False
    binary: Optional[BinaryRecord] = None


class Manifest(BaseModel):
    schema_version: str = "1.0"
    scan_id: str
    timestamp_utc: str = Field(default_factory=utc_now_iso)

    tool: Dict[str, Any] = Field(default_factory=dict)
    environment: Dict[str, Any] = Field(default_factory=dict)
    config_snapshot: Dict[str, Any] = Field(default_factory=dict)


class Report(BaseModel):
    schema_version: str = "1.0"
    scan_id: str
    timestamp_utc: str = Field(default_factory=utc_now_iso)

    mode: str  # files, registry
    com_objects: List[ComRecord] = Field(default_factory=list)
    binaries: List[BinaryRecord] = Field(default_factory=list)
    errors: List[Dict[str, Any]] = Field(default_factory=list)
