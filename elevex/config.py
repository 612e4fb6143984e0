from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from elevex.triage import DEFAULT_RULES


class Limits(BaseModel):
    # Files above this size are skipped entirely
    max_file_size_bytes: int = 200_000_000

    # At most this many leading bytes are handed to the export reader
    max_input_bytes: int = 20_000_000


class ScanCfg(BaseModel):
    workers: int = 1
    extensions: List[str] = Field(default_factory=lambda: [".dll", ".exe"])


class AppConfig(BaseModel):
    schema_version: str = "1.0"
    output_dir: str = "./out"
    limits: Limits = Limits()
    scan: ScanCfg = ScanCfg()

    # Extra %VAR% values for server-path expansion; process environment fills the rest
    env: Dict[str, str] = Field(default_factory=dict)

    triage: Dict[str, List[str]] = Field(default_factory=lambda: {k: list(v) for k, v in DEFAULT_RULES.items()})


def load_config(path: Optional[str]) -> AppConfig:
    if not path:
        return AppConfig()
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    return AppConfig.model_validate(data)


def config_to_snapshot(cfg: AppConfig) -> Dict[str, Any]:
    return cfg.model_dump()
