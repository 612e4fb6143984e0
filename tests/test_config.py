from __future__ import annotations

from pathlib import Path

from elevex.config import AppConfig, config_to_snapshot, load_config


def test_default_config():
    cfg = load_config(None)
    assert cfg.scan.workers == 1
    assert cfg.limits.max_input_bytes == 20_000_000
    assert "privilege" in cfg.triage


def test_yaml_config(tmp_path: Path):
    p = tmp_path / "cfg.yaml"
    p.write_text(
        "output_dir: ./reports\n"
        "scan:\n  workers: 4\n"
        "env:\n  SystemRoot: D:\\Windows\n"
        "triage:\n  custom: [foo, bar]\n",
        encoding="utf-8",
    )
    cfg = load_config(str(p))
    assert cfg.output_dir == "./reports"
    assert cfg.scan.workers == 4
    assert cfg.env == {"SystemRoot": "D:\\Windows"}
    assert cfg.triage == {"custom": ["foo", "bar"]}
    assert config_to_snapshot(cfg)["scan"]["workers"] == 4


def test_empty_yaml_is_defaults(tmp_path: Path):
    p = tmp_path / "empty.yaml"
    p.write_text("", encoding="utf-8")
    assert load_config(str(p)) == AppConfig()
