from __future__ import annotations
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from pathlib import Path
from typing import Dict, Any, List

from elevex.reporters.csv_report import report_rows

console = Console()

def render_exports(path: str, label: str, names: List[str]) -> None:
    if not names:
        console.print(f"[yellow]{escape(label)}[/yellow] {escape(path)}")
        return
    t = Table(title=f"Exports — {escape(path)}")
    t.add_column("#", justify="right")
    t.add_column("Name", overflow="fold")
    for i, n in enumerate(names, 1):
        t.add_row(str(i), escape(n))
    console.print(t)

def render_console(report: Dict[str, Any], report_zip: Path) -> None:
    t = Table(title="elevex — Export Triage (Static, No Execution)")
    t.add_column("CLSID / Path", overflow="fold")
    t.add_column("Name", overflow="fold")
    t.add_column("Status")
    t.add_column("Exports", justify="right")
    t.add_column("Flags", overflow="fold")
    for row in report_rows(report):
        flags = row["flags"].replace(";", ", ")
        t.add_row(
            escape(row["clsid"] or row["resolved_path"]),
            escape(row["name"]),
            escape(row["status_label"]),
            str(row["export_count"]),
            f"[red]{flags}[/red]" if flags else "",
        )
    console.print(t)
    console.print(f"[green]Report written:[/green] {escape(str(report_zip))}")
