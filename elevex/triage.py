from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence

# Conservative keyword lists, matched as case-insensitive substrings.
# (Heuristic indicator only; not a verdict.)
DEFAULT_RULES: Dict[str, List[str]] = {
    "command_execution": [
        "exec",
        "shell",
        "run",
        "command",
        "cmd",
        "process",
        "launch",
        "spawn",
        "invoke",
    ],
    "file_write": [
        "write",
        "copy",
        "move",
        "delete",
        "rename",
        "save",
        "createfile",
        "extract",
    ],
    "privilege": [
        "elevat",
        "privilege",
        "token",
        "impersonat",
        "admin",
        "security",
        "acl",
        "setowner",
    ],
}


@dataclass(frozen=True)
class ExportTriage:
    categories: Dict[str, List[str]]
    flags: List[str]

    @property
    def flagged_names(self) -> List[str]:
        seen = set()
        out: List[str] = []
        for names in self.categories.values():
            for n in names:
                if n not in seen:
                    seen.add(n)
                    out.append(n)
        return sorted(out)


def _normalize_rules(rules: Mapping[str, Sequence[str]]) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {}
    for category, keywords in rules.items():
        kws = [str(k).strip().lower() for k in keywords or [] if str(k).strip()]
        if kws:
            out[str(category)] = kws
    return out


def classify_export(name: str, rules: Mapping[str, Sequence[str]] = DEFAULT_RULES) -> List[str]:
    """
    Return the categories whose keywords appear in an export name.
    Deterministic: categories sorted.
    """
    lowered = (name or "").lower()
    if not lowered:
        return []
    hits = []
    for category, keywords in _normalize_rules(rules).items():
        if any(k in lowered for k in keywords):
            hits.append(category)
    return sorted(hits)


def triage_exports(names: Iterable[str], rules: Mapping[str, Sequence[str]] = DEFAULT_RULES) -> ExportTriage:
    normalized = _normalize_rules(rules)
    categories: Dict[str, List[str]] = {c: [] for c in sorted(normalized)}

    for name in names:
        for category in classify_export(name, normalized):
            if name not in categories[category]:
                categories[category].append(name)

    for category in categories:
        categories[category].sort()

    flags = [c for c, hits in categories.items() if hits]
    return ExportTriage(categories=categories, flags=flags)
