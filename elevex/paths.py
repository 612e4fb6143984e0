from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PureWindowsPath
from typing import Callable, List, Mapping, Optional

_ENV_RE = re.compile(r"%([^%\s]+)%")
_BINARY_RE = re.compile(r"^(.*?\.(?:exe|dll))(?=\s|$)", re.IGNORECASE)
_ARG_RE = re.compile(r"\s+[/-]")

_REDIRECTS = {
    "system32": ["Sysnative", "SysWOW64"],
    "syswow64": ["System32"],
}


@dataclass(frozen=True)
class ResolvedPath:
    raw: str
    normalized: str
    resolved: Optional[str]
    redirected: bool = False


def strip_arguments(raw: str) -> str:
    """
    Reduce a registry server value to the binary path it names.

    '"C:\\x\\a b.exe" /automation' -> 'C:\\x\\a b.exe'
    'C:\\x\\svc.exe -Embedding'     -> 'C:\\x\\svc.exe'
    """
    s = (raw or "").strip()
    if not s:
        return ""

    if s.startswith('"'):
        end = s.find('"', 1)
        return s[1:end].strip() if end != -1 else s[1:].strip()

    m = _BINARY_RE.match(s)
    if m:
        return m.group(1).strip()

    m = _ARG_RE.search(s)
    if m:
        return s[: m.start()].strip()
    return s


def expand_environment(path: str, env: Mapping[str, str]) -> str:
    """Expand %VAR% references case-insensitively; unknown variables stay literal."""
    lookup = {k.lower(): v for k, v in env.items()}

    def repl(m: re.Match) -> str:
        return lookup.get(m.group(1).lower(), m.group(0))

    return _ENV_RE.sub(repl, path)


def alternate_locations(path: str) -> List[str]:
    """
    Candidate paths under the other system directories, for lookups redirected
    between the 32-bit and 64-bit views.
    """
    p = PureWindowsPath(path)
    parts = list(p.parts)
    out: List[str] = []
    for i, part in enumerate(parts):
        alts = _REDIRECTS.get(part.lower())
        if not alts:
            continue
        for alt in alts:
            candidate = parts[:i] + [_match_case(part, alt)] + parts[i + 1 :]
            out.append(str(PureWindowsPath(*candidate)))
        break
    return out


def _match_case(original: str, replacement: str) -> str:
    if original.isupper():
        return replacement.upper()
    if original.islower():
        return replacement.lower()
    return replacement


def resolve_server_path(
    raw: str,
    *,
    env: Mapping[str, str],
    exists: Callable[[str], bool],
) -> ResolvedPath:
    normalized = expand_environment(strip_arguments(raw), env)
    if not normalized:
        return ResolvedPath(raw=raw, normalized="", resolved=None)

    if exists(normalized):
        return ResolvedPath(raw=raw, normalized=normalized, resolved=normalized)

    for alt in alternate_locations(normalized):
        if exists(alt):
            return ResolvedPath(raw=raw, normalized=normalized, resolved=alt, redirected=True)

    return ResolvedPath(raw=raw, normalized=normalized, resolved=None)
