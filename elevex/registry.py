from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Protocol

CLSID_ROOT = "CLSID"
SERVER_KINDS = ("InprocServer32", "LocalServer32")


class RegistryUnavailable(RuntimeError):
    pass


class RegistryReader(Protocol):
    def subkeys(self, path: str) -> List[str]:
        ...

    def value(self, path: str, name: Optional[str] = None) -> Any:
        ...


@dataclass(frozen=True)
class ComCandidate:
    clsid: str
    name: Optional[str]
    server_kind: Optional[str]
    server_value: Optional[str]
    app_id: Optional[str] = None


class WinRegReader:
    """
    Read-only view of HKEY_LOCAL_MACHINE\\SOFTWARE\\Classes (64-bit view).
    Missing keys or values read as empty / None.
    """

    def __init__(self, root: str = r"SOFTWARE\Classes"):
        if sys.platform != "win32":
            raise RegistryUnavailable("Windows registry is only available on Windows.")
        import winreg

        self._winreg = winreg
        self._root = root
        self._access = winreg.KEY_READ | winreg.KEY_WOW64_64KEY

    def _open(self, path: str):
        full = f"{self._root}\\{path}" if path else self._root
        return self._winreg.OpenKey(self._winreg.HKEY_LOCAL_MACHINE, full, 0, self._access)

    def subkeys(self, path: str) -> List[str]:
        try:
            key = self._open(path)
        except OSError:
            return []
        out: List[str] = []
        with key:
            i = 0
            while True:
                try:
                    out.append(self._winreg.EnumKey(key, i))
                except OSError:
                    break
                i += 1
        return out

    def value(self, path: str, name: Optional[str] = None) -> Any:
        try:
            with self._open(path) as key:
                v, _ = self._winreg.QueryValueEx(key, name or "")
                return v
        except OSError:
            return None


def _as_int(v: Any) -> Optional[int]:
    if isinstance(v, int):
        return v
    if isinstance(v, str) and v.strip().isdigit():
        return int(v.strip())
    return None


def _as_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def is_elevation_enabled(reader: RegistryReader, clsid: str) -> bool:
    return _as_int(reader.value(f"{CLSID_ROOT}\\{clsid}\\Elevation", "Enabled")) == 1


def enumerate_elevatable(reader: RegistryReader) -> Iterator[ComCandidate]:
    """
    Yield COM classes whose Elevation\\Enabled value is 1, in registry order.
    A class that cannot be read is skipped.
    """
    for clsid in reader.subkeys(CLSID_ROOT):
        try:
            if not is_elevation_enabled(reader, clsid):
                continue

            base = f"{CLSID_ROOT}\\{clsid}"
            server_kind = None
            server_value = None
            for kind in SERVER_KINDS:
                v = _as_str(reader.value(f"{base}\\{kind}"))
                if v:
                    server_kind, server_value = kind, v
                    break

            yield ComCandidate(
                clsid=clsid,
                name=_as_str(reader.value(base)),
                server_kind=server_kind,
                server_value=server_value,
                app_id=_as_str(reader.value(base, "AppID")),
            )
        except OSError:
            continue
