"""Key/value configuration read from INI files."""

from __future__ import annotations

import os
import re
from typing import Mapping, Optional

_DECIMAL = re.compile(r"[+-]?\d+")
_HEX = re.compile(r"0[xX]([0-9a-fA-F]+)")

_TRUE_WORDS = {"true", "yes", "on"}
_FALSE_WORDS = {"false", "no", "off"}


def _parse_int(text: str) -> int:
    value = text.strip()
    hex_match = _HEX.fullmatch(value)
    if hex_match:
        return int(hex_match.group(1), 16)
    if _DECIMAL.fullmatch(value):
        return int(value, 10)
    raise ValueError(f"not a valid integer: {text!r}")


def _parse_double(text: str) -> float:
    try:
        return float(text.strip())
    except ValueError:
        raise ValueError(f"not a valid number: {text!r}") from None


def _parse_bool(text: str) -> bool:
    value = text.strip()
    if _DECIMAL.fullmatch(value):
        return int(value) != 0
    lowered = value.lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    raise ValueError(f"not a valid boolean: {text!r}")


def _read_ini(path: "str | os.PathLike[str]") -> dict:
    values = {}
    section = ""
    with open(path, encoding="utf-8") as handle:
        for raw in handle:
            line = raw.strip()
            if not line or line[0] in ";#":
                continue
            if line.startswith("["):
                end = line.find("]")
                section = (line[1:end] if end >= 0 else line[1:]).strip()
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            full_key = f"{section}.{key}" if section else key
            values[full_key.lower()] = value.strip()
    return values


class Config:
    """Dotted-key configuration; keys are case-insensitive.

    Values missing from the configuration fall back to the default given
    to the getter. Present values that cannot be converted raise
    ``ValueError``.
    """

    def __init__(self, values: Optional[Mapping[str, object]] = None) -> None:
        self._values = {str(key).lower(): str(value) for key, value in (values or {}).items()}

    def load(self, path: "str | os.PathLike[str]") -> None:
        """Replace the contents with those of an INI file."""
        self._values = _read_ini(path)

    def _lookup(self, key: str) -> Optional[str]:
        return self._values.get(key.lower())

    def get_string(self, key: str, default: str) -> str:
        value = self._lookup(key)
        return default if value is None else value

    def get_int(self, key: str, default: int) -> int:
        value = self._lookup(key)
        return default if value is None else _parse_int(value)

    def get_double(self, key: str, default: float) -> float:
        value = self._lookup(key)
        return default if value is None else _parse_double(value)

    def get_bool(self, key: str, default: bool) -> bool:
        value = self._lookup(key)
        return default if value is None else _parse_bool(value)