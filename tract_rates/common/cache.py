"""On-disk cache for static reference data.

Entries never expire: boundaries and ACS estimates for a fixed vintage do not
change, so a cached file is reused until someone deletes it.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Callable, TypeVar

from tract_rates.common.fs import read_json, write_json

T = TypeVar("T")

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


def cache_key(*parts: object, filters: dict[str, str] | None = None) -> str:
    tokens = [str(part) for part in parts]
    for name, value in (filters or {}).items():
        tokens.append(f"{name}-{value}")
    return "_".join(_UNSAFE.sub("-", token) for token in tokens)


def cache_path(data_dir: Path, namespace: str, key: str) -> Path:
    return data_dir / "cache" / namespace / f"{key}.json"


def cached_fetch(
    path: Path,
    fetch: Callable[[], T],
    *,
    encode: Callable[[T], Any],
    decode: Callable[[Any], T],
) -> tuple[T, bool]:
    """Return ``(value, hit)``; ``fetch`` runs only on a miss.

    An entry that is not valid JSON counts as a miss and is rewritten.
    """
    if path.exists():
        try:
            payload = read_json(path)
        except ValueError:
            path.unlink()
        else:
            return decode(payload), True
    value = fetch()
    write_json(path, encode(value))
    return value, False
