"""
Filter host backed by a YAML file: per-source filter chains that an external audio pipeline loads.

File shape:
    sources:
      <source>:
        - {id: gain_filter, name: AutoCal-Gain, settings: {db: 3.0}}
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Hashable, Sequence

import yaml

from sdk.abstractions import FilterHost

logger = logging.getLogger(__name__)

# Host filter ids the exported file may reference
DEFAULT_AVAILABLE_FILTERS = (
    "noise_suppress_filter_v2",
    "noise_suppress_filter",
    "noise_gate_filter",
    "expander_filter",
    "gain_filter",
    "compressor_filter",
    "limiter_filter",
    "basic_eq_filter",
)


class YamlFilterHost(FilterHost):
    """
    Reads the file on every change and rewrites it whole. Source handles are stored as strings.
    A missing or unreadable file starts empty. Write errors (OSError) propagate to the caller.
    """

    def __init__(self, path: str | Path, available: Sequence[str] | None = None) -> None:
        self._path = Path(path)
        self._available = set(available if available is not None else DEFAULT_AVAILABLE_FILTERS)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, list[dict[str, Any]]]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not read filter file %s: %s", self._path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        sources = data.get("sources")
        if not isinstance(sources, dict):
            return {}
        return {
            str(k): [f for f in v if isinstance(f, dict)]
            for k, v in sources.items()
            if isinstance(v, list)
        }

    def _write(self, sources: dict[str, list[dict[str, Any]]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"sources": sources}, f, sort_keys=False)

    def chain(self, source: Hashable) -> list[dict[str, Any]]:
        """Filters currently stored for source, in chain order."""
        return self._read().get(str(source), [])

    def is_filter_available(self, filter_id: str) -> bool:
        return filter_id in self._available

    def remove_filter(self, source: Hashable, name: str) -> bool:
        sources = self._read()
        key = str(source)
        chain = sources.get(key, [])
        kept = [f for f in chain if f.get("name") != name]
        if len(kept) == len(chain):
            return False
        sources[key] = kept
        self._write(sources)
        return True

    def create_filter(
        self, source: Hashable, filter_id: str, name: str, settings: dict[str, Any]
    ) -> bool:
        if not self.is_filter_available(filter_id):
            return False
        sources = self._read()
        sources.setdefault(str(source), []).append(
            {"id": filter_id, "name": name, "settings": dict(settings)}
        )
        self._write(sources)
        return True


__all__ = ["DEFAULT_AVAILABLE_FILTERS", "YamlFilterHost"]
