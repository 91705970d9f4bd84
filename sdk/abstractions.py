"""
Core collaborator contracts: audio source binding and filter host, plus small in-memory implementations.
The calibration core depends only on these interfaces; concrete adapters live in audio.capture
and persistence.filter_export.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Hashable, Sequence

# cb(samples, muted): samples is one channel of float amplitudes for one processed block
BufferCallback = Callable[[Sequence[float], bool], None]


class SourceUnavailableError(Exception):
    """Raised when no audio source is given or the source cannot be bound."""


class FilterUnavailableError(Exception):
    """Raised when the filter host does not support a requested filter kind."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"Filter kind not available on host: {kind}")
        self.kind = kind


class AudioSourceBinding(ABC):
    """
    Host audio pipeline seen from the analyzer: bind a source, then receive its buffers.
    Sources are opaque handles; the core never enumerates or resolves them.
    """

    @abstractmethod
    def bind(self, source: Hashable) -> bool:
        """Acquire the source. Returns False if the handle is invalid or unavailable."""
        ...

    @abstractmethod
    def unbind(self, source: Hashable) -> None:
        """Release the source. No-op if not bound."""
        ...

    @abstractmethod
    def add_buffer_callback(self, source: Hashable, callback: BufferCallback) -> None:
        """Register callback to be invoked once per delivered block."""
        ...

    @abstractmethod
    def remove_buffer_callback(self, source: Hashable, callback: BufferCallback) -> None:
        """
        Unregister callback. After this returns the binding must not invoke it again.
        """
        ...


class FilterHost(ABC):
    """Host pipeline that owns named filters on a source."""

    @abstractmethod
    def is_filter_available(self, filter_id: str) -> bool:
        """True if the host can create filters of this id."""
        ...

    @abstractmethod
    def remove_filter(self, source: Hashable, name: str) -> bool:
        """Remove the filter called name from source. Returns True if one was removed."""
        ...

    @abstractmethod
    def create_filter(
        self, source: Hashable, filter_id: str, name: str, settings: dict[str, Any]
    ) -> bool:
        """Create and attach a filter at the end of the source's chain. Returns False on failure."""
        ...


# --- In-memory implementations ---


class NoOpAudioSource(AudioSourceBinding):
    """Binding that never binds; use when no audio backend is available."""

    def bind(self, source: Hashable) -> bool:
        return False

    def unbind(self, source: Hashable) -> None:
        pass

    def add_buffer_callback(self, source: Hashable, callback: BufferCallback) -> None:
        pass

    def remove_buffer_callback(self, source: Hashable, callback: BufferCallback) -> None:
        pass


class ManualAudioSource(AudioSourceBinding):
    """
    Binding whose buffers are pushed by the caller (synthetic sessions, tests).
    sources: handles that bind() accepts; None accepts any non-None handle.
    """

    def __init__(self, sources: Sequence[Hashable] | None = None) -> None:
        self._sources = set(sources) if sources is not None else None
        self._bound: set[Hashable] = set()
        self._callbacks: dict[Hashable, tuple[BufferCallback, ...]] = {}

    def bind(self, source: Hashable) -> bool:
        if source is None:
            return False
        if self._sources is not None and source not in self._sources:
            return False
        self._bound.add(source)
        return True

    def unbind(self, source: Hashable) -> None:
        self._bound.discard(source)

    def is_bound(self, source: Hashable) -> bool:
        return source in self._bound

    def add_buffer_callback(self, source: Hashable, callback: BufferCallback) -> None:
        self._callbacks[source] = self._callbacks.get(source, ()) + (callback,)

    def remove_buffer_callback(self, source: Hashable, callback: BufferCallback) -> None:
        self._callbacks[source] = tuple(
            cb for cb in self._callbacks.get(source, ()) if cb != callback
        )

    def push(self, source: Hashable, samples: Sequence[float], muted: bool = False) -> None:
        """Deliver one block to every callback registered on a bound source."""
        if source not in self._bound:
            return
        for cb in self._callbacks.get(source, ()):
            cb(samples, muted)


class MemoryFilterHost(FilterHost):
    """
    Keeps filter chains in a dict: source -> list of {id, name, settings}.
    available: filter ids the host supports; None supports every id.
    """

    def __init__(self, available: Sequence[str] | None = None) -> None:
        self._available = set(available) if available is not None else None
        self.chains: dict[Hashable, list[dict[str, Any]]] = {}

    def is_filter_available(self, filter_id: str) -> bool:
        return self._available is None or filter_id in self._available

    def remove_filter(self, source: Hashable, name: str) -> bool:
        chain = self.chains.get(source, [])
        kept = [f for f in chain if f["name"] != name]
        self.chains[source] = kept
        return len(kept) != len(chain)

    def create_filter(
        self, source: Hashable, filter_id: str, name: str, settings: dict[str, Any]
    ) -> bool:
        if not self.is_filter_available(filter_id):
            return False
        self.chains.setdefault(source, []).append(
            {"id": filter_id, "name": name, "settings": dict(settings)}
        )
        return True

    def filter_names(self, source: Hashable) -> list[str]:
        return [f["name"] for f in self.chains.get(source, [])]


__all__ = [
    "AudioSourceBinding",
    "BufferCallback",
    "FilterHost",
    "FilterUnavailableError",
    "ManualAudioSource",
    "MemoryFilterHost",
    "NoOpAudioSource",
    "SourceUnavailableError",
]
