"""
Microphone audio source backed by sounddevice: one float32 input stream per bound device.
Delivers the first channel of every block to the registered buffer callbacks.
"""

from __future__ import annotations

from typing import Any, Hashable

from sdk.abstractions import AudioSourceBinding, BufferCallback
from sdk.logging import get_logger

logger = get_logger("capture")


def _sounddevice() -> Any:
    # PortAudio is loaded on import; keep it out of module import so the core runs without it
    import sounddevice as sd

    return sd


def list_sources() -> list[tuple[int, str]]:
    """
    Return (device index, label) for every input-capable device.
    Returns [] when the audio backend is unavailable.
    """
    try:
        sd = _sounddevice()
        devices = sd.query_devices()
    except (OSError, ImportError) as e:
        logger.warning("Cannot list audio devices: %s", e)
        return []
    out: list[tuple[int, str]] = []
    for idx, dev in enumerate(devices):
        if int(dev.get("max_input_channels", 0)) > 0:
            out.append((idx, str(dev.get("name", f"Device {idx}"))))
    return out


class SoundDeviceSource(AudioSourceBinding):
    """
    AudioSourceBinding over sounddevice input streams. Source handles are device indices or names.
    set_muted(True) keeps the stream running but flags every block as muted.
    """

    def __init__(self, sample_rate: int = 48000, block_size: int = 1024) -> None:
        self._sample_rate = sample_rate
        self._block_size = block_size
        self._streams: dict[Hashable, Any] = {}
        self._callbacks: dict[Hashable, tuple[BufferCallback, ...]] = {}
        self._muted = False

    def set_muted(self, muted: bool) -> None:
        self._muted = bool(muted)

    def bind(self, source: Hashable) -> bool:
        if source is None:
            return False
        if source in self._streams:
            return True
        try:
            sd = _sounddevice()
            sd.check_input_settings(
                device=source, channels=1, dtype="float32", samplerate=self._sample_rate
            )
            stream = sd.InputStream(
                device=source,
                channels=1,
                dtype="float32",
                samplerate=self._sample_rate,
                blocksize=self._block_size,
                callback=self._make_stream_callback(source),
            )
            stream.start()
        except (OSError, ImportError, ValueError) as e:
            # sounddevice.PortAudioError subclasses OSError
            logger.warning("Cannot open input stream for %r: %s", source, e)
            return False
        self._streams[source] = stream
        logger.info(
            "Opened input stream for %r (%d Hz, block %d)",
            source,
            self._sample_rate,
            self._block_size,
        )
        return True

    def unbind(self, source: Hashable) -> None:
        stream = self._streams.pop(source, None)
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except OSError as e:
            logger.warning("Error closing input stream for %r: %s", source, e)
        logger.info("Closed input stream for %r", source)

    def add_buffer_callback(self, source: Hashable, callback: BufferCallback) -> None:
        # tuple swap so the stream thread never iterates a list being mutated
        self._callbacks[source] = self._callbacks.get(source, ()) + (callback,)

    def remove_buffer_callback(self, source: Hashable, callback: BufferCallback) -> None:
        self._callbacks[source] = tuple(
            cb for cb in self._callbacks.get(source, ()) if cb != callback
        )

    def _make_stream_callback(self, source: Hashable):
        def on_block(indata: Any, frames: int, time_info: Any, status: Any) -> None:
            callbacks = self._callbacks.get(source, ())
            if not callbacks:
                return
            samples = indata[:frames, 0]
            muted = self._muted
            for cb in callbacks:
                cb(samples, muted)

        return on_block


__all__ = ["SoundDeviceSource", "list_sources"]
