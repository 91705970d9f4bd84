"""
AutoCal SDK: shared library for the calibration core, the wizard and the CLI.

Provides a single public surface for config section access, collaborator contracts
(audio source binding, filter host) and logging. Import from this package only;
do not depend on audio, calibration or ui from within the SDK.

Example:
    from sdk import get_calibration_section, get_filters_section
    cfg = get_calibration_section(raw_config)

    from sdk import AudioSourceBinding, FilterHost, ManualAudioSource, MemoryFilterHost
    from sdk import SourceUnavailableError, FilterUnavailableError
    from sdk import get_logger
"""

from __future__ import annotations

from sdk.abstractions import (
    AudioSourceBinding,
    BufferCallback,
    FilterHost,
    FilterUnavailableError,
    ManualAudioSource,
    MemoryFilterHost,
    NoOpAudioSource,
    SourceUnavailableError,
)
from sdk.config import (
    FILTER_TOGGLE_DEFAULTS,
    FILTER_TOGGLE_KEYS,
    get_audio_section,
    get_calibration_section,
    get_filters_section,
    get_section,
)
from sdk.logging import get_logger

__version__ = "0.1.0"

__all__ = [
    "FILTER_TOGGLE_DEFAULTS",
    "FILTER_TOGGLE_KEYS",
    "AudioSourceBinding",
    "BufferCallback",
    "FilterHost",
    "FilterUnavailableError",
    "ManualAudioSource",
    "MemoryFilterHost",
    "NoOpAudioSource",
    "SourceUnavailableError",
    "get_audio_section",
    "get_calibration_section",
    "get_filters_section",
    "get_logger",
    "get_section",
]
