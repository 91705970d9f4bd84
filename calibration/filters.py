"""
Filter chain: build the ordered, named filter specs for a parameter set and apply them to a host.

Order is noise suppression -> gate -> expander -> gain -> compressor -> limiter -> EQ.
Applying is idempotent: a same-named filter is removed before it is re-created. A kind the
host does not support is skipped and reported; it never aborts the rest of the chain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable

from calibration.constants import (
    EXPANDER_RATIO,
    FILTER_KIND_IDS,
    FILTER_NAME_PREFIX,
    LIMITER_THRESHOLD_DB,
)
from calibration.derivation import FilterOptions, FilterParameterSet
from sdk.abstractions import FilterHost, FilterUnavailableError
from sdk.logging import get_logger

logger = get_logger("filters")

FILTER_NAMES = {
    "noise_suppression": FILTER_NAME_PREFIX + "NoiseSuppression",
    "noise_gate": FILTER_NAME_PREFIX + "NoiseGate",
    "expander": FILTER_NAME_PREFIX + "Expander",
    "gain": FILTER_NAME_PREFIX + "Gain",
    "compressor": FILTER_NAME_PREFIX + "Compressor",
    "limiter": FILTER_NAME_PREFIX + "Limiter",
    "eq": FILTER_NAME_PREFIX + "EQ",
}


@dataclass(frozen=True)
class FilterSpec:
    kind: str
    name: str
    settings: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "name": self.name, "settings": dict(self.settings)}


@dataclass
class ApplyResult:
    """Names of filters created, skipped (kind unavailable on host), and failed (host refused)."""

    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped and not self.failed


def _spec(kind: str, settings: dict[str, Any]) -> FilterSpec:
    return FilterSpec(kind=kind, name=FILTER_NAMES[kind], settings=settings)


def build_filter_chain(
    params: FilterParameterSet, options: FilterOptions | None = None
) -> list[FilterSpec]:
    """Return the enabled filters for params in chain order."""
    options = options or FilterOptions()
    chain: list[FilterSpec] = []
    if options.noise_suppression:
        chain.append(
            _spec(
                "noise_suppression",
                {"method": "rnnoise", "suppress_level": int(options.noise_suppression_db)},
            )
        )
    if options.noise_gate:
        chain.append(
            _spec(
                "noise_gate",
                {
                    "open_threshold": params.gate_open_db,
                    "close_threshold": params.gate_close_db,
                    "attack_time": 25.0,
                    "hold_time": 200.0,
                    "release_time": 150.0,
                },
            )
        )
    if options.expander:
        chain.append(
            _spec(
                "expander",
                {
                    "ratio": EXPANDER_RATIO,
                    "threshold": params.gate_open_db,
                    "attack_time": 10.0,
                    "release_time": 100.0,
                    "output_gain": 0.0,
                    "detector": "RMS",
                    "presets": "expander",
                },
            )
        )
    if options.gain:
        chain.append(_spec("gain", {"db": params.gain_db}))
    if options.compressor:
        chain.append(
            _spec(
                "compressor",
                {
                    "ratio": params.compressor_ratio,
                    "threshold": params.compressor_threshold_db,
                    "attack_time": 6.0,
                    "release_time": 60.0,
                    "output_gain": 0.0,
                    "sidechain_source": "",
                },
            )
        )
    if options.limiter:
        chain.append(
            _spec("limiter", {"threshold": LIMITER_THRESHOLD_DB, "release_time": 60.0})
        )
    if options.any_tone_band:
        # High-pass trims the low band; low-pass and de-esser both trim the high band
        chain.append(
            _spec(
                "eq",
                {
                    "low": params.high_pass_trim_db,
                    "mid": 0.0,
                    "high": params.low_pass_trim_db + params.de_esser_trim_db,
                },
            )
        )
    return chain


def resolve_filter_id(host: FilterHost, kind: str) -> str:
    """Return the first host filter id available for kind. Raises FilterUnavailableError."""
    for filter_id in FILTER_KIND_IDS.get(kind, ()):
        if host.is_filter_available(filter_id):
            return filter_id
    raise FilterUnavailableError(kind)


def apply_filter_chain(
    host: FilterHost, source: Hashable, chain: list[FilterSpec]
) -> ApplyResult:
    """Create every filter in chain on source, replacing same-named filters. Never raises per filter."""
    result = ApplyResult()
    logger.info("Applying %d filter(s) to %r", len(chain), source)
    for spec in chain:
        try:
            filter_id = resolve_filter_id(host, spec.kind)
        except FilterUnavailableError as e:
            logger.warning("Skipping %s: %s", spec.name, e)
            result.skipped.append(spec.name)
            continue
        try:
            if host.remove_filter(source, spec.name):
                logger.info("Removed existing filter: %s", spec.name)
            created = host.create_filter(source, filter_id, spec.name, spec.settings)
        except OSError as e:
            logger.error("Failed to write filter %s: %s", spec.name, e)
            result.failed.append(spec.name)
            continue
        if created:
            logger.info("Created filter: %s (%s)", spec.name, filter_id)
            result.applied.append(spec.name)
        else:
            logger.error("Failed to create filter: %s (type: %s)", spec.name, filter_id)
            result.failed.append(spec.name)
    logger.info(
        "Applied %d filter(s), %d skipped, %d failed",
        len(result.applied),
        len(result.skipped),
        len(result.failed),
    )
    return result


__all__ = [
    "FILTER_NAMES",
    "ApplyResult",
    "FilterSpec",
    "apply_filter_chain",
    "build_filter_chain",
    "resolve_filter_id",
]
