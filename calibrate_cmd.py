#!/usr/bin/env python3
"""
CLI for the saved calibration: status, derive, apply <source>, reset.
Usage: python calibrate_cmd.py status | derive | apply <source> | reset
Uses AUTOCAL_CONFIG or config.yaml for db_path, filter toggles and the filter export file.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Project root on path
_ROOT = Path(__file__).resolve().parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from calibration.constants import CALIBRATION_STEPS  # noqa: E402
from calibration.derivation import (  # noqa: E402
    FilterOptions,
    FilterParameterSet,
    IncompleteCalibrationError,
    derive_parameters,
)
from calibration.filters import apply_filter_chain, build_filter_chain  # noqa: E402
from calibration.state import CalibrationState  # noqa: E402
from calibration.store import CalibrationStore  # noqa: E402
from config import AppConfig, load_config  # noqa: E402
from persistence.calibration_repo import CalibrationRepo  # noqa: E402
from persistence.database import SchemaVersionError, connect, init_database  # noqa: E402
from persistence.filter_export import YamlFilterHost  # noqa: E402

USAGE = "Usage: calibrate_cmd.py status | derive | apply <source> | reset"


def _load_app_config() -> AppConfig:
    try:
        raw = load_config()
    except FileNotFoundError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
    return AppConfig(raw)


def _resolve_db_path(config: AppConfig) -> Path:
    db_path = Path(config.get_db_path())
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    return db_path


def _store(db_path: Path) -> CalibrationStore:
    try:
        init_database(str(db_path))
    except SchemaVersionError as e:
        print(e, file=sys.stderr)
        sys.exit(1)

    def conn_factory():
        return connect(str(db_path))

    return CalibrationStore(CalibrationRepo(conn_factory))


def _require_state(store: CalibrationStore) -> CalibrationState:
    state = store.load_state()
    if state is None:
        print("No saved calibration. Run the wizard first.", file=sys.stderr)
        sys.exit(1)
    return state


def _print_parameters(params: FilterParameterSet) -> None:
    for key, value in params.to_dict().items():
        print(f"  {key}: {value:.2f}")


def cmd_status(store: CalibrationStore) -> None:
    state = store.load_state()
    if state is None:
        print("No saved calibration.")
    else:
        print(f"phase: {state.phase}")
        print(f"current_step: {state.current_step}")
        for i, (step, rec) in enumerate(zip(CALIBRATION_STEPS, state.records), start=1):
            if rec.recorded or rec.has_data:
                values = f"avg {rec.avg_level_db:.1f} dB, peak {rec.max_peak_db:.1f} dB"
            else:
                values = "(not recorded)"
            print(f"{i:3}  {step['title']:<22} {values}")
    at = store.last_calibrated_at()
    print("last_saved:", at.isoformat() if at else "(never)")
    applied = store.last_applied_at()
    if applied is not None:
        print("last_applied:", applied.isoformat())
    params = store.load_parameters()
    if params is not None:
        print("last_applied_parameters:")
        _print_parameters(params)


def cmd_derive(store: CalibrationStore, options: FilterOptions) -> None:
    state = _require_state(store)
    try:
        params = derive_parameters(state.records, options)
    except IncompleteCalibrationError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
    print("parameters:")
    _print_parameters(params)
    print("filter_chain:")
    for spec in build_filter_chain(params, options):
        print(f"  {spec.name} ({spec.kind}): {spec.settings}")


def cmd_apply(
    store: CalibrationStore, options: FilterOptions, host: YamlFilterHost, source: str
) -> None:
    state = _require_state(store)
    try:
        params = derive_parameters(state.records, options)
    except IncompleteCalibrationError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
    result = apply_filter_chain(host, source, build_filter_chain(params, options))
    store.save_parameters(params)
    print(f"Applied {len(result.applied)} filter(s) to {source} in {host.path}.")
    for name in result.skipped:
        print(f"Skipped (not available): {name}")
    for name in result.failed:
        print(f"Failed: {name}", file=sys.stderr)
    if result.failed:
        sys.exit(1)


def cmd_reset(store: CalibrationStore) -> None:
    store.clear()
    print("Cleared saved calibration.")


def main() -> None:
    if len(sys.argv) < 2:
        print(USAGE, file=sys.stderr)
        sys.exit(1)
    subcommand = sys.argv[1].lower()
    config = _load_app_config()
    store = _store(_resolve_db_path(config))
    options = FilterOptions.from_config(config.get_filters_config())

    if subcommand == "status":
        cmd_status(store)
        return
    if subcommand == "derive":
        cmd_derive(store, options)
        return
    if subcommand == "apply":
        if len(sys.argv) < 3 or not sys.argv[2].strip():
            print("Usage: calibrate_cmd.py apply <source>", file=sys.stderr)
            sys.exit(1)
        host = YamlFilterHost(config.get_filter_export_path())
        cmd_apply(store, options, host, sys.argv[2].strip())
        return
    if subcommand == "reset":
        cmd_reset(store)
        return

    print(
        f"Unknown subcommand: {subcommand}. Use status, derive, apply, or reset.",
        file=sys.stderr,
    )
    sys.exit(1)


if __name__ == "__main__":
    main()
