"""
Calibration wizard: pick a microphone, record the eight timed steps while watching live meters,
then derive filter settings and apply the chain to the filter host.
Saves the resume record after every committed step. Closing the window mid-recording discards that step only.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Hashable

from PyQt6.QtCore import QTimer
from PyQt6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDialog,
    QGridLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from audio.capture import list_sources
from calibration.constants import (
    CALIBRATION_STEPS,
    DE_ESSER_CHOICES,
    HIGH_PASS_CHOICES,
    LOW_PASS_CHOICES,
    NOISE_SUPPRESSION_CHOICES,
    STEP_IDLE,
)
from calibration.derivation import FilterOptions, IncompleteCalibrationError
from calibration.filters import apply_filter_chain, build_filter_chain
from calibration.session import CalibrationSession
from calibration.state import StepRecord
from sdk.config import FILTER_TOGGLE_KEYS
from ui.level_meter import LevelMeterWidget, format_db

if TYPE_CHECKING:
    from audio.level import LevelAnalyzer
    from calibration.store import CalibrationStore
    from sdk.abstractions import FilterHost

logger = logging.getLogger(__name__)

# Toggle key -> checkbox label, in chain order
FILTER_TOGGLE_LABELS = {
    "noise_suppression": "Noise suppression",
    "noise_gate": "Noise gate",
    "expander": "Expander",
    "gain": "Gain",
    "compressor": "Compressor",
    "limiter": "Limiter",
    "high_pass": "High-pass (EQ low band)",
    "low_pass": "Low-pass (EQ high band)",
    "de_esser": "De-esser (EQ high band)",
}

# Choice key -> (label, choices) for the combo boxes
FILTER_CHOICE_FIELDS = {
    "noise_suppression_level": ("Suppression level", NOISE_SUPPRESSION_CHOICES),
    "high_pass_freq": ("High-pass cutoff", HIGH_PASS_CHOICES),
    "low_pass_freq": ("Low-pass cutoff", LOW_PASS_CHOICES),
    "de_esser_intensity": ("De-esser intensity", DE_ESSER_CHOICES),
}


class CalibrationDialog(QDialog):
    """Non-modal wizard window. Owns the session and both timers; all calls run on the Qt thread."""

    def __init__(
        self,
        analyzer: LevelAnalyzer,
        store: CalibrationStore,
        filter_host: FilterHost,
        calibration_config: dict[str, Any],
        filters_config: dict[str, Any],
        default_source: Hashable | None = None,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self._analyzer = analyzer
        self._store = store
        self._host = filter_host
        self._filters_config = filters_config
        self._session = CalibrationSession(
            analyzer,
            record_duration_ms=calibration_config["record_duration_ms"],
            tick_ms=calibration_config["tick_ms"],
            on_status=self._on_status,
            on_step_saved=self._on_step_saved,
        )

        self.setWindowTitle("AutoCal - Microphone calibration")
        layout = QVBoxLayout(self)
        layout.setSpacing(16)
        layout.setContentsMargins(24, 24, 24, 24)

        source_row = QHBoxLayout()
        source_row.addWidget(QLabel("Microphone:"))
        self._source_combo = QComboBox()
        for idx, name in list_sources():
            self._source_combo.addItem(name, idx)
        self._select_default_source(default_source)
        source_row.addWidget(self._source_combo, stretch=1)
        layout.addLayout(source_row)

        meters_group = QGroupBox("Input level")
        meters_layout = QGridLayout(meters_group)
        self._meter = LevelMeterWidget()
        meters_layout.addWidget(self._meter, 0, 0, 1, 3)
        self._rms_label = QLabel("RMS: -inf dB")
        self._peak_label = QLabel("Peak: -inf dB")
        self._max_peak_label = QLabel("Max peak: -inf dB")
        meters_layout.addWidget(self._rms_label, 1, 0)
        meters_layout.addWidget(self._peak_label, 1, 1)
        meters_layout.addWidget(self._max_peak_label, 1, 2)
        layout.addWidget(meters_group)

        step_group = QGroupBox("Current step")
        step_layout = QVBoxLayout(step_group)
        self._step_title = QLabel("")
        self._step_title.setObjectName("statusLabel")
        self._step_prompt = QLabel("")
        self._step_prompt.setWordWrap(True)
        self._step_instruction = QLabel("")
        self._step_instruction.setWordWrap(True)
        self._step_instruction.setStyleSheet("color: #888;")
        self._countdown = QLabel("")
        for w in (self._step_title, self._step_prompt, self._step_instruction, self._countdown):
            step_layout.addWidget(w)
        layout.addWidget(step_group)

        buttons_row = QHBoxLayout()
        self._start_btn = QPushButton("Start Calibration")
        self._start_btn.clicked.connect(self._on_start_clicked)
        self._record_btn = QPushButton("Record")
        self._record_btn.clicked.connect(self._on_record_clicked)
        self._apply_btn = QPushButton("Apply Filters")
        self._apply_btn.clicked.connect(self._on_apply_clicked)
        self._reset_btn = QPushButton("Reset")
        self._reset_btn.clicked.connect(self._on_reset_clicked)
        for b in (self._start_btn, self._record_btn, self._apply_btn, self._reset_btn):
            buttons_row.addWidget(b)
        layout.addLayout(buttons_row)

        results_group = QGroupBox("Recorded steps")
        results_layout = QGridLayout(results_group)
        self._result_labels: list[QLabel] = []
        for i, step in enumerate(CALIBRATION_STEPS):
            results_layout.addWidget(QLabel(f"{i + 1}. {step['title']}"), i, 0)
            value = QLabel("-")
            results_layout.addWidget(value, i, 1)
            self._result_labels.append(value)
        layout.addWidget(results_group)

        filters_group = QGroupBox("Filters")
        filters_layout = QGridLayout(filters_group)
        self._toggle_boxes: dict[str, QCheckBox] = {}
        for i, key in enumerate(FILTER_TOGGLE_KEYS):
            cb = QCheckBox(FILTER_TOGGLE_LABELS.get(key, key))
            cb.setChecked(bool(filters_config.get(key)))
            filters_layout.addWidget(cb, i // 3, i % 3)
            self._toggle_boxes[key] = cb
        row = (len(FILTER_TOGGLE_KEYS) + 2) // 3
        self._choice_combos: dict[str, QComboBox] = {}
        for key, (label, choices) in FILTER_CHOICE_FIELDS.items():
            filters_layout.addWidget(QLabel(label), row, 0)
            combo = QComboBox()
            for choice_label, _ in choices:
                combo.addItem(choice_label)
            idx = combo.findText(str(filters_config.get(key, "")))
            if idx >= 0:
                combo.setCurrentIndex(idx)
            filters_layout.addWidget(combo, row, 1, 1, 2)
            self._choice_combos[key] = combo
            row += 1
        layout.addWidget(filters_group)

        self._status_label = QLabel("")
        self._status_label.setWordWrap(True)
        layout.addWidget(self._status_label)
        self._last_calibrated_label = QLabel("")
        self._last_calibrated_label.setStyleSheet("color: #888; font-size: 0.9em;")
        layout.addWidget(self._last_calibrated_label)

        self._meter_timer = QTimer(self)
        self._meter_timer.setInterval(calibration_config["meter_refresh_ms"])
        self._meter_timer.timeout.connect(self._refresh_meters)
        self._meter_timer.start()

        self._record_timer = QTimer(self)
        self._record_timer.setInterval(calibration_config["tick_ms"])
        self._record_timer.timeout.connect(self._on_record_tick)

        self._load_saved()
        self._refresh_step()

    # --- setup ---

    def _select_default_source(self, default_source: Hashable | None) -> None:
        if default_source is None or self._source_combo.count() == 0:
            return
        idx = self._source_combo.findData(default_source)
        if idx < 0:
            idx = self._source_combo.findText(str(default_source))
        if idx >= 0:
            self._source_combo.setCurrentIndex(idx)

    def _current_source(self) -> Hashable | None:
        if self._source_combo.count() == 0:
            return None
        return self._source_combo.currentData()

    def _current_source_name(self) -> str | None:
        """Device name of the selected source; exported chains are keyed by it, not the device index."""
        if self._source_combo.count() == 0:
            return None
        return self._source_combo.currentText()

    def _load_saved(self) -> None:
        """Restore an unfinished or finished calibration from the store."""
        try:
            saved = self._store.load_state()
            at = self._store.last_calibrated_at()
        except Exception as e:
            logger.exception("Failed to load saved calibration: %s", e)
            return
        if at is not None:
            self._last_calibrated_label.setText("Last saved: " + at.strftime("%Y-%m-%d %H:%M"))
        if saved is None or saved.current_step == STEP_IDLE:
            return
        self._session.restore(saved)
        self._on_status(
            f"Restored calibration at step {saved.current_step}. "
            "Click Start Calibration to continue."
            if not saved.is_complete
            else "Restored a finished calibration. Select filters and click Apply."
        )

    # --- session callbacks ---

    def _on_status(self, message: str) -> None:
        self._status_label.setText(message)

    def _on_step_saved(self, step: int, record: StepRecord) -> None:
        self._save_state()

    def _save_state(self) -> None:
        try:
            self._store.save_state(self._session.state)
        except Exception as e:
            logger.exception("Failed to save calibration progress: %s", e)
            self._on_status("Could not save calibration progress.")

    # --- button handlers ---

    def _on_start_clicked(self) -> None:
        source = self._current_source()
        if self._session.current_step == STEP_IDLE:
            started = self._session.start(source)
        else:
            started = self._session.resume(source)
        if started:
            self._save_state()
        self._refresh_step()

    def _on_record_clicked(self) -> None:
        if self._session.start_recording():
            self._record_timer.start()
        self._refresh_step()

    def _on_record_tick(self) -> None:
        self._session.tick()
        if not self._session.is_recording:
            self._record_timer.stop()
        self._refresh_step()

    def _on_reset_clicked(self) -> None:
        self._record_timer.stop()
        self._session.reset()
        self._save_state()
        self._refresh_step()

    def _filter_options(self) -> FilterOptions:
        values: dict[str, Any] = {k: cb.isChecked() for k, cb in self._toggle_boxes.items()}
        values.update({k: combo.currentText() for k, combo in self._choice_combos.items()})
        return FilterOptions(**values)

    def _on_apply_clicked(self) -> None:
        target = self._current_source_name()
        if not target:
            QMessageBox.warning(self, "AutoCal", "Select a microphone first.")
            return
        options = self._filter_options()
        try:
            params = self._session.derive(options)
        except IncompleteCalibrationError as e:
            QMessageBox.warning(self, "AutoCal", f"{e}. Complete the calibration first.")
            return
        result = apply_filter_chain(self._host, target, build_filter_chain(params, options))
        try:
            self._store.save_parameters(params)
        except Exception as e:
            logger.exception("Failed to save filter parameters: %s", e)
        summary = f"Applied {len(result.applied)} filter(s)."
        if result.skipped:
            summary += " Not available: " + ", ".join(result.skipped) + "."
        if result.failed:
            summary += " Failed: " + ", ".join(result.failed) + "."
        self._on_status(summary)
        if result.ok:
            QMessageBox.information(
                self,
                "AutoCal",
                f"{summary}\nGain {params.gain_db:+.1f} dB, compressor {params.compressor_ratio:.0f}:1 "
                f"at {params.compressor_threshold_db:.1f} dB, gate opens at {params.gate_open_db:.1f} dB.",
            )
        else:
            QMessageBox.warning(self, "AutoCal", summary)

    # --- display ---

    def _refresh_meters(self) -> None:
        reading = self._analyzer.reading()
        self._meter.set_levels(reading.rms_db, reading.peak_db, reading.max_peak_db)
        self._rms_label.setText("RMS: " + format_db(reading.rms_db))
        self._peak_label.setText("Peak: " + format_db(reading.peak_db))
        self._max_peak_label.setText("Max peak: " + format_db(reading.max_peak_db))

    def _refresh_step(self) -> None:
        session = self._session
        info = session.current_step_info()
        if info is None:
            self._step_title.setText("Calibration complete" if session.is_complete else "Not started")
            self._step_prompt.setText("")
            self._step_instruction.setText("")
        else:
            self._step_title.setText(f"Step {session.current_step}: {info['title']}")
            self._step_prompt.setText(info["prompt"])
            self._step_instruction.setText(info["instruction"])
        self._countdown.setText(
            f"Recording... {session.seconds_left} s" if session.is_recording else ""
        )
        for label, rec in zip(self._result_labels, session.records):
            if rec.recorded or rec.has_data:
                label.setText(f"avg {format_db(rec.avg_level_db)}, peak {format_db(rec.max_peak_db)}")
            else:
                label.setText("-")
        recording = session.is_recording
        self._start_btn.setEnabled(not recording)
        self._record_btn.setEnabled(
            not recording and session.current_step != STEP_IDLE and not session.is_complete
        )
        self._apply_btn.setEnabled(not recording and session.is_complete)
        self._source_combo.setEnabled(not recording)

    def closeEvent(self, event: Any) -> None:
        self._record_timer.stop()
        self._meter_timer.stop()
        if self._session.cancel_recording():
            self._save_state()
        self._analyzer.stop()
        super().closeEvent(event)
