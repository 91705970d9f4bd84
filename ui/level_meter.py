"""
Level meter: horizontal bar for the smoothed RMS level with tick marks for the peak and the held max peak.
"""
from __future__ import annotations

import math

from PyQt6.QtGui import QColor, QPainter
from PyQt6.QtWidgets import QWidget

from audio.decibels import DB_FLOOR, meter_fraction

# Zone boundaries (dBFS): below -30 quiet, up to -12 good, above -12 hot
ZONE_GOOD_DB = -30.0
ZONE_HOT_DB = -12.0


class LevelMeterWidget(QWidget):
    """
    Displays one RMS level as a filled bar plus peak and max-peak markers.
    set_levels(rms_db, peak_db, max_peak_db) takes dBFS; NaN/None are treated as silence.
    """

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._rms = 0.0
        self._peak = 0.0
        self._max_peak = 0.0
        self._rms_db = DB_FLOOR
        self.setMinimumHeight(24)
        self.setMaximumHeight(32)

    @staticmethod
    def _fraction(db: float | None) -> float:
        if db is None or (isinstance(db, float) and math.isnan(db)):
            return 0.0
        return meter_fraction(float(db))

    def set_levels(self, rms_db: float, peak_db: float, max_peak_db: float) -> None:
        self._rms_db = DB_FLOOR if rms_db is None else float(rms_db)
        self._rms = self._fraction(rms_db)
        self._peak = self._fraction(peak_db)
        self._max_peak = self._fraction(max_peak_db)
        self.update()

    def _bar_color(self) -> QColor:
        if self._rms_db > ZONE_HOT_DB:
            return QColor("#d04040")
        if self._rms_db > ZONE_GOOD_DB:
            return QColor("#3cb043")
        return QColor("#4a9eff")

    def paintEvent(self, event: object) -> None:
        painter = QPainter(self)
        painter.fillRect(self.rect(), self.palette().color(self.backgroundRole()))
        w = self.width()
        h = self.height()
        bar_w = int(self._rms * w)
        if bar_w > 0:
            painter.fillRect(0, 1, bar_w, h - 2, self._bar_color())
        fg = self.palette().color(self.foregroundRole())
        for frac, width in ((self._peak, 2), (self._max_peak, 3)):
            if frac <= 0.0:
                continue
            x = min(w - width, int(frac * w))
            painter.fillRect(x, 0, width, h, fg)
        painter.setPen(fg)
        painter.drawRect(0, 0, w - 1, h - 1)
        painter.end()


def format_db(db: float) -> str:
    """Meter readout: '-inf' at the floor, otherwise one decimal."""
    if db <= DB_FLOOR:
        return "-inf dB"
    return f"{db:.1f} dB"


__all__ = ["LevelMeterWidget", "format_db"]
