"""
Calibration tables: the eight recording steps, timing, derivation limits, and filter choices.
Adding or removing a step is a change to CALIBRATION_STEPS only.
"""

from __future__ import annotations

# Ordered step descriptors; index i is step i + 1.
CALIBRATION_STEPS = [
    {
        "id": "noise_floor",
        "title": "Silence",
        "prompt": "(Stay silent)",
        "instruction": "Stay completely silent so we can measure your room's background noise.",
    },
    {
        "id": "whisper",
        "title": "Whisper",
        "prompt": '"The quick brown fox jumps over the lazy dog."\n(Whisper quietly)',
        "instruction": "Whisper the phrase as quietly as you would on stream late at night.",
    },
    {
        "id": "soft",
        "title": "Soft voice",
        "prompt": '"She sells seashells by the seashore."\n(Soft voice)',
        "instruction": "Speak softly, a little below your normal talking voice.",
    },
    {
        "id": "normal",
        "title": "Normal voice",
        "prompt": '"How much wood would a woodchuck chuck?"\n(Normal voice)',
        "instruction": "Speak in your regular talking voice.",
    },
    {
        "id": "steady",
        "title": "Steady normal",
        "prompt": '"One, two, three, four, five, six, seven, eight, nine, ten."\n(Keep it even)',
        "instruction": "Count steadily at a constant, normal volume.",
    },
    {
        "id": "energetic",
        "title": "Energetic voice",
        "prompt": '"PETER PIPER PICKED A PECK OF PICKLED PEPPERS!"\n(Loud / excited)',
        "instruction": "Speak in your loudest excited voice, as if reacting to a big moment.",
    },
    {
        "id": "sibilant",
        "title": "Sibilant phrase",
        "prompt": '"Sister Suzy sat on the seashore sipping sweet soda."',
        "instruction": "Say the phrase clearly; it is full of S sounds.",
    },
    {
        "id": "plosive",
        "title": "Plosive phrase",
        "prompt": '"Bobby brought a big bag of popcorn to the party."',
        "instruction": "Say the phrase clearly; it is full of P and B sounds.",
    },
]

TOTAL_STEPS = len(CALIBRATION_STEPS)
STEP_IDLE = 0
STEP_COMPLETE = TOTAL_STEPS + 1

RECORDING_DURATION_MS = 5000
RECORDING_TICK_MS = 100

# A step whose average level is at or below this holds no data.
NO_DATA_THRESHOLD_DB = -99.0

# Step indices (0-based) read by parameter derivation
NOISE_FLOOR_INDEX = 0
NORMAL_INDEX = 3
STEADY_INDEX = 4
ENERGETIC_INDEX = 5
# The noise floor may legitimately read as silence
OPTIONAL_STEP_INDICES = frozenset({NOISE_FLOOR_INDEX})

TARGET_RMS_DB = -18.0
GAIN_MIN_DB = -18.0
GAIN_MAX_DB = 18.0
PEAK_CEILING_DB = -3.0

RATIO_WIDE = 6.0
RATIO_NARROW = 3.0
RATIO_DEFAULT = 4.0
DYNAMIC_WIDE_DB = 14.0
DYNAMIC_NARROW_DB = 8.0

COMPRESSOR_OFFSET_DB = 5.0
COMPRESSOR_THRESHOLD_MIN_DB = -45.0
COMPRESSOR_THRESHOLD_MAX_DB = -10.0

GATE_NOISE_MARGIN_DB = 15.0
GATE_PROGRAM_OFFSET_DB = 25.0
GATE_OPEN_MIN_DB = -60.0
GATE_OPEN_MAX_DB = -10.0
GATE_HYSTERESIS_DB = 6.0
GATE_CLOSE_MIN_DB = -60.0
GATE_CLOSE_MAX_DB = -12.0

# Filter choices: (label, value). Tone trims are coarse static EQ offsets in dB.
NOISE_SUPPRESSION_CHOICES = [
    ("Low", -5.0),
    ("Medium", -10.0),
    ("High", -15.0),
]
HIGH_PASS_CHOICES = [
    ("60 Hz", -2.0),
    ("80 Hz", -3.0),
    ("100 Hz", -4.5),
    ("120 Hz", -6.0),
]
LOW_PASS_CHOICES = [
    ("16 kHz", -1.0),
    ("12 kHz", -2.0),
    ("10 kHz", -3.0),
    ("8 kHz", -4.5),
]
DE_ESSER_CHOICES = [
    ("Light", -2.0),
    ("Medium", -4.0),
    ("Strong", -6.0),
]

LIMITER_THRESHOLD_DB = -6.0
EXPANDER_RATIO = 4.0

FILTER_NAME_PREFIX = "AutoCal-"

# Abstract filter kind -> host filter ids, most preferred first
FILTER_KIND_IDS = {
    "noise_suppression": ("noise_suppress_filter_v2", "noise_suppress_filter"),
    "noise_gate": ("noise_gate_filter",),
    "expander": ("expander_filter",),
    "gain": ("gain_filter",),
    "compressor": ("compressor_filter",),
    "limiter": ("limiter_filter",),
    "eq": ("basic_eq_filter",),
}


def choice_value(choices: list[tuple[str, float]], label: str, default_label: str) -> float:
    """Return the value for label (case-insensitive), or for default_label if label is unknown."""
    wanted = (label or "").strip().lower()
    for lbl, value in choices:
        if lbl.lower() == wanted:
            return value
    for lbl, value in choices:
        if lbl == default_label:
            return value
    return choices[0][1]
