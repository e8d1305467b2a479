"""Constants for spiralcanon.

- ``spiralcanon.constants.durations`` - Beat-based durations for grids and subdivisions
- ``spiralcanon.constants.velocity`` - MIDI velocity bounds and defaults

Values defined here are shared by the generator, the compositor and the
MIDI file renderer.
"""

import math

# Timing resolution. Every generated time is snapped to this grid so that
# (voice, start_time, pitch) keys compare exactly.
TICKS_PER_BEAT = 480

# Golden ratio and its powers, used for canonic entries and density thresholds.
GOLDEN_RATIO = (1 + math.sqrt(5)) / 2
INVERSE_GOLDEN_RATIO = 1 / GOLDEN_RATIO
INVERSE_GOLDEN_RATIO_SQUARED = 1 / (GOLDEN_RATIO * GOLDEN_RATIO)

# MIDI pitch range
MIN_PITCH = 0
MAX_PITCH = 127

# Middle C, the tonic every voice's register is measured from.
MIDDLE_C = 60


def quantize (value: float) -> float:

	"""Snap a time value to the nearest tick."""

	return round(value * TICKS_PER_BEAT) / TICKS_PER_BEAT


def quantize_to (value: float, grid: float) -> float:

	"""Snap a value to the nearest multiple of ``grid`` (in beats)."""

	if grid <= 0:
		raise ValueError("Grid must be positive")

	return quantize(round(value / grid) * grid)
