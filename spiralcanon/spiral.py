"""Logarithmic spiral model of a spiral galaxy.

The spiral ``r = a·e^(b·θ)`` is the geometric source of the whole piece:

- The **density wave** (the bright, compressed regions of a galaxy's arms)
  becomes a smooth ``[0, 1]`` modulation signal over the spiral angle.
  It shapes velocities and, for ornamental voices, how finely notes are
  subdivided.
- The **arc length** of the arm maps time inside a section to an angle, so
  a section with a larger growth rate ``b`` sweeps through the inner turns
  quickly and lingers in the outer arm.
- The **golden ratio** places canonic entries and subdivision thresholds.

Every function here is pure and deterministic.  Degenerate parameters raise
:class:`~spiralcanon.exceptions.ConfigurationError` instead of silently
producing a circle.
"""

import dataclasses
import math
import typing

import spiralcanon.constants
import spiralcanon.exceptions

if typing.TYPE_CHECKING:
	from spiralcanon.form import SectionSpec


# Larger exponents overflow a float in the arc-length inversion.
_MAX_EXPONENT = 700.0


@dataclasses.dataclass(frozen=True)
class SpiralPoint:

	"""
	A point on the spiral, derived on demand.

	Attributes:
		angle: The spiral angle in radians.
		radius: ``a·e^(b·angle)``, always positive.
		density: Density-wave intensity at ``angle`` in ``[0, 1]``.
	"""

	angle: float
	radius: float
	density: float


@dataclasses.dataclass(frozen=True)
class DensityProfile:

	"""
	Shape of the density wave used by one section.

	The wave is a raised cosine with one crest per arm, so a two-armed galaxy
	has a crest every ``π`` radians.  ``sharpness`` above 1 narrows the
	crests; ``floor`` and ``ceiling`` bound the output.

	Attributes:
		peak_angle: Angle of the first crest (``3π/4`` in the reference profile).
		arms: Number of spiral arms (crests per full turn).
		sharpness: Exponent applied to the raised cosine.
		floor: Density between arms.
		ceiling: Density at a crest.
	"""

	peak_angle: float = 3 * math.pi / 4
	arms: int = 2
	sharpness: float = 1.0
	floor: float = 0.0
	ceiling: float = 1.0

	def __post_init__ (self) -> None:

		if self.arms < 1:
			raise spiralcanon.exceptions.ConfigurationError("A density wave needs at least one arm")

		if self.sharpness <= 0:
			raise spiralcanon.exceptions.ConfigurationError("Density sharpness must be positive")

		if not 0.0 <= self.floor <= self.ceiling <= 1.0:
			raise spiralcanon.exceptions.ConfigurationError(
				f"Density bounds must satisfy 0 <= floor <= ceiling <= 1 (got {self.floor}, {self.ceiling})"
			)


def _check_growth (b: float) -> None:

	if b == 0:
		raise spiralcanon.exceptions.ConfigurationError("Growth b=0 describes a circle, not a spiral")

	if b < 0:
		raise spiralcanon.exceptions.ConfigurationError(f"Growth b must be positive for an outward spiral (got {b})")


def radius_at (a: float, b: float, angle: float) -> float:

	"""Return the spiral radius ``a·e^(b·angle)``."""

	if a <= 0:
		raise spiralcanon.exceptions.ConfigurationError(f"Spiral scale a must be positive (got {a})")

	_check_growth(b)

	return a * math.exp(b * angle)


def density_at (angle: float, profile: DensityProfile) -> float:

	"""
	Return the density-wave intensity at ``angle``, in ``[0, 1]``.

	A smooth periodic function with crests at ``profile.peak_angle`` plus
	whole multiples of ``2π / arms``.  It is a modulation input only; nothing
	is gated on it reaching a particular value.
	"""

	raw = (1.0 + math.cos(profile.arms * (angle - profile.peak_angle))) / 2.0
	shaped = raw ** profile.sharpness
	value = profile.floor + shaped * (profile.ceiling - profile.floor)

	return min(1.0, max(0.0, value))


def golden_entry_offset (base_offset: float, direction: str = "contract") -> float:

	"""
	Scale an offset by the golden ratio.

	``"contract"`` returns ``base_offset / φ`` and ``"expand"`` returns
	``base_offset · φ``.  Used to stagger canonic entries.
	"""

	if direction == "contract":
		return base_offset / spiralcanon.constants.GOLDEN_RATIO

	if direction == "expand":
		return base_offset * spiralcanon.constants.GOLDEN_RATIO

	raise spiralcanon.exceptions.ConfigurationError(
		f"Unknown golden direction {direction!r}. Use 'contract' or 'expand'."
	)


def angle_at (fraction: float, growth: float, turns: float) -> float:

	"""
	Map a position ``fraction`` in ``[0, 1]`` along a section to a spiral angle.

	The arc length of a logarithmic spiral from the origin angle 0 to ``θ`` is
	proportional to ``e^(bθ) - 1``, so inverting it gives the angle reached
	after travelling ``fraction`` of the arm's length at constant speed.
	"""

	_check_growth(growth)

	if turns <= 0:
		raise spiralcanon.exceptions.ConfigurationError(f"Turns must be positive (got {turns})")

	max_angle = 2 * math.pi * turns

	if growth * max_angle > _MAX_EXPONENT:
		raise spiralcanon.exceptions.ConfigurationError(
			f"Growth {growth} over {turns} turns is too steep to evaluate"
		)

	fraction = min(1.0, max(0.0, fraction))

	return math.log1p(fraction * math.expm1(growth * max_angle)) / growth


class SpiralModel:

	"""
	Binds the composer-supplied spiral scale and golden direction.

	The growth rate ``b``, the number of turns and the density profile belong
	to each section; this object evaluates them for a time inside a section.
	"""

	def __init__ (self, a: float = 1.0, golden_direction: str = "contract") -> None:

		if a <= 0:
			raise spiralcanon.exceptions.ConfigurationError(f"Spiral scale a must be positive (got {a})")

		# Fail early on an unknown direction.
		golden_entry_offset(1.0, golden_direction)

		self.a = a
		self.golden_direction = golden_direction

	def radius_at (self, b: float, angle: float) -> float:

		return radius_at(self.a, b, angle)

	def golden_entry_offset (self, base_offset: float) -> float:

		return golden_entry_offset(base_offset, self.golden_direction)

	def angle_for_time (self, section: "SectionSpec", time: float) -> float:

		"""Return the spiral angle reached ``time`` units into ``section``."""

		if section.duration_bars <= 0:
			raise spiralcanon.exceptions.ConfigurationError(
				f"Section {section.name} duration must be positive (got {section.duration_bars})"
			)

		return angle_at(time / section.duration_bars, section.growth, section.turns)

	def point_at (self, section: "SectionSpec", time: float) -> SpiralPoint:

		"""Return the spiral point for a time inside ``section``."""

		angle = self.angle_for_time(section, time)

		return SpiralPoint(
			angle = angle,
			radius = radius_at(self.a, section.growth, angle),
			density = density_at(angle, section.density_profile)
		)

	def density_for_time (self, section: "SectionSpec", time: float) -> float:

		return density_at(self.angle_for_time(section, time), section.density_profile)
