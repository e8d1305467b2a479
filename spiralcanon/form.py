"""Compositional form - the three sections and the parameters each one feeds to the spiral.

Section order is fixed: Exposition, Development, Culmination.  Section
boundaries are configuration (``duration_bars``), not something derived from
where notes happen to end; :func:`section_offsets` turns the durations into
the start of each section on the shared timeline.
"""

import dataclasses
import enum
import typing

import spiralcanon.canon
import spiralcanon.exceptions
import spiralcanon.spiral


class Section (enum.Enum):

	"""The three sections, in playing order."""

	EXPOSITION = "exposition"
	DEVELOPMENT = "development"
	CULMINATION = "culmination"

	@property
	def title (self) -> str:

		return self.value.capitalize()


SECTION_ORDER: typing.Tuple[Section, ...] = (Section.EXPOSITION, Section.DEVELOPMENT, Section.CULMINATION)


@dataclasses.dataclass(frozen=True)
class SectionSpec:

	"""
	Everything needed to generate one section for every voice.

	Attributes:
		section: Which section this is.
		duration_bars: Section length in time units; also its offset contribution.
		growth: Spiral growth rate ``b`` for this section.
		turns: How many turns of the spiral the section travels.
		density_profile: Density wave shape for this section.
		subject: The canonic theme stated in this section.
		statement_length: Time between successive statements of the subject.
			``None`` uses the subject length.
		sequence: Transposition (semitones) of each statement, cycled.
		options: Per-voice canonic options keyed by voice id. Voices not listed
			play the plain canon.

	Example:
		```python
		SectionSpec(
			section = Section.EXPOSITION,
			duration_bars = 32,
			growth = 0.12,
			subject = ARPEGGIO,
			statement_length = 8,
			sequence = (0, 2, 4, 0),
			options = {"pad": CanonOptions(rate=4.0)},
		)
		```
	"""

	section: Section
	duration_bars: float
	subject: spiralcanon.canon.Subject
	growth: float = 0.15
	turns: float = 2.0
	density_profile: spiralcanon.spiral.DensityProfile = spiralcanon.spiral.DensityProfile()
	statement_length: typing.Optional[float] = None
	sequence: typing.Tuple[int, ...] = (0,)
	options: typing.Mapping[str, spiralcanon.canon.CanonOptions] = dataclasses.field(default_factory=dict)

	def __post_init__ (self) -> None:

		if self.duration_bars <= 0:
			raise spiralcanon.exceptions.ConfigurationError(
				f"Section {self.name} duration must be positive (got {self.duration_bars})"
			)

		if self.statement_length is not None and self.statement_length <= 0:
			raise spiralcanon.exceptions.ConfigurationError(f"Section {self.name} statement length must be positive")

		if not self.sequence:
			raise spiralcanon.exceptions.ConfigurationError(f"Section {self.name} needs at least one statement transposition")

	@property
	def name (self) -> str:

		return self.section.title

	@property
	def period (self) -> float:

		"""Time between statements of the subject."""

		if self.statement_length is not None:
			return self.statement_length

		return self.subject.length

	def options_for (self, voice_id: str) -> spiralcanon.canon.CanonOptions:

		return self.options.get(voice_id, spiralcanon.canon.CanonOptions())


def section_offsets (durations: typing.Sequence[float]) -> typing.List[float]:

	"""Return the start of each section: ``offset[i] = sum(durations[:i])``."""

	offsets: typing.List[float] = []
	total = 0.0

	for duration in durations:

		if duration <= 0:
			raise spiralcanon.exceptions.ConfigurationError(f"Section durations must be positive (got {duration})")

		offsets.append(total)
		total += duration

	return offsets


def check_order (sections: typing.Sequence[SectionSpec]) -> None:

	"""Raise unless ``sections`` follow the fixed section order without repeats."""

	names = [spec.section for spec in sections]
	expected = [section for section in SECTION_ORDER if section in names]

	if names != expected:
		raise spiralcanon.exceptions.ConfigurationError(
			f"Sections must appear in the order {[s.title for s in SECTION_ORDER]}, got {[s.title for s in names]}"
		)
