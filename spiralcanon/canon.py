"""Canonic transformations of a subject.

A subject is one statement of a theme: an ordered tuple of
:class:`SubjectNote` values measured from the tonic and from the start of
the statement.  Each voice derives its line from the subject by composing,
in this fixed order:

1. transposition by the voice's canonic interval,
2. time shift by the voice's canonic entry offset,
3. augmentation or diminution by a rate (optional),
4. inversion around an axis pitch (optional),
5. retrograde (optional).

The order is not configurable - augmentation and retrograde do not
commute, so the same options must always produce the same line.

Example:
	```python
	subject = Subject("arpeggio", (
		SubjectNote(0, 0.0, 2.0, 10),
		SubjectNote(4, 1.0, 2.0, 0),
		SubjectNote(7, 2.0, 2.0, 5),
	))

	line = CanonTransformer().derive(subject, role, CanonOptions(rate=2.0, retrograde=True))
	```
"""

import dataclasses
import logging
import typing

import spiralcanon.exceptions
import spiralcanon.voice


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class SubjectNote:

	"""
	One note of a subject or of a derived line.

	Attributes:
		pitch_offset: Semitones from the tonic.
		start: Start time relative to the statement.
		duration: Length in time units.
		accent: Velocity added on top of the voice's base velocity.
	"""

	pitch_offset: int
	start: float
	duration: float
	accent: int = 0

	@property
	def end (self) -> float:

		return self.start + self.duration


Line = typing.Tuple[SubjectNote, ...]


@dataclasses.dataclass(frozen=True)
class Subject:

	"""A named canonic theme."""

	name: str
	notes: Line

	def __post_init__ (self) -> None:

		if not self.notes:
			raise spiralcanon.exceptions.ConfigurationError(f"Subject {self.name!r} has no notes")

		seen: typing.Set[typing.Tuple[float, int]] = set()

		for note in self.notes:

			if note.start < 0:
				raise spiralcanon.exceptions.ConfigurationError(f"Subject {self.name!r} has a note before its start")

			if note.duration <= 0:
				raise spiralcanon.exceptions.ConfigurationError(f"Subject {self.name!r} has a non-positive duration")

			if (note.start, note.pitch_offset) in seen:
				raise spiralcanon.exceptions.ConfigurationError(
					f"Subject {self.name!r} repeats pitch {note.pitch_offset} at {note.start}"
				)

			seen.add((note.start, note.pitch_offset))

	@property
	def length (self) -> float:

		"""Length of one statement: the latest note end."""

		return max(note.end for note in self.notes)


@dataclasses.dataclass(frozen=True)
class CanonOptions:

	"""
	Optional steps of the transform chain for one voice in one section.

	Attributes:
		rate: Time scale factor. ``> 1`` augments, ``0 < rate < 1`` diminishes,
			``None`` skips the step.
		inversion_axis: Pitch offset to mirror around, or ``None`` to skip.
		retrograde: Play the line backwards.
	"""

	rate: typing.Optional[float] = None
	inversion_axis: typing.Optional[int] = None
	retrograde: bool = False

	def __post_init__ (self) -> None:

		if self.rate is not None:
			_check_rate(self.rate)


def _check_rate (rate: float) -> None:

	if rate == 0:
		raise spiralcanon.exceptions.ConfigurationError("Augmentation rate cannot be zero")

	if rate < 0:
		raise spiralcanon.exceptions.ConfigurationError(f"Augmentation rate must be positive (got {rate})")


def transpose (notes: typing.Sequence[SubjectNote], interval: int) -> Line:

	return tuple(dataclasses.replace(note, pitch_offset=note.pitch_offset + interval) for note in notes)


def shift (notes: typing.Sequence[SubjectNote], offset: float) -> Line:

	return tuple(dataclasses.replace(note, start=note.start + offset) for note in notes)


def scale_time (notes: typing.Sequence[SubjectNote], rate: float) -> Line:

	"""Multiply starts and durations by ``rate`` (augmentation or diminution)."""

	_check_rate(rate)

	return tuple(
		dataclasses.replace(note, start=note.start * rate, duration=note.duration * rate)
		for note in notes
	)


def invert (notes: typing.Sequence[SubjectNote], axis: int) -> Line:

	"""Mirror every pitch around ``axis``."""

	return tuple(dataclasses.replace(note, pitch_offset=2 * axis - note.pitch_offset) for note in notes)


def retrograde (notes: typing.Sequence[SubjectNote]) -> Line:

	"""
	Reverse the line in time.

	Event order is reversed and each start becomes
	``first_start + total_end - original_end``, so the line keeps the span it
	occupied.  For a line starting at 0 this is ``total_duration - end``.
	Applying it twice returns the original line.
	"""

	if not notes:
		return ()

	first_start = min(note.start for note in notes)
	total_end = max(note.end for note in notes)

	return tuple(
		dataclasses.replace(note, start=first_start + total_end - note.end)
		for note in reversed(notes)
	)


class CanonTransformer:

	"""Derives a voice's line from a subject with the fixed transform order."""

	def derive (
		self,
		subject: Subject,
		role: spiralcanon.voice.VoiceRole,
		options: typing.Optional[CanonOptions] = None
	) -> Line:

		"""Return the line ``role`` plays for one statement of ``subject``."""

		if options is None:
			options = CanonOptions()

		line = transpose(subject.notes, role.transposition_interval)
		line = shift(line, role.canonic_entry_offset)

		if options.rate is not None:
			line = scale_time(line, options.rate)

		if options.inversion_axis is not None:
			line = invert(line, options.inversion_axis)

		if options.retrograde:
			line = retrograde(line)

		logger.debug(f"Derived {len(line)} notes for {role.voice_id} from {subject.name!r} ({options})")

		return line
