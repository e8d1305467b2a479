"""Per-voice, per-section score generation.

:class:`VoiceScoreGenerator` turns a section's subject into the notes one
voice plays in that section:

1. The voice's canonic line is derived from the subject
   (:class:`~spiralcanon.canon.CanonTransformer`).
2. The line is stated repeatedly through the section, each statement
   transposed by the section's sequence.  Nothing starts at or after the
   end of the section, although notes may sustain across it.
3. Ornamental voices break notes into running figures where the density
   wave is high (see :meth:`VoiceScoreGenerator.subdivisions`).
4. Velocity follows the density wave:
   ``base_velocity + accent + round(density · velocity_range)``.
5. Same-pitch onsets at the same instant merge into one note, and
   monophonic voices cut a note short when the same pitch sounds again.

Generation is a pure function of role, section and spiral model, and it is
all-or-nothing: any invalid parameter raises before a note is returned.
"""

import dataclasses
import logging
import typing

import spiralcanon.canon
import spiralcanon.constants
import spiralcanon.constants.durations
import spiralcanon.constants.velocity
import spiralcanon.exceptions
import spiralcanon.form
import spiralcanon.note
import spiralcanon.spiral
import spiralcanon.voice


logger = logging.getLogger(__name__)

_MIN_DURATION = 1 / spiralcanon.constants.TICKS_PER_BEAT


@dataclasses.dataclass
class _Draft:

	"""A note under construction, in section time."""

	pitch: int
	start: float
	duration: float
	velocity: int


class VoiceScoreGenerator:

	"""Generates the notes of one voice for one section at a time."""

	def __init__ (
		self,
		spiral_model: typing.Optional[spiralcanon.spiral.SpiralModel] = None,
		tonic: int = spiralcanon.constants.MIDDLE_C,
		transformer: typing.Optional[spiralcanon.canon.CanonTransformer] = None
	) -> None:

		self.spiral_model = spiral_model or spiralcanon.spiral.SpiralModel()
		self.tonic = tonic
		self.transformer = transformer or spiralcanon.canon.CanonTransformer()

	def generate_section (
		self,
		role: spiralcanon.voice.VoiceRole,
		section: spiralcanon.form.SectionSpec
	) -> typing.Tuple[spiralcanon.note.NoteEvent, ...]:

		"""Return the voice's notes for ``section``, ordered by start time then pitch."""

		if section.duration_bars <= 0:
			raise spiralcanon.exceptions.ConfigurationError(
				f"Section {section.name} duration must be positive (got {section.duration_bars})"
			)

		options = section.options_for(role.voice_id)
		line = self.transformer.derive(section.subject, role, options)

		drafts: typing.List[_Draft] = []

		for note, transposition in self._statements(line, section, options):

			start = spiralcanon.constants.quantize(note.start)

			if start >= section.duration_bars:
				continue

			pitch = self.tonic + role.register_offset + note.pitch_offset + transposition
			self._check_pitch(pitch, role, section)

			drafts.extend(self._render_note(role, section, pitch, start, note.duration, note.accent))

		drafts = self._merge_unisons(drafts)

		if not role.polyphonic:
			self._truncate_overlaps(drafts)

		drafts.sort(key=lambda draft: (draft.start, draft.pitch))

		events = tuple(
			spiralcanon.note.NoteEvent(
				voice_id = role.voice_id,
				pitch = draft.pitch,
				start_time = draft.start,
				duration = draft.duration,
				velocity = draft.velocity
			)
			for draft in drafts
		)

		logger.debug(f"{role.voice_id}: {len(events)} events in {section.name}")

		return events

	def generate_voice (
		self,
		role: spiralcanon.voice.VoiceRole,
		sections: typing.Sequence[spiralcanon.form.SectionSpec]
	) -> typing.Tuple[typing.Tuple[spiralcanon.note.NoteEvent, ...], ...]:

		"""Generate every section for one voice, or raise without returning any of them."""

		return tuple(self.generate_section(role, section) for section in sections)

	def subdivisions (self, density: float, duration: float) -> int:

		"""
		Return how many pieces an ornamental note of ``duration`` is split into.

		Below ``1/φ²`` the note stays whole, from ``1/φ²`` it splits in two and
		from ``1/φ`` in four.  Only notes of at least a beat are split, and a
		piece never drops below a sixteenth - the split falls back (4, 2, 1)
		until it fits.
		"""

		if duration < spiralcanon.constants.durations.QUARTER:
			return 1

		if density >= spiralcanon.constants.INVERSE_GOLDEN_RATIO:
			pieces = 4
		elif density >= spiralcanon.constants.INVERSE_GOLDEN_RATIO_SQUARED:
			pieces = 2
		else:
			pieces = 1

		while pieces > 1 and duration / pieces < spiralcanon.constants.durations.SIXTEENTH:
			pieces //= 2

		return pieces

	def velocity_for (self, role: spiralcanon.voice.VoiceRole, density: float, accent: int = 0) -> int:

		"""Return the density-modulated velocity, clamped to the MIDI note-on range."""

		velocity = role.base_velocity + accent + round(density * role.velocity_range)

		return max(spiralcanon.constants.velocity.MIN_VELOCITY, min(spiralcanon.constants.velocity.MAX_VELOCITY, velocity))

	def _statements (
		self,
		line: spiralcanon.canon.Line,
		section: spiralcanon.form.SectionSpec,
		options: spiralcanon.canon.CanonOptions
	) -> typing.Iterator[typing.Tuple[spiralcanon.canon.SubjectNote, int]]:

		"""Yield each note of each statement in section time with its statement transposition."""

		# An augmented voice states the subject more slowly.
		period = section.period * (options.rate if options.rate is not None else 1.0)
		count = 0

		while count * period < section.duration_bars:

			transposition = section.sequence[count % len(section.sequence)]

			for note in spiralcanon.canon.shift(line, count * period):
				yield note, transposition

			count += 1

	def _render_note (
		self,
		role: spiralcanon.voice.VoiceRole,
		section: spiralcanon.form.SectionSpec,
		pitch: int,
		start: float,
		duration: float,
		accent: int
	) -> typing.List[_Draft]:

		"""Turn one line note into one or more drafts, subdividing ornamental voices."""

		end = spiralcanon.constants.quantize(start + duration)
		density = self.spiral_model.density_for_time(section, start)

		pieces = 1

		# Only notes that finish inside the section are split, so the pieces
		# always cover the whole note.
		if role.ornamental and end <= section.duration_bars:
			pieces = self.subdivisions(density, end - start)

		if pieces == 1:
			return [_Draft(
				pitch = pitch,
				start = start,
				duration = max(_MIN_DURATION, end - start),
				velocity = self.velocity_for(role, density, accent)
			)]

		drafts: typing.List[_Draft] = []
		piece_length = (end - start) / pieces

		for index in range(pieces):

			piece_start = spiralcanon.constants.quantize(start + index * piece_length)
			piece_end = end if index == pieces - 1 else spiralcanon.constants.quantize(start + (index + 1) * piece_length)
			piece_pitch = pitch + role.ornament[index % len(role.ornament)]
			self._check_pitch(piece_pitch, role, section)

			drafts.append(_Draft(
				pitch = piece_pitch,
				start = piece_start,
				duration = piece_end - piece_start,
				velocity = self.velocity_for(role, self.spiral_model.density_for_time(section, piece_start), accent)
			))

		return drafts

	@staticmethod
	def _check_pitch (pitch: int, role: spiralcanon.voice.VoiceRole, section: spiralcanon.form.SectionSpec) -> None:

		if not spiralcanon.constants.MIN_PITCH <= pitch <= spiralcanon.constants.MAX_PITCH:
			raise spiralcanon.exceptions.ConfigurationError(
				f"Voice {role.voice_id!r} reaches pitch {pitch} in {section.name}, outside the MIDI range"
			)

	@staticmethod
	def _merge_unisons (drafts: typing.List[_Draft]) -> typing.List[_Draft]:

		"""Collapse drafts sharing (start, pitch) into the longest, loudest one."""

		merged: typing.Dict[typing.Tuple[float, int], _Draft] = {}

		for draft in drafts:

			key = (draft.start, draft.pitch)
			existing = merged.get(key)

			if existing is None:
				merged[key] = draft
				continue

			existing.duration = max(existing.duration, draft.duration)
			existing.velocity = max(existing.velocity, draft.velocity)

		return list(merged.values())

	@staticmethod
	def _truncate_overlaps (drafts: typing.List[_Draft]) -> None:

		"""Cut each note at the next onset of the same pitch."""

		by_pitch: typing.Dict[int, typing.List[_Draft]] = {}

		for draft in drafts:
			by_pitch.setdefault(draft.pitch, []).append(draft)

		for same_pitch in by_pitch.values():

			same_pitch.sort(key=lambda draft: draft.start)

			for current, following in zip(same_pitch, same_pitch[1:]):
				if current.start + current.duration > following.start:
					current.duration = following.start - current.start


def generate_section (
	role: spiralcanon.voice.VoiceRole,
	section: spiralcanon.form.SectionSpec,
	spiral_model: typing.Optional[spiralcanon.spiral.SpiralModel] = None
) -> typing.Tuple[spiralcanon.note.NoteEvent, ...]:

	"""Generate one section for one voice with a default generator."""

	return VoiceScoreGenerator(spiral_model).generate_section(role, section)
