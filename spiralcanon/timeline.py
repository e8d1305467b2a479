"""Joins per-section scores into one continuous timeline per voice.

Composition is based on section boundaries.  Each section's events move by
that section's offset (the sum of the durations before it) and are appended
in section order; nothing is re-sorted or interleaved, and no pitch,
duration or velocity changes.

The compositor also checks the timeline.  Two events of one voice at the
same ``(start_time, pitch)``, or start times that go backwards inside a
section, mean the generator is broken.  The whole call is rejected with
:class:`~spiralcanon.exceptions.CompositionIntegrityError`.
"""

import dataclasses
import logging
import typing

import spiralcanon.exceptions
import spiralcanon.form
import spiralcanon.note


logger = logging.getLogger(__name__)


SectionEvents = typing.Mapping[str, typing.Sequence[spiralcanon.note.NoteEvent]]


@dataclasses.dataclass(frozen=True)
class Timeline:

	"""
	One voice's complete, ordered event list.

	Attributes:
		voice_id: The voice these events belong to.
		events: Events in timeline time, section by section.
		section_offsets: Start of each section on the timeline.
		section_counts: Number of events contributed by each section.
	"""

	voice_id: str
	events: typing.Tuple[spiralcanon.note.NoteEvent, ...]
	section_offsets: typing.Tuple[float, ...] = ()
	section_counts: typing.Tuple[int, ...] = ()

	def __len__ (self) -> int:

		return len(self.events)

	def __iter__ (self) -> typing.Iterator[spiralcanon.note.NoteEvent]:

		return iter(self.events)

	def keys (self) -> typing.List[spiralcanon.note.NoteKey]:

		return [event.key for event in self.events]

	def section_events (self, index: int) -> typing.Tuple[spiralcanon.note.NoteEvent, ...]:

		"""Return the events contributed by section ``index``."""

		start = sum(self.section_counts[:index])

		return self.events[start:start + self.section_counts[index]]

	@property
	def end_time (self) -> float:

		"""Latest note end, which may run past the last section boundary."""

		if not self.events:
			return 0.0

		return max(event.end_time for event in self.events)


class TimelineCompositor:

	"""Concatenates section scores into per-voice timelines."""

	def compose (
		self,
		sections: typing.Sequence[SectionEvents],
		section_durations: typing.Sequence[float]
	) -> typing.Dict[str, Timeline]:

		"""
		Shift and join every voice's section events.

		Parameters:
			sections: One ``{voice_id: events}`` mapping per section, in
				section order.  A voice missing from a section contributes
				nothing to it.
			section_durations: Length of each section, in the same order.

		Returns:
			A timeline per voice, in order of first appearance.
		"""

		if len(sections) != len(section_durations):
			raise spiralcanon.exceptions.ConfigurationError(
				f"Got {len(sections)} sections but {len(section_durations)} durations"
			)

		offsets = spiralcanon.form.section_offsets(section_durations)

		voice_ids: typing.List[str] = []

		for section_events in sections:
			for voice_id in section_events:
				if voice_id not in voice_ids:
					voice_ids.append(voice_id)

		timelines = {
			voice_id: self.compose_voice(voice_id, [section.get(voice_id, ()) for section in sections], offsets)
			for voice_id in voice_ids
		}

		logger.debug(f"Composed {len(timelines)} timelines over offsets {offsets}")

		return timelines

	def compose_voice (
		self,
		voice_id: str,
		section_events: typing.Sequence[typing.Sequence[spiralcanon.note.NoteEvent]],
		offsets: typing.Sequence[float]
	) -> Timeline:

		"""Build one voice's timeline from its per-section events and section offsets."""

		seen: typing.Dict[typing.Tuple[float, int], typing.Tuple[int, int]] = {}
		events: typing.List[spiralcanon.note.NoteEvent] = []
		counts: typing.List[int] = []

		for section_index, (section, offset) in enumerate(zip(section_events, offsets)):

			previous_start: typing.Optional[float] = None

			for event_index, event in enumerate(section):

				if event.voice_id != voice_id:
					raise spiralcanon.exceptions.CompositionIntegrityError(
						f"Event for voice {event.voice_id!r} found in {voice_id!r} section {section_index} at index {event_index}",
						voice_id = voice_id,
						section_index = section_index,
						event_index = event_index
					)

				if previous_start is not None and event.start_time < previous_start:
					raise spiralcanon.exceptions.CompositionIntegrityError(
						f"Voice {voice_id!r} section {section_index} goes back in time at index {event_index} "
						f"({event.start_time} after {previous_start})",
						voice_id = voice_id,
						section_index = section_index,
						event_index = event_index
					)

				previous_start = event.start_time
				moved = event.shifted(offset)
				slot = (moved.start_time, moved.pitch)

				if slot in seen:
					other_section, other_index = seen[slot]
					raise spiralcanon.exceptions.CompositionIntegrityError(
						f"Voice {voice_id!r} has two notes at {moved.start_time} pitch {moved.pitch}: "
						f"section {other_section} index {other_index} and section {section_index} index {event_index}",
						voice_id = voice_id,
						section_index = section_index,
						event_index = event_index
					)

				seen[slot] = (section_index, event_index)
				events.append(moved)

			counts.append(len(section))

		return Timeline(
			voice_id = voice_id,
			events = tuple(events),
			section_offsets = tuple(offsets),
			section_counts = tuple(counts)
		)
