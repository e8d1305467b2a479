"""Offline rendering to a Standard MIDI File.

:class:`MidiFileSequencer` accepts the same calls as a live host and, on
:meth:`MidiFileSequencer.save`, writes a type 1 file with mido:

- track 0 carries the tempo,
- every host track becomes a MIDI track named after it, on its own channel
  (skipping channel 10, the General MIDI drum channel), with a program
  change guessed from the instrument reference,
- muted notes are left out.

Inserts are idempotent per ``(start_time, pitch)`` within a clip.
"""

import dataclasses
import logging
import typing
import urllib.parse

import mido

import spiralcanon.constants
import spiralcanon.exceptions
import spiralcanon.note
import spiralcanon.sequencer_interface


logger = logging.getLogger(__name__)

_DRUM_CHANNEL = 9

# First keyword found in the instrument reference wins.
GM_PROGRAMS: typing.Tuple[typing.Tuple[str, int], ...] = (
	("piano", 0),
	("keys", 0),
	("vibraphone", 11),
	("mallet", 11),
	("string", 48),
	("trumpet", 56),
	("brass", 61),
	("woodwind", 73),
	("wind", 73),
	("flute", 73),
	("pad", 89),
)


def program_for (instrument: str) -> int:

	"""Guess a General MIDI program number from an instrument reference."""

	text = urllib.parse.unquote(instrument).lower()

	for keyword, program in GM_PROGRAMS:
		if keyword in text:
			return program

	return 0


def channel_for (track_index: int) -> int:

	"""Return the MIDI channel for a track, skipping the drum channel."""

	channel = track_index % 15

	return channel + 1 if channel >= _DRUM_CHANNEL else channel


@dataclasses.dataclass
class _RenderTrack:

	index: int
	name: str = ""
	program: int = 0
	clips: typing.Dict[int, typing.Dict[typing.Tuple[float, int], spiralcanon.note.NoteEvent]] = dataclasses.field(default_factory=dict)
	fired: typing.Set[int] = dataclasses.field(default_factory=set)


class MidiFileSequencer:

	"""A sequencer that renders the session to a MIDI file instead of playing it."""

	idempotent_inserts = True

	def __init__ (self, ticks_per_beat: int = spiralcanon.constants.TICKS_PER_BEAT) -> None:

		self.ticks_per_beat = ticks_per_beat
		self.tempo: float = 120.0
		self.tracks: typing.Dict[int, _RenderTrack] = {}

	def _track (self, index: int) -> _RenderTrack:

		if index not in self.tracks:
			raise spiralcanon.exceptions.FatalError(f"Track {index} does not exist")

		return self.tracks[index]

	def _clip (self, clip: spiralcanon.sequencer_interface.ClipHandle) -> typing.Dict[typing.Tuple[float, int], spiralcanon.note.NoteEvent]:

		track = self._track(clip.track_index)

		if clip.clip_index not in track.clips:
			raise spiralcanon.exceptions.FatalError(f"Clip {clip.clip_index} does not exist on track {clip.track_index}")

		return track.clips[clip.clip_index]

	async def set_tempo (self, bpm: float) -> None:

		if bpm <= 0:
			raise spiralcanon.exceptions.FatalError("BPM must be positive")

		self.tempo = bpm

	async def create_track (self, index: int) -> spiralcanon.sequencer_interface.TrackHandle:

		self.tracks.setdefault(index, _RenderTrack(index=index))

		return spiralcanon.sequencer_interface.TrackHandle(index)

	async def name_track (self, track: spiralcanon.sequencer_interface.TrackHandle, name: str) -> None:

		self._track(track.index).name = name

	async def load_instrument (self, track: spiralcanon.sequencer_interface.TrackHandle, instrument: str) -> None:

		self._track(track.index).program = program_for(instrument)

	async def create_clip (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip_index: int,
		length: float
	) -> spiralcanon.sequencer_interface.ClipHandle:

		self._track(track.index).clips.setdefault(clip_index, {})

		return spiralcanon.sequencer_interface.ClipHandle(track.index, clip_index)

	async def name_clip (self, clip: spiralcanon.sequencer_interface.ClipHandle, name: str) -> None:

		# Clip names have no place in a MIDI file.
		self._clip(clip)

	async def insert_notes (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle,
		batch: typing.Sequence[spiralcanon.note.NoteEvent]
	) -> None:

		notes = self._clip(clip)

		for event in batch:
			notes[(event.start_time, event.pitch)] = event

	async def get_notes (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle,
		start: float,
		end: float
	) -> typing.List[typing.Dict[str, typing.Any]]:

		return [event.to_wire() for event in self._clip(clip).values() if start <= event.start_time <= end]

	async def fire_clip (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle
	) -> None:

		self._clip(clip)
		self._track(track.index).fired.add(clip.clip_index)

	def to_midi_file (self) -> mido.MidiFile:

		"""Build the MIDI file for the current session."""

		mid = mido.MidiFile(type=1)
		mid.ticks_per_beat = self.ticks_per_beat

		conductor = mido.MidiTrack()
		conductor.append(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(self.tempo), time=0))
		mid.tracks.append(conductor)

		for index in sorted(self.tracks):
			mid.tracks.append(self._render_track(self.tracks[index]))

		return mid

	def _render_track (self, track: _RenderTrack) -> mido.MidiTrack:

		channel = channel_for(track.index)
		midi_track = mido.MidiTrack()

		if track.name:
			midi_track.append(mido.MetaMessage("track_name", name=track.name, time=0))

		midi_track.append(mido.Message("program_change", channel=channel, program=track.program, time=0))

		# (tick, order, pitch, message) - note-offs sort before note-ons on the same tick.
		timed: typing.List[typing.Tuple[int, int, int, mido.Message]] = []

		for clip_index in sorted(track.clips):
			for event in track.clips[clip_index].values():

				if event.muted:
					continue

				on_tick = round(event.start_time * self.ticks_per_beat)
				off_tick = max(on_tick + 1, round(event.end_time * self.ticks_per_beat))

				timed.append((on_tick, 1, event.pitch, mido.Message("note_on", channel=channel, note=event.pitch, velocity=event.velocity)))
				timed.append((off_tick, 0, event.pitch, mido.Message("note_off", channel=channel, note=event.pitch, velocity=0)))

		timed.sort(key=lambda item: (item[0], item[1], item[2]))

		last_tick = 0

		for tick, _, _, message in timed:
			message.time = tick - last_tick
			midi_track.append(message)
			last_tick = tick

		return midi_track

	def save (self, filename: str) -> None:

		"""Write the rendered session to ``filename``."""

		mid = self.to_midi_file()
		note_count = sum(len(clip) for track in self.tracks.values() for clip in track.clips.values())

		logger.info(f"Saving MIDI render ({note_count} notes, {len(self.tracks)} tracks) to {filename}...")
		mid.save(filename)
		logger.info(f"Saved {filename}")
