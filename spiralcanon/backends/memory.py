"""In-memory sequencer for dry runs and tests.

Keeps the whole session (tempo, tracks, clips, notes, fired clips) in
Python objects and logs every call in ``calls``.  By default inserts are
idempotent per ``(start_time, pitch)`` within a clip, like a host that
replaces a note at an existing slot.  Pass ``idempotent=False`` to model
a host that appends blindly, so duplicates become visible in
:meth:`InMemorySequencer.duplicate_keys`.
"""

import dataclasses
import logging
import typing

import spiralcanon.exceptions
import spiralcanon.note
import spiralcanon.sequencer_interface


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class MemoryClip:

	"""A clip held in memory."""

	handle: spiralcanon.sequencer_interface.ClipHandle
	length: float
	name: str = ""
	notes: typing.List[spiralcanon.note.NoteEvent] = dataclasses.field(default_factory=list)
	fired: bool = False


@dataclasses.dataclass
class MemoryTrack:

	"""A track held in memory."""

	handle: spiralcanon.sequencer_interface.TrackHandle
	name: str = ""
	instrument: typing.Optional[str] = None
	clips: typing.Dict[int, MemoryClip] = dataclasses.field(default_factory=dict)


class InMemorySequencer:

	"""A :class:`~spiralcanon.sequencer_interface.SequencerInterface` backed by dictionaries."""

	def __init__ (self, idempotent: bool = True) -> None:

		self.idempotent_inserts = idempotent
		self.tempo: typing.Optional[float] = None
		self.tracks: typing.Dict[int, MemoryTrack] = {}
		self.calls: typing.List[typing.Tuple[str, typing.Tuple[typing.Any, ...]]] = []

	def _record (self, name: str, *args: typing.Any) -> None:

		self.calls.append((name, args))

	def _track (self, track: spiralcanon.sequencer_interface.TrackHandle) -> MemoryTrack:

		if track.index not in self.tracks:
			raise spiralcanon.exceptions.FatalError(f"Track {track.index} does not exist")

		return self.tracks[track.index]

	def _clip (self, clip: spiralcanon.sequencer_interface.ClipHandle) -> MemoryClip:

		track = self._track(spiralcanon.sequencer_interface.TrackHandle(clip.track_index))

		if clip.clip_index not in track.clips:
			raise spiralcanon.exceptions.FatalError(f"Clip {clip.clip_index} does not exist on track {clip.track_index}")

		return track.clips[clip.clip_index]

	async def set_tempo (self, bpm: float) -> None:

		self._record("set_tempo", bpm)
		self.tempo = bpm

	async def create_track (self, index: int) -> spiralcanon.sequencer_interface.TrackHandle:

		self._record("create_track", index)
		handle = spiralcanon.sequencer_interface.TrackHandle(index)

		if index not in self.tracks:
			self.tracks[index] = MemoryTrack(handle=handle)

		return handle

	async def name_track (self, track: spiralcanon.sequencer_interface.TrackHandle, name: str) -> None:

		self._record("name_track", track, name)
		self._track(track).name = name

	async def load_instrument (self, track: spiralcanon.sequencer_interface.TrackHandle, instrument: str) -> None:

		self._record("load_instrument", track, instrument)
		self._track(track).instrument = instrument

	async def create_clip (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip_index: int,
		length: float
	) -> spiralcanon.sequencer_interface.ClipHandle:

		self._record("create_clip", track, clip_index, length)
		handle = spiralcanon.sequencer_interface.ClipHandle(track.index, clip_index)
		memory_track = self._track(track)

		if clip_index not in memory_track.clips:
			memory_track.clips[clip_index] = MemoryClip(handle=handle, length=length)

		return handle

	async def name_clip (self, clip: spiralcanon.sequencer_interface.ClipHandle, name: str) -> None:

		self._record("name_clip", clip, name)
		self._clip(clip).name = name

	async def insert_notes (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle,
		batch: typing.Sequence[spiralcanon.note.NoteEvent]
	) -> None:

		self._record("insert_notes", track, clip, len(batch))
		memory_clip = self._clip(clip)

		if not self.idempotent_inserts:
			memory_clip.notes.extend(batch)
			return

		present = {(note.start_time, note.pitch): index for index, note in enumerate(memory_clip.notes)}

		for event in batch:

			slot = (event.start_time, event.pitch)

			if slot in present:
				memory_clip.notes[present[slot]] = event
			else:
				present[slot] = len(memory_clip.notes)
				memory_clip.notes.append(event)

	async def get_notes (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle,
		start: float,
		end: float
	) -> typing.List[typing.Dict[str, typing.Any]]:

		self._record("get_notes", track, clip, start, end)

		return [note.to_wire() for note in self._clip(clip).notes if start <= note.start_time <= end]

	async def fire_clip (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle
	) -> None:

		self._record("fire_clip", track, clip)
		self._clip(clip).fired = True
		logger.debug(f"Fired clip {clip.clip_index} on track {track.index}")

	def notes (self, track_index: int, clip_index: int = 0) -> typing.List[spiralcanon.note.NoteEvent]:

		"""Return the notes held in a clip, in insertion order."""

		return list(self.tracks[track_index].clips[clip_index].notes)

	def duplicate_keys (self) -> typing.List[typing.Tuple[int, spiralcanon.note.NoteKey]]:

		"""Return ``(track_index, key)`` for every key stored more than once."""

		duplicates: typing.List[typing.Tuple[int, spiralcanon.note.NoteKey]] = []

		for index, track in self.tracks.items():
			for clip in track.clips.values():

				seen: typing.Set[spiralcanon.note.NoteKey] = set()

				for note in clip.notes:
					if note.key in seen:
						duplicates.append((index, note.key))
					seen.add(note.key)

		return duplicates
