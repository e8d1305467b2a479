"""The contract spiralcanon expects from an external sequencer.

The host application (Ableton Live, a MIDI file renderer, an in-memory
stand-in) owns tracks, clips, instruments and playback.  spiralcanon only
calls the operations below.  Each may suspend on a network round-trip.

Failures must be reported as :class:`~spiralcanon.exceptions.RetryableError`
(transient) or :class:`~spiralcanon.exceptions.FatalError` (permanent).

``insert_notes`` should be idempotent per ``(voice_id, start_time, pitch)``.
A host that cannot promise this sets ``idempotent_inserts = False`` and
implements ``get_notes``, so the dispatcher can skip notes that a failed
call already delivered before it retries.

A host that queues calls on a shared connection and bounds each call
itself once it reaches the front of the queue may set
``times_own_calls = True``.  The dispatcher then leaves timing to it instead
of counting the time spent waiting in the queue.
"""

import dataclasses
import typing

import spiralcanon.note


@dataclasses.dataclass(frozen=True)
class TrackHandle:

	"""A track in the host, addressed by index."""

	index: int


@dataclasses.dataclass(frozen=True)
class ClipHandle:

	"""A clip slot on a track."""

	track_index: int
	clip_index: int


@typing.runtime_checkable
class SequencerInterface (typing.Protocol):

	"""
	Protocol for external sequencers.
	"""

	idempotent_inserts: bool

	async def set_tempo (self, bpm: float) -> None:
		...

	async def create_track (self, index: int) -> TrackHandle:
		...

	async def name_track (self, track: TrackHandle, name: str) -> None:
		...

	async def load_instrument (self, track: TrackHandle, instrument: str) -> None:
		...

	async def create_clip (self, track: TrackHandle, clip_index: int, length: float) -> ClipHandle:
		...

	async def name_clip (self, clip: ClipHandle, name: str) -> None:
		...

	async def insert_notes (
		self,
		track: TrackHandle,
		clip: ClipHandle,
		batch: typing.Sequence[spiralcanon.note.NoteEvent]
	) -> None:

		"""Add ``batch`` to the clip, in order. Returning normally is the acknowledgement."""

		...

	async def get_notes (
		self,
		track: TrackHandle,
		clip: ClipHandle,
		start: float,
		end: float
	) -> typing.List[typing.Dict[str, typing.Any]]:

		"""Return the notes already in the clip starting in ``[start, end]``, in the host note schema."""

		...

	async def fire_clip (self, track: TrackHandle, clip: ClipHandle) -> None:
		...
