"""Ableton Live over AbletonOSC.

AbletonOSC is a Live remote script that listens for OSC on UDP port 11000
and replies to queries on port 11001.  Commands used here:

- ``/live/song/set/tempo <bpm>``
- ``/live/song/create_midi_track <index>``
- ``/live/track/set/name <track> <name>``
- ``/live/clip_slot/create_clip <track> <clip> <length>``
- ``/live/clip/set/name <track> <clip> <name>``
- ``/live/clip/add/notes <track> <clip> (<pitch> <start> <duration> <velocity> <mute>)...``
- ``/live/clip/get/notes <track> <clip>`` - replied on the same address
- ``/live/clip_slot/fire <track> <clip>``

AbletonOSC cannot browse Live's library, so ``load_instrument`` only logs
the instrument the track expects.  UDP sends are not acknowledged and Live
appends notes blindly, so ``insert_notes`` reads the clip back with
``get_notes`` and raises a retryable error for any note that is missing.
Queries wait for the reply up to ``timeout`` seconds.
"""

import asyncio
import logging
import typing

import pythonosc.dispatcher
import pythonosc.osc_server
import pythonosc.udp_client

import spiralcanon.constants
import spiralcanon.exceptions
import spiralcanon.note
import spiralcanon.sequencer_interface


logger = logging.getLogger(__name__)

DEFAULT_SEND_PORT = 11000
DEFAULT_RECEIVE_PORT = 11001

_GET_NOTES = "/live/clip/get/notes"
_NOTE_FIELDS = 5

# OSC floats are 32-bit, so read-back times can drift below a tick.
_TOLERANCE = 0.5 / spiralcanon.constants.TICKS_PER_BEAT


class AbletonOscSequencer:

	"""Async OSC client/listener pair for AbletonOSC."""

	idempotent_inserts = False
	times_own_calls = True

	def __init__ (
		self,
		host: str = "127.0.0.1",
		send_port: int = DEFAULT_SEND_PORT,
		receive_port: int = DEFAULT_RECEIVE_PORT,
		timeout: float = 5.0
	) -> None:

		self._host = host
		self._send_port = send_port
		self._receive_port = receive_port
		self._timeout = timeout

		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = None
		self._transport: typing.Optional[asyncio.BaseTransport] = None
		self._dispatcher = pythonosc.dispatcher.Dispatcher()
		self._dispatcher.map(_GET_NOTES, self._handle_notes_reply)

		self._pending_query: typing.Optional[asyncio.Future] = None
		self._pending_target: typing.Optional[typing.Tuple[int, int]] = None
		self._query_lock = asyncio.Lock()

	@property
	def receive_port (self) -> int:

		"""The bound reply port (useful when constructed with port 0)."""

		if self._transport is None:
			return self._receive_port

		return int(self._transport.get_extra_info("sockname")[1])

	async def start (self) -> None:

		"""Open the send client and the reply listener."""

		if self._transport is not None:
			return

		self._client = pythonosc.udp_client.SimpleUDPClient(self._host, self._send_port)

		server = pythonosc.osc_server.AsyncIOOSCUDPServer(
			("0.0.0.0", self._receive_port),
			self._dispatcher,
			asyncio.get_running_loop()  # type: ignore[arg-type]
		)

		transport, _ = await server.create_serve_endpoint()
		self._transport = transport

		logger.info(f"AbletonOSC sending to {self._host}:{self._send_port}, listening on :{self.receive_port}")

	async def stop (self) -> None:

		"""Close the reply listener."""

		if self._transport is not None:
			self._transport.close()
			self._transport = None
			logger.info("AbletonOSC listener stopped")

	async def _send (self, address: str, *args: typing.Any) -> None:

		await self.start()
		assert self._client is not None

		try:
			self._client.send_message(address, list(args))
		except OSError as exc:
			raise spiralcanon.exceptions.RetryableError(f"OSC send to {address} failed: {exc}") from exc

	def _handle_notes_reply (self, address: str, *args: typing.Any) -> None:

		if self._pending_query is None or self._pending_query.done() or len(args) < 2:
			return

		if (int(args[0]), int(args[1])) != self._pending_target:
			logger.debug(f"Ignoring notes reply for track {args[0]} clip {args[1]}")
			return

		self._pending_query.set_result(list(args[2:]))

	async def set_tempo (self, bpm: float) -> None:

		await self._send("/live/song/set/tempo", float(bpm))

	async def create_track (self, index: int) -> spiralcanon.sequencer_interface.TrackHandle:

		await self._send("/live/song/create_midi_track", index)

		return spiralcanon.sequencer_interface.TrackHandle(index)

	async def name_track (self, track: spiralcanon.sequencer_interface.TrackHandle, name: str) -> None:

		await self._send("/live/track/set/name", track.index, name)

	async def load_instrument (self, track: spiralcanon.sequencer_interface.TrackHandle, instrument: str) -> None:

		logger.warning(f"AbletonOSC cannot load instruments - load {instrument!r} on track {track.index} by hand")

	async def create_clip (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip_index: int,
		length: float
	) -> spiralcanon.sequencer_interface.ClipHandle:

		await self._send("/live/clip_slot/create_clip", track.index, clip_index, float(length))

		return spiralcanon.sequencer_interface.ClipHandle(track.index, clip_index)

	async def name_clip (self, clip: spiralcanon.sequencer_interface.ClipHandle, name: str) -> None:

		await self._send("/live/clip/set/name", clip.track_index, clip.clip_index, name)

	async def insert_notes (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle,
		batch: typing.Sequence[spiralcanon.note.NoteEvent]
	) -> None:

		args: typing.List[typing.Any] = [track.index, clip.clip_index]

		for event in batch:
			args.extend([event.pitch, float(event.start_time), float(event.duration), event.velocity, int(event.muted)])

		await self._send("/live/clip/add/notes", *args)

		# UDP is not acknowledged; read the clip back to confirm the notes landed.
		if not batch:
			return

		first = min(event.start_time for event in batch)
		last = max(event.start_time for event in batch)
		stored = await self.get_notes(track, clip, first, last)

		present = {(spiralcanon.constants.quantize(note["start_time"]), note["pitch"]) for note in stored}
		missing = [event for event in batch if (spiralcanon.constants.quantize(event.start_time), event.pitch) not in present]

		if missing:
			raise spiralcanon.exceptions.RetryableError(
				f"{len(missing)} of {len(batch)} notes did not reach track {track.index} clip {clip.clip_index}"
			)

	async def get_notes (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle,
		start: float,
		end: float
	) -> typing.List[typing.Dict[str, typing.Any]]:

		async with self._query_lock:

			self._pending_query = asyncio.get_running_loop().create_future()
			self._pending_target = (track.index, clip.clip_index)

			try:
				await self._send(_GET_NOTES, track.index, clip.clip_index)
				values = await asyncio.wait_for(self._pending_query, timeout=self._timeout)
			except asyncio.TimeoutError as exc:
				raise spiralcanon.exceptions.RetryableError(
					f"No notes reply for track {track.index} clip {clip.clip_index}"
				) from exc
			finally:
				self._pending_query = None
				self._pending_target = None

		notes: typing.List[typing.Dict[str, typing.Any]] = []

		for offset in range(0, len(values) - _NOTE_FIELDS + 1, _NOTE_FIELDS):

			pitch, start_time, duration, velocity, mute = values[offset:offset + _NOTE_FIELDS]

			if start - _TOLERANCE <= float(start_time) <= end + _TOLERANCE:
				notes.append({
					"pitch": int(pitch),
					"start_time": float(start_time),
					"duration": float(duration),
					"velocity": int(velocity),
					"mute": bool(mute)
				})

		return notes

	async def fire_clip (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle
	) -> None:

		await self._send("/live/clip_slot/fire", track.index, clip.clip_index)
