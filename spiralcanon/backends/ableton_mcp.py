"""Ableton Live over the ableton-mcp remote script.

The remote script listens on a TCP port (default 9877) inside Live and
accepts one JSON command at a time::

    {"type": "add_notes_to_clip", "params": {"track_index": 0, "clip_index": 0, "notes": [...]}}

and answers with either ``{"status": "success", "result": {...}}`` or
``{"status": "error", "message": "..."}``.  Messages carry no delimiter, so a
response is read until the buffered bytes parse as one JSON document.

Failure mapping
───────────────
- Connection refused or reset, a truncated reply, or a reply that takes
  longer than ``timeout`` seconds: :class:`~spiralcanon.exceptions.RetryableError`.
  The connection is dropped and reopened on the next command.
- ``"status": "error"`` from Live: :class:`~spiralcanon.exceptions.FatalError`.

Live appends notes without checking for existing ones, so this backend is
not idempotent.  It answers ``get_notes`` with the ``get_clip_notes``
command so the dispatcher can skip notes that already arrived.
"""

import asyncio
import json
import logging
import typing

import spiralcanon.exceptions
import spiralcanon.note
import spiralcanon.sequencer_interface


logger = logging.getLogger(__name__)

DEFAULT_PORT = 9877
_READ_CHUNK = 8192


class AbletonMcpSequencer:

	"""Async JSON-over-TCP client for the ableton-mcp remote script."""

	idempotent_inserts = False
	times_own_calls = True

	def __init__ (self, host: str = "127.0.0.1", port: int = DEFAULT_PORT, timeout: float = 10.0) -> None:

		self._host = host
		self._port = port
		self._timeout = timeout

		self._reader: typing.Optional[asyncio.StreamReader] = None
		self._writer: typing.Optional[asyncio.StreamWriter] = None

		# Live handles one command at a time on a connection.
		self._lock = asyncio.Lock()

	async def connect (self) -> None:

		"""Open the connection if it is not already open."""

		if self._writer is not None:
			return

		try:
			self._reader, self._writer = await asyncio.wait_for(
				asyncio.open_connection(self._host, self._port),
				timeout = self._timeout
			)
		except (OSError, asyncio.TimeoutError) as exc:
			raise spiralcanon.exceptions.RetryableError(
				f"Cannot reach Ableton at {self._host}:{self._port}: {exc}"
			) from exc

		logger.info(f"Connected to Ableton remote script at {self._host}:{self._port}")

	async def close (self) -> None:

		"""Close the connection."""

		writer = self._writer
		self._drop()

		if writer is not None:
			try:
				await writer.wait_closed()
			except (OSError, ConnectionError):
				pass

	def _drop (self) -> None:

		if self._writer is not None:
			self._writer.close()

		self._reader = None
		self._writer = None

	async def send_command (self, command: str, params: typing.Optional[typing.Dict[str, typing.Any]] = None) -> typing.Dict[str, typing.Any]:

		"""
		Send one command and return its ``result`` payload.

		Commands queue on one connection; ``timeout`` applies to each command
		once it holds the connection, not to the time spent queued.
		"""

		async with self._lock:

			await self.connect()
			assert self._reader is not None and self._writer is not None

			payload = json.dumps({"type": command, "params": params or {}}).encode("utf-8")

			try:
				self._writer.write(payload)
				await self._writer.drain()
				response = await asyncio.wait_for(self._read_response(self._reader), timeout=self._timeout)

			except asyncio.CancelledError:
				# A half-read reply would corrupt the next one.
				self._drop()
				raise

			except (OSError, asyncio.TimeoutError, asyncio.IncompleteReadError) as exc:
				self._drop()
				raise spiralcanon.exceptions.RetryableError(f"Ableton command {command!r} failed: {exc!r}") from exc

		if response.get("status") == "error":
			raise spiralcanon.exceptions.FatalError(
				f"Ableton rejected {command!r}: {response.get('message', 'unknown error')}"
			)

		result = response.get("result", {})

		return result if isinstance(result, dict) else {"value": result}

	async def _read_response (self, reader: asyncio.StreamReader) -> typing.Dict[str, typing.Any]:

		"""Read until the buffered bytes form one complete JSON document."""

		buffer = b""

		while True:

			chunk = await reader.read(_READ_CHUNK)

			if not chunk:
				raise asyncio.IncompleteReadError(buffer, None)

			buffer += chunk

			try:
				response = json.loads(buffer.decode("utf-8"))
			except (ValueError, UnicodeDecodeError):
				continue

			if not isinstance(response, dict):
				raise spiralcanon.exceptions.FatalError(f"Unexpected reply from Ableton: {response!r}")

			return response

	async def set_tempo (self, bpm: float) -> None:

		await self.send_command("set_tempo", {"tempo": bpm})

	async def create_track (self, index: int) -> spiralcanon.sequencer_interface.TrackHandle:

		result = await self.send_command("create_midi_track", {"index": index})

		return spiralcanon.sequencer_interface.TrackHandle(int(result.get("index", index)))

	async def name_track (self, track: spiralcanon.sequencer_interface.TrackHandle, name: str) -> None:

		await self.send_command("set_track_name", {"track_index": track.index, "name": name})

	async def load_instrument (self, track: spiralcanon.sequencer_interface.TrackHandle, instrument: str) -> None:

		await self.send_command("load_browser_item", {"track_index": track.index, "item_uri": instrument})

	async def create_clip (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip_index: int,
		length: float
	) -> spiralcanon.sequencer_interface.ClipHandle:

		await self.send_command("create_clip", {"track_index": track.index, "clip_index": clip_index, "length": length})

		return spiralcanon.sequencer_interface.ClipHandle(track.index, clip_index)

	async def name_clip (self, clip: spiralcanon.sequencer_interface.ClipHandle, name: str) -> None:

		await self.send_command("set_clip_name", {"track_index": clip.track_index, "clip_index": clip.clip_index, "name": name})

	async def insert_notes (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle,
		batch: typing.Sequence[spiralcanon.note.NoteEvent]
	) -> None:

		await self.send_command("add_notes_to_clip", {
			"track_index": track.index,
			"clip_index": clip.clip_index,
			"notes": [event.to_wire() for event in batch]
		})

	async def get_notes (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle,
		start: float,
		end: float
	) -> typing.List[typing.Dict[str, typing.Any]]:

		result = await self.send_command("get_clip_notes", {
			"track_index": track.index,
			"clip_index": clip.clip_index,
			"start_time": start,
			"end_time": end
		})

		return [note for note in result.get("notes", []) if start <= float(note["start_time"]) <= end]

	async def fire_clip (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle
	) -> None:

		await self.send_command("fire_clip", {"track_index": track.index, "clip_index": clip.clip_index})
