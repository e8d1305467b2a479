import asyncio
import typing

import pythonosc.dispatcher
import pythonosc.osc_server
import pythonosc.udp_client
import pytest
import pytest_asyncio

import spiralcanon.backends.osc
import spiralcanon.dispatcher
import spiralcanon.exceptions
import spiralcanon.note
import spiralcanon.sequencer_interface
import spiralcanon.timeline


class FakeAbletonOsc:

	"""Records every OSC message and answers note queries like AbletonOSC does."""

	def __init__ (self) -> None:

		self.messages: typing.List[typing.Tuple[str, typing.Tuple[typing.Any, ...]]] = []
		self.notes: typing.List[typing.Any] = []
		self.reply_port: typing.Optional[int] = None
		self.reply_clip_offset = 0
		self.dropped_adds = 0
		self._transport: typing.Optional[asyncio.BaseTransport] = None

	@property
	def port (self) -> int:

		assert self._transport is not None
		return int(self._transport.get_extra_info("sockname")[1])

	async def start (self) -> None:

		dispatcher = pythonosc.dispatcher.Dispatcher()
		dispatcher.set_default_handler(self._handle)

		server = pythonosc.osc_server.AsyncIOOSCUDPServer(("127.0.0.1", 0), dispatcher, asyncio.get_running_loop())
		self._transport, _ = await server.create_serve_endpoint()

	def stop (self) -> None:

		if self._transport is not None:
			self._transport.close()

	def _handle (self, address: str, *args: typing.Any) -> None:

		self.messages.append((address, args))

		if address == "/live/clip/add/notes":

			if self.dropped_adds:
				self.dropped_adds -= 1
				return

			self.notes.extend(args[2:])

		if address == "/live/clip/get/notes" and self.reply_port is not None:
			client = pythonosc.udp_client.SimpleUDPClient("127.0.0.1", self.reply_port)
			client.send_message(address, [args[0], args[1] + self.reply_clip_offset] + list(self.notes))

	def addresses (self) -> typing.List[str]:

		return [address for address, _ in self.messages]


@pytest_asyncio.fixture
async def live () -> typing.AsyncIterator[FakeAbletonOsc]:

	fake = FakeAbletonOsc()
	await fake.start()

	yield fake

	fake.stop()


async def _connect (live: FakeAbletonOsc, timeout: float = 2.0) -> spiralcanon.backends.osc.AbletonOscSequencer:

	sequencer = spiralcanon.backends.osc.AbletonOscSequencer(send_port=live.port, receive_port=0, timeout=timeout)
	await sequencer.start()
	live.reply_port = sequencer.receive_port

	return sequencer


def _event (start: float, pitch: int = 60) -> spiralcanon.note.NoteEvent:

	return spiralcanon.note.NoteEvent(voice_id="v", pitch=pitch, start_time=start, duration=0.5, velocity=100)


@pytest.mark.asyncio
async def test_session_messages (live: FakeAbletonOsc) -> None:

	sequencer = await _connect(live)

	await sequencer.set_tempo(72)
	track = await sequencer.create_track(2)
	await sequencer.name_track(track, "Star Clusters")
	await sequencer.load_instrument(track, "query:Mallets")
	clip = await sequencer.create_clip(track, 0, 96.0)
	await sequencer.name_clip(clip, "Star Clusters Full Composition")
	await sequencer.insert_notes(track, clip, [_event(0.0), _event(0.5, 64)])
	await sequencer.fire_clip(track, clip)

	await asyncio.sleep(0.2)
	await sequencer.stop()

	# Instruments cannot be loaded over OSC, so nothing is sent for them.
	assert live.addresses() == [
		"/live/song/set/tempo",
		"/live/song/create_midi_track",
		"/live/track/set/name",
		"/live/clip_slot/create_clip",
		"/live/clip/set/name",
		"/live/clip/add/notes",
		"/live/clip/get/notes",
		"/live/clip_slot/fire",
	]

	messages = dict(live.messages)

	# Every insert is read back to confirm it arrived.

	assert messages["/live/song/set/tempo"] == pytest.approx((72.0,))
	assert messages["/live/track/set/name"] == (2, "Star Clusters")
	assert messages["/live/clip/add/notes"] == (2, 0, 60, 0.0, 0.5, 100, 0, 64, 0.5, 0.5, 100, 0)


@pytest.mark.asyncio
async def test_get_notes_parses_reply (live: FakeAbletonOsc) -> None:

	sequencer = await _connect(live)
	track = spiralcanon.sequencer_interface.TrackHandle(0)
	clip = spiralcanon.sequencer_interface.ClipHandle(0, 0)

	await sequencer.insert_notes(track, clip, [_event(0.0), _event(1.0, 62), _event(2.0, 64)])
	await asyncio.sleep(0.1)

	notes = await sequencer.get_notes(track, clip, 0.5, 2.0)
	await sequencer.stop()

	assert notes == [
		{"pitch": 62, "start_time": 1.0, "duration": 0.5, "velocity": 100, "mute": False},
		{"pitch": 64, "start_time": 2.0, "duration": 0.5, "velocity": 100, "mute": False},
	]


@pytest.mark.asyncio
async def test_reply_for_another_clip_times_out (live: FakeAbletonOsc) -> None:

	live.reply_clip_offset = 1
	sequencer = await _connect(live, timeout=0.2)

	with pytest.raises(spiralcanon.exceptions.RetryableError):
		await sequencer.get_notes(
			spiralcanon.sequencer_interface.TrackHandle(0),
			spiralcanon.sequencer_interface.ClipHandle(0, 0),
			0.0,
			8.0
		)

	await sequencer.stop()


def test_implements_the_sequencer_interface () -> None:

	sequencer = spiralcanon.backends.osc.AbletonOscSequencer()

	assert isinstance(sequencer, spiralcanon.sequencer_interface.SequencerInterface)
	assert not sequencer.idempotent_inserts


@pytest.mark.asyncio
async def test_lost_insert_is_retryable (live: FakeAbletonOsc) -> None:

	live.dropped_adds = 1
	sequencer = await _connect(live, timeout=0.5)
	track = spiralcanon.sequencer_interface.TrackHandle(0)
	clip = spiralcanon.sequencer_interface.ClipHandle(0, 0)

	with pytest.raises(spiralcanon.exceptions.RetryableError, match="2 of 2 notes"):
		await sequencer.insert_notes(track, clip, [_event(0.0), _event(0.5, 64)])

	await sequencer.stop()

	assert live.notes == []


@pytest.mark.asyncio
async def test_dispatch_resends_only_lost_notes (live: FakeAbletonOsc, fast_retry) -> None:

	live.dropped_adds = 1
	sequencer = await _connect(live, timeout=0.5)

	events = tuple(_event(0.5 * index, 60 + index % 5) for index in range(10))
	timeline = spiralcanon.timeline.Timeline(voice_id="v", events=events)
	dispatcher = spiralcanon.dispatcher.BatchedDispatcher(sequencer, batch_size=4, retry=fast_retry, call_timeout=2.0)

	report = await dispatcher.dispatch(
		"v",
		timeline,
		spiralcanon.sequencer_interface.TrackHandle(0),
		spiralcanon.sequencer_interface.ClipHandle(0, 0)
	)

	await sequencer.stop()

	stored = [tuple(live.notes[offset:offset + 2]) for offset in range(0, len(live.notes), 5)]

	assert report.complete
	assert report.confirmed_events == 10
	assert report.attempts == 4
	assert sorted(stored) == sorted((event.pitch, event.start_time) for event in events)
