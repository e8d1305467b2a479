import asyncio
import random
import typing

import pytest

import spiralcanon.backends.memory
import spiralcanon.canon
import spiralcanon.dispatcher
import spiralcanon.exceptions
import spiralcanon.form
import spiralcanon.note
import spiralcanon.sequencer_interface
import spiralcanon.spiral
import spiralcanon.voice


class FlakySequencer:

	"""
	Wraps a sequencer and fails some insert calls with a RetryableError.

	A failure happens either before the notes reach the host or after they
	were stored (the reply got lost), chosen at random from a seeded source.
	"""

	def __init__ (
		self,
		inner: spiralcanon.backends.memory.InMemorySequencer,
		failure_rate: float = 0.1,
		seed: int = 1
	) -> None:

		self.inner = inner
		self.failure_rate = failure_rate
		self.rng = random.Random(seed)
		self.failures = 0
		self.insert_calls = 0

	@property
	def idempotent_inserts (self) -> bool:

		return self.inner.idempotent_inserts

	def __getattr__ (self, name: str) -> typing.Any:

		return getattr(self.inner, name)

	async def insert_notes (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle,
		batch: typing.Sequence[spiralcanon.note.NoteEvent]
	) -> None:

		self.insert_calls += 1

		if self.rng.random() >= self.failure_rate:
			await self.inner.insert_notes(track, clip, batch)
			return

		self.failures += 1

		if self.rng.random() < 0.5:
			await self.inner.insert_notes(track, clip, batch)

		raise spiralcanon.exceptions.RetryableError("simulated transient failure")


class ScriptedSequencer (spiralcanon.backends.memory.InMemorySequencer):

	"""
	An in-memory sequencer whose inserts follow a script of outcomes.

	Each insert call pops the next outcome: ``"ok"``, ``"retry"`` (fail before
	storing), ``"lost"`` (store, then fail as if the reply was lost),
	``"fatal"`` or ``"hang"`` (never return).  Once the script runs out every
	call succeeds.
	"""

	def __init__ (self, outcomes: typing.Sequence[str] = (), idempotent: bool = True) -> None:

		super().__init__(idempotent=idempotent)
		self.outcomes = list(outcomes)
		self.batch_sizes: typing.List[int] = []

	async def insert_notes (
		self,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle,
		batch: typing.Sequence[spiralcanon.note.NoteEvent]
	) -> None:

		self.batch_sizes.append(len(batch))
		outcome = self.outcomes.pop(0) if self.outcomes else "ok"

		if outcome == "retry":
			raise spiralcanon.exceptions.RetryableError("host busy")

		if outcome == "fatal":
			raise spiralcanon.exceptions.FatalError("no such clip")

		if outcome == "hang":
			await asyncio.sleep(3600)

		await super().insert_notes(track, clip, batch)

		if outcome == "lost":
			raise spiralcanon.exceptions.RetryableError("reply lost")


@pytest.fixture
def fast_retry () -> spiralcanon.dispatcher.RetryPolicy:

	"""A retry policy that does not slow the tests down."""

	return spiralcanon.dispatcher.RetryPolicy(max_attempts=5, base_delay=0.0, max_delay=0.0, jitter=0.0)


@pytest.fixture
def triad_subject () -> spiralcanon.canon.Subject:

	"""A three-note subject lasting four beats."""

	return spiralcanon.canon.Subject("triad", (
		spiralcanon.canon.SubjectNote(0, 0.0, 1.0, 10),
		spiralcanon.canon.SubjectNote(4, 1.0, 1.0, 0),
		spiralcanon.canon.SubjectNote(7, 2.0, 2.0, 5),
	))


@pytest.fixture
def leader () -> spiralcanon.voice.VoiceRole:

	return spiralcanon.voice.VoiceRole(voice_id="leader", name="Leader")


@pytest.fixture
def follower () -> spiralcanon.voice.VoiceRole:

	return spiralcanon.voice.VoiceRole(
		voice_id = "follower",
		register_offset = -12,
		canonic_entry_offset = 2.0,
		transposition_interval = 7
	)


@pytest.fixture
def exposition (triad_subject: spiralcanon.canon.Subject) -> spiralcanon.form.SectionSpec:

	return spiralcanon.form.SectionSpec(
		section = spiralcanon.form.Section.EXPOSITION,
		duration_bars = 32,
		subject = triad_subject,
		growth = 0.15,
		turns = 2.0,
		statement_length = 4.0
	)


@pytest.fixture
def memory_sequencer () -> spiralcanon.backends.memory.InMemorySequencer:

	return spiralcanon.backends.memory.InMemorySequencer()


def make_events (count: int, voice_id: str = "voice", step: float = 0.5) -> typing.List[spiralcanon.note.NoteEvent]:

	"""Build ``count`` distinct events, ``step`` apart, cycling through an octave."""

	return [
		spiralcanon.note.NoteEvent(
			voice_id = voice_id,
			pitch = 60 + (index % 12),
			start_time = index * step,
			duration = step,
			velocity = 90
		)
		for index in range(count)
	]


@pytest.fixture
def events () -> typing.Callable[..., typing.List[spiralcanon.note.NoteEvent]]:

	"""Factory for distinct test events."""

	return make_events


@pytest.fixture
def scripted () -> typing.Type[ScriptedSequencer]:

	return ScriptedSequencer


@pytest.fixture
def flaky () -> typing.Type[FlakySequencer]:

	return FlakySequencer
