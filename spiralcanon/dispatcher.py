"""Delivers timelines to the external sequencer in bounded batches.

Hosts limit how much a single call may carry, and calls fail now and then.
:class:`BatchedDispatcher` cuts each voice's timeline into contiguous batches
of at most ``batch_size`` events and sends them in order:

- A :class:`~spiralcanon.exceptions.RetryableError` or a per-call timeout
  retries the same batch with jittered exponential backoff, up to
  ``RetryPolicy.max_attempts`` attempts.  If those run out, the batch is
  reported failed and dispatch moves on to the next one.
- Retries never duplicate notes.  Hosts that insert idempotently by
  ``(voice_id, start_time, pitch)`` simply receive the batch again.  For
  other hosts the dispatcher first asks which notes of the batch already
  arrived and resends only the rest.
- A :class:`~spiralcanon.exceptions.FatalError` stops that voice.  Batches
  already delivered stay in place; the report says which ones they were.

Within a voice, batch ``N`` finishes before batch ``N + 1`` is sent (one
call in flight per voice).  Different voices address different tracks and
are dispatched concurrently by :meth:`BatchedDispatcher.dispatch_all`.
"""

import asyncio
import dataclasses
import logging
import random
import typing

import spiralcanon.constants
import spiralcanon.exceptions
import spiralcanon.note
import spiralcanon.sequencer_interface
import spiralcanon.timeline


logger = logging.getLogger(__name__)


DEFAULT_BATCH_SIZE = 30

T = typing.TypeVar("T")


@dataclasses.dataclass(frozen=True)
class RetryPolicy:

	"""
	Backoff settings for retrying one batch.

	Attributes:
		max_attempts: Total attempts per batch, including the first.
		base_delay: Wait in seconds after the first failure; doubles each time.
		max_delay: Cap on a single wait.
		jitter: Random spread applied to each wait (0.25 = plus or minus 25%).
	"""

	max_attempts: int = 5
	base_delay: float = 0.1
	max_delay: float = 5.0
	jitter: float = 0.25

	def __post_init__ (self) -> None:

		if self.max_attempts < 1:
			raise spiralcanon.exceptions.ConfigurationError("Retry policy needs at least one attempt")

		if self.base_delay < 0 or self.max_delay < 0:
			raise spiralcanon.exceptions.ConfigurationError("Retry delays cannot be negative")

		if not 0.0 <= self.jitter < 1.0:
			raise spiralcanon.exceptions.ConfigurationError("Retry jitter must be in [0, 1)")

	def delay_for (self, attempt: int, rng: random.Random) -> float:

		"""Return the wait after failed attempt number ``attempt`` (1-based)."""

		delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

		if self.jitter:
			delay *= 1 + rng.uniform(-self.jitter, self.jitter)

		return delay


@dataclasses.dataclass(frozen=True)
class DispatchBatch:

	"""A contiguous slice of a timeline, numbered in sending order."""

	sequence_number: int
	events: typing.Tuple[spiralcanon.note.NoteEvent, ...]

	def __len__ (self) -> int:

		return len(self.events)

	@property
	def first_start (self) -> float:

		return min(event.start_time for event in self.events)

	@property
	def last_start (self) -> float:

		return max(event.start_time for event in self.events)


@dataclasses.dataclass
class DispatchReport:

	"""
	What happened to one voice's dispatch.

	Attributes:
		voice_id: The voice dispatched.
		total_events: Events in the timeline.
		confirmed_events: Events the host acknowledged (or already held).
		succeeded_batches: Sequence numbers of delivered batches.
		failed_batches: Sequence numbers of batches that exhausted retries or hit a fatal error.
		skipped_batches: Sequence numbers never attempted (after an abort or cancel).
		attempts: Insert calls made, including retries.
		aborted: A fatal error stopped the voice.
		cancelled: Cancellation stopped the voice at a batch boundary.
		error: Description of the last failure, if any.
	"""

	voice_id: str
	total_events: int
	confirmed_events: int = 0
	succeeded_batches: typing.List[int] = dataclasses.field(default_factory=list)
	failed_batches: typing.List[int] = dataclasses.field(default_factory=list)
	skipped_batches: typing.List[int] = dataclasses.field(default_factory=list)
	attempts: int = 0
	aborted: bool = False
	cancelled: bool = False
	error: typing.Optional[str] = None

	@property
	def complete (self) -> bool:

		"""True when every event was confirmed."""

		return self.confirmed_events == self.total_events and not self.failed_batches and not self.skipped_batches


def make_batches (events: typing.Sequence[spiralcanon.note.NoteEvent], batch_size: int) -> typing.List[DispatchBatch]:

	"""Split ``events`` into consecutive batches of at most ``batch_size``, keeping order."""

	if batch_size < 1:
		raise spiralcanon.exceptions.ConfigurationError(f"Batch size must be at least 1 (got {batch_size})")

	return [
		DispatchBatch(sequence_number=number, events=tuple(events[start:start + batch_size]))
		for number, start in enumerate(range(0, len(events), batch_size))
	]


DispatchJob = typing.Tuple[
	str,
	spiralcanon.timeline.Timeline,
	spiralcanon.sequencer_interface.TrackHandle,
	spiralcanon.sequencer_interface.ClipHandle
]


class BatchedDispatcher:

	"""Sends timelines to a sequencer with batching, retries and idempotency."""

	def __init__ (
		self,
		sequencer: spiralcanon.sequencer_interface.SequencerInterface,
		batch_size: int = DEFAULT_BATCH_SIZE,
		retry: typing.Optional[RetryPolicy] = None,
		call_timeout: typing.Optional[float] = 10.0,
		rng: typing.Optional[random.Random] = None
	) -> None:

		"""
		Parameters:
			sequencer: The external sequencer to write into.
			batch_size: Largest number of events per insert call.
			retry: Backoff policy for transient failures.
			call_timeout: Seconds before an external call counts as a transient
				failure. ``None`` waits forever.
			rng: Random source for backoff jitter.
		"""

		if batch_size < 1:
			raise spiralcanon.exceptions.ConfigurationError(f"Batch size must be at least 1 (got {batch_size})")

		if call_timeout is not None and call_timeout <= 0:
			raise spiralcanon.exceptions.ConfigurationError("Call timeout must be positive")

		self.sequencer = sequencer
		self.batch_size = batch_size
		self.retry = retry or RetryPolicy()
		self.call_timeout = call_timeout

		self._rng = rng or random.Random()
		self._voice_slots: typing.Dict[str, asyncio.Semaphore] = {}
		self._cancel_requested = False

	def cancel (self) -> None:

		"""Stop every dispatch at its next batch boundary."""

		logger.info("Dispatch cancellation requested")
		self._cancel_requested = True

	@property
	def cancelled (self) -> bool:

		return self._cancel_requested

	async def dispatch (
		self,
		voice_id: str,
		timeline: spiralcanon.timeline.Timeline,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle
	) -> DispatchReport:

		"""Send one voice's timeline, batch by batch, and report the outcome."""

		batches = make_batches(timeline.events, self.batch_size)
		report = DispatchReport(voice_id=voice_id, total_events=len(timeline))

		slot = self._voice_slots.setdefault(voice_id, asyncio.Semaphore(1))

		async with slot:

			logger.info(f"Dispatching {voice_id}: {len(timeline)} events in {len(batches)} batches")

			for position, batch in enumerate(batches):

				if self._cancel_requested:
					report.cancelled = True
					report.skipped_batches.extend(b.sequence_number for b in batches[position:])
					logger.info(f"{voice_id}: cancelled before batch {batch.sequence_number}")
					break

				try:
					delivered = await self._send_batch(voice_id, batch, track, clip, report)

				except spiralcanon.exceptions.FatalError as exc:
					report.aborted = True
					report.error = str(exc)
					report.failed_batches.append(batch.sequence_number)
					report.skipped_batches.extend(b.sequence_number for b in batches[position + 1:])
					logger.error(f"{voice_id}: batch {batch.sequence_number} failed permanently, aborting voice: {exc}")
					break

				if delivered:
					report.succeeded_batches.append(batch.sequence_number)
					report.confirmed_events += len(batch)
				else:
					report.failed_batches.append(batch.sequence_number)

		logger.info(
			f"{voice_id}: {report.confirmed_events}/{report.total_events} events confirmed "
			f"in {report.attempts} attempts"
		)

		return report

	async def dispatch_all (self, jobs: typing.Sequence[DispatchJob]) -> typing.Dict[str, DispatchReport]:

		"""Dispatch several voices concurrently. Each voice stays in batch order."""

		reports = await asyncio.gather(*[self.dispatch(*job) for job in jobs])

		return {report.voice_id: report for report in reports}

	async def _call (self, coroutine: typing.Awaitable[typing.Any]) -> typing.Any:

		"""Await an external call, turning a timeout into a retryable failure."""

		if self.call_timeout is None or getattr(self.sequencer, "times_own_calls", False):
			return await coroutine

		try:
			return await asyncio.wait_for(coroutine, timeout=self.call_timeout)
		except asyncio.TimeoutError as exc:
			raise spiralcanon.exceptions.RetryableError(f"External call timed out after {self.call_timeout}s") from exc

	async def call_with_retry (
		self,
		description: str,
		make_call: typing.Callable[[], typing.Awaitable[T]]
	) -> T:

		"""
		Run a single session call under the retry policy.

		``make_call`` builds a fresh awaitable for each attempt.  The last
		:class:`~spiralcanon.exceptions.RetryableError` is raised once attempts
		run out; a :class:`~spiralcanon.exceptions.FatalError` is raised at once.
		"""

		for attempt in range(1, self.retry.max_attempts + 1):

			try:
				return typing.cast(T, await self._call(make_call()))

			except spiralcanon.exceptions.RetryableError as exc:

				if attempt == self.retry.max_attempts:
					logger.error(f"{description} failed after {attempt} attempts: {exc}")
					raise

				delay = self.retry.delay_for(attempt, self._rng)
				logger.warning(f"{description} failed ({exc}), retrying in {delay:.2f}s")
				await asyncio.sleep(delay)

		raise AssertionError("unreachable")

	async def _send_batch (
		self,
		voice_id: str,
		batch: DispatchBatch,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle,
		report: DispatchReport
	) -> bool:

		"""Deliver one batch, retrying transient failures. Returns False when retries run out."""

		pending: typing.Sequence[spiralcanon.note.NoteEvent] = batch.events

		for attempt in range(1, self.retry.max_attempts + 1):

			try:

				# A failed call may still have landed some notes.
				if attempt > 1 and not self.sequencer.idempotent_inserts:
					pending = await self._missing_events(voice_id, batch, track, clip)

					if not pending:
						logger.info(f"{voice_id}: batch {batch.sequence_number} already delivered")
						return True

				report.attempts += 1
				await self._call(self.sequencer.insert_notes(track, clip, pending))
				return True

			except spiralcanon.exceptions.RetryableError as exc:

				report.error = str(exc)

				if attempt == self.retry.max_attempts:
					break

				delay = self.retry.delay_for(attempt, self._rng)
				logger.warning(
					f"{voice_id}: batch {batch.sequence_number} attempt {attempt}/{self.retry.max_attempts} "
					f"failed ({exc}), retrying in {delay:.2f}s"
				)
				await asyncio.sleep(delay)

		logger.error(f"{voice_id}: batch {batch.sequence_number} failed after {self.retry.max_attempts} attempts")

		return False

	async def _missing_events (
		self,
		voice_id: str,
		batch: DispatchBatch,
		track: spiralcanon.sequencer_interface.TrackHandle,
		clip: spiralcanon.sequencer_interface.ClipHandle
	) -> typing.List[spiralcanon.note.NoteEvent]:

		"""Return the events of ``batch`` the host does not hold yet."""

		existing = await self._call(self.sequencer.get_notes(track, clip, batch.first_start, batch.last_start))

		present = {spiralcanon.note.NoteEvent.from_wire(voice_id, note).key for note in existing}

		return [
			event for event in batch.events
			if (voice_id, spiralcanon.constants.quantize(event.start_time), event.pitch) not in present
		]
