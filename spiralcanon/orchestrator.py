"""Runs a composition end to end: generate, compose, set up the host, dispatch, play.

Each voice moves through the stages on its own.  A voice that fails to
generate, fails the compositor's checks, or cannot get its track and clip
set up is recorded in the :class:`CompositionReport` and left out of the
later stages.  The other voices carry on.  Nothing is swallowed: every
failure is logged at error level and shows up in the report, and
``report.ok`` is false.
"""

import asyncio
import dataclasses
import logging
import typing

import spiralcanon.composition
import spiralcanon.config
import spiralcanon.dispatcher
import spiralcanon.exceptions
import spiralcanon.form
import spiralcanon.generator
import spiralcanon.note
import spiralcanon.sequencer_interface
import spiralcanon.spiral
import spiralcanon.timeline
import spiralcanon.voice


logger = logging.getLogger(__name__)

SectionScores = typing.Tuple[typing.Tuple[spiralcanon.note.NoteEvent, ...], ...]


@dataclasses.dataclass
class VoiceReport:

	"""
	What happened to one voice.

	Attributes:
		voice_id: The voice.
		section_counts: Events generated per section.
		timeline_length: Events in the composed timeline.
		dispatch: The dispatcher's report, once dispatched.
		fired: The voice's clip was fired.
		error: The failure that removed the voice from later stages.
	"""

	voice_id: str
	section_counts: typing.List[int] = dataclasses.field(default_factory=list)
	timeline_length: int = 0
	dispatch: typing.Optional[spiralcanon.dispatcher.DispatchReport] = None
	fired: bool = False
	error: typing.Optional[str] = None

	@property
	def ok (self) -> bool:

		return self.error is None and self.dispatch is not None and self.dispatch.complete


@dataclasses.dataclass
class CompositionReport:

	"""Outcome of a whole run, voice by voice."""

	title: str
	voices: typing.Dict[str, VoiceReport]
	error: typing.Optional[str] = None

	@property
	def ok (self) -> bool:

		return self.error is None and all(voice.ok for voice in self.voices.values())

	@property
	def confirmed_events (self) -> int:

		return sum(voice.dispatch.confirmed_events for voice in self.voices.values() if voice.dispatch is not None)

	def failed_voices (self) -> typing.List[str]:

		return [voice_id for voice_id, voice in self.voices.items() if not voice.ok]


class CompositionOrchestrator:

	"""Drives one composition into one sequencer."""

	def __init__ (
		self,
		definition: spiralcanon.composition.CompositionDefinition,
		sequencer: spiralcanon.sequencer_interface.SequencerInterface,
		settings: typing.Optional[spiralcanon.config.Settings] = None,
		dispatcher: typing.Optional[spiralcanon.dispatcher.BatchedDispatcher] = None
	) -> None:

		"""
		Parameters:
			definition: The piece to render.
			sequencer: The host to write into.
			settings: Run settings; the defaults when omitted.
			dispatcher: A preconfigured dispatcher, otherwise one is built from
				``settings``.
		"""

		self.definition = definition
		self.sequencer = sequencer
		self.settings = settings or spiralcanon.config.Settings()

		self.tempo = self.settings.tempo or definition.tempo

		self.spiral_model = spiralcanon.spiral.SpiralModel(self.settings.spiral_scale, self.settings.golden_direction)
		self.generator = spiralcanon.generator.VoiceScoreGenerator(self.spiral_model, tonic=self.settings.tonic)
		self.compositor = spiralcanon.timeline.TimelineCompositor()

		self.dispatcher = dispatcher or spiralcanon.dispatcher.BatchedDispatcher(
			sequencer,
			batch_size = self.settings.batch_size,
			retry = self.settings.retry_policy(),
			call_timeout = self.settings.call_timeout
		)

		self.scores: typing.Dict[str, SectionScores] = {}
		self.timelines: typing.Dict[str, spiralcanon.timeline.Timeline] = {}
		self.tracks: typing.Dict[str, spiralcanon.sequencer_interface.TrackHandle] = {}
		self.clips: typing.Dict[str, spiralcanon.sequencer_interface.ClipHandle] = {}

		self.report = CompositionReport(
			title = definition.title,
			voices = {role.voice_id: VoiceReport(voice_id=role.voice_id) for role in definition.voices}
		)

	def _fail (self, voice_id: str, stage: str, exc: Exception) -> None:

		logger.error(f"{voice_id}: {stage} failed: {exc}")
		self.report.voices[voice_id].error = f"{stage}: {exc}"

	def _healthy (self) -> typing.List[spiralcanon.voice.VoiceRole]:

		return [role for role in self.definition.voices if self.report.voices[role.voice_id].error is None]

	async def generate (self) -> typing.Dict[str, SectionScores]:

		"""Generate every section of every voice, voices in parallel."""

		roles = self._healthy()

		logger.info(f"Generating {len(roles)} voices over {len(self.definition.sections)} sections")

		results = await asyncio.gather(
			*[asyncio.to_thread(self.generator.generate_voice, role, self.definition.sections) for role in roles],
			return_exceptions = True
		)

		for role, result in zip(roles, results):

			if isinstance(result, spiralcanon.exceptions.SpiralCanonError):
				self._fail(role.voice_id, "generation", result)
				continue

			if isinstance(result, BaseException):
				raise result

			self.scores[role.voice_id] = result
			self.report.voices[role.voice_id].section_counts = [len(events) for events in result]

			logger.debug(f"{role.voice_id}: section counts {self.report.voices[role.voice_id].section_counts}")

		return self.scores

	def compose (self) -> typing.Dict[str, spiralcanon.timeline.Timeline]:

		"""Join each generated voice into a single timeline."""

		offsets = spiralcanon.form.section_offsets(self.definition.section_durations)

		for role in self._healthy():

			if role.voice_id not in self.scores:
				continue

			try:
				timeline = self.compositor.compose_voice(role.voice_id, self.scores[role.voice_id], offsets)
			except spiralcanon.exceptions.CompositionIntegrityError as exc:
				self._fail(role.voice_id, "composition", exc)
				continue

			self.timelines[role.voice_id] = timeline
			self.report.voices[role.voice_id].timeline_length = len(timeline)

		logger.info(f"Composed {len(self.timelines)} timelines of {self.definition.total_length:g} beats")

		return self.timelines

	async def setup_session (self) -> None:

		"""
		Prepare the host: tempo, then one named track and one named clip per voice.

		Voice ``i`` goes to track ``i`` so the layout does not depend on which
		voices failed earlier.  A tempo failure stops the run; a failure on one
		track only removes that voice.
		"""

		call = self.dispatcher.call_with_retry

		logger.info(f"Setting tempo to {self.tempo:g} BPM")
		await call("set tempo", lambda: self.sequencer.set_tempo(self.tempo))

		length = self.definition.total_length
		clip_index = self.definition.clip_index

		for index, role in enumerate(self.definition.voices):

			if role.voice_id not in self.timelines:
				continue

			name = role.display_name

			try:
				track = await call(f"create track {index}", lambda: self.sequencer.create_track(index))
				await call(f"name track {index}", lambda: self.sequencer.name_track(track, name))

				if role.instrument:
					await call(f"load instrument on track {index}", lambda: self.sequencer.load_instrument(track, role.instrument))

				clip = await call(f"create clip on track {index}", lambda: self.sequencer.create_clip(track, clip_index, length))
				clip_name = self.definition.clip_name(role)
				await call(f"name clip on track {index}", lambda: self.sequencer.name_clip(clip, clip_name))

			except spiralcanon.exceptions.SequencerError as exc:
				self._fail(role.voice_id, "session setup", exc)
				continue

			self.tracks[role.voice_id] = track
			self.clips[role.voice_id] = clip

			logger.info(f"Track {index}: {name} ({length:g} beat clip)")

	async def dispatch (self) -> typing.Dict[str, spiralcanon.dispatcher.DispatchReport]:

		"""Send every prepared timeline to its clip."""

		jobs: typing.List[spiralcanon.dispatcher.DispatchJob] = [
			(role.voice_id, self.timelines[role.voice_id], self.tracks[role.voice_id], self.clips[role.voice_id])
			for role in self._healthy()
			if role.voice_id in self.clips
		]

		reports = await self.dispatcher.dispatch_all(jobs)

		for voice_id, dispatch_report in reports.items():

			self.report.voices[voice_id].dispatch = dispatch_report

			if not dispatch_report.complete:
				logger.error(
					f"{voice_id}: dispatch incomplete, {dispatch_report.confirmed_events}/{dispatch_report.total_events} "
					f"events (failed batches {dispatch_report.failed_batches}, skipped {dispatch_report.skipped_batches})"
				)

		return reports

	async def play (self) -> None:

		"""Fire the clip of every voice that was dispatched."""

		for role in self.definition.voices:

			voice = self.report.voices[role.voice_id]

			if voice.dispatch is None or voice.dispatch.confirmed_events == 0:
				continue

			track = self.tracks[role.voice_id]
			clip = self.clips[role.voice_id]

			try:
				await self.dispatcher.call_with_retry(
					f"fire {role.voice_id}",
					lambda: self.sequencer.fire_clip(track, clip)
				)
			except spiralcanon.exceptions.SequencerError as exc:
				self._fail(role.voice_id, "playback", exc)
				continue

			voice.fired = True

		logger.info(f"Playing {sum(voice.fired for voice in self.report.voices.values())} clips")

	async def run (self, play: bool = True) -> CompositionReport:

		"""Run every stage and return the report."""

		logger.info(f"Composing {self.definition.title!r}: {len(self.definition.voices)} voices at {self.tempo:g} BPM")

		await self.generate()
		self.compose()

		try:
			await self.setup_session()
			await self.dispatch()

			if play and not self.dispatcher.cancelled:
				await self.play()

		except spiralcanon.exceptions.SequencerError as exc:
			logger.error(f"Session failed: {exc}")
			self.report.error = str(exc)

		if self.report.ok:
			logger.info(f"Done: {self.report.confirmed_events} events delivered")
		else:
			logger.error(f"Finished with errors in: {', '.join(self.report.failed_voices()) or 'session'}")

		return self.report
