import dataclasses
import typing

import spiralcanon.constants
import spiralcanon.constants.velocity
import spiralcanon.exceptions


NoteKey = typing.Tuple[str, float, int]


@dataclasses.dataclass(frozen=True)
class NoteEvent:

	"""
	A single timed note belonging to one voice.

	``start_time`` is relative to the start of its section while a section is
	being generated, and relative to the whole timeline once the compositor
	has shifted it.  Events are immutable; every transformation returns a copy.
	"""

	voice_id: str
	pitch: int
	start_time: float
	duration: float
	velocity: int
	muted: bool = False

	def __post_init__ (self) -> None:

		"""Reject values the host sequencer would refuse."""

		if not spiralcanon.constants.MIN_PITCH <= self.pitch <= spiralcanon.constants.MAX_PITCH:
			raise spiralcanon.exceptions.ConfigurationError(
				f"Pitch {self.pitch} out of MIDI range for voice {self.voice_id!r}"
			)

		if self.start_time < 0:
			raise spiralcanon.exceptions.ConfigurationError(f"Start time cannot be negative (got {self.start_time})")

		if self.duration <= 0:
			raise spiralcanon.exceptions.ConfigurationError(f"Duration must be positive (got {self.duration})")

		if not spiralcanon.constants.velocity.MIN_VELOCITY <= self.velocity <= spiralcanon.constants.velocity.MAX_VELOCITY:
			raise spiralcanon.exceptions.ConfigurationError(f"Velocity {self.velocity} out of range 1-127")

	@property
	def key (self) -> NoteKey:

		"""The ``(voice_id, start_time, pitch)`` identity used for dedup and idempotent dispatch."""

		return (self.voice_id, self.start_time, self.pitch)

	@property
	def end_time (self) -> float:

		return self.start_time + self.duration

	def shifted (self, offset: float) -> "NoteEvent":

		"""Return a copy moved by ``offset`` time units. Nothing else changes."""

		return dataclasses.replace(self, start_time=self.start_time + offset)

	def to_wire (self) -> typing.Dict[str, typing.Any]:

		"""Return the note in the host's note schema."""

		return {
			"pitch": self.pitch,
			"start_time": self.start_time,
			"duration": self.duration,
			"velocity": self.velocity,
			"mute": self.muted
		}

	@classmethod
	def from_wire (cls, voice_id: str, data: typing.Mapping[str, typing.Any]) -> "NoteEvent":

		"""Build an event from the host's note schema (as returned by a notes query)."""

		return cls(
			voice_id = voice_id,
			pitch = int(data["pitch"]),
			start_time = spiralcanon.constants.quantize(float(data["start_time"])),
			duration = float(data["duration"]),
			velocity = int(data["velocity"]),
			muted = bool(data.get("mute", False))
		)
