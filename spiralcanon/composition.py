import dataclasses
import typing

import spiralcanon.exceptions
import spiralcanon.form
import spiralcanon.voice


@dataclasses.dataclass(frozen=True)
class CompositionDefinition:

	"""
	A complete piece: its voices, its sections and how it is laid out in the host.

	Attributes:
		title: Name of the piece, used in logs.
		voices: One role per instrument; voice ``i`` goes to host track ``i``.
		sections: Section specs in playing order.
		tempo: Host tempo in BPM.
		clip_index: Clip slot that holds each voice's unified clip.
	"""

	title: str
	voices: typing.Tuple[spiralcanon.voice.VoiceRole, ...]
	sections: typing.Tuple[spiralcanon.form.SectionSpec, ...]
	tempo: float = 120.0
	clip_index: int = 0

	def __post_init__ (self) -> None:

		if not self.voices:
			raise spiralcanon.exceptions.ConfigurationError(f"Composition {self.title!r} has no voices")

		if not self.sections:
			raise spiralcanon.exceptions.ConfigurationError(f"Composition {self.title!r} has no sections")

		voice_ids = [role.voice_id for role in self.voices]

		if len(set(voice_ids)) != len(voice_ids):
			raise spiralcanon.exceptions.ConfigurationError(f"Voice ids must be unique, got {voice_ids}")

		if self.tempo <= 0:
			raise spiralcanon.exceptions.ConfigurationError(f"Tempo must be positive (got {self.tempo})")

		if self.clip_index < 0:
			raise spiralcanon.exceptions.ConfigurationError("Clip index cannot be negative")

		spiralcanon.form.check_order(self.sections)

	@property
	def section_durations (self) -> typing.List[float]:

		return [spec.duration_bars for spec in self.sections]

	@property
	def total_length (self) -> float:

		"""Length of the unified clip: the sum of the section durations."""

		return float(sum(self.section_durations))

	def clip_name (self, role: spiralcanon.voice.VoiceRole) -> str:

		return f"{role.display_name} Full Composition"

	def voice (self, voice_id: str) -> spiralcanon.voice.VoiceRole:

		for role in self.voices:
			if role.voice_id == voice_id:
				return role

		raise KeyError(voice_id)
