import dataclasses
import typing

import spiralcanon.constants.velocity
import spiralcanon.exceptions


@dataclasses.dataclass(frozen=True)
class VoiceRole:

	"""
	Identity of one instrumental part, fixed for the whole composition.

	The first four fields define the voice's place in the canon.  The rest is
	the static track configuration that travels with it to the host.

	Attributes:
		voice_id: Stable identifier, also the first element of every note key.
		register_offset: Semitones from middle C where the voice sits.
		canonic_entry_offset: Delay (time units) before the voice enters.
		transposition_interval: Canonic interval (semitones) applied to the subject.
		name: Track name in the host.
		instrument: Host instrument reference (e.g. a browser URI).
		polyphonic: Chordal voices (piano, pad) may overlap notes of the same pitch.
		ornamental: Decorative voices subdivide notes where the density wave is high.
		base_velocity: Velocity before accents and density modulation.
		velocity_range: Velocity added at full density.
		ornament: Pitch contour (semitones) cycled over the pieces of a subdivided note.
	"""

	voice_id: str
	register_offset: int = 0
	canonic_entry_offset: float = 0.0
	transposition_interval: int = 0
	name: str = ""
	instrument: str = ""
	polyphonic: bool = False
	ornamental: bool = False
	base_velocity: int = spiralcanon.constants.velocity.DEFAULT_VELOCITY
	velocity_range: int = spiralcanon.constants.velocity.DEFAULT_VELOCITY_RANGE
	ornament: typing.Tuple[int, ...] = (0,)

	def __post_init__ (self) -> None:

		if not self.voice_id:
			raise spiralcanon.exceptions.ConfigurationError("Voice id cannot be empty")

		if self.canonic_entry_offset < 0:
			raise spiralcanon.exceptions.ConfigurationError(
				f"Canonic entry offset cannot be negative (voice {self.voice_id!r})"
			)

		if self.velocity_range < 0:
			raise spiralcanon.exceptions.ConfigurationError(f"Velocity range cannot be negative (voice {self.voice_id!r})")

		if not self.ornament:
			raise spiralcanon.exceptions.ConfigurationError(f"Ornament contour cannot be empty (voice {self.voice_id!r})")

	@property
	def display_name (self) -> str:

		return self.name or self.voice_id
