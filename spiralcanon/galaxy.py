"""The reference piece: a spiral galaxy as a six-voice canon.

Six tracks stand for the regions of a galaxy, from the bright core to the
diffuse background:

=================  ===========  ==========================================
Voice              Instrument   Role in the canon
=================  ===========  ==========================================
Galactic Core      Piano        Leader, states the subject at pitch
Inner Spiral       Strings      Canon at the fourth below, an octave down
Middle Spiral      Brass        Canon at the fifth
Outer Spiral       Woodwinds    Canon at the octave
Star Clusters      Vibraphone   Ornamental, breaks notes into running figures
Cosmic Background  Pad          Subject in long augmentation
=================  ===========  ==========================================

Entries follow a golden-ratio spiral: each gap between successive entries
is the previous gap scaled by ``φ`` (inwards by default), snapped to
eighths.

Three 32-beat sections at 72 BPM make one 96-beat clip per track:

- **Exposition** - a broken-chord arpeggio rising to the octave and back,
  stated on successive degrees.
- **Development** - running eighths, with inversion, augmentation and
  retrograde spread across the voices.
- **Culmination** - a chord progression, the densest part of the wave.
"""

import math
import typing

import spiralcanon.canon
import spiralcanon.composition
import spiralcanon.constants
import spiralcanon.constants.durations
import spiralcanon.form
import spiralcanon.spiral
import spiralcanon.voice

SubjectNote = spiralcanon.canon.SubjectNote
CanonOptions = spiralcanon.canon.CanonOptions


TEMPO = 72
SECTION_LENGTH = 32
ENTRY_BASE = 4.0

CORE = "galactic_core"
INNER = "inner_spiral"
MIDDLE = "middle_spiral"
OUTER = "outer_spiral"
STARS = "star_clusters"
BACKGROUND = "cosmic_background"

INSTRUMENTS: typing.Dict[str, str] = {
	CORE: "query:Synths#Instrument%20Rack:Piano%20&%20Keys:FileId_4838",
	INNER: "query:Synths#Instrument%20Rack:Strings:FileId_9633",
	MIDDLE: "query:Synths#Instrument%20Rack:Brass:FileId_9387",
	OUTER: "query:Synths#Instrument%20Rack:Winds:FileId_9557",
	STARS: "query:Synths#Instrument%20Rack:Mallets:FileId_9730",
	BACKGROUND: "query:Synths#Instrument%20Rack:Pad:FileId_4935",
}


# --- Subjects ---

ARPEGGIO = spiralcanon.canon.Subject("galactic arpeggio", (
	SubjectNote(0, 0.0, 2.0, 20),
	SubjectNote(4, 1.0, 2.0, 5),
	SubjectNote(7, 2.0, 2.0, 10),
	SubjectNote(12, 3.0, 1.0, 0),
	SubjectNote(7, 4.0, 2.0, 15),
	SubjectNote(4, 5.0, 2.0, 5),
	SubjectNote(0, 6.0, 2.0, 13),
))


def _running_figure () -> spiralcanon.canon.Subject:

	"""Root-fifth-octave-fifth cells climbing by step, in eighths."""

	cells = ((0, 7, 12, 7), (2, 9, 14, 9), (4, 11, 16, 11), (5, 12, 17, 12))
	notes: typing.List[SubjectNote] = []

	for cell_index, cell in enumerate(cells):
		for step, pitch_offset in enumerate(cell):
			notes.append(SubjectNote(
				pitch_offset = pitch_offset,
				start = (cell_index * len(cell) + step) * spiralcanon.constants.durations.EIGHTH,
				duration = spiralcanon.constants.durations.EIGHTH,
				accent = 10 if step == 0 else 0
			))

	return spiralcanon.canon.Subject("running figure", tuple(notes))


RUNNING_FIGURE = _running_figure()


def _chord (pitch_offsets: typing.Sequence[int], start: float, accent: int) -> typing.List[SubjectNote]:

	return [SubjectNote(offset, start, spiralcanon.constants.durations.WHOLE, accent) for offset in pitch_offsets]


STELLAR_CHORDS = spiralcanon.canon.Subject("stellar chords", tuple(
	_chord((-12, -5, 0, 4), 0.0, 30)
	+ _chord((-7, 0, 5, 9), 4.0, 25)
	+ _chord((-5, 2, 7, 11), 8.0, 25)
	+ _chord((-12, -5, 0, 4, 7), 12.0, 30)
))


# --- Voices ---

def canonic_entries (spiral_model: spiralcanon.spiral.SpiralModel, count: int, base: float = ENTRY_BASE) -> typing.List[float]:

	"""
	Return ``count`` entry offsets, starting at 0.

	The first gap is ``base``; each following gap is the previous one scaled
	by the golden ratio in the model's direction.  Offsets are snapped to
	eighths so entries land on the grid.
	"""

	entries: typing.List[float] = []
	position = 0.0
	gap = base

	for _ in range(count):
		entries.append(spiralcanon.constants.quantize_to(position, spiralcanon.constants.durations.EIGHTH))
		position += gap
		gap = spiral_model.golden_entry_offset(gap)

	return entries


def galaxy_voices (spiral_model: spiralcanon.spiral.SpiralModel) -> typing.Tuple[spiralcanon.voice.VoiceRole, ...]:

	"""Return the six voice roles in track order."""

	core, inner, middle, outer, stars = canonic_entries(spiral_model, 5)

	return (
		spiralcanon.voice.VoiceRole(
			voice_id = CORE,
			name = "Galactic Core",
			instrument = INSTRUMENTS[CORE],
			canonic_entry_offset = core,
			polyphonic = True,
			base_velocity = 68
		),
		spiralcanon.voice.VoiceRole(
			voice_id = INNER,
			name = "Inner Spiral",
			instrument = INSTRUMENTS[INNER],
			register_offset = -12,
			canonic_entry_offset = inner,
			transposition_interval = -5,
			base_velocity = 62,
			velocity_range = 28
		),
		spiralcanon.voice.VoiceRole(
			voice_id = MIDDLE,
			name = "Middle Spiral",
			instrument = INSTRUMENTS[MIDDLE],
			canonic_entry_offset = middle,
			transposition_interval = 7,
			base_velocity = 64
		),
		spiralcanon.voice.VoiceRole(
			voice_id = OUTER,
			name = "Outer Spiral",
			instrument = INSTRUMENTS[OUTER],
			register_offset = 12,
			canonic_entry_offset = outer,
			base_velocity = 60
		),
		spiralcanon.voice.VoiceRole(
			voice_id = STARS,
			name = "Star Clusters",
			instrument = INSTRUMENTS[STARS],
			register_offset = 24,
			canonic_entry_offset = stars,
			ornamental = True,
			base_velocity = 55,
			velocity_range = 40,
			ornament = (0, 2, 4, 7)
		),
		spiralcanon.voice.VoiceRole(
			voice_id = BACKGROUND,
			name = "Cosmic Background",
			instrument = INSTRUMENTS[BACKGROUND],
			register_offset = -12,
			polyphonic = True,
			base_velocity = 50,
			velocity_range = 20
		),
	)


# --- Sections ---

EXPOSITION = spiralcanon.form.SectionSpec(
	section = spiralcanon.form.Section.EXPOSITION,
	duration_bars = SECTION_LENGTH,
	subject = ARPEGGIO,
	growth = 0.1,
	turns = 1.5,
	density_profile = spiralcanon.spiral.DensityProfile(sharpness=1.5, floor=0.1, ceiling=0.7),
	statement_length = 8.0,
	sequence = (0, 2, 4, 0),
	options = {
		BACKGROUND: CanonOptions(rate=4.0),
	}
)

DEVELOPMENT = spiralcanon.form.SectionSpec(
	section = spiralcanon.form.Section.DEVELOPMENT,
	duration_bars = SECTION_LENGTH,
	subject = RUNNING_FIGURE,
	growth = 0.18,
	turns = 2.5,
	density_profile = spiralcanon.spiral.DensityProfile(floor=0.2, ceiling=0.9),
	statement_length = 8.0,
	sequence = (0, 5, 7, 0),
	options = {
		INNER: CanonOptions(inversion_axis=7),
		MIDDLE: CanonOptions(rate=2.0),
		OUTER: CanonOptions(retrograde=True),
		STARS: CanonOptions(rate=2.0),
		BACKGROUND: CanonOptions(rate=4.0),
	}
)

CULMINATION = spiralcanon.form.SectionSpec(
	section = spiralcanon.form.Section.CULMINATION,
	duration_bars = SECTION_LENGTH,
	subject = STELLAR_CHORDS,
	growth = 0.3,
	turns = 3.0,
	density_profile = spiralcanon.spiral.DensityProfile(peak_angle=3 * math.pi / 4, sharpness=0.8, floor=0.35, ceiling=1.0),
	statement_length = 16.0,
	sequence = (0, 5),
	options = {
		INNER: CanonOptions(retrograde=True),
		MIDDLE: CanonOptions(inversion_axis=4),
		OUTER: CanonOptions(rate=0.5),
		BACKGROUND: CanonOptions(rate=2.0),
	}
)


def galaxy_canon (spiral_model: typing.Optional[spiralcanon.spiral.SpiralModel] = None, tempo: float = TEMPO) -> spiralcanon.composition.CompositionDefinition:

	"""Return the reference composition."""

	spiral_model = spiral_model or spiralcanon.spiral.SpiralModel()

	return spiralcanon.composition.CompositionDefinition(
		title = "Spiral Galaxy Canon",
		voices = galaxy_voices(spiral_model),
		sections = (EXPOSITION, DEVELOPMENT, CULMINATION),
		tempo = tempo
	)
