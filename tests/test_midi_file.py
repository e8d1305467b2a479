import os
import tempfile
import typing

import mido
import pytest

import spiralcanon.backends.midi_file
import spiralcanon.exceptions
import spiralcanon.note
import spiralcanon.sequencer_interface


def _event (start: float, pitch: int = 60, duration: float = 1.0, muted: bool = False) -> spiralcanon.note.NoteEvent:

	return spiralcanon.note.NoteEvent(voice_id="v", pitch=pitch, start_time=start, duration=duration, velocity=96, muted=muted)


async def _render () -> spiralcanon.backends.midi_file.MidiFileSequencer:

	sequencer = spiralcanon.backends.midi_file.MidiFileSequencer()

	await sequencer.set_tempo(72)

	piano = await sequencer.create_track(0)
	await sequencer.name_track(piano, "Galactic Core")
	await sequencer.load_instrument(piano, "query:Synths#Instrument%20Rack:Piano%20&%20Keys:FileId_4838")
	piano_clip = await sequencer.create_clip(piano, 0, 8.0)
	await sequencer.insert_notes(piano, piano_clip, [_event(0.0), _event(1.0, 64), _event(1.0, 67, muted=True)])

	pad = await sequencer.create_track(1)
	await sequencer.name_track(pad, "Cosmic Background")
	await sequencer.load_instrument(pad, "query:Synths#Instrument%20Rack:Pad:FileId_4935")
	pad_clip = await sequencer.create_clip(pad, 0, 8.0)
	await sequencer.insert_notes(pad, pad_clip, [_event(0.0, 48, 4.0)])

	return sequencer


def _messages (track: mido.MidiTrack, kind: str) -> typing.List[mido.Message]:

	return [message for message in track if message.type == kind]


@pytest.mark.parametrize("instrument, program", [
	("query:Synths#Instrument%20Rack:Piano%20&%20Keys:FileId_4838", 0),
	("query:Synths#Instrument%20Rack:Strings:FileId_9633", 48),
	("query:Synths#Instrument%20Rack:Brass:FileId_9387", 61),
	("query:Synths#Instrument%20Rack:Winds:FileId_9557", 73),
	("query:Synths#Instrument%20Rack:Mallets:FileId_9730", 11),
	("query:Synths#Instrument%20Rack:Pad:FileId_4935", 89),
	("something else", 0),
])
def test_program_guess (instrument: str, program: int) -> None:

	assert spiralcanon.backends.midi_file.program_for(instrument) == program


def test_channels_skip_drums () -> None:

	assert [spiralcanon.backends.midi_file.channel_for(index) for index in range(11)] == [0, 1, 2, 3, 4, 5, 6, 7, 8, 10, 11]


@pytest.mark.asyncio
async def test_render_layout () -> None:

	mid = (await _render()).to_midi_file()

	assert mid.type == 1
	assert mid.ticks_per_beat == 480
	assert len(mid.tracks) == 3

	tempo = [message for message in mid.tracks[0] if message.type == "set_tempo"]
	assert tempo[0].tempo == mido.bpm2tempo(72)

	piano, pad = mid.tracks[1], mid.tracks[2]

	assert piano.name == "Galactic Core"
	assert pad.name == "Cosmic Background"
	assert _messages(pad, "program_change")[0].program == 89
	assert _messages(pad, "program_change")[0].channel == 1


@pytest.mark.asyncio
async def test_render_timing_and_mutes () -> None:

	mid = (await _render()).to_midi_file()
	piano = mid.tracks[1]

	ons = _messages(piano, "note_on")

	# The muted note is not rendered.
	assert [message.note for message in ons] == [60, 64]

	absolute = 0
	times: typing.List[typing.Tuple[str, int, int]] = []

	for message in piano:
		absolute += message.time
		if message.type in ("note_on", "note_off"):
			times.append((message.type, message.note, absolute))

	# Note-off of the first note sorts before the note-on sharing its tick.
	assert times == [("note_on", 60, 0), ("note_off", 60, 480), ("note_on", 64, 480), ("note_off", 64, 960)]


@pytest.mark.asyncio
async def test_inserts_are_idempotent () -> None:

	sequencer = await _render()

	assert sequencer.idempotent_inserts

	track = await sequencer.create_track(0)
	clip = await sequencer.create_clip(track, 0, 8.0)
	await sequencer.insert_notes(track, clip, [_event(0.0)])

	notes = await sequencer.get_notes(track, clip, 0.0, 8.0)

	assert len(notes) == 3
	assert {(note["start_time"], note["pitch"]) for note in notes} == {(0.0, 60), (1.0, 64), (1.0, 67)}


@pytest.mark.asyncio
async def test_unknown_track_is_fatal () -> None:

	sequencer = spiralcanon.backends.midi_file.MidiFileSequencer()

	with pytest.raises(spiralcanon.exceptions.FatalError):
		await sequencer.name_track(spiralcanon.sequencer_interface.TrackHandle(2), "ghost")


@pytest.mark.asyncio
async def test_save_writes_a_readable_file () -> None:

	sequencer = await _render()

	with tempfile.TemporaryDirectory() as directory:

		filename = os.path.join(directory, "galaxy.mid")
		sequencer.save(filename)

		loaded = mido.MidiFile(filename)

	assert len(loaded.tracks) == 3
	assert sum(1 for message in loaded.tracks[2] if message.type == "note_on") == 1
