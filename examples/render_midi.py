import asyncio
import logging

import spiralcanon
import spiralcanon.backends.midi_file

logging.basicConfig(level=logging.INFO)

# Render the galaxy canon offline. Open the file in any DAW; each voice is
# on its own track and channel.
OUTPUT = "spiral_galaxy_canon.mid"

settings = spiralcanon.Settings(backend="midi", output=OUTPUT)
sequencer = spiralcanon.backends.midi_file.MidiFileSequencer()

report = asyncio.run(spiralcanon.CompositionOrchestrator(spiralcanon.galaxy_canon(), sequencer, settings).run(play=False))

if report.ok:
	sequencer.save(OUTPUT)

for voice_id, voice in report.voices.items():
	logging.info(f"{voice_id}: sections {voice.section_counts}, {voice.timeline_length} events")
