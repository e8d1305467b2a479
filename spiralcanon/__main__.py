"""Command line entry point: ``python -m spiralcanon``.

Generates the spiral galaxy canon and writes it into the chosen host:

- ``memory`` - a dry run that keeps everything in memory
- ``mcp`` - Ableton Live through the ableton-mcp remote script
- ``osc`` - Ableton Live through AbletonOSC
- ``midi`` - a Standard MIDI File
"""

import argparse
import asyncio
import logging
import sys
import typing

import spiralcanon.backends.ableton_mcp
import spiralcanon.backends.memory
import spiralcanon.backends.midi_file
import spiralcanon.backends.osc
import spiralcanon.config
import spiralcanon.galaxy
import spiralcanon.orchestrator
import spiralcanon.sequencer_interface
import spiralcanon.spiral


logger = logging.getLogger(__name__)


def make_sequencer (settings: spiralcanon.config.Settings) -> spiralcanon.sequencer_interface.SequencerInterface:

	"""Build the sequencer backend named in ``settings``."""

	if settings.backend == "mcp":
		return spiralcanon.backends.ableton_mcp.AbletonMcpSequencer(
			host = settings.host,
			port = settings.port or spiralcanon.backends.ableton_mcp.DEFAULT_PORT,
			timeout = settings.call_timeout
		)

	if settings.backend == "osc":
		return spiralcanon.backends.osc.AbletonOscSequencer(
			host = settings.host,
			send_port = settings.port or spiralcanon.backends.osc.DEFAULT_SEND_PORT,
			timeout = settings.call_timeout
		)

	if settings.backend == "midi":
		return spiralcanon.backends.midi_file.MidiFileSequencer()

	return spiralcanon.backends.memory.InMemorySequencer()


async def run (settings: spiralcanon.config.Settings, play: bool = True) -> spiralcanon.orchestrator.CompositionReport:

	"""Render the galaxy canon with ``settings`` and return the report."""

	spiral_model = spiralcanon.spiral.SpiralModel(settings.spiral_scale, settings.golden_direction)
	definition = spiralcanon.galaxy.galaxy_canon(spiral_model)
	sequencer = make_sequencer(settings)

	orchestrator = spiralcanon.orchestrator.CompositionOrchestrator(definition, sequencer, settings)

	try:
		report = await orchestrator.run(play=play)

	finally:
		if isinstance(sequencer, spiralcanon.backends.ableton_mcp.AbletonMcpSequencer):
			await sequencer.close()
		elif isinstance(sequencer, spiralcanon.backends.osc.AbletonOscSequencer):
			await sequencer.stop()

	if isinstance(sequencer, spiralcanon.backends.midi_file.MidiFileSequencer):
		sequencer.save(settings.output)

	return report


def parse_args (argv: typing.Optional[typing.Sequence[str]] = None) -> argparse.Namespace:

	parser = argparse.ArgumentParser(prog="spiralcanon", description="Spiral galaxy canon generator")
	parser.add_argument("--config", default="config.yaml", help="YAML settings file (default: config.yaml)")
	parser.add_argument("--backend", choices=spiralcanon.config.BACKENDS, help="Sequencer backend (default: memory)")
	parser.add_argument("--host", help="Host address for mcp or osc")
	parser.add_argument("--port", type=int, help="Host port for mcp or osc")
	parser.add_argument("--output", help="MIDI file written by the midi backend")
	parser.add_argument("--tempo", type=float, help="Override the composition tempo")
	parser.add_argument("--no-play", action="store_true", help="Do not fire the clips after loading them")
	parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

	return parser.parse_args(argv)


def main (argv: typing.Optional[typing.Sequence[str]] = None) -> int:

	"""
	Main entry point for the spiralcanon application.
	"""

	args = parse_args(argv)

	logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

	try:
		settings = spiralcanon.config.Settings.from_dict(spiralcanon.config.load_config(args.config)).replace(
			backend = args.backend,
			host = args.host,
			port = args.port,
			output = args.output,
			tempo = args.tempo
		)
	except ValueError as exc:
		logger.error(f"Bad configuration: {exc}")
		return 2

	report = asyncio.run(run(settings, play=not args.no_play))

	return 0 if report.ok else 1


if __name__ == "__main__":
	sys.exit(main())
