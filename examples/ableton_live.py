import asyncio
import logging

import spiralcanon
import spiralcanon.backends.ableton_mcp
import spiralcanon.spiral

logging.basicConfig(level=logging.INFO)

# Requires Ableton Live with the ableton-mcp remote script listening on 9877.
# Entries spread outwards instead of closing in, and the piece is a little faster.
settings = spiralcanon.Settings(backend="mcp", golden_direction="expand", tempo=80, batch_size=20)

definition = spiralcanon.galaxy_canon(spiralcanon.spiral.SpiralModel(settings.spiral_scale, settings.golden_direction))
sequencer = spiralcanon.backends.ableton_mcp.AbletonMcpSequencer(port=9877)


async def main () -> None:

	try:
		report = await spiralcanon.CompositionOrchestrator(definition, sequencer, settings).run()
	finally:
		await sequencer.close()

	if not report.ok:
		logging.error(f"Some voices did not make it: {report.failed_voices()}")


asyncio.run(main())
