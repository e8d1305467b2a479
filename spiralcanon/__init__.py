"""
Spiralcanon - a spiral galaxy rendered as a multi-voice canon.

A logarithmic spiral ``r = a·e^(bθ)`` drives the form of the piece.  Each
voice plays the section's subject in canon: transposed, shifted, and
sometimes augmented, inverted or played backwards.  The spiral's density
wave shapes the dynamics and how finely the ornamental voices divide their
notes.  Entries are spaced by the golden ratio.

Pipeline:

- **Generate.** ``VoiceScoreGenerator`` derives each voice's line from the
  subject and tiles it across each section (exposition, development,
  culmination).  The output is deterministic and quantized to 1/480 beat.
- **Compose.** ``TimelineCompositor`` joins the sections into one timeline
  per voice, each section shifted by the durations before it.  It rejects
  any timeline with two notes at the same time and pitch.
- **Dispatch.** ``BatchedDispatcher`` sends each timeline to the host in
  batches of at most 30 notes.  Transient failures are retried with
  jittered exponential backoff, and retries never duplicate a note.
- **Play.** ``CompositionOrchestrator`` sets up one track and one clip per
  voice, loads everything, and fires the clips.

Hosts: Ableton Live (ableton-mcp over TCP, or AbletonOSC over UDP), a
Standard MIDI File, or an in-memory session.

Minimal example:

    ```python
    import asyncio
    import spiralcanon

    definition = spiralcanon.galaxy_canon()
    sequencer = spiralcanon.InMemorySequencer()

    report = asyncio.run(spiralcanon.CompositionOrchestrator(definition, sequencer).run())
    ```

Package-level exports: ``CompositionOrchestrator``, ``CompositionDefinition``,
``InMemorySequencer``, ``Settings``, ``galaxy_canon``.
"""

import spiralcanon.backends.memory
import spiralcanon.composition
import spiralcanon.config
import spiralcanon.galaxy
import spiralcanon.orchestrator


CompositionOrchestrator = spiralcanon.orchestrator.CompositionOrchestrator
CompositionDefinition = spiralcanon.composition.CompositionDefinition
InMemorySequencer = spiralcanon.backends.memory.InMemorySequencer
Settings = spiralcanon.config.Settings
galaxy_canon = spiralcanon.galaxy.galaxy_canon
