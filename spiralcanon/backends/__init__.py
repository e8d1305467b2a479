"""Sequencer backends.

Each module provides one implementation of
:class:`~spiralcanon.sequencer_interface.SequencerInterface`:

- ``spiralcanon.backends.memory`` - in-memory session (dry runs, tests)
- ``spiralcanon.backends.ableton_mcp`` - Ableton Live via the ableton-mcp remote script (JSON over TCP)
- ``spiralcanon.backends.osc`` - Ableton Live via AbletonOSC (UDP)
- ``spiralcanon.backends.midi_file`` - offline render to a Standard MIDI File
"""
