"""MIDI velocity constants.

Velocity is the MIDI attack strength. Note events sent to the host must sit
in ``MIN_VELOCITY``..``MAX_VELOCITY``; zero is reserved by MIDI for note-off.
"""

DEFAULT_VELOCITY = 80           # Unaccented canonic lines
DEFAULT_VELOCITY_RANGE = 30     # Extra velocity available at peak density

# Note-on range (0 would be read as note-off)
MIN_VELOCITY = 1
MAX_VELOCITY = 127
