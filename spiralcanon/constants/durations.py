"""Beat-based duration constants for subjects, grids and ornaments.

All values are in **beats**, where 1.0 = one quarter note, the time unit of
the host clip.

    import spiralcanon.constants.durations as dur

    # Shortest ornament piece
    dur.SIXTEENTH      # 0.25 beats

    # A subject note held for half a bar
    2 * dur.QUARTER    # 2.0 beats
"""

THIRTYSECOND = 0.125
SIXTEENTH = 0.25
EIGHTH = 0.5
DOTTED_EIGHTH = 0.75
QUARTER = 1.0
DOTTED_QUARTER = 1.5
HALF = 2.0
DOTTED_HALF = 3.0
WHOLE = 4.0
