"""Trigger velocity constants.

Velocities are normalised floats (0.0-1.0), as the sound engine expects.
Accented tracks have exactly two values: one for accented steps, one for
the rest.
"""

KICK_ACCENT_VELOCITY = 1.0
KICK_VELOCITY = 0.85

SNARE_ACCENT_VELOCITY = 0.95
SNARE_VELOCITY = 0.8

HIHAT_VELOCITY = 0.5
PERC_VELOCITY = 0.6

SYNTH_VELOCITY = 0.85

# Step offset within the accent period at which each track is accented.
KICK_ACCENT_OFFSET = 0
SNARE_ACCENT_OFFSET = 2
