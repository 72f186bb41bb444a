"""Constants for stepgrid.

This package contains:

- ``stepgrid.constants.pulses`` - Pulse-based clock timing (internal clock use)
- ``stepgrid.constants.durations`` - Duration tags passed to the sound engine
- ``stepgrid.constants.velocity`` - Per-track trigger velocities and accent offsets
- ``stepgrid.constants.notes`` - The fixed piano-roll pitch table and drum voice notes

Grid-shape constants live here because every module needs them.
"""

# One pattern cycle is 16 sixteenth-note steps.
STEPS = 16

# Upper bound on captured slice markers per loaded sample.
MAX_MARKERS = 16

# Drum tracks, in display order.
TRACK_KICK = "kick"
TRACK_SNARE = "snare"
TRACK_HIHAT = "hihat"
TRACK_PERC = "perc"

TRACKS = (TRACK_KICK, TRACK_SNARE, TRACK_HIHAT, TRACK_PERC)

# Non-drum channels.
CHANNEL_SYNTH = "synth"
CHANNEL_SAMPLER = "sampler"

CHANNELS = TRACKS + (CHANNEL_SYNTH, CHANNEL_SAMPLER)

# Allowed accent periods (0 = no accent).
ACCENT_INTERVALS = (0, 2, 3, 4, 8)
