"""Pulse-based clock timing constants.

The clock uses **24 pulses per quarter note** (PPQN = 24) as its time base when
converting subdivision names into durations.  The sequencer itself only ever
ticks at sixteenth-note resolution, so most callers just need
``SIXTEENTH_NOTE``.
"""

THIRTYSECOND_NOTE = 3
SIXTEENTH_NOTE = 6
EIGHTH_NOTE = 12
QUARTER_NOTE = 24
HALF_NOTE = 48
WHOLE_NOTE = 96

# Subdivision tags (as used by the transport and sound engine) mapped to pulses.
SUBDIVISION_PULSES = {
	"32n": THIRTYSECOND_NOTE,
	"16n": SIXTEENTH_NOTE,
	"8n": EIGHTH_NOTE,
	"4n": QUARTER_NOTE,
	"2n": HALF_NOTE,
	"1n": WHOLE_NOTE,
}
