"""Note tables.

``ROLL_NOTES`` is the fixed descending pitch table of the piano roll: row 0 is
the highest note, row 11 the lowest.  It spans C3 down to C2 (C#2 is not on the roll).

Notes are named ``<Letter>[#|b]<Octave>`` with **C4 = 60**, matching the MIDI
standard convention.
"""

import typing

import stepgrid.constants


ROLL_NOTES: typing.Tuple[str, ...] = (
	"C3",
	"B2",
	"A#2",
	"A2",
	"G#2",
	"G2",
	"F#2",
	"F2",
	"E2",
	"D#2",
	"D2",
	"C2",
)

# Fixed voice note per drum track.  The snare is a noise voice with no pitch.
TRACK_NOTES: typing.Dict[str, typing.Optional[str]] = {
	stepgrid.constants.TRACK_KICK: "C2",
	stepgrid.constants.TRACK_SNARE: None,
	stepgrid.constants.TRACK_HIHAT: "C6",
	stepgrid.constants.TRACK_PERC: "C4",
}

# General MIDI drum map note numbers used by the MIDI engine.
GM_TRACK_NOTES: typing.Dict[str, int] = {
	stepgrid.constants.TRACK_KICK: 36,
	stepgrid.constants.TRACK_SNARE: 38,
	stepgrid.constants.TRACK_HIHAT: 42,
	stepgrid.constants.TRACK_PERC: 39,
}
