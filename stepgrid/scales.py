"""Scale presets and pitch-class utilities.

Module-level constants:
- `SCALES`: Maps the four melody scale presets to interval lists (semitones from root)
- `NOTE_NAME_TO_PC`: Maps note names (e.g., `"C"`, `"F#"`, `"Bb"`) to pitch classes (0-11)

Module-level helpers:
- `key_name_to_pc(key_name)`: Validate a key name and return its pitch class (0-11).
- `note_to_midi(note_name)`: Parse a note name with octave (e.g. `"A#2"`) to a MIDI number.
- `scale_pitch_classes(root_pc, scale)`: The transposed pitch-class set of a scale.
"""

import re
import typing


SCALES: typing.Dict[str, typing.List[int]] = {
	"major": [0, 2, 4, 5, 7, 9, 11],
	"minor": [0, 2, 3, 5, 7, 8, 10],
	"pentatonic": [0, 3, 5, 7, 10],
	"blues": [0, 3, 5, 6, 7, 10],
}

SCALE_NAMES: typing.Tuple[str, ...] = tuple(SCALES)

DEFAULT_SCALE = "minor"


NOTE_NAME_TO_PC: typing.Dict[str, int] = {
	"C": 0,
	"C#": 1,
	"Db": 1,
	"D": 2,
	"D#": 3,
	"Eb": 3,
	"E": 4,
	"F": 5,
	"F#": 6,
	"Gb": 6,
	"G": 7,
	"G#": 8,
	"Ab": 8,
	"A": 9,
	"A#": 10,
	"Bb": 10,
	"B": 11,
}

PC_TO_NOTE_NAME: typing.List[str] = [
	"C",
	"C#",
	"D",
	"D#",
	"E",
	"F",
	"F#",
	"G",
	"G#",
	"A",
	"A#",
	"B",
]

_LETTER_PC: typing.Dict[str, int] = {"C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11}

_NOTE_PATTERN = re.compile(r"^([A-Ga-g])([#b]?)(-?\d+)$")


def normalize_key_name (key_name: str) -> str:

	"""Replace unicode accidentals with their ASCII spelling (``"F♯"`` → ``"F#"``)."""

	return key_name.strip().replace("♯", "#").replace("♭", "b")


def key_name_to_pc (key_name: str) -> int:

	"""Validate a key name and return its pitch class (0–11).

	Parameters:
		key_name: Note name (e.g. ``"C"``, ``"F#"``, ``"Bb"``, ``"E♭"``).

	Returns:
		Pitch class integer (0–11).

	Raises:
		ValueError: If the key name is not recognised.

	Example:
		```python
		key_name_to_pc("C")   # → 0
		key_name_to_pc("F#")  # → 6
		key_name_to_pc("Bb")  # → 10
		```
	"""

	name = normalize_key_name(key_name)

	if name not in NOTE_NAME_TO_PC:
		raise ValueError(
			f"Unknown key name: {key_name!r}. Expected e.g. 'C', 'F#', 'Bb'."
		)

	return NOTE_NAME_TO_PC[name]


def note_to_midi (note_name: str) -> int:

	"""Convert a note name with octave to a MIDI note number (C4 = 60).

	Raises:
		ValueError: If the name cannot be parsed.
	"""

	match = _NOTE_PATTERN.match(note_name.strip())

	if match is None:
		raise ValueError(f"Unparseable note name: {note_name!r}")

	letter, accidental, octave = match.groups()
	semitones = _LETTER_PC[letter.upper()]

	if accidental == "#":
		semitones += 1
	elif accidental == "b":
		semitones -= 1

	return semitones + (int(octave) + 1) * 12


def note_pitch_class (note_name: str) -> int:

	"""Return the octave-independent pitch class (0-11) of a note name."""

	return note_to_midi(note_name) % 12


def get_scale (name: str) -> typing.List[int]:

	"""
	Return the interval list of a named scale preset.
	"""

	if name not in SCALES:
		raise ValueError(f"Unknown scale '{name}'. Available: {list(SCALE_NAMES)}")

	return list(SCALES[name])


def scale_at (index: int) -> str:

	"""Return a scale preset name by position, wrapping out-of-range indices."""

	return SCALE_NAMES[index % len(SCALE_NAMES)]


def scale_pitch_classes (root_pc: int, intervals: typing.Sequence[int]) -> typing.Set[int]:

	"""
	Return the set of pitch classes (0–11) produced by transposing a scale to a root.

	Example:
		```python
		# C minor pentatonic
		scale_pitch_classes(0, SCALES["pentatonic"])  # → {0, 3, 5, 7, 10}

		# A major
		scale_pitch_classes(9, SCALES["major"])  # → {9, 11, 1, 2, 4, 6, 8}
		```
	"""

	return {(root_pc + interval) % 12 for interval in intervals}
