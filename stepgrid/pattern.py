"""Immutable pattern snapshots.

A :class:`Pattern` is one 16-step cycle: four drum grids, a monophonic note
roll and a sample-marker roll.  Every field is a tuple, and every mutation
returns a new ``Pattern``, so the dispatcher can keep a reference to the
snapshot it was built from while the control path edits freely.

Roll cells are tagged values rather than nullable integers::

	pattern.note_roll[3]      # REST or RollNote(row=5)
	pattern.sample_roll[3]    # REST or SliceMarker(index=2)
"""

import dataclasses
import types
import typing

import stepgrid.constants
import stepgrid.constants.notes


@dataclasses.dataclass (frozen=True)
class Rest:

	"""
	An empty step: no note or no sample marker.
	"""

	def __repr__ (self) -> str:
		return "REST"


REST = Rest()


@dataclasses.dataclass (frozen=True)
class RollNote:

	"""
	A synth note at a row of ``ROLL_NOTES``.
	"""

	row: int

	def __post_init__ (self) -> None:
		if not 0 <= self.row < len(stepgrid.constants.notes.ROLL_NOTES):
			raise ValueError(f"Roll row {self.row} out of range")

	@property
	def note (self) -> str:

		"""The note name this row plays."""

		return stepgrid.constants.notes.ROLL_NOTES[self.row]


@dataclasses.dataclass (frozen=True)
class SliceMarker:

	"""
	A sample slice starting at marker ``index``.
	"""

	index: int

	def __post_init__ (self) -> None:
		if not 0 <= self.index < stepgrid.constants.MAX_MARKERS:
			raise ValueError(f"Marker index {self.index} out of range")


RollCell = typing.Union[Rest, RollNote]
SampleCell = typing.Union[Rest, SliceMarker]

NoteRoll = typing.Tuple[RollCell, ...]
SampleRoll = typing.Tuple[SampleCell, ...]
DrumGrid = typing.Tuple[bool, ...]


def empty_note_roll () -> NoteRoll:

	"""A note roll with no notes."""

	return (REST,) * stepgrid.constants.STEPS


def empty_sample_roll () -> SampleRoll:

	"""A sample roll with no markers."""

	return (REST,) * stepgrid.constants.STEPS


def empty_drum_grid () -> DrumGrid:

	"""A drum grid with no hits."""

	return (False,) * stepgrid.constants.STEPS


def _check_step (step: int) -> None:

	if not 0 <= step < stepgrid.constants.STEPS:
		raise ValueError(f"Step {step} out of range (0-{stepgrid.constants.STEPS - 1})")


def _check_track (track: str) -> None:

	if track not in stepgrid.constants.TRACKS:
		raise ValueError(f"Unknown drum track {track!r}. Available: {list(stepgrid.constants.TRACKS)}")


def _check_length (name: str, values: typing.Sequence[typing.Any]) -> None:

	if len(values) != stepgrid.constants.STEPS:
		raise ValueError(f"{name} must have exactly {stepgrid.constants.STEPS} steps, got {len(values)}")


@dataclasses.dataclass (frozen=True)
class Pattern:

	"""
	One cycle of drum hits, synth notes, and sample slices.

	Construct with :meth:`empty` and derive edited copies with the
	``toggle_*``, ``set_*`` and ``clear_*`` methods.  The constructor
	validates shape: every grid has exactly ``STEPS`` entries and every
	track is present.
	"""

	drum_hits: typing.Mapping[str, DrumGrid]
	note_roll: NoteRoll
	sample_roll: SampleRoll

	def __post_init__ (self) -> None:

		if set(self.drum_hits) != set(stepgrid.constants.TRACKS):
			raise ValueError(f"Drum tracks must be exactly {list(stepgrid.constants.TRACKS)}")

		# Tuples in track order, behind a read-only view.
		drums = {}

		for track in stepgrid.constants.TRACKS:
			grid = tuple(bool(hit) for hit in self.drum_hits[track])
			_check_length(f"Drum track {track!r}", grid)
			drums[track] = grid

		object.__setattr__(self, "drum_hits", types.MappingProxyType(drums))

		note_roll = tuple(self.note_roll)
		sample_roll = tuple(self.sample_roll)
		_check_length("Note roll", note_roll)
		_check_length("Sample roll", sample_roll)

		for cell in note_roll:
			if not isinstance(cell, (Rest, RollNote)):
				raise ValueError(f"Invalid note roll cell: {cell!r}")

		for cell in sample_roll:
			if not isinstance(cell, (Rest, SliceMarker)):
				raise ValueError(f"Invalid sample roll cell: {cell!r}")

		object.__setattr__(self, "note_roll", note_roll)
		object.__setattr__(self, "sample_roll", sample_roll)

	def __hash__ (self) -> int:
		return hash((tuple(self.drum_hits.items()), self.note_roll, self.sample_roll))

	@classmethod
	def empty (cls) -> "Pattern":

		"""A pattern with no events anywhere."""

		return cls(
			drum_hits = {track: empty_drum_grid() for track in stepgrid.constants.TRACKS},
			note_roll = empty_note_roll(),
			sample_roll = empty_sample_roll()
		)

	def is_empty (self) -> bool:

		"""True when no step of any lane holds an event."""

		return self == Pattern.empty()

	# ------------------------------------------------------------------
	# Drums
	# ------------------------------------------------------------------

	def toggle_drum (self, track: str, step: int) -> "Pattern":

		"""Flip one drum step."""

		_check_track(track)
		_check_step(step)

		grid = list(self.drum_hits[track])
		grid[step] = not grid[step]

		return self.set_drum_track(track, grid)

	def set_drum_track (self, track: str, mask: typing.Sequence[bool]) -> "Pattern":

		"""Replace one drum track's grid wholesale."""

		_check_track(track)
		_check_length(f"Drum track {track!r}", mask)

		drums = dict(self.drum_hits)
		drums[track] = tuple(bool(hit) for hit in mask)

		return dataclasses.replace(self, drum_hits=drums)

	def clear_drum (self, track: str) -> "Pattern":

		"""Remove every hit from one drum track."""

		return self.set_drum_track(track, empty_drum_grid())

	# ------------------------------------------------------------------
	# Synth roll
	# ------------------------------------------------------------------

	def toggle_roll (self, row: int, step: int) -> "Pattern":

		"""Toggle a note cell.

		The roll is monophonic: clicking the row already set at a step clears
		it, any other row replaces it.
		"""

		_check_step(step)
		cell = RollNote(row)

		roll = list(self.note_roll)
		roll[step] = REST if roll[step] == cell else cell

		return self.set_note_roll(roll)

	def set_note_roll (self, roll: typing.Sequence[RollCell]) -> "Pattern":

		"""Replace the whole note roll."""

		return dataclasses.replace(self, note_roll=tuple(roll))

	def clear_note_roll (self) -> "Pattern":
		return self.set_note_roll(empty_note_roll())

	# ------------------------------------------------------------------
	# Sampler roll
	# ------------------------------------------------------------------

	def toggle_sample (self, marker: int, step: int) -> "Pattern":

		"""Toggle a sample cell, replacing any other marker at the same step."""

		_check_step(step)
		cell = SliceMarker(marker)

		roll = list(self.sample_roll)
		roll[step] = REST if roll[step] == cell else cell

		return self.set_sample_roll(roll)

	def set_sample_roll (self, roll: typing.Sequence[SampleCell]) -> "Pattern":

		"""Replace the whole sample roll."""

		return dataclasses.replace(self, sample_roll=tuple(roll))

	def clear_sample_roll (self) -> "Pattern":
		return self.set_sample_roll(empty_sample_roll())

