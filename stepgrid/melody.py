"""Scale-constrained melody generation for the monophonic note roll.

A :class:`MelodyGenerator` decides *what* pitch plays on each active step of
a mask produced by :mod:`stepgrid.rhythm`.  Pitches are rows of the fixed
``ROLL_NOTES`` table, restricted to the rows whose pitch class belongs to the
chosen scale and root (the *allowed rows*).

Four placement engines share the allowed rows, the mask, and one
post-processing pass:

- ``walk`` - a bell-weighted first note, then small moves of up to two
  allowed rows with occasional 3-5 row leaps.
- ``arpeggio`` - a 3-5 note chord stacked from alternate scale rows, cycled
  up, down, or bouncing across the active steps.
- ``motif`` - a 4-step cell repeated through the bar, every repetition
  after the first lightly mutated.
- ``bass`` - a walk anchored on the lowest root row that mostly stays put or
  moves one row, with rare leaps.

Post-processing then (1) breaks up adjacent identical notes, (2) sometimes
resolves the last two steps onto the root, and (3) optionally rests the final
step.

Row order runs from the highest pitch (row 0) to the lowest, so "up" in
pitch means a *smaller* row index.

Example:
	```python
	rng = random.Random(3)
	generator = stepgrid.melody.MelodyGenerator(root="A", scale="minor")
	mask = stepgrid.rhythm.generate("euclidean", hits=7, rng=rng)
	roll = generator.generate(mask, rng)
	pattern = pattern.set_note_roll(roll)
	```
"""

import logging
import math
import random
import typing

import stepgrid.constants
import stepgrid.constants.notes
import stepgrid.pattern
import stepgrid.rhythm
import stepgrid.scales
import stepgrid.sequence_utils


logger = logging.getLogger(__name__)


DEREPEAT_PROBABILITY = 0.6
CADENCE_PROBABILITY = 0.4
FINAL_REST_PROBABILITY = 0.08
MOTIF_MUTATION_PROBABILITY = 0.25

DEFAULT_JUMP_PROBABILITY = 0.15
DEFAULT_DENSITY = 0.42

ENGINES: typing.Tuple[str, ...] = ("walk", "arpeggio", "motif", "bass")
ARPEGGIO_DIRECTIONS: typing.Tuple[str, ...] = ("up", "down", "bounce")


def row_pitch_classes () -> typing.List[int]:

	"""Pitch class of each ``ROLL_NOTES`` row."""

	return [stepgrid.scales.note_pitch_class(note) for note in stepgrid.constants.notes.ROLL_NOTES]


def allowed_rows (root_pc: int, intervals: typing.Sequence[int]) -> typing.List[int]:

	"""
	Rows of ``ROLL_NOTES`` whose pitch class lies in the scale transposed to ``root_pc``.

	Returned in row order (highest pitch first).
	"""

	pcs = stepgrid.scales.scale_pitch_classes(root_pc, intervals)
	return [row for row, pc in enumerate(row_pitch_classes()) if pc in pcs]


def root_rows (root_pc: int) -> typing.List[int]:

	"""Rows whose pitch class is the root."""

	return [row for row, pc in enumerate(row_pitch_classes()) if pc == root_pc % 12]


def nearest_row (rows: typing.Sequence[int], target: float) -> int:

	"""The row closest to ``target`` (the earlier row wins a tie)."""

	if not rows:
		raise ValueError("No rows to choose from")

	return min(rows, key=lambda row: abs(row - target))


def pick_first (allowed: typing.Sequence[int], rng: random.Random) -> int:

	"""
	Choose an opening row with a bell-shaped weighting around the middle of ``allowed``.

	Each allowed position ``i`` gets weight ``exp(-0.5 * d²)`` where ``d`` is its
	distance from the centre position, keeping openings in a comfortable
	mid-register.
	"""

	if not allowed:
		raise ValueError("No allowed rows")

	center = len(allowed) // 2
	options = [(row, math.exp(-0.5 * (i - center) ** 2)) for i, row in enumerate(allowed)]

	return stepgrid.sequence_utils.weighted_choice(options, rng)


def pick_next (allowed: typing.Sequence[int], previous: int, jump_probability: float, rng: random.Random) -> int:

	"""
	Choose the row after ``previous``.

	With probability ``jump_probability`` (or whenever ``previous`` is not an
	allowed row) leap 3-5 rows up or down and snap to the nearest allowed row.
	Otherwise move to an allowed row within two positions of ``previous`` in
	``allowed``, uniformly; with no such neighbour, repeat ``previous``.
	"""

	if not allowed:
		raise ValueError("No allowed rows")

	if previous not in allowed or rng.random() < jump_probability:
		hop = (-1 if rng.random() < 0.5 else 1) * rng.randint(3, 5)
		return nearest_row(allowed, previous + hop)

	position = allowed.index(previous)
	candidates = [
		allowed[position + offset]
		for offset in (-2, -1, 1, 2)
		if 0 <= position + offset < len(allowed)
	]

	if not candidates:
		return previous

	return rng.choice(candidates)


def _adjacent_row (allowed: typing.Sequence[int], row: int, rng: random.Random) -> int:

	"""A neighbouring allowed row in a random direction, trying the other side at the edges."""

	if row not in allowed:
		return nearest_row(allowed, row)

	position = allowed.index(row)
	first = -1 if rng.random() < 0.5 else 1

	for offset in (first, -first):
		if 0 <= position + offset < len(allowed):
			return allowed[position + offset]

	return row


# ----------------------------------------------------------------------
# Post-processing
# ----------------------------------------------------------------------

def derepeat (
	rows: typing.List[typing.Optional[int]],
	allowed: typing.Sequence[int],
	rng: random.Random,
	probability: float = DEREPEAT_PROBABILITY
) -> typing.List[typing.Optional[int]]:

	"""
	Break up repeated notes.

	Walking through the active steps in order, whenever a note equals the
	previous active note it is moved to an adjacent allowed row with
	``probability``.
	"""

	result = list(rows)
	previous: typing.Optional[int] = None

	for i, row in enumerate(result):

		if row is None:
			continue

		if previous is not None and row == previous and rng.random() < probability:
			result[i] = _adjacent_row(allowed, row, rng)

		previous = result[i]

	return result


def cadence (
	rows: typing.List[typing.Optional[int]],
	root_pc: int,
	allowed: typing.Sequence[int],
	rng: random.Random,
	probability: float = CADENCE_PROBABILITY
) -> typing.List[typing.Optional[int]]:

	"""
	Snap notes in the last two steps to the nearest allowed root row, each with ``probability``.

	A scale that leaves out the root has no such rows, and the notes stay put.
	"""

	roots = [row for row in root_rows(root_pc) if row in allowed]
	result = list(rows)

	if not roots:
		return result

	for i in range(max(0, len(result) - 2), len(result)):
		row = result[i]
		if row is not None and rng.random() < probability:
			result[i] = nearest_row(roots, row)

	return result


def final_rest (
	rows: typing.List[typing.Optional[int]],
	rng: random.Random,
	probability: float = FINAL_REST_PROBABILITY
) -> typing.List[typing.Optional[int]]:

	"""Clear the final step with ``probability``, for phrasing."""

	result = list(rows)

	if result and probability > 0 and rng.random() < probability:
		result[-1] = None

	return result


def to_note_roll (rows: typing.Sequence[typing.Optional[int]]) -> stepgrid.pattern.NoteRoll:

	"""Convert optional rows into roll cells."""

	return tuple(stepgrid.pattern.REST if row is None else stepgrid.pattern.RollNote(row) for row in rows)


# ----------------------------------------------------------------------
# Placement engines
# ----------------------------------------------------------------------

PlacementFn = typing.Callable[["MelodyGenerator", typing.Sequence[bool], typing.List[int], random.Random], typing.List[typing.Optional[int]]]


def _place_walk (generator: "MelodyGenerator", mask: typing.Sequence[bool], allowed: typing.List[int], rng: random.Random) -> typing.List[typing.Optional[int]]:

	rows: typing.List[typing.Optional[int]] = [None] * len(mask)
	previous: typing.Optional[int] = None

	for i, active in enumerate(mask):

		if not active:
			continue

		if previous is None:
			row = pick_first(allowed, rng)
		else:
			row = pick_next(allowed, previous, generator.jump_probability, rng)

		rows[i] = row
		previous = row

	return rows


def chord_rows (allowed: typing.Sequence[int], rng: random.Random) -> typing.List[int]:

	"""
	A 3-5 note chord stacked from every other allowed row, lowest pitch first.

	The chord is anchored near the middle of the register and shifted down
	the list when it would run off the end.
	"""

	# Stacked thirds need 2 * size - 1 allowed rows.
	size = min(rng.randint(3, 5), (len(allowed) + 1) // 2)

	if size < 3:
		# Not enough rows for stacked thirds: use what there is.
		return sorted(allowed, reverse=True)

	span = 2 * (size - 1)
	start = min(allowed.index(pick_first(allowed, rng)), len(allowed) - 1 - span)

	return sorted((allowed[start + 2 * k] for k in range(size)), reverse=True)


def _place_arpeggio (generator: "MelodyGenerator", mask: typing.Sequence[bool], allowed: typing.List[int], rng: random.Random) -> typing.List[typing.Optional[int]]:

	chord = chord_rows(allowed, rng)

	if generator.direction == "down":
		order = list(reversed(chord))
	elif generator.direction == "bounce":
		order = chord + list(reversed(chord))[1:-1]
	else:
		order = chord

	rows: typing.List[typing.Optional[int]] = [None] * len(mask)
	k = 0

	for i, active in enumerate(mask):
		if active:
			rows[i] = order[k % len(order)]
			k += 1

	return rows


def _place_motif (generator: "MelodyGenerator", mask: typing.Sequence[bool], allowed: typing.List[int], rng: random.Random) -> typing.List[typing.Optional[int]]:

	motif = [pick_first(allowed, rng)]

	while len(motif) < 4:
		motif.append(pick_next(allowed, motif[-1], generator.jump_probability, rng))

	rows: typing.List[typing.Optional[int]] = [None] * len(mask)

	for i, active in enumerate(mask):

		if not active:
			continue

		row = motif[i % 4]

		# The first repetition is stated verbatim.
		if i >= 4 and rng.random() < MOTIF_MUTATION_PROBABILITY:
			row = _adjacent_row(allowed, row, rng)

		rows[i] = row

	return rows


def _place_bass (generator: "MelodyGenerator", mask: typing.Sequence[bool], allowed: typing.List[int], rng: random.Random) -> typing.List[typing.Optional[int]]:

	roots = [row for row in root_rows(generator.root_pc) if row in allowed]
	home = max(roots) if roots else allowed[-1]

	rows: typing.List[typing.Optional[int]] = [None] * len(mask)
	position = allowed.index(home)
	started = False

	for i, active in enumerate(mask):

		if not active:
			continue

		if not started:
			started = True
		elif rng.random() < generator.jump_probability / 2:
			hop = (-1 if rng.random() < 0.5 else 1) * rng.randint(5, 7)
			position = allowed.index(nearest_row(allowed, allowed[position] + hop))
		else:
			move = stepgrid.sequence_utils.weighted_choice([(0, 0.3), (-1, 0.3), (1, 0.3), (-2, 0.05), (2, 0.05)], rng)
			position = max(0, min(len(allowed) - 1, position + move))

		rows[i] = allowed[position]

	return rows


_ENGINES: typing.Dict[str, PlacementFn] = {
	"walk": _place_walk,
	"arpeggio": _place_arpeggio,
	"motif": _place_motif,
	"bass": _place_bass,
}


def engine_at (index: int) -> str:

	"""Return an engine name by position, wrapping out-of-range indices."""

	return ENGINES[index % len(ENGINES)]


class MelodyGenerator:

	"""Scale-constrained note roll generator."""

	def __init__ (
		self,
		root: typing.Union[str, int] = "C",
		scale: typing.Union[str, int, typing.Sequence[int]] = stepgrid.scales.DEFAULT_SCALE,
		jump_probability: float = DEFAULT_JUMP_PROBABILITY,
		engine: typing.Union[str, int] = "walk",
		direction: typing.Union[str, int] = "up",
		final_rest_probability: float = 0.0,
	) -> None:

		"""Configure the generator.

		Parameters:
			root: Root as a note name (``"C"``, ``"F#"``, ``"Bb"``, ``"E♭"``) or
				a pitch class 0-11.
			scale: Scale preset name (``"major"``, ``"minor"``, ``"pentatonic"``,
				``"blues"``), an index into them (wrapped), or a list of
				semitone offsets from the root.
			jump_probability: Chance (clamped to 0-1) of a 3-5 row leap
				instead of a small move.
			engine: Placement engine name or index (wrapped).
			direction: Arpeggio direction name or index (wrapped); only used by
				the ``arpeggio`` engine.
			final_rest_probability: Chance of resting the final step.  Use
				``FINAL_REST_PROBABILITY`` for a little phrasing.
		"""

		if isinstance(root, int):
			self.root_pc = root % 12
		else:
			self.root_pc = stepgrid.scales.key_name_to_pc(root)

		if isinstance(scale, int):
			scale = stepgrid.scales.scale_at(scale)

		if isinstance(engine, int):
			engine = engine_at(engine)

		if engine not in _ENGINES:
			raise ValueError(f"Unknown melody engine {engine!r}. Available: {list(ENGINES)}")

		if isinstance(direction, int):
			direction = ARPEGGIO_DIRECTIONS[direction % len(ARPEGGIO_DIRECTIONS)]

		if direction not in ARPEGGIO_DIRECTIONS:
			raise ValueError(f"Unknown arpeggio direction {direction!r}. Available: {list(ARPEGGIO_DIRECTIONS)}")

		if isinstance(scale, str):
			self.scale = scale
			self.intervals = stepgrid.scales.get_scale(scale)
		else:
			self.scale = "custom"
			self.intervals = [int(interval) for interval in scale]

		self.jump_probability = stepgrid.sequence_utils.clamp(jump_probability, 0.0, 1.0)
		self.engine = engine
		self.direction = direction
		self.final_rest_probability = stepgrid.sequence_utils.clamp(final_rest_probability, 0.0, 1.0)


	@property
	def allowed (self) -> typing.List[int]:

		"""Allowed rows for the current root and scale."""

		return allowed_rows(self.root_pc, self.intervals)


	def generate (self, mask: typing.Sequence[bool], rng: random.Random) -> stepgrid.pattern.NoteRoll:

		"""Produce a complete note roll, one cell per mask step.

		Returns all rests when the scale/root leaves no allowed rows.
		"""

		allowed = self.allowed

		if not allowed:
			logger.warning(f"No roll rows fit {self.scale} on pitch class {self.root_pc} - generating silence")
			return to_note_roll([None] * len(mask))

		rows = _ENGINES[self.engine](self, mask, allowed, rng)
		rows = derepeat(rows, allowed, rng)
		rows = cadence(rows, self.root_pc, allowed, rng)
		rows = final_rest(rows, rng, self.final_rest_probability)

		return to_note_roll(rows)


def resolve_hits (
	density: typing.Optional[float] = None,
	hits: typing.Optional[int] = None,
	steps: int = stepgrid.constants.STEPS
) -> int:

	"""
	Work out a hit count from an explicit ``hits`` or a 0-1 ``density``.

	``hits`` wins when both are given; with neither, ``DEFAULT_DENSITY`` applies.
	"""

	if hits is not None:
		return max(0, min(steps, int(round(hits))))

	if density is None:
		density = DEFAULT_DENSITY

	return stepgrid.rhythm.hits_for_density(density, steps)


def random_melody (
	rng: random.Random,
	density: typing.Optional[float] = None,
	hits: typing.Optional[int] = None,
	root: typing.Union[str, int] = "C",
	scale: typing.Union[str, int] = stepgrid.scales.DEFAULT_SCALE,
	jump_probability: float = DEFAULT_JUMP_PROBABILITY,
	engine: typing.Union[str, int] = "walk",
	rhythm_style: typing.Union[str, int] = "euclidean",
) -> stepgrid.pattern.NoteRoll:

	"""
	Generate a rhythm mask and a melody over it in one go.

	Example:
		```python
		roll = stepgrid.melody.random_melody(random.Random(1), density=0.75, root="F#", scale="blues")
		```
	"""

	mask = stepgrid.rhythm.generate(rhythm_style, resolve_hits(density, hits), rng)
	generator = MelodyGenerator(root=root, scale=scale, jump_probability=jump_probability, engine=engine)

	return generator.generate(mask, rng)
