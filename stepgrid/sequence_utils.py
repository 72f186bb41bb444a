import random
import typing

T = typing.TypeVar("T")

Mask = typing.List[bool]


def generate_bucket_sequence (steps: int, hits: int) -> Mask:

	"""
	Generate an evenly spread step mask with the bucket (Bresenham) algorithm.

	A running bucket gains ``hits`` every step; whenever it overflows ``steps``
	the step fires and the bucket is emptied by ``steps``.  Exactly ``hits``
	steps fire, the last one always on the final step.

	Example:
		```python
		generate_bucket_sequence(16, 4)
		# fires on steps 3, 7, 11 and 15
		```
	"""

	if steps <= 0:
		raise ValueError("Steps must be positive")

	hits = max(0, min(steps, int(round(hits))))

	if hits == 0:
		return [False] * steps

	if hits == steps:
		return [True] * steps

	sequence = [False] * steps
	bucket = 0

	for i in range(steps):
		bucket += hits
		if bucket >= steps:
			bucket -= steps
			sequence[i] = True

	return sequence


def rotate (sequence: typing.Sequence[T], amount: int) -> typing.List[T]:

	"""Rotate a sequence left by ``amount`` steps (step ``i`` takes the value of step ``i + amount``)."""

	if not sequence:
		return []

	length = len(sequence)
	return [sequence[(i + amount) % length] for i in range(length)]


def sequence_to_indices (sequence: typing.Sequence[bool]) -> typing.List[int]:

	"""Extract step indices where hits occur in a mask."""

	return [i for i, v in enumerate(sequence) if v]


def indices_to_sequence (indices: typing.Iterable[int], steps: int) -> Mask:

	"""Build a mask of ``steps`` entries with hits at the given indices (wrapped into range)."""

	sequence = [False] * steps

	for index in indices:
		sequence[index % steps] = True

	return sequence


def weighted_choice (options: typing.List[typing.Tuple[T, float]], rng: random.Random) -> T:

	"""Pick one item from a list of (value, weight) pairs.

	Weights are relative - they don't need to sum to 1.0. Higher weight means
	higher probability of selection.

	Parameters:
		options: List of `(value, weight)` tuples
		rng: Random number generator instance

	Example:
		```python
		row = stepgrid.sequence_utils.weighted_choice([
			(4, 0.5),   # row 4: 50%
			(5, 0.3),   # row 5: 30%
			(7, 0.2),   # row 7: 20%
		], rng)
		```
	"""

	if not options:
		raise ValueError("Options list cannot be empty")

	values, weights = zip(*options)
	total = sum(weights)

	if total <= 0:
		raise ValueError("Total weight must be positive")

	threshold = rng.random() * total
	cumulative = 0.0

	for value, weight in options:
		cumulative += weight
		if cumulative >= threshold:
			return value

	return options[-1][0]


def coin_flips (steps: int, density: float, rng: random.Random) -> Mask:

	"""Return a mask where each step is independently active with probability ``density``."""

	return [rng.random() < density for _ in range(steps)]


def clamp (value: float, low: float, high: float) -> float:

	"""Clamp a value into ``[low, high]``."""

	return max(low, min(high, value))
