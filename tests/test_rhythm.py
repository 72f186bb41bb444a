import random

import pytest

import stepgrid.rhythm
import stepgrid.sequence_utils


def test_euclid_is_unrotated () -> None:

	"""The base Euclidean mask for four hits lands on 3, 7, 11 and 15."""

	mask = stepgrid.rhythm.euclid(4)

	assert stepgrid.sequence_utils.sequence_to_indices(mask) == [3, 7, 11, 15]


def test_euclidean_keeps_hit_count_over_seeds () -> None:

	"""A random rotation never changes how many steps fire."""

	for seed in range(50):
		rng = random.Random(seed)
		for hits in range(17):
			assert sum(stepgrid.rhythm.euclidean(hits, 16, rng)) == hits


def test_euclidean_rotation_is_a_rotation () -> None:

	"""The styled mask is some rotation of the base mask."""

	base = stepgrid.rhythm.euclid(5)
	rotations = [stepgrid.sequence_utils.rotate(base, amount) for amount in range(16)]

	for seed in range(20):
		assert stepgrid.rhythm.euclidean(5, 16, random.Random(seed)) in rotations


@pytest.mark.parametrize("style", ["euclidean", "offbeat", "syncopated", "scatter", "backbeat"])
def test_styles_produce_exact_hit_counts (style: str) -> None:

	"""Every built-in style returns sixteen steps with exactly the requested hits."""

	for seed in range(30):
		rng = random.Random(seed)
		for hits in (0, 1, 2, 4, 7, 12, 16):
			mask = stepgrid.rhythm.generate(style, hits, rng)
			assert len(mask) == 16
			assert sum(mask) == hits


def test_offbeat_takes_offbeats_first () -> None:

	"""Up to four hits sit on the off-beat eighths."""

	mask = stepgrid.rhythm.generate("offbeat", 4, random.Random(0))

	assert stepgrid.sequence_utils.sequence_to_indices(mask) == [2, 6, 10, 14]


def test_backbeat_is_not_rotated () -> None:

	"""Two backbeat hits are always on beats two and four."""

	for seed in range(10):
		mask = stepgrid.rhythm.generate("backbeat", 2, random.Random(seed))
		assert stepgrid.sequence_utils.sequence_to_indices(mask) == [4, 12]


def test_syncopated_rotation_is_small () -> None:

	"""The syncopated style only shifts its pattern by 0, 1 or 2 steps."""

	base = stepgrid.rhythm.syncopated(6, 16, _FixedChoice(0))
	allowed = [stepgrid.sequence_utils.rotate(base, amount) for amount in (0, 1, 2)]

	for seed in range(30):
		assert stepgrid.rhythm.generate("syncopated", 6, random.Random(seed)) in allowed


def test_style_index_wraps () -> None:

	"""Integer styles wrap around the registry."""

	names = stepgrid.rhythm.style_names()

	assert stepgrid.rhythm.style_at(len(names)) == names[0]
	assert stepgrid.rhythm.style_at(-1) == names[-1]


def test_generate_by_index_matches_name () -> None:

	"""Generating by index is the same as generating by the name at that index."""

	by_index = stepgrid.rhythm.generate(3, 5, random.Random(9))
	by_name = stepgrid.rhythm.generate(stepgrid.rhythm.style_at(3), 5, random.Random(9))

	assert by_index == by_name


def test_unknown_style_raises () -> None:

	"""Unknown style names are rejected."""

	with pytest.raises(ValueError, match="Unknown rhythm style"):
		stepgrid.rhythm.generate("polka", 4, random.Random(0))


def test_hits_are_clamped () -> None:

	"""Hit counts outside 0-16 are clamped."""

	assert sum(stepgrid.rhythm.generate("scatter", 40, random.Random(0))) == 16
	assert sum(stepgrid.rhythm.generate("scatter", -3, random.Random(0))) == 0


def test_same_seed_same_mask () -> None:

	"""A seeded rng reproduces a mask exactly."""

	a = stepgrid.rhythm.generate("scatter", 6, random.Random(42))
	b = stepgrid.rhythm.generate("scatter", 6, random.Random(42))

	assert a == b


def test_density_mask_extremes () -> None:

	"""Density is clamped and 0 / 1 give empty / full masks."""

	rng = random.Random(1)

	assert stepgrid.rhythm.density_mask(-1.0, rng) == [False] * 16
	assert stepgrid.rhythm.density_mask(2.0, rng) == [True] * 16


def test_hits_for_density () -> None:

	"""Density converts to a rounded hit count."""

	assert stepgrid.rhythm.hits_for_density(0.5) == 8
	assert stepgrid.rhythm.hits_for_density(0.42) == 7
	assert stepgrid.rhythm.hits_for_density(1.5) == 16


def test_register_style () -> None:

	"""Custom styles can be registered and used by name."""

	stepgrid.rhythm.register_style("first_steps", lambda hits, steps, rng: [i < hits for i in range(steps)])

	try:
		mask = stepgrid.rhythm.generate("first_steps", 3, random.Random(0))
		assert stepgrid.sequence_utils.sequence_to_indices(mask) == [0, 1, 2]
	finally:
		del stepgrid.rhythm._STYLES["first_steps"]


class _FixedChoice (random.Random):

	"""Random source whose choice() always returns the given element."""

	def __init__ (self, value: int) -> None:
		super().__init__(0)
		self.value = value

	def choice (self, seq):  # type: ignore[override]
		return self.value
