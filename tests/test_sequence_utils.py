import random

import pytest

import stepgrid.sequence_utils


def test_bucket_sequence_four_hits () -> None:

	"""Four hits in sixteen steps fire on the last step of each beat."""

	mask = stepgrid.sequence_utils.generate_bucket_sequence(16, 4)

	assert stepgrid.sequence_utils.sequence_to_indices(mask) == [3, 7, 11, 15]


def test_bucket_sequence_hit_count () -> None:

	"""Every hit count from 0 to 16 produces exactly that many hits."""

	for hits in range(17):
		mask = stepgrid.sequence_utils.generate_bucket_sequence(16, hits)
		assert len(mask) == 16
		assert sum(mask) == hits


def test_bucket_sequence_extremes () -> None:

	"""Zero hits is all rests, sixteen hits is all hits."""

	assert stepgrid.sequence_utils.generate_bucket_sequence(16, 0) == [False] * 16
	assert stepgrid.sequence_utils.generate_bucket_sequence(16, 16) == [True] * 16


def test_bucket_sequence_rejects_zero_steps () -> None:

	"""A mask needs at least one step."""

	with pytest.raises(ValueError):
		stepgrid.sequence_utils.generate_bucket_sequence(0, 0)


def test_rotate_preserves_count () -> None:

	"""Rotation by any amount keeps the number of hits."""

	mask = stepgrid.sequence_utils.generate_bucket_sequence(16, 5)

	for amount in range(16):
		assert sum(stepgrid.sequence_utils.rotate(mask, amount)) == 5


def test_rotate_direction () -> None:

	"""Rotation moves step i + amount to step i."""

	assert stepgrid.sequence_utils.rotate([1, 2, 3, 4], 1) == [2, 3, 4, 1]
	assert stepgrid.sequence_utils.rotate([1, 2, 3, 4], -1) == [4, 1, 2, 3]


def test_indices_round_trip () -> None:

	"""indices_to_sequence and sequence_to_indices invert each other."""

	mask = stepgrid.sequence_utils.indices_to_sequence([0, 5, 9], 16)

	assert stepgrid.sequence_utils.sequence_to_indices(mask) == [0, 5, 9]


def test_indices_wrap () -> None:

	"""Out-of-range indices wrap into the mask."""

	mask = stepgrid.sequence_utils.indices_to_sequence([17], 16)

	assert stepgrid.sequence_utils.sequence_to_indices(mask) == [1]


def test_weighted_choice_ignores_zero_weight () -> None:

	"""An option with zero weight is never picked."""

	rng = random.Random(1)

	for _ in range(200):
		assert stepgrid.sequence_utils.weighted_choice([("a", 0.0), ("b", 1.0)], rng) == "b"


def test_weighted_choice_empty_raises () -> None:

	"""An empty option list is an error."""

	with pytest.raises(ValueError):
		stepgrid.sequence_utils.weighted_choice([], random.Random(0))


def test_coin_flips_extremes () -> None:

	"""Density 0 gives no hits and density 1 gives all hits."""

	rng = random.Random(5)

	assert stepgrid.sequence_utils.coin_flips(16, 0.0, rng) == [False] * 16
	assert stepgrid.sequence_utils.coin_flips(16, 1.0, rng) == [True] * 16
