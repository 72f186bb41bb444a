import random

import pytest

import stepgrid.mix
import stepgrid.pattern
import stepgrid.pattern_store
import stepgrid.persistence


def test_edit_persists_and_notifies (store: stepgrid.pattern_store.PatternStore) -> None:

	"""Every edit is saved and raises a change event with the new snapshot."""

	changes: list[stepgrid.pattern.Pattern] = []
	store.events.on("change", changes.append)

	pattern = store.toggle_drum("kick", 0)

	assert changes == [pattern]
	assert stepgrid.persistence.load_pattern(store.storage) == pattern


def test_equal_replace_is_silent (store: stepgrid.pattern_store.PatternStore) -> None:

	"""Clearing an already empty lane raises nothing."""

	changes: list[stepgrid.pattern.Pattern] = []
	store.events.on("change", changes.append)

	store.clear_note_roll()

	assert changes == []


def test_invalid_edit_leaves_state (store: stepgrid.pattern_store.PatternStore) -> None:

	"""A rejected edit neither changes nor saves the pattern."""

	with pytest.raises(ValueError):
		store.toggle_roll(12, 0)

	assert store.pattern.is_empty()
	assert store.storage.get(stepgrid.persistence.PATTERN_KEY) is None


def test_load_restores_saved_state () -> None:

	"""A new store over the same storage sees the saved pattern and mix levels."""

	storage = stepgrid.persistence.MemoryStore()
	first = stepgrid.pattern_store.PatternStore(storage)
	first.toggle_sample(1, 5)
	first.set_mix_level("perc", -12)

	second = stepgrid.pattern_store.PatternStore(storage)
	loaded = second.load()

	assert loaded.sample_roll[5] == stepgrid.pattern.SliceMarker(1)
	assert second.mix_levels["perc"] == -12.0


def test_clear_all_empties_every_lane (store: stepgrid.pattern_store.PatternStore) -> None:

	"""clear_all resets drums, notes and samples together."""

	store.toggle_drum("snare", 4)
	store.toggle_roll(3, 4)
	store.toggle_sample(0, 4)

	assert store.clear_all().is_empty()


def test_randomize_all_is_one_edit (store: stepgrid.pattern_store.PatternStore) -> None:

	"""randomize_all raises a single change and leaves the sample roll empty."""

	store.toggle_sample(2, 9)
	changes: list[stepgrid.pattern.Pattern] = []
	store.events.on("change", changes.append)

	pattern = store.randomize_all(random.Random(8))

	assert len(changes) == 1
	assert pattern.sample_roll == stepgrid.pattern.empty_sample_roll()
	assert sum(isinstance(cell, stepgrid.pattern.RollNote) for cell in pattern.note_roll) == 12


def test_randomize_drum_only_touches_one_track (store: stepgrid.pattern_store.PatternStore) -> None:

	"""Randomising a drum track leaves the other tracks as they were."""

	store.toggle_drum("hihat", 1)

	pattern = store.randomize_drum("kick", random.Random(1), density=1.0)

	assert all(pattern.drum_hits["kick"])
	assert pattern.drum_hits["hihat"][1] is True


def test_generate_rhythm (store: stepgrid.pattern_store.PatternStore) -> None:

	"""A styled rhythm replaces the chosen track with exactly the requested hits."""

	pattern = store.generate_rhythm("perc", "backbeat", 2, random.Random(0))

	assert [i for i, hit in enumerate(pattern.drum_hits["perc"]) if hit] == [4, 12]


def test_generate_melody (store: stepgrid.pattern_store.PatternStore) -> None:

	"""A generated melody has the requested number of notes."""

	pattern = store.generate_melody(random.Random(4), hits=6, root="E", scale="pentatonic")

	assert sum(isinstance(cell, stepgrid.pattern.RollNote) for cell in pattern.note_roll) == 6


def test_generate_slices_uses_markers (store: stepgrid.pattern_store.PatternStore) -> None:

	"""Generated slices only reference captured markers; with none the roll is empty."""

	assert store.generate_slices(random.Random(2)).sample_roll == stepgrid.pattern.empty_sample_roll()

	store.set_markers([0.0, 0.4, 0.8])
	pattern = store.generate_slices(random.Random(2), hits=8)
	markers = [cell.index for cell in pattern.sample_roll if isinstance(cell, stepgrid.pattern.SliceMarker)]

	assert len(markers) == 8
	assert markers == [0, 1, 2, 0, 1, 2, 0, 1]


def test_marker_cap_is_a_noop (store: stepgrid.pattern_store.PatternStore) -> None:

	"""Adding past the cap changes nothing and raises no event."""

	store.set_markers([float(i) for i in range(16)])
	events: list[object] = []
	store.events.on("markers", events.append)

	markers = store.add_marker(99.0)

	assert len(markers) == 16
	assert 99.0 not in markers.times
	assert events == []


def test_markers_notify (store: stepgrid.pattern_store.PatternStore) -> None:

	"""Adding and clearing markers raise events."""

	events: list[object] = []
	store.events.on("markers", events.append)

	store.add_marker(0.25)
	store.clear_markers()
	store.clear_markers()

	assert len(events) == 2
	assert len(store.markers) == 0


def test_markers_persist_and_reload (store: stepgrid.pattern_store.PatternStore) -> None:

	"""Every marker change is saved, and a new store over the same storage restores them."""

	store.add_marker(0.5)
	store.add_marker(0.25)

	assert stepgrid.persistence.load_markers(store.storage) == (0.25, 0.5)

	restored = stepgrid.pattern_store.PatternStore(store.storage)
	restored.load()

	assert restored.markers.times == (0.25, 0.5)

	store.clear_markers()

	assert stepgrid.persistence.load_markers(store.storage) == ()


def test_load_survives_out_of_range_levels () -> None:

	"""A saved level too large for a float is skipped and the rest still load."""

	storage = stepgrid.persistence.MemoryStore({"mix_v1": b'{"kick": 1' + b"0" * 400 + b', "hihat": -9}'})
	store = stepgrid.pattern_store.PatternStore(storage)

	store.load()

	assert store.mix_levels["hihat"] == -9.0
	assert store.mix_levels["kick"] == stepgrid.mix.DEFAULT_DB


def test_set_mix_level (store: stepgrid.pattern_store.PatternStore) -> None:

	"""Mix levels are clamped, persisted and announced."""

	events: list[tuple[str, float]] = []
	store.events.on("mix", lambda channel, db: events.append((channel, db)))

	assert store.set_mix_level("synth", 40) == 6.0
	assert events == [("synth", 6.0)]
	assert stepgrid.persistence.load_mix_levels(store.storage)["synth"] == 6.0

	with pytest.raises(ValueError):
		store.set_mix_level("cowbell", 0)
