"""The owned, persisted pattern state.

:class:`PatternStore` holds the current :class:`~stepgrid.pattern.Pattern`
snapshot, the sample markers and the mix levels.  Every edit replaces the
snapshot, writes it to storage and raises an event:

- ``"change"`` with the new pattern
- ``"markers"`` with the new :class:`~stepgrid.sampler.Markers`
- ``"mix"`` with ``(channel, db)``

Generators run here too, on demand, so their output goes through the same
replace-persist-notify path as a manual edit.
"""

import logging
import random
import typing

import stepgrid.constants
import stepgrid.event_emitter
import stepgrid.melody
import stepgrid.mix
import stepgrid.pattern
import stepgrid.persistence
import stepgrid.rhythm
import stepgrid.sampler


logger = logging.getLogger(__name__)


# Per-track densities used by randomize_all().
RANDOMIZE_ALL_DENSITIES: typing.Dict[str, float] = {
	stepgrid.constants.TRACK_KICK: 0.35,
	stepgrid.constants.TRACK_SNARE: 0.25,
	stepgrid.constants.TRACK_HIHAT: 0.5,
	stepgrid.constants.TRACK_PERC: 0.2,
}

RANDOMIZE_ALL_MELODY_DENSITY = 0.75
RANDOMIZE_DRUM_DENSITY = 0.3


class PatternStore:

	"""
	Owner of the pattern, markers and mix levels.

	Example:
		```python
		store = PatternStore(stepgrid.persistence.FileStore("~/.stepgrid"))
		store.load()
		store.toggle_drum("kick", 0)
		store.generate_melody(random.Random(3), root="A", scale="minor")
		```
	"""

	def __init__ (
		self,
		storage: typing.Optional[stepgrid.persistence.KeyValueStore] = None,
		events: typing.Optional[stepgrid.event_emitter.EventEmitter] = None,
	) -> None:

		self.storage: stepgrid.persistence.KeyValueStore = storage if storage is not None else stepgrid.persistence.MemoryStore()
		self.events = events if events is not None else stepgrid.event_emitter.EventEmitter()

		self._pattern = stepgrid.pattern.Pattern.empty()
		self._markers = stepgrid.sampler.Markers()
		self._mix_levels: typing.Dict[str, float] = {channel: stepgrid.mix.DEFAULT_DB for channel in stepgrid.constants.CHANNELS}

	# ------------------------------------------------------------------
	# Lifecycle
	# ------------------------------------------------------------------

	def load (self) -> stepgrid.pattern.Pattern:

		"""
		Read the saved pattern, markers and mix levels.

		Missing or malformed data falls back to defaults; this never raises
		on bad stored content.
		"""

		self._pattern = stepgrid.persistence.load_pattern(self.storage)
		self._markers = stepgrid.sampler.Markers(stepgrid.persistence.load_markers(self.storage))

		for channel, db in stepgrid.persistence.load_mix_levels(self.storage).items():
			self._mix_levels[channel] = stepgrid.mix.clamp_db(db)

		self.events.emit_sync("markers", self._markers)
		self.events.emit_sync("change", self._pattern)

		return self._pattern

	def save (self) -> None:

		stepgrid.persistence.save_pattern(self.storage, self._pattern)
		stepgrid.persistence.save_markers(self.storage, self._markers)
		stepgrid.persistence.save_mix_levels(self.storage, self._mix_levels)

	# ------------------------------------------------------------------
	# Reads
	# ------------------------------------------------------------------

	@property
	def pattern (self) -> stepgrid.pattern.Pattern:
		return self._pattern

	@property
	def markers (self) -> stepgrid.sampler.Markers:
		return self._markers

	@property
	def mix_levels (self) -> typing.Dict[str, float]:
		return dict(self._mix_levels)

	# ------------------------------------------------------------------
	# Pattern edits
	# ------------------------------------------------------------------

	def replace (self, pattern: stepgrid.pattern.Pattern) -> stepgrid.pattern.Pattern:

		"""
		Install a new snapshot, persist it and raise ``"change"``.

		Replacing with an equal pattern does nothing.
		"""

		if pattern == self._pattern:
			return self._pattern

		self._pattern = pattern
		stepgrid.persistence.save_pattern(self.storage, pattern)
		self.events.emit_sync("change", pattern)

		return pattern

	def toggle_drum (self, track: str, step: int) -> stepgrid.pattern.Pattern:
		return self.replace(self._pattern.toggle_drum(track, step))

	def set_drum_track (self, track: str, mask: typing.Sequence[bool]) -> stepgrid.pattern.Pattern:
		return self.replace(self._pattern.set_drum_track(track, mask))

	def clear_drum (self, track: str) -> stepgrid.pattern.Pattern:
		return self.replace(self._pattern.clear_drum(track))

	def toggle_roll (self, row: int, step: int) -> stepgrid.pattern.Pattern:
		return self.replace(self._pattern.toggle_roll(row, step))

	def set_note_roll (self, roll: typing.Sequence[stepgrid.pattern.RollCell]) -> stepgrid.pattern.Pattern:
		return self.replace(self._pattern.set_note_roll(roll))

	def clear_note_roll (self) -> stepgrid.pattern.Pattern:
		return self.replace(self._pattern.clear_note_roll())

	def toggle_sample (self, marker: int, step: int) -> stepgrid.pattern.Pattern:
		return self.replace(self._pattern.toggle_sample(marker, step))

	def set_sample_roll (self, roll: typing.Sequence[stepgrid.pattern.SampleCell]) -> stepgrid.pattern.Pattern:
		return self.replace(self._pattern.set_sample_roll(roll))

	def clear_sample_roll (self) -> stepgrid.pattern.Pattern:
		return self.replace(self._pattern.clear_sample_roll())

	def clear_all (self) -> stepgrid.pattern.Pattern:

		"""Empty every lane: drums, synth roll and sample roll."""

		return self.replace(stepgrid.pattern.Pattern.empty())

	# ------------------------------------------------------------------
	# Generators
	# ------------------------------------------------------------------

	def randomize_drum (self, track: str, rng: random.Random, density: float = RANDOMIZE_DRUM_DENSITY) -> stepgrid.pattern.Pattern:

		"""Fill one drum track with independent coin flips."""

		return self.replace(self._pattern.set_drum_track(track, stepgrid.rhythm.density_mask(density, rng)))

	def randomize_all (self, rng: random.Random) -> stepgrid.pattern.Pattern:

		"""
		Start from an empty pattern and randomise the drums and synth roll in one edit.

		Drums use per-track coin-flip densities; the melody uses the default
		scale at a high density.  The sample roll ends up empty.
		"""

		pattern = stepgrid.pattern.Pattern.empty()

		for track, density in RANDOMIZE_ALL_DENSITIES.items():
			pattern = pattern.set_drum_track(track, stepgrid.rhythm.density_mask(density, rng))

		roll = stepgrid.melody.random_melody(rng, density=RANDOMIZE_ALL_MELODY_DENSITY)

		return self.replace(pattern.set_note_roll(roll))

	def generate_rhythm (
		self,
		track: str,
		style: typing.Union[str, int],
		hits: int,
		rng: random.Random,
	) -> stepgrid.pattern.Pattern:

		"""Replace a drum track with a styled rhythm (see :mod:`stepgrid.rhythm`)."""

		return self.replace(self._pattern.set_drum_track(track, stepgrid.rhythm.generate(style, hits, rng)))

	def generate_melody (
		self,
		rng: random.Random,
		density: typing.Optional[float] = None,
		hits: typing.Optional[int] = None,
		rhythm_style: typing.Union[str, int] = "euclidean",
		**options: typing.Any,
	) -> stepgrid.pattern.Pattern:

		"""
		Replace the synth roll with a generated melody.

		``options`` go to :class:`~stepgrid.melody.MelodyGenerator` (``root``,
		``scale``, ``jump_probability``, ``engine``, ``direction``,
		``final_rest_probability``).
		"""

		mask = stepgrid.rhythm.generate(rhythm_style, stepgrid.melody.resolve_hits(density, hits), rng)
		roll = stepgrid.melody.MelodyGenerator(**options).generate(mask, rng)

		return self.replace(self._pattern.set_note_roll(roll))

	def generate_slices (
		self,
		rng: random.Random,
		hits: int = 8,
		rhythm_style: typing.Union[str, int] = "euclidean",
		order: str = "sequential",
	) -> stepgrid.pattern.Pattern:

		"""
		Replace the sample roll, spreading the captured markers over a rhythm.

		With no markers the roll is cleared.
		"""

		mask = stepgrid.rhythm.generate(rhythm_style, hits, rng)
		indices = stepgrid.sampler.assign_slices(mask, len(self._markers), rng, order)
		roll = [stepgrid.pattern.REST if index is None else stepgrid.pattern.SliceMarker(index) for index in indices]

		return self.replace(self._pattern.set_sample_roll(roll))

	# ------------------------------------------------------------------
	# Markers
	# ------------------------------------------------------------------

	def _set_markers (self, markers: stepgrid.sampler.Markers) -> stepgrid.sampler.Markers:

		if markers != self._markers:
			self._markers = markers
			stepgrid.persistence.save_markers(self.storage, markers)
			self.events.emit_sync("markers", markers)

		return self._markers

	def add_marker (self, time: float) -> stepgrid.sampler.Markers:

		"""Capture a slice point.  Ignored once ``MAX_MARKERS`` are set."""

		if self._markers.full:
			logger.info(f"Marker limit ({stepgrid.constants.MAX_MARKERS}) reached - ignoring")
			return self._markers

		return self._set_markers(self._markers.add(time))

	def set_markers (self, times: typing.Iterable[float]) -> stepgrid.sampler.Markers:
		return self._set_markers(stepgrid.sampler.Markers(times))

	def clear_markers (self) -> stepgrid.sampler.Markers:
		return self._set_markers(self._markers.clear())

	# ------------------------------------------------------------------
	# Mix
	# ------------------------------------------------------------------

	def set_mix_level (self, channel: str, db: float) -> float:

		"""Store a channel level (clamped), persist it and raise ``"mix"``."""

		if channel not in stepgrid.constants.CHANNELS:
			raise ValueError(f"Unknown mix channel {channel!r}. Available: {list(stepgrid.constants.CHANNELS)}")

		db = stepgrid.mix.clamp_db(db)
		self._mix_levels[channel] = db

		stepgrid.persistence.save_mix_levels(self.storage, self._mix_levels)
		self.events.emit_sync("mix", channel, db)

		return db
