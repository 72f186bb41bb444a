"""Pattern persistence.

Patterns are saved as JSON under a versioned key in a small key/value byte
store.  The current payload looks like::

	{
		"version": 2,
		"drumHits": {"kick": [true, false, ...], ...},
		"noteRoll": [null, 4, null, ...],
		"sampleRoll": [null, null, 0, ...]
	}

Two older layouts are still read:

- the same document under the key names ``drums`` / ``synthRoll`` /
  ``samplerRoll``, possibly without a sampler roll, and
- the drum-only layout under the ``patterns`` key, which is a bare
  ``{trackId: bool[16]}`` object.

Loading never fails: anything missing or malformed falls back to an empty
pattern with a warning in the log.
"""

import json
import logging
import math
import os
import pathlib
import typing

import stepgrid.constants
import stepgrid.pattern


logger = logging.getLogger(__name__)


PATTERN_KEY = "patterns_v2"
LEGACY_PATTERN_KEY = "patterns"
MIX_KEY = "mix_v1"
MARKERS_KEY = "markers_v1"

FORMAT_VERSION = 2


class PatternDecodeError (ValueError):

	"""
	Raised when a persisted payload cannot be turned into a valid pattern.
	"""


@typing.runtime_checkable
class KeyValueStore (typing.Protocol):

	"""
	Byte storage keyed by short strings.
	"""

	def get (self, key: str) -> typing.Optional[bytes]:
		...

	def set (self, key: str, value: bytes) -> None:
		...


class MemoryStore:

	"""A dict-backed store, used by tests and when no storage directory is configured."""

	def __init__ (self, initial: typing.Optional[typing.Dict[str, bytes]] = None) -> None:

		self.data: typing.Dict[str, bytes] = dict(initial or {})

	def get (self, key: str) -> typing.Optional[bytes]:
		return self.data.get(key)

	def set (self, key: str, value: bytes) -> None:
		self.data[key] = value


class FileStore:

	"""
	Stores each key as a file in a directory.

	Writes go to a temporary file that is then renamed over the target, so a
	crash mid-write leaves the previous value intact.
	"""

	def __init__ (self, directory: typing.Union[str, os.PathLike]) -> None:

		self.directory = pathlib.Path(directory)
		self.directory.mkdir(parents=True, exist_ok=True)

	def _path (self, key: str) -> pathlib.Path:

		if not key or "/" in key or "\\" in key or key.startswith("."):
			raise ValueError(f"Invalid store key: {key!r}")

		return self.directory / f"{key}.json"

	def get (self, key: str) -> typing.Optional[bytes]:

		path = self._path(key)

		try:
			return path.read_bytes()
		except FileNotFoundError:
			return None

	def set (self, key: str, value: bytes) -> None:

		path = self._path(key)
		tmp = path.with_suffix(".tmp")
		tmp.write_bytes(value)
		os.replace(tmp, path)


# ----------------------------------------------------------------------
# Codec
# ----------------------------------------------------------------------

def pattern_to_dict (pattern: stepgrid.pattern.Pattern) -> typing.Dict[str, typing.Any]:

	"""Convert a pattern to a JSON-ready dict (rests become ``None``)."""

	note_roll = [cell.row if isinstance(cell, stepgrid.pattern.RollNote) else None for cell in pattern.note_roll]
	sample_roll = [cell.index if isinstance(cell, stepgrid.pattern.SliceMarker) else None for cell in pattern.sample_roll]

	return {
		"version": FORMAT_VERSION,
		"drumHits": {track: list(pattern.drum_hits[track]) for track in stepgrid.constants.TRACKS},
		"noteRoll": note_roll,
		"sampleRoll": sample_roll,
	}


def _decode_drums (raw: typing.Any) -> typing.Dict[str, typing.Tuple[bool, ...]]:

	if not isinstance(raw, dict):
		raise PatternDecodeError("Drum grid must be an object")

	drums = {}

	for track in stepgrid.constants.TRACKS:

		grid = raw.get(track)

		if not isinstance(grid, list) or len(grid) != stepgrid.constants.STEPS:
			raise PatternDecodeError(f"Drum track {track!r} missing or not {stepgrid.constants.STEPS} steps")

		if not all(isinstance(hit, bool) for hit in grid):
			raise PatternDecodeError(f"Drum track {track!r} must contain booleans")

		drums[track] = tuple(grid)

	return drums


def _decode_roll (raw: typing.Any, name: str, make_cell: typing.Callable[[int], typing.Any]) -> typing.List[typing.Any]:

	if raw is None:
		return [stepgrid.pattern.REST] * stepgrid.constants.STEPS

	if not isinstance(raw, list) or len(raw) != stepgrid.constants.STEPS:
		raise PatternDecodeError(f"{name} must be a list of {stepgrid.constants.STEPS} entries")

	cells = []

	for value in raw:

		if value is None:
			cells.append(stepgrid.pattern.REST)
			continue

		# bool is an int subclass, and never a valid index.
		if isinstance(value, bool) or not isinstance(value, int):
			raise PatternDecodeError(f"{name} entries must be integers or null, got {value!r}")

		try:
			cells.append(make_cell(value))
		except ValueError as exc:
			raise PatternDecodeError(str(exc)) from exc

	return cells


def pattern_from_dict (data: typing.Any) -> stepgrid.pattern.Pattern:

	"""
	Build a pattern from a decoded JSON document.

	Accepts the current layout and the older ``drums``/``synthRoll``/``samplerRoll``
	names.  A missing sample roll is filled with rests.

	Raises:
		PatternDecodeError: If the document is not a valid pattern.
	"""

	if not isinstance(data, dict):
		raise PatternDecodeError("Pattern payload must be an object")

	version = data.get("version", FORMAT_VERSION)

	if version != FORMAT_VERSION:
		raise PatternDecodeError(f"Unsupported pattern format version: {version!r}")

	drums = _decode_drums(data.get("drumHits", data.get("drums")))

	if "noteRoll" in data:
		raw_notes = data["noteRoll"]
	elif "synthRoll" in data:
		raw_notes = data["synthRoll"]
	else:
		raise PatternDecodeError("Pattern payload has no note roll")

	note_roll = _decode_roll(raw_notes, "Note roll", stepgrid.pattern.RollNote)
	sample_roll = _decode_roll(data.get("sampleRoll", data.get("samplerRoll")), "Sample roll", stepgrid.pattern.SliceMarker)

	return stepgrid.pattern.Pattern(drum_hits=drums, note_roll=note_roll, sample_roll=sample_roll)


def pattern_from_legacy_dict (data: typing.Any) -> stepgrid.pattern.Pattern:

	"""Build a pattern from the drum-only layout, with empty note and sample rolls."""

	return stepgrid.pattern.Pattern(
		drum_hits = _decode_drums(data),
		note_roll = stepgrid.pattern.empty_note_roll(),
		sample_roll = stepgrid.pattern.empty_sample_roll()
	)


def encode_pattern (pattern: stepgrid.pattern.Pattern) -> bytes:

	"""Serialize a pattern to UTF-8 JSON bytes."""

	return json.dumps(pattern_to_dict(pattern), separators=(",", ":")).encode("utf-8")


def _parse_json (payload: bytes) -> typing.Any:

	try:
		return json.loads(payload.decode("utf-8"))
	except (UnicodeDecodeError, json.JSONDecodeError) as exc:
		raise PatternDecodeError(f"Invalid JSON: {exc}") from exc


def decode_pattern (payload: bytes) -> stepgrid.pattern.Pattern:

	"""
	Deserialize a pattern saved by :func:`encode_pattern`.

	Raises:
		PatternDecodeError: If the payload is not valid.
	"""

	return pattern_from_dict(_parse_json(payload))


def decode_legacy_pattern (payload: bytes) -> stepgrid.pattern.Pattern:

	"""
	Deserialize a drum-only payload.

	Raises:
		PatternDecodeError: If the payload is not valid.
	"""

	return pattern_from_legacy_dict(_parse_json(payload))


def save_pattern (store: KeyValueStore, pattern: stepgrid.pattern.Pattern) -> None:

	"""Persist a pattern under the current key."""

	store.set(PATTERN_KEY, encode_pattern(pattern))


def load_pattern (store: KeyValueStore) -> stepgrid.pattern.Pattern:

	"""
	Load the saved pattern, migrating the drum-only layout if that is all there is.

	Falls back to an empty pattern when nothing usable is stored.
	"""

	payload = store.get(PATTERN_KEY)

	if payload is not None:
		try:
			return decode_pattern(payload)
		except PatternDecodeError as exc:
			logger.warning(f"Saved pattern is malformed ({exc}) - starting empty")
			return stepgrid.pattern.Pattern.empty()

	legacy = store.get(LEGACY_PATTERN_KEY)

	if legacy is not None:
		try:
			pattern = decode_legacy_pattern(legacy)
		except PatternDecodeError as exc:
			logger.warning(f"Legacy drum pattern is malformed ({exc}) - starting empty")
			return stepgrid.pattern.Pattern.empty()

		logger.info("Migrated legacy drum-only pattern")
		return pattern

	return stepgrid.pattern.Pattern.empty()


def save_mix_levels (store: KeyValueStore, levels: typing.Mapping[str, float]) -> None:

	"""Persist per-channel decibel levels."""

	store.set(MIX_KEY, json.dumps(dict(levels)).encode("utf-8"))


def load_mix_levels (store: KeyValueStore) -> typing.Dict[str, float]:

	"""
	Load per-channel decibel levels, ignoring unknown channels and values that are not finite numbers.

	Returns an empty dict when nothing usable is stored.
	"""

	payload = store.get(MIX_KEY)

	if payload is None:
		return {}

	try:
		data = _parse_json(payload)
	except PatternDecodeError as exc:
		logger.warning(f"Saved mix levels are malformed ({exc}) - using defaults")
		return {}

	if not isinstance(data, dict):
		logger.warning("Saved mix levels are malformed (not an object) - using defaults")
		return {}

	levels: typing.Dict[str, float] = {}

	for channel, value in data.items():

		if channel not in stepgrid.constants.CHANNELS or isinstance(value, bool) or not isinstance(value, (int, float)):
			continue

		try:
			level = float(value)
		except OverflowError:
			level = math.inf

		if not math.isfinite(level):
			logger.warning(f"Saved mix level for {channel!r} is out of range - ignoring it")
			continue

		levels[channel] = level

	return levels


def save_markers (store: KeyValueStore, times: typing.Iterable[float]) -> None:

	"""Persist sample marker times (seconds)."""

	store.set(MARKERS_KEY, json.dumps([float(t) for t in times]).encode("utf-8"))


def load_markers (store: KeyValueStore) -> typing.Tuple[float, ...]:

	"""
	Load sample marker times in ascending order.

	Anything malformed (not a list, too many entries, negative or
	non-finite values) gives no markers.
	"""

	payload = store.get(MARKERS_KEY)

	if payload is None:
		return ()

	try:
		data = _parse_json(payload)
	except PatternDecodeError as exc:
		logger.warning(f"Saved markers are malformed ({exc}) - starting with none")
		return ()

	if not isinstance(data, list) or len(data) > stepgrid.constants.MAX_MARKERS:
		logger.warning("Saved markers are malformed (not a list of at most 16 times) - starting with none")
		return ()

	times: typing.List[float] = []

	for value in data:

		if isinstance(value, bool) or not isinstance(value, (int, float)):
			logger.warning(f"Saved marker {value!r} is not a number - starting with none")
			return ()

		try:
			time = float(value)
		except OverflowError:
			time = math.inf

		if not math.isfinite(time) or time < 0:
			logger.warning(f"Saved marker {value!r} is out of range - starting with none")
			return ()

		times.append(time)

	return tuple(sorted(times))
