"""Rhythm generation: step masks that decide *when* events happen.

Every style is a pure function ``(hits, steps, rng) -> mask``.  All of the
randomness comes from the ``rng`` argument, so a seeded ``random.Random``
reproduces a mask exactly.

Styles are kept in registration order so a UI can step through them by
index; :func:`style_at` wraps any integer into range.

Example:
	```python
	rng = random.Random(7)
	mask = stepgrid.rhythm.generate("euclidean", hits=5, rng=rng)
	pattern = pattern.set_drum_track("kick", mask)
	```
"""

import random
import typing

import stepgrid.constants
import stepgrid.sequence_utils


StyleFn = typing.Callable[[int, int, random.Random], stepgrid.sequence_utils.Mask]

_STYLES: typing.Dict[str, StyleFn] = {}


def register_style (name: str, fn: StyleFn) -> None:

	"""Add (or replace) a named rhythm style."""

	if not name:
		raise ValueError("Style name cannot be empty")

	_STYLES[name] = fn


def style_names () -> typing.List[str]:

	"""Registered style names, in registration order."""

	return list(_STYLES)


def style_at (index: int) -> str:

	"""Return a style name by position, wrapping out-of-range indices."""

	names = style_names()
	return names[index % len(names)]


def _clamp_hits (hits: int, steps: int) -> int:
	return max(0, min(steps, int(round(hits))))


def euclid (hits: int, steps: int = stepgrid.constants.STEPS) -> stepgrid.sequence_utils.Mask:

	"""
	The unrotated Euclidean mask: exactly ``hits`` evenly spread steps.
	"""

	return stepgrid.sequence_utils.generate_bucket_sequence(steps, _clamp_hits(hits, steps))


def euclidean (hits: int, steps: int, rng: random.Random) -> stepgrid.sequence_utils.Mask:

	"""Euclidean spread with a uniformly random rotation."""

	mask = euclid(hits, steps)
	return stepgrid.sequence_utils.rotate(mask, rng.randrange(steps))


def offbeat (hits: int, steps: int, rng: random.Random) -> stepgrid.sequence_utils.Mask:

	"""
	Off-beat eighths first, then random sixteenth fills.

	The off-beat eighth positions (2, 6, 10, 14 in a 16-step bar) are taken
	in order; if ``hits`` asks for more, each remaining step is added with
	probability 0.5 in a shuffled order until the count is met or the
	candidates run out, then any shortfall is filled deterministically.
	"""

	hits = _clamp_hits(hits, steps)
	offbeats = list(range(2, steps, 4))
	chosen = offbeats[:hits]

	others = [i for i in range(steps) if i not in chosen]
	rng.shuffle(others)

	# Probabilistic fills, then top up so the count is always exactly hits.
	for i in list(others):
		if len(chosen) >= hits:
			break
		if rng.random() < 0.5:
			chosen.append(i)
			others.remove(i)

	while len(chosen) < hits:
		chosen.append(others.pop())

	return stepgrid.sequence_utils.indices_to_sequence(chosen, steps)


_SYNCOPATED_INDICES = (0, 3, 6, 10, 12, 14, 7, 15, 2, 9, 5, 13, 1, 4, 8, 11)


def syncopated (hits: int, steps: int, rng: random.Random) -> stepgrid.sequence_utils.Mask:

	"""
	A fixed syncopated set (dotted-eighth feel), nudged by a small rotation.

	Positions are taken from a priority list so low hit counts keep the
	strongest syncopations.  The rotation is drawn from {0, 1, 2} only.
	"""

	hits = _clamp_hits(hits, steps)
	indices = [i for i in _SYNCOPATED_INDICES if i < steps]
	indices += [i for i in range(steps) if i not in indices]

	mask = stepgrid.sequence_utils.indices_to_sequence(indices[:hits], steps)
	return stepgrid.sequence_utils.rotate(mask, rng.choice((0, 1, 2)))


def scatter (hits: int, steps: int, rng: random.Random) -> stepgrid.sequence_utils.Mask:

	"""A uniformly random subset of exactly ``hits`` steps."""

	hits = _clamp_hits(hits, steps)
	return stepgrid.sequence_utils.indices_to_sequence(rng.sample(range(steps), hits), steps)


def backbeat (hits: int, steps: int, rng: random.Random) -> stepgrid.sequence_utils.Mask:

	"""
	Beats two and four first, then an unrotated Euclidean fill.

	No rotation is applied: the backbeat has to stay where it is.
	"""

	hits = _clamp_hits(hits, steps)
	chosen = [steps // 4, 3 * steps // 4][:hits]
	fill = stepgrid.sequence_utils.sequence_to_indices(euclid(hits, steps)) + list(range(steps))

	for i in fill:
		if len(chosen) >= hits:
			break
		if i not in chosen:
			chosen.append(i)

	return stepgrid.sequence_utils.indices_to_sequence(chosen, steps)


register_style("euclidean", euclidean)
register_style("offbeat", offbeat)
register_style("syncopated", syncopated)
register_style("scatter", scatter)
register_style("backbeat", backbeat)


def generate (style: typing.Union[str, int], hits: int, rng: random.Random, steps: int = stepgrid.constants.STEPS) -> stepgrid.sequence_utils.Mask:

	"""
	Generate a mask with a named (or indexed) style.

	Parameters:
		style: Style name, or an integer index into :func:`style_names` (wrapped).
		hits: Requested number of active steps (clamped to ``0..steps``).
		rng: Random source; pass a seeded instance for repeatable output.
		steps: Mask length.
	"""

	if isinstance(style, int):
		style = style_at(style)

	if style not in _STYLES:
		raise ValueError(f"Unknown rhythm style {style!r}. Available: {style_names()}")

	return _STYLES[style](hits, steps, rng)


def density_mask (density: float, rng: random.Random, steps: int = stepgrid.constants.STEPS) -> stepgrid.sequence_utils.Mask:

	"""Independent per-step coin flips: each step is active with probability ``density``."""

	density = stepgrid.sequence_utils.clamp(density, 0.0, 1.0)
	return stepgrid.sequence_utils.coin_flips(steps, density, rng)


def hits_for_density (density: float, steps: int = stepgrid.constants.STEPS) -> int:

	"""Convert a 0-1 density into a hit count."""

	return _clamp_hits(stepgrid.sequence_utils.clamp(density, 0.0, 1.0) * steps, steps)
