"""Synth voice presets.

These parameters are opaque to the sequencer: they are handed to the sound
engine with ``set_synth_params()`` and only the engine interprets them.
"""

import dataclasses
import random
import typing


WAVES: typing.Tuple[str, ...] = ("sine", "triangle", "square", "sawtooth")
OVERSAMPLING: typing.Tuple[str, ...] = ("none", "2x", "4x")


@dataclasses.dataclass (frozen=True)
class SynthParams:

	"""
	Mono synth voice settings.

	Times are in seconds, ``cutoff`` in Hz, ``detune`` in cents.
	"""

	wave: str = "sawtooth"
	cutoff: float = 1200.0
	resonance: float = 1.2
	attack: float = 0.005
	decay: float = 0.12
	sustain: float = 0.1
	release: float = 0.2
	detune: float = 0.0
	porta: float = 0.0
	dist_on: bool = True
	dist_amount: float = 0.3
	dist_wet: float = 0.4
	dist_oversample: str = "2x"
	drive: float = 1.8
	makeup: float = 0.85

	def __post_init__ (self) -> None:
		if self.wave not in WAVES:
			raise ValueError(f"Unknown wave {self.wave!r}. Available: {list(WAVES)}")
		if self.dist_oversample not in OVERSAMPLING:
			raise ValueError(f"Unknown oversampling {self.dist_oversample!r}. Available: {list(OVERSAMPLING)}")

	def as_dict (self) -> typing.Dict[str, typing.Any]:
		return dataclasses.asdict(self)


@dataclasses.dataclass (frozen=True)
class SynthPreset:

	name: str
	params: SynthParams


SYNTH_PRESETS: typing.Tuple[SynthPreset, ...] = (
	SynthPreset("House Bass", SynthParams(
		wave="sawtooth", cutoff=1200, resonance=1.2, attack=0.003, decay=0.12, sustain=0.1, release=0.18,
		detune=0, porta=0.02, dist_on=True, dist_amount=0.45, dist_wet=0.65, dist_oversample="2x", drive=2.2, makeup=0.9,
	)),
	SynthPreset("Techno Rumble", SynthParams(
		wave="sine", cutoff=700, resonance=1.8, attack=0.002, decay=0.22, sustain=0.0, release=0.4,
		detune=-5, porta=0.03, dist_on=True, dist_amount=0.65, dist_wet=0.85, dist_oversample="4x", drive=3.2, makeup=0.8,
	)),
	SynthPreset("Hip-Hop Sub", SynthParams(
		wave="sine", cutoff=500, resonance=0.8, attack=0.004, decay=0.35, sustain=0.15, release=0.5,
		detune=0, porta=0.08, dist_on=False, dist_amount=0.2, dist_wet=0.0, dist_oversample="2x", drive=1.4, makeup=0.95,
	)),
	SynthPreset("UKG Reese", SynthParams(
		wave="square", cutoff=1600, resonance=1.4, attack=0.003, decay=0.25, sustain=0.25, release=0.28,
		detune=12, porta=0.04, dist_on=True, dist_amount=0.5, dist_wet=0.6, dist_oversample="2x", drive=2.8, makeup=0.85,
	)),
	SynthPreset("Acid Squelch", SynthParams(
		wave="sawtooth", cutoff=900, resonance=6.0, attack=0.002, decay=0.18, sustain=0.0, release=0.16,
		detune=0, porta=0.0, dist_on=True, dist_amount=0.7, dist_wet=0.75, dist_oversample="4x", drive=3.5, makeup=0.8,
	)),
)


def preset_at (index: int) -> SynthPreset:

	"""Return a preset by position, wrapping in both directions (``-1`` is the last)."""

	return SYNTH_PRESETS[index % len(SYNTH_PRESETS)]


def default_params () -> SynthParams:

	"""The settings a freshly reset voice starts with."""

	return SynthParams(
		wave="sawtooth", cutoff=1200, resonance=1.2, attack=0.005, decay=0.12, sustain=0.1,
		release=0.2, detune=0, porta=0.0,
	)


def random_synth_params (rng: random.Random) -> SynthParams:

	"""
	Roll a random but usable voice.

	Distortion is always on; seven times in ten the filter is kept bright
	(cutoff of at least 3 kHz).
	"""

	min_cutoff = 3000 if rng.random() < 0.7 else 1200

	return SynthParams(
		wave = rng.choice(WAVES),
		dist_on = True,
		dist_amount = round(0.2 + rng.random() * 0.7, 3),
		dist_wet = round(0.5 + rng.random() * 0.5, 3),
		dist_oversample = rng.choice(OVERSAMPLING),
		drive = round(1.4 + rng.random() * 1.6, 2),
		makeup = round(0.7 + rng.random() * 0.4, 2),
		cutoff = round(min_cutoff + rng.random() * (8000 - min_cutoff)),
		resonance = round(0.6 + rng.random() * 6, 2),
		attack = round(0.001 + rng.random() * 0.12, 3),
		decay = round(0.04 + rng.random() * 0.5, 3),
		sustain = round(rng.random() * 0.8, 2),
		release = round(0.06 + rng.random() * 0.9, 3),
		detune = round((rng.random() * 2 - 1) * 40),
		porta = round(rng.random() * 0.25, 3),
	)
