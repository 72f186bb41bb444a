"""Per-channel mix levels.

Levels are kept in decibels (``-60`` to ``+6``) and handed to the sound
engine as linear gain with a short ramp, so level changes never click.
"""

import logging
import typing

import stepgrid.constants


logger = logging.getLogger(__name__)


MIN_DB = -60.0
MAX_DB = 6.0
DEFAULT_DB = 0.0

# Long enough to avoid zipper noise, short enough to feel immediate.
RAMP_SECONDS = 0.03


class GainSink (typing.Protocol):

	"""Anything that accepts channel gains (normally the sound engine)."""

	def set_channel_gain (self, channel: str, gain: float, ramp_seconds: float) -> None:
		...


def clamp_db (db: float) -> float:

	"""Clamp a level into the ``[-60, +6]`` dB range."""

	return max(MIN_DB, min(MAX_DB, float(db)))


def db_to_gain (db: float) -> float:

	"""
	Convert decibels to a linear gain factor: ``10 ** (db / 20)``.

	Example:
		```python
		db_to_gain(0)    # 1.0
		db_to_gain(-6)   # ~0.501
		db_to_gain(6)    # ~1.995
		```
	"""

	return 10.0 ** (float(db) / 20.0)


class MixGainStage:

	"""
	Holds one decibel level per channel and pushes gains to a sink.

	Channels are the four drum tracks, ``synth`` and ``sampler``.  Levels
	outside the allowed range are clamped rather than rejected.
	"""

	def __init__ (self, sink: GainSink, levels: typing.Optional[typing.Mapping[str, float]] = None, ramp_seconds: float = RAMP_SECONDS) -> None:

		self.sink = sink
		self.ramp_seconds = ramp_seconds
		self._levels: typing.Dict[str, float] = {channel: DEFAULT_DB for channel in stepgrid.constants.CHANNELS}

		for channel, db in (levels or {}).items():
			self._check_channel(channel)
			self._levels[channel] = clamp_db(db)

	@staticmethod
	def _check_channel (channel: str) -> None:

		if channel not in stepgrid.constants.CHANNELS:
			raise ValueError(f"Unknown mix channel {channel!r}. Available: {list(stepgrid.constants.CHANNELS)}")

	@property
	def levels (self) -> typing.Dict[str, float]:

		"""A copy of the current levels in dB."""

		return dict(self._levels)

	def level (self, channel: str) -> float:
		self._check_channel(channel)
		return self._levels[channel]

	def set_level (self, channel: str, db: float) -> float:

		"""Set and apply one channel's level.  Returns the clamped value."""

		self._check_channel(channel)

		db = clamp_db(db)
		self._levels[channel] = db
		self.sink.set_channel_gain(channel, db_to_gain(db), self.ramp_seconds)

		logger.debug(f"Mix {channel}: {db:+.1f} dB")

		return db

	def apply_all (self) -> None:

		"""Push every channel's gain to the sink (e.g. after the engine connects)."""

		for channel, db in self._levels.items():
			self.sink.set_channel_gain(channel, db_to_gain(db), self.ramp_seconds)
