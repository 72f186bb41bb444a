"""Step dispatch: turning clock ticks into sound engine calls.

The dispatcher owns exactly one clock registration at a time.  Each
registration is built from a :class:`DispatchSnapshot`, an immutable view of
everything a tick needs (pattern, accent, markers, sample length).  Edits
never touch a live snapshot; :meth:`StepDispatcher.rebuild` swaps in a new
registration instead, disposing the old one first.

Nothing raised while handling a tick escapes: each event is guarded on its
own and logged, so a bad event costs one sound rather than the clock.
"""

import dataclasses
import logging
import typing

import stepgrid.clock
import stepgrid.constants
import stepgrid.constants.durations
import stepgrid.constants.notes
import stepgrid.constants.velocity
import stepgrid.event_emitter
import stepgrid.pattern
import stepgrid.sampler
import stepgrid.sound_engine


logger = logging.getLogger(__name__)


@dataclasses.dataclass (frozen=True)
class DispatchSnapshot:

	"""
	Everything one registration plays from.

	``sample_duration`` is the loaded buffer length, or 0.0 while no sample
	is ready (sample steps are then skipped).
	"""

	pattern: stepgrid.pattern.Pattern
	accent_interval: int = 0
	markers: typing.Tuple[float, ...] = ()
	sample_duration: float = 0.0

	def __post_init__ (self) -> None:
		if self.accent_interval not in stepgrid.constants.ACCENT_INTERVALS:
			raise ValueError(f"Accent interval must be one of {stepgrid.constants.ACCENT_INTERVALS}")
		object.__setattr__(self, "markers", tuple(self.markers))


_ACCENTS: typing.Dict[str, typing.Tuple[int, float, float]] = {
	stepgrid.constants.TRACK_KICK: (
		stepgrid.constants.velocity.KICK_ACCENT_OFFSET,
		stepgrid.constants.velocity.KICK_ACCENT_VELOCITY,
		stepgrid.constants.velocity.KICK_VELOCITY,
	),
	stepgrid.constants.TRACK_SNARE: (
		stepgrid.constants.velocity.SNARE_ACCENT_OFFSET,
		stepgrid.constants.velocity.SNARE_ACCENT_VELOCITY,
		stepgrid.constants.velocity.SNARE_VELOCITY,
	),
}

_FIXED_VELOCITIES: typing.Dict[str, float] = {
	stepgrid.constants.TRACK_HIHAT: stepgrid.constants.velocity.HIHAT_VELOCITY,
	stepgrid.constants.TRACK_PERC: stepgrid.constants.velocity.PERC_VELOCITY,
}


def drum_velocity (track: str, step: int, accent_interval: int) -> float:

	"""
	Velocity for a drum hit.

	Kick and snare are accented when ``step % accent_interval`` equals their
	offset (0 for the kick, 2 for the snare); an interval of 0 disables
	accents.  Other tracks always play at a fixed velocity.

	Example:
		```python
		drum_velocity("kick", 4, 4)   # 1.0 (accented)
		drum_velocity("kick", 5, 4)   # 0.85
		drum_velocity("snare", 6, 4)  # 0.95 (accented)
		```
	"""

	if track in _FIXED_VELOCITIES:
		return _FIXED_VELOCITIES[track]

	offset, accented, plain = _ACCENTS[track]

	if accent_interval and step % accent_interval == offset:
		return accented

	return plain


class StepDispatcher:

	"""
	Plays pattern snapshots through a sound engine on a clock.
	"""

	def __init__ (
		self,
		engine: stepgrid.sound_engine.SoundEngine,
		clock: stepgrid.clock.ClockSource,
		events: typing.Optional[stepgrid.event_emitter.EventEmitter] = None,
	) -> None:

		"""
		Parameters:
			engine: Receives the trigger and slice calls.
			clock: Provides the 16th-note tick registration.
			events: Optional emitter; ``"step"`` is raised with the playhead index
				on every tick.
		"""

		self.engine = engine
		self.clock = clock
		self.events = events

		self.handle: typing.Optional[int] = None
		self.snapshot: typing.Optional[DispatchSnapshot] = None
		self.current_step = 0

	@property
	def installed (self) -> bool:
		return self.handle is not None

	def rebuild (self, snapshot: DispatchSnapshot) -> None:

		"""
		Replace the live registration with one built from ``snapshot``.

		The old registration is disposed before the new one is scheduled,
		and both happen in one synchronous call, so no tick can fall between
		them and no two registrations are ever live together.
		"""

		self.teardown()

		self.snapshot = snapshot
		self.handle = self.clock.schedule(
			lambda time, step: self.tick(snapshot, time, step),
			list(range(stepgrid.constants.STEPS)),
			"16n",
		)

		logger.debug(f"Dispatcher rebuilt (registration {self.handle})")

	def teardown (self) -> None:

		"""Dispose the live registration, if any."""

		if self.handle is not None:
			self.clock.dispose(self.handle)
			self.handle = None

	def tick (self, snapshot: DispatchSnapshot, time: float, raw_step: int) -> None:

		"""
		Handle one clock tick.  Every call uses the same ``time``.
		"""

		step = raw_step % stepgrid.constants.STEPS
		self.current_step = step

		if self.events is not None:
			try:
				self.events.emit_sync("step", step)
			except Exception:
				logger.exception("Step listener failed")

		pattern = snapshot.pattern

		for track in stepgrid.constants.TRACKS:

			if not pattern.drum_hits[track][step]:
				continue

			try:
				self.engine.trigger(
					track,
					stepgrid.constants.notes.TRACK_NOTES[track],
					stepgrid.constants.durations.CHANNEL_DURATIONS[track],
					time,
					drum_velocity(track, step, snapshot.accent_interval),
				)
			except Exception:
				logger.exception(f"Failed to trigger {track} at step {step}")

		note = pattern.note_roll[step]

		if isinstance(note, stepgrid.pattern.RollNote):
			try:
				self.engine.trigger(
					stepgrid.constants.CHANNEL_SYNTH,
					note.note,
					stepgrid.constants.durations.CHANNEL_DURATIONS[stepgrid.constants.CHANNEL_SYNTH],
					time,
					stepgrid.constants.velocity.SYNTH_VELOCITY,
				)
			except Exception:
				logger.exception(f"Failed to trigger synth at step {step}")

		marker = pattern.sample_roll[step]

		if isinstance(marker, stepgrid.pattern.SliceMarker) and snapshot.sample_duration > 0:
			try:
				region = stepgrid.sampler.compute_slice(snapshot.markers, marker.index, snapshot.sample_duration)
				if region is not None:
					self.engine.play_slice(time, region.start, region.duration)
			except Exception:
				logger.exception(f"Failed to play slice at step {step}")
