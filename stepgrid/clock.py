"""The transport clock.

A clock owns tempo and swing, and fires registered callbacks ahead of time
with the exact time at which the sound should happen.  Everything that
produces sound reads that scheduled time rather than "now", so all events of
one step land together no matter how late the callback actually ran.

Times are ``time.perf_counter()`` seconds.
"""

import asyncio
import dataclasses
import itertools
import logging
import math
import time
import typing

import stepgrid.constants.pulses


logger = logging.getLogger(__name__)


TickCallback = typing.Callable[[float, typing.Any], None]

DEFAULT_BPM = 120.0
DEFAULT_LOOKAHEAD = 0.05


class ClockSource (typing.Protocol):

	"""
	What the sequencer needs from a clock.

	``schedule()`` registers a callback that is called once per
	``subdivision`` with ``(scheduled_time, step_indices[n % len])``, where
	``n`` counts subdivisions since the clock started.  Because ``n`` comes
	from the clock's own counter, a registration installed mid-bar picks up
	at the right step.
	"""

	running: bool

	def configure (self, bpm: float, swing: float, swing_subdivision: str) -> None:
		...

	def schedule (self, callback: TickCallback, step_indices: typing.Sequence[typing.Any], subdivision: str) -> int:
		...

	def dispose (self, handle: int) -> None:
		...

	def start (self, offset: float = 0.0) -> None:
		...

	def stop (self) -> None:
		...


def subdivision_pulses (subdivision: str) -> int:

	"""Pulses (at 24 PPQN) in a subdivision tag such as ``"16n"``."""

	try:
		return stepgrid.constants.pulses.SUBDIVISION_PULSES[subdivision]
	except KeyError:
		raise ValueError(f"Unknown subdivision {subdivision!r}. Available: {list(stepgrid.constants.pulses.SUBDIVISION_PULSES)}") from None


def swing_offset (pulse: int, swing: float, swing_pulses: int, seconds_per_pulse: float) -> float:

	"""
	Delay (seconds) applied to a pulse by swing.

	Pulses on a swing-pair boundary are untouched.  Between boundaries the
	delay follows half a sine wave, peaking on the off-beat of the pair:

	``sin(pi * progress) * swing * (2/3) * swing_pulses * seconds_per_pulse``

	With an ``"8n"`` swing subdivision and full swing, the off-beat eighth is
	pushed two thirds of an eighth late (a triplet shuffle).
	"""

	if swing <= 0 or swing_pulses <= 0:
		return 0.0

	pair = swing_pulses * 2
	within = pulse % pair

	if within == 0:
		return 0.0

	progress = within / pair

	return math.sin(math.pi * progress) * swing * (2.0 / 3.0) * swing_pulses * seconds_per_pulse


@dataclasses.dataclass
class Registration:

	"""
	A scheduled callback and the steps it cycles through.
	"""

	handle: int
	callback: TickCallback
	step_indices: typing.Tuple[typing.Any, ...]
	pulses: int


class AsyncioClock:

	"""
	A pulse clock running as an asyncio task.

	Sleeps until just short of the next deadline, then spins for the last
	sub-millisecond.  Each pulse is processed ``lookahead`` seconds before
	it is due so the sound engine has time to queue the events.

	Example:
		```python
		clock = AsyncioClock()
		clock.configure(bpm=124, swing=0.2, swing_subdivision="8n")
		handle = clock.schedule(on_step, list(range(16)), "16n")
		clock.start(0.05)
		```
	"""

	def __init__ (self, lookahead: float = DEFAULT_LOOKAHEAD, spin_wait: bool = True) -> None:

		"""
		Parameters:
			lookahead: Seconds between a callback firing and its scheduled time.
			spin_wait: Busy-wait the final millisecond of each wait for tighter timing.
		"""

		if lookahead < 0:
			raise ValueError("Lookahead cannot be negative")

		self.lookahead = lookahead
		self.running = False
		self.task: typing.Optional[asyncio.Task] = None

		self.bpm = DEFAULT_BPM
		self.swing = 0.0
		self.swing_subdivision = "8n"
		self._swing_pulses = stepgrid.constants.pulses.EIGHTH_NOTE
		self.seconds_per_pulse = 60.0 / self.bpm / stepgrid.constants.pulses.QUARTER_NOTE

		self.pulse_count = 0
		self.start_time = 0.0

		self._spin_wait = spin_wait
		self._spin_threshold = 0.001

		self._registrations: typing.Dict[int, Registration] = {}
		self._handles = itertools.count(1)

	@staticmethod
	def now () -> float:
		return time.perf_counter()

	@property
	def registration_count (self) -> int:
		return len(self._registrations)

	def configure (self, bpm: float, swing: float, swing_subdivision: str) -> None:

		"""
		Set tempo and swing.  Takes effect from the next pulse when running.
		"""

		if bpm <= 0:
			raise ValueError("BPM must be positive")

		if not 0.0 <= swing <= 1.0:
			raise ValueError("Swing must be between 0 and 1")

		self._swing_pulses = subdivision_pulses(swing_subdivision)
		self.swing_subdivision = swing_subdivision
		self.swing = swing

		if bpm != self.bpm:
			self.bpm = bpm
			self.seconds_per_pulse = 60.0 / self.bpm / stepgrid.constants.pulses.QUARTER_NOTE
			logger.debug(f"Clock tempo {self.bpm:.2f}")

	def schedule (self, callback: TickCallback, step_indices: typing.Sequence[typing.Any], subdivision: str = "16n") -> int:

		"""
		Register a repeating callback.  Returns a handle for :meth:`dispose`.
		"""

		if not step_indices:
			raise ValueError("step_indices cannot be empty")

		handle = next(self._handles)
		self._registrations[handle] = Registration(
			handle = handle,
			callback = callback,
			step_indices = tuple(step_indices),
			pulses = subdivision_pulses(subdivision),
		)

		return handle

	def dispose (self, handle: int) -> None:

		"""Remove a registration.  Unknown or already disposed handles are ignored."""

		self._registrations.pop(handle, None)

	def start (self, offset: float = 0.0) -> None:

		"""
		Start ticking from pulse 0, with the first pulse due ``offset`` seconds from now.

		Must be called from a running event loop.
		"""

		if self.running:
			return

		self.pulse_count = 0
		self.start_time = self.now() + max(0.0, offset)
		self.running = True
		self.task = asyncio.get_running_loop().create_task(self._run_loop())

	def stop (self) -> None:

		"""Stop ticking.  Pulses not yet processed are never fired."""

		self.running = False

		if self.task is not None and not self.task.done():
			self.task.cancel()

		self.task = None
		self.pulse_count = 0

	def _process_pulse (self, pulse: int, pulse_time: float) -> None:

		"""
		Fire every registration due on this pulse.
		"""

		scheduled_time = pulse_time + swing_offset(pulse, self.swing, self._swing_pulses, self.seconds_per_pulse)

		# Snapshot: callbacks may schedule or dispose while we iterate.
		for registration in list(self._registrations.values()):

			if pulse % registration.pulses != 0:
				continue

			if registration.handle not in self._registrations:
				continue

			tick = pulse // registration.pulses
			value = registration.step_indices[tick % len(registration.step_indices)]

			try:
				registration.callback(scheduled_time, value)
			except Exception:
				logger.exception("Clock callback failed")

	async def _run_loop (self) -> None:

		next_pulse_time = self.start_time

		while self.running:

			while self.now() + self.lookahead >= next_pulse_time:
				self._process_pulse(self.pulse_count, next_pulse_time)
				self.pulse_count += 1
				next_pulse_time += self.seconds_per_pulse

				if not self.running:
					break

			if not self.running:
				break

			sleep_time = next_pulse_time - self.lookahead - self.now()

			if sleep_time > 0:
				if self._spin_wait and sleep_time > self._spin_threshold:
					await asyncio.sleep(sleep_time - self._spin_threshold)
					deadline = next_pulse_time - self.lookahead
					while self.now() < deadline:
						pass
				else:
					await asyncio.sleep(sleep_time)
			else:
				await asyncio.sleep(0)
