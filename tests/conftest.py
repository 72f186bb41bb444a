import asyncio
import typing

import mido
import pytest

import stepgrid.pattern_store
import stepgrid.persistence
import stepgrid.presets


class FakeMidiOut:

	"""MIDI output stub that remembers what was sent."""

	def __init__ (self) -> None:

		self.sent: typing.List[mido.Message] = []
		self.closed = False
		self.panicked = False

	def send (self, message: mido.Message) -> None:

		"""Record an outgoing MIDI message."""

		self.sent.append(message)


	def close (self) -> None:

		"""Mark the fake device closed."""

		self.closed = True


	def panic (self) -> None:

		"""Record that panic was requested."""

		self.panicked = True


	def reset (self) -> None:

		"""No-op reset for the fake device."""

		return None


def _fake_get_output_names () -> list[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI"]


# Module-level reference so tests can inspect the most recently opened output.
_current_fake_output: typing.Optional[FakeMidiOut] = None


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	global _current_fake_output
	fake = FakeMidiOut()
	_current_fake_output = fake
	return fake


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI output."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)


@pytest.fixture
def fake_midi_out (patch_midi: None) -> typing.Callable[[], typing.Optional[FakeMidiOut]]:

	"""Return a getter for the fake output opened during the test."""

	return lambda: _current_fake_output


class FakeSoundEngine:

	"""
	Records every engine call instead of making sound.

	``load_sample`` resolves to ``durations[path]`` (default 2.0s).  Set
	``load_gate`` to an ``asyncio.Event`` to hold loads until it is set.
	Put a channel in ``fail_channels`` to make its triggers raise.
	"""

	def __init__ (self) -> None:

		self.triggers: typing.List[typing.Tuple[str, typing.Optional[str], str, float, float]] = []
		self.slices: typing.List[typing.Tuple[float, float, float]] = []
		self.gains: typing.List[typing.Tuple[str, float, float]] = []
		self.synth_params: typing.List[stepgrid.presets.SynthParams] = []
		self.tempos: typing.List[float] = []
		self.panics = 0
		self.connected = False

		self.durations: typing.Dict[str, float] = {}
		self.load_gate: typing.Optional[asyncio.Event] = None
		self.fail_channels: typing.Set[str] = set()

	async def connect (self) -> None:
		self.connected = True

	async def dispose (self) -> None:
		self.connected = False

	def set_tempo (self, bpm: float) -> None:
		self.tempos.append(bpm)

	def trigger (self, channel: str, pitch: typing.Optional[str], duration: str, time: float, velocity: float) -> None:

		if channel in self.fail_channels:
			raise RuntimeError(f"{channel} exploded")

		self.triggers.append((channel, pitch, duration, time, velocity))

	def play_slice (self, time: float, start: float, duration: float) -> None:
		self.slices.append((time, start, duration))

	def set_channel_gain (self, channel: str, gain: float, ramp_seconds: float) -> None:
		self.gains.append((channel, gain, ramp_seconds))

	def set_synth_params (self, params: stepgrid.presets.SynthParams) -> None:
		self.synth_params.append(params)

	async def load_sample (self, path: str) -> float:

		if self.load_gate is not None:
			await self.load_gate.wait()

		if path not in self.durations and path.endswith(".missing"):
			raise FileNotFoundError(path)

		return self.durations.get(path, 2.0)

	def panic (self) -> None:
		self.panics += 1


class FakeClock:

	"""
	A clock driven by hand.

	``fire(raw_step, time)`` calls every live registration the way a real
	tick would.  ``max_live`` records the most registrations ever live at
	once.
	"""

	def __init__ (self) -> None:

		self.running = False
		self.registrations: typing.Dict[int, typing.Tuple[typing.Callable[[float, typing.Any], None], typing.Tuple[typing.Any, ...], str]] = {}
		self.configured: typing.List[typing.Tuple[float, float, str]] = []
		self.started_with: typing.List[float] = []
		self.max_live = 0
		self.scheduled = 0
		self.disposed = 0
		self._next = 1

	def configure (self, bpm: float, swing: float, swing_subdivision: str) -> None:
		self.configured.append((bpm, swing, swing_subdivision))

	def schedule (self, callback: typing.Callable[[float, typing.Any], None], step_indices: typing.Sequence[typing.Any], subdivision: str = "16n") -> int:

		handle = self._next
		self._next += 1

		self.registrations[handle] = (callback, tuple(step_indices), subdivision)
		self.scheduled += 1
		self.max_live = max(self.max_live, len(self.registrations))

		return handle

	def dispose (self, handle: int) -> None:

		if self.registrations.pop(handle, None) is not None:
			self.disposed += 1

	def start (self, offset: float = 0.0) -> None:
		self.running = True
		self.started_with.append(offset)

	def stop (self) -> None:
		self.running = False

	def fire (self, raw_step: int, time: float = 1.0) -> None:

		for callback, steps, _ in list(self.registrations.values()):
			callback(time, steps[raw_step % len(steps)])


@pytest.fixture
def engine () -> FakeSoundEngine:
	return FakeSoundEngine()


@pytest.fixture
def clock () -> FakeClock:
	return FakeClock()


@pytest.fixture
def store () -> stepgrid.pattern_store.PatternStore:

	"""An in-memory pattern store."""

	return stepgrid.pattern_store.PatternStore(stepgrid.persistence.MemoryStore())
