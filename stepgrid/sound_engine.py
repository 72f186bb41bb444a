"""Sound engines.

The dispatcher never makes sound itself: it calls a :class:`SoundEngine`
with a channel, a pitch, a duration tag and the *scheduled* time.  Two
engines are provided:

- :class:`MidiSoundEngine` plays through a MIDI port with mido, holding
  events in a time-ordered queue until they are due.
- :class:`OscSoundEngine` forwards every call over OSC with python-osc,
  for an external audio host (a sampler, a DAW, a Pure Data patch).

Engine calls made from the tick path are synchronous and never block.
"""

import asyncio
import dataclasses
import heapq
import itertools
import logging
import os
import time
import typing

import mido
import pythonosc.udp_client

import stepgrid.constants
import stepgrid.constants.notes
import stepgrid.constants.pulses
import stepgrid.midi_utils
import stepgrid.presets
import stepgrid.sampler
import stepgrid.scales


logger = logging.getLogger(__name__)


def duration_seconds (tag: str, bpm: float) -> float:

	"""
	Resolve a duration tag against a tempo.

	Example:
		```python
		duration_seconds("16n", 120)  # 0.125
		duration_seconds("8n", 120)   # 0.25
		```
	"""

	if tag not in stepgrid.constants.pulses.SUBDIVISION_PULSES:
		raise ValueError(f"Unknown duration {tag!r}")

	quarters = stepgrid.constants.pulses.SUBDIVISION_PULSES[tag] / stepgrid.constants.pulses.QUARTER_NOTE
	return quarters * 60.0 / bpm


class SoundEngine (typing.Protocol):

	"""
	The calls the sequencer makes on whatever is producing sound.

	``time`` arguments are ``time.perf_counter()`` seconds at which the
	sound should start, usually slightly in the future.
	"""

	async def connect (self) -> None:
		...

	async def dispose (self) -> None:
		...

	def set_tempo (self, bpm: float) -> None:
		...

	def trigger (self, channel: str, pitch: typing.Optional[str], duration: str, time: float, velocity: float) -> None:
		...

	def play_slice (self, time: float, start: float, duration: float) -> None:
		...

	def set_channel_gain (self, channel: str, gain: float, ramp_seconds: float) -> None:
		...

	def set_synth_params (self, params: stepgrid.presets.SynthParams) -> None:
		...

	async def load_sample (self, path: str) -> float:
		...

	def panic (self) -> None:
		...


async def read_sample_duration (path: str) -> float:

	"""Read a WAV file's duration in a worker thread, keeping the event loop free."""

	loop = asyncio.get_running_loop()
	return await loop.run_in_executor(None, stepgrid.sampler.wav_duration, path)


@dataclasses.dataclass (order=True)
class TimedMessage:

	"""
	A MIDI message waiting to be sent at a specific time.
	"""

	time: float
	sequence: int
	message: mido.Message = dataclasses.field(compare=False)


# CC numbers used by the MIDI engine.
CC_PORTAMENTO_TIME = 5
CC_VOLUME = 7
CC_PORTAMENTO = 65
CC_RESONANCE = 71
CC_RELEASE = 72
CC_ATTACK = 73
CC_CUTOFF = 74
CC_DECAY = 75
CC_ALL_SOUND_OFF = 120
CC_ALL_NOTES_OFF = 123

# Channel volume at unity gain (the General MIDI default).
UNITY_VOLUME = 100

# Channel volume changes are spread over this many CC 7 messages.
VOLUME_RAMP_STEPS = 4


def _to_cc (value: float, low: float, high: float) -> int:
	span = high - low
	if span <= 0:
		return 0
	return max(0, min(127, int(round((value - low) / span * 127))))


def _to_velocity (velocity: float) -> int:
	return max(1, min(127, int(round(velocity * 127))))


class MidiSoundEngine:

	"""
	Plays the grid through a MIDI output.

	Drum tracks share one channel (channel 10 by default, i.e. index 9)
	using General MIDI drum notes.  The synth has its own channel.  Slices
	are sent as a fixed trigger note on the sampler channel, held for the
	slice length; the start offset cannot be expressed over MIDI, so the
	receiving sampler is expected to map notes to slices itself.

	Drum levels scale velocity, since the four tracks share a channel;
	synth and sampler levels are sent as channel volume (CC 7), stepped
	over the requested ramp time once the current volume is known.
	"""

	def __init__ (
		self,
		device_name: typing.Optional[str] = None,
		drum_channel: int = 9,
		synth_channel: int = 0,
		sampler_channel: int = 1,
		sampler_note: int = 60,
		interactive: bool = True,
	) -> None:

		for name, channel in (("drum", drum_channel), ("synth", synth_channel), ("sampler", sampler_channel)):
			if not 0 <= channel <= 15:
				raise ValueError(f"MIDI {name} channel must be 0-15, got {channel}")

		self.device_name = device_name
		self.drum_channel = drum_channel
		self.synth_channel = synth_channel
		self.sampler_channel = sampler_channel
		self.sampler_note = sampler_note
		self.interactive = interactive

		self.midi_out: typing.Optional[typing.Any] = None
		self.bpm = 120.0

		self.queue: typing.List[TimedMessage] = []
		self._counter = itertools.count()
		self._wake = asyncio.Event()
		self._task: typing.Optional[asyncio.Task] = None

		self._drum_gains: typing.Dict[str, float] = {track: 1.0 for track in stepgrid.constants.TRACKS}

		# Last CC 7 value sent (or ramping towards) per MIDI channel.
		self._volumes: typing.Dict[int, int] = {}

		# (channel, note) pairs with a note_on sent and no note_off yet.
		self.active_notes: typing.Set[typing.Tuple[int, int]] = set()

	async def connect (self) -> None:

		"""Open the MIDI port and start the send loop."""

		if self.midi_out is None:
			self.device_name, self.midi_out = stepgrid.midi_utils.select_output_device(self.device_name, self.interactive)

		if self._task is None:
			self._task = asyncio.get_running_loop().create_task(self._run())

	async def dispose (self) -> None:

		"""Silence everything, stop the send loop and close the port."""

		self.panic()

		if self._task is not None:
			self._task.cancel()
			try:
				await self._task
			except asyncio.CancelledError:
				pass
			self._task = None

		if self.midi_out is not None:
			self.midi_out.close()
			self.midi_out = None

	def set_tempo (self, bpm: float) -> None:
		self.bpm = bpm

	def _push (self, at: float, message: mido.Message) -> None:
		heapq.heappush(self.queue, TimedMessage(at, next(self._counter), message))
		self._wake.set()

	def _push_note (self, channel: int, note: int, velocity: int, at: float, length: float) -> None:
		self._push(at, mido.Message('note_on', channel=channel, note=note, velocity=velocity))
		self._push(at + max(0.0, length), mido.Message('note_off', channel=channel, note=note, velocity=0))

	def trigger (self, channel: str, pitch: typing.Optional[str], duration: str, time: float, velocity: float) -> None:

		length = duration_seconds(duration, self.bpm)

		if channel in self._drum_gains:
			note = stepgrid.constants.notes.GM_TRACK_NOTES[channel]
			self._push_note(self.drum_channel, note, _to_velocity(velocity * self._drum_gains[channel]), time, length)

		elif channel == stepgrid.constants.CHANNEL_SYNTH:
			if pitch is None:
				raise ValueError("Synth triggers need a pitch")
			self._push_note(self.synth_channel, stepgrid.scales.note_to_midi(pitch), _to_velocity(velocity), time, length)

		else:
			raise ValueError(f"Cannot trigger channel {channel!r}")

	def play_slice (self, time: float, start: float, duration: float) -> None:
		self._push_note(self.sampler_channel, self.sampler_note, 100, time, duration)

	def set_channel_gain (self, channel: str, gain: float, ramp_seconds: float) -> None:

		if channel in self._drum_gains:
			self._drum_gains[channel] = max(0.0, gain)
			return

		midi_channel = {
			stepgrid.constants.CHANNEL_SYNTH: self.synth_channel,
			stepgrid.constants.CHANNEL_SAMPLER: self.sampler_channel,
		}.get(channel)

		if midi_channel is None:
			raise ValueError(f"Unknown channel {channel!r}")

		value = max(0, min(127, int(round(gain * UNITY_VOLUME))))
		previous = self._volumes.get(midi_channel)
		self._volumes[midi_channel] = value

		if previous is None or previous == value or ramp_seconds <= 0:
			self._send(mido.Message('control_change', channel=midi_channel, control=CC_VOLUME, value=value))
			return

		now = time.perf_counter()

		for k in range(1, VOLUME_RAMP_STEPS + 1):
			level = int(round(previous + (value - previous) * k / VOLUME_RAMP_STEPS))
			self._push(now + ramp_seconds * k / VOLUME_RAMP_STEPS, mido.Message('control_change', channel=midi_channel, control=CC_VOLUME, value=level))

	def set_synth_params (self, params: stepgrid.presets.SynthParams) -> None:

		"""Map the voice settings onto the standard sound-controller CCs."""

		values = (
			(CC_CUTOFF, _to_cc(params.cutoff, 0, 8000)),
			(CC_RESONANCE, _to_cc(params.resonance, 0, 8)),
			(CC_ATTACK, _to_cc(params.attack, 0, 0.25)),
			(CC_DECAY, _to_cc(params.decay, 0, 1)),
			(CC_RELEASE, _to_cc(params.release, 0, 1)),
			(CC_PORTAMENTO_TIME, _to_cc(params.porta, 0, 0.25)),
			(CC_PORTAMENTO, 127 if params.porta > 0 else 0),
		)

		for control, value in values:
			self._send(mido.Message('control_change', channel=self.synth_channel, control=control, value=value))

	async def load_sample (self, path: str) -> float:

		"""
		MIDI cannot carry audio, so this only measures the file.

		The receiving sampler must already have the same file loaded.
		"""

		return await read_sample_duration(path)

	def panic (self) -> None:

		"""
		Drop every queued message and silence all channels.
		"""

		logger.info("Panic: sending all notes off.")

		self.queue.clear()

		if self.midi_out is None:
			self.active_notes.clear()
			return

		try:
			for channel, note in list(self.active_notes):
				self.midi_out.send(mido.Message('note_off', channel=channel, note=note, velocity=0))

			for channel in sorted({self.drum_channel, self.synth_channel, self.sampler_channel}):
				self.midi_out.send(mido.Message('control_change', channel=channel, control=CC_ALL_NOTES_OFF, value=0))
				self.midi_out.send(mido.Message('control_change', channel=channel, control=CC_ALL_SOUND_OFF, value=0))

			# A dropped volume ramp still lands on its target.
			for channel, value in self._volumes.items():
				self.midi_out.send(mido.Message('control_change', channel=channel, control=CC_VOLUME, value=value))

			self.midi_out.panic()

		except Exception:
			logger.exception("MIDI panic failed (device may be disconnected)")

		self.active_notes.clear()

	def _send (self, message: mido.Message) -> None:

		if self.midi_out is None:
			return

		try:
			self.midi_out.send(message)
		except Exception:
			logger.exception("MIDI send failed (device may be disconnected)")
			return

		if message.type == 'note_on':
			self.active_notes.add((message.channel, message.note))
		elif message.type == 'note_off':
			self.active_notes.discard((message.channel, message.note))

	def flush (self, now: float) -> int:

		"""Send every queued message due at or before ``now``.  Returns how many were sent."""

		sent = 0

		while self.queue and self.queue[0].time <= now:
			self._send(heapq.heappop(self.queue).message)
			sent += 1

		return sent

	async def _run (self) -> None:

		while True:

			self.flush(time.perf_counter())

			if not self.queue:
				self._wake.clear()
				await self._wake.wait()
				continue

			delay = self.queue[0].time - time.perf_counter()

			if delay > 0:
				self._wake.clear()
				try:
					await asyncio.wait_for(self._wake.wait(), timeout=delay)
				except asyncio.TimeoutError:
					pass


class OscSoundEngine:

	"""
	Forwards engine calls as OSC messages.

	Every timed message carries the scheduled ``perf_counter`` time as its
	first argument.  On connect, ``/clock/sync`` sends the current clock
	reading so the receiver can map those times onto its own clock.

	Addresses:

	- ``/trigger <time> <channel> <pitch> <duration> <velocity>`` (pitch is ``""`` for the snare)
	- ``/slice <time> <start> <duration>``
	- ``/gain <channel> <gain> <ramp>``
	- ``/synth <name> <value> ...``
	- ``/sample/load <path>``
	- ``/tempo <bpm>``
	- ``/panic``
	"""

	def __init__ (self, host: str = "127.0.0.1", port: int = 9002) -> None:

		self.host = host
		self.port = port
		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = None

	async def connect (self) -> None:

		if self._client is None:
			self._client = pythonosc.udp_client.SimpleUDPClient(self.host, self.port)
			logger.info(f"OSC sound engine sending to {self.host}:{self.port}")

		self._send("/clock/sync", [time.perf_counter()])

	async def dispose (self) -> None:
		self.panic()
		self._client = None

	def _send (self, address: str, args: typing.List[typing.Any]) -> None:

		if self._client is None:
			return

		try:
			self._client.send_message(address, args)
		except Exception as e:
			logger.warning(f"OSC send error: {e}")

	def set_tempo (self, bpm: float) -> None:
		self._send("/tempo", [float(bpm)])

	def trigger (self, channel: str, pitch: typing.Optional[str], duration: str, time: float, velocity: float) -> None:
		self._send("/trigger", [time, channel, pitch or "", duration, float(velocity)])

	def play_slice (self, time: float, start: float, duration: float) -> None:
		self._send("/slice", [time, float(start), float(duration)])

	def set_channel_gain (self, channel: str, gain: float, ramp_seconds: float) -> None:
		self._send("/gain", [channel, float(gain), float(ramp_seconds)])

	def set_synth_params (self, params: stepgrid.presets.SynthParams) -> None:

		args: typing.List[typing.Any] = []

		for name, value in params.as_dict().items():
			args.extend([name, value])

		self._send("/synth", args)

	async def load_sample (self, path: str) -> float:
		duration = await read_sample_duration(path)
		self._send("/sample/load", [os.path.abspath(path)])
		return duration

	def panic (self) -> None:
		self._send("/panic", [])
