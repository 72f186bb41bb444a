import asyncio
import dataclasses
import logging
import random
import typing

import stepgrid.clock
import stepgrid.config
import stepgrid.constants
import stepgrid.dispatcher
import stepgrid.event_emitter
import stepgrid.mix
import stepgrid.pattern
import stepgrid.pattern_store
import stepgrid.presets
import stepgrid.sampler
import stepgrid.sound_engine


logger = logging.getLogger(__name__)


STOPPED = "stopped"
RUNNING = "running"

# Delay before the first step after start(), so the engine can queue it.
START_OFFSET = 0.05


class StepSequencer:

	"""
	The transport: ties the pattern store, clock, dispatcher and sound engine together.

	There are two states.  ``start()`` goes from stopped to running,
	installing a dispatch registration and starting the clock at step 0.
	``stop()`` halts the clock, drops the registration, silences the engine
	and resets the playhead to 0.

	While running, any change to the pattern, the accent interval, the
	markers or sample readiness rebuilds the dispatch registration.

	Events (on ``sequencer.events``): ``"start"``, ``"stop"``, ``"step"``
	(playhead index) and ``"bpm"``.
	"""

	def __init__ (
		self,
		engine: stepgrid.sound_engine.SoundEngine,
		clock: typing.Optional[stepgrid.clock.ClockSource] = None,
		store: typing.Optional[stepgrid.pattern_store.PatternStore] = None,
		transport: typing.Optional[stepgrid.config.TransportConfig] = None,
		start_offset: float = START_OFFSET,
	) -> None:

		"""
		Parameters:
			engine: Where sound goes.
			clock: Tick source; an :class:`~stepgrid.clock.AsyncioClock` by default.
			store: Pattern state; an in-memory store by default.
			transport: Initial tempo, swing and accent.
			start_offset: Seconds between ``start()`` and the first step.
		"""

		self.events = stepgrid.event_emitter.EventEmitter()

		self.engine = engine
		self.clock: stepgrid.clock.ClockSource = clock if clock is not None else stepgrid.clock.AsyncioClock()
		self.store = store if store is not None else stepgrid.pattern_store.PatternStore()
		self.transport = transport if transport is not None else stepgrid.config.TransportConfig()
		self.start_offset = start_offset

		self.state = STOPPED

		self.dispatcher = stepgrid.dispatcher.StepDispatcher(self.engine, self.clock, self.events)
		self.sample_player = stepgrid.sampler.SamplePlayer(self.engine.load_sample)
		self.mix = stepgrid.mix.MixGainStage(self.engine, self.store.mix_levels)
		self.synth_params = stepgrid.presets.default_params()
		self.preset_index: typing.Optional[int] = None

		self.store.events.on("change", self._on_pattern_change)
		self.store.events.on("markers", self._on_markers_change)
		self.store.events.on("mix", self._on_mix_change)
		self.sample_player.on_ready_change(self._on_sample_ready)

		self._configure_clock()

	# ------------------------------------------------------------------
	# Lifecycle
	# ------------------------------------------------------------------

	@property
	def running (self) -> bool:
		return self.state == RUNNING

	@property
	def current_step (self) -> int:
		return self.dispatcher.current_step

	async def connect (self) -> None:

		"""Connect the sound engine and push the current tempo, levels and voice to it."""

		await self.engine.connect()

		self.engine.set_tempo(self.transport.bpm)
		self.mix.apply_all()
		self.engine.set_synth_params(self.synth_params)

	async def close (self) -> None:

		"""Stop, save the pattern, drop the sample and release the engine."""

		await self.stop()
		self.store.save()
		self.sample_player.dispose()
		await self.engine.dispose()

	async def start (self) -> None:

		"""
		Begin playback from step 0.  Does nothing if already running.
		"""

		if self.running:
			return

		self.state = RUNNING
		self.dispatcher.rebuild(self.snapshot())
		self.clock.start(self.start_offset)

		logger.info("Sequencer started")

		await self.events.emit_async("start")

	async def stop (self) -> None:

		"""
		Stop playback, cancel anything still queued and reset the playhead.
		"""

		if not self.running:
			return

		self.state = STOPPED
		self.clock.stop()
		self.dispatcher.teardown()
		self.engine.panic()
		self.dispatcher.current_step = 0

		logger.info("Sequencer stopped")

		self.events.emit_sync("step", 0)
		await self.events.emit_async("stop")

	async def toggle (self) -> None:

		if self.running:
			await self.stop()
		else:
			await self.start()

	async def play (self, bars: typing.Optional[int] = None) -> None:

		"""
		Start, run for ``bars`` pattern cycles (or until cancelled), then stop.
		"""

		await self.start()

		try:
			if bars is None:
				await asyncio.Event().wait()
			else:
				await asyncio.sleep(self.start_offset + bars * self.cycle_seconds)
		except asyncio.CancelledError:
			pass
		finally:
			await self.stop()

	@property
	def cycle_seconds (self) -> float:

		"""Length of one 16-step cycle at the current tempo, ignoring swing."""

		return stepgrid.constants.STEPS * 15.0 / self.transport.bpm

	# ------------------------------------------------------------------
	# Transport settings
	# ------------------------------------------------------------------

	def _configure_clock (self) -> None:
		self.clock.configure(self.transport.bpm, self.transport.swing, self.transport.swing_subdivision)

	def set_bpm (self, bpm: float) -> None:

		"""
		Change tempo.  Raises ``ValueError`` outside 60-180.
		"""

		self.transport = dataclasses.replace(self.transport, bpm=float(bpm))
		self._configure_clock()
		self.engine.set_tempo(self.transport.bpm)

		logger.info(f"BPM set to {self.transport.bpm:.2f}")

		self.events.emit_sync("bpm", self.transport.bpm)

	def set_swing (self, swing: float) -> None:

		"""Change the swing amount (0-1)."""

		self.transport = dataclasses.replace(self.transport, swing=float(swing))
		self._configure_clock()

	def set_accent_interval (self, interval: int) -> None:

		"""Change the accent period (0, 2, 3, 4 or 8).  Rebuilds the schedule."""

		if interval == self.transport.accent_interval:
			return

		self.transport = dataclasses.replace(self.transport, accent_interval=int(interval))
		self._rebuild("accent")

	# ------------------------------------------------------------------
	# Dispatch rebuilds
	# ------------------------------------------------------------------

	def snapshot (self) -> stepgrid.dispatcher.DispatchSnapshot:

		"""Freeze everything a tick reads into one immutable value."""

		return stepgrid.dispatcher.DispatchSnapshot(
			pattern = self.store.pattern,
			accent_interval = self.transport.accent_interval,
			markers = self.store.markers.times,
			sample_duration = self.sample_player.playable_duration,
		)

	def _rebuild (self, reason: str) -> None:

		if not self.running:
			return

		logger.debug(f"Rebuilding dispatch ({reason})")
		self.dispatcher.rebuild(self.snapshot())

	def _on_pattern_change (self, pattern: stepgrid.pattern.Pattern) -> None:
		self._rebuild("pattern")

	def _on_markers_change (self, markers: stepgrid.sampler.Markers) -> None:
		self._rebuild("markers")

	def _on_sample_ready (self, ready: bool) -> None:
		self._rebuild("sample ready" if ready else "sample unloaded")

	def _on_mix_change (self, channel: str, db: float) -> None:
		self.mix.set_level(channel, db)

	# ------------------------------------------------------------------
	# Sampler
	# ------------------------------------------------------------------

	def load_sample (self, path: str, keep_markers: bool = False) -> asyncio.Task:

		"""
		Load a new sample in the background.

		The current sample stops being playable at once; sample steps are
		skipped until the new file is ready.  Markers are offsets into the old
		buffer, so they are cleared unless ``keep_markers`` is set (for markers
		restored from storage that belong to this file).
		"""

		if not keep_markers:
			self.store.clear_markers()

		return self.sample_player.load(path)

	def add_marker (self, time: float) -> stepgrid.sampler.Markers:
		return self.store.add_marker(time)

	def clear_markers (self) -> stepgrid.sampler.Markers:
		return self.store.clear_markers()

	# ------------------------------------------------------------------
	# Mix and voice
	# ------------------------------------------------------------------

	def set_level (self, channel: str, db: float) -> float:

		"""Set a channel level in dB (clamped to -60..+6)."""

		return self.store.set_mix_level(channel, db)

	def _apply_synth_params (self, params: stepgrid.presets.SynthParams) -> None:
		self.synth_params = params
		self.engine.set_synth_params(params)

	def apply_preset (self, index: int) -> stepgrid.presets.SynthPreset:

		"""Load a synth preset by position (wraps)."""

		preset = stepgrid.presets.preset_at(index)
		self.preset_index = stepgrid.presets.SYNTH_PRESETS.index(preset)
		self._apply_synth_params(preset.params)

		logger.info(f"Synth preset: {preset.name}")

		return preset

	def randomize_synth_params (self, rng: random.Random) -> stepgrid.presets.SynthParams:
		self.preset_index = None
		self._apply_synth_params(stepgrid.presets.random_synth_params(rng))
		return self.synth_params

	def reset_synth_params (self) -> stepgrid.presets.SynthParams:
		self.preset_index = None
		self._apply_synth_params(stepgrid.presets.default_params())
		return self.synth_params
