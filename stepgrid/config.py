"""Configuration.

Settings come from a YAML file (``config.yaml`` by default).  Every key is
optional; a missing file means all defaults.

```yaml
transport:
  bpm: 124
  swing: 0.2
  accent_interval: 4

storage:
  directory: ~/.stepgrid

engine: midi          # or "osc"

midi:
  device: "IAC Driver Bus 1"
  drum_channel: 10    # 1-16, as printed on hardware
  synth_channel: 1
  sampler_channel: 2

osc:
  host: 127.0.0.1
  port: 9002

clock:
  lookahead: 0.05
```
"""

import dataclasses
import logging
import os
import typing

import yaml

import stepgrid.constants
import stepgrid.constants.pulses


logger = logging.getLogger(__name__)


MIN_BPM = 60.0
MAX_BPM = 180.0
DEFAULT_BPM = 120.0

ENGINES = ("midi", "osc")


def clamp_bpm (bpm: float) -> float:
	return max(MIN_BPM, min(MAX_BPM, float(bpm)))


def clamp_swing (swing: float) -> float:
	return max(0.0, min(1.0, float(swing)))


def nearest_accent_interval (interval: int) -> int:

	"""Snap any integer to the closest allowed accent interval (ties go lower)."""

	return min(stepgrid.constants.ACCENT_INTERVALS, key=lambda allowed: (abs(allowed - interval), allowed))


@dataclasses.dataclass (frozen=True)
class TransportConfig:

	"""
	Tempo, swing and accent settings.

	Out-of-range values raise ``ValueError``; UI code that wants to be
	forgiving should pass values through :func:`clamp_bpm`,
	:func:`clamp_swing` and :func:`nearest_accent_interval` first.
	"""

	bpm: float = DEFAULT_BPM
	swing: float = 0.0
	swing_subdivision: str = "8n"
	accent_interval: int = 0

	def __post_init__ (self) -> None:

		if not MIN_BPM <= self.bpm <= MAX_BPM:
			raise ValueError(f"BPM must be between {MIN_BPM:g} and {MAX_BPM:g}, got {self.bpm}")

		if not 0.0 <= self.swing <= 1.0:
			raise ValueError(f"Swing must be between 0 and 1, got {self.swing}")

		if self.swing_subdivision not in stepgrid.constants.pulses.SUBDIVISION_PULSES:
			raise ValueError(f"Unknown swing subdivision {self.swing_subdivision!r}")

		if self.accent_interval not in stepgrid.constants.ACCENT_INTERVALS:
			raise ValueError(f"Accent interval must be one of {stepgrid.constants.ACCENT_INTERVALS}, got {self.accent_interval}")


@dataclasses.dataclass (frozen=True)
class MidiConfig:

	"""MIDI engine settings.  Channels are 0-based here."""

	device: typing.Optional[str] = None
	drum_channel: int = 9
	synth_channel: int = 0
	sampler_channel: int = 1
	sampler_note: int = 60


@dataclasses.dataclass (frozen=True)
class OscConfig:

	host: str = "127.0.0.1"
	port: int = 9002


@dataclasses.dataclass (frozen=True)
class AppConfig:

	transport: TransportConfig = dataclasses.field(default_factory=TransportConfig)
	storage_directory: typing.Optional[str] = None
	engine: str = "midi"
	midi: MidiConfig = dataclasses.field(default_factory=MidiConfig)
	osc: OscConfig = dataclasses.field(default_factory=OscConfig)
	lookahead: float = 0.05

	def __post_init__ (self) -> None:

		if self.engine not in ENGINES:
			raise ValueError(f"Unknown engine {self.engine!r}. Available: {list(ENGINES)}")

		if self.lookahead < 0:
			raise ValueError("Clock lookahead cannot be negative")


def _section (data: typing.Dict[str, typing.Any], name: str) -> typing.Dict[str, typing.Any]:

	section = data.get(name) or {}

	if not isinstance(section, dict):
		raise ValueError(f"Config section {name!r} must be a mapping")

	return section


def _midi_channel (section: typing.Dict[str, typing.Any], key: str, default: int) -> int:

	"""Read a 1-16 channel number from config and return it 0-based."""

	if key not in section:
		return default

	channel = int(section[key])

	if not 1 <= channel <= 16:
		raise ValueError(f"midi.{key} must be 1-16, got {channel}")

	return channel - 1


def config_from_dict (data: typing.Optional[typing.Dict[str, typing.Any]]) -> AppConfig:

	"""Build an :class:`AppConfig` from parsed YAML.  Unknown keys are ignored."""

	data = data or {}

	if not isinstance(data, dict):
		raise ValueError("Config must be a mapping")

	transport = _section(data, "transport")
	storage = _section(data, "storage")
	midi = _section(data, "midi")
	osc = _section(data, "osc")
	clock = _section(data, "clock")

	directory = storage.get("directory")

	return AppConfig(
		transport = TransportConfig(
			bpm = float(transport.get("bpm", DEFAULT_BPM)),
			swing = float(transport.get("swing", 0.0)),
			swing_subdivision = str(transport.get("swing_subdivision", "8n")),
			accent_interval = int(transport.get("accent_interval", 0)),
		),
		storage_directory = os.path.expanduser(str(directory)) if directory else None,
		engine = str(data.get("engine", "midi")),
		midi = MidiConfig(
			device = midi.get("device"),
			drum_channel = _midi_channel(midi, "drum_channel", 9),
			synth_channel = _midi_channel(midi, "synth_channel", 0),
			sampler_channel = _midi_channel(midi, "sampler_channel", 1),
			sampler_note = int(midi.get("sampler_note", 60)),
		),
		osc = OscConfig(
			host = str(osc.get("host", "127.0.0.1")),
			port = int(osc.get("port", 9002)),
		),
		lookahead = float(clock.get("lookahead", 0.05)),
	)


def load_config (config_path: str = 'config.yaml') -> AppConfig:

	"""
	Load configuration from a YAML file, or defaults if the file does not exist.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return AppConfig()

	with open(config_path, 'r') as f:
		return config_from_dict(yaml.safe_load(f))
