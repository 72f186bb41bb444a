import argparse
import asyncio
import logging
import random
import typing

import stepgrid.clock
import stepgrid.config
import stepgrid.pattern_store
import stepgrid.persistence
import stepgrid.sequencer
import stepgrid.sound_engine


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_engine (config: stepgrid.config.AppConfig) -> stepgrid.sound_engine.SoundEngine:

	"""
	Create the sound engine named in the config.
	"""

	if config.engine == "osc":
		return stepgrid.sound_engine.OscSoundEngine(host=config.osc.host, port=config.osc.port)

	return stepgrid.sound_engine.MidiSoundEngine(
		device_name = config.midi.device,
		drum_channel = config.midi.drum_channel,
		synth_channel = config.midi.synth_channel,
		sampler_channel = config.midi.sampler_channel,
		sampler_note = config.midi.sampler_note,
	)


def build_store (config: stepgrid.config.AppConfig) -> stepgrid.pattern_store.PatternStore:

	if config.storage_directory:
		storage: stepgrid.persistence.KeyValueStore = stepgrid.persistence.FileStore(config.storage_directory)
	else:
		logger.info("No storage directory configured - pattern will not be saved.")
		storage = stepgrid.persistence.MemoryStore()

	return stepgrid.pattern_store.PatternStore(storage)


async def run (args: argparse.Namespace) -> None:

	config = stepgrid.config.load_config(args.config)

	transport = config.transport

	if args.bpm is not None:
		transport = stepgrid.config.TransportConfig(
			bpm = stepgrid.config.clamp_bpm(args.bpm),
			swing = transport.swing,
			swing_subdivision = transport.swing_subdivision,
			accent_interval = transport.accent_interval,
		)

	store = build_store(config)
	store.load()

	if args.randomize:
		store.randomize_all(random.Random(args.seed))

	seq = stepgrid.sequencer.StepSequencer(
		engine = build_engine(config),
		clock = stepgrid.clock.AsyncioClock(lookahead=config.lookahead),
		store = store,
		transport = transport,
	)

	await seq.connect()

	if args.sample:
		# Saved markers were captured against the sample given on the command line.
		await seq.load_sample(args.sample, keep_markers=True)

	try:
		await seq.play(bars=args.bars)
	finally:
		await seq.close()


def main (argv: typing.Optional[typing.List[str]] = None) -> None:

	"""
	Main entry point: load config and the saved pattern, then play it.
	"""

	parser = argparse.ArgumentParser(description="Stepgrid 16-step sequencer")
	parser.add_argument("--config", default="config.yaml", help="YAML config file (default: config.yaml)")
	parser.add_argument("--randomize", action="store_true", help="Randomise drums and synth before playing")
	parser.add_argument("--seed", type=int, default=None, help="Random seed for --randomize")
	parser.add_argument("--bars", type=int, default=None, help="Stop after this many bars (default: play until Ctrl+C)")
	parser.add_argument("--bpm", type=float, default=None, help="Override the configured tempo (60-180)")
	parser.add_argument("--sample", default=None, help="WAV file to load into the sampler")
	args = parser.parse_args(argv)

	logger.info("Stepgrid starting...")

	try:
		asyncio.run(run(args))
	except KeyboardInterrupt:
		logger.info("Stopping...")


if __name__ == "__main__":
	main()
