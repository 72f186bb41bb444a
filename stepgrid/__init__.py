"""
Stepgrid - a 16-step grid sequencer with procedural pattern generators.

One pattern cycle holds four drum tracks (kick, snare, hi-hat, perc), a
monophonic synth roll and a sample-slice roll.  A clock ticks every
sixteenth note; each tick plays whatever the current pattern holds at that
step through a sound engine (MIDI via mido, or OSC for an external audio
host), all stamped with the same scheduled time.

Generators fill the grid on demand:

- **Rhythm.** Euclidean (bucket) masks with random rotation, and named
  styles: offbeat, syncopated, scatter, backbeat.
- **Melody.** Scale-constrained walks over the roll with a mid-register
  bias, occasional leaps, de-repetition and a pull back to the root at the
  end of the bar.  Arpeggio, motif and bass-line engines share the same
  scale logic.
- **Slices.** Captured sample markers spread over a rhythm.

Everything random takes an explicit ``random.Random``, so a seed
reproduces a pattern exactly.

Example:
	```python
	import asyncio
	import random

	import stepgrid

	async def main () -> None:
		engine = stepgrid.MidiSoundEngine()
		seq = stepgrid.StepSequencer(engine)
		await seq.connect()

		rng = random.Random(42)
		seq.store.generate_rhythm("kick", "euclidean", 4, rng)
		seq.store.generate_rhythm("snare", "backbeat", 2, rng)
		seq.store.generate_melody(rng, density=0.5, root="A", scale="minor")

		await seq.play(bars=8)
		await seq.close()

	asyncio.run(main())
	```

The pattern is an immutable snapshot.  Edits (manual or generated) go
through :class:`PatternStore`, which persists them and notifies the
sequencer, which then rebuilds its dispatch registration.

Package-level exports: ``StepSequencer``, ``PatternStore``, ``Pattern``,
``AsyncioClock``, ``MidiSoundEngine``, ``OscSoundEngine``, ``AppConfig``,
``TransportConfig``, ``load_config``.
"""

import stepgrid.clock
import stepgrid.config
import stepgrid.pattern
import stepgrid.pattern_store
import stepgrid.sequencer
import stepgrid.sound_engine


AsyncioClock = stepgrid.clock.AsyncioClock
AppConfig = stepgrid.config.AppConfig
TransportConfig = stepgrid.config.TransportConfig
load_config = stepgrid.config.load_config
Pattern = stepgrid.pattern.Pattern
PatternStore = stepgrid.pattern_store.PatternStore
StepSequencer = stepgrid.sequencer.StepSequencer
MidiSoundEngine = stepgrid.sound_engine.MidiSoundEngine
OscSoundEngine = stepgrid.sound_engine.OscSoundEngine
