"""Duration tags handed to the sound engine with each trigger.

Tags are musical note values rather than seconds so the engine can resolve
them against its own tempo::

    engine.trigger("kick", "C2", durations.EIGHTH, time, 0.85)
"""

SIXTEENTH = "16n"
EIGHTH = "8n"

# Gate length per channel.
CHANNEL_DURATIONS = {
	"kick": EIGHTH,
	"snare": EIGHTH,
	"hihat": SIXTEENTH,
	"perc": SIXTEENTH,
	"synth": SIXTEENTH,
}
