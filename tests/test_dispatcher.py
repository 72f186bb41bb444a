import pytest

import conftest
import stepgrid.dispatcher
import stepgrid.event_emitter
import stepgrid.pattern


def _dispatcher () -> tuple:

	engine = conftest.FakeSoundEngine()
	clock = conftest.FakeClock()
	events = stepgrid.event_emitter.EventEmitter()

	return stepgrid.dispatcher.StepDispatcher(engine, clock, events), engine, clock, events


def test_drum_velocity_accents () -> None:

	"""Kick accents on offset 0 and snare on offset 2 of the accent period."""

	assert stepgrid.dispatcher.drum_velocity("kick", 4, 4) == 1.0
	assert stepgrid.dispatcher.drum_velocity("kick", 5, 4) == 0.85
	assert stepgrid.dispatcher.drum_velocity("snare", 6, 4) == 0.95
	assert stepgrid.dispatcher.drum_velocity("snare", 4, 4) == 0.8
	assert stepgrid.dispatcher.drum_velocity("kick", 6, 3) == 1.0


def test_drum_velocity_without_accent () -> None:

	"""Interval 0 disables accents; hats and perc are always fixed."""

	assert stepgrid.dispatcher.drum_velocity("kick", 0, 0) == 0.85
	assert stepgrid.dispatcher.drum_velocity("snare", 2, 0) == 0.8
	assert stepgrid.dispatcher.drum_velocity("hihat", 0, 2) == 0.5
	assert stepgrid.dispatcher.drum_velocity("perc", 0, 2) == 0.6


def test_snapshot_rejects_bad_accent () -> None:

	"""Only the supported accent periods are accepted."""

	with pytest.raises(ValueError):
		stepgrid.dispatcher.DispatchSnapshot(stepgrid.pattern.Pattern.empty(), accent_interval=5)


def test_all_events_of_a_step_share_one_time () -> None:

	"""Drums, synth and slice of the same step use the scheduled time exactly."""

	dispatcher, engine, clock, _ = _dispatcher()

	pattern = (
		stepgrid.pattern.Pattern.empty()
		.toggle_drum("kick", 0)
		.toggle_drum("snare", 0)
		.toggle_drum("hihat", 0)
		.toggle_drum("perc", 0)
		.toggle_roll(0, 0)
		.toggle_sample(0, 0)
	)

	dispatcher.rebuild(stepgrid.dispatcher.DispatchSnapshot(pattern, markers=(0.0, 1.0), sample_duration=2.0))
	clock.fire(0, time=12.345)

	assert len(engine.triggers) == 5
	assert {trigger[3] for trigger in engine.triggers} == {12.345}
	assert engine.slices == [(12.345, 0.0, 1.0)]


def test_trigger_arguments () -> None:

	"""Drum pitches, durations and the synth note come from the constants tables."""

	dispatcher, engine, clock, _ = _dispatcher()

	pattern = stepgrid.pattern.Pattern.empty().toggle_drum("kick", 3).toggle_drum("snare", 3).toggle_roll(11, 3)
	dispatcher.rebuild(stepgrid.dispatcher.DispatchSnapshot(pattern))
	clock.fire(3)

	assert ("kick", "C2", "8n", 1.0, 0.85) in engine.triggers
	assert ("snare", None, "8n", 1.0, 0.8) in engine.triggers
	assert ("synth", "C2", "16n", 1.0, 0.85) in engine.triggers


def test_step_wraps_and_is_reported () -> None:

	"""Raw tick values wrap into 0-15 and the step event fires every tick."""

	dispatcher, engine, clock, events = _dispatcher()
	steps: list[int] = []
	events.on("step", steps.append)

	dispatcher.rebuild(stepgrid.dispatcher.DispatchSnapshot(stepgrid.pattern.Pattern.empty()))
	dispatcher.tick(dispatcher.snapshot, 0.0, 17)

	assert steps == [1]
	assert dispatcher.current_step == 1


def test_failing_event_does_not_block_the_rest () -> None:

	"""An engine error on one track is logged and the other events still play."""

	dispatcher, engine, clock, _ = _dispatcher()
	engine.fail_channels.add("kick")

	pattern = stepgrid.pattern.Pattern.empty().toggle_drum("kick", 0).toggle_drum("hihat", 0).toggle_roll(2, 0)
	dispatcher.rebuild(stepgrid.dispatcher.DispatchSnapshot(pattern))
	clock.fire(0)

	assert [trigger[0] for trigger in engine.triggers] == ["hihat", "synth"]


def test_sample_steps_skipped_until_ready () -> None:

	"""A zero sample duration means sample cells are silently skipped."""

	dispatcher, engine, clock, _ = _dispatcher()

	pattern = stepgrid.pattern.Pattern.empty().toggle_sample(0, 0)
	dispatcher.rebuild(stepgrid.dispatcher.DispatchSnapshot(pattern, markers=(0.0,), sample_duration=0.0))
	clock.fire(0)

	assert engine.slices == []


def test_sample_steps_skipped_without_markers () -> None:

	"""A ready sample with no markers plays nothing."""

	dispatcher, engine, clock, _ = _dispatcher()

	pattern = stepgrid.pattern.Pattern.empty().toggle_sample(0, 0)
	dispatcher.rebuild(stepgrid.dispatcher.DispatchSnapshot(pattern, sample_duration=2.0))
	clock.fire(0)

	assert engine.slices == []


def test_rebuild_keeps_one_registration () -> None:

	"""Rebuilding disposes the previous registration first."""

	dispatcher, engine, clock, _ = _dispatcher()
	snapshot = stepgrid.dispatcher.DispatchSnapshot(stepgrid.pattern.Pattern.empty().toggle_drum("kick", 0))

	for _ in range(10):
		dispatcher.rebuild(snapshot)

	assert len(clock.registrations) == 1
	assert clock.max_live == 1

	clock.fire(0)

	assert len(engine.triggers) == 1


def test_old_snapshot_is_not_affected_by_later_edits () -> None:

	"""A registration plays the snapshot it was built from."""

	dispatcher, engine, clock, _ = _dispatcher()
	pattern = stepgrid.pattern.Pattern.empty().toggle_drum("kick", 0)
	dispatcher.rebuild(stepgrid.dispatcher.DispatchSnapshot(pattern))

	pattern.toggle_drum("snare", 0)
	clock.fire(0)

	assert [trigger[0] for trigger in engine.triggers] == ["kick"]


def test_teardown () -> None:

	"""teardown removes the registration and is safe to repeat."""

	dispatcher, engine, clock, _ = _dispatcher()
	dispatcher.rebuild(stepgrid.dispatcher.DispatchSnapshot(stepgrid.pattern.Pattern.empty()))

	dispatcher.teardown()
	dispatcher.teardown()

	assert not dispatcher.installed
	assert clock.registrations == {}
