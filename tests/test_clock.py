import asyncio
import math

import pytest

import stepgrid.clock
import stepgrid.constants.pulses


def test_swing_offset_zero_on_pair_boundary () -> None:

	"""Pulses that start a swing pair are never delayed."""

	for pulse in (0, 24, 48):
		assert stepgrid.clock.swing_offset(pulse, 1.0, 12, 0.02) == 0.0


def test_swing_offset_peaks_on_offbeat () -> None:

	"""Full 8th-note swing pushes the off-beat two thirds of an eighth late."""

	seconds_per_pulse = 60.0 / 120 / 24

	offset = stepgrid.clock.swing_offset(12, 1.0, 12, seconds_per_pulse)

	assert offset == pytest.approx((2.0 / 3.0) * 12 * seconds_per_pulse)


def test_swing_offset_follows_sine () -> None:

	"""Between boundaries the delay is a half sine of the position in the pair."""

	offset = stepgrid.clock.swing_offset(6, 0.5, 12, 0.01)

	assert offset == pytest.approx(math.sin(math.pi * 0.25) * 0.5 * (2.0 / 3.0) * 12 * 0.01)


def test_no_swing_no_offset () -> None:

	"""Zero swing leaves every pulse alone."""

	assert all(stepgrid.clock.swing_offset(p, 0.0, 12, 0.02) == 0.0 for p in range(48))


def test_subdivision_pulses () -> None:

	"""Subdivision tags map to 24 PPQN pulse counts."""

	assert stepgrid.clock.subdivision_pulses("16n") == stepgrid.constants.pulses.SIXTEENTH_NOTE
	assert stepgrid.clock.subdivision_pulses("8n") == 12

	with pytest.raises(ValueError):
		stepgrid.clock.subdivision_pulses("7n")


def test_configure_validates () -> None:

	"""Tempo must be positive and swing within 0-1."""

	clock = stepgrid.clock.AsyncioClock()

	with pytest.raises(ValueError):
		clock.configure(0, 0.0, "8n")

	with pytest.raises(ValueError):
		clock.configure(120, 1.5, "8n")

	clock.configure(150, 0.3, "16n")

	assert clock.seconds_per_pulse == pytest.approx(60.0 / 150 / 24)
	assert clock.swing == 0.3


def test_schedule_and_dispose () -> None:

	"""Handles are unique, and disposing twice is harmless."""

	clock = stepgrid.clock.AsyncioClock()

	a = clock.schedule(lambda t, v: None, [0, 1])
	b = clock.schedule(lambda t, v: None, [0, 1])

	assert a != b
	assert clock.registration_count == 2

	clock.dispose(a)
	clock.dispose(a)

	assert clock.registration_count == 1


def test_process_pulse_maps_steps () -> None:

	"""A 16n registration fires every sixth pulse with the next step index."""

	clock = stepgrid.clock.AsyncioClock()
	fired: list[tuple[float, int]] = []

	clock.schedule(lambda t, v: fired.append((t, v)), list(range(16)), "16n")

	for pulse in range(6 * 18):
		clock._process_pulse(pulse, float(pulse))

	assert [v for _, v in fired] == list(range(16)) + [0, 1]
	assert fired[1][0] == 6.0


def test_registration_installed_mid_bar_joins_at_current_step () -> None:

	"""A late registration picks up the running step, not step 0."""

	clock = stepgrid.clock.AsyncioClock()
	fired: list[int] = []

	for pulse in range(6 * 5):
		clock._process_pulse(pulse, 0.0)

	clock.schedule(lambda t, v: fired.append(v), list(range(16)), "16n")
	clock._process_pulse(6 * 5, 0.0)

	assert fired == [5]


def test_failing_callback_does_not_stop_others () -> None:

	"""An exception in one callback is logged and the rest still fire."""

	clock = stepgrid.clock.AsyncioClock()
	fired: list[int] = []

	def boom (t: float, v: int) -> None:
		raise RuntimeError("boom")

	clock.schedule(boom, [0])
	clock.schedule(lambda t, v: fired.append(v), [7])
	clock._process_pulse(0, 0.0)

	assert fired == [7]


def test_callback_disposing_a_later_registration () -> None:

	"""A registration disposed by an earlier callback in the same pulse does not fire."""

	clock = stepgrid.clock.AsyncioClock()
	fired: list[str] = []
	handles: dict[str, int] = {}

	def first (t: float, v: int) -> None:
		fired.append("first")
		clock.dispose(handles["second"])

	handles["first"] = clock.schedule(first, [0])
	handles["second"] = clock.schedule(lambda t, v: fired.append("second"), [0])

	clock._process_pulse(0, 0.0)

	assert fired == ["first"]


def test_swing_applies_to_scheduled_time () -> None:

	"""The off-beat sixteenth of a 16n swing pair arrives late."""

	clock = stepgrid.clock.AsyncioClock()
	clock.configure(120, 1.0, "16n")
	times: list[float] = []

	clock.schedule(lambda t, v: times.append(t), list(range(16)), "16n")
	clock._process_pulse(0, 0.0)
	clock._process_pulse(6, 0.0)

	assert times[0] == 0.0
	assert times[1] > 0.0


@pytest.mark.asyncio
async def test_real_clock_ticks () -> None:

	"""A running clock fires in order with non-decreasing times, and stops cleanly."""

	clock = stepgrid.clock.AsyncioClock(lookahead=0.0, spin_wait=False)
	clock.configure(180, 0.0, "8n")
	fired: list[tuple[float, int]] = []

	clock.schedule(lambda t, v: fired.append((t, v)), list(range(16)), "16n")
	clock.start(0.0)

	await asyncio.sleep(0.3)
	clock.stop()

	assert not clock.running
	assert len(fired) >= 3
	assert [v for _, v in fired] == [i % 16 for i in range(len(fired))]
	assert all(b[0] >= a[0] for a, b in zip(fired, fired[1:]))

	count = len(fired)
	await asyncio.sleep(0.1)

	assert len(fired) == count
