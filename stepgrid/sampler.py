"""Sample slicing.

Markers are time offsets (seconds) captured into a loaded sample.  A step of
the sample roll names a marker; the slice it plays runs from that marker to
the next one, or to the end of the buffer.

Loading is asynchronous and happens ahead of playback.  The dispatcher never
waits for it: it reads a readiness flag and a duration captured when the
schedule was built, and skips sample steps while nothing is ready.
"""

import asyncio
import bisect
import dataclasses
import logging
import random
import typing
import wave

import stepgrid.constants


logger = logging.getLogger(__name__)


MIN_SLICE_SECONDS = 0.005


@dataclasses.dataclass (frozen=True)
class Slice:

	"""
	A region of the sample buffer to play.
	"""

	start: float
	duration: float


def compute_slice (markers: typing.Sequence[float], marker: int, buffer_duration: float) -> typing.Optional[Slice]:

	"""
	Work out the region a marker plays, or ``None`` when the step should be skipped.

	``start`` is the marker clamped into the buffer.  The slice ends at the
	next marker, or at the end of the buffer after the last one.  A marker
	index beyond the captured markers plays the whole buffer.  Durations
	are at least ``MIN_SLICE_SECONDS`` and never run past the buffer end;
	a marker closer than that to the end is skipped.

	Example:
		```python
		compute_slice([0.0, 0.5, 1.2], 1, 2.0)  # Slice(start=0.5, duration=0.7)
		compute_slice([0.0, 0.5, 1.2], 2, 2.0)  # Slice(start=1.2, duration=0.8)
		compute_slice([], 0, 2.0)               # None - no markers yet
		```
	"""

	if buffer_duration <= 0 or not markers or marker < 0:
		return None

	# A marker past the end of the list plays from the top of the buffer.
	first = markers[marker] if marker < len(markers) else 0.0
	start = max(0.0, min(buffer_duration, first))
	end = markers[marker + 1] if marker + 1 < len(markers) else buffer_duration

	# Too close to the end of the buffer for an audible slice.
	if buffer_duration - start < MIN_SLICE_SECONDS:
		return None

	duration = min(buffer_duration - start, max(MIN_SLICE_SECONDS, end - start))

	return Slice(start=start, duration=duration)


class Markers:

	"""
	An ascending list of at most ``MAX_MARKERS`` slice points.

	Read-only from the outside: use :meth:`add` and :meth:`clear`, which
	return a new ``Markers`` and leave this one untouched.
	"""

	def __init__ (self, times: typing.Iterable[float] = ()) -> None:

		values = sorted(float(t) for t in times)

		if len(values) > stepgrid.constants.MAX_MARKERS:
			raise ValueError(f"At most {stepgrid.constants.MAX_MARKERS} markers are allowed")

		if any(t < 0 for t in values):
			raise ValueError("Marker times cannot be negative")

		self._times: typing.Tuple[float, ...] = tuple(values)

	def __len__ (self) -> int:
		return len(self._times)

	def __getitem__ (self, index: int) -> float:
		return self._times[index]

	def __iter__ (self) -> typing.Iterator[float]:
		return iter(self._times)

	def __eq__ (self, other: object) -> bool:
		if not isinstance(other, Markers):
			return NotImplemented
		return self._times == other._times

	def __hash__ (self) -> int:
		return hash(self._times)

	def __repr__ (self) -> str:
		return f"Markers({list(self._times)!r})"

	@property
	def times (self) -> typing.Tuple[float, ...]:
		return self._times

	@property
	def full (self) -> bool:
		return len(self._times) >= stepgrid.constants.MAX_MARKERS

	def add (self, time: float) -> "Markers":

		"""Insert a marker in order.  At the cap this is a no-op and returns ``self``."""

		if self.full:
			return self

		times = list(self._times)
		bisect.insort(times, max(0.0, float(time)))

		return Markers(times)

	def clear (self) -> "Markers":
		return Markers()


def wav_duration (path: str) -> float:

	"""Read the duration of a WAV file from its header, in seconds."""

	with wave.open(path, "rb") as wav:
		rate = wav.getframerate()
		if rate <= 0:
			return 0.0
		return wav.getnframes() / float(rate)


LoaderFn = typing.Callable[[str], typing.Awaitable[float]]


class SamplePlayer:

	"""
	Tracks which sample is loaded and whether it is ready to play.

	:meth:`load` starts loading in the background and returns straight away.
	Loading a new file cancels any load still in progress and clears
	readiness until the new file is in.  Listeners registered with
	:meth:`on_ready_change` hear every readiness change, so the owner can
	rebuild its schedule.
	"""

	def __init__ (self, loader: LoaderFn) -> None:

		"""
		Parameters:
			loader: Coroutine function that loads a file into the sound engine and
				returns its duration in seconds.
		"""

		self._loader = loader
		self._task: typing.Optional[asyncio.Task] = None
		self._listeners: typing.List[typing.Callable[[bool], None]] = []

		self.path: typing.Optional[str] = None
		self.ready = False
		self.duration = 0.0

	def on_ready_change (self, callback: typing.Callable[[bool], None]) -> None:
		self._listeners.append(callback)

	def _set_ready (self, ready: bool, duration: float = 0.0) -> None:

		changed = ready != self.ready or duration != self.duration
		self.ready = ready
		self.duration = duration

		if changed:
			for callback in self._listeners:
				callback(ready)

	@property
	def playable_duration (self) -> float:

		"""Buffer length when ready and non-empty, else 0.0."""

		return self.duration if self.ready and self.duration > 0 else 0.0

	def load (self, path: str) -> asyncio.Task:

		"""
		Begin loading ``path``.  Must be called from a running event loop.

		Returns the background task, which callers may await.
		"""

		self.dispose()
		self.path = path

		self._task = asyncio.get_running_loop().create_task(self._load(path))
		return self._task

	async def _load (self, path: str) -> None:

		try:
			duration = await self._loader(path)
		except asyncio.CancelledError:
			raise
		except Exception as exc:
			logger.warning(f"Failed to load sample {path!r}: {exc}")
			return

		if self.path != path:
			return

		logger.info(f"Sample loaded: {path} ({duration:.3f}s)")
		self._set_ready(True, max(0.0, float(duration)))

	def dispose (self) -> None:

		"""Cancel any load in progress and drop the current sample."""

		if self._task is not None and not self._task.done():
			self._task.cancel()

		self._task = None
		self.path = None
		self._set_ready(False)


SLICE_ORDERS = ("sequential", "random")


def assign_slices (
	mask: typing.Sequence[bool],
	marker_count: int,
	rng: random.Random,
	order: str = "sequential",
) -> typing.List[typing.Optional[int]]:

	"""
	Give every active step of a mask a marker index.

	``sequential`` walks the markers in order (wrapping), so the sample
	plays through from the top; ``random`` picks a marker per step.  With no
	markers every step is left empty.
	"""

	if order not in SLICE_ORDERS:
		raise ValueError(f"Unknown slice order {order!r}. Available: {list(SLICE_ORDERS)}")

	marker_count = max(0, min(stepgrid.constants.MAX_MARKERS, marker_count))
	result: typing.List[typing.Optional[int]] = [None] * len(mask)

	if marker_count == 0:
		return result

	position = 0

	for i, active in enumerate(mask):

		if not active:
			continue

		if order == "random":
			result[i] = rng.randrange(marker_count)
		else:
			result[i] = position % marker_count
			position += 1

	return result
