import asyncio
import typing


CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Named events with sync and async listeners.

	The sequencer raises ``"start"``, ``"stop"``, ``"step"`` (the playhead
	index, once per tick) and ``"bpm"``; the pattern store raises
	``"change"`` with the new snapshot.
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register a callback for an event name.
		"""

		self._listeners.setdefault(event_name, []).append(callback)

	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		listeners = self._listeners.get(event_name, [])

		if callback not in listeners:
			raise ValueError(f"Callback not registered for event {event_name!r}")

		listeners.remove(callback)

	def clear (self, event_name: typing.Optional[str] = None) -> None:

		"""Drop the listeners for one event, or for every event when no name is given."""

		if event_name is None:
			self._listeners.clear()
		else:
			self._listeners.pop(event_name, None)

	def listener_count (self, event_name: str) -> int:
		return len(self._listeners.get(event_name, []))


	def emit_sync (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call every listener immediately.  Async listeners are not allowed here.

		This is what the tick path uses, so it never awaits.
		"""

		# Copy so a listener may unsubscribe itself mid-emit.
		for callback in list(self._listeners.get(event_name, [])):

			if asyncio.iscoroutinefunction(callback):
				raise ValueError(f"Async callback registered for {event_name!r} cannot be called from emit_sync")

			callback(*args, **kwargs)


	async def emit_async (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call sync listeners inline and await async ones together.
		"""

		tasks: typing.List[typing.Awaitable[typing.Any]] = []

		for callback in list(self._listeners.get(event_name, [])):

			if asyncio.iscoroutinefunction(callback):
				tasks.append(callback(*args, **kwargs))

			else:
				callback(*args, **kwargs)

		if tasks:
			await asyncio.gather(*tasks)
