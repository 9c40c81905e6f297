"""
The Backend class.

The base class of the bridge's protocol backends is here defined.
"""

import contextlib
import logging
import queue
import typing
from typing import Awaitable, Callable, Dict, Iterator, List, Optional, Set

import trio

Listener = Callable[[str, typing.Any], Awaitable[None]]


class Backend:
    """
    Dummy backend implementation superclass.

    Actual backends are supposed to subclass the Backend class, which
    nonetheless provides the event listener registry every backend needs,
    and through which Endpoints are notified of inbound events.
    """

    def __init__(self):
        self._listeners = {}  # type: Dict[str, List[Listener]]
        self._global_listeners = []  # type: List[Listener]

        self.stop_scopes = set()  # type: Set[trio.CancelScope]

        self._running = False
        self._stopping = False

    def listen(self, name: str = "_"):
        """Adds a listener for specific events received in this backend.
        Use as a decorator generating method.

        Keyword Arguments:
            name {str} -- The kind of the event to listen for (default: {'_'})

        Returns:
            function -- The decorator method.
        """

        def _decorator(func):
            self._listeners.setdefault(name, []).append(func)
            return func

        return _decorator

    def listen_all(self):
        """Adds a listener for all events received in this backend.
        Use as a decorator generating method.

        Returns:
            function -- The decorator method.
        """

        def _decorator(func):
            self._global_listeners.append(func)
            return func

        return _decorator

    async def receive_message(self, kind: str, data: typing.Any):
        """Call this function whenever an event is received in this backend.
        Used either by subclasses or to 'simulate' events.

        Listeners are awaited one after the other, in registration order,
        so that the handling of an event runs to completion before the
        backend reads the next one.

            >>> import trio
            >>> dummy_backend = Backend()
            ...
            >>> @dummy_backend.listen('GREET')
            ... async def greet(kind, whom):
            ...     print('{}: hello, {}!'.format(kind, whom))
            ...
            >>> trio.run(dummy_backend.receive_message, 'GREET', 'everyone')
            GREET: hello, everyone!
            >>> trio.run(dummy_backend.receive_message, 'LEAVE', 'nobody')

        Arguments:
            kind {str} -- The kind of event (aka name argument in listen).
            data {any} -- The event's data.
        """

        listeners = self._listeners.get(kind, []) + self._global_listeners

        for listener in listeners:
            await listener(kind, data)

    async def start(self):
        """Starts the backend."""

        raise NotImplementedError("Please subclass and implement!")

    async def stop(self):
        """Stops the backend."""

        raise NotImplementedError("Please subclass and implement!")

    @contextlib.contextmanager
    def stop_scope(self) -> Iterator[trio.CancelScope]:
        """Enters a new Trio cancel scope, which is cancelled
        when the backend is stopped. A scope entered after the
        backend was asked to stop is cancelled right away.

        Yields:
            trio.CancelScope -- The stop scope.
        """

        scope = trio.CancelScope()

        if self._stopping:
            scope.cancel()

        self.stop_scopes.add(scope)

        try:
            with scope:
                yield scope

        finally:
            self.stop_scopes.discard(scope)


class DuplexBackend(Backend):
    """
    A backend that supports both asynchronous sending
    and receiving of protocol data.

    Outbound items are never written directly; they are put on an
    out-queue which a sender task drains, throttled by a 'heat' counter
    that a cooldown task decreases at a fixed frequency.
    """

    def __init__(
        self,
        cooldown_hertz: float = 1.2,
        max_heat: int = 5,
        throttle: bool = True,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__()

        self._out_queue = queue.Queue()
        self._heat = 0
        self._max_heat = max_heat
        self.cooldown_hertz = cooldown_hertz
        self.throttle = throttle
        self.logger = logger or logging.getLogger(__name__)

    def max_heat(self) -> int:
        """
        The maximum value self.heat can reach before
        throttling commences.

        Defaults to self._max_heat.
        """

        return self._max_heat

    def running(self) -> bool:
        """Returns whether this backend is still up and running.

            >>> DuplexBackend().running()
            False

        Returns:
            bool -- Self-explanatory.
        """

        return self._running and not self._stopping

    def send_nowait(self, item: str):
        """
        Queues an item to be sent, without blocking. The item is
        written by the sender task once the backend is running and
        the throttle allows it.

        Arguments:
            item {str} -- The item to send.
        """

        self._out_queue.put(item)

    def pending(self) -> List[str]:
        """Returns (and removes) every item still waiting in the out-queue."""

        items = []

        while not self._out_queue.empty():
            items.append(self._out_queue.get_nowait())

        return items

    async def _cooldown(self):
        """
        This async loop is responsible for 'cooling' the backend
        down, at a specified frequency. It's part of the
        throttling mechanism.
        """

        if self.throttle:
            with self.stop_scope():
                while self.running():
                    self._heat = max(self._heat - 1, 0)

                    await trio.sleep(1 / self.cooldown_hertz)

    async def _sender(self):
        """
        This async loop is responsible for sending queued items,
        handling throttling, and other similar things.
        """

        with self.stop_scope():
            while self.running():
                while not self._out_queue.empty():
                    if self.throttle:
                        self._heat += 1

                        if self._heat > self.max_heat():
                            break

                    item = self._out_queue.get()

                    try:
                        await self._send(item)

                    except (trio.BrokenResourceError, trio.ClosedResourceError):
                        self.logger.warning("Connection closed; dropping %r", item)
                        return

                if self.running():
                    if self._heat > self.max_heat() and self.throttle:
                        while self._heat:
                            await trio.sleep(0.2)

                    else:
                        await trio.sleep(0.05)

    async def _send(self, item: str):
        """Underlying method that writes an item to the wire."""

        raise NotImplementedError("Please subclass and implement!")
