"""
Debounced input values on the running event loop.
"""

import asyncio
from typing import Any, Callable, Generic, List, Optional, TypeVar

from shared.logging import get_logger

T = TypeVar("T")


class Debouncer(Generic[T]):
    """Holds back a rapidly changing value until it has been quiet for ``interval`` seconds.

    Every `push` cancels the pending timer (synchronously, so a cancelled
    timer can never fire) and starts a new one. When the timer fires, the
    latest raw value becomes the settled value; listeners hear about it only
    if it differs from the previously settled value.
    """

    def __init__(
        self,
        interval: float,
        initial: T = None,
        on_settle: Optional[Callable[[T], None]] = None,
        name: str = "input",
    ):
        self.interval = interval
        self.name = name
        self.logger = get_logger("explorer.debounce")
        self._latest: T = initial
        self._value: T = initial
        self._handle: Optional[asyncio.TimerHandle] = None
        self._listeners: List[Callable[[T], None]] = []
        self._waiters: List["asyncio.Future[Any]"] = []
        if on_settle is not None:
            self._listeners.append(on_settle)

    @property
    def value(self) -> T:
        """The settled value."""
        return self._value

    @property
    def latest(self) -> T:
        """The most recent raw value."""
        return self._latest

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def subscribe(self, listener: Callable[[T], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def push(self, value: T) -> None:
        """Record a raw value and restart the quiet window."""
        self._latest = value
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.interval, self._settle)

    def flush(self) -> None:
        """Settle a pending value immediately."""
        if self._handle is not None:
            self._cancel_timer()
            self._settle()

    def cancel(self) -> None:
        """Drop a pending value without settling it."""
        self._cancel_timer()
        self._latest = self._value
        self._release_waiters()

    async def wait_settled(self) -> T:
        """Wait until no value is pending and return the settled value."""
        while self._handle is not None:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            await waiter
        return self._value

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _settle(self) -> None:
        self._handle = None
        previous, self._value = self._value, self._latest
        self._release_waiters()
        if previous == self._value:
            return

        self.logger.debug("Input settled", input=self.name, value=self._value)
        for listener in list(self._listeners):
            listener(self._value)

    def _release_waiters(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
