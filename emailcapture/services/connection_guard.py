"""
Connection guard for the subscriber store.

One guard per process. It owns the readiness state that every request reads
and is the only thing that asks the store to (re)connect:

    DISCONNECTED --connect()--> CONNECTING --ok--> CONNECTED
         ^                           |                 |
         +-------- failure ----------+   on_disconnect()
         +---------------------------------------------+

At most one connection attempt is in flight at a time. Driver disconnect
events do not reconnect inline; they schedule a single reconnect after
``reconnect_delay`` seconds.
"""
from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from ..providers.store_port import StoreUnavailable, SubscriberStorePort

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionGuard:
    def __init__(
        self,
        store: SubscriberStorePort,
        max_attempts: int = 5,
        base_delay: float = 0.1,
        max_delay: float = 2.0,
        reconnect_delay: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.store = store
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.reconnect_delay = reconnect_delay
        self._sleep = sleep
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._connecting = False
        self._reconnect_timer: Optional[threading.Timer] = None
        self._closed = False
        store.add_disconnect_listener(self.on_disconnect)

    @property
    def state(self) -> ConnectionState:
        return self._state

    def is_ready(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def backoff_delay(self, attempt: int, base_delay: Optional[float] = None) -> float:
        base = self.base_delay if base_delay is None else base_delay
        return min(base * (2 ** attempt), self.max_delay)

    def connect(self) -> bool:
        """Make one connection attempt. Returns False if one is already in flight."""
        return self._connect(reopen=True)

    def _connect(self, reopen: bool) -> bool:
        with self._lock:
            if self._closed and not reopen:
                return False
            if self._state is ConnectionState.CONNECTED:
                return True
            if self._connecting:
                return False
            self._connecting = True
            self._closed = False
            self._state = ConnectionState.CONNECTING

        ok = False
        try:
            self.store.connect()
            ok = True
        except StoreUnavailable as e:
            logger.warning("store connect failed: %s", e)
        finally:
            with self._lock:
                self._connecting = False
                closed_meanwhile = self._closed
                up = ok and not closed_meanwhile
                self._state = ConnectionState.CONNECTED if up else ConnectionState.DISCONNECTED
        if ok and closed_meanwhile:
            # close() ran during the attempt; drop what the store just opened
            self.store.close()
            return False
        if ok:
            logger.info("store connected")
        return ok

    def ensure_ready(self, max_attempts: Optional[int] = None, base_delay: Optional[float] = None) -> bool:
        """Wait for a live connection with bounded exponential backoff.

        Each round checks readiness and otherwise tries to connect; between
        rounds it sleeps ``min(base_delay * 2**attempt, max_delay)``. Gives up
        and returns False once ``max_attempts`` rounds are spent.
        """
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        delay = base_delay if base_delay is not None else self.base_delay
        for attempt in range(attempts):
            if self.is_ready() or self.connect():
                return True
            if attempt + 1 < attempts:
                self._sleep(self.backoff_delay(attempt, delay))
        ready = self.is_ready()
        if not ready:
            logger.warning("store not ready after %d attempts", attempts)
        return ready

    def on_disconnect(self):
        """Driver reported a lost connection: mark down and schedule one reconnect."""
        with self._lock:
            if self._closed:
                return
            if self._state is ConnectionState.CONNECTED:
                self._state = ConnectionState.DISCONNECTED
                logger.warning("store disconnected; reconnect in %.1fs", self.reconnect_delay)
            if self._connecting or self._reconnect_timer is not None:
                return
            timer = self._timer_factory(self.reconnect_delay, self._scheduled_reconnect)
            timer.daemon = True
            self._reconnect_timer = timer
        timer.start()

    def _scheduled_reconnect(self):
        with self._lock:
            self._reconnect_timer = None
            if self._closed:
                return
        # a close() landing between the check above and the attempt is re-checked under the lock
        self._connect(reopen=False)

    def close(self):
        with self._lock:
            self._closed = True
            timer, self._reconnect_timer = self._reconnect_timer, None
            self._state = ConnectionState.DISCONNECTED
        if timer is not None:
            timer.cancel()
        self.store.close()
