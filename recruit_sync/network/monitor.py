"""Connectivity monitor — probes the network and notifies subscribers on change."""

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)

_DEFAULT_POLL_SECONDS = 15.0
_PROBE_TIMEOUT_SECONDS = 5.0


class Transport(str, Enum):
    """How the device reaches the network, when known."""

    WIFI = "wifi"
    CELLULAR = "cellular"
    ETHERNET = "ethernet"
    OTHER = "other"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class NetworkState:
    is_connected: bool
    transport: Transport | None = None


#: Assumed until the first successful probe, so a slow probe never blocks reads.
INITIAL_STATE = NetworkState(is_connected=True, transport=None)

NetworkCallback = Callable[[NetworkState], None]


# ── Probe interface ────────────────────────────────────────────────────────────


@runtime_checkable
class ConnectivityProbe(Protocol):
    """Interface for the platform's live connectivity query."""

    async def check(self) -> NetworkState:
        """Return the current connectivity.

        May raise; the monitor keeps its last-known state when it does.
        """
        ...


class HttpConnectivityProbe:
    """Treats a reachable health endpoint as "connected".

    Any HTTP response counts as reachable (even a 5xx means the network path
    works); only transport-level failures count as offline.
    """

    def __init__(
        self,
        url: str,
        timeout: float = _PROBE_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def check(self) -> NetworkState:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                await client.head(self._url)
        except httpx.TransportError as exc:
            logger.debug("Connectivity probe to %s failed: %s", self._url, exc)
            return NetworkState(is_connected=False, transport=None)
        return NetworkState(is_connected=True, transport=Transport.UNKNOWN)


# ── Monitor ────────────────────────────────────────────────────────────────────


class NetworkMonitor:
    """Holds the current NetworkState and fans changes out to subscribers.

    ``start()`` queries the probe once; ``run()`` keeps polling until
    ``stop()``.  Platforms that push changes can call ``set_state()``
    directly instead of running the poll loop.

    Subscribers are called synchronously, in registration order, for every
    change (connect, disconnect, transport switch).  Re-reporting the same
    state is not a change.

    Usage::

        monitor = NetworkMonitor(HttpConnectivityProbe(url))
        await monitor.start()
        unsubscribe = monitor.subscribe(lambda s: print(s.is_connected))
        ...
        unsubscribe()
    """

    def __init__(
        self,
        probe: ConnectivityProbe,
        poll_interval: float = _DEFAULT_POLL_SECONDS,
        initial_state: NetworkState = INITIAL_STATE,
    ) -> None:
        self._probe = probe
        self._poll_interval = poll_interval
        self._state = initial_state
        self._subscribers: dict[int, NetworkCallback] = {}
        self._tokens = itertools.count()
        self._stop_event = asyncio.Event()

    def current(self) -> NetworkState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state.is_connected

    def subscribe(self, callback: NetworkCallback) -> Callable[[], None]:
        """Register callback and return a function that removes exactly this registration.

        The returned unsubscribe function is idempotent.
        """
        token = next(self._tokens)
        self._subscribers[token] = callback

        def unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def set_state(self, state: NetworkState) -> None:
        """Record a new state and notify subscribers if it differs from the current one."""
        if state == self._state:
            return
        previous, self._state = self._state, state
        logger.info(
            "Network %s -> %s (transport=%s)",
            "online" if previous.is_connected else "offline",
            "online" if state.is_connected else "offline",
            state.transport.value if state.transport else "none",
        )
        for callback in list(self._subscribers.values()):
            try:
                callback(state)
            except Exception as exc:  # noqa: BLE001
                logger.error("Network subscriber %r failed: %s", callback, exc, exc_info=True)

    async def refresh(self) -> NetworkState:
        """Query the probe once. On failure the last-known state is kept."""
        try:
            state = await self._probe.check()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Connectivity probe failed, keeping last-known state: %s", exc)
            return self._state
        self.set_state(state)
        return self._state

    async def start(self) -> NetworkState:
        """Derive the initial state from a live probe."""
        self._stop_event.clear()
        return await self.refresh()

    def stop(self) -> None:
        """Signal ``run()`` to exit after the current probe."""
        self._stop_event.set()

    async def run(self) -> None:
        """Poll the probe until ``stop()`` is called."""
        while not self._stop_event.is_set():
            await self.refresh()
            await self._interruptible_sleep(self._poll_interval)
        logger.debug("Network monitor stopped")

    async def _interruptible_sleep(self, seconds: float) -> None:
        """Sleep for `seconds` but wake immediately if stop() is called."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
