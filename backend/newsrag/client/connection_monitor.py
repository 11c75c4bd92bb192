"""Client-side reachability monitor.

Probes the API first and a static asset second. A reachable static asset
with an unreachable API is reported as ``degraded``. After too many
consecutive failed probes the monitor switches itself into offline mode
and stops probing until offline mode is turned off again.
"""
import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import httpx

from newsrag.utils.helpers import utc_now

logger = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DEGRADED = "degraded"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class ConnectionNotice:
    title: str
    description: str


OFFLINE_AUTO_NOTICE = ConnectionNotice(
    "Offline mode activated",
    "After multiple failed connection attempts, the app has switched to offline mode.",
)
OFFLINE_ENABLED_NOTICE = ConnectionNotice(
    "Offline mode enabled", "The app will not attempt to connect to the server.",
)
RECONNECTING_NOTICE = ConnectionNotice(
    "Checking connection", "Attempting to reconnect to the server...",
)
DISCONNECTED_NOTICE = ConnectionNotice(
    "Connection issue", "You appear to be offline. Some features may be limited.",
)
DEGRADED_NOTICE = ConnectionNotice(
    "Limited connectivity", "The API server is unavailable. Using cached content only.",
)

Listener = Callable[[ConnectionStatus, ConnectionNotice | None], None]


class ConnectionMonitor:
    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        api_path: str = "/api/news",
        static_path: str = "/favicon.ico",
        api_timeout: float = 5.0,
        static_timeout: float = 3.0,
        initial_delay: float = 5.0,
        interval: float = 30.0,
        max_failures: int = 5,
        offline_mode: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._http = http
        self.api_path = api_path
        self.static_path = static_path
        self.api_timeout = api_timeout
        self.static_timeout = static_timeout
        self.initial_delay = initial_delay
        self.interval = interval
        self.max_failures = max_failures
        self._clock = clock

        self.status = ConnectionStatus.DISCONNECTED if offline_mode else ConnectionStatus.CONNECTING
        self.offline_mode = offline_mode
        self.last_checked: datetime | None = None
        self.consecutive_failures = 0
        self._listeners: list[Listener] = []
        self._task: asyncio.Task | None = None

    @property
    def is_reachable(self) -> bool:
        return self.status in (ConnectionStatus.CONNECTED, ConnectionStatus.DEGRADED)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def _publish(self, notice: ConnectionNotice | None = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.status, notice)
            except Exception:
                logger.exception("Connection listener failed")

    def _transition(self, status: ConnectionStatus, notice: ConnectionNotice | None = None) -> None:
        changed = status != self.status
        self.status = status
        self.last_checked = self._clock()
        if changed or notice is not None:
            self._publish(notice)

    # ── Probes ──

    async def _probe(self, path: str, timeout: float, headers: dict[str, str]) -> bool:
        try:
            response = await self._http.get(path, timeout=timeout, headers=headers)
        except httpx.HTTPError as exc:
            logger.debug("Probe %s failed: %s", path, exc)
            return False
        return response.is_success

    async def probe_api(self) -> bool:
        return await self._probe(
            self.api_path, self.api_timeout,
            {"Accept": "application/json", "Cache-Control": "no-cache"},
        )

    async def probe_static(self) -> bool:
        return await self._probe(self.static_path, self.static_timeout, {"Cache-Control": "no-cache"})

    async def check(self) -> bool:
        """Run one probe round and return whether anything is reachable."""
        if self.offline_mode:
            self._transition(ConnectionStatus.DISCONNECTED)
            return False

        if await self.probe_api():
            self.consecutive_failures = 0
            self._transition(ConnectionStatus.CONNECTED)
            return True

        if await self.probe_static():
            self.consecutive_failures = 0
            notice = DEGRADED_NOTICE if self.status != ConnectionStatus.DEGRADED else None
            self._transition(ConnectionStatus.DEGRADED, notice)
            return True

        self.consecutive_failures += 1
        if self.consecutive_failures > self.max_failures:
            logger.warning("%d consecutive failed probes, switching to offline mode", self.consecutive_failures)
            self.offline_mode = True
            self._transition(ConnectionStatus.DISCONNECTED, OFFLINE_AUTO_NOTICE)
            return False

        notice = DISCONNECTED_NOTICE if self.status != ConnectionStatus.DISCONNECTED else None
        self._transition(ConnectionStatus.DISCONNECTED, notice)
        return False

    # ── Offline mode ──

    async def set_offline_mode(self, enabled: bool) -> None:
        if enabled:
            self.offline_mode = True
            await self.stop()
            self._transition(ConnectionStatus.DISCONNECTED, OFFLINE_ENABLED_NOTICE)
            return

        self.offline_mode = False
        self.consecutive_failures = 0
        self._transition(ConnectionStatus.CONNECTING, RECONNECTING_NOTICE)
        await self.check()
        self._start_loop()

    # ── Background probing ──

    async def start(self) -> None:
        """Probe once now, then keep probing in the background."""
        await self.check()
        self._start_loop()

    def _start_loop(self) -> None:
        if self.offline_mode or self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        delay = self.initial_delay
        while not self.offline_mode:
            await asyncio.sleep(delay)
            await self.check()
            delay = self.interval
