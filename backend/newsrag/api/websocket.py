"""WebSocket chat endpoint with ConnectionManager, admission control and heartbeat."""
import asyncio
import logging
from typing import Any

from fastapi import APIRouter, WebSocket

from newsrag.exceptions import ConnectionOverload, ServerAtCapacity
from newsrag.realtime.admission import ConnectionAttemptLimiter
from newsrag.realtime.connection import ChatConnection
from newsrag.schemas.websocket import WELCOME_MESSAGE, bot_frame, connection_frame
from newsrag.services.chat_service import ChatService
from newsrag.utils.helpers import new_session_id

logger = logging.getLogger(__name__)

router = APIRouter()

OVERLOAD_CLOSE_CODE = 4008
CAPACITY_CLOSE_CODE = 1013
SHUTDOWN_CLOSE_CODE = 1001


def _log_failure(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("WS task %s failed", task.get_name(), exc_info=task.exception())


async def _cancel(task: asyncio.Task | None) -> None:
    if task is None:
        return
    if task.done():
        _log_failure(task)
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("WS task %s failed while cancelling", task.get_name())


class ConnectionManager:
    """Own every live chat connection of this process.

    Connections are keyed by the session id assigned on connect. The manager
    also owns the per-address limiter and the background task that forgets
    idle addresses.
    """

    def __init__(
        self,
        chat_service: ChatService,
        limiter: ConnectionAttemptLimiter | None = None,
        *,
        heartbeat_interval: float = 30.0,
        max_missed_pongs: int = 3,
        max_connections: int = 1000,
        inbox_size: int = 16,
        drain_timeout: float = 10.0,
    ):
        self.chat_service = chat_service
        self.limiter = limiter or ConnectionAttemptLimiter()
        self.heartbeat_interval = heartbeat_interval
        self.max_missed_pongs = max_missed_pongs
        self.max_connections = max_connections
        self.inbox_size = inbox_size
        self.drain_timeout = drain_timeout

        self.active_connections: dict[str, ChatConnection] = {}
        self._decay_task: asyncio.Task | None = None

    # ── Lifecycle ──

    async def start(self) -> None:
        if self._decay_task is None or self._decay_task.done():
            self._decay_task = asyncio.create_task(self._decay_attempts(), name="ws-attempt-decay")

    async def stop(self) -> None:
        await _cancel(self._decay_task)
        self._decay_task = None
        for connection in list(self.active_connections.values()):
            await connection.close(code=SHUTDOWN_CLOSE_CODE, reason="Server shutting down")
        self.active_connections.clear()

    async def _decay_attempts(self) -> None:
        while True:
            await asyncio.sleep(self.limiter.window)
            dropped = self.limiter.prune()
            if dropped:
                logger.debug(
                    "Forgot connection attempts for %d idle addresses (%d still tracked)",
                    dropped, len(self.limiter.tracked_addresses()),
                )

    # ── Registration ──

    def admit(self, address: str) -> None:
        """Raise ConnectionOverload if a connection from address must be refused."""
        if len(self.active_connections) >= self.max_connections:
            raise ServerAtCapacity(address)
        if not self.limiter.admit(address):
            raise ConnectionOverload(address)

    async def connect(self, websocket: WebSocket, address: str) -> ChatConnection:
        self.admit(address)
        await websocket.accept()

        session_id = new_session_id()
        connection = ChatConnection(
            websocket,
            session_id,
            self.chat_service,
            address=address,
            heartbeat_interval=self.heartbeat_interval,
            max_missed_pongs=self.max_missed_pongs,
            inbox_size=self.inbox_size,
        )
        self.active_connections[session_id] = connection
        logger.info("WS connected: session=%s addr=%s (total=%d)", session_id, address, len(self.active_connections))

        try:
            await connection.send(connection_frame(session_id))
            await connection.send(bot_frame(session_id, WELCOME_MESSAGE))
        except BaseException:
            await self.disconnect(connection)
            raise
        return connection

    async def disconnect(self, connection: ChatConnection) -> None:
        connection.closed = True
        if self.active_connections.pop(connection.session_id, None) is not None:
            logger.info(
                "WS disconnected: session=%s (total=%d)", connection.session_id, len(self.active_connections),
            )

    async def send_to_session(self, session_id: str, message: dict[str, Any]) -> bool:
        """Send a frame to every live connection serving session_id."""
        targets = [
            conn for conn in self.active_connections.values()
            if conn.session_id == session_id or session_id in conn.session_ids
        ]
        delivered = False
        for connection in targets:
            if await connection.send(message):
                delivered = True
        return delivered

    def is_online(self, session_id: str) -> bool:
        return session_id in self.active_connections

    # ── Serving ──

    async def serve(self, websocket: WebSocket) -> None:
        """Run one socket from handshake to teardown."""
        address = websocket.client.host if websocket.client else "unknown"
        try:
            connection = await self.connect(websocket, address)
        except ConnectionOverload as exc:
            logger.warning(
                "Refusing WS connection from %s: %s (retry in %.0fs)",
                address, exc.reason, self.limiter.retry_after(address),
            )
            code = CAPACITY_CLOSE_CODE if isinstance(exc, ServerAtCapacity) else OVERLOAD_CLOSE_CODE
            await websocket.accept()
            await websocket.close(code=code, reason=exc.reason)
            return
        except Exception:
            logger.warning("WS handshake with %s failed", address, exc_info=True)
            return

        worker = asyncio.create_task(connection.run(), name=f"ws-worker-{connection.session_id}")
        heartbeat = asyncio.create_task(connection.heartbeat(), name=f"ws-heartbeat-{connection.session_id}")
        try:
            while not connection.closed:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                await connection.receive(raw)
        except Exception:
            if not connection.closed:
                logger.exception("WS error for session %s", connection.session_id)
        finally:
            await self.disconnect(connection)
            await _cancel(heartbeat)
            await self._drain(connection, worker)

    async def _drain(self, connection: ChatConnection, worker: asyncio.Task) -> None:
        """Let queued chat turns finish so their replies are stored, then end the worker."""
        if worker.done():
            _log_failure(worker)
            return
        connection.stop()
        try:
            await asyncio.wait_for(worker, timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Session %s still busy after %.0fs, dropping %d queued frames",
                connection.session_id, self.drain_timeout, connection.inbox.qsize(),
            )
        except Exception:
            logger.exception("WS worker for session %s failed", connection.session_id)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Chat WebSocket.

    Frames pushed to client:
        - connection: assigned session id, sent once after accept
        - bot: welcome text, then every answer with its sources
        - typing: the answer for a session is being generated
        - error: malformed or failed frame; the connection stays open
        - ping: heartbeat, answer with {"type": "pong"}
    """
    manager: ConnectionManager = websocket.app.state.services.transport
    await manager.serve(websocket)
