"""Per-connection chat actor.

Every socket gets one ChatConnection. The socket reader hands each inbound
frame to ``receive``; control frames (ping/pong) are answered immediately and
everything else goes through a bounded inbox that a single worker drains in
arrival order:

    receive frame → validate → orchestrate → send frames

``handle_frame`` runs the same state machine inline, so the protocol can be
exercised with a fake socket and no event-loop plumbing.
"""
import asyncio
import logging
import time
from typing import Any, Protocol

from newsrag.exceptions import MalformedMessage
from newsrag.schemas.websocket import (
    BUSY_MESSAGE,
    PROCESSING_ERROR_MESSAGE,
    InboundChatFrame,
    bot_frame,
    decode_frame,
    error_frame,
    parse_chat_frame,
    ping_frame,
    pong_frame,
    typing_frame,
)
from newsrag.services.chat_service import ChatService

logger = logging.getLogger(__name__)

HEARTBEAT_CLOSE_CODE = 1001
SEND_FAILURE_CLOSE_CODE = 1011

_STOP = object()


class FrameSocket(Protocol):
    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


class ChatConnection:
    def __init__(
        self,
        websocket: FrameSocket,
        session_id: str,
        chat_service: ChatService,
        *,
        address: str = "unknown",
        heartbeat_interval: float = 30.0,
        max_missed_pongs: int = 3,
        inbox_size: int = 16,
    ):
        self.websocket = websocket
        self.session_id = session_id
        self.chat_service = chat_service
        self.address = address
        self.heartbeat_interval = heartbeat_interval
        self.max_missed_pongs = max_missed_pongs

        self.inbox: asyncio.Queue[Any] = asyncio.Queue(maxsize=inbox_size)
        self.session_ids: set[str] = {session_id}
        self.last_ping_sent_at: float | None = None
        self.missed_pongs = 0
        self.closed = False
        self.stopping = False

    # ── Outbound ──

    async def send(self, frame: dict[str, Any]) -> bool:
        """Send one frame. A failed send closes the connection and returns False."""
        if self.closed:
            return False
        try:
            await self.websocket.send_json(frame)
        except Exception as exc:
            logger.warning("Send failed on session %s, closing: %r", self.session_id, exc)
            await self.close(code=SEND_FAILURE_CLOSE_CODE, reason="Send failed")
            return False
        return True

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception:
            logger.debug("Socket for session %s already closed", self.session_id)

    # ── Inbound ──

    async def receive(self, raw: str | bytes) -> None:
        """Entry point for every frame read from the socket."""
        item = self._decode(raw)
        if isinstance(item, dict) and await self._handle_control(item):
            return
        try:
            self.inbox.put_nowait(item)
        except asyncio.QueueFull:
            logger.warning("Inbox full for session %s, dropping frame", self.session_id)
            await self.send(error_frame(BUSY_MESSAGE))

    async def handle_frame(self, raw: str | bytes) -> None:
        """Process one frame to completion without the inbox."""
        item = self._decode(raw)
        if isinstance(item, dict) and await self._handle_control(item):
            return
        await self._dispatch(item)

    async def run(self) -> None:
        """Drain the inbox until stop() is called and every queued frame is handled."""
        while True:
            item = await self.inbox.get()
            if item is _STOP:
                return
            await self._dispatch(item)
            if self.stopping and self.inbox.empty():
                return

    def stop(self) -> None:
        self.stopping = True
        try:
            self.inbox.put_nowait(_STOP)
        except asyncio.QueueFull:
            pass

    def _decode(self, raw: str | bytes) -> dict[str, Any] | MalformedMessage:
        try:
            return decode_frame(raw)
        except MalformedMessage as exc:
            return exc

    async def _handle_control(self, payload: dict[str, Any]) -> bool:
        kind = payload.get("type")
        if kind == "pong":
            self.missed_pongs = 0
            return True
        if kind == "ping":
            await self.send(pong_frame())
            return True
        return False

    async def _dispatch(self, item: dict[str, Any] | MalformedMessage) -> None:
        try:
            if isinstance(item, MalformedMessage):
                raise item
            frame = parse_chat_frame(item)
        except MalformedMessage as exc:
            logger.info("Rejected frame on session %s: %s", self.session_id, exc)
            await self.send(error_frame(str(exc)))
            return

        try:
            await self._process(frame)
        except Exception:
            logger.exception("Error processing WebSocket message for session %s", frame.session_id)
            await self.send(error_frame(PROCESSING_ERROR_MESSAGE))

    async def _process(self, frame: InboundChatFrame) -> None:
        session_id = frame.session_id
        if session_id != self.session_id and session_id not in self.session_ids:
            logger.info("Connection %s handed off to session %s", self.session_id, session_id)
        self.session_ids.add(session_id)

        await self.chat_service.ensure_session(session_id)
        await self.chat_service.record_message(session_id, frame.message, is_user=True)
        await self.send(typing_frame(session_id))

        result = await self.chat_service.answer(session_id, frame.message)
        await self.chat_service.record_message(
            session_id, result.message, is_user=False, sources=result.sources,
        )
        await self.send(bot_frame(session_id, result.message, result.sources))

    # ── Heartbeat ──

    async def heartbeat(self) -> None:
        """Ping every heartbeat_interval; close after max_missed_pongs (0 = never)."""
        while not self.closed:
            await asyncio.sleep(self.heartbeat_interval)
            if self.max_missed_pongs and self.missed_pongs >= self.max_missed_pongs:
                logger.info(
                    "Closing session %s after %d missed pongs", self.session_id, self.missed_pongs,
                )
                await self.close(code=HEARTBEAT_CLOSE_CODE, reason="Heartbeat timeout")
                return
            self.missed_pongs += 1
            self.last_ping_sent_at = time.monotonic()
            await self.send(ping_frame())
