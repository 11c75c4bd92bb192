"""Async client for the news chat REST API.

Every call carries its own timeout. While the connection monitor reports
the API as unreachable, news reads are served from the last successful
fetch and chat sends get a fixed offline reply instead of a request.
"""
import logging
from typing import Any

import httpx

from newsrag.client.connection_monitor import ConnectionMonitor, ConnectionStatus
from newsrag.exceptions import RequestTimeout

logger = logging.getLogger(__name__)

SEND_TIMEOUT = 15.0
HISTORY_TIMEOUT = 10.0
CLEAR_TIMEOUT = 10.0
NEWS_TIMEOUT = 10.0

OFFLINE_REPLY = (
    "I'm currently in offline mode and unable to process your request. "
    "Please enable online mode to chat with me."
)


class NewsChatClient:
    def __init__(self, http: httpx.AsyncClient, monitor: ConnectionMonitor | None = None):
        self._http = http
        self.monitor = monitor
        self._cached_news: list[dict[str, Any]] | None = None

    @property
    def offline(self) -> bool:
        if self.monitor is None:
            return False
        return self.monitor.offline_mode or self.monitor.status == ConnectionStatus.DISCONNECTED

    @property
    def api_unavailable(self) -> bool:
        return self.offline or (
            self.monitor is not None and self.monitor.status == ConnectionStatus.DEGRADED
        )

    async def _request(self, method: str, path: str, timeout: float, **kwargs: Any) -> Any:
        try:
            response = await self._http.request(method, path, timeout=timeout, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("%s %s timed out after %.0fs", method, path, timeout)
            raise RequestTimeout() from exc
        response.raise_for_status()
        return response.json()

    # ── Chat ──

    async def send_message(self, session_id: str, message: str) -> dict[str, Any]:
        if self.offline:
            return {"sessionId": session_id, "message": OFFLINE_REPLY, "sources": []}
        return await self._request(
            "POST", "/api/chat", SEND_TIMEOUT, json={"sessionId": session_id, "message": message},
        )

    async def get_chat_history(self, session_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/chat/{session_id}", HISTORY_TIMEOUT)

    async def clear_chat(self, session_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/api/chat/{session_id}", CLEAR_TIMEOUT)

    # ── News ──

    async def get_news(self) -> list[dict[str, Any]]:
        """Return the article list, falling back to the last fetched copy."""
        if self.api_unavailable:
            return list(self._cached_news or [])
        try:
            articles = await self._request("GET", "/api/news", NEWS_TIMEOUT)
        except (httpx.HTTPError, RequestTimeout):
            if self._cached_news is None:
                raise
            logger.warning("News fetch failed, serving %d cached articles", len(self._cached_news))
            return list(self._cached_news)
        self._cached_news = articles
        return list(articles)
