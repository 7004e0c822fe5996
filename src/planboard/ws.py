from __future__ import annotations

import asyncio
import json
import threading
from dataclasses import dataclass, field
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from loguru import logger

CHANNELS = {
    "action_plan",
    "backlog",
    "pipeline",
    "system",
}


@dataclass
class _WsClient:
    ws: WebSocket
    channels: set[str] = field(default_factory=set)


class SnapshotHub:
    """Fan store snapshots out to subscribed WebSocket clients."""

    def __init__(self) -> None:
        self._clients: dict[int, _WsClient] = {}
        self._counter = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.Lock()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        with self._lock:
            self._loop = loop

    async def _reply(self, websocket: WebSocket, event_type: str, payload: dict[str, Any]) -> None:
        await websocket.send_text(json.dumps({"channel": "system", "type": event_type, "payload": payload}))

    async def handle_connection(self, websocket: WebSocket) -> None:
        # Remember the active event loop so store callbacks on other threads can publish.
        self.attach_loop(asyncio.get_running_loop())
        await websocket.accept()
        client = _WsClient(ws=websocket)
        cid = id(websocket)
        self._clients[cid] = client
        try:
            await self._reply(websocket, "connected", {"channels": sorted(CHANNELS)})
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    await self._reply(websocket, "error", {"detail": "invalid JSON"})
                    continue
                action = message.get("action")
                channels = set(message.get("channels", []))
                if action == "subscribe":
                    client.channels |= channels & CHANNELS
                    await self._reply(websocket, "subscribed", {"channels": sorted(client.channels)})
                elif action == "unsubscribe":
                    client.channels -= channels
                    await self._reply(websocket, "unsubscribed", {"channels": sorted(client.channels)})
                elif action == "ping":
                    await self._reply(websocket, "pong", {})
        except WebSocketDisconnect:
            logger.debug("WebSocket client {} disconnected", cid)
        finally:
            self._clients.pop(cid, None)

    async def publish(self, event: dict[str, Any]) -> None:
        self._counter += 1
        payload = json.dumps({**event, "seq": self._counter}, default=str)
        stale: list[int] = []
        for cid, client in list(self._clients.items()):
            if event.get("channel") not in client.channels and event.get("channel") != "system":
                continue
            try:
                await client.ws.send_text(payload)
            except Exception:
                stale.append(cid)
        for cid in stale:
            self._clients.pop(cid, None)

    def publish_sync(self, event: dict[str, Any]) -> None:
        if not self._clients:
            return
        with self._lock:
            loop = self._loop
        if loop and loop.is_running():
            asyncio.run_coroutine_threadsafe(self.publish(event), loop)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no client has connected yet and no loop is running here
            return
        self.attach_loop(loop)
        loop.create_task(self.publish(event))

    def forwarder(self, channel: str, event_type: str = "snapshot"):
        """Store subscriber that forwards snapshots on ``channel``."""

        def _forward(snapshot: dict[str, Any]) -> None:
            self.publish_sync({"channel": channel, "type": event_type, "payload": snapshot})

        return _forward
