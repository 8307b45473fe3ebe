"""Client connection manager for the collaboration WebSocket.

One ``RealtimeChannel`` holds at most one live connection. On every open it
sends ``authenticate`` (then the current page) before flushing queued
messages, so the server never sees user traffic from an unauthenticated
socket. Outbound messages are kept in an unbounded FIFO while disconnected
and are only dropped from the queue after the socket accepted them.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any

import websockets

from hireflow.config import Settings, get_settings
from hireflow.errors import ChannelError

logger = logging.getLogger(__name__)

Message = dict[str, Any]
Listener = Callable[[Message], None]
ConnectFn = Callable[[str], Awaitable[Any]]


def _default_connect(url: str) -> Awaitable[Any]:
    return websockets.connect(url)


class RealtimeChannel:
    def __init__(
        self,
        url: str | None = None,
        *,
        connect: ConnectFn | None = None,
        settings: Settings | None = None,
        rng: Callable[[], float] = random.random,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        settings = settings or get_settings()
        self.url = url or settings.realtime_url
        self.max_attempts = settings.realtime_max_reconnect_attempts
        self.base_delay = settings.realtime_base_delay_sec
        self.max_delay = settings.realtime_max_delay_sec
        self.jitter = settings.realtime_jitter_sec
        self.heartbeat_interval = settings.realtime_heartbeat_sec

        self._connect = connect or _default_connect
        self._rng = rng
        self._sleep = sleep

        self.page = "/"
        self.last_message: Message | None = None
        self.degraded = False

        self._user_id: str | None = None
        self._conn: Any = None
        self._authenticated = False
        self._attempts = 0
        self._outbound: deque[Message] = deque()
        self._listeners: list[Listener] = []
        self._task: asyncio.Task[None] | None = None
        self._flush_lock = asyncio.Lock()
        self._opened = asyncio.Event()

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def is_connected(self) -> bool:
        return self._conn is not None and self._authenticated

    @property
    def reconnect_attempts(self) -> int:
        return self._attempts

    @property
    def pending(self) -> list[Message]:
        return list(self._outbound)

    def reconnect_delay(self, attempt: int) -> float:
        return min(self.base_delay * 2**attempt, self.max_delay) + self._rng() * self.jitter

    async def start(self, user_id: str) -> None:
        if not user_id:
            raise ChannelError("user_id is required to open the realtime channel")
        await self.stop()
        self._user_id = user_id
        self._attempts = 0
        self.degraded = False
        self._opened.clear()
        self._task = asyncio.create_task(self._run(), name=f"realtime-{user_id}")

    async def stop(self) -> None:
        self._user_id = None
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self._close()

    async def set_user(self, user_id: str | None) -> None:
        if user_id is None:
            await self.stop()
        elif user_id != self._user_id:
            await self.start(user_id)

    async def wait_connected(self, timeout: float | None = None) -> bool:
        try:
            await asyncio.wait_for(self._opened.wait(), timeout)
        except TimeoutError:
            return False
        return True

    async def send(self, message: Message) -> None:
        self._outbound.append(message)
        if self.is_connected:
            await self._flush()

    async def change_page(self, page: str) -> None:
        self.page = page
        await self.send({"type": "page_change", "payload": {"page": page}})

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _run(self) -> None:
        while self._user_id is not None:
            try:
                conn = await self._connect(self.url)
            except Exception as exc:
                logger.warning("Realtime connect to %s failed: %s", self.url, exc)
                if not await self._backoff():
                    return
                continue

            self._conn = conn
            heartbeat = asyncio.create_task(self._heartbeat(conn))
            try:
                await self._on_open(conn)
                while True:
                    self._dispatch(await conn.recv())
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Realtime connection lost: %s", exc)
            finally:
                heartbeat.cancel()
                self._authenticated = False
                self._opened.clear()
                await self._close()

            if not await self._backoff():
                return

    async def _on_open(self, conn: Any) -> None:
        await conn.send(json.dumps({"type": "authenticate", "payload": {"userId": self._user_id}}))
        await conn.send(json.dumps({"type": "page_change", "payload": {"page": self.page}}))
        self._authenticated = True
        self._attempts = 0
        self._opened.set()
        logger.info("Realtime channel open user=%s queued=%s", self._user_id, len(self._outbound))
        await self._flush()

    async def _flush(self) -> None:
        async with self._flush_lock:
            while self._outbound and self.is_connected:
                message = self._outbound[0]
                try:
                    await self._conn.send(json.dumps(message))
                except Exception as exc:
                    logger.warning("Realtime send failed; %s message(s) kept queued: %s", len(self._outbound), exc)
                    return
                self._outbound.popleft()

    async def _heartbeat(self, conn: Any) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await conn.send(json.dumps({"type": "ping"}))
            except Exception as exc:
                logger.debug("Heartbeat failed: %s", exc)
                return

    async def _backoff(self) -> bool:
        if self._user_id is None:
            return False
        if self._attempts >= self.max_attempts:
            self.degraded = True
            logger.warning(
                "Realtime reconnect gave up after %s attempts; live updates disabled", self._attempts
            )
            return False
        delay = self.reconnect_delay(self._attempts)
        self._attempts += 1
        logger.info("Realtime reconnect attempt %s/%s in %.2fs", self._attempts, self.max_attempts, delay)
        await self._sleep(delay)
        return self._user_id is not None

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed realtime frame: %s", exc)
            return
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object realtime frame")
            return

        self.last_message = message
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception:
                logger.exception("Realtime listener %r raised", listener)

    async def _close(self) -> None:
        conn, self._conn = self._conn, None
        self._authenticated = False
        if conn is None:
            return
        try:
            await conn.close()
        except Exception as exc:
            logger.debug("Ignoring error while closing realtime connection: %s", exc)
