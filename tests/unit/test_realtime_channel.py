from __future__ import annotations

import asyncio
import json

import pytest

from hireflow.config import Settings
from hireflow.errors import ChannelError
from hireflow.realtime.channel import RealtimeChannel


class FakeConn:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.frames: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self.fail_sends = False

    async def send(self, data: str) -> None:
        if self.fail_sends:
            raise ConnectionError("send failed")
        self.sent.append(json.loads(data))

    async def recv(self) -> str:
        frame = await self.frames.get()
        if isinstance(frame, Exception):
            raise frame
        return frame

    async def close(self) -> None:
        self.closed = True


class FakeServer:
    def __init__(self, *, failures: int = 0) -> None:
        self.conns: list[FakeConn] = []
        self.failures = failures
        self.calls = 0

    async def connect(self, url: str) -> FakeConn:
        self.calls += 1
        if self.calls <= self.failures:
            raise OSError("connection refused")
        conn = FakeConn()
        self.conns.append(conn)
        return conn


def _settings(**overrides) -> Settings:
    values = {
        "realtime_max_reconnect_attempts": 3,
        "realtime_base_delay_sec": 1.0,
        "realtime_max_delay_sec": 30.0,
        "realtime_jitter_sec": 1.0,
        "realtime_heartbeat_sec": 60.0,
    }
    values.update(overrides)
    return Settings(**values)


async def _until(predicate, attempts: int = 500) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def _channel(server: FakeServer, delays: list[float] | None = None, **overrides) -> RealtimeChannel:
    async def fake_sleep(delay: float) -> None:
        if delays is not None:
            delays.append(delay)

    return RealtimeChannel(
        "ws://test/ws",
        connect=server.connect,
        settings=_settings(**overrides),
        rng=lambda: 0.5,
        sleep=fake_sleep,
    )


def test_authenticate_goes_out_before_queued_messages() -> None:
    async def scenario() -> tuple[list[dict], list[dict]]:
        server = FakeServer()
        channel = _channel(server)
        channel.page = "/candidates"
        await channel.send({"type": "activity", "payload": {"action": "job_created"}})
        queued = channel.pending

        await channel.start("alice")
        assert await channel.wait_connected(1)
        await _until(lambda: not channel.pending)
        sent = list(server.conns[0].sent)
        await channel.stop()
        return queued, sent

    queued, sent = asyncio.run(scenario())

    assert queued == [{"type": "activity", "payload": {"action": "job_created"}}]
    assert sent == [
        {"type": "authenticate", "payload": {"userId": "alice"}},
        {"type": "page_change", "payload": {"page": "/candidates"}},
        {"type": "activity", "payload": {"action": "job_created"}},
    ]


def test_failed_send_keeps_message_queued_in_order() -> None:
    async def scenario() -> list[dict]:
        server = FakeServer()
        channel = _channel(server)
        await channel.start("alice")
        await channel.wait_connected(1)
        conn = server.conns[0]

        conn.fail_sends = True
        await channel.send({"type": "activity", "payload": {"n": 1}})
        assert channel.pending == [{"type": "activity", "payload": {"n": 1}}]

        conn.fail_sends = False
        await channel.send({"type": "activity", "payload": {"n": 2}})
        sent = [message for message in conn.sent if message["type"] == "activity"]
        await channel.stop()
        return sent

    sent = asyncio.run(scenario())
    assert [message["payload"]["n"] for message in sent] == [1, 2]


def test_backoff_grows_and_channel_degrades_after_max_attempts() -> None:
    async def scenario() -> tuple[RealtimeChannel, FakeServer]:
        server = FakeServer(failures=100)
        channel = _channel(server, delays, realtime_max_reconnect_attempts=2)
        await channel.start("alice")
        await _until(lambda: channel.degraded)
        return channel, server

    delays: list[float] = []
    channel, server = asyncio.run(scenario())

    assert delays == [1.5, 2.5]
    assert server.calls == 3
    assert channel.is_connected is False


def test_reconnects_after_drop_and_reauthenticates() -> None:
    async def scenario() -> tuple[FakeServer, int, list[float]]:
        server = FakeServer()
        channel = _channel(server, delays)
        await channel.start("alice")
        await channel.wait_connected(1)

        server.conns[0].frames.put_nowait(ConnectionError("server went away"))
        await _until(lambda: len(server.conns) == 2 and channel.is_connected)
        attempts = channel.reconnect_attempts
        await channel.stop()
        return server, attempts, delays

    delays: list[float] = []
    server, attempts, delays = asyncio.run(scenario())

    assert server.conns[0].closed is True
    assert server.conns[1].sent[0] == {"type": "authenticate", "payload": {"userId": "alice"}}
    assert attempts == 0
    assert delays == [1.5]


def test_reconnect_delay_is_capped_with_jitter() -> None:
    channel = _channel(FakeServer())
    assert channel.reconnect_delay(0) == 1.5
    assert channel.reconnect_delay(3) == 8.5
    assert channel.reconnect_delay(10) == 30.5


def test_listeners_receive_objects_and_can_unsubscribe() -> None:
    async def scenario() -> tuple[list[dict], list[dict], RealtimeChannel]:
        server = FakeServer()
        channel = _channel(server)
        first: list[dict] = []
        second: list[dict] = []
        unsubscribe = channel.subscribe(first.append)
        channel.subscribe(second.append)
        await channel.start("alice")
        await channel.wait_connected(1)
        conn = server.conns[0]

        conn.frames.put_nowait(json.dumps({"type": "user_online", "payload": {"userId": "bob"}}))
        conn.frames.put_nowait("not json")
        conn.frames.put_nowait("[1, 2]")
        await _until(lambda: conn.frames.empty())
        await asyncio.sleep(0)
        unsubscribe()
        unsubscribe()
        conn.frames.put_nowait(json.dumps({"type": "pong", "payload": {}}))
        await _until(lambda: len(second) == 2)
        await channel.stop()
        return first, second, channel

    first, second, channel = asyncio.run(scenario())

    assert [message["type"] for message in first] == ["user_online"]
    assert [message["type"] for message in second] == ["user_online", "pong"]
    assert channel.last_message == {"type": "pong", "payload": {}}


def test_set_user_none_closes_connection() -> None:
    async def scenario() -> tuple[RealtimeChannel, FakeConn]:
        server = FakeServer()
        channel = _channel(server)
        await channel.set_user("alice")
        await channel.wait_connected(1)
        await channel.set_user(None)
        return channel, server.conns[0]

    channel, conn = asyncio.run(scenario())
    assert conn.closed is True
    assert channel.user_id is None
    assert channel.is_connected is False


def test_start_requires_user_id() -> None:
    with pytest.raises(ChannelError):
        asyncio.run(_channel(FakeServer()).start(""))
