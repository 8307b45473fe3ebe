"""Server side of the collaboration channel.

Each open WebSocket is a session; an authenticated session belongs to a user
and one user may hold several sessions (tabs). Messages are JSON objects of
shape ``{"type": ..., "payload": ...}``.

All registry mutations happen synchronously on the event loop, so no lock is
needed: a broadcast snapshots its targets before the first ``await``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from hireflow.types import WSMessage

logger = logging.getLogger(__name__)

SendFn = Callable[[dict[str, Any]], Awaitable[None]]

ACTIVITY_TITLES = {
    "candidate_created": "New Candidate Added",
    "candidate_updated": "Candidate Updated",
    "interview_scheduled": "Interview Scheduled",
    "interview_updated": "Interview Updated",
    "job_created": "New Job Posted",
    "job_updated": "Job Updated",
    "profile_created": "Profile Version Created",
}


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(slots=True)
class ClientSession:
    session_id: str
    send: SendFn
    user_id: str | None = None
    page: str = "/"
    connected_at: str = field(default_factory=_timestamp)
    last_activity: str = field(default_factory=_timestamp)


class CollaborationHub:
    def __init__(self) -> None:
        self._sessions: dict[str, ClientSession] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def sessions_for(self, user_id: str) -> list[str]:
        return [sid for sid, session in self._sessions.items() if session.user_id == user_id]

    def online_users(self) -> list[dict[str, Any]]:
        users: dict[str, dict[str, Any]] = {}
        for session in self._sessions.values():
            if session.user_id is None:
                continue
            entry = users.setdefault(
                session.user_id,
                {"userId": session.user_id, "sessions": 0, "currentPage": session.page},
            )
            entry["sessions"] += 1
            entry["currentPage"] = session.page
        return list(users.values())

    async def connect(self, send: SendFn) -> str:
        self._loop = asyncio.get_running_loop()
        session = ClientSession(session_id=uuid4().hex, send=send)
        self._sessions[session.session_id] = session
        logger.info("Collaboration session opened %s", session.session_id)
        await self._deliver(
            session,
            {
                "type": "connected",
                "payload": {"sessionId": session.session_id, "message": "Connected to collaboration service"},
            },
        )
        return session.session_id

    async def disconnect(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        logger.info("Collaboration session closed %s user=%s", session_id, session.user_id)
        if session.user_id is not None and not self.sessions_for(session.user_id):
            await self._broadcast_to_team(
                session.user_id,
                {"type": "user_offline", "payload": {"userId": session.user_id}},
            )

    async def handle(self, session_id: str, raw: str | bytes | dict[str, Any]) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            logger.debug("Message for unknown session %s dropped", session_id)
            return

        try:
            data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
            message = WSMessage.model_validate(data)
        except (json.JSONDecodeError, PydanticValidationError) as exc:
            logger.warning("Invalid collaboration message session=%s: %s", session_id, exc)
            await self._error(session, "Invalid message format")
            return

        session.last_activity = _timestamp()
        handler = {
            "authenticate": self._on_authenticate,
            "activity": self._on_activity,
            "page_change": self._on_page_change,
            "ping": self._on_ping,
        }.get(message.type)

        if handler is None:
            await self._error(session, f"Unknown message type: {message.type}")
            return
        await handler(session, message.payload if isinstance(message.payload, dict) else {})

    async def notify_user(self, user_id: str, message: dict[str, Any]) -> int:
        targets = [self._sessions[sid] for sid in self.sessions_for(user_id)]
        for session in targets:
            await self._deliver(session, message)
        return len(targets)

    async def broadcast(self, message: dict[str, Any]) -> int:
        targets = list(self._sessions.values())
        for session in targets:
            await self._deliver(session, message)
        return len(targets)

    def publish_threadsafe(self, message: dict[str, Any]) -> None:
        """Broadcast from sync code running outside the event loop (e.g. a threadpool route)."""
        loop = self._loop
        if loop is None or loop.is_closed() or not self._sessions:
            logger.debug("No collaboration listeners; dropping %s", message.get("type"))
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            loop.create_task(self.broadcast(message))
        else:
            asyncio.run_coroutine_threadsafe(self.broadcast(message), loop)

    async def _on_authenticate(self, session: ClientSession, payload: dict[str, Any]) -> None:
        user_id = payload.get("userId")
        if not isinstance(user_id, str) or not user_id:
            await self._error(session, "User ID required")
            return

        first_session = not self.sessions_for(user_id)
        session.user_id = user_id
        if first_session:
            await self._broadcast_to_team(
                user_id,
                {"type": "user_online", "payload": {"userId": user_id, "sessionId": session.session_id}},
            )

        await self._deliver(session, {"type": "authenticated", "payload": {"userId": user_id}})
        await self._deliver(session, {"type": "team_status", "payload": {"onlineUsers": self.online_users()}})

    async def _on_activity(self, session: ClientSession, payload: dict[str, Any]) -> None:
        if session.user_id is None:
            await self._error(session, "Not authenticated")
            return

        action = str(payload.get("action", ""))
        await self._broadcast_to_team(
            session.user_id,
            {
                "type": "team_activity",
                "payload": {
                    **payload,
                    "userId": session.user_id,
                    "title": ACTIVITY_TITLES.get(action, "Team Activity"),
                    "timestamp": _timestamp(),
                },
            },
            exclude_session=session.session_id,
        )

    async def _on_page_change(self, session: ClientSession, payload: dict[str, Any]) -> None:
        if session.user_id is None:
            return
        page = payload.get("page")
        if isinstance(page, str) and page:
            session.page = page
        await self._broadcast_to_team(
            session.user_id,
            {"type": "user_page_change", "payload": {"userId": session.user_id, "page": session.page}},
            exclude_session=session.session_id,
        )

    async def _on_ping(self, session: ClientSession, payload: dict[str, Any]) -> None:
        await self._deliver(session, {"type": "pong", "payload": {"timestamp": _timestamp()}})

    async def _broadcast_to_team(
        self,
        exclude_user: str,
        message: dict[str, Any],
        exclude_session: str | None = None,
    ) -> None:
        targets = [
            session
            for sid, session in self._sessions.items()
            if session.user_id is not None and session.user_id != exclude_user and sid != exclude_session
        ]
        for session in targets:
            await self._deliver(session, message)

    async def _error(self, session: ClientSession, text: str) -> None:
        await self._deliver(session, {"type": "error", "payload": {"message": text}})

    async def _deliver(self, session: ClientSession, message: dict[str, Any]) -> None:
        try:
            await session.send(message)
        except Exception as exc:
            logger.warning("Dropping session %s after send failure: %s", session.session_id, exc)
            self._sessions.pop(session.session_id, None)
