from __future__ import annotations

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Any

import httpx

from hireflow.config import Settings, get_settings
from hireflow.errors import ItemOperationError

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    body = ""
    try:
        payload = response.json()
    except ValueError:
        body = response.text.strip()
    else:
        if isinstance(payload, dict):
            body = str(payload.get("detail") or payload.get("error") or payload.get("message") or "")
        if not body:
            body = response.text.strip()
    return f"{response.status_code}: {body or response.reason_phrase}"


class HireflowClient:
    """Async HTTP client for the endpoints batch runs call."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = settings or get_settings()
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=float(settings.api_timeout_sec),
            transport=transport,
        )

    async def __aenter__(self) -> HireflowClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def build_profile(self, candidate_id: int, *, job_id: int | None = None) -> dict[str, Any]:
        body = {"jobId": job_id} if job_id is not None else {}
        return await self._request("POST", f"/api/candidates/{candidate_id}/profiles/build", json=body)

    async def upload_resume(self, path: Path) -> dict[str, Any]:
        path = Path(path)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        content = await asyncio.to_thread(path.read_bytes)
        files = {"resumes": (path.name, content, content_type)}
        return await self._request("POST", "/api/candidates/bulk-upload", files=files)

    async def list_candidates(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/candidates")

    async def list_profiles(self, candidate_id: int) -> list[dict[str, Any]]:
        return await self._request("GET", f"/api/candidates/{candidate_id}/profiles")

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ItemOperationError(f"{method} {url} failed: {exc}") from exc

        if response.is_success:
            return response.json()

        message = _error_message(response)
        logger.debug("%s %s -> %s", method, url, message)
        raise ItemOperationError(message, status_code=response.status_code)
