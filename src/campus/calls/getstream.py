"""Minimal GetStream Video REST client (httpx + HS256 JWTs).

Only the calls the campus needs: upsert users and get-or-create a call with
members and settings overrides. Tokens handed to clients are signed with the
API secret, the same way the official SDKs mint them.
"""

from __future__ import annotations

import time
from typing import Any

import httpx
import jwt
import structlog

from campus.config import get_settings
from campus.exceptions import UpstreamServiceError

logger = structlog.get_logger()


class GetStreamClient:
    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = "https://video.stream-io-api.com",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    # --- tokens ---

    def server_token(self) -> str:
        return jwt.encode({"server": True}, self.api_secret, algorithm="HS256")

    def user_token(self, user_id: str, validity_seconds: int, call_cids: list[str] | None = None) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {"user_id": user_id, "iat": now - 5, "exp": now + validity_seconds}
        if call_cids:
            payload["call_cids"] = call_cids
        return jwt.encode(payload, self.api_secret, algorithm="HS256")

    # --- REST ---

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(base_url=self.base_url, transport=self._transport) as client:
                response = await client.post(
                    path,
                    params={"api_key": self.api_key},
                    headers={
                        "Authorization": self.server_token(),
                        "stream-auth-type": "jwt",
                        "Content-Type": "application/json",
                    },
                    json=body,
                    timeout=10.0,
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as exc:
            logger.error("getstream_request_failed", path=path, error=str(exc))
            msg = "Video provider request failed"
            raise UpstreamServiceError(msg) from exc

    async def upsert_users(self, users: list[dict[str, Any]]) -> dict[str, Any]:
        return await self._post("/api/v2/users", {"users": {u["id"]: u for u in users}})

    async def get_or_create_call(
        self,
        call_id: str,
        *,
        created_by_id: str,
        members: list[dict[str, Any]],
        settings_override: dict[str, Any],
        call_type: str = "default",
    ) -> dict[str, Any]:
        return await self._post(
            f"/api/v2/video/call/{call_type}/{call_id}",
            {
                "data": {
                    "created_by_id": created_by_id,
                    "members": members,
                    "settings_override": settings_override,
                }
            },
        )


def build_settings_override(call_type: str, *, screen_sharing: bool, recording: bool) -> dict[str, Any]:
    video = call_type == "video"
    override: dict[str, Any] = {
        "audio": {"mic_default_on": True, "speaker_default_on": True, "default_device": "speaker"},
        "video": {
            "camera_default_on": video,
            "target_resolution": (
                {"width": 720, "height": 480, "bitrate": 1_000_000}
                if video
                else {"width": 240, "height": 240, "bitrate": 300_000}
            ),
        },
        "screensharing": {"enabled": screen_sharing and video},
        "recording": {"mode": "available" if recording else "disabled"},
    }
    if video:
        override["video"]["camera_facing"] = "front"
    return override


_client: GetStreamClient | None = None


def get_stream_client() -> GetStreamClient:
    global _client  # noqa: PLW0603
    if _client is None:
        settings = get_settings()
        if not settings.getstream_api_key or not settings.getstream_api_secret:
            msg = "Video calls are not configured"
            raise UpstreamServiceError(msg)
        _client = GetStreamClient(
            settings.getstream_api_key,
            settings.getstream_api_secret,
            settings.getstream_base_url,
        )
    return _client


def reset_stream_client(client: GetStreamClient | None = None) -> None:
    """Replace (or clear) the process-wide client; tests inject a mock transport here."""
    global _client  # noqa: PLW0603
    _client = client
