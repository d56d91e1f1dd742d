"""Zoom API client for attendance of past meetings."""

import httpx
from typing import Optional

ZOOM_API_BASE = "https://api.zoom.us/v2"
ZOOM_OAUTH_URL = "https://zoom.us/oauth"


class ZoomClient:
    """Read-only access to Zoom's past-meeting reports."""

    def __init__(self, access_token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.access_token = access_token
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=ZOOM_API_BASE,
            headers={"Authorization": f"Bearer {self.access_token}"},
            transport=self.transport,
            timeout=10.0,
        )

    async def get_past_meeting(self, zoom_meeting_id: str) -> dict:
        """Details of an ended meeting. Raises httpx.HTTPError on failure."""
        async with self._client() as client:
            response = await client.get(f"/past_meetings/{zoom_meeting_id}")
            response.raise_for_status()
            return response.json()

    async def get_participants_count(self, zoom_meeting_id: str) -> Optional[int]:
        """How many people actually joined, or None if Zoom doesn't say."""
        details = await self.get_past_meeting(zoom_meeting_id)
        count = details.get("participants_count")
        return int(count) if count is not None else None
