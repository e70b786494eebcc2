"""
Async client for the activity persistence API.

The recording core only needs one call: POST /api/activities with the
finished ActivitySummary, answered with the stored document (which carries the
new record's `id`). Any transport error, non-2xx status or malformed answer
becomes PersistenceFailure so the controller can keep the session for a retry.
"""
import logging
from typing import Optional

import httpx

from strive.tracking.errors import PersistenceFailure
from strive.tracking.models import ActivitySummary

logger = logging.getLogger(__name__)

ACTIVITIES_PATH = "/api/activities"


class ActivityApiClient:
    """Thin wrapper over httpx.AsyncClient for activity uploads."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: API root, e.g. "https://api.example.com".
            token: bearer token; omitted from requests when empty.
            timeout: per-request timeout in seconds.
            transport: httpx transport override (tests pass a MockTransport).
        """
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout, transport=transport
        )

    @classmethod
    def from_settings(cls, settings) -> "ActivityApiClient":
        return cls(
            base_url=settings.activity_api_url,
            token=settings.activity_api_token,
            timeout=settings.api_timeout_seconds,
        )

    async def create_activity(self, summary: ActivitySummary) -> str:
        """
        Upload a finished activity.

        Returns:
            The stored record id.

        Raises:
            PersistenceFailure: on network errors, non-2xx responses, or a
                response body without an id.
        """
        try:
            response = await self._client.post(ACTIVITIES_PATH, json=summary.to_payload())
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise PersistenceFailure(
                f"activity API returned {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise PersistenceFailure(f"activity upload failed: {exc}") from exc

        activity_id = body.get("id") if isinstance(body, dict) else None
        if not activity_id:
            raise PersistenceFailure("activity API response has no id")
        logger.info("Uploaded activity %s (%d points)", activity_id, len(summary.points))
        return str(activity_id)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ActivityApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
