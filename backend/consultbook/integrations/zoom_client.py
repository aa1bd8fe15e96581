"""Zoom meeting provider client.

Creates scheduled meetings through the Zoom REST API using Server-to-Server
OAuth (account credentials grant). The access token is cached and rotated
after 50 minutes.
"""

from __future__ import annotations

from datetime import datetime
import logging
import time
from typing import Any, cast
import uuid

import httpx
from pydantic import SecretStr

logger = logging.getLogger(__name__)


class ZoomError(RuntimeError):
    """Raised when the Zoom API responds with an error or is unreachable."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        *,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class ZoomClient:
    """HTTP client for the Zoom meetings API."""

    def __init__(
        self,
        *,
        account_id: str,
        client_id: str,
        client_secret: str | SecretStr,
        base_url: str = "https://api.zoom.us/v2",
        oauth_url: str = "https://zoom.us/oauth/token",
        timeout: float = 10.0,
        timezone_name: str = "UTC",
    ) -> None:
        if not account_id or not client_id or not client_secret:
            raise ZoomError("Zoom API credentials are not configured")
        self._account_id = account_id
        self._client_id = client_id
        self._client_secret = (
            client_secret.get_secret_value()
            if isinstance(client_secret, SecretStr)
            else client_secret
        )
        self._base_url = base_url.rstrip("/")
        self._oauth_url = oauth_url
        self._timeout = timeout
        self._timezone_name = timezone_name
        self._access_token: str | None = None
        self._token_refresh_at: float = 0.0

    def _fetch_access_token(self) -> str:
        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(
                    self._oauth_url,
                    params={"grant_type": "account_credentials", "account_id": self._account_id},
                    auth=(self._client_id, self._client_secret),
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.TransportError as exc:
            logger.error("Zoom OAuth endpoint unreachable: %s", exc)
            raise ZoomError(f"Zoom OAuth unreachable: {exc}") from exc

        if response.status_code >= 400:
            body = self._safe_json(response)
            reason = body.get("reason") or body.get("error") or response.text[:200]
            logger.error("Zoom OAuth error %s: %s", response.status_code, reason)
            if body.get("error") == "invalid_client":
                raise ZoomError("Invalid Zoom API credentials", status_code=response.status_code)
            raise ZoomError(
                f"Failed to authenticate with Zoom API: {reason}",
                status_code=response.status_code,
                details=body,
            )

        token = self._safe_json(response).get("access_token")
        if not token:
            raise ZoomError("No access token received from Zoom API")
        return str(token)

    def _get_access_token(self) -> str:
        """Return a cached access token, refreshing before expiry."""
        now = time.monotonic()
        if self._access_token is None or now >= self._token_refresh_at:
            self._access_token = self._fetch_access_token()
            # Token lifetime is 60 minutes; rotate after 50 as safety margin.
            self._token_refresh_at = now + (50 * 60)
        return self._access_token

    @staticmethod
    def _safe_json(response: httpx.Response) -> dict[str, Any]:
        try:
            parsed = response.json()
        except Exception:
            return {"raw": response.text[:500]}
        return parsed if isinstance(parsed, dict) else {"raw": response.text[:500]}

    def _request(self, method: str, path: str, *, json_body: dict[str, Any] | None = None) -> dict[str, Any]:
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {self._get_access_token()}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.request(method, url, headers=headers, json=json_body)
        except httpx.TransportError as exc:
            logger.error("Zoom API unreachable for %s %s: %s", method, path, exc)
            raise ZoomError(f"Zoom API unreachable: {exc}") from exc

        if response.status_code >= 400:
            body = self._safe_json(response)
            logger.error(
                "Zoom API error %s for %s %s: %s",
                response.status_code,
                method,
                path,
                response.text[:500],
            )
            raise ZoomError(
                body.get("message") or response.text,
                status_code=response.status_code,
                details=body,
            )
        return cast(dict[str, Any], response.json())

    def create_meeting(self, *, booking_id: str, start: datetime, duration_minutes: int) -> str:
        """Schedule a meeting and return its join URL."""
        payload = {
            "topic": f"Video Consultancy - Booking {booking_id}",
            "type": 2,
            "start_time": start.strftime("%Y-%m-%dT%H:%M:%S"),
            "duration": duration_minutes,
            "timezone": self._timezone_name,
            "settings": {
                "host_video": True,
                "participant_video": True,
                "join_before_host": False,
                "mute_upon_entry": False,
                "waiting_room": False,
                "auto_recording": "none",
            },
        }
        meeting = self._request("POST", "users/me/meetings", json_body=payload)
        join_url = meeting.get("join_url")
        if not join_url:
            raise ZoomError("Zoom API returned a meeting without join_url", details=meeting)
        logger.info("Zoom meeting %s created for booking %s", meeting.get("id"), booking_id)
        return str(join_url)


class FakeZoomClient:
    """In-memory stub for testing/non-production environments."""

    def __init__(self, **kwargs: Any) -> None:
        self._calls: list[dict[str, Any]] = []
        self._errors: dict[str, ZoomError] = {}

    @property
    def calls(self) -> list[dict[str, Any]]:
        return list(self._calls)

    def set_error(self, method: str, error: ZoomError) -> None:
        """Inject a method-specific error for deterministic failure testing."""
        self._errors[method] = error

    def clear_errors(self) -> None:
        self._errors.clear()

    def _raise_if_injected(self, method: str) -> None:
        error = self._errors.get(method)
        if error is not None:
            raise error

    def create_meeting(self, *, booking_id: str, start: datetime, duration_minutes: int) -> str:
        self._calls.append(
            {
                "method": "create_meeting",
                "booking_id": booking_id,
                "start": start,
                "duration_minutes": duration_minutes,
            }
        )
        self._raise_if_injected("create_meeting")
        return f"https://zoom.example/j/{uuid.uuid4().int % 10**11:011d}"


def build_meeting_provider() -> ZoomClient | FakeZoomClient:
    """Real client when Zoom is enabled and configured, otherwise the fake."""
    from consultbook.core.config import settings

    if not settings.zoom_enabled:
        return FakeZoomClient()
    return ZoomClient(
        account_id=settings.zoom_account_id or "",
        client_id=settings.zoom_client_id or "",
        client_secret=settings.zoom_client_secret or "",
        base_url=settings.zoom_api_base_url,
        oauth_url=settings.zoom_oauth_url,
        timezone_name=settings.provider_timezone,
    )
