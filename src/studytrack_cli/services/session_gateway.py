"""REST implementation of the study-session gateway."""

from __future__ import annotations

import logging

import httpx

from studytrack_cli.models.config_models import APIConfig
from studytrack_cli.models.timer.errors import NetworkError
from studytrack_cli.services.api.client import APIClient

logger = logging.getLogger(__name__)


def _network_error(action: str, exc: Exception) -> NetworkError:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return NetworkError(f"{action} failed with HTTP {status}", status_code=status)
    return NetworkError(f"{action} failed: {exc}")


class RestSessionGateway:
    """Opens and closes study sessions through the StudyTrack API."""

    def __init__(self, client: APIClient, api_config: APIConfig | None = None):
        self.client = client
        self.api_config = api_config or client.config.api

    async def start(
        self, session_type: int, topic_id: int | None, notes: str | None
    ) -> int:
        """POST a new session and return its id."""
        payload = {"sessionType": session_type, "topicId": topic_id, "notes": notes}
        try:
            # not idempotent: a retried POST could open a second session
            response = await self.client.post(
                self.api_config.session_start_path, json=payload, retry=0
            )
            session_id = response.json()["sessionId"]
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            raise _network_error("Starting session", e) from e

        logger.debug("Backend opened session %s (type %s)", session_id, session_type)
        return session_id

    async def end(self, remote_session_id: int, duration_seconds: int) -> None:
        """PUT the final duration of a session."""
        payload = {"id": remote_session_id, "durationSeconds": duration_seconds}
        try:
            await self.client.put(self.api_config.session_end_path, json=payload)
        except httpx.HTTPError as e:
            raise _network_error(f"Ending session {remote_session_id}", e) from e

    async def cancel(self, remote_session_id: int) -> None:
        """DELETE a session that was discarded."""
        path = self.api_config.session_delete_path.format(id=remote_session_id)
        try:
            await self.client.delete(path)
        except httpx.HTTPError as e:
            raise _network_error(f"Deleting session {remote_session_id}", e) from e
