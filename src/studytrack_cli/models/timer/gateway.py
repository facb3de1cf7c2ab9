"""Contract for the remote study-session API."""

from typing import Protocol


class SessionGateway(Protocol):
    """Opens and closes tracked study sessions on the backend.

    Implementations raise NetworkError on any failure.
    """

    async def start(
        self, session_type: int, topic_id: int | None, notes: str | None
    ) -> int: ...

    async def end(self, remote_session_id: int, duration_seconds: int) -> None: ...

    async def cancel(self, remote_session_id: int) -> None: ...
