"""Session backend lifespan event."""

from app.core.lifespan import BaseEvent
from app.core.session import SessionBackend


class SessionBackendEvent(BaseEvent[SessionBackend]):
    """Holds session records shared by all requests of the process."""

    name = "sessions"

    async def startup(self) -> SessionBackend:
        return SessionBackend()

    async def shutdown(self, instance: SessionBackend) -> None:
        instance.clear()
