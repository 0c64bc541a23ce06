"""conf-request-api - conference request layer and tag annotation API on Robyn."""

from robyn import Robyn

from app.api.health import router as health_router
from app.api.taganno import router as taganno_router
from app.core.lifespan import create_lifespan
from app.core.logger import logger
from app.core.settings import settings as st
from app.events.conference import ConferenceEvent, TagAnnoRepositoryEvent
from app.events.sessions import SessionBackendEvent

app = Robyn(__file__)

# Lifespan events
lifespan = create_lifespan(app)
lifespan.register(SessionBackendEvent).register(TagAnnoRepositoryEvent).register(ConferenceEvent)

app.startup_handler(lifespan.startup)
app.shutdown_handler(lifespan.shutdown)

# Routers
app.include_router(health_router)
app.include_router(taganno_router)


def main() -> None:
    logger.info("🚀 STARTING %s | HOST=%s | PORT=%s", st.API_NAME, st.API_HOST, st.API_PORT)
    app.start(host=st.API_HOST, port=st.API_PORT)


if __name__ == "__main__":
    main()
