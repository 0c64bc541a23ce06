"""Storage and conference context lifespan events."""

from pathlib import Path

from app.core.context import Conf
from app.core.lifespan import BaseEvent
from app.core.logger import LogIcon, logger
from app.core.settings import settings as st
from app.repositories.taganno import TagAnnoRepository


def create_repository(db_path: Path | None = None) -> TagAnnoRepository:
    """Open the tag annotation store, creating its schema if needed."""
    repo = TagAnnoRepository(db_path or st.DATABASE_PATH)
    logger.info("Tag annotation store ready", icon=LogIcon.DATABASE, path=str(repo.db_path))
    return repo


class TagAnnoRepositoryEvent(BaseEvent[TagAnnoRepository]):
    """Opens the tag annotation store."""

    name = "tag_annos"

    async def startup(self) -> TagAnnoRepository:
        return create_repository()


class ConferenceEvent(BaseEvent[Conf]):
    """Builds the conference context from settings."""

    name = "conf"
    requires = ("tag_annos",)

    async def startup(self) -> Conf:
        return Conf.from_settings(st, tag_annos=self.state.tag_annos)
