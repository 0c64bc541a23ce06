"""Health check endpoint."""

from pydantic import BaseModel

from app.core.logger import LogIcon, logger
from app.core.request import Qrequest
from app.core.router import Router
from app.core.settings import settings as st

router = Router(__file__, prefix="/")


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    service: str
    version: str
    database: bool


@router.get("/health")
async def health_check(qreq: Qrequest) -> HealthResponse:
    logger.info("Health check requested", icon=LogIcon.HEALTHCHECK)
    conf = qreq.conf()
    database = bool(conf and conf.tag_annos and conf.tag_annos.db_path.exists())
    return HealthResponse(
        status="healthy" if database else "degraded",
        service=st.API_NAME,
        version=st.API_VERSION,
        database=database,
    )
