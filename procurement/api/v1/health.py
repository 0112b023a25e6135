import logging

from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health(request: Request):
    rid = getattr(request.state, "request_id", None)
    database = "ok"
    try:
        with request.app.state.database.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("health check: database unreachable", extra={"error": str(exc), "request_id": rid})
        database = "unavailable"
    return {"status": "ok" if database == "ok" else "degraded", "database": database, "request_id": rid}
