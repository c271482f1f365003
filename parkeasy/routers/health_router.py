import datetime as dt
import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/health", tags=["Health"])


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("")
def health_check(db: Session = Depends(get_db)):
    start = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check could not reach the database")
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "db": "error",
                "message": "Database not reachable",
                "timestamp": _now_iso(),
            },
        )

    return {
        "status": "ok",
        "db": "ok",
        "latencyMs": round((time.perf_counter() - start) * 1000),
        "timestamp": _now_iso(),
    }
