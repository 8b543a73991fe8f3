"""Health check endpoint.

Reports server status and whether the database answers a trivial query.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from purposelog import __version__
from purposelog.db.engine import get_db
from purposelog.errors import envelope

router = APIRouter()


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    checks = {"server": "ok", "version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except (SQLAlchemyError, OSError) as e:
        checks["database"] = f"error: {e}"

    healthy = checks["database"] == "ok"
    return envelope("healthy" if healthy else "degraded", data=checks)
