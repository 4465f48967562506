"""
Health check endpoint with database and export status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from api.dependencies import get_db
from core.database import check_database
from schemas.api import HealthCheckResponse
from models.query import ExportQuery
from models.history import ExportHistory
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Number of configured queries
    - Outcome of the most recent export run
    """

    db_connected = await check_database(db)

    total_queries = 0
    automated_queries = 0
    last_export = None

    if db_connected:
        try:
            total_queries = (await db.execute(
                select(func.count()).select_from(ExportQuery)
            )).scalar() or 0
            automated_queries = (await db.execute(
                select(func.count()).select_from(ExportQuery).where(ExportQuery.automated.is_(True))
            )).scalar() or 0
            last_export = (await db.execute(
                select(ExportHistory)
                .order_by(ExportHistory.timestamp.desc(), ExportHistory.id.desc())
                .limit(1)
            )).scalar_one_or_none()
        except Exception as e:
            logger.error(f"Failed to fetch export status: {str(e)}")

    if not db_connected:
        status = "unhealthy"
    elif last_export is not None and not last_export.success:
        status = "degraded"
    else:
        status = "healthy"

    return HealthCheckResponse(
        status=status,
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        total_queries=total_queries,
        automated_queries=automated_queries,
        last_export_at=last_export.timestamp if last_export else None,
        last_export_success=last_export.success if last_export else None
    )
