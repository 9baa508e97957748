import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session

# Import services, schemas, and dependencies
from app.services.trend_service import get_trend_service, TrendService
from app.schemas.trend import TrendCategory, TrendInDB, TrendIngestRequest, TrendIngestResponse, TrendListResponse
from app.core.exceptions import InternalErrorException, NotFoundException
from app.db.session import get_db

# Configure logger for this module
logger = logging.getLogger(__name__)

# Create a new router for this module.
router = APIRouter()

@router.get(
    "/",
    response_model=TrendListResponse,
    summary="List trends",
    description="Returns stored trends, hottest first, optionally restricted to one category."
)
def read_trends(
    db: Session = Depends(get_db),
    category: Optional[TrendCategory] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    trend_service: TrendService = Depends(get_trend_service)
):
    trends = trend_service.list_trends(db=db, category=category, limit=limit)
    return TrendListResponse(
        trends=[TrendInDB.model_validate(trend, from_attributes=True) for trend in trends],
        count=len(trends)
    )

@router.post(
    "/ingest",
    response_model=TrendIngestResponse,
    summary="Ingest search results",
    description="Stores search results as trends. Results whose URL is already stored are skipped, so repeating an ingestion is harmless."
)
def ingest_trends(
    *,
    db: Session = Depends(get_db),
    ingest_in: TrendIngestRequest,
    trend_service: TrendService = Depends(get_trend_service)
):
    logger.info(f"API: Received {len(ingest_in.results)} search results for ingestion")
    try:
        return trend_service.ingest(db=db, results=ingest_in.results)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"API: An unexpected error occurred during trend ingestion: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while ingesting trends", details={"errorType": type(e).__name__})

@router.get(
    "/{trend_id}",
    response_model=TrendInDB,
    summary="Retrieve a trend"
)
def read_trend(
    db: Session = Depends(get_db),
    trend_id: str = Path(..., description="The ID of the trend to retrieve."),
    trend_service: TrendService = Depends(get_trend_service)
):
    trend = trend_service.get_trend(db=db, trend_id=trend_id)
    if not trend:
        raise NotFoundException("Trend not found", code="TREND_NOT_FOUND")
    return trend
