import uuid
import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.core.trends import heat_score_for_window, keywords_from_query, source_from_url
from app.models.learning import utcnow
from app.models.trend import Trend
from app.schemas.trend import TrendCategory, TrendSearchResult

# Configure logger for this module
logger = logging.getLogger(__name__)

class TrendService:
    """
    A service class for storing and listing AI news trends.

    Search results are ingested one row per URL. A URL that is already stored
    is skipped and the stored row (including its heat score) is left as is,
    so running the same ingestion twice changes nothing.
    """

    def ingest(self, db: Session, results: List[TrendSearchResult]) -> Dict:
        """
        Inserts the search results whose URL is not stored yet.

        Every insert is its own transaction; losing a race on the unique URL
        constraint counts as a skip.

        Args:
            db (Session): The SQLAlchemy database session.
            results (List[TrendSearchResult]): Hits from the trend searches.

        Returns:
            Dict: `found` (inserted), `skipped`, and per-category insert counts
            in `results`.
        """
        per_category: Dict[TrendCategory, int] = OrderedDict()
        found = 0
        skipped = 0

        for result in results:
            category = TrendCategory(result.category)
            per_category.setdefault(category, 0)

            if db.query(Trend.id).filter(Trend.url == result.url).first():
                logger.debug(f"TrendService: Skipping known URL {result.url}")
                skipped += 1
                continue

            db.add(Trend(
                id=f"trend_{uuid.uuid4().hex}",
                title=result.title,
                description=result.snippet or "",
                url=result.url,
                source=source_from_url(result.url),
                category=category.value,
                heatScore=heat_score_for_window(result.window),
                keywords=keywords_from_query(result.query),
                fetchedAt=utcnow()
            ))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.debug(f"TrendService: URL {result.url} inserted concurrently, skipping.")
                skipped += 1
                continue

            per_category[category] += 1
            found += 1

        logger.info(f"TrendService: Ingested {found} trends, skipped {skipped}.")
        return {
            "found": found,
            "skipped": skipped,
            "results": [{"category": category, "found": count} for category, count in per_category.items()],
        }

    def list_trends(self, db: Session, category: Optional[TrendCategory] = None, limit: int = 50) -> List[Trend]:
        """Hottest trends first, most recently fetched first within the same heat."""
        query = db.query(Trend)
        if category:
            query = query.filter(Trend.category == TrendCategory(category).value)
        return query.order_by(Trend.heatScore.desc(), Trend.fetchedAt.desc()).limit(limit).all()

    def get_trend(self, db: Session, trend_id: str) -> Optional[Trend]:
        return db.query(Trend).filter(Trend.id == trend_id).first()


# Create a single instance of the service to be used as a dependency
trend_service = TrendService()

def get_trend_service() -> TrendService:
    """
    Dependency function to provide the trend service instance.
    """
    return trend_service
