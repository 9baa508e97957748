from sqlalchemy import Column, String, Text, Integer, DateTime
from sqlalchemy.types import JSON

from app.db.session import Base
from app.models.learning import utcnow

class Trend(Base):
    """
    SQLAlchemy model for the 'trends' table.

    An ingested news/search item. `url` is unique across the table and is the
    deduplication key; `heatScore` is fixed when the row is created.
    """
    __tablename__ = "trends"

    id = Column(String, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    url = Column(String, nullable=False, unique=True, index=True)

    # Hostname of the url, without "www."
    source = Column(String, nullable=False)

    category = Column(String, nullable=False, index=True)
    heatScore = Column(Integer, nullable=False, default=30, index=True)
    keywords = Column(JSON, nullable=False, default=list)
    fetchedAt = Column(DateTime(timezone=True), default=utcnow, nullable=False)
