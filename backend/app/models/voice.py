from sqlalchemy import Column, String, Integer, Boolean, DateTime
from sqlalchemy.types import JSON

from app.db.session import Base
from app.models.learning import utcnow

class VoiceMetadata(Base):
    """
    SQLAlchemy model for the 'voice_metadata' table.

    Curated podcast data for provider voices. When a row's `id` matches a
    provider `voice_id`, its score, recommendation flag and style replace the
    heuristic values in the voice listing.
    """
    __tablename__ = "voice_metadata"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    language = Column(String, nullable=False, default="es", index=True)
    accent = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    ageGroup = Column(String, nullable=True)
    style = Column(JSON, nullable=False, default=list)
    podcastScore = Column(Integer, nullable=False, default=5)
    isRecommended = Column(Boolean, nullable=False, default=False)
    notes = Column(String, nullable=True)
    lastFetched = Column(DateTime(timezone=True), default=utcnow, nullable=False)
