from sqlalchemy import Column, String, Text, Integer, DateTime
from sqlalchemy.types import JSON # Using generic JSON type for SQLite compatibility

from app.db.session import Base
from app.models.learning import utcnow

class PodcastEpisode(Base):
    """
    SQLAlchemy model for the 'podcast_episodes' table.

    One podcast installment: its script, the synthesis voice and, once
    generated, the audio artifact. `audioUrl`, `audioDuration` and `audioSize`
    are only set while the episode is READY or PUBLISHED.
    """
    __tablename__ = "podcast_episodes"

    id = Column(String, primary_key=True, index=True)

    # Unique so that two concurrent creations cannot end up with the same number.
    episodeNumber = Column(Integer, nullable=False, unique=True, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    script = Column(Text, nullable=False)
    voiceId = Column(String, nullable=False)
    voiceSettings = Column(JSON, nullable=True)

    # DRAFT -> GENERATING -> READY | FAILED, READY -> PUBLISHED
    status = Column(String, nullable=False, default="DRAFT", index=True)

    audioUrl = Column(String, nullable=True)
    audioDuration = Column(Integer, nullable=True) # seconds, estimated from the script
    audioSize = Column(Integer, nullable=True) # bytes
    creditsUsed = Column(Integer, nullable=True)

    trendIds = Column(JSON, nullable=False, default=list)
    publishedPlatforms = Column(JSON, nullable=False, default=list)
    publishedAt = Column(DateTime(timezone=True), nullable=True)

    createdAt = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updatedAt = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class PodcastConfig(Base):
    """
    SQLAlchemy model for the 'podcast_config' table.

    At most one row is used (the first one). It supplies show-level defaults
    for new episodes: voice, voice settings, intro/outro and show name.
    """
    __tablename__ = "podcast_config"

    id = Column(String, primary_key=True, index=True)
    podcastName = Column(String, nullable=False)
    podcastDescription = Column(Text, nullable=True)
    introScript = Column(Text, nullable=True)
    outroScript = Column(Text, nullable=True)
    defaultVoiceId = Column(String, nullable=True)
    defaultVoiceSettings = Column(JSON, nullable=True)
    characterPhrases = Column(JSON, nullable=False, default=list)
    targetDuration = Column(Integer, nullable=False, default=420) # seconds
    publishFrequency = Column(String, nullable=False, default="weekly")
    spotifyShowId = Column(String, nullable=True)
    ivooxShowId = Column(String, nullable=True)
    createdAt = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updatedAt = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
