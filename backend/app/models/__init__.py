# This file imports all of the SQLAlchemy models.
# By importing them here, we make them available to SQLAlchemy's metadata
# so that `Base.metadata.create_all` creates every table on startup.

from .learning import LearningModule, LearningUnit
from .podcast import PodcastEpisode, PodcastConfig
from .trend import Trend
from .screenshot import ScreenshotInboxItem
from .voice import VoiceMetadata
