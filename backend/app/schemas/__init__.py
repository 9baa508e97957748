# Re-export the response schemas under short names.

from .learning import LearningModuleInDB as LearningModuleSchema
from .podcast import EpisodeInDB as EpisodeSchema
from .podcast import PodcastConfigOut as PodcastConfigSchema
from .trend import TrendInDB as TrendSchema
from .screenshot import ScreenshotInDB as ScreenshotSchema
