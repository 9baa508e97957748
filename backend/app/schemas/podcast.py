from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

class EpisodeStatus(str, Enum):
    DRAFT = "DRAFT"
    GENERATING = "GENERATING"
    READY = "READY"
    FAILED = "FAILED"
    PUBLISHED = "PUBLISHED"

# --- Request Models ---
class EpisodeCreate(BaseModel):
    """
    Pydantic model for the request body to create an episode manually.
    """
    title: Optional[str] = Field(None, description="Episode title. Required.")
    script: Optional[str] = Field(None, description="Raw script text. Required.")
    description: Optional[str] = None
    episodeNumber: Optional[int] = Field(None, ge=1, description="Explicit episode number; next free number when omitted.")
    voiceId: Optional[str] = Field(None, description="Synthesis voice. Defaults to the podcast config voice.")
    voiceSettings: Optional[Dict[str, Any]] = Field(None, description="Provider voice settings (stability, similarity_boost, ...).")
    trendIds: List[str] = Field(default_factory=list, description="Trends the episode covers.")

class EpisodeUpdate(BaseModel):
    """
    Editable episode fields. `status` only accepts PUBLISHED (from READY).
    """
    title: Optional[str] = None
    description: Optional[str] = None
    script: Optional[str] = None
    voiceId: Optional[str] = None
    voiceSettings: Optional[Dict[str, Any]] = None
    status: Optional[EpisodeStatus] = None
    publishedPlatforms: Optional[List[str]] = None

class BatchDownloadRequest(BaseModel):
    episodeIds: List[str] = Field(default_factory=list)
    includeMetadataCsv: bool = True

class ScriptCleanRequest(BaseModel):
    script: str = Field(..., description="Script to prepare for synthesis.")
    includeIntroOutro: bool = Field(False, description="Add the configured intro/outro when missing.")

# --- Response Models ---
class EpisodeInDB(BaseModel):
    """
    Pydantic model representing a podcast episode as stored in the database.
    """
    id: str
    episodeNumber: int
    title: str
    description: Optional[str] = None
    script: str
    voiceId: str
    voiceSettings: Optional[Dict[str, Any]] = None
    status: EpisodeStatus
    audioUrl: Optional[str] = None
    audioDuration: Optional[int] = Field(None, description="Length in seconds (estimated from the script).")
    audioSize: Optional[int] = Field(None, description="File size in bytes.")
    creditsUsed: Optional[int] = None
    trendIds: List[str] = []
    publishedPlatforms: List[str] = []
    publishedAt: Optional[datetime] = None
    createdAt: datetime
    updatedAt: datetime

    model_config = ConfigDict(from_attributes=True)

class EpisodeSummary(BaseModel):
    id: str
    episodeNumber: int
    title: str
    description: Optional[str] = None
    audioUrl: Optional[str] = None
    audioDuration: Optional[int] = None
    status: EpisodeStatus
    publishedPlatforms: List[str] = []
    trendIds: List[str] = []
    createdAt: datetime
    updatedAt: datetime

    model_config = ConfigDict(from_attributes=True)

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int

class EpisodeStats(BaseModel):
    total: int
    drafts: int
    ready: int
    published: int

class EpisodeListResponse(BaseModel):
    episodes: List[EpisodeSummary]
    pagination: Pagination
    stats: EpisodeStats

class TrendReference(BaseModel):
    id: str
    title: str
    category: str

    model_config = ConfigDict(from_attributes=True)

class EpisodeDetailResponse(BaseModel):
    episode: EpisodeInDB
    trends: List[TrendReference] = []

class GenerateAudioResponse(BaseModel):
    episode: EpisodeInDB
    message: str = "Audio generado correctamente"

class PodcastConfigIn(BaseModel):
    podcastName: Optional[str] = None
    podcastDescription: Optional[str] = None
    introScript: Optional[str] = None
    outroScript: Optional[str] = None
    defaultVoiceId: Optional[str] = None
    defaultVoiceSettings: Optional[Dict[str, Any]] = None
    characterPhrases: List[str] = Field(default_factory=list)
    targetDuration: Optional[int] = Field(None, ge=1, description="Target episode length in seconds.")
    publishFrequency: Optional[str] = None
    spotifyShowId: Optional[str] = None
    ivooxShowId: Optional[str] = None

class PodcastConfigOut(BaseModel):
    id: Optional[str] = None
    podcastName: str
    podcastDescription: Optional[str] = None
    introScript: Optional[str] = None
    outroScript: Optional[str] = None
    defaultVoiceId: Optional[str] = None
    defaultVoiceSettings: Optional[Dict[str, Any]] = None
    characterPhrases: List[str] = []
    targetDuration: int
    publishFrequency: str
    spotifyShowId: Optional[str] = None
    ivooxShowId: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class PodcastConfigResponse(BaseModel):
    config: PodcastConfigOut
    isDefault: bool = False
    created: Optional[bool] = None

class ScriptCleanResponse(BaseModel):
    cleanScript: str
    characterCount: int
    estimatedCredits: int
    estimatedDuration: int
    durationFormatted: str
    sections: List[Dict[str, Any]]
    validation: Dict[str, Any]
