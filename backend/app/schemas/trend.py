from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from enum import Enum

class TrendCategory(str, Enum):
    FLUX_TECHNIQUES = "FLUX_TECHNIQUES"
    LORA_MODELS = "LORA_MODELS"
    MONETIZATION = "MONETIZATION"
    TOOLS = "TOOLS"
    NEWS = "NEWS"

class TrendSearchResult(BaseModel):
    """
    One search hit handed to ingestion.
    """
    title: str
    url: str = Field(..., description="Source URL; the deduplication key.")
    snippet: str = ""
    category: TrendCategory
    window: Optional[str] = Field(None, description="Freshness window of the search: d7, w1, m1 or none.")
    query: str = Field("", description="Search query the hit came from; its long words become keywords.")

class TrendIngestRequest(BaseModel):
    results: List[TrendSearchResult] = Field(default_factory=list)

class TrendIngestCategory(BaseModel):
    category: TrendCategory
    found: int

class TrendIngestResponse(BaseModel):
    found: int
    skipped: int
    results: List[TrendIngestCategory]

class TrendInDB(BaseModel):
    id: str
    title: str
    description: str
    url: str
    source: str
    category: TrendCategory
    heatScore: int
    keywords: List[str] = []
    fetchedAt: datetime

    model_config = ConfigDict(from_attributes=True)

class TrendListResponse(BaseModel):
    trends: List[TrendInDB]
    count: int
