from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime

class SpeechPreviewRequest(BaseModel):
    text: Optional[str] = Field(None, description="Text to preview. Only the first ~500 characters are synthesized.")
    voiceId: Optional[str] = Field(None, description="Voice to preview.")
    settings: Optional[Dict[str, Any]] = Field(None, description="Voice settings; podcast defaults when omitted.")

class SpeechPreviewResponse(BaseModel):
    audio: str = Field(..., description="data:audio/mpeg;base64,... URL")
    duration: int
    creditsUsed: int
    previewLength: int

class SpeechEstimateRequest(BaseModel):
    text: str
    clean: bool = Field(True, description="Clean the text as for synthesis before estimating.")

class SpeechEstimateResponse(BaseModel):
    characters: int
    estimatedCredits: int
    estimatedDuration: int
    durationFormatted: str
    chunks: int = Field(..., description="Number of provider requests the text needs.")

class SpeechCreditsResponse(BaseModel):
    remaining: int
    total: int
    used: int
    usagePercent: int
    resetDate: datetime

class SpeechVoicesResponse(BaseModel):
    voices: List[Dict[str, Any]]
    count: int

class SpeechGenerateRequest(BaseModel):
    text: Optional[str] = None
    voiceId: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    filename: Optional[str] = Field(None, description="Save under podcasts/<filename>.mp3 instead of returning the audio inline.")

class SpeechGenerateResponse(BaseModel):
    audioSize: int
    duration: int
    creditsUsed: int
    audio: Optional[str] = Field(None, description="data:audio/mpeg;base64,... URL when no filename was given")
    fileUrl: Optional[str] = None

class VoiceMetadataInDB(BaseModel):
    id: str
    name: str
    language: str
    accent: Optional[str] = None
    gender: Optional[str] = None
    ageGroup: Optional[str] = None
    style: List[str] = []
    podcastScore: int
    isRecommended: bool
    notes: Optional[str] = None
    lastFetched: datetime

    model_config = ConfigDict(from_attributes=True)

class VoiceSeedResponse(BaseModel):
    created: int
    updated: int

class VoiceMetadataList(BaseModel):
    metadata: List[VoiceMetadataInDB]
    count: int
