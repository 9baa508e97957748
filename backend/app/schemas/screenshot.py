from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime

class ScreenshotCreate(BaseModel):
    image: Optional[str] = Field(None, description="Base64 image or data URL captured by the extension.")
    url: str = Field("", description="Page the screenshot was taken from.")
    title: Optional[str] = None

class ScreenshotCreated(BaseModel):
    id: str

class ScreenshotInDB(BaseModel):
    id: str
    image: str
    url: str
    title: Optional[str] = None
    createdAt: datetime

    model_config = ConfigDict(from_attributes=True)

class ScreenshotList(BaseModel):
    screenshots: List[ScreenshotInDB]
