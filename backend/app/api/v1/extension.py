import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

# Import services, schemas, and dependencies
from app.services.screenshot_service import get_screenshot_service, ScreenshotService
from app.schemas.screenshot import ScreenshotCreate, ScreenshotCreated, ScreenshotInDB, ScreenshotList
from app.db.session import get_db

# Configure logger for this module
logger = logging.getLogger(__name__)

# Create a new router for this module.
router = APIRouter()

@router.post(
    "/screenshot",
    response_model=ScreenshotCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Push a screenshot",
    description="Called by the browser extension. The screenshot waits in the inbox until the chat polls for it."
)
def push_screenshot(
    *,
    db: Session = Depends(get_db),
    screenshot_in: ScreenshotCreate,
    screenshot_service: ScreenshotService = Depends(get_screenshot_service)
):
    item = screenshot_service.push(db=db, image=screenshot_in.image, url=screenshot_in.url, title=screenshot_in.title)
    return ScreenshotCreated(id=item.id)

@router.get(
    "/screenshot",
    response_model=ScreenshotList,
    summary="Collect pending screenshots",
    description="Returns the screenshots pushed since the last poll. Each screenshot is returned exactly once."
)
def collect_screenshots(
    db: Session = Depends(get_db),
    screenshot_service: ScreenshotService = Depends(get_screenshot_service)
):
    items = screenshot_service.consume_pending(db=db)
    return ScreenshotList(screenshots=[ScreenshotInDB.model_validate(item, from_attributes=True) for item in items])
