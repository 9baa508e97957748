import uuid
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import InvalidInputException
from app.models.learning import utcnow
from app.models.screenshot import ScreenshotInboxItem

# Configure logger for this module
logger = logging.getLogger(__name__)

class ScreenshotService:
    """
    Inbox between the browser extension and the chat.

    The extension pushes screenshots; the chat polls and receives each
    pending screenshot exactly once. An item is handed out only by the
    request whose conditional UPDATE flips its `consumedAt` from NULL.
    """

    def push(self, db: Session, image: Optional[str], url: str = "", title: Optional[str] = None) -> ScreenshotInboxItem:
        """
        Stores a screenshot until the chat picks it up.

        Raises:
            InvalidInputException: If no image is given.
        """
        if not image:
            raise InvalidInputException("No image provided")

        item = ScreenshotInboxItem(
            id=f"screenshot_{uuid.uuid4().hex}",
            image=image,
            url=url or "",
            title=title,
            createdAt=utcnow()
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        logger.info(f"ScreenshotService: Stored screenshot {item.id} from {item.url or 'unknown page'}")
        return item

    def consume_pending(self, db: Session) -> List[ScreenshotInboxItem]:
        """
        Claims and returns every pending screenshot, oldest first.

        Items claimed by a concurrent poll in between are left out.
        """
        pending = db.query(ScreenshotInboxItem).filter(
            ScreenshotInboxItem.consumedAt.is_(None)
        ).order_by(ScreenshotInboxItem.createdAt).all()

        claimed = []
        for item in pending:
            updated = db.query(ScreenshotInboxItem).filter(
                ScreenshotInboxItem.id == item.id,
                ScreenshotInboxItem.consumedAt.is_(None)
            ).update({ScreenshotInboxItem.consumedAt: utcnow()}, synchronize_session=False)
            db.commit()
            if updated == 1:
                claimed.append(item)

        if claimed:
            logger.info(f"ScreenshotService: Handed out {len(claimed)} screenshots.")
        return claimed


# Create a single instance of the service to be used as a dependency
screenshot_service = ScreenshotService()

def get_screenshot_service() -> ScreenshotService:
    """
    Dependency function to provide the screenshot service instance.
    """
    return screenshot_service
