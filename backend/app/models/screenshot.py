from sqlalchemy import Column, String, Text, DateTime

from app.db.session import Base
from app.models.learning import utcnow

class ScreenshotInboxItem(Base):
    """
    SQLAlchemy model for the 'screenshot_inbox' table.

    Screenshots posted by the browser extension wait here until the chat
    picks them up. `consumedAt` is set exactly once, when an item is handed out.
    """
    __tablename__ = "screenshot_inbox"

    id = Column(String, primary_key=True, index=True)

    # Base64 image, usually a data URL ("data:image/png;base64,...").
    image = Column(Text, nullable=False)

    url = Column(String, nullable=False, default="")
    title = Column(String, nullable=True)
    createdAt = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    consumedAt = Column(DateTime(timezone=True), nullable=True, index=True)
