from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, Integer, Boolean, ForeignKey, DateTime
from sqlalchemy.orm import relationship

from app.db.session import Base


def utcnow():
    return datetime.now(timezone.utc)


class LearningModule(Base):
    """
    SQLAlchemy model for the 'learning_modules' table.

    A module is a learning topic container. Its `progress` and `status` are
    derived from its units and are only ever written by the unit operations
    in LearningService.
    """
    __tablename__ = "learning_modules"

    id = Column(String, primary_key=True, index=True)

    # The principal that created the module. Modules are only visible to their owner.
    userId = Column(String, nullable=False, index=True)

    title = Column(String, nullable=False)

    # Free-text topic used for similarity matching when a new topic is submitted.
    topic = Column(Text, nullable=False)

    description = Column(Text, nullable=True)

    # "ACTIVE" or "COMPLETED". COMPLETED iff progress == 100.
    status = Column(String, nullable=False, default="ACTIVE", index=True)

    # Rounded percentage of completed units, 0-100.
    progress = Column(Integer, nullable=False, default=0)

    conversationId = Column(String, nullable=True)
    isManual = Column(Boolean, nullable=False, default=False)

    # Timestamps are written from Python so that "bump updatedAt" keeps sub-second ordering.
    createdAt = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updatedAt = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False, index=True)

    units = relationship(
        "LearningUnit",
        back_populates="module",
        cascade="all, delete-orphan",
        order_by="LearningUnit.order",
    )


class LearningUnit(Base):
    """
    SQLAlchemy model for the 'learning_units' table.

    A unit is a single completable step of a module. Units are appended with
    increasing `order` and never reordered.
    """
    __tablename__ = "learning_units"

    id = Column(String, primary_key=True, index=True)

    # `ondelete="CASCADE"` removes the units together with their module.
    moduleId = Column(String, ForeignKey("learning_modules.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String, nullable=False)
    order = Column(Integer, nullable=False, default=0)
    completed = Column(Boolean, nullable=False, default=False)
    createdAt = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    module = relationship("LearningModule", back_populates="units")
