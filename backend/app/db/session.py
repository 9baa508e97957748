from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from app.core.config import settings

# Create the SQLAlchemy engine.
# `check_same_thread` is SQLite specific: FastAPI runs sync endpoints in a
# threadpool, so a connection may be used by a thread other than its creator.
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args
)

# Create a configured "Session" class.
# This is not a session instance, but a factory for creating them.
# autocommit=False and autoflush=False are standard settings for
# web applications, giving more control over transaction management.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create a Base class for our SQLAlchemy models to inherit from.
# All of our schema/table models will be subclasses of this Base.
Base = declarative_base()

# --- Dependency for getting a DB session ---
def get_db():
    """
    A dependency function that creates and yields a new database session
    for each request. It ensures the session is always closed, even if
    an error occurs. Every service operation commits its own transaction.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
