from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from starlette.middleware.cors import CORSMiddleware
import os
import logging
import sys

# Load environment variables from .env file, specifying the path
# Assumes .env is in the 'backend' directory relative to the project root
dotenv_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", ".env")
load_dotenv(dotenv_path=dotenv_path)

# Import settings and database session management
from app.core.config import settings
from app.db.session import engine, Base

# Configure logging for the entire application at the very beginning
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)
logger.debug("Application startup: Initializing FastAPI application.")
logger.debug(f"Main: ELEVENLABS_API_KEY configured: {bool(settings.ELEVENLABS_API_KEY)}")

# Register every model on Base.metadata before the tables are created
from app import models  # noqa: F401

# Import the API routers for each resource
from app.api.v1 import learning, podcast, speech, trends, extension
logger.debug("Main: Imported API routers.")

# --- Database Table Creation ---
def create_tables():
    """
    Creates all database tables based on the SQLAlchemy Base metadata.
    """
    Base.metadata.create_all(bind=engine)

# Create the main FastAPI application instance
app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)
logger.debug(f"Main: FastAPI application instance created with title '{settings.PROJECT_NAME}'.")

# --- Middleware ---
# The browser extension posts from arbitrary page origins, so all origins are allowed.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allows all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allows all methods
    allow_headers=["*"],  # Allows all headers
)
logger.debug("Main: CORS middleware added.")

# Mount static files directory (generated podcast audio)
app.mount("/storage", StaticFiles(directory=settings.STORAGE_PATH), name="storage")
logger.debug(f"Main: Mounted static files directory '{settings.STORAGE_PATH}' at '/storage'")

# --- Event Handlers ---
@app.on_event("startup")
def on_startup():
    """
    Event handler that runs when the FastAPI application starts.
    Creates the database tables that don't exist yet.
    """
    logger.debug("Main: Startup event triggered. Creating database tables.")
    create_tables()

# --- API Routers ---
# Include the routers from our API modules.
# Each router's endpoints will be prefixed accordingly.
app.include_router(learning.router, prefix=f"{settings.API_V1_STR}/learning", tags=["Learning"])
app.include_router(podcast.router, prefix=f"{settings.API_V1_STR}/podcasts", tags=["Podcasts"])
app.include_router(speech.router, prefix=f"{settings.API_V1_STR}/speech", tags=["Speech"])
app.include_router(trends.router, prefix=f"{settings.API_V1_STR}/trends", tags=["Trends"])
app.include_router(extension.router, prefix=f"{settings.API_V1_STR}/extension", tags=["Extension"])
logger.debug(f"Main: Included routers under {settings.API_V1_STR}")

# --- Root Endpoint ---
@app.get("/", tags=["Root"])
def read_root():
    """
    A simple root endpoint for health checks and to welcome users.
    """
    return {"message": f"Welcome to the {settings.PROJECT_NAME}"}
