import os
from pydantic_settings import BaseSettings
from typing import Optional

# Get the root path of the project (the 'backend' directory)
# This assumes the script is run from the 'backend' directory.
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

class Settings(BaseSettings):
    """
    Pydantic settings class to manage application configuration.
    It automatically reads environment variables from a .env file.
    """
    # --- Core Application Settings ---
    PROJECT_NAME: str = "ComfyClaude OS API"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "DEBUG"

    # --- Database Settings ---
    # The default URL points to a SQLite database file in the project's backend root.
    DATABASE_URL: str = f"sqlite:///{os.path.join(PROJECT_ROOT, 'app.db')}"

    # --- Storage Settings ---
    # Generated podcast audio lives under STORAGE_PATH/podcasts and is served
    # from BASE_URL/storage/podcasts/<filename>.
    STORAGE_PATH: str = os.path.join(PROJECT_ROOT, "storage")
    BASE_URL: str = "http://localhost:8000"

    # --- Speech Synthesis (ElevenLabs) Settings ---
    ELEVENLABS_API_KEY: Optional[str] = None
    ELEVENLABS_API_BASE: str = "https://api.elevenlabs.io/v1"
    ELEVENLABS_MODEL_ID: str = "eleven_multilingual_v2"
    ELEVENLABS_OUTPUT_FORMAT: str = "mp3_44100_128"
    TTS_MAX_CHARS_PER_REQUEST: int = 5000
    TTS_CHARS_PER_CREDIT: int = 30
    TTS_WORDS_PER_MINUTE: int = 150
    TTS_PREVIEW_CHARS: int = 500
    TTS_CHUNK_DELAY_SECONDS: float = 0.5
    TTS_REQUEST_TIMEOUT: int = 60
    # Decode the produced audio to store its real length instead of the text estimate.
    MEASURE_AUDIO_DURATION: bool = False

    # --- Podcast Defaults ---
    DEFAULT_PODCAST_NAME: str = "IA Sin Filtros"
    DEFAULT_PODCAST_DESCRIPTION: str = "Noticias de IA explicadas para que cualquiera las entienda"
    DEFAULT_VOICE_ID: str = "21m00Tcm4TlvDq8ikWAM"
    DEFAULT_TARGET_DURATION: int = 420
    EPISODE_NUMBER_MAX_RETRIES: int = 5

    # --- Learning Settings ---
    TOPIC_MATCH_CANDIDATES: int = 20
    MODULE_LIST_LIMIT: int = 50

    class Config:
        """
        Pydantic config subclass to specify the .env file location.
        """
        env_file = os.path.join(PROJECT_ROOT, ".env")
        env_file_encoding = 'utf-8'
        extra = "ignore" # Allow extra fields from .env to be ignored

# Instantiate the settings object that will be used throughout the application.
settings = Settings()

# --- Create Storage Directories ---
def create_storage_directories():
    """
    Creates the necessary subdirectories within the main storage path.
    """
    # Directory for generated podcast audio
    podcasts_dir = os.path.join(settings.STORAGE_PATH, "podcasts")
    os.makedirs(podcasts_dir, exist_ok=True)

# Run the function to ensure directories are created on import.
create_storage_directories()
