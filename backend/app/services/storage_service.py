import os
import uuid
from pathlib import Path
from typing import Optional
import logging

from app.core.config import settings

# Configure logger for this module
logger = logging.getLogger(__name__)

class StorageService:
    """
    A service class to handle file storage operations.

    Generated podcast audio is written below `<base_path>/podcasts` and served
    by the static mount at `/storage`. Only the local filesystem is supported;
    another backend can replace these methods without touching the callers.
    """

    def __init__(self, base_path: str = settings.STORAGE_PATH):
        """
        Initializes the StorageService.

        Args:
            base_path: The root directory for all storage operations.
                       Defaults to the path specified in the application settings.
        """
        self.base_path = Path(base_path)
        self.podcasts_dir = self.base_path / "podcasts"

        # Ensure the directories exist
        self.podcasts_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Storage initialized at base path: {self.base_path}")

    def new_podcast_filename(self, episode_number: int) -> str:
        """Unique on-disk name for a freshly generated episode file."""
        return f"episode_{episode_number:03d}_{uuid.uuid4().hex[:12]}.mp3"

    def save_podcast_file(self, data: bytes, podcast_filename: str) -> str:
        """
        Writes podcast audio to the podcasts directory.

        Args:
            data: The MP3 bytes.
            podcast_filename: Name of the file inside the podcasts directory.

        Returns:
            The path of the saved file relative to the storage base ("podcasts/<name>").
        """
        safe_filename = Path(podcast_filename).name
        file_path = self.podcasts_dir / safe_filename
        with file_path.open("wb") as f:
            f.write(data)

        if not file_path.exists() or file_path.stat().st_size != len(data):
            error_msg = f"Failed to save podcast file: {file_path}"
            logger.error(error_msg)
            raise IOError(error_msg)

        logger.info(f"Saved podcast file to: {file_path} ({len(data)} bytes)")
        return str(file_path.relative_to(self.base_path)).replace("\\", "/")

    def get_file_url(self, relative_path: str) -> str:
        """
        Generates a full accessible URL for a stored file.

        Args:
            relative_path: The relative path of the file (from storage base)

        Returns:
            Full URL accessible via the web server
        """
        url_path = str(relative_path).replace("\\", "/").lstrip("/")
        if url_path.startswith("storage/"):
            url_path = url_path[len("storage/"):]

        base_url = settings.BASE_URL.rstrip("/")
        full_url = f"{base_url}/storage/{url_path}"
        logger.debug(f"Generated file URL for {relative_path} -> {full_url}")
        return full_url

    def relative_path_from_url(self, file_url: Optional[str]) -> Optional[str]:
        """
        Maps a URL produced by `get_file_url` back to its storage-relative path.

        Only the podcasts directory is ever handed out, so the filename is enough.
        """
        if not file_url:
            return None
        filename = file_url.rstrip("/").split("/")[-1]
        if not filename:
            return None
        return f"podcasts/{filename}"

    def get_absolute_path(self, relative_path: str) -> Path:
        """
        Gets the absolute filesystem path for a relative storage path.

        Args:
            relative_path: The relative path of the file (from storage base)

        Returns:
            Absolute Path object

        Raises:
            ValueError: If the relative path is empty or points outside the base directory
            FileNotFoundError: If the resulting path doesn't exist
        """
        if not relative_path:
            raise ValueError("Relative path cannot be empty")

        normalized_path = (self.base_path / str(relative_path)).resolve()

        # Ensure the path is within the base directory
        try:
            normalized_path.relative_to(self.base_path.resolve())
        except ValueError:
            raise ValueError(f"Path '{relative_path}' is outside the base directory")

        if not normalized_path.exists():
            raise FileNotFoundError(f"File not found: {normalized_path}")

        return normalized_path

    def read_file(self, relative_path: str) -> bytes:
        """
        Reads a stored file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
        """
        return self.get_absolute_path(relative_path).read_bytes()

    def delete_file(self, relative_path: Optional[str]) -> bool:
        """
        Deletes a stored file. A missing file is not an error.

        Args:
            relative_path: The relative path of the file (from storage base)

        Returns:
            True if a file was removed, False if there was nothing to remove.
        """
        if not relative_path:
            return False
        file_path = self.base_path / relative_path
        if file_path.exists() and file_path.is_file():
            try:
                os.remove(file_path)
                logger.info(f"Deleted file: {file_path}")
                return True
            except OSError as e:
                logger.error(f"Error deleting file {file_path}: {e}")
                raise RuntimeError(f"Could not delete file: {e}")
        logger.warning(f"Attempted to delete non-existent file: {file_path}")
        return False


# Create a single instance of the service to be used as a dependency
storage_service = StorageService()

def get_storage_service():
    """
    Dependency function to provide the storage service instance.
    """
    return storage_service
