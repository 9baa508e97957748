import logging
from typing import Optional

from fastapi import Header

from app.core.config import settings
from app.core.elevenlabs import ElevenLabsClient
from app.core.exceptions import UnauthorizedException, UpstreamUnavailableException

logger = logging.getLogger(__name__)


# --- Principal Dependency ---
def get_current_user(x_user_id: Optional[str] = Header(None)) -> str:
    """
    Dependency that resolves the authenticated principal of a request.

    Authentication itself happens in front of this service; the gateway
    forwards the principal in the `X-User-Id` header.

    Raises:
        UnauthorizedException: 401 when the header is missing or blank.
    """
    if not x_user_id or not x_user_id.strip():
        logger.warning("Deps: Request without X-User-Id header rejected.")
        raise UnauthorizedException("Missing X-User-Id header")
    return x_user_id.strip()


# --- Speech Client Dependency ---
def get_speech_client() -> ElevenLabsClient:
    """
    Dependency that builds an ElevenLabs client from the application settings.

    Raises:
        UpstreamUnavailableException: 502 when no API key is configured.
    """
    if not settings.ELEVENLABS_API_KEY:
        logger.error("Deps: ELEVENLABS_API_KEY is not configured.")
        raise UpstreamUnavailableException(
            "ElevenLabs API key not configured",
            code="SPEECH_NOT_CONFIGURED",
        )
    return ElevenLabsClient(
        api_key=settings.ELEVENLABS_API_KEY,
        base_url=settings.ELEVENLABS_API_BASE,
        model_id=settings.ELEVENLABS_MODEL_ID,
        output_format=settings.ELEVENLABS_OUTPUT_FORMAT,
        max_chars_per_request=settings.TTS_MAX_CHARS_PER_REQUEST,
        chars_per_credit=settings.TTS_CHARS_PER_CREDIT,
        words_per_minute=settings.TTS_WORDS_PER_MINUTE,
        preview_chars=settings.TTS_PREVIEW_CHARS,
        chunk_delay_seconds=settings.TTS_CHUNK_DELAY_SECONDS,
        timeout=settings.TTS_REQUEST_TIMEOUT,
    )
