import re
import base64
import math
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.elevenlabs import (
    CURATED_VOICES,
    ElevenLabsClient,
    SpeechErrorKind,
    SpeechSynthesisError,
    PODCAST_VOICE_SETTINGS,
)
from app.core.exceptions import (
    APIException,
    InvalidInputException,
    QuotaExceededException,
    RateLimitedException,
    UpstreamUnavailableException,
)
from app.core.podcast import chunk_text, clean_script_for_tts, estimate_duration, format_duration
from app.models.learning import utcnow
from app.models.voice import VoiceMetadata
from app.services.storage_service import StorageService

# Configure logger for this module
logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9_-]")


def to_api_exception(error: SpeechSynthesisError) -> APIException:
    """
    Maps a provider failure onto the API error a caller can act on:
    wait and retry (429), stop and check billing (402) or retry once later (502).
    """
    if error.kind == SpeechErrorKind.RATE_LIMITED:
        return RateLimitedException(
            "Speech provider rate limit reached, retry later",
            retry_after=error.retry_after,
        )
    if error.kind == SpeechErrorKind.QUOTA_EXCEEDED:
        return QuotaExceededException("Speech provider credits exhausted for this billing period")
    if error.kind == SpeechErrorKind.UNAVAILABLE:
        return UpstreamUnavailableException(f"Speech provider unavailable: {error.message}")
    return UpstreamUnavailableException(
        f"Speech provider rejected the request: {error.message}",
        code="SPEECH_REQUEST_FAILED",
        details={"providerStatus": error.status_code},
    )


class SpeechService:
    """
    A service class exposing the speech provider to the API: voices, credits,
    previews and cost estimates.
    """

    def list_spanish_voices(self, client: ElevenLabsClient, db: Session) -> List[Dict[str, Any]]:
        """
        Spanish voices, best podcast candidates first.

        Curated `VoiceMetadata` rows override the heuristic `podcastScore`,
        `isRecommended` and `style` of the voice with the same id.
        """
        try:
            voices = client.get_spanish_voices()
        except SpeechSynthesisError as e:
            raise to_api_exception(e)

        curated = {row.id: row for row in db.query(VoiceMetadata).filter(VoiceMetadata.language == "es").all()}
        for voice in voices:
            row = curated.get(voice.get("voice_id"))
            if row:
                voice.update(podcastScore=row.podcastScore, isRecommended=row.isRecommended, style=list(row.style or []))

        voices.sort(key=lambda v: (not v.get("isRecommended"), -v.get("podcastScore", 0)))
        logger.info(f"SpeechService: Returning {len(voices)} Spanish voices.")
        return voices

    def get_credits(self, client: ElevenLabsClient) -> Dict[str, Any]:
        """
        Remaining provider credits for the current billing period.

        Returns:
            Dict: `remaining`, `total`, `used`, `usagePercent` and `resetDate`.
        """
        try:
            credits = client.get_remaining_credits()
        except SpeechSynthesisError as e:
            raise to_api_exception(e)
        used = credits["total"] - credits["remaining"]
        usage_percent = int(used / credits["total"] * 100 + 0.5) if credits["total"] else 0
        return {**credits, "used": used, "usagePercent": usage_percent}

    def preview(
        self,
        client: ElevenLabsClient,
        text: Optional[str],
        voice_id: Optional[str],
        voice_settings: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Synthesizes the beginning of a text so a voice can be auditioned.

        Returns:
            Dict: `audio` as a base64 data URL, estimated `duration`,
            `creditsUsed` and the `previewLength` that was synthesized.

        Raises:
            InvalidInputException: If text or voice are missing.
        """
        if not text or not text.strip() or not voice_id:
            raise InvalidInputException("text and voiceId are required")

        cleaned = clean_script_for_tts(text)
        preview_text = client.preview_text(cleaned)
        logger.info(f"SpeechService: Generating preview for voice {voice_id} ({len(preview_text)} chars)")
        try:
            audio = client.generate_preview(cleaned, voice_id, voice_settings or PODCAST_VOICE_SETTINGS)
        except SpeechSynthesisError as e:
            raise to_api_exception(e)

        return {
            "audio": f"data:audio/mpeg;base64,{base64.b64encode(audio).decode('ascii')}",
            "duration": client.estimate_duration(preview_text),
            "creditsUsed": client.estimate_credits(preview_text),
            "previewLength": len(preview_text),
        }

    def generate(
        self,
        client: ElevenLabsClient,
        storage_service: StorageService,
        text: Optional[str],
        voice_id: Optional[str],
        voice_settings: Optional[Dict[str, Any]] = None,
        filename: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Synthesizes a whole text outside of any episode.

        With `filename` the audio is written to the podcasts directory and its
        URL returned; otherwise the audio comes back as a base64 data URL.

        Raises:
            InvalidInputException: If text or voice are missing.
        """
        if not text or not text.strip() or not voice_id:
            raise InvalidInputException("text and voiceId are required")

        credits = client.estimate_credits(text)
        duration = client.estimate_duration(text)
        logger.info(f"SpeechService: Generating {len(text)} chars with voice {voice_id} (~{credits} credits)")
        try:
            audio = client.generate_speech(voice_id, text, voice_settings or PODCAST_VOICE_SETTINGS)
        except SpeechSynthesisError as e:
            raise to_api_exception(e)

        result: Dict[str, Any] = {"audioSize": len(audio), "duration": duration, "creditsUsed": credits}
        if filename:
            safe_name = _UNSAFE_FILENAME_RE.sub("_", filename).lower()
            relative_path = storage_service.save_podcast_file(audio, f"{safe_name}.mp3")
            result["fileUrl"] = storage_service.get_file_url(relative_path)
        else:
            result["audio"] = f"data:audio/mpeg;base64,{base64.b64encode(audio).decode('ascii')}"
        return result

    # --- Curated voice metadata ---

    def seed_voice_metadata(self, db: Session) -> Dict[str, int]:
        """
        Upserts the curated voice list into `voice_metadata`.

        Returns:
            Dict[str, int]: `created` and `updated` row counts.
        """
        created = updated = 0
        for voice in CURATED_VOICES:
            data = {**voice, "language": "es", "isRecommended": True, "lastFetched": utcnow()}
            row = db.query(VoiceMetadata).filter(VoiceMetadata.id == voice["id"]).first()
            if row:
                for key, value in data.items():
                    setattr(row, key, value)
                updated += 1
            else:
                db.add(VoiceMetadata(**data))
                created += 1
        db.commit()
        logger.info(f"SpeechService: Seeded voice metadata (created {created}, updated {updated}).")
        return {"created": created, "updated": updated}

    def list_voice_metadata(self, db: Session) -> List[VoiceMetadata]:
        return db.query(VoiceMetadata).order_by(
            VoiceMetadata.isRecommended.desc(),
            VoiceMetadata.podcastScore.desc()
        ).all()

    def estimate(self, text: str, clean: bool = True) -> Dict[str, Any]:
        """
        Cost and length of synthesizing a text, without calling the provider.
        """
        prepared = clean_script_for_tts(text) if clean else (text or "")
        characters = len(prepared)
        credits = math.ceil(characters / settings.TTS_CHARS_PER_CREDIT)
        duration = estimate_duration(prepared, settings.TTS_WORDS_PER_MINUTE)
        return {
            "characters": characters,
            "estimatedCredits": credits,
            "estimatedDuration": duration,
            "durationFormatted": format_duration(duration),
            "chunks": len(chunk_text(prepared, settings.TTS_MAX_CHARS_PER_REQUEST)),
        }


# Create a single instance of the service to be used as a dependency
speech_service = SpeechService()

def get_speech_service() -> SpeechService:
    """
    Dependency function to provide the speech service instance.
    """
    return speech_service
