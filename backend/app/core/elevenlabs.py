"""
ElevenLabs speech synthesis client.

Wraps the ElevenLabs REST API for podcast narration:

- chunking of scripts longer than the per-request character limit
- Spanish voice filtering and podcast suitability scoring
- credit and duration estimation, remaining-credit lookup
- structured errors (rate limited / quota exceeded / unavailable / failed)

The client never retries; callers decide from `SpeechSynthesisError.kind`
and `retry_after` whether and when to try again.
"""

import logging
import math
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

from app.core.podcast import WORDS_PER_MINUTE, chunk_text, estimate_duration, truncate_at_sentence

logger = logging.getLogger(__name__)

ELEVENLABS_API = "https://api.elevenlabs.io/v1"
MAX_CHARS_PER_REQUEST = 5000
CHARS_PER_CREDIT = 30
PREVIEW_CHARS = 500

# Settings tuned for podcast narration.
PODCAST_VOICE_SETTINGS: Dict[str, Any] = {
    "stability": 0.5,
    "similarity_boost": 0.75,
    "style": 0.0,
    "use_speaker_boost": True,
}

RECOMMENDED_SPANISH_VOICES = {
    "spain": {"male": ["Dante", "Mikel"], "female": ["Lucia"]},
    "latam": {"male": ["Franco", "Javier"], "female": ["Yinet", "Lumina"]},
    "neutral": ["Aria", "Roger"],
}

# Curated podcast metadata for the recommended voices, stored by the voice seed endpoint.
CURATED_VOICES = [
    {"id": "Dante", "name": "Dante", "accent": "Spain", "gender": "male", "ageGroup": "middle-aged",
     "style": ["narrative", "professional", "deep"], "podcastScore": 9,
     "notes": "Voz masculina dinámica, ideal para narración y podcasts serios"},
    {"id": "Mikel", "name": "Mikel", "accent": "Spain", "gender": "male", "ageGroup": "young-adult",
     "style": ["conversational", "natural", "friendly"], "podcastScore": 8,
     "notes": "Conversacional y natural, perfecto para podcasts casuales"},
    {"id": "Yinet", "name": "Yinet", "accent": "Colombian", "gender": "female", "ageGroup": "young-adult",
     "style": ["energetic", "informative", "cheerful"], "podcastScore": 9,
     "notes": "Femenina colombiana, alegre e informativa, ideal para noticias"},
    {"id": "Franco", "name": "Franco", "accent": "Argentine", "gender": "male", "ageGroup": "adult",
     "style": ["professional", "authoritative", "clear"], "podcastScore": 8,
     "notes": "Argentina autoritativa, ideal para contenido educativo"},
    {"id": "Javier", "name": "Javier", "accent": "Argentine", "gender": "male", "ageGroup": "middle-aged",
     "style": ["narrative", "professional", "warm"], "podcastScore": 8,
     "notes": "Voz cálida argentina, buena para storytelling"},
    {"id": "Lumina", "name": "Lumina", "accent": "Latin American Neutral", "gender": "female", "ageGroup": "young-adult",
     "style": ["versatile", "neutral", "modern"], "podcastScore": 9,
     "notes": "Neutra latinoamericana muy versátil, funciona para todo"},
]

SPANISH_KEYWORDS = (
    "spanish", "español", "spain", "mexican", "argentina",
    "colombian", "latino", "latina", "latam", "hispanic",
)


class SpeechErrorKind(str, Enum):
    RATE_LIMITED = "RATE_LIMITED"      # back off, retry after the hint
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"  # terminal for the billing period
    UNAVAILABLE = "UNAVAILABLE"        # network / 5xx, retry once with backoff
    FAILED = "FAILED"                  # request rejected by the provider


class SpeechSynthesisError(Exception):
    """Provider failure with enough structure for the caller to pick a retry policy."""

    def __init__(
        self,
        kind: SpeechErrorKind,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return self.kind in (SpeechErrorKind.RATE_LIMITED, SpeechErrorKind.UNAVAILABLE)


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return max(0, int(float(value)))
    except ValueError:
        return None


def _error_detail(response: requests.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"message": response.text}
    detail = body.get("detail", body) if isinstance(body, dict) else body
    return detail if isinstance(detail, dict) else {"message": str(detail)}


def classify_error(response: requests.Response) -> SpeechSynthesisError:
    """Maps a non-2xx provider response to a SpeechSynthesisError."""
    detail = _error_detail(response)
    status_code = response.status_code
    provider_status = str(detail.get("status", "")).lower()
    message = str(detail.get("message") or response.reason or "ElevenLabs request failed")

    if status_code == 429 and provider_status != "quota_exceeded":
        return SpeechSynthesisError(
            SpeechErrorKind.RATE_LIMITED,
            f"ElevenLabs rate limit: {message}",
            status_code,
            _parse_retry_after(response.headers.get("Retry-After")),
        )
    if status_code == 402 or provider_status in ("quota_exceeded", "insufficient_credits"):
        return SpeechSynthesisError(SpeechErrorKind.QUOTA_EXCEEDED, f"ElevenLabs quota exceeded: {message}", status_code)
    if status_code >= 500:
        return SpeechSynthesisError(SpeechErrorKind.UNAVAILABLE, f"ElevenLabs unavailable: {message}", status_code)
    return SpeechSynthesisError(SpeechErrorKind.FAILED, f"ElevenLabs API error {status_code}: {message}", status_code)


class ElevenLabsClient:
    """
    Synchronous ElevenLabs client.

    One instance is built per request from the application settings (see
    `app.core.deps.get_speech_client`) so tests can substitute a fake.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = ELEVENLABS_API,
        model_id: str = "eleven_multilingual_v2",
        output_format: str = "mp3_44100_128",
        max_chars_per_request: int = MAX_CHARS_PER_REQUEST,
        chars_per_credit: int = CHARS_PER_CREDIT,
        words_per_minute: int = WORDS_PER_MINUTE,
        preview_chars: int = PREVIEW_CHARS,
        chunk_delay_seconds: float = 0.5,
        timeout: int = 60,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("ELEVENLABS_API_KEY not configured. Add it to .env")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model_id = model_id
        self.output_format = output_format
        self.max_chars_per_request = max_chars_per_request
        self.chars_per_credit = chars_per_credit
        self.words_per_minute = words_per_minute
        self.preview_chars = preview_chars
        self.chunk_delay_seconds = chunk_delay_seconds
        self.timeout = timeout
        self.session = session or requests.Session()

    # --- HTTP plumbing ---

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers["xi-api-key"] = self.api_key
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            logger.error(f"ElevenLabs: {method} {path} failed: {e}")
            raise SpeechSynthesisError(SpeechErrorKind.UNAVAILABLE, f"Could not reach ElevenLabs: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"ElevenLabs: {method} {path} failed: {e}")
            raise SpeechSynthesisError(SpeechErrorKind.FAILED, f"ElevenLabs request failed: {e}") from e

        if not response.ok:
            error = classify_error(response)
            logger.error(f"ElevenLabs: {method} {path} -> {response.status_code} ({error.kind.value})")
            raise error
        return response

    # --- Voice management ---

    def get_voices(self) -> List[Dict[str, Any]]:
        """All voices available to the account."""
        response = self._request("GET", "/voices")
        return response.json().get("voices") or []

    def get_spanish_voices(self) -> List[Dict[str, Any]]:
        """
        Voices whose name or labels mention Spanish, decorated with podcast metadata.

        Returns:
            List[Dict]: Provider voice dicts plus `language`, `podcastScore`,
            `isRecommended` and `style`.
        """
        spanish = []
        for voice in self.get_voices():
            labels = voice.get("labels") or {}
            haystack = " ".join(str(v) for v in labels.values()).lower()
            name = (voice.get("name") or "").lower()
            if any(keyword in haystack or keyword in name for keyword in SPANISH_KEYWORDS):
                spanish.append({
                    **voice,
                    "language": "es",
                    "podcastScore": podcast_score(voice),
                    "isRecommended": is_recommended_voice(voice.get("name") or ""),
                    "style": infer_style(voice),
                })
        logger.debug(f"ElevenLabs: {len(spanish)} Spanish voices found.")
        return spanish

    def get_voice_settings(self, voice_id: str) -> Dict[str, Any]:
        """Provider defaults for a voice, or the podcast defaults when they cannot be read."""
        try:
            data = self._request("GET", f"/voices/{voice_id}/settings").json()
        except SpeechSynthesisError as e:
            logger.warning(f"ElevenLabs: using podcast defaults for voice {voice_id}: {e.message}")
            return dict(PODCAST_VOICE_SETTINGS)
        return {
            "stability": data.get("stability", 0.5),
            "similarity_boost": data.get("similarity_boost", 0.75),
            "style": data.get("style", 0.0),
            "use_speaker_boost": data.get("use_speaker_boost", True),
        }

    # --- Speech generation ---

    def _synthesize(self, voice_id: str, text: str, settings: Dict[str, Any]) -> bytes:
        response = self._request(
            "POST",
            f"/text-to-speech/{voice_id}",
            params={"output_format": self.output_format},
            headers={"Content-Type": "application/json", "Accept": "audio/mpeg"},
            json={
                "text": text,
                "model_id": self.model_id,
                "voice_settings": {
                    "stability": settings.get("stability", PODCAST_VOICE_SETTINGS["stability"]),
                    "similarity_boost": settings.get("similarity_boost", PODCAST_VOICE_SETTINGS["similarity_boost"]),
                    "style": settings.get("style", PODCAST_VOICE_SETTINGS["style"]),
                    "use_speaker_boost": settings.get("use_speaker_boost", PODCAST_VOICE_SETTINGS["use_speaker_boost"]),
                },
            },
        )
        return response.content

    def generate_speech(self, voice_id: str, text: str, settings: Optional[Dict[str, Any]] = None) -> bytes:
        """
        Synthesize text into MP3 bytes.

        Text longer than the per-request limit is split into ordered chunks
        that are synthesized one after another and concatenated. A failing
        chunk aborts the whole call; no partial audio is returned.

        Raises:
            ValueError: If the text is empty.
            SpeechSynthesisError: On any provider failure.
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")
        settings = settings or PODCAST_VOICE_SETTINGS

        if len(text) <= self.max_chars_per_request:
            return self._synthesize(voice_id, text, settings)

        chunks = chunk_text(text, self.max_chars_per_request)
        logger.info(f"ElevenLabs: generating {len(chunks)} chunks for long text ({len(text)} chars)")
        parts = []
        for index, chunk in enumerate(chunks):
            if index > 0 and self.chunk_delay_seconds > 0:
                time.sleep(self.chunk_delay_seconds)
            logger.debug(f"ElevenLabs: chunk {index + 1}/{len(chunks)} ({len(chunk)} chars)")
            parts.append(self._synthesize(voice_id, chunk, settings))
        return b"".join(parts)

    def generate_preview(self, text: str, voice_id: str, settings: Optional[Dict[str, Any]] = None) -> bytes:
        """Synthesize only the first ~500 characters, cut at a sentence boundary."""
        return self.generate_speech(voice_id, self.preview_text(text), settings)

    def preview_text(self, text: str) -> str:
        return truncate_at_sentence(text, self.preview_chars)

    # --- Credit management ---

    def estimate_credits(self, text: str) -> int:
        return math.ceil(len(text or "") / self.chars_per_credit)

    def estimate_duration(self, text: str) -> int:
        return estimate_duration(text, self.words_per_minute)

    def get_subscription_info(self) -> Dict[str, Any]:
        return self._request("GET", "/user/subscription").json()

    def get_remaining_credits(self) -> Dict[str, Any]:
        """
        Remaining characters in the current billing period.

        Returns:
            Dict: `remaining`, `total` and `resetDate` (aware UTC datetime).
        """
        info = self.get_subscription_info()
        total = int(info.get("character_limit", 0))
        used = int(info.get("character_count", 0))
        return {
            "remaining": total - used,
            "total": total,
            "resetDate": datetime.fromtimestamp(int(info.get("next_character_count_reset_unix", 0)), tz=timezone.utc),
        }


def podcast_score(voice: Dict[str, Any]) -> int:
    """Podcast suitability from 1 to 10, based on the voice's use case and description labels."""
    labels = voice.get("labels") or {}
    use_case = str(labels.get("use_case", "")).lower()
    description = str(labels.get("description", "")).lower()

    score = 5
    if "narration" in use_case or "podcast" in use_case:
        score += 2
    if "audiobook" in use_case:
        score += 1
    if "conversational" in description:
        score += 1
    if "warm" in description or "friendly" in description:
        score += 1
    if "animation" in use_case or "video game" in use_case:
        score -= 1
    return min(10, max(1, score))


def is_recommended_voice(name: str) -> bool:
    recommended = [
        *RECOMMENDED_SPANISH_VOICES["spain"]["male"],
        *RECOMMENDED_SPANISH_VOICES["spain"]["female"],
        *RECOMMENDED_SPANISH_VOICES["latam"]["male"],
        *RECOMMENDED_SPANISH_VOICES["latam"]["female"],
        *RECOMMENDED_SPANISH_VOICES["neutral"],
    ]
    lowered = name.lower()
    return any(candidate.lower() in lowered for candidate in recommended)


def infer_style(voice: Dict[str, Any]) -> List[str]:
    text = " ".join(str(v) for v in (voice.get("labels") or {}).values()).lower()
    styles = []
    if "narration" in text or "narrative" in text:
        styles.append("narrative")
    if "conversational" in text or "casual" in text:
        styles.append("conversational")
    if "energetic" in text or "dynamic" in text:
        styles.append("energetic")
    if "news" in text or "professional" in text:
        styles.append("professional")
    if "calm" in text or "soothing" in text:
        styles.append("calm")
    return styles or ["general"]
