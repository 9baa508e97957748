import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

# Import services, schemas, and dependencies
from app.services.speech_service import get_speech_service, SpeechService
from app.services.storage_service import get_storage_service, StorageService
from app.schemas.speech import (
    SpeechCreditsResponse,
    SpeechEstimateRequest,
    SpeechEstimateResponse,
    SpeechGenerateRequest,
    SpeechGenerateResponse,
    SpeechPreviewRequest,
    SpeechPreviewResponse,
    SpeechVoicesResponse,
    VoiceMetadataInDB,
    VoiceMetadataList,
    VoiceSeedResponse,
)
from app.core.deps import get_speech_client
from app.core.elevenlabs import ElevenLabsClient
from app.core.exceptions import InternalErrorException
from app.db.session import get_db

# Configure logger for this module
logger = logging.getLogger(__name__)

# Create a new router for this module.
router = APIRouter()

@router.get(
    "/voices",
    response_model=SpeechVoicesResponse,
    summary="List Spanish voices",
    description="Returns the provider's Spanish voices with a podcast suitability score, recommended voices first."
)
def read_voices(
    db: Session = Depends(get_db),
    speech_client: ElevenLabsClient = Depends(get_speech_client),
    speech_service: SpeechService = Depends(get_speech_service)
):
    voices = speech_service.list_spanish_voices(speech_client, db)
    return SpeechVoicesResponse(voices=voices, count=len(voices))

@router.get(
    "/credits",
    response_model=SpeechCreditsResponse,
    summary="Remaining synthesis credits",
    description="Characters left in the provider's current billing period and when the counter resets."
)
def read_credits(
    speech_client: ElevenLabsClient = Depends(get_speech_client),
    speech_service: SpeechService = Depends(get_speech_service)
):
    return speech_service.get_credits(speech_client)

@router.post(
    "/preview",
    response_model=SpeechPreviewResponse,
    summary="Preview a voice",
    description="Synthesizes the first ~500 characters of a text and returns it as a base64 data URL."
)
def preview_voice(
    *,
    preview_in: SpeechPreviewRequest,
    speech_client: ElevenLabsClient = Depends(get_speech_client),
    speech_service: SpeechService = Depends(get_speech_service)
):
    logger.info(f"API: Received preview request for voice {preview_in.voiceId}")
    try:
        return speech_service.preview(
            speech_client,
            text=preview_in.text,
            voice_id=preview_in.voiceId,
            voice_settings=preview_in.settings
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"API: An unexpected error occurred while generating a preview: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while generating the preview", details={"errorType": type(e).__name__})

@router.post(
    "/estimate",
    response_model=SpeechEstimateResponse,
    summary="Estimate synthesis cost",
    description="Character count, credits, spoken duration and number of provider requests for a text. Does not call the provider."
)
def estimate(
    *,
    estimate_in: SpeechEstimateRequest,
    speech_service: SpeechService = Depends(get_speech_service)
):
    return speech_service.estimate(estimate_in.text, clean=estimate_in.clean)

@router.post(
    "/generate",
    response_model=SpeechGenerateResponse,
    summary="Synthesize a text",
    description="Synthesizes a whole text with the given voice. With `filename` the MP3 is stored under podcasts/ and its URL returned; otherwise it is returned as a base64 data URL."
)
def generate_speech(
    *,
    generate_in: SpeechGenerateRequest,
    speech_client: ElevenLabsClient = Depends(get_speech_client),
    speech_service: SpeechService = Depends(get_speech_service),
    storage_service: StorageService = Depends(get_storage_service)
):
    logger.info(f"API: Received generate request for voice {generate_in.voiceId}")
    try:
        return speech_service.generate(
            speech_client,
            storage_service,
            text=generate_in.text,
            voice_id=generate_in.voiceId,
            voice_settings=generate_in.settings,
            filename=generate_in.filename
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"API: An unexpected error occurred while generating speech: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while generating the audio", details={"errorType": type(e).__name__})

@router.post(
    "/voices/seed",
    response_model=VoiceSeedResponse,
    summary="Seed curated voice metadata",
    description="Stores the curated podcast metadata of the recommended Spanish voices. Running it again updates the stored rows."
)
def seed_voices(
    db: Session = Depends(get_db),
    speech_service: SpeechService = Depends(get_speech_service)
):
    logger.info("API: Seeding curated voice metadata")
    return speech_service.seed_voice_metadata(db)

@router.get(
    "/voices/seed",
    response_model=VoiceMetadataList,
    summary="List curated voice metadata",
    description="Returns the stored voice metadata, recommended voices first, then by podcast score."
)
def read_voice_metadata(
    db: Session = Depends(get_db),
    speech_service: SpeechService = Depends(get_speech_service)
):
    rows = speech_service.list_voice_metadata(db)
    return VoiceMetadataList(
        metadata=[VoiceMetadataInDB.model_validate(row, from_attributes=True) for row in rows],
        count=len(rows)
    )
