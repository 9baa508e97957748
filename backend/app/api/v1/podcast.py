import logging
from typing import Optional
from urllib.parse import quote
from fastapi import APIRouter, Depends, HTTPException, status, Path, Query, Response
from sqlalchemy.orm import Session

# Configure logger for this module
logger = logging.getLogger(__name__)

# Import services, schemas, and dependencies
from app.services.podcast_service import get_podcast_service, PodcastService
from app.services.speech_service import get_speech_service, SpeechService
from app.services.storage_service import get_storage_service, StorageService
from app.schemas.podcast import (
    BatchDownloadRequest,
    EpisodeCreate,
    EpisodeDetailResponse,
    EpisodeInDB,
    EpisodeListResponse,
    EpisodeStatus,
    EpisodeUpdate,
    GenerateAudioResponse,
    PodcastConfigIn,
    PodcastConfigOut,
    PodcastConfigResponse,
    ScriptCleanRequest,
    ScriptCleanResponse,
    TrendReference,
)
from app.core.deps import get_speech_client
from app.core.elevenlabs import ElevenLabsClient
from app.core.exceptions import InternalErrorException
from app.core.podcast import clean_script_for_tts, inject_intro_outro, parse_script_sections, validate_script
from app.db.session import get_db

# Create a new router for this module.
router = APIRouter()


def _attachment_headers(filename: str) -> dict:
    return {"Content-Disposition": f"attachment; filename=\"{filename}\"; filename*=UTF-8''{quote(filename)}"}


@router.get(
    "/",
    response_model=EpisodeListResponse,
    summary="List podcast episodes",
    description="Returns a page of episodes (newest episode number first) with pagination data and per-status counts."
)
def read_episodes(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[EpisodeStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    podcast_service: PodcastService = Depends(get_podcast_service)
):
    logger.debug(f"API: Listing episodes page={page} limit={limit} status={status_filter} search={search}")
    return podcast_service.list_episodes(db=db, page=page, limit=limit, status=status_filter, search=search)

@router.post(
    "/",
    response_model=EpisodeInDB,
    status_code=status.HTTP_201_CREATED,
    summary="Create an episode",
    description="Creates a DRAFT episode from a script. The episode number is assigned automatically unless given."
)
def create_episode(
    *,
    db: Session = Depends(get_db),
    episode_in: EpisodeCreate,
    podcast_service: PodcastService = Depends(get_podcast_service)
):
    """
    Create a podcast episode.

    Args:
        db (Session): Database session dependency.
        episode_in (EpisodeCreate): Title, script and optional number/voice.
        podcast_service (PodcastService): Dependency for podcast operations.

    Returns:
        EpisodeInDB: The newly created episode.

    Raises:
        HTTPException: 400 when title/script are missing, 409 when the number is taken.
    """
    logger.info(f"API: Received request to create episode '{episode_in.title}'")
    try:
        return podcast_service.create_episode(db=db, episode_in=episode_in)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"API: An unexpected error occurred while creating an episode: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while creating the episode", details={"errorType": type(e).__name__})

@router.get(
    "/config",
    response_model=PodcastConfigResponse,
    summary="Get podcast configuration",
    description="Returns the stored show configuration, or the built-in defaults with `isDefault` set."
)
def read_config(
    db: Session = Depends(get_db),
    podcast_service: PodcastService = Depends(get_podcast_service)
):
    config, is_default = podcast_service.get_config(db=db)
    return PodcastConfigResponse(config=PodcastConfigOut.model_validate(config), isDefault=is_default)

@router.post(
    "/config",
    response_model=PodcastConfigResponse,
    summary="Save podcast configuration",
    description="Creates or updates the show configuration. Omitted fields keep their current value."
)
def save_config(
    *,
    db: Session = Depends(get_db),
    config_in: PodcastConfigIn,
    podcast_service: PodcastService = Depends(get_podcast_service)
):
    logger.info("API: Saving podcast configuration")
    try:
        config, created = podcast_service.save_config(db=db, config_in=config_in)
        return PodcastConfigResponse(config=PodcastConfigOut.model_validate(config), isDefault=False, created=created)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"API: An unexpected error occurred while saving the podcast config: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while saving the config", details={"errorType": type(e).__name__})

@router.post(
    "/script/clean",
    response_model=ScriptCleanResponse,
    summary="Prepare a script for synthesis",
    description="Cleans a script as it would be sent to the speech provider and reports sections, validation warnings and estimated cost."
)
def clean_script(
    *,
    db: Session = Depends(get_db),
    script_in: ScriptCleanRequest,
    podcast_service: PodcastService = Depends(get_podcast_service),
    speech_service: SpeechService = Depends(get_speech_service)
):
    script = script_in.script
    if script_in.includeIntroOutro:
        config, _ = podcast_service.get_config(db=db)
        config = PodcastConfigOut.model_validate(config)
        script = inject_intro_outro(script, config.introScript, config.outroScript)

    clean_text = clean_script_for_tts(script)
    estimate = speech_service.estimate(clean_text, clean=False)
    return ScriptCleanResponse(
        cleanScript=clean_text,
        characterCount=estimate["characters"],
        estimatedCredits=estimate["estimatedCredits"],
        estimatedDuration=estimate["estimatedDuration"],
        durationFormatted=estimate["durationFormatted"],
        sections=parse_script_sections(script),
        validation=validate_script(script),
    )

@router.post(
    "/batch-download",
    summary="Download several episodes as a ZIP",
    description="Returns a ZIP with the tagged MP3 of every requested episode that has audio, plus an optional metadata.csv for platform uploads.",
    response_class=Response
)
def batch_download(
    *,
    db: Session = Depends(get_db),
    batch_in: BatchDownloadRequest,
    podcast_service: PodcastService = Depends(get_podcast_service),
    storage_service: StorageService = Depends(get_storage_service)
):
    logger.info(f"API: Batch download requested for {len(batch_in.episodeIds)} episodes")
    try:
        archive = podcast_service.batch_download(
            db=db,
            storage_service=storage_service,
            episode_ids=batch_in.episodeIds,
            include_metadata_csv=batch_in.includeMetadataCsv
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"API: An unexpected error occurred during batch download: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while building the archive", details={"errorType": type(e).__name__})
    return Response(
        content=archive,
        media_type="application/zip",
        headers=_attachment_headers("podcast-episodes.zip")
    )

@router.get(
    "/{episode_id}",
    response_model=EpisodeDetailResponse,
    summary="Retrieve an episode",
    description="Returns the episode together with the trends it covers."
)
def read_episode(
    db: Session = Depends(get_db),
    episode_id: str = Path(..., description="The ID of the episode to retrieve."),
    podcast_service: PodcastService = Depends(get_podcast_service)
):
    db_episode, trends = podcast_service.get_episode(db=db, episode_id=episode_id)
    return EpisodeDetailResponse(
        episode=EpisodeInDB.model_validate(db_episode, from_attributes=True),
        trends=[TrendReference.model_validate(trend, from_attributes=True) for trend in trends]
    )

@router.patch(
    "/{episode_id}",
    response_model=EpisodeInDB,
    summary="Update an episode",
    description="Updates editable fields. The only status change accepted is READY -> PUBLISHED."
)
def update_episode(
    *,
    db: Session = Depends(get_db),
    episode_id: str = Path(..., description="The ID of the episode to update."),
    episode_in: EpisodeUpdate,
    podcast_service: PodcastService = Depends(get_podcast_service)
):
    logger.info(f"API: Received request to update episode {episode_id}")
    return podcast_service.update_episode(db=db, episode_id=episode_id, episode_in=episode_in)

@router.delete(
    "/{episode_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an episode",
    description="Deletes the episode and its audio file."
)
def delete_episode(
    db: Session = Depends(get_db),
    episode_id: str = Path(..., description="The ID of the episode to delete."),
    podcast_service: PodcastService = Depends(get_podcast_service),
    storage_service: StorageService = Depends(get_storage_service)
):
    logger.info(f"API: Received request to delete episode {episode_id}")
    try:
        podcast_service.delete_episode(db=db, storage_service=storage_service, episode_id=episode_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"API: An unexpected error occurred while deleting episode {episode_id}: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while deleting the episode", details={"errorType": type(e).__name__})
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post(
    "/{episode_id}/generate",
    response_model=GenerateAudioResponse,
    summary="Generate episode audio",
    description="Synthesizes the episode script with the speech provider. The generation process is synchronous. Answers 409 while another generation of the same episode is running."
)
def generate_audio(
    db: Session = Depends(get_db),
    episode_id: str = Path(..., description="The ID of the episode to generate."),
    podcast_service: PodcastService = Depends(get_podcast_service),
    storage_service: StorageService = Depends(get_storage_service),
    speech_client: ElevenLabsClient = Depends(get_speech_client)
):
    """
    Synchronously generate the audio of an episode.

    Raises:
        HTTPException: 404 unknown episode, 400 empty script, 409 already
            generating or published, 429/402/502 provider failures, 500 otherwise.
    """
    logger.info(f"API: Received request to generate audio for episode {episode_id}")
    try:
        db_episode = podcast_service.generate_audio(
            db=db,
            storage_service=storage_service,
            speech_client=speech_client,
            episode_id=episode_id
        )
        logger.info(f"API: Successfully generated audio for episode {episode_id}.")
        return GenerateAudioResponse(episode=EpisodeInDB.model_validate(db_episode, from_attributes=True))
    except HTTPException as e:
        logger.error(f"API: HTTP Exception during audio generation for {episode_id}: {e.detail}")
        raise
    except Exception as e:
        logger.error(f"API: An unexpected error occurred during audio generation for {episode_id}: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while generating the audio", details={"errorType": type(e).__name__})

@router.get(
    "/{episode_id}/download",
    summary="Download episode audio",
    description="Returns the episode MP3 with ID3 tags as an attachment named after the episode number and title.",
    response_class=Response
)
def download_episode(
    db: Session = Depends(get_db),
    episode_id: str = Path(..., description="The ID of the episode to download."),
    podcast_service: PodcastService = Depends(get_podcast_service),
    storage_service: StorageService = Depends(get_storage_service)
):
    logger.info(f"API: Received request to download episode {episode_id}")
    try:
        db_episode, audio, filename = podcast_service.download_episode(
            db=db,
            storage_service=storage_service,
            episode_id=episode_id
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"API: An unexpected error occurred while downloading episode {episode_id}: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while preparing the download", details={"errorType": type(e).__name__})

    headers = _attachment_headers(filename)
    headers["X-Episode-Number"] = str(db_episode.episodeNumber)
    headers["X-Episode-Title"] = quote(db_episode.title)
    return Response(content=audio, media_type="audio/mpeg", headers=headers)
