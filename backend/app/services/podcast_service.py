import csv
import io
import uuid
import zipfile
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.audio_metadata import (
    add_id3_metadata,
    build_podcast_metadata,
    episode_filename,
    extract_timestamps,
    generate_spotify_description,
    measure_duration,
)
from app.core.elevenlabs import ElevenLabsClient, SpeechSynthesisError, PODCAST_VOICE_SETTINGS
from app.core.exceptions import ConflictException, InvalidInputException, NotFoundException
from app.core.podcast import clean_script_for_tts
from app.models.learning import utcnow
from app.models.podcast import PodcastEpisode, PodcastConfig
from app.models.trend import Trend
from app.schemas.podcast import EpisodeStatus, EpisodeCreate, EpisodeUpdate, PodcastConfigIn
from app.services.speech_service import to_api_exception
from app.services.storage_service import StorageService

# Configure logger for this module
logger = logging.getLogger(__name__)

# Statuses from which a generate request may start.
GENERATABLE_STATUSES = (EpisodeStatus.DRAFT.value, EpisodeStatus.READY.value, EpisodeStatus.FAILED.value)

# Fields an operator may not change while audio is being produced from them.
GENERATION_INPUT_FIELDS = ("script", "voiceId", "voiceSettings")

AUDIO_FIELDS_CLEARED = {
    PodcastEpisode.audioUrl: None,
    PodcastEpisode.audioDuration: None,
    PodcastEpisode.audioSize: None,
    PodcastEpisode.creditsUsed: None,
}

class PodcastService:
    """
    A service class for the podcast episode lifecycle.

    Episodes move DRAFT -> GENERATING -> READY | FAILED, and READY -> PUBLISHED
    by hand. Audio is synthesized synchronously inside the generate request;
    the GENERATING status is claimed with a conditional UPDATE so that two
    concurrent generate requests can never both spend credits on one episode.
    """

    # --- Lookups ---

    def _get_episode(self, db: Session, episode_id: str) -> PodcastEpisode:
        db_episode = db.query(PodcastEpisode).filter(PodcastEpisode.id == episode_id).first()
        if not db_episode:
            logger.debug(f"PodcastService: Episode {episode_id} not found.")
            raise NotFoundException("Episode not found", code="EPISODE_NOT_FOUND")
        return db_episode

    def _get_config_row(self, db: Session) -> Optional[PodcastConfig]:
        return db.query(PodcastConfig).order_by(PodcastConfig.createdAt).first()

    def _podcast_name(self, db: Session) -> str:
        config = self._get_config_row(db)
        return config.podcastName if config else settings.DEFAULT_PODCAST_NAME

    # --- Episode CRUD ---

    def create_episode(self, db: Session, episode_in: EpisodeCreate) -> PodcastEpisode:
        """
        Creates a DRAFT episode.

        Without an explicit number the episode gets `max(episodeNumber) + 1`.
        The number column is unique, so when a concurrent creation takes the
        same number the insert fails and is retried with a fresh maximum.

        Args:
            db (Session): The SQLAlchemy database session.
            episode_in (EpisodeCreate): Title, script and optional voice / number.

        Returns:
            PodcastEpisode: The newly created episode.

        Raises:
            InvalidInputException: If title or script are missing.
            ConflictException: If the explicit number is taken, or no free
                number could be claimed within the retry budget.
        """
        title = (episode_in.title or "").strip()
        script = episode_in.script or ""
        if not title or not script.strip():
            raise InvalidInputException("title and script are required")

        config = self._get_config_row(db)
        voice_id = episode_in.voiceId or (config.defaultVoiceId if config else None) or settings.DEFAULT_VOICE_ID
        voice_settings = episode_in.voiceSettings or (config.defaultVoiceSettings if config else None) or dict(PODCAST_VOICE_SETTINGS)

        def build(number: int) -> PodcastEpisode:
            now = utcnow()
            return PodcastEpisode(
                id=f"episode_{uuid.uuid4().hex}",
                episodeNumber=number,
                title=title,
                description=episode_in.description,
                script=script,
                voiceId=voice_id,
                voiceSettings=voice_settings,
                status=EpisodeStatus.DRAFT.value,
                trendIds=list(episode_in.trendIds),
                publishedPlatforms=[],
                createdAt=now,
                updatedAt=now
            )

        if episode_in.episodeNumber is not None:
            db_episode = build(episode_in.episodeNumber)
            db.add(db_episode)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning(f"PodcastService: Episode number {episode_in.episodeNumber} already taken.")
                raise ConflictException(
                    f"Episode number {episode_in.episodeNumber} already exists",
                    code="EPISODE_NUMBER_TAKEN"
                )
            db.refresh(db_episode)
            logger.info(f"PodcastService: Created episode {db_episode.id} (#{db_episode.episodeNumber})")
            return db_episode

        for attempt in range(1, settings.EPISODE_NUMBER_MAX_RETRIES + 1):
            last_number = db.query(func.max(PodcastEpisode.episodeNumber)).scalar() or 0
            db_episode = build(last_number + 1)
            db.add(db_episode)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning(f"PodcastService: Episode number {last_number + 1} lost to a concurrent insert (attempt {attempt}).")
                continue
            db.refresh(db_episode)
            logger.info(f"PodcastService: Created episode {db_episode.id} (#{db_episode.episodeNumber})")
            return db_episode

        raise ConflictException("Could not assign an episode number, try again", code="EPISODE_NUMBER_CONTENTION")

    def list_episodes(
        self,
        db: Session,
        page: int = 1,
        limit: int = 20,
        status: Optional[EpisodeStatus] = None,
        search: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        One page of episodes, newest number first, plus per-status counts.

        Returns:
            Dict: `episodes`, `pagination` and `stats`.
        """
        query = db.query(PodcastEpisode)
        if status:
            query = query.filter(PodcastEpisode.status == EpisodeStatus(status).value)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(PodcastEpisode.title.ilike(pattern), PodcastEpisode.description.ilike(pattern)))

        total = query.count()
        episodes = query.order_by(PodcastEpisode.episodeNumber.desc()).offset((page - 1) * limit).limit(limit).all()

        counts = dict(db.query(PodcastEpisode.status, func.count(PodcastEpisode.id)).group_by(PodcastEpisode.status).all())
        logger.debug(f"PodcastService: Listed {len(episodes)} of {total} episodes (page {page}).")
        return {
            "episodes": episodes,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": (total + limit - 1) // limit,
            },
            "stats": {
                "total": sum(counts.values()),
                "drafts": counts.get(EpisodeStatus.DRAFT.value, 0),
                "ready": counts.get(EpisodeStatus.READY.value, 0),
                "published": counts.get(EpisodeStatus.PUBLISHED.value, 0),
            },
        }

    def get_episode(self, db: Session, episode_id: str) -> Tuple[PodcastEpisode, List[Trend]]:
        """The episode and the trends it covers."""
        db_episode = self._get_episode(db, episode_id)
        trends: List[Trend] = []
        if db_episode.trendIds:
            trends = db.query(Trend).filter(Trend.id.in_(db_episode.trendIds)).all()
        return db_episode, trends

    def update_episode(self, db: Session, episode_id: str, episode_in: EpisodeUpdate) -> PodcastEpisode:
        """
        Updates editable fields and performs the manual publish transition.

        The only status change accepted is READY -> PUBLISHED; `publishedAt` is
        written on the first entry into PUBLISHED and never again. Asking for
        the current status is a no-op.

        Raises:
            NotFoundException: If the episode doesn't exist.
            InvalidInputException: If the title is blanked.
            ConflictException: For any other status change, or when the
                script or voice are edited while audio is being generated.
        """
        db_episode = self._get_episode(db, episode_id)
        update_data = episode_in.model_dump(exclude_unset=True, exclude_none=True)
        new_status = update_data.pop("status", None)

        if "title" in update_data and not (update_data["title"] or "").strip():
            raise InvalidInputException("Title cannot be empty")
        if "script" in update_data and not clean_script_for_tts(update_data["script"]).strip():
            raise InvalidInputException("Script cannot be empty", code="EMPTY_SCRIPT")

        if db_episode.status == EpisodeStatus.GENERATING.value and any(
            field in update_data for field in GENERATION_INPUT_FIELDS
        ):
            raise ConflictException("Episode audio is being generated", code="GENERATION_IN_PROGRESS")

        if new_status is not None:
            new_status = EpisodeStatus(new_status).value
            if new_status != db_episode.status:
                if not (new_status == EpisodeStatus.PUBLISHED.value and db_episode.status == EpisodeStatus.READY.value):
                    raise ConflictException(
                        f"Cannot change status from {db_episode.status} to {new_status}",
                        code="INVALID_STATUS_TRANSITION"
                    )
                db_episode.status = new_status
                if db_episode.publishedAt is None:
                    db_episode.publishedAt = utcnow()
                logger.info(f"PodcastService: Episode {episode_id} published.")

        for key, value in update_data.items():
            setattr(db_episode, key, value)
        db_episode.updatedAt = utcnow()

        db.commit()
        db.refresh(db_episode)
        return db_episode

    def delete_episode(self, db: Session, storage_service: StorageService, episode_id: str) -> None:
        """
        Deletes an episode and its audio file. A file that is already gone is ignored.
        """
        db_episode = self._get_episode(db, episode_id)
        storage_service.delete_file(storage_service.relative_path_from_url(db_episode.audioUrl))
        db.delete(db_episode)
        db.commit()
        logger.info(f"PodcastService: Deleted episode {episode_id}")

    # --- Generation ---

    def _claim_for_generation(self, db: Session, episode_id: str) -> bool:
        """
        Atomically moves the episode to GENERATING and clears its audio fields.
        Returns False when the episode is not in a generatable status.
        """
        claimed = db.query(PodcastEpisode).filter(
            PodcastEpisode.id == episode_id,
            PodcastEpisode.status.in_(GENERATABLE_STATUSES)
        ).update(
            {PodcastEpisode.status: EpisodeStatus.GENERATING.value, PodcastEpisode.updatedAt: utcnow(), **AUDIO_FIELDS_CLEARED},
            synchronize_session=False
        )
        db.commit()
        return claimed == 1

    def _mark_failed(self, db: Session, episode_id: str) -> None:
        db.query(PodcastEpisode).filter(
            PodcastEpisode.id == episode_id,
            PodcastEpisode.status == EpisodeStatus.GENERATING.value
        ).update(
            {PodcastEpisode.status: EpisodeStatus.FAILED.value, PodcastEpisode.updatedAt: utcnow(), **AUDIO_FIELDS_CLEARED},
            synchronize_session=False
        )
        db.commit()

    def generate_audio(
        self,
        db: Session,
        storage_service: StorageService,
        speech_client: ElevenLabsClient,
        episode_id: str
    ) -> PodcastEpisode:
        """
        Synthesizes the episode script and stores the audio.

        Args:
            db (Session): The SQLAlchemy database session.
            storage_service (StorageService): Where the MP3 is written.
            speech_client (ElevenLabsClient): The speech provider client.
            episode_id (str): The episode to generate.

        Returns:
            PodcastEpisode: The episode, now READY with its audio fields set.

        Raises:
            NotFoundException: If the episode doesn't exist.
            InvalidInputException: If the script has nothing to say.
            ConflictException: If the episode is GENERATING or PUBLISHED.
            RateLimitedException, QuotaExceededException, UpstreamUnavailableException:
                When the provider fails. The episode is left FAILED with its
                script untouched and no audio reference.
        """
        db_episode = self._get_episode(db, episode_id)
        clean_text = clean_script_for_tts(db_episode.script or "")
        if not clean_text.strip():
            raise InvalidInputException("Episode script is empty", code="EMPTY_SCRIPT")

        previous_audio = storage_service.relative_path_from_url(db_episode.audioUrl)
        if not self._claim_for_generation(db, episode_id):
            # The row may have been deleted since it was read.
            current_status = db.query(PodcastEpisode.status).filter(PodcastEpisode.id == episode_id).scalar()
            if current_status is None:
                raise NotFoundException("Episode not found", code="EPISODE_NOT_FOUND")
            logger.warning(f"PodcastService: Generate rejected for episode {episode_id} in status {current_status}.")
            raise ConflictException(
                f"Episode cannot be generated while {current_status}",
                code="GENERATION_IN_PROGRESS" if current_status == EpisodeStatus.GENERATING.value else "INVALID_STATUS_TRANSITION",
                details={"status": current_status}
            )

        # The previous audio is no longer referenced once the claim cleared the audio fields.
        storage_service.delete_file(previous_audio)

        logger.info(f"PodcastService: Generating audio for episode {episode_id} ({len(clean_text)} chars, voice {db_episode.voiceId})")
        written_path = None
        try:
            credits = speech_client.estimate_credits(clean_text)
            duration = speech_client.estimate_duration(clean_text)
            audio = speech_client.generate_speech(
                db_episode.voiceId,
                clean_text,
                db_episode.voiceSettings or PODCAST_VOICE_SETTINGS
            )
            if settings.MEASURE_AUDIO_DURATION:
                duration = measure_duration(audio)

            written_path = storage_service.save_podcast_file(
                audio,
                storage_service.new_podcast_filename(db_episode.episodeNumber)
            )

            db_episode.status = EpisodeStatus.READY.value
            db_episode.audioUrl = storage_service.get_file_url(written_path)
            db_episode.audioDuration = duration
            db_episode.audioSize = len(audio)
            db_episode.creditsUsed = credits
            db_episode.updatedAt = utcnow()
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"PodcastService: Audio generation failed for episode {episode_id}: {e}", exc_info=True)
            if written_path:
                storage_service.delete_file(written_path)
            self._mark_failed(db, episode_id)
            if isinstance(e, SpeechSynthesisError):
                raise to_api_exception(e)
            raise

        db.refresh(db_episode)
        logger.info(f"PodcastService: Episode {episode_id} READY ({db_episode.audioSize} bytes, ~{db_episode.audioDuration}s)")
        return db_episode

    # --- Downloads ---

    def _tagged_audio(self, storage_service: StorageService, db_episode: PodcastEpisode, podcast_name: str) -> bytes:
        if db_episode.status not in (EpisodeStatus.READY.value, EpisodeStatus.PUBLISHED.value) or not db_episode.audioUrl:
            raise InvalidInputException("Episode has no generated audio", code="AUDIO_NOT_READY")
        try:
            audio = storage_service.read_file(storage_service.relative_path_from_url(db_episode.audioUrl))
        except FileNotFoundError:
            logger.error(f"PodcastService: Audio file missing for episode {db_episode.id}: {db_episode.audioUrl}")
            raise NotFoundException("Audio file not found", code="AUDIO_FILE_NOT_FOUND")

        tags = build_podcast_metadata(
            title=db_episode.title,
            episode_number=db_episode.episodeNumber,
            created_at=db_episode.createdAt,
            podcast_name=podcast_name,
            description=db_episode.description,
            audio_duration=db_episode.audioDuration,
        )
        return add_id3_metadata(audio, tags)

    def download_episode(self, db: Session, storage_service: StorageService, episode_id: str) -> Tuple[PodcastEpisode, bytes, str]:
        """
        The episode audio with ID3 tags, ready to be sent as an attachment.

        Returns:
            Tuple[PodcastEpisode, bytes, str]: Episode, tagged MP3 bytes and the
            download filename (`EP007-como-monetizar-ia.mp3`).
        """
        db_episode = self._get_episode(db, episode_id)
        audio = self._tagged_audio(storage_service, db_episode, self._podcast_name(db))
        filename = episode_filename(db_episode.episodeNumber, db_episode.title)
        logger.info(f"PodcastService: Serving {filename} ({len(audio)} bytes)")
        return db_episode, audio, filename

    def batch_download(
        self,
        db: Session,
        storage_service: StorageService,
        episode_ids: List[str],
        include_metadata_csv: bool = True
    ) -> bytes:
        """
        ZIP archive with the tagged audio of several episodes.

        Episodes without audio are skipped. With `include_metadata_csv` the
        archive also holds `metadata.csv`: one row per file with title,
        duration, upload description and chapter marks.

        Raises:
            InvalidInputException: If no ids are given or none has audio.
        """
        if not episode_ids:
            raise InvalidInputException("episodeIds is required")

        episodes = db.query(PodcastEpisode).filter(
            PodcastEpisode.id.in_(episode_ids),
            PodcastEpisode.status.in_((EpisodeStatus.READY.value, EpisodeStatus.PUBLISHED.value)),
            PodcastEpisode.audioUrl.isnot(None)
        ).order_by(PodcastEpisode.episodeNumber).all()
        if not episodes:
            raise InvalidInputException("None of the episodes has generated audio", code="AUDIO_NOT_READY")

        podcast_name = self._podcast_name(db)
        buffer = io.BytesIO()
        rows = []
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for db_episode in episodes:
                try:
                    audio = self._tagged_audio(storage_service, db_episode, podcast_name)
                except NotFoundException:
                    logger.warning(f"PodcastService: Skipping episode {db_episode.id} in batch, audio file missing.")
                    continue
                filename = episode_filename(db_episode.episodeNumber, db_episode.title)
                archive.writestr(filename, audio)

                trend_titles = []
                if db_episode.trendIds:
                    trend_titles = [t.title for t in db.query(Trend).filter(Trend.id.in_(db_episode.trendIds)).all()]
                chapters = extract_timestamps(db_episode.script, db_episode.audioDuration or 0)
                rows.append({
                    "filename": filename,
                    "episode": db_episode.episodeNumber,
                    "title": db_episode.title,
                    "duration": db_episode.audioDuration or 0,
                    "description": generate_spotify_description(db_episode.description, trend_titles),
                    "chapters": " | ".join(f"{c['timeFormatted']} {c['label']}" for c in chapters),
                })

            if include_metadata_csv and rows:
                csv_buffer = io.StringIO()
                writer = csv.DictWriter(csv_buffer, fieldnames=list(rows[0].keys()))
                writer.writeheader()
                writer.writerows(rows)
                archive.writestr("metadata.csv", csv_buffer.getvalue())

        logger.info(f"PodcastService: Built batch archive with {len(rows)} episodes.")
        return buffer.getvalue()

    # --- Podcast configuration ---

    def default_config(self) -> Dict[str, Any]:
        return {
            "id": None,
            "podcastName": settings.DEFAULT_PODCAST_NAME,
            "podcastDescription": settings.DEFAULT_PODCAST_DESCRIPTION,
            "introScript": None,
            "outroScript": None,
            "defaultVoiceId": settings.DEFAULT_VOICE_ID,
            "defaultVoiceSettings": dict(PODCAST_VOICE_SETTINGS),
            "characterPhrases": [],
            "targetDuration": settings.DEFAULT_TARGET_DURATION,
            "publishFrequency": "weekly",
            "spotifyShowId": None,
            "ivooxShowId": None,
        }

    def get_config(self, db: Session) -> Tuple[Any, bool]:
        """
        The stored podcast configuration, or the built-in defaults.

        Returns:
            Tuple: The config row (or defaults dict) and whether defaults were used.
        """
        config = self._get_config_row(db)
        if config:
            return config, False
        return self.default_config(), True

    def save_config(self, db: Session, config_in: PodcastConfigIn) -> Tuple[PodcastConfig, bool]:
        """
        Updates the first configuration row, creating it from the defaults when absent.

        Returns:
            Tuple[PodcastConfig, bool]: The row and whether it was created.
        """
        update_data = config_in.model_dump(exclude_unset=True, exclude_none=True)
        config = self._get_config_row(db)
        created = config is None
        if created:
            data = {**self.default_config(), **update_data}
            data["id"] = f"podcastconfig_{uuid.uuid4().hex}"
            config = PodcastConfig(**data, createdAt=utcnow(), updatedAt=utcnow())
            db.add(config)
        else:
            for key, value in update_data.items():
                setattr(config, key, value)
            config.updatedAt = utcnow()

        db.commit()
        db.refresh(config)
        logger.info(f"PodcastService: Podcast config {'created' if created else 'updated'} ({config.id})")
        return config, created


# Create a single instance of the service to be used as a dependency
podcast_service = PodcastService()

def get_podcast_service() -> PodcastService:
    """
    Dependency function to provide the podcast service instance.
    """
    return podcast_service
