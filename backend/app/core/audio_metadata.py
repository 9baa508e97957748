"""
Audio assembly helpers for podcast episodes.

- ID3v2.3 tagging (title, show, year, episode number, genre, description,
  length) so that podcast platforms and players show proper metadata
- filesystem-safe, human-readable download filenames
- episode descriptions and chapter marks for platform uploads
"""

import io
import logging
import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from mutagen.id3 import COMM, ID3, TALB, TCON, TDRC, TIT2, TLEN, TPE1, TRCK, Encoding

from app.core.podcast import SECTION_MARKER_RE, format_duration

logger = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 50
SPOTIFY_DESCRIPTION_LIMIT = 4000

SECTION_LABELS = {
    "INTRO": "Introducción",
    "HOOK": "Gancho",
    "CONTENIDO": "Contenido Principal",
    "CONTENT": "Contenido Principal",
    "VALOR": "Tip de la Semana",
    "VALUE": "Tip de la Semana",
    "CIERRE": "Cierre",
    "OUTRO": "Cierre",
}


@dataclass
class EpisodeTags:
    title: str
    artist: str
    album: str
    year: str
    track_number: str
    genre: str = "Podcast"
    comment: Optional[str] = None
    duration_ms: Optional[int] = None
    language: str = "spa"


def build_podcast_metadata(
    title: str,
    episode_number: int,
    created_at: datetime,
    podcast_name: str,
    description: Optional[str] = None,
    audio_duration: Optional[int] = None,
) -> EpisodeTags:
    """Tags for one episode; the show name doubles as artist and album."""
    return EpisodeTags(
        title=title,
        artist=podcast_name,
        album=podcast_name,
        year=str(created_at.year),
        track_number=str(episode_number),
        comment=description or None,
        duration_ms=audio_duration * 1000 if audio_duration else None,
    )


def add_id3_metadata(audio: bytes, tags: EpisodeTags) -> bytes:
    """
    Returns the audio with an ID3v2.3 tag in front of the MPEG frames.

    An ID3v2 tag already present at the start of the data is replaced; the
    audio frames themselves are copied untouched.

    Args:
        audio (bytes): MP3 data as produced by the speech provider.
        tags (EpisodeTags): Metadata to embed.

    Returns:
        bytes: Tagged MP3 data.
    """
    id3 = ID3()
    if tags.title:
        id3.add(TIT2(encoding=Encoding.UTF16, text=tags.title))
    if tags.artist:
        id3.add(TPE1(encoding=Encoding.UTF16, text=tags.artist))
    if tags.album:
        id3.add(TALB(encoding=Encoding.UTF16, text=tags.album))
    if tags.year:
        # Written as TYER when saved as v2.3.
        id3.add(TDRC(encoding=Encoding.UTF16, text=tags.year))
    if tags.track_number:
        id3.add(TRCK(encoding=Encoding.UTF16, text=tags.track_number))
    if tags.genre:
        id3.add(TCON(encoding=Encoding.UTF16, text=tags.genre))
    if tags.duration_ms:
        id3.add(TLEN(encoding=Encoding.UTF16, text=str(tags.duration_ms)))
    if tags.comment:
        id3.add(COMM(encoding=Encoding.UTF16, lang=tags.language[:3], desc="", text=tags.comment))

    buffer = io.BytesIO(audio)
    id3.save(buffer, v2_version=3)
    return buffer.getvalue()


def slugify_title(title: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """
    Lowercase, accent-free, hyphen-separated slug: "¿Cómo Monetizar IA?" -> "como-monetizar-ia".
    """
    decomposed = unicodedata.normalize("NFD", title or "")
    ascii_text = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()
    ascii_text = re.sub(r"[^a-z0-9\s-]", "", ascii_text)
    slug = re.sub(r"[\s-]+", "-", ascii_text).strip("-")
    return slug[:max_length].rstrip("-")


def episode_filename(episode_number: int, title: str, extension: str = "mp3") -> str:
    """EP007-como-monetizar-ia.mp3"""
    slug = slugify_title(title) or "episodio"
    return f"EP{episode_number:03d}-{slug}.{extension}"


def generate_spotify_description(description: Optional[str], trend_titles: Sequence[str] = ()) -> str:
    """Episode description for platform uploads, capped at the Spotify limit."""
    parts: List[str] = []
    if description:
        parts.append(description)
    if trend_titles:
        parts.append("\nEn este episodio hablamos de:")
        parts.extend(f"{index}. {title}" for index, title in enumerate(trend_titles, start=1))
    parts.append("\nSíguenos para más contenido de IA")
    return "\n".join(parts)[:SPOTIFY_DESCRIPTION_LIMIT]


def extract_timestamps(script: str, total_duration: int) -> List[Dict]:
    """
    Chapter marks for each [SECTION] marker, placed proportionally to its
    position in the script.
    """
    if not script:
        return []
    length = len(script)
    timestamps = []
    for match in SECTION_MARKER_RE.finditer(script):
        time_ms = int(match.start() / length * total_duration * 1000 + 0.5)
        timestamps.append({
            "label": SECTION_LABELS.get(match.group(1).upper(), match.group(1)),
            "timeMs": time_ms,
            "timeFormatted": format_duration(int(time_ms / 1000 + 0.5)),
        })
    return timestamps


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def measure_duration(audio: bytes) -> int:
    """
    Decodes the audio and returns its real length in whole seconds.

    Needs ffmpeg on the host.
    """
    from pydub import AudioSegment

    segment = AudioSegment.from_file(io.BytesIO(audio), format="mp3")
    return int(len(segment) / 1000 + 0.5)
