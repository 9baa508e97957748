import io
from datetime import datetime, timezone

from mutagen.id3 import ID3

from app.core.audio_metadata import (
    add_id3_metadata,
    build_podcast_metadata,
    episode_filename,
    extract_timestamps,
    format_file_size,
    generate_spotify_description,
    slugify_title,
)
from conftest import FAKE_AUDIO


def _tags(**overrides):
    values = dict(
        title="¿Cómo Monetizar IA?",
        episode_number=7,
        created_at=datetime(2025, 3, 14, tzinfo=timezone.utc),
        podcast_name="IA Sin Filtros",
        description="Ideas para ganar dinero con imágenes generadas.",
        audio_duration=427,
    )
    values.update(overrides)
    return build_podcast_metadata(**values)


class TestFilenames:

    def test_slug_is_lowercase_ascii_and_hyphenated(self):
        assert slugify_title("¿Cómo Monetizar IA?") == "como-monetizar-ia"
        assert slugify_title("  LoRA -- Flux & SDXL  ") == "lora-flux-sdxl"

    def test_slug_is_length_capped(self):
        slug = slugify_title("palabra " * 30)
        assert len(slug) <= 50
        assert not slug.endswith("-")

    def test_episode_filename_has_padded_number(self):
        assert episode_filename(7, "¿Cómo Monetizar IA?") == "EP007-como-monetizar-ia.mp3"
        assert episode_filename(123, "!!!") == "EP123-episodio.mp3"


class TestId3Tags:

    def test_build_metadata(self):
        tags = _tags()
        assert tags.artist == tags.album == "IA Sin Filtros"
        assert tags.year == "2025"
        assert tags.track_number == "7"
        assert tags.duration_ms == 427000

    def test_tags_are_readable_and_audio_is_preserved(self):
        tagged = add_id3_metadata(FAKE_AUDIO, _tags())

        assert tagged.startswith(b"ID3")
        assert tagged.endswith(FAKE_AUDIO)

        id3 = ID3(io.BytesIO(tagged))
        assert str(id3["TIT2"]) == "¿Cómo Monetizar IA?"
        assert str(id3["TPE1"]) == "IA Sin Filtros"
        assert str(id3["TALB"]) == "IA Sin Filtros"
        assert str(id3["TRCK"]) == "7"
        assert str(id3["TCON"]) == "Podcast"
        assert id3.version[:2] == (2, 3)
        comments = id3.getall("COMM")
        assert comments and comments[0].text[0].startswith("Ideas para ganar dinero")

    def test_existing_tag_is_replaced(self):
        once = add_id3_metadata(FAKE_AUDIO, _tags(title="Primera version"))
        twice = add_id3_metadata(once, _tags(title="Segunda version"))

        id3 = ID3(io.BytesIO(twice))
        assert str(id3["TIT2"]) == "Segunda version"
        assert twice.endswith(FAKE_AUDIO)
        assert twice.count(b"ID3") == 1

    def test_optional_frames_are_skipped(self):
        tagged = add_id3_metadata(FAKE_AUDIO, _tags(description=None, audio_duration=None))
        id3 = ID3(io.BytesIO(tagged))
        assert not id3.getall("COMM")
        assert not id3.getall("TLEN")


class TestUploadMetadata:

    def test_spotify_description_lists_trends(self):
        description = generate_spotify_description("Resumen.", ["Flux 2", "Nuevo LoRA"])
        assert description.startswith("Resumen.")
        assert "1. Flux 2" in description
        assert "2. Nuevo LoRA" in description

    def test_spotify_description_is_capped(self):
        assert len(generate_spotify_description("x" * 5000)) == 4000

    def test_timestamps_follow_section_positions(self, long_script):
        marks = extract_timestamps(long_script, 300)
        assert [m["label"] for m in marks] == ["Introducción", "Contenido Principal", "Cierre"]
        assert marks[0]["timeMs"] == 0
        assert marks[0]["timeMs"] < marks[1]["timeMs"] < marks[2]["timeMs"] <= 300000

    def test_format_file_size(self):
        assert format_file_size(512) == "512 B"
        assert format_file_size(2048) == "2.0 KB"
        assert format_file_size(3 * 1024 * 1024) == "3.0 MB"
