from types import SimpleNamespace

import pytest

from app.core.progress import compute_progress, status_for_progress
from app.core.topics import find_similar, normalize_topic, significant_tokens, topics_are_similar
from app.schemas.learning import ModuleStatus


class TestTopicMatching:

    def test_normalize_drops_punctuation_and_accented_letters(self):
        assert normalize_topic("¡Aprende ComfyUI!") == "aprende comfyui"
        assert normalize_topic("Técnicas") == "tcnicas"

    def test_significant_tokens_ignore_short_words(self):
        assert significant_tokens("LoRA de Flux con ComfyUI") == {"lora", "flux", "comfyui"}

    def test_short_topic_matches_on_one_shared_word(self):
        assert topics_are_similar("Aprende ComfyUI", "comfyui para principiantes")

    def test_long_topics_need_two_shared_words(self):
        assert not topics_are_similar(
            "entrenar modelos LoRA flux",
            "monetizar imagenes generadas flux",
        )
        assert topics_are_similar(
            "entrenar modelos LoRA flux",
            "como entrenar LoRA rapido",
        )

    def test_unrelated_topics_do_not_match(self):
        assert not topics_are_similar("React hooks", "Docker compose")

    def test_topics_without_significant_words_never_match(self):
        assert not topics_are_similar("IA y ML", "IA y ML")

    def test_find_similar_returns_first_match_in_order(self):
        candidates = [
            SimpleNamespace(id="recent", topic="ComfyUI workflows"),
            SimpleNamespace(id="older", topic="ComfyUI nodes"),
        ]
        match = find_similar("workflows de ComfyUI", candidates)
        assert match.id == "recent"

    def test_find_similar_returns_none(self):
        assert find_similar("Docker", [SimpleNamespace(topic="ComfyUI")]) is None


class TestProgress:

    @pytest.mark.parametrize(
        "completed,total,expected",
        [
            (0, 0, 0),
            (0, 3, 0),
            (1, 3, 33),
            (2, 3, 67),
            (3, 3, 100),
            (1, 8, 13),
            (1, 200, 1),
            (1, 201, 0),
        ],
    )
    def test_compute_progress_rounds_half_up(self, completed, total, expected):
        assert compute_progress(completed, total) == expected

    def test_status_follows_progress(self):
        assert status_for_progress(100) == ModuleStatus.COMPLETED
        assert status_for_progress(99) == ModuleStatus.ACTIVE
        assert status_for_progress(0) == ModuleStatus.ACTIVE
