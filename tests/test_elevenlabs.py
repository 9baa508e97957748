import json

import pytest
import requests

from app.core.elevenlabs import (
    ElevenLabsClient,
    SpeechErrorKind,
    SpeechSynthesisError,
    classify_error,
    infer_style,
    is_recommended_voice,
    podcast_score,
)


def make_response(status_code, body=None, headers=None, content=b""):
    response = requests.Response()
    response.status_code = status_code
    response.headers.update(headers or {})
    response._content = json.dumps(body).encode() if body is not None else content
    response.reason = "reason"
    return response


class FakeSession:
    """Stands in for requests.Session and records every call."""

    def __init__(self, responses=None, exc=None):
        self.responses = list(responses or [])
        self.exc = exc
        self.calls = []

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "headers": headers, **kwargs})
        if self.exc:
            raise self.exc
        return self.responses.pop(0)


def make_client(session, **kwargs):
    kwargs.setdefault("chunk_delay_seconds", 0)
    return ElevenLabsClient(api_key="key", session=session, **kwargs)


class TestErrorClassification:

    def test_rate_limit_carries_retry_hint(self):
        error = classify_error(make_response(429, {"detail": {"message": "slow down"}}, {"Retry-After": "12"}))
        assert error.kind == SpeechErrorKind.RATE_LIMITED
        assert error.retry_after == 12
        assert error.retryable

    def test_quota_is_terminal(self):
        error = classify_error(make_response(401, {"detail": {"status": "quota_exceeded", "message": "no credits"}}))
        assert error.kind == SpeechErrorKind.QUOTA_EXCEEDED
        assert not error.retryable

    def test_payment_required_is_quota(self):
        assert classify_error(make_response(402, {})).kind == SpeechErrorKind.QUOTA_EXCEEDED

    def test_server_errors_are_unavailable(self):
        error = classify_error(make_response(503, content=b"upstream down"))
        assert error.kind == SpeechErrorKind.UNAVAILABLE
        assert error.retryable

    def test_other_client_errors_fail(self):
        error = classify_error(make_response(422, {"detail": "bad voice"}))
        assert error.kind == SpeechErrorKind.FAILED
        assert "bad voice" in error.message


class TestClient:

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            ElevenLabsClient(api_key="")

    def test_short_text_is_one_request(self):
        session = FakeSession([make_response(200, content=b"mp3")])
        client = make_client(session)

        assert client.generate_speech("voice_1", "Hola mundo.") == b"mp3"

        call = session.calls[0]
        assert call["method"] == "POST"
        assert call["url"].endswith("/text-to-speech/voice_1")
        assert call["headers"]["xi-api-key"] == "key"
        assert call["json"]["text"] == "Hola mundo."
        assert call["json"]["voice_settings"]["stability"] == 0.5

    def test_long_text_is_chunked_in_order(self):
        text = " ".join(f"Frase {i}." for i in range(40))
        session = FakeSession([make_response(200, content=f"[{i}]".encode()) for i in range(40)])
        client = make_client(session, max_chars_per_request=50)

        audio = client.generate_speech("voice_1", text)

        sent = [call["json"]["text"] for call in session.calls]
        assert len(sent) > 1
        assert all(len(chunk) <= 50 for chunk in sent)
        assert " ".join(sent) == text
        assert audio == b"".join(f"[{i}]".encode() for i in range(len(sent)))

    def test_failing_chunk_aborts_the_call(self):
        session = FakeSession([
            make_response(200, content=b"part"),
            make_response(429, {"detail": {"message": "slow"}}, {"Retry-After": "3"}),
        ])
        client = make_client(session, max_chars_per_request=20)

        with pytest.raises(SpeechSynthesisError) as exc_info:
            client.generate_speech("voice_1", "Primera frase. Segunda frase. Tercera frase.")
        assert exc_info.value.kind == SpeechErrorKind.RATE_LIMITED
        assert exc_info.value.retry_after == 3

    def test_network_failure_is_unavailable(self):
        client = make_client(FakeSession(exc=requests.exceptions.ConnectionError("refused")))
        with pytest.raises(SpeechSynthesisError) as exc_info:
            client.generate_speech("voice_1", "Hola.")
        assert exc_info.value.kind == SpeechErrorKind.UNAVAILABLE

    def test_empty_text_is_rejected(self):
        with pytest.raises(ValueError):
            make_client(FakeSession()).generate_speech("voice_1", "   ")

    def test_preview_is_truncated(self):
        session = FakeSession([make_response(200, content=b"mp3")])
        client = make_client(session, preview_chars=30)

        client.generate_preview("Una frase corta. Otra frase que ya no entra en la vista previa.", "voice_1")

        assert session.calls[0]["json"]["text"] == "Una frase corta."

    def test_estimates(self):
        client = make_client(FakeSession())
        assert client.estimate_credits("x" * 30) == 1
        assert client.estimate_credits("x" * 31) == 2
        assert client.estimate_duration(" ".join(["palabra"] * 300)) == 120

    def test_remaining_credits(self):
        session = FakeSession([make_response(200, {
            "character_limit": 100000,
            "character_count": 40000,
            "next_character_count_reset_unix": 1767225600,
        })])
        credits = make_client(session).get_remaining_credits()
        assert credits["remaining"] == 60000
        assert credits["total"] == 100000
        assert credits["resetDate"].year == 2026

    def test_voice_settings_fall_back_to_defaults(self):
        session = FakeSession([make_response(404, {"detail": "not found"})])
        settings = make_client(session).get_voice_settings("missing")
        assert settings["similarity_boost"] == 0.75

    def test_spanish_voices_are_filtered_and_scored(self):
        session = FakeSession([make_response(200, {"voices": [
            {"voice_id": "1", "name": "Lucia", "labels": {"accent": "spanish", "use_case": "narration", "description": "warm"}},
            {"voice_id": "2", "name": "George", "labels": {"accent": "british", "use_case": "news"}},
        ]})])
        voices = make_client(session).get_spanish_voices()

        assert [v["voice_id"] for v in voices] == ["1"]
        assert voices[0]["language"] == "es"
        assert voices[0]["isRecommended"] is True
        assert voices[0]["podcastScore"] == 8
        assert voices[0]["style"] == ["narrative"]


class TestVoiceHelpers:

    def test_podcast_score_is_clamped(self):
        assert podcast_score({}) == 5
        assert podcast_score({"labels": {"use_case": "narration audiobook podcast", "description": "warm conversational"}}) == 10
        assert podcast_score({"labels": {"use_case": "animation"}}) == 4

    def test_recommended_names(self):
        assert is_recommended_voice("Dante - Spanish narrator")
        assert not is_recommended_voice("George")

    def test_infer_style_defaults_to_general(self):
        assert infer_style({"labels": {}}) == ["general"]
