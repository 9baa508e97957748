import base64

from app.core.deps import get_speech_client
from app.core.elevenlabs import SpeechErrorKind, SpeechSynthesisError
from app.main import app
from conftest import FAKE_AUDIO

SCREENSHOT_URL = "/api/v1/extension/screenshot"
SPEECH_URL = "/api/v1/speech"


class TestScreenshotInbox:

    def test_each_screenshot_is_delivered_once(self, client):
        for index in range(2):
            response = client.post(SCREENSHOT_URL, json={
                "image": "data:image/png;base64,iVBORw0KGgo=",
                "url": f"https://civitai.com/models/{index}",
                "title": f"Modelo {index}",
            })
            assert response.status_code == 201
            assert response.json()["id"]

        first_poll = client.get(SCREENSHOT_URL).json()["screenshots"]
        assert [s["title"] for s in first_poll] == ["Modelo 0", "Modelo 1"]

        assert client.get(SCREENSHOT_URL).json()["screenshots"] == []

    def test_screenshot_without_image_is_invalid(self, client):
        response = client.post(SCREENSHOT_URL, json={"url": "https://civitai.com"})
        assert response.status_code == 400


class TestSpeech:

    def test_estimate_does_not_call_the_provider(self, client, speech_client):
        response = client.post(f"{SPEECH_URL}/estimate", json={"text": "[INTRO]\n" + "palabra " * 150})

        body = response.json()
        assert response.status_code == 200
        assert body["characters"] == len(("palabra " * 150).strip())
        assert body["estimatedDuration"] == 60
        assert body["durationFormatted"] == "1:00"
        assert body["chunks"] == 1
        assert speech_client.synthesized == []

    def test_credits(self, client):
        body = client.get(f"{SPEECH_URL}/credits").json()

        assert body["total"] == 100000
        assert body["remaining"] == 75000
        assert body["used"] == 25000
        assert body["usagePercent"] == 25

    def test_credits_quota_error(self, client, speech_client):
        speech_client.error = SpeechSynthesisError(SpeechErrorKind.QUOTA_EXCEEDED, "no credits", 401)
        assert client.get(f"{SPEECH_URL}/credits").status_code == 402

    def test_voices_are_spanish_and_recommended_first(self, client, speech_client):
        speech_client.voices = [
            {"voice_id": "1", "name": "Pablo", "labels": {"accent": "spanish"}},
            {"voice_id": "2", "name": "George", "labels": {"accent": "british"}},
            {"voice_id": "3", "name": "Lucia", "labels": {"accent": "spanish", "use_case": "narration"}},
        ]

        body = client.get(f"{SPEECH_URL}/voices").json()

        assert body["count"] == 2
        assert [v["voice_id"] for v in body["voices"]] == ["3", "1"]

    def test_preview_returns_data_url(self, client, speech_client):
        response = client.post(f"{SPEECH_URL}/preview", json={"text": "Hola, **bienvenidos**.", "voiceId": "voice_1"})

        body = response.json()
        assert response.status_code == 200
        assert body["audio"].startswith("data:audio/mpeg;base64,")
        assert base64.b64decode(body["audio"].split(",", 1)[1]) == FAKE_AUDIO
        assert speech_client.synthesized == ["Hola, BIENVENIDOS."]

    def test_preview_requires_voice(self, client):
        assert client.post(f"{SPEECH_URL}/preview", json={"text": "Hola."}).status_code == 400

    def test_missing_api_key_is_reported(self, client):
        app.dependency_overrides.pop(get_speech_client)

        response = client.get(f"{SPEECH_URL}/credits")

        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "SPEECH_NOT_CONFIGURED"


class TestCuratedVoices:

    def test_seed_is_repeatable(self, client):
        first = client.post(f"{SPEECH_URL}/voices/seed").json()
        second = client.post(f"{SPEECH_URL}/voices/seed").json()

        assert first == {"created": 6, "updated": 0}
        assert second == {"created": 0, "updated": 6}

        listed = client.get(f"{SPEECH_URL}/voices/seed").json()
        assert listed["count"] == 6
        scores = [row["podcastScore"] for row in listed["metadata"]]
        assert scores == sorted(scores, reverse=True)

    def test_curated_metadata_overrides_heuristics(self, client, speech_client):
        speech_client.voices = [
            {"voice_id": "Lumina", "name": "Voz neutra", "labels": {"accent": "latino"}},
            {"voice_id": "v2", "name": "Pablo", "labels": {"accent": "spanish", "use_case": "narration"}},
        ]
        before = client.get(f"{SPEECH_URL}/voices").json()["voices"]
        assert [v["voice_id"] for v in before] == ["v2", "Lumina"]

        client.post(f"{SPEECH_URL}/voices/seed")
        voices = client.get(f"{SPEECH_URL}/voices").json()["voices"]

        assert voices[0]["voice_id"] == "Lumina"
        assert voices[0]["isRecommended"] is True
        assert voices[0]["podcastScore"] == 9
        assert voices[0]["style"] == ["versatile", "neutral", "modern"]


class TestStandaloneGeneration:

    def test_generate_inline(self, client, speech_client):
        response = client.post(f"{SPEECH_URL}/generate", json={"text": "Hola a todos.", "voiceId": "voice_1"})

        body = response.json()
        assert response.status_code == 200
        assert base64.b64decode(body["audio"].split(",", 1)[1]) == FAKE_AUDIO
        assert body["audioSize"] == len(FAKE_AUDIO)
        assert body["fileUrl"] is None
        assert speech_client.synthesized == ["Hola a todos."]

    def test_generate_to_file(self, client, storage):
        response = client.post(
            f"{SPEECH_URL}/generate",
            json={"text": "Hola a todos.", "voiceId": "voice_1", "filename": "Mi Prueba!"},
        )

        body = response.json()
        assert body["fileUrl"].endswith("/storage/podcasts/mi_prueba_.mp3")
        assert body["audio"] is None
        assert (storage.podcasts_dir / "mi_prueba_.mp3").read_bytes() == FAKE_AUDIO

    def test_generate_requires_voice(self, client):
        assert client.post(f"{SPEECH_URL}/generate", json={"text": "Hola."}).status_code == 400

    def test_generate_rate_limited(self, client, speech_client):
        speech_client.error = SpeechSynthesisError(SpeechErrorKind.RATE_LIMITED, "slow", 429, retry_after=5)
        response = client.post(f"{SPEECH_URL}/generate", json={"text": "Hola.", "voiceId": "voice_1"})
        assert response.status_code == 429
