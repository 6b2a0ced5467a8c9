from unittest.mock import AsyncMock, Mock

import pytest

from intake_bot.schemas.telegram import TelegramAudio, TelegramChat, TelegramMessage, TelegramUser, TelegramVoice
from intake_bot.services.intake_store import PendingIntakeStore
from intake_bot.services.voice_service import VoiceIntakeService, audio_source


def voice_message(voice=None, audio=None):
    return TelegramMessage(
        message_id=100,
        date=1702000000,
        chat=TelegramChat(id=1),
        from_user=TelegramUser(id=5, first_name="Anna"),
        voice=voice,
        audio=audio,
    )


@pytest.fixture
def provider():
    service = Mock()
    service.transcribe_audio = AsyncMock(return_value="Buy milk")
    return service


class TestAudioSource:
    def test_voice_defaults_to_ogg(self):
        message = voice_message(voice=TelegramVoice(file_id="v1", file_unique_id="u", duration=2))
        assert audio_source(message) == ("v1", "audio/ogg")

    def test_audio_file_mime(self):
        audio = TelegramAudio(file_id="a1", file_unique_id="u", duration=2, mime_type="audio/mp4")
        assert audio_source(voice_message(audio=audio)) == ("a1", "audio/mp4")

    def test_no_audio(self):
        assert audio_source(voice_message()) is None


class TestVoiceIntake:
    @pytest.mark.asyncio
    async def test_transcript_is_stored_under_voice_message(self, telegram, provider):
        store = PendingIntakeStore()
        service = VoiceIntakeService(telegram, provider, store)
        message = voice_message(voice=TelegramVoice(file_id="v1", file_unique_id="u", duration=2))

        task = service.submit(message)
        transcript = await task

        assert transcript == "Buy milk"
        entry = await store.get(1, 100)
        assert entry.text == "Buy milk"
        assert entry.author_id == 5
        provider.transcribe_audio.assert_awaited_once_with(b"OggS", "audio/ogg")
        assert telegram.send_message.await_args.kwargs["reply_to_message_id"] == 100

    @pytest.mark.asyncio
    async def test_download_failure(self, telegram, provider):
        telegram.download_file = AsyncMock(return_value=None)
        store = PendingIntakeStore()
        service = VoiceIntakeService(telegram, provider, store)

        result = await service.transcribe_and_store(
            voice_message(voice=TelegramVoice(file_id="v1", file_unique_id="u", duration=2))
        )

        assert result is None
        assert len(store) == 0
        telegram.send_message.assert_awaited_once_with(1, "❌ Could not access audio file.")

    @pytest.mark.asyncio
    async def test_transcription_failure(self, telegram, provider):
        provider.transcribe_audio = AsyncMock(side_effect=Exception("Gemini API error: 500"))
        store = PendingIntakeStore()
        service = VoiceIntakeService(telegram, provider, store)

        result = await service.transcribe_and_store(
            voice_message(voice=TelegramVoice(file_id="v1", file_unique_id="u", duration=2))
        )

        assert result is None
        assert len(store) == 0
        telegram.send_message.assert_awaited_once_with(1, "❌ Transcription failed.")

    def test_submit_without_audio_returns_none(self, telegram, provider):
        service = VoiceIntakeService(telegram, provider, PendingIntakeStore())
        assert service.submit(voice_message()) is None
