import asyncio
from typing import Optional

from intake_bot.logging_config import get_logger
from intake_bot.schemas.telegram import TelegramMessage
from intake_bot.services.intake_store import PendingIntakeStore
from intake_bot.services.llm.base import LLMProvider
from intake_bot.services.telegram_service import TelegramService

logger = get_logger("voice_service")

PREVIEW_LENGTH = 200


def audio_source(message: TelegramMessage) -> Optional[tuple[str, str]]:
    """(file_id, mime_type) of a voice note or audio file, if the message has one."""
    if message.voice:
        return message.voice.file_id, message.voice.mime_type or "audio/ogg"
    if message.audio:
        return message.audio.file_id, message.audio.mime_type or "audio/mpeg"
    return None


class VoiceIntakeService:
    """Turns voice notes into pending intakes via transcription.

    Transcription runs in the background; the transcript is stored under the
    voice message's own key, so reacting to the voice message confirms it.
    """

    def __init__(self, telegram: TelegramService, provider: LLMProvider, store: PendingIntakeStore):
        self.telegram = telegram
        self.provider = provider
        self.store = store
        self._background: set[asyncio.Task] = set()

    def submit(self, message: TelegramMessage) -> Optional[asyncio.Task]:
        if audio_source(message) is None:
            return None
        task = asyncio.create_task(self.transcribe_and_store(message))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def transcribe_and_store(self, message: TelegramMessage) -> Optional[str]:
        source = audio_source(message)
        if source is None:
            return None
        file_id, mime_type = source
        chat_id = message.chat.id

        audio_bytes = await self.telegram.download_file(file_id)
        if not audio_bytes:
            await self.telegram.send_message(chat_id, "❌ Could not access audio file.")
            return None

        try:
            transcript = await self.provider.transcribe_audio(audio_bytes, mime_type)
        except Exception as e:
            logger.error(f"Transcription failed: {e}")
            await self.telegram.send_message(chat_id, "❌ Transcription failed.")
            return None

        await self.store.put(chat_id, message.message_id, transcript, author_id=message.sender_id)
        logger.info(
            "Stored transcribed voice message",
            extra={"context": {"chat_id": chat_id, "message_id": message.message_id}},
        )

        preview = transcript if len(transcript) <= PREVIEW_LENGTH else transcript[:PREVIEW_LENGTH] + "..."
        await self.telegram.send_message(
            chat_id,
            f"📝 Transcribed. Add 👍 to save.\n{preview}",
            reply_to_message_id=message.message_id,
        )
        return transcript
