from intake_bot.logging_config import get_logger
from intake_bot.services.telegram_service import TelegramService

logger = get_logger("status_reflector")


class StatusReflector:
    """Shows intake progress as the bot's reaction on the original message.

    Every call is best-effort: the outcome of record creation is decided
    before a marker is applied, and a failed marker never changes it.
    """

    def __init__(
        self,
        telegram: TelegramService,
        processing_emoji: str = "✍",
        success_emoji: str = "👍",
        failure_emoji: str = "😢",
    ):
        self.telegram = telegram
        self.processing_emoji = processing_emoji
        self.success_emoji = success_emoji
        self.failure_emoji = failure_emoji

    async def mark_processing(self, chat_id: int, message_id: int) -> bool:
        return await self._apply(chat_id, message_id, self.processing_emoji, "processing")

    async def mark_success(self, chat_id: int, message_id: int) -> bool:
        return await self._apply(chat_id, message_id, self.success_emoji, "success")

    async def mark_failure(self, chat_id: int, message_id: int) -> bool:
        return await self._apply(chat_id, message_id, self.failure_emoji, "failure")

    async def _apply(self, chat_id: int, message_id: int, emoji: str, marker: str) -> bool:
        context = {"chat_id": chat_id, "message_id": message_id, "marker": marker}
        try:
            result = await self.telegram.set_message_reaction(chat_id, message_id, emoji)
        except Exception as e:
            logger.warning(f"Failed to set {marker} marker: {e}", extra={"context": context})
            return False

        if not result.get("ok"):
            logger.warning(
                f"Failed to set {marker} marker: {result.get('description') or result.get('error')}",
                extra={"context": context},
            )
            return False

        logger.debug(f"Set {marker} marker", extra={"context": context})
        return True
