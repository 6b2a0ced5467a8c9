import asyncio
from typing import Optional

from pydantic import ValidationError

from intake_bot.logging_config import get_logger
from intake_bot.services.dispatcher import UpdateDispatcher, decode_update
from intake_bot.services.telegram_service import TelegramService

logger = get_logger("update_poller")

# Reactions arrive only through the webhook.
MESSAGE_UPDATES = ["message", "edited_message"]

CONFLICT_STATUS = 409


class UpdatePoller:
    def __init__(
        self,
        telegram: TelegramService,
        dispatcher: UpdateDispatcher,
        allowed_updates: Optional[list[str]] = None,
        poll_timeout_seconds: int = 50,
        error_backoff_seconds: float = 3.0,
        conflict_backoff_seconds: float = 60.0,
        sleep_func=asyncio.sleep,
    ):
        self.telegram = telegram
        self.dispatcher = dispatcher
        self.allowed_updates = list(allowed_updates or MESSAGE_UPDATES)
        self.poll_timeout_seconds = poll_timeout_seconds
        self.error_backoff_seconds = error_backoff_seconds
        self.conflict_backoff_seconds = conflict_backoff_seconds
        self.sleep_func = sleep_func
        self.offset: Optional[int] = None
        self._conflict_logged = False

    async def poll_once(self) -> int:
        """Fetch one batch and submit it. Returns the number of updates submitted."""
        response = await self.telegram.get_updates(
            offset=self.offset,
            timeout=self.poll_timeout_seconds,
            allowed_updates=self.allowed_updates,
        )
        if response.get("error_code") == CONFLICT_STATUS:
            # getUpdates is refused while a webhook is active; the webhook carries the updates
            if not self._conflict_logged:
                logger.info(f"getUpdates conflicts with active webhook, pull loop idle: {response.get('description')}")
                self._conflict_logged = True
            await self.sleep_func(self.conflict_backoff_seconds)
            return 0

        if not response.get("ok"):
            logger.warning(f"getUpdates failed: {response.get('description') or response.get('error')}")
            await self.sleep_func(self.error_backoff_seconds)
            return 0

        self._conflict_logged = False
        submitted = 0
        for raw in response.get("result", []):
            update_id = raw.get("update_id") if isinstance(raw, dict) else None
            if isinstance(update_id, int):
                self.offset = update_id + 1
            try:
                update = decode_update(raw)
            except ValidationError as e:
                logger.warning(f"Dropping undecodable update: {e}", extra={"context": {"update_id": update_id}})
                continue
            self.dispatcher.submit(update)
            submitted += 1
        return submitted

    async def run(self) -> None:
        logger.info(f"Update poller started, allowed_updates={self.allowed_updates}")
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Update poller iteration failed: {e}", exc_info=True)
                await self.sleep_func(self.error_backoff_seconds)
