import asyncio
from typing import Awaitable, Optional

from intake_bot.logging_config import get_logger
from intake_bot.schemas.telegram import TelegramMessage
from intake_bot.services.authorization import AuthorizationGate
from intake_bot.services.reminder_service import ReminderService
from intake_bot.services.telegram_service import TelegramService, build_mini_app_keyboard

logger = get_logger("command_service")

COMMANDS = ("/start", "/cron", "/tags")

WELCOME_TEXT = (
    "Welcome to Notion Task Manager! Send me any text, then react with 👍 to save it as a task."
)
UNAUTHORIZED_TEXT = "Sorry, you are not authorized to use this bot."


def parse_command(text: Optional[str]) -> Optional[str]:
    """Known bot command at the start of a message, without any @botname suffix."""
    if not text or not text.startswith("/"):
        return None
    command = text.split()[0].split("@")[0].lower()
    return command if command in COMMANDS else None


class CommandService:
    def __init__(
        self,
        telegram: TelegramService,
        gate: AuthorizationGate,
        reminders: Optional[ReminderService] = None,
        mini_app_url: str = "",
    ):
        self.telegram = telegram
        self.gate = gate
        self.reminders = reminders
        self.mini_app_url = mini_app_url
        self._background: set[asyncio.Task] = set()

    async def handle(self, message: TelegramMessage) -> bool:
        """Run the command in a message. Returns False when the message is not a command."""
        command = parse_command(message.text)
        if command is None:
            return False

        chat_id = message.chat.id
        if not self.gate.is_authorized(message.sender_id):
            if command == "/start":
                await self.telegram.send_message(chat_id, UNAUTHORIZED_TEXT)
            logger.info(f"Ignoring {command} from unauthorized user: {message.sender_id}")
            return True

        if command == "/start":
            keyboard = build_mini_app_keyboard(self.mini_app_url) if self.mini_app_url else None
            await self.telegram.send_message(chat_id, WELCOME_TEXT, reply_markup=keyboard)
        elif command == "/cron":
            await self._handle_cron(chat_id)
        elif command == "/tags":
            await self._handle_tags(chat_id)
        return True

    async def _handle_cron(self, chat_id: int) -> None:
        if self.reminders is None:
            await self.telegram.send_message(chat_id, "❌ Scheduler not available")
            return
        self._spawn(self.reminders.run_check(), "cron")
        await self.telegram.send_message(chat_id, "✅ Task check triggered! Check logs for results.")

    async def _handle_tags(self, chat_id: int) -> None:
        if self.reminders is None or self.reminders.tagger is None:
            await self.telegram.send_message(chat_id, "❌ Gemini AI not configured")
            return
        await self.telegram.send_message(chat_id, "🏷️ Starting to tag all tasks... This may take a while.")
        self._spawn(self.reminders.tag_all(), "tags")

    def _spawn(self, coro: Awaitable, name: str) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._background.discard(finished)
            if not finished.cancelled() and finished.exception() is not None:
                logger.error(f"/{name} command failed", exc_info=finished.exception())

        task.add_done_callback(_done)
