from intake_bot.schemas.tasks import TaskRequest, TaskResponse
from intake_bot.schemas.telegram import TelegramMessageReaction, TelegramUpdate

__all__ = ["TaskRequest", "TaskResponse", "TelegramMessageReaction", "TelegramUpdate"]
