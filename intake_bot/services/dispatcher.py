"""Single handling path for updates from the pull loop and the webhook.

Both channels decode raw payloads into TelegramUpdate and submit them here.
One consumer task drains the queue, so the webhook handler never touches the
intake store directly.
"""

import asyncio
from enum import Enum
from typing import Optional

from intake_bot.logging_config import get_logger
from intake_bot.schemas.telegram import TelegramMessage, TelegramMessageReaction, TelegramUpdate
from intake_bot.services.authorization import AuthorizationGate
from intake_bot.services.command_service import CommandService, parse_command
from intake_bot.services.intake_store import PendingIntakeStore
from intake_bot.services.reaction_classifier import ReactionClassifier
from intake_bot.services.reconciler import IntakeReconciler
from intake_bot.services.voice_service import VoiceIntakeService, audio_source

logger = get_logger("dispatcher")


class UpdateKind(str, Enum):
    MESSAGE = "message"
    MESSAGE_EDIT = "message_edit"
    REACTION = "reaction"
    OTHER = "other"


def classify_update(update: TelegramUpdate) -> UpdateKind:
    if update.message is not None:
        return UpdateKind.MESSAGE
    if update.edited_message is not None:
        return UpdateKind.MESSAGE_EDIT
    if update.message_reaction is not None:
        return UpdateKind.REACTION
    return UpdateKind.OTHER


def decode_update(payload: dict) -> TelegramUpdate:
    """Decode a raw Bot API update. Raises pydantic.ValidationError on bad input."""
    return TelegramUpdate.model_validate(payload)


class UpdateDispatcher:
    def __init__(
        self,
        store: PendingIntakeStore,
        classifier: ReactionClassifier,
        reconciler: IntakeReconciler,
        gate: AuthorizationGate,
        commands: Optional[CommandService] = None,
        voice: Optional[VoiceIntakeService] = None,
    ):
        self.store = store
        self.classifier = classifier
        self.reconciler = reconciler
        self.gate = gate
        self.commands = commands
        self.voice = voice
        self.queue: asyncio.Queue = asyncio.Queue()

    def submit(self, update: TelegramUpdate) -> None:
        self.queue.put_nowait(update)

    async def run(self) -> None:
        """Consume the queue until cancelled."""
        logger.info("Update dispatcher started")
        while True:
            update = await self.queue.get()
            try:
                await self.handle(update)
            except Exception as e:
                logger.error(
                    f"Update handling failed: {e}",
                    exc_info=True,
                    extra={"context": {"update_id": update.update_id}},
                )
            finally:
                self.queue.task_done()

    async def handle(self, update: TelegramUpdate) -> UpdateKind:
        kind = classify_update(update)

        if kind == UpdateKind.MESSAGE:
            await self._handle_message(update.message, kind)
        elif kind == UpdateKind.MESSAGE_EDIT:
            await self._handle_message(update.edited_message, kind)
        elif kind == UpdateKind.REACTION:
            await self._handle_reaction(update.message_reaction)
        else:
            logger.info("Dropping unsupported update", extra={"context": {"update_id": update.update_id}})

        return kind

    async def _handle_message(self, message: TelegramMessage, kind: UpdateKind) -> None:
        context = {"chat_id": message.chat.id, "message_id": message.message_id, "kind": kind.value}

        if message.from_user and message.from_user.is_bot:
            logger.debug("Ignoring bot message", extra={"context": context})
            return

        if parse_command(message.text):
            if kind == UpdateKind.MESSAGE and self.commands is not None:
                await self.commands.handle(message)
            return

        authorized = self.gate.is_authorized(message.sender_id)

        if message.text is None:
            if kind == UpdateKind.MESSAGE and self.voice is not None and audio_source(message) and authorized:
                self.voice.submit(message)
            else:
                logger.debug("Ignoring message without text", extra={"context": context})
            return

        if not authorized:
            logger.info("Message from unauthorized sender stored without confirm rights", extra={"context": context})

        if await self.store.put(message.chat.id, message.message_id, message.text, author_id=message.sender_id):
            logger.info("Stored message as pending task", extra={"context": context})

    async def _handle_reaction(self, event: TelegramMessageReaction) -> None:
        if not self.classifier.is_confirm_trigger(event):
            logger.debug(
                "Reaction is not a confirm trigger, ignoring",
                extra={"context": {"chat_id": event.chat.id, "message_id": event.message_id}},
            )
            return

        await self.reconciler.try_confirm(event.chat.id, event.message_id, event.actor_id)
