"""Wiring of the intake pipeline components.

Order of an update through the pipeline:
1) Pull loop or webhook decodes it into TelegramUpdate
2) Dispatcher queue (single consumer)
3) Messages and edits overwrite the pending-intake store
4) Reactions pass the classifier, then the reconciler's authorization gate
   and Stored -> Confirming check-and-set
5) Reconciliation task creates the record and applies one terminal marker
"""

from dataclasses import dataclass
from typing import Optional

from intake_bot.config import Settings
from intake_bot.services.authorization import AuthorizationGate
from intake_bot.services.command_service import CommandService
from intake_bot.services.dispatcher import UpdateDispatcher
from intake_bot.services.intake_store import PendingIntakeStore
from intake_bot.services.llm.base import LLMProvider
from intake_bot.services.llm.gemini_provider import GeminiProvider
from intake_bot.services.notion_service import NotionService
from intake_bot.services.reaction_classifier import ReactionClassifier
from intake_bot.services.reconciler import IntakeReconciler
from intake_bot.services.reminder_service import ReminderService
from intake_bot.services.status_reflector import StatusReflector
from intake_bot.services.tagging_service import TaggingService
from intake_bot.services.telegram_service import TelegramService
from intake_bot.services.update_poller import MESSAGE_UPDATES, UpdatePoller
from intake_bot.services.voice_service import VoiceIntakeService


@dataclass
class IntakePipeline:
    settings: Settings
    telegram: TelegramService
    records: NotionService
    store: PendingIntakeStore
    gate: AuthorizationGate
    classifier: ReactionClassifier
    reflector: StatusReflector
    reconciler: IntakeReconciler
    dispatcher: UpdateDispatcher
    poller: UpdatePoller
    reminders: ReminderService
    commands: CommandService
    voice: Optional[VoiceIntakeService] = None
    tagger: Optional[TaggingService] = None

    @property
    def mode(self) -> str:
        return "push+pull" if self.settings.push_enabled else "pull-only"


def build_pipeline(
    settings: Settings,
    telegram: Optional[TelegramService] = None,
    records: Optional[NotionService] = None,
    provider: Optional[LLMProvider] = None,
) -> IntakePipeline:
    telegram = telegram or TelegramService(settings.telegram_bot_token)
    records = records or NotionService(
        api_key=settings.notion_api_key,
        database_id=settings.notion_database_id,
        notion_version=settings.notion_version,
        title_property=settings.notion_title_property,
        schema_ttl_seconds=settings.notion_schema_ttl_seconds,
    )
    if provider is None and settings.gemini_api_key:
        provider = GeminiProvider(settings.gemini_api_key, default_model=settings.gemini_model)

    store = PendingIntakeStore()
    gate = AuthorizationGate(settings.authorized_user_id)
    classifier = ReactionClassifier(settings.confirm_emoji)
    reflector = StatusReflector(
        telegram,
        processing_emoji=settings.processing_emoji,
        success_emoji=settings.success_emoji,
        failure_emoji=settings.failure_emoji,
    )
    reconciler = IntakeReconciler(
        store,
        gate,
        records,
        reflector,
        max_attempts=settings.record_max_attempts,
        retry_backoff_seconds=settings.record_retry_backoff_seconds,
        attempt_timeout_seconds=settings.record_timeout_seconds,
    )

    tagger = TaggingService(provider) if provider is not None else None
    reminders = ReminderService(
        records,
        telegram,
        tagger,
        recipient_id=settings.authorized_user_id,
        timezone_name=settings.timezone,
    )
    commands = CommandService(telegram, gate, reminders=reminders, mini_app_url=settings.mini_app_url)
    voice = VoiceIntakeService(telegram, provider, store) if provider is not None else None

    dispatcher = UpdateDispatcher(store, classifier, reconciler, gate, commands=commands, voice=voice)
    poller = UpdatePoller(
        telegram,
        dispatcher,
        allowed_updates=MESSAGE_UPDATES,
        poll_timeout_seconds=settings.poll_timeout_seconds,
    )

    return IntakePipeline(
        settings=settings,
        telegram=telegram,
        records=records,
        store=store,
        gate=gate,
        classifier=classifier,
        reflector=reflector,
        reconciler=reconciler,
        dispatcher=dispatcher,
        poller=poller,
        reminders=reminders,
        commands=commands,
        voice=voice,
        tagger=tagger,
    )
