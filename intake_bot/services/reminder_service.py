import asyncio
import html
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from intake_bot.logging_config import get_logger
from intake_bot.services.notion_service import LLM_TAG_PROPERTY, NotionService, NotionTask
from intake_bot.services.tagging_service import TaggingService
from intake_bot.services.telegram_service import TelegramService

logger = get_logger("reminder_service")

SEPARATOR = "━━━━━━━━━━━━━━━━━━━━"
NOTIFIED_TAGS = ("date", "journal", "link")


def load_timezone(name: str):
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Failed to load timezone '{name}', using UTC")
        return timezone.utc


def truncate(text: str, max_len: int = 50) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def is_check_due(now: datetime, check_time: str, last_run_date: Optional[date]) -> bool:
    """True once per day, in the minute matching check_time (HH:MM, local)."""
    return now.strftime("%H:%M") == check_time and last_run_date != now.date()


def seconds_until_next_minute(now: datetime) -> float:
    return 60 - now.second - now.microsecond / 1_000_000


def build_notification(task: NotionTask) -> Optional[str]:
    """Message for a task whose tag needs the owner's attention, or None."""
    tag = task.properties.get(LLM_TAG_PROPERTY)
    preview = html.escape(truncate(task.title))
    link = f'<a href="{task.url}">Open in Notion</a>'

    if tag == "date":
        if task.properties.get("Date"):
            return None
        return (
            "⏰ <b>Task with deadline has no date set!</b>\n\n"
            f"Task: {preview}\n\n"
            "You mentioned a deadline, but no date was added. Consider setting one.\n\n"
            f"{link}"
        )
    if tag == "journal":
        return (
            "📔 <b>Possible journal entry in tasks!</b>\n\n"
            f"Task: {preview}\n\n"
            "This looks like a journal entry. Consider moving it to your journal database.\n\n"
            f"{link}"
        )
    if tag == "link":
        return (
            "🔗 <b>Link-only task detected!</b>\n\n"
            f"Task: {preview}\n\n"
            "This task is just a link. Please give it a descriptive name.\n\n"
            f"{link}"
        )
    return None


class ReminderService:
    """Daily sweep over open tasks that nudges the owner about odd entries."""

    def __init__(
        self,
        records: NotionService,
        telegram: TelegramService,
        tagger: Optional[TaggingService],
        recipient_id: int,
        timezone_name: str = "Europe/Moscow",
        tag_delay_seconds: float = 0.3,
        sleep_func=asyncio.sleep,
    ):
        self.records = records
        self.telegram = telegram
        self.tagger = tagger
        self.recipient_id = recipient_id
        self.tz = load_timezone(timezone_name)
        self.tag_delay_seconds = tag_delay_seconds
        self.sleep_func = sleep_func

    def now(self) -> datetime:
        return datetime.now(self.tz)

    async def ensure_tags(self) -> dict:
        """Tag every open task that has no llm_tag yet."""
        summary = {"total": 0, "tagged": 0, "skipped": 0, "errors": 0}
        if self.tagger is None:
            logger.info("Tagging not configured; skipping pre-tagging step")
            return summary

        tasks = await self.records.query_open_tasks()
        summary["total"] = len(tasks)

        for task in tasks:
            existing = task.properties.get(LLM_TAG_PROPERTY)
            if isinstance(existing, str) and existing.strip():
                summary["skipped"] += 1
                continue

            tag = await self.tagger.classify_or_default(task.title)
            result = await self.records.update_llm_tag(task.id, tag)
            if result.ok:
                task.properties[LLM_TAG_PROPERTY] = tag
                summary["tagged"] += 1
            else:
                logger.warning(f"Failed to update llm_tag for {task.id}: {result.error}")
                summary["errors"] += 1

            await self.sleep_func(self.tag_delay_seconds)

        logger.info("Pre-tagging complete", extra={"context": summary})

        attempted = summary["total"] - summary["skipped"]
        if summary["errors"] and summary["errors"] == attempted:
            raise RuntimeError(f"failed to tag any tasks, {summary['errors']} errors occurred")
        return summary

    async def tag_all(self) -> dict:
        """Tag all open tasks and report the counts to the owner."""
        try:
            summary = await self.ensure_tags()
        except Exception as e:
            logger.error(f"Tagging failed: {e}")
            await self._send(f"❌ Failed to tag tasks: {html.escape(str(e))}")
            return {"error": str(e)}

        await self._send(
            "✅ <b>Tagging complete!</b>\n\n"
            f"• Tagged: {summary['tagged']}\n"
            f"• Skipped (already tagged): {summary['skipped']}\n"
            f"• Errors: {summary['errors']}\n"
            f"• Total processed: {summary['total']}"
        )
        return summary

    async def run_check(self) -> dict:
        """Send the daily report. Returns a summary of what was sent."""
        if not self.recipient_id:
            logger.warning("No recipient configured for task check")
            return {"checked": 0, "notified": 0, "error": "no_recipient"}

        logger.info("Starting task check")

        try:
            tag_summary = await self.ensure_tags()
        except Exception as e:
            logger.error(f"Error ensuring tags for open tasks: {e}")
            await self._send(f"❌ Error preparing tasks for check: {html.escape(str(e))}")
            return {"checked": 0, "notified": 0, "error": str(e)}

        checked_at = self.now().strftime("%a, %d %b %Y %H:%M %Z")
        await self._send(f"{SEPARATOR}\n📋 <b>Daily Task Check</b>\n🕐 {checked_at}\n{SEPARATOR}")

        try:
            tasks = await self.records.query_open_tasks()
        except Exception as e:
            logger.error(f"Error retrieving tasks: {e}")
            await self._send(f"❌ Error checking tasks: {html.escape(str(e))}")
            return {"checked": 0, "notified": 0, "error": str(e)}

        notified = 0
        for task in tasks:
            text = build_notification(task)
            if text is None:
                continue
            result = await self._send(text, disable_web_page_preview=True)
            if result.get("ok"):
                notified += 1
            else:
                logger.warning(f"Error sending notification for task {task.id}: {result}")

        if notified == 0:
            footer = "✅ All tasks look good! No issues found."
        else:
            footer = f"📊 Found {notified} task(s) needing attention"
        await self._send(f"{SEPARATOR}\n{footer}\n{SEPARATOR}")

        logger.info(f"Task check completed: {notified} notifications sent")
        return {"checked": len(tasks), "notified": notified, "tags": tag_summary}

    async def _send(self, text: str, disable_web_page_preview: bool = False) -> dict:
        return await self.telegram.send_message(
            chat_id=self.recipient_id,
            text=text,
            parse_mode="HTML",
            disable_web_page_preview=disable_web_page_preview,
        )
