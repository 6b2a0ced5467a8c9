from intake_bot.logging_config import get_logger
from intake_bot.services.llm.base import LLMProvider

logger = get_logger("tagging_service")

VALID_TAGS = ("link", "journal", "date", "task")
DEFAULT_TAG = "task"

TAG_PROMPT = """Analyze the following task entry and categorize it with a single tag.

Rules:
- If the entry is ONLY a URL/link (starts with http, https, or looks like a web link), respond with exactly: "link"
- If the entry mentions thoughts, emotions, observations, feelings, reflections, or is a personal journal-style entry, respond with exactly: "journal"
- If the entry mentions a deadline or date reference (like "today", "tomorrow", "next week", "23 october", "by friday", "due on"), respond with exactly: "date"
- If none of the above apply, respond with exactly: "task"

Task entry: "{text}"

Respond with ONLY ONE WORD from: link, journal, date, or task"""


def normalize_tag(raw: str) -> str:
    tag = raw.strip().strip('".').lower()
    if tag not in VALID_TAGS:
        logger.info(f"Invalid tag received: {raw!r}, defaulting to '{DEFAULT_TAG}'")
        return DEFAULT_TAG
    return tag


class TaggingService:
    def __init__(self, provider: LLMProvider):
        self.provider = provider

    async def classify(self, text: str) -> str:
        """Category of a task title. Provider errors propagate to the caller."""
        response = await self.provider.generate(TAG_PROMPT.format(text=text), temperature=0.0, max_tokens=10)
        tag = normalize_tag(response.content)
        logger.debug(f"Tagged task as: {tag}")
        return tag

    async def classify_or_default(self, text: str) -> str:
        try:
            return await self.classify(text)
        except Exception as e:
            logger.warning(f"Failed to tag task, using '{DEFAULT_TAG}': {e}")
            return DEFAULT_TAG
