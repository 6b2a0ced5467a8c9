"""Contract between the intake pipeline and the structured-data store."""

from typing import Any, Optional, Protocol

from intake_bot.services.result import Result

MAX_TITLE_LENGTH = 2000


class RecordStore(Protocol):
    async def create_record(self, title: str, properties: dict[str, Any]) -> Result[str]:
        """Create one record. Failures carry error_code `transient` or `validation`."""
        ...


def derive_title(text: Optional[str]) -> str:
    """Task title from raw message text; empty when there is nothing to save."""
    if not text:
        return ""
    return text.strip()[:MAX_TITLE_LENGTH]
