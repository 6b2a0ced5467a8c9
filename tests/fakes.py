from typing import Any

from intake_bot.services.result import Result


class FakeRecordStore:
    """Record store that replays scripted results and remembers every call."""

    def __init__(self, results=None):
        self.results = list(results or [])
        self.calls: list[tuple[str, dict]] = []

    async def create_record(self, title: str, properties: dict[str, Any]) -> Result[str]:
        self.calls.append((title, properties))
        if not self.results:
            return Result.success(f"page-{len(self.calls)}")
        outcome = self.results.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome
