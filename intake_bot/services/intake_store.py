"""In-memory table of messages waiting for a confirm-trigger reaction.

Entries are keyed by (chat_id, message_id) and live only for the lifetime of
the process. Every operation runs under a single asyncio lock; callers get
copies of entries, never the stored objects, so nothing outside the lock can
mutate the table.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

from intake_bot.logging_config import get_logger
from intake_bot.services.state_machine import IntakeStatus, is_terminal, transition

logger = get_logger("intake_store")

IntakeKey = tuple[int, int]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PendingIntake:
    chat_id: int
    message_id: int
    text: str
    author_id: Optional[int] = None
    status: IntakeStatus = IntakeStatus.STORED
    attempts: int = 0
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def key(self) -> IntakeKey:
        return (self.chat_id, self.message_id)


class PendingIntakeStore:
    def __init__(self, lock: Optional[asyncio.Lock] = None):
        self._entries: dict[IntakeKey, PendingIntake] = {}
        self._lock = lock or asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def put(self, chat_id: int, message_id: int, text: str, author_id: Optional[int] = None) -> bool:
        """Store or overwrite the text of a pending message.

        Returns False when the key is already past Stored; an edit that lands
        while the record is being created does not change what gets created.
        """
        async with self._lock:
            entry = self._entries.get((chat_id, message_id))
            if entry is None:
                self._entries[(chat_id, message_id)] = PendingIntake(
                    chat_id=chat_id,
                    message_id=message_id,
                    text=text,
                    author_id=author_id,
                )
                return True

            if entry.status != IntakeStatus.STORED:
                logger.info(
                    "Ignoring edit of message already in confirmation",
                    extra={"context": {"chat_id": chat_id, "message_id": message_id, "status": entry.status.value}},
                )
                return False

            entry.text = text
            entry.updated_at = _now()
            return True

    async def get(self, chat_id: int, message_id: int) -> Optional[PendingIntake]:
        async with self._lock:
            entry = self._entries.get((chat_id, message_id))
            return replace(entry) if entry else None

    async def remove(self, chat_id: int, message_id: int) -> bool:
        async with self._lock:
            return self._entries.pop((chat_id, message_id), None) is not None

    async def transition(
        self,
        chat_id: int,
        message_id: int,
        expected: IntakeStatus,
        new: IntakeStatus,
    ) -> Optional[PendingIntake]:
        """Move an entry from `expected` to `new` if it is currently in `expected`.

        Returns a snapshot of the updated entry, or None when the key is absent
        or in another state. Terminal states remove the entry in the same step.
        """
        async with self._lock:
            return self._transition_locked((chat_id, message_id), expected, new)

    async def begin_confirming(self, chat_id: int, message_id: int) -> Optional[PendingIntake]:
        return await self.transition(chat_id, message_id, IntakeStatus.STORED, IntakeStatus.CONFIRMING)

    async def complete(self, chat_id: int, message_id: int, outcome: IntakeStatus) -> Optional[PendingIntake]:
        return await self.transition(chat_id, message_id, IntakeStatus.CONFIRMING, outcome)

    async def record_attempt(self, chat_id: int, message_id: int) -> int:
        async with self._lock:
            entry = self._entries.get((chat_id, message_id))
            if entry is None or entry.status != IntakeStatus.CONFIRMING:
                return 0
            entry.attempts += 1
            entry.updated_at = _now()
            return entry.attempts

    def _transition_locked(
        self,
        key: IntakeKey,
        expected: IntakeStatus,
        new: IntakeStatus,
    ) -> Optional[PendingIntake]:
        entry = self._entries.get(key)
        if entry is None or entry.status != expected:
            return None

        entry.status = transition(entry.status, new)
        entry.updated_at = _now()
        snapshot = replace(entry)

        if is_terminal(entry.status):
            del self._entries[key]

        return snapshot
