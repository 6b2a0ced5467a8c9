"""Drives a pending message from Stored through Confirming to a terminal state.

The Stored -> Confirming step is a compare-and-set in the store, so only one
reaction per message ever starts a reconciliation no matter how many times
the platform delivers it. Everything after that runs in its own task so the
dispatcher never waits on the record store.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from intake_bot.logging_config import get_logger
from intake_bot.services.authorization import AuthorizationGate
from intake_bot.services.intake_store import PendingIntake, PendingIntakeStore
from intake_bot.services.record_store import RecordStore, derive_title
from intake_bot.services.result import TRANSIENT, VALIDATION, Result
from intake_bot.services.state_machine import IntakeStatus
from intake_bot.services.status_reflector import StatusReflector

logger = get_logger("reconciler")

SleepFunc = Callable[[float], Awaitable[None]]


class IntakeReconciler:
    def __init__(
        self,
        store: PendingIntakeStore,
        gate: AuthorizationGate,
        record_store: RecordStore,
        reflector: StatusReflector,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 2.0,
        attempt_timeout_seconds: float = 8.0,
        sleep_func: SleepFunc = asyncio.sleep,
    ):
        self.store = store
        self.gate = gate
        self.record_store = record_store
        self.reflector = reflector
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds
        self.attempt_timeout_seconds = attempt_timeout_seconds
        self.sleep_func = sleep_func
        self._inflight: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    async def try_confirm(self, chat_id: int, message_id: int, actor_id: Optional[int]) -> bool:
        """Start confirmation of a stored message. Returns True if this call started it."""
        context = {"chat_id": chat_id, "message_id": message_id, "actor_id": actor_id}

        if not self.gate.is_authorized(actor_id):
            logger.info("Ignoring confirm reaction from unauthorized identity", extra={"context": context})
            return False

        snapshot = await self.store.begin_confirming(chat_id, message_id)
        if snapshot is None:
            logger.info("No stored intake to confirm", extra={"context": context})
            return False

        task = asyncio.create_task(self.reconcile(snapshot))
        self._inflight.add(task)
        task.add_done_callback(self._on_reconcile_done)
        logger.info("Confirmation started", extra={"context": context})
        return True

    async def reconcile(self, snapshot: PendingIntake) -> Result[str]:
        """Create the record for a Confirming entry and settle it."""
        chat_id, message_id = snapshot.chat_id, snapshot.message_id

        await self.reflector.mark_processing(chat_id, message_id)

        result = await self._create_with_retry(snapshot)
        outcome = IntakeStatus.CONFIRMED if result.ok else IntakeStatus.FAILED

        committed = await self.store.complete(chat_id, message_id, outcome)
        if committed is None:
            logger.warning(
                "Intake vanished before commit",
                extra={"context": {"chat_id": chat_id, "message_id": message_id, "outcome": outcome.value}},
            )

        if result.ok:
            await self.reflector.mark_success(chat_id, message_id)
        else:
            await self.reflector.mark_failure(chat_id, message_id)

        return result

    async def drain(self, timeout: Optional[float] = None) -> int:
        """Wait for in-flight reconciliations. Returns how many are still running."""
        if not self._inflight:
            return 0
        _, pending = await asyncio.wait(set(self._inflight), timeout=timeout)
        return len(pending)

    async def _create_with_retry(self, snapshot: PendingIntake) -> Result[str]:
        chat_id, message_id = snapshot.chat_id, snapshot.message_id
        title = derive_title(snapshot.text)
        if not title:
            logger.warning(
                "Empty task title, not creating record",
                extra={"context": {"chat_id": chat_id, "message_id": message_id}},
            )
            return Result.failure("Task title cannot be empty", VALIDATION)

        result: Result[str] = Result.failure("No attempts made", TRANSIENT)
        for attempt in range(1, self.max_attempts + 1):
            await self.store.record_attempt(chat_id, message_id)
            logger.info(f"Attempt {attempt}/{self.max_attempts} to create task: {title[:80]}")

            result = await self._attempt(title)
            if result.ok:
                logger.info(
                    f"Task created on attempt {attempt}",
                    extra={"context": {"chat_id": chat_id, "message_id": message_id, "record_id": result.value}},
                )
                return result

            logger.warning(
                f"Attempt {attempt} failed: {result.error}",
                extra={"context": {"chat_id": chat_id, "message_id": message_id, "error_code": result.error_code}},
            )
            if not result.retryable:
                return result

            if attempt < self.max_attempts:
                delay = self.retry_backoff_seconds * attempt
                logger.debug(f"Waiting {delay}s before retry")
                await self.sleep_func(delay)

        logger.error(
            f"Failed to create task after {self.max_attempts} attempts: {result.error}",
            extra={"context": {"chat_id": chat_id, "message_id": message_id}},
        )
        return result

    async def _attempt(self, title: str) -> Result[str]:
        try:
            return await asyncio.wait_for(
                self.record_store.create_record(title, {}),
                timeout=self.attempt_timeout_seconds,
            )
        except asyncio.TimeoutError:
            return Result.failure(f"Record creation timed out after {self.attempt_timeout_seconds}s", TRANSIENT)
        except Exception as e:
            logger.error(f"Record store raised: {e}", exc_info=True)
            return Result.failure(str(e), TRANSIENT)

    def _on_reconcile_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Reconciliation crashed", exc_info=exc)
