import asyncio
import os
from datetime import date
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from intake_bot.config import Settings, settings
from intake_bot.logging_config import get_logger, setup_logging
from intake_bot.pipeline import IntakePipeline, build_pipeline
from intake_bot.routers import reminders, tasks, telegram_webhook
from intake_bot.services.reminder_service import is_check_due, seconds_until_next_minute

setup_logging(settings.log_level)

logger = get_logger("main")

SCHEDULER_TICK_SLACK_SECONDS = 0.5
SHUTDOWN_GRACE_SECONDS = 10.0
PUSH_UPDATES = ["message", "edited_message", "message_reaction"]


def _is_background_enabled(app_settings: Settings) -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return app_settings.background_workers_enabled


def _on_check_done(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Scheduled task check failed", exc_info=exc)
    else:
        logger.info("Scheduled task check finished", extra={"context": task.result()})


def _scheduler_tick(
    pipeline: IntakePipeline,
    last_run_date: Optional[date],
    running: set[asyncio.Task],
) -> Optional[date]:
    """Start the daily check if it is due. Returns the date of the latest run."""
    now = pipeline.reminders.now()
    if not is_check_due(now, pipeline.settings.reminder_check_time, last_run_date):
        return last_run_date

    task = asyncio.create_task(pipeline.reminders.run_check())
    running.add(task)
    task.add_done_callback(running.discard)
    task.add_done_callback(_on_check_done)
    return now.date()


async def _reminder_loop(pipeline: IntakePipeline) -> None:
    check_time = pipeline.settings.reminder_check_time
    logger.info(f"Starting scheduler with daily check at {check_time} ({pipeline.settings.timezone})")
    last_run_date = None
    running: set[asyncio.Task] = set()
    while True:
        try:
            # wake just after each minute boundary so the HH:MM match cannot be skipped
            delay = seconds_until_next_minute(pipeline.reminders.now()) + SCHEDULER_TICK_SLACK_SECONDS
            await asyncio.sleep(delay)
            last_run_date = _scheduler_tick(pipeline, last_run_date, running)
        except asyncio.CancelledError:
            for task in running:
                task.cancel()
            break
        except Exception as exc:
            logger.error(
                "Scheduler loop failed",
                extra={"context": {"error": str(exc)}},
            )


async def _register_webhook(pipeline: IntakePipeline) -> bool:
    app_settings = pipeline.settings
    result = await pipeline.telegram.set_webhook(
        app_settings.webhook_url,
        allowed_updates=PUSH_UPDATES,
        secret_token=app_settings.webhook_secret or None,
    )
    if result.get("ok"):
        logger.info(f"Webhook registered for {PUSH_UPDATES}")
        return True
    logger.error(f"Webhook registration failed: {result.get('description') or result.get('error')}")
    return False


def create_app(pipeline: Optional[IntakePipeline] = None) -> FastAPI:
    pipeline = pipeline or build_pipeline(settings)

    app = FastAPI(
        title="Notion Intake Bot",
        description="Telegram task capture confirmed by reaction",
        version="0.1.0",
    )
    app.state.pipeline = pipeline
    app.state.workers = []

    cors_env = os.environ.get("CORS_ALLOW_ORIGINS", "*")
    cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]
    if not cors_origins:
        cors_origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(telegram_webhook.router)
    app.include_router(tasks.router)
    app.include_router(reminders.router)

    @app.on_event("startup")
    async def start_workers() -> None:
        app_settings = pipeline.settings
        pipeline.gate.log_mode()

        if app_settings.push_enabled:
            logger.info("Push delivery configured; reactions arrive via webhook")
        else:
            logger.warning("WEBHOOK_URL not set: running pull-only, reaction confirmation is unavailable")

        if not _is_background_enabled(app_settings):
            return

        app.state.workers.append(asyncio.create_task(pipeline.dispatcher.run()))

        if not app_settings.telegram_bot_token:
            logger.error("TELEGRAM_BOT_TOKEN is not set; update polling disabled")
            return

        if app_settings.push_enabled:
            if app_settings.webhook_register and await _register_webhook(pipeline):
                logger.info("Webhook delivers all updates; pull loop not started")
                app.state.workers.append(asyncio.create_task(_reminder_loop(pipeline)))
                return
        else:
            # getUpdates is refused while a webhook is set
            result = await pipeline.telegram.delete_webhook()
            if not result.get("ok"):
                logger.warning(f"deleteWebhook failed: {result.get('description') or result.get('error')}")

        app.state.workers.append(asyncio.create_task(pipeline.poller.run()))
        app.state.workers.append(asyncio.create_task(_reminder_loop(pipeline)))
        logger.info(f"Workers started in {pipeline.mode} mode")

    @app.on_event("shutdown")
    async def stop_workers() -> None:
        for worker in app.state.workers:
            worker.cancel()
        for worker in app.state.workers:
            try:
                await worker
            except asyncio.CancelledError:
                pass
        app.state.workers = []

        still_running = await pipeline.reconciler.drain(timeout=SHUTDOWN_GRACE_SECONDS)
        if still_running:
            logger.warning(f"Abandoning {still_running} in-flight confirmations on shutdown")

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "mode": pipeline.mode,
            "pending": len(pipeline.store),
            "in_flight": pipeline.reconciler.in_flight,
        }

    return app


app = create_app()
