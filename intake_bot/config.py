from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    telegram_bot_token: str = ""
    authorized_user_id: int = 0

    # Push delivery target. When set, reactions arrive via the webhook and the
    # pull loop is restricted to message updates.
    webhook_url: str = ""
    webhook_secret: str = ""
    webhook_register: bool = False
    poll_timeout_seconds: int = 50

    confirm_emoji: str = "👍"
    processing_emoji: str = "✍"
    success_emoji: str = "👍"
    failure_emoji: str = "😢"

    record_max_attempts: int = 3
    record_retry_backoff_seconds: float = 2.0
    record_timeout_seconds: float = 8.0

    notion_api_key: str = ""
    notion_database_id: str = ""
    notion_version: str = "2022-06-28"
    notion_title_property: str = "Name"
    notion_schema_ttl_seconds: int = 300

    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"

    reminder_check_time: str = "23:00"
    timezone: str = "Europe/Moscow"

    mini_app_url: str = ""
    environment: str = "development"
    background_workers_enabled: bool = True
    admin_token: str = ""
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def push_enabled(self) -> bool:
        return bool(self.webhook_url.strip())


settings = Settings()
