from typing import Optional

import httpx

from intake_bot.logging_config import get_logger

logger = get_logger("telegram_service")


class TelegramService:
    """Async client for the subset of the Bot API the intake bot uses."""

    BASE_URL = "https://api.telegram.org/bot{token}"
    FILE_URL = "https://api.telegram.org/file/bot{token}/{path}"

    def __init__(self, bot_token: str, timeout: float = 30.0):
        self.bot_token = bot_token
        self.base_url = self.BASE_URL.format(token=bot_token)
        self.timeout = timeout

    async def _make_request(self, method: str, data: Optional[dict] = None, timeout: Optional[float] = None) -> dict:
        """Make request to Telegram API. Never raises; failures come back as ok=False."""
        url = f"{self.base_url}/{method}"
        try:
            async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
                response = await client.post(url, json=data or {})
                return response.json()
        except Exception as e:
            logger.error(f"Telegram API error on {method}: {e}")
            return {"ok": False, "error": str(e)}

    async def get_updates(
        self,
        offset: Optional[int] = None,
        timeout: int = 50,
        allowed_updates: Optional[list[str]] = None,
    ) -> dict:
        """Long-poll for updates. The HTTP timeout outlives the poll timeout."""
        data: dict = {"timeout": timeout}
        if offset is not None:
            data["offset"] = offset
        if allowed_updates is not None:
            data["allowed_updates"] = allowed_updates
        return await self._make_request("getUpdates", data, timeout=timeout + 10)

    async def set_webhook(
        self,
        url: str,
        allowed_updates: list[str],
        secret_token: Optional[str] = None,
    ) -> dict:
        data: dict = {"url": url, "allowed_updates": allowed_updates}
        if secret_token:
            data["secret_token"] = secret_token
        return await self._make_request("setWebhook", data)

    async def delete_webhook(self) -> dict:
        return await self._make_request("deleteWebhook", {"drop_pending_updates": False})

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: Optional[dict] = None,
        parse_mode: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
        disable_web_page_preview: bool = False,
    ) -> dict:
        """Send message to Telegram chat."""
        data: dict = {
            "chat_id": chat_id,
            "text": text,
        }
        if parse_mode:
            data["parse_mode"] = parse_mode
        if reply_markup:
            data["reply_markup"] = reply_markup
        if reply_to_message_id:
            data["reply_to_message_id"] = reply_to_message_id
        if disable_web_page_preview:
            data["link_preview_options"] = {"is_disabled": True}

        return await self._make_request("sendMessage", data)

    async def set_message_reaction(self, chat_id: int, message_id: int, emoji: str) -> dict:
        """Replace the bot's reaction on a message with a single emoji."""
        data = {
            "chat_id": chat_id,
            "message_id": message_id,
            "reaction": [{"type": "emoji", "emoji": emoji}],
            "is_big": False,
        }
        return await self._make_request("setMessageReaction", data)

    async def download_file(self, file_id: str) -> Optional[bytes]:
        """Resolve a file_id and download its content. Returns None on failure."""
        result = await self._make_request("getFile", {"file_id": file_id})
        if not result.get("ok"):
            logger.warning(f"Failed to resolve file {file_id}: {result}")
            return None

        file_path = result["result"].get("file_path")
        if not file_path:
            return None

        url = self.FILE_URL.format(token=self.bot_token, path=file_path)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.content
        except Exception as e:
            logger.error(f"Telegram file download failed: {e}")
            return None


def build_mini_app_keyboard(mini_app_url: str) -> dict:
    """Inline keyboard with a single button opening the task form."""
    return {
        "inline_keyboard": [
            [
                {"text": "Open Mini App", "web_app": {"url": mini_app_url}},
            ],
        ]
    }
