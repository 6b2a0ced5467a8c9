from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None


class TelegramChat(BaseModel):
    id: int
    type: str = "private"  # private, group, supergroup, channel
    title: Optional[str] = None
    username: Optional[str] = None


class TelegramAudio(BaseModel):
    file_id: str
    file_unique_id: str
    duration: int
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None


class TelegramVoice(BaseModel):
    file_id: str
    file_unique_id: str
    duration: int
    mime_type: Optional[str] = None
    file_size: Optional[int] = None


class TelegramMessage(BaseModel):
    message_id: int
    date: int
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")  # "from" is reserved in Python
    edit_date: Optional[int] = None
    text: Optional[str] = None
    caption: Optional[str] = None
    sender_chat: Optional[TelegramChat] = None
    reply_to_message: Optional[Any] = None
    audio: Optional[TelegramAudio] = None
    voice: Optional[TelegramVoice] = None

    model_config = ConfigDict(populate_by_name=True)

    @property
    def sender_id(self) -> Optional[int]:
        return self.from_user.id if self.from_user else None


class TelegramReactionType(BaseModel):
    type: str  # emoji, custom_emoji, paid
    emoji: Optional[str] = None
    custom_emoji_id: Optional[str] = None


class TelegramMessageReaction(BaseModel):
    chat: TelegramChat
    message_id: int
    date: int = 0
    user: Optional[TelegramUser] = None
    actor_chat: Optional[TelegramChat] = None
    old_reaction: list[TelegramReactionType] = []
    new_reaction: list[TelegramReactionType] = []

    @property
    def actor_id(self) -> Optional[int]:
        """Identity that changed the reaction; anonymous group admins have none."""
        return self.user.id if self.user else None


class TelegramUpdate(BaseModel):
    update_id: int
    message: Optional[TelegramMessage] = None
    edited_message: Optional[TelegramMessage] = None
    message_reaction: Optional[TelegramMessageReaction] = None


class TelegramWebhookResponse(BaseModel):
    success: bool
    message: Optional[str] = None
