from typing import Optional

from intake_bot.logging_config import get_logger

logger = get_logger("authorization")


class AuthorizationGate:
    """Single-identity gate. With no identity configured every caller passes."""

    def __init__(self, authorized_user_id: Optional[int] = None):
        self.authorized_user_id = authorized_user_id or None

    @property
    def is_restricted(self) -> bool:
        return self.authorized_user_id is not None

    def is_authorized(self, identity_id: Optional[int]) -> bool:
        if not self.is_restricted:
            return True
        return identity_id is not None and identity_id == self.authorized_user_id

    def log_mode(self) -> None:
        if self.is_restricted:
            logger.info(f"Bot restricted to user ID: {self.authorized_user_id}")
        else:
            logger.warning("No authorized user ID set, bot will be accessible to anyone")
