from intake_bot.schemas.telegram import TelegramMessageReaction


class ReactionClassifier:
    """Decides whether a reaction update is the confirm trigger.

    Only the reactions present after the change matter. A withdrawn reaction
    leaves `new_reaction` without the marker and is therefore noise.
    """

    def __init__(self, confirm_emoji: str = "👍"):
        self.confirm_emoji = confirm_emoji

    def is_confirm_trigger(self, event: TelegramMessageReaction) -> bool:
        return any(
            reaction.type == "emoji" and reaction.emoji == self.confirm_emoji
            for reaction in event.new_reaction
        )
