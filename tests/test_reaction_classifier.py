from intake_bot.schemas.telegram import TelegramChat, TelegramMessageReaction, TelegramReactionType
from intake_bot.services.reaction_classifier import ReactionClassifier


def make_event(new=(), old=()):
    return TelegramMessageReaction(
        chat=TelegramChat(id=1),
        message_id=100,
        old_reaction=[TelegramReactionType(type="emoji", emoji=e) for e in old],
        new_reaction=[TelegramReactionType(type="emoji", emoji=e) for e in new],
    )


class TestReactionClassifier:
    def test_thumbs_up_is_trigger(self):
        assert ReactionClassifier().is_confirm_trigger(make_event(new=["👍"])) is True

    def test_trigger_among_several_reactions(self):
        assert ReactionClassifier().is_confirm_trigger(make_event(new=["🔥", "👍"])) is True

    def test_other_emoji_is_not_trigger(self):
        assert ReactionClassifier().is_confirm_trigger(make_event(new=["❤"])) is False

    def test_withdrawn_trigger_is_not_trigger(self):
        assert ReactionClassifier().is_confirm_trigger(make_event(new=[], old=["👍"])) is False

    def test_custom_emoji_is_not_trigger(self):
        event = TelegramMessageReaction(
            chat=TelegramChat(id=1),
            message_id=100,
            new_reaction=[TelegramReactionType(type="custom_emoji", custom_emoji_id="5368324170671202286")],
        )
        assert ReactionClassifier().is_confirm_trigger(event) is False

    def test_configured_marker(self):
        classifier = ReactionClassifier(confirm_emoji="✅")
        assert classifier.is_confirm_trigger(make_event(new=["✅"])) is True
        assert classifier.is_confirm_trigger(make_event(new=["👍"])) is False
