"""
Unit tests for conversation strategies.
"""

import click

from authramp_harness.pam.conversation import (
    ConversationMessage,
    FixedConversation,
    InteractiveConversation,
    MessageStyle,
)


def messages():
    return [
        ConversationMessage(MessageStyle.PROMPT_ECHO_ON, "login: "),
        ConversationMessage(MessageStyle.PROMPT_ECHO_OFF, "Password: "),
        ConversationMessage(MessageStyle.ERROR_MSG, "Account locked!"),
        ConversationMessage(MessageStyle.TEXT_INFO, "Last login: never"),
    ]


class TestFixedConversation:
    """Tests for the non-interactive strategy."""

    def test_answers(self):
        conversation = FixedConversation(user="alice", password="s3cret")
        assert conversation.converse(messages()) == ["alice", "s3cret", None, None]

    def test_notices_and_reset(self):
        conversation = FixedConversation(user="alice", password="s3cret")
        conversation.converse(messages())

        assert conversation.notices == ("Account locked!", "Last login: never")
        conversation.reset()
        assert conversation.notices == ()

    def test_password_not_in_repr(self):
        assert "s3cret" not in repr(FixedConversation(user="alice", password="s3cret"))

    def test_style_converted_from_int(self):
        assert ConversationMessage(3, "x").style is MessageStyle.ERROR_MSG


class TestInteractiveConversation:
    """Tests for the terminal strategy."""

    def test_prompts_and_notices(self, monkeypatch, capsys):
        prompts = []

        def fake_prompt(text, hide_input=False, **kwargs):
            prompts.append((text, hide_input))
            return "typed"

        monkeypatch.setattr(click, "prompt", fake_prompt)
        conversation = InteractiveConversation()

        assert conversation.converse(messages()) == ["typed", "typed", None, None]
        assert prompts == [("login", False), ("Password", True)]
        assert conversation.notices == ("Account locked!", "Last login: never")
        assert "Account locked!" in capsys.readouterr().err
