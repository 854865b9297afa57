"""
PAM conversation strategies.

The authentication stack talks to the application through a
conversation: it sends prompts and notices, the application answers.
Strategies are swappable; the harness uses a fixed-answer one.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple

import attrs
import click


class MessageStyle(IntEnum):
    """Message styles from security/_pam_types.h."""

    PROMPT_ECHO_OFF = 1
    PROMPT_ECHO_ON = 2
    ERROR_MSG = 3
    TEXT_INFO = 4

    @property
    def is_prompt(self) -> bool:
        return self in (MessageStyle.PROMPT_ECHO_OFF, MessageStyle.PROMPT_ECHO_ON)


@attrs.define(frozen=True, slots=True)
class ConversationMessage:
    """One message sent by the stack."""

    style: MessageStyle = attrs.field(converter=MessageStyle)
    text: str = ""


class Conversation(ABC):
    """Answers messages sent by the authentication stack."""

    @abstractmethod
    def respond(self, message: ConversationMessage) -> Optional[str]:
        """
        Answer one message.

        Returns:
            The response text for prompts, None for notices
        """
        ...

    def converse(self, messages: Sequence[ConversationMessage]) -> List[Optional[str]]:
        return [self.respond(m) for m in messages]

    @property
    def notices(self) -> Tuple[str, ...]:
        """Error and info texts received so far (strategies may not keep any)."""
        return ()

    def reset(self) -> None:
        """Forget received notices."""


@attrs.define
class FixedConversation(Conversation):
    """
    Non-interactive conversation with preset credentials.

    Echo-off prompts get the password, echo-on prompts the user name.
    Every message is logged so scenarios can inspect notices such as
    the module's lockout message.
    """

    user: str
    password: str = attrs.field(repr=False)
    log: List[ConversationMessage] = attrs.Factory(list)

    def respond(self, message: ConversationMessage) -> Optional[str]:
        self.log.append(message)
        if message.style is MessageStyle.PROMPT_ECHO_OFF:
            return self.password
        if message.style is MessageStyle.PROMPT_ECHO_ON:
            return self.user
        return None

    @property
    def notices(self) -> Tuple[str, ...]:
        return tuple(m.text for m in self.log if not m.style.is_prompt)

    def reset(self) -> None:
        self.log.clear()


@attrs.define
class InteractiveConversation(Conversation):
    """Terminal conversation: prompts the operator, echoes notices to stderr."""

    received: List[str] = attrs.Factory(list)

    def respond(self, message: ConversationMessage) -> Optional[str]:
        prompt = message.text.rstrip().rstrip(":")
        if message.style is MessageStyle.PROMPT_ECHO_OFF:
            return click.prompt(prompt, hide_input=True, default="", show_default=False)
        if message.style is MessageStyle.PROMPT_ECHO_ON:
            return click.prompt(prompt, default="", show_default=False)
        self.received.append(message.text)
        click.echo(message.text, err=True)
        return None

    @property
    def notices(self) -> Tuple[str, ...]:
        return tuple(self.received)

    def reset(self) -> None:
        self.received.clear()
