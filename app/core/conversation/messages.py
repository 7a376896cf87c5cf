"""Inbound message types, decoupled from the webhook wire format."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

DEFAULT_CONTACT_NAME = "ahí"
"""Used for {{name}} when the contact has no profile name ("Hola ahí")."""


class MessageKind(str, Enum):
    """What the user sent."""

    TEXT = "text"
    INTERACTIVE = "interactive"  # list_reply or button_reply
    OTHER = "other"  # images, audio, locations, reactions...


@dataclass
class InboundMessage:
    """One message from a user."""

    sender: str  # wa_id
    kind: MessageKind
    message_id: str = ""
    text: str = ""
    selected_id: Optional[str] = None
    selected_title: Optional[str] = None

    @classmethod
    def text_message(cls, sender: str, text: str, message_id: str = "") -> "InboundMessage":
        """Build a free text message."""
        return cls(sender=sender, kind=MessageKind.TEXT, text=text, message_id=message_id)

    @classmethod
    def selection(
        cls,
        sender: str,
        selected_id: str,
        selected_title: Optional[str] = None,
        message_id: str = "",
    ) -> "InboundMessage":
        """Build a list or button selection."""
        return cls(
            sender=sender,
            kind=MessageKind.INTERACTIVE,
            selected_id=selected_id,
            selected_title=selected_title,
            message_id=message_id,
        )


@dataclass
class InboundEvent:
    """Messages delivered together for one business phone number."""

    phone_number_id: str
    contact_name: str = ""
    messages: list[InboundMessage] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        """Contact name for templates, never blank."""
        return self.contact_name.strip() or DEFAULT_CONTACT_NAME
