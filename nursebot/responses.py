"""
Fallback reply composition for the Nursing Knowledge Chatbot

Used when the knowledge base has no answer: greetings, thanks and help
requests get fixed replies, everything else gets a randomly assembled
"don't know" message pointing the user at department codes and keywords.
"""

import logging
import random
from typing import Optional, Sequence, Union

from nursebot.models import MediaKind

logger = logging.getLogger(__name__)

GREETING_PHRASES = ("你好", "哈囉", "嗨", "Hello", "hello")
GRATITUDE_PHRASES = ("謝謝", "感謝", "Thank", "thank")
HELP_PHRASES = ("幫助", "help", "使用說明")

GREETING_REPLY = "Hello! I'm the nursing knowledge assistant. How can I help you today?"

GRATITUDE_REPLY = "You're welcome! Glad I could help. Let me know if you have any other questions."

HELP_REPLY = (
    "Here is how to find what you need:\n\n"
    "1. Type a department code (such as \"ICU\", \"ER\", \"OR\", \"OPD\" or \"WARD\") "
    "to list all of that department's teaching material\n\n"
    "2. Type a specific keyword (such as \"CVVH\" or \"dialysis\") to open a single guide\n\n"
    "3. You can also type the name of the equipment or procedure you want to learn about"
)

DEFAULT_RESPONSES = (
    "I don't have information on that yet. Try a department name (such as \"ICU\", \"OR\" or \"ER\") "
    "or a specific teaching keyword (such as \"CVVH\").",
    "I can't answer that question. Type a department code (such as \"ICU\" or \"OPD\") to see all of "
    "its teaching material, or type a specific keyword to find a guide.",
    "Sorry, I didn't quite understand. You can type a department name (for example \"ICU\") to see "
    "everything it offers, or type a specific teaching keyword.",
    "That is outside what I know. Try a department code or the name of a specific piece of medical "
    "equipment to find related teaching material.",
)

FRIENDLY_PREFIXES = (
    "Thanks for your question!",
    "Thank you for asking.",
    "I'm happy to help.",
    "Thanks for reaching out.",
)

ENCOURAGING_SUFFIXES = (
    "Feel free to ask anything else.",
    "I hope this helps.",
    "Let me know if you need more information.",
    "Anything else? I'm glad to keep helping.",
)

MEDIA_ACKNOWLEDGEMENTS = {
    MediaKind.IMAGE: (
        "Thanks for sharing the image. I can't analyse images yet, "
        "but I'm happy to answer your text questions."
    ),
    MediaKind.VIDEO: (
        "Thanks for sharing the video. I can't analyse videos yet, "
        "but I'm happy to answer your text questions."
    ),
}

ERROR_REPLY = "Sorry, something went wrong while handling your message. Please try again later."


class ResponseComposer:
    """Builds replies for messages the knowledge base could not answer."""

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Args:
            rng: Random source for template selection; pass a seeded
                ``random.Random`` for reproducible output
        """
        self.rng = rng or random.Random()

    def compose_fallback(self, query: str) -> str:
        """
        Compose a generic reply for a query with no knowledge match.

        Args:
            query: Raw user text, matched case-sensitively

        Returns:
            A fixed reply for greetings, thanks and help requests, otherwise
            a random prefix, body and suffix joined by spaces
        """
        logger.debug(f"Composing fallback reply for query: {query!r}")

        special = self.special_reply(query)
        if special is not None:
            return special

        prefix = self._choose(FRIENDLY_PREFIXES)
        body = self._choose(DEFAULT_RESPONSES)
        suffix = self._choose(ENCOURAGING_SUFFIXES)
        return f"{prefix} {body} {suffix}"

    @staticmethod
    def special_reply(query: str) -> Optional[str]:
        if any(phrase in query for phrase in GREETING_PHRASES):
            return GREETING_REPLY
        if any(phrase in query for phrase in GRATITUDE_PHRASES):
            return GRATITUDE_REPLY
        if any(phrase in query for phrase in HELP_PHRASES):
            return HELP_REPLY
        return None

    @staticmethod
    def compose_media_ack(kind: Union[MediaKind, str]) -> str:
        return MEDIA_ACKNOWLEDGEMENTS[MediaKind(kind)]

    @staticmethod
    def error_reply() -> str:
        return ERROR_REPLY

    def _choose(self, pool: Sequence[str]) -> str:
        return pool[self.rng.randrange(len(pool))]
