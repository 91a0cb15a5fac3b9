"""
Chat service for the Nursing Knowledge Chatbot

Handles one inbound event at a time: records the user's message, looks up the
knowledge base, renders the answer or composes a fallback reply, and records
the bot's reply in the user's conversation history.
"""

import logging
from typing import List, NamedTuple, Union

from nursebot.memory import SessionStore
from nursebot.messages import ReplyRenderer
from nursebot.models import MediaKind, TextMessage
from nursebot.responses import ResponseComposer
from nursebot.retrieval import RetrievalEngine

# Configure logging
logger = logging.getLogger(__name__)


class ChatReply(NamedTuple):
    messages: List
    matched: bool


class ChatService:
    """Per-event orchestration over retrieval, rendering and session history."""

    def __init__(
        self,
        engine: RetrievalEngine,
        sessions: SessionStore,
        composer: ResponseComposer,
        renderer: ReplyRenderer,
    ):
        self.engine = engine
        self.sessions = sessions
        self.composer = composer
        self.renderer = renderer

    async def handle_text(self, user_id: str, text: str) -> ChatReply:
        """
        Answer a text message.

        Args:
            user_id: Sender's user id
            text: Message text

        Returns:
            ChatReply: Reply messages and whether the knowledge base answered
        """
        logger.info(f"Received text message from user {user_id}")

        try:
            await self.sessions.append_user_message(user_id, text)

            result = await self.engine.get_response(text)
            if result is not None:
                messages = self.renderer.render_result(result)
                await self.sessions.append_bot_message(user_id, messages)
                return ChatReply(messages=messages, matched=True)

            logger.debug("No knowledge match, composing a generic reply")
            reply = self.composer.compose_fallback(text)
            await self.sessions.append_bot_message(user_id, reply)
            return ChatReply(messages=[TextMessage(text=reply)], matched=False)

        except Exception as e:
            logger.error(f"Failed to handle text message from user {user_id}: {e}")
            return ChatReply(messages=[TextMessage(text=self.composer.error_reply())], matched=False)

    async def handle_media(self, user_id: str, kind: Union[MediaKind, str], media_id: str) -> ChatReply:
        """
        Acknowledge an image or video message.

        Media content is not analysed; the message is recorded as a
        placeholder and answered with a fixed acknowledgement.
        """
        kind = MediaKind(kind)
        logger.info(f"Received {kind.value} message {media_id} from user {user_id}")

        try:
            await self.sessions.append_user_media(user_id, kind, media_id)
            reply = self.composer.compose_media_ack(kind)
            await self.sessions.append_bot_message(user_id, reply)
            return ChatReply(messages=[TextMessage(text=reply)], matched=False)

        except Exception as e:
            logger.error(f"Failed to handle {kind.value} message from user {user_id}: {e}")
            return ChatReply(messages=[TextMessage(text=self.composer.error_reply())], matched=False)
