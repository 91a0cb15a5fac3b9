"""
Reply rendering for the Nursing Knowledge Chatbot

Turns retrieval results into transport-neutral reply messages: text, image,
video, and button groups for department listings.
"""

import re
from typing import Dict, List, Optional

from nursebot.models import (
    ButtonsMessage,
    DepartmentListing,
    ImageMessage,
    KnowledgeDocument,
    MessageAction,
    RetrievalResult,
    TextMessage,
    VideoMessage,
)

BUTTONS_PER_MESSAGE = 4
MAX_LABEL_LENGTH = 20

_YOUTUBE_ID_PATTERN = re.compile(
    r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)([^\"&?/\s]{11})"
)


def extract_youtube_id(url: str) -> str:
    match = _YOUTUBE_ID_PATTERN.search(url)
    return match.group(1) if match else ""


def youtube_preview_url(url: str) -> str:
    return f"https://img.youtube.com/vi/{extract_youtube_id(url)}/maxresdefault.jpg"


def button_label(title: str) -> str:
    """Shorten a title to fit a button label."""
    if len(title) > MAX_LABEL_LENGTH:
        return title[: MAX_LABEL_LENGTH - 3] + "..."
    return title


class ReplyRenderer:
    """Renders retrieval results into reply messages."""

    def __init__(self, department_names: Optional[Dict[str, str]] = None):
        self.department_names = department_names or {}

    def department_name(self, code: str) -> str:
        return self.department_names.get(code, code.upper())

    def render_result(self, result: RetrievalResult) -> List:
        if isinstance(result, DepartmentListing):
            return self.render_department_listing(result)
        return self.render_document(result)

    def render_document(self, document: KnowledgeDocument) -> List:
        messages: List = []

        if document.text:
            messages.append(TextMessage(text=document.text))

        if document.image_url:
            messages.append(
                ImageMessage(
                    original_content_url=document.image_url,
                    preview_image_url=document.image_url,
                )
            )

        if document.video_url:
            preview = document.video_preview_url or youtube_preview_url(document.video_url)
            messages.append(
                VideoMessage(original_content_url=document.video_url, preview_image_url=preview)
            )

        return messages

    def render_department_listing(self, listing: DepartmentListing) -> List:
        name = self.department_name(listing.department)
        messages: List = [TextMessage(text=f"{name} knowledge entries:")]

        if not listing.entries:
            messages.append(TextMessage(text=f"{name} has no knowledge entries yet."))
            return messages

        for start in range(0, len(listing.entries), BUTTONS_PER_MESSAGE):
            group = listing.entries[start:start + BUTTONS_PER_MESSAGE]
            messages.append(
                ButtonsMessage(
                    alt_text=f"{name} knowledge entries",
                    title=f"{name} entries {start // BUTTONS_PER_MESSAGE + 1}",
                    text="Tap a button to open the entry",
                    actions=[
                        MessageAction(label=button_label(entry.title), text=entry.title)
                        for entry in group
                    ],
                )
            )

        return messages
