"""
Pydantic models and schemas for the Nursing Knowledge Chatbot

This module defines data models for knowledge records, keyword index targets,
conversation history, reply messages, and API requests and responses
using Pydantic for validation and serialization.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    """Enumeration for message roles in conversation."""
    USER = "user"
    BOT = "bot"


class MediaKind(str, Enum):
    """Kinds of non-text content a user can send."""
    IMAGE = "image"
    VIDEO = "video"


# Keyword index targets

class DocumentRef(BaseModel):
    """Keyword index target pointing at a single knowledge document."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["document"] = "document"
    document_id: str


class DepartmentRef(BaseModel):
    """Keyword index target pointing at a whole department."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["department"] = "department"
    department_code: str


TargetRef = Union[DocumentRef, DepartmentRef]


# Knowledge records

class KnowledgeDocument(BaseModel):
    """A knowledge record as stored under ``knowledge:<id>``."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Document identifier, <department>-<slug>")
    keywords: List[str] = Field(default_factory=list, description="Keywords routed to this document")
    text: str = Field(..., description="Markup body with a '#' title line")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    video_url: Optional[str] = Field(None, alias="videoUrl")
    video_preview_url: Optional[str] = Field(None, alias="videoPreviewUrl")

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the persisted JSON shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


class DepartmentEntry(BaseModel):
    """Short listing entry derived from a knowledge document."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    short_description: str = Field(..., alias="shortDescription")


class DepartmentListing(BaseModel):
    """All knowledge entries belonging to one department (possibly none)."""
    model_config = ConfigDict(populate_by_name=True)

    is_department_listing: Literal[True] = Field(True, alias="isDepartmentListing")
    department: str
    entries: List[DepartmentEntry] = Field(default_factory=list)


RetrievalResult = Union[KnowledgeDocument, DepartmentListing]


class LookupStatus(str, Enum):
    """Outcome of a single storage-backed lookup."""
    OK = "ok"
    MISS = "miss"
    STORAGE_ERROR = "storage_error"


class Lookup(BaseModel):
    """Internal lookup result separating 'not found' from 'backend failing'."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: LookupStatus
    value: Any = None
    detail: Optional[str] = None

    @classmethod
    def ok(cls, value: Any) -> "Lookup":
        return cls(status=LookupStatus.OK, value=value)

    @classmethod
    def miss(cls) -> "Lookup":
        return cls(status=LookupStatus.MISS)

    @classmethod
    def error(cls, detail: str) -> "Lookup":
        return cls(status=LookupStatus.STORAGE_ERROR, detail=detail)

    @property
    def is_ok(self) -> bool:
        return self.status == LookupStatus.OK

    def unwrap_or_none(self) -> Any:
        return self.value if self.is_ok else None


# Conversation history

class ConversationEntry(BaseModel):
    """Model for an individual conversation history entry."""
    model_config = ConfigDict(frozen=True)

    role: MessageRole = Field(..., description="Role of the message sender")
    content: str = Field(..., description="Message content")
    timestamp: datetime = Field(default_factory=utc_now, description="Message timestamp")


class ConversationContext(BaseModel):
    """Bounded per-user conversation state."""
    history: List[ConversationEntry] = Field(default_factory=list)
    last_interaction: datetime = Field(default_factory=utc_now)


# Reply messages

class TextMessage(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["image"] = "image"
    original_content_url: str = Field(..., alias="originalContentUrl")
    preview_image_url: str = Field(..., alias="previewImageUrl")


class VideoMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["video"] = "video"
    original_content_url: str = Field(..., alias="originalContentUrl")
    preview_image_url: str = Field(..., alias="previewImageUrl")


class MessageAction(BaseModel):
    """Button that sends ``text`` back as a user message when tapped."""
    type: Literal["message"] = "message"
    label: str
    text: str


class ButtonsMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["buttons"] = "buttons"
    alt_text: str = Field(..., alias="altText")
    title: str
    text: str
    actions: List[MessageAction] = Field(..., max_length=4)


ReplyMessage = Annotated[
    Union[TextMessage, ImageMessage, VideoMessage, ButtonsMessage],
    Field(discriminator="type"),
]


# API models

class ChatRequest(BaseModel):
    """Request model for the text chat endpoint."""
    user_id: str = Field(..., min_length=1, description="Opaque messaging-platform user id")
    text: str = Field(..., min_length=1, max_length=1000, description="User's message")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError("Text cannot be empty or whitespace only")
        return v


class MediaRequest(BaseModel):
    """Request model for image/video messages."""
    user_id: str = Field(..., min_length=1)
    kind: MediaKind
    media_id: str = Field(..., min_length=1)


class ChatResponse(BaseModel):
    """Response model for chat endpoints."""
    user_id: str = Field(..., description="User the reply is addressed to")
    messages: List[ReplyMessage] = Field(..., description="Rendered reply messages")
    matched: bool = Field(False, description="Whether the knowledge base answered")
    response_time_ms: Optional[int] = Field(None, description="Response time in milliseconds")
    timestamp: datetime = Field(default_factory=utc_now)


class KeywordSearchResponse(BaseModel):
    """Diagnostic keyword index search result."""
    query: str
    matches: Dict[str, str] = Field(default_factory=dict)
    departments: Dict[str, str] = Field(default_factory=dict)


class DocumentSearchResponse(BaseModel):
    """Full-text document search result."""
    query: str
    results: List[DepartmentEntry]
    total_results: int


class SystemCheck(BaseModel):
    """Knowledge base diagnostic snapshot."""
    status: str = "healthy"
    environment: str
    store_configured: bool = False
    keyword_index_exists: bool = False
    index_contents: Optional[Dict[str, str]] = None
    knowledge_entries_count: int = 0
    department_entries: Dict[str, int] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


class SessionStats(BaseModel):
    """Model for conversation memory statistics."""
    user_id: str
    total_messages: int
    last_interaction: datetime


class SessionHistoryResponse(BaseModel):
    user_id: str
    history: List[ConversationEntry]


class IndexingResponse(BaseModel):
    """Response model for knowledge ingestion."""
    success: bool = Field(..., description="Whether indexing was successful")
    total_documents: int = Field(..., description="Total number of documents written")
    total_keywords: int = Field(..., description="Entries in the written keyword index")
    processing_time_ms: int = Field(..., description="Processing time in milliseconds")
    errors: List[str] = Field(default_factory=list, description="List of errors encountered")
    indexed_ids: List[str] = Field(default_factory=list, description="Successfully indexed ids")


class HealthCheckResponse(BaseModel):
    """Response model for health check endpoint."""
    status: str = Field(..., description="Health status")
    timestamp: datetime = Field(default_factory=utc_now)
    components: Dict[str, bool] = Field(..., description="Component health status")
    version: str = Field(..., description="Application version")


class ErrorResponse(BaseModel):
    """Response model for API errors."""
    error: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=utc_now)
