"""Pydantic schemas for chat messages and their structured attachments."""

from datetime import datetime
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class _TaskProposalBase(BaseModel):
    """Fields shared by every task proposal variant."""

    summary: str = Field(..., min_length=1, description="One-line description of the change")
    details: str = Field("", description="Longer description shown under the summary")
    confirmed: bool = Field(False, description="User accepted the proposal")
    rejected: bool = Field(False, description="User rejected the proposal")


class CreateTaskProposal(_TaskProposalBase):
    """Proposal to create a new task."""

    action: Literal["create"] = "create"
    task_id: str | None = Field(
        None,
        validation_alias=AliasChoices("task_id", "taskId"),
        description="Assigned once the task exists",
    )


class UpdateTaskProposal(_TaskProposalBase):
    """Proposal to change an existing task."""

    action: Literal["update"]
    task_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("task_id", "taskId")
    )


class CommentTaskProposal(_TaskProposalBase):
    """Proposal to comment on an existing task."""

    action: Literal["comment"]
    task_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("task_id", "taskId")
    )


TaskProposal = Annotated[
    CreateTaskProposal | UpdateTaskProposal | CommentTaskProposal,
    Field(discriminator="action"),
]


class SearchReference(BaseModel):
    """A past message cited by a search result."""

    date: str
    participant: str
    snippet: str
    conversation_id: UUID | None = Field(
        None, validation_alias=AliasChoices("conversation_id", "conversationId")
    )
    message_id: UUID | None = Field(
        None, validation_alias=AliasChoices("message_id", "messageId")
    )
    conversation_name: str | None = Field(
        None, validation_alias=AliasChoices("conversation_name", "conversationName")
    )


class SearchResult(BaseModel):
    """Search summary attached to an AI message."""

    query: str = Field(..., min_length=1)
    summary: str
    references: list[SearchReference] = Field(default_factory=list)


class MessageCreate(BaseModel):
    """Schema for creating a message.

    The author is always supplied by the caller; there is no implicit
    default user.
    """

    conversation_id: UUID = Field(..., description="Conversation the message belongs to")
    author_id: UUID = Field(..., description="User who wrote the message")
    content: str = Field(..., min_length=1, description="Message text")
    is_ai: bool = Field(False, description="Message was generated by the assistant")
    task_proposal: TaskProposal | None = None
    search_result: SearchResult | None = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be blank")
        return value


class MessageRead(BaseModel):
    """Schema for reading a message.

    The raw vector is not returned; ``has_embedding`` reports whether one
    has been stored.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_id: UUID
    author_id: UUID
    content: str
    is_ai: bool
    task_proposal: TaskProposal | None = None
    search_result: SearchResult | None = None
    has_embedding: bool
    created_at: datetime
    updated_at: datetime


class MessageList(BaseModel):
    """A page of messages."""

    data: list[MessageRead]
    count: int = Field(..., ge=0)


def dump_attachment(value: BaseModel | None) -> dict[str, Any] | None:
    """Serialize an attachment for a JSONB column."""
    if value is None:
        return None
    return value.model_dump(mode="json")
