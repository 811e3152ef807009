# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request/response models for parent-tutor messaging."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

RecipientType = Literal["all", "group", "parent"]

MAX_IMAGES_PER_MESSAGE = 5


class ThreadCreateRequest(BaseModel):
    """Start a conversation.

    recipient_type "all" reaches every family, "group" a saved parent
    group, and "parent" an explicit list of families.
    """

    subject: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1, max_length=10000)
    recipient_type: RecipientType
    group_id: str | None = None
    parent_ids: list[str] | None = None
    images: list[str] = Field(default_factory=list, max_length=MAX_IMAGES_PER_MESSAGE)

    @model_validator(mode="after")
    def check_recipients(self) -> "ThreadCreateRequest":
        if self.recipient_type == "group" and not self.group_id:
            raise ValueError('group_id is required when recipient_type is "group"')
        if self.recipient_type == "parent" and not self.parent_ids:
            raise ValueError('parent_ids is required when recipient_type is "parent"')
        return self


class MessageSendRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)
    images: list[str] = Field(default_factory=list, max_length=MAX_IMAGES_PER_MESSAGE)


class ReactionToggleRequest(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=32)


class ReactionToggleResponse(BaseModel):
    added: bool = Field(..., description="True when added, False when removed")


class ReactionSummary(BaseModel):
    emoji: str
    count: int
    reacted_by_me: bool = False


class MessageResponse(BaseModel):
    id: str
    thread_id: str
    sender_id: str
    sender_name: str | None = None
    sender_role: str | None = None
    content: str
    images: list[str] = Field(default_factory=list)
    created_at: datetime
    reactions: list[ReactionSummary] = Field(default_factory=list)


class ThreadPreviewResponse(BaseModel):
    """Thread row in the inbox."""

    id: str
    subject: str
    created_by: str
    creator_name: str | None = None
    recipient_type: RecipientType
    group_id: str | None = None
    group_name: str | None = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    latest_message: MessageResponse | None = None
    unread_count: int = 0
    participant_count: int = 0


class ThreadListResponse(BaseModel):
    items: list[ThreadPreviewResponse]
    total: int


class ThreadDetailResponse(BaseModel):
    thread: ThreadPreviewResponse
    messages: list[MessageResponse] = Field(default_factory=list)


class UnreadCountResponse(BaseModel):
    unread: int


class BulkIdsRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1, max_length=200)


class ParentGroupCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    member_ids: list[str] = Field(default_factory=list)


class ParentGroupMembersRequest(BaseModel):
    parent_ids: list[str] = Field(..., min_length=1)


class ParentGroupResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    created_by: str
    member_ids: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
