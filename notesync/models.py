"""Wire models for meetings, notes and the collaborator endpoints.

Length limits mirror the backend validation rules so that an oversized
field fails locally instead of costing a round-trip.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_SUBJECT_LENGTH = 255
MAX_PARTICIPANTS_LENGTH = 1000
MAX_SUMMARY_LENGTH = 10000
MAX_KEYWORDS_LENGTH = 500
MAX_NOTE_CONTENT_LENGTH = 50000


class Meeting(BaseModel):
    id: int
    created_by: str = ""
    subject: str
    meeting_date: str
    start_time: str
    end_time: Optional[str] = None
    participants: Optional[str] = None
    summary: Optional[str] = None
    keywords: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Note(BaseModel):
    id: int
    meeting_id: int
    note_number: int
    content: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MeetingInput(BaseModel):
    """Body for POST /api/meetings and PUT /api/meetings/{id}."""

    subject: str = Field(..., min_length=1, max_length=MAX_SUBJECT_LENGTH)
    meeting_date: str = Field(..., min_length=1)
    start_time: str = Field(..., min_length=1)
    end_time: Optional[str] = None
    participants: Optional[str] = Field(None, max_length=MAX_PARTICIPANTS_LENGTH)
    summary: Optional[str] = Field(None, max_length=MAX_SUMMARY_LENGTH)
    keywords: Optional[str] = Field(None, max_length=MAX_KEYWORDS_LENGTH)

    @field_validator("end_time", "participants", "summary", "keywords", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        # Cleared form fields are sent as null, not "".
        if isinstance(value, str) and value == "":
            return None
        return value

    @classmethod
    def from_meeting(cls, meeting: Meeting, **overrides) -> "MeetingInput":
        data = meeting.model_dump(
            include={
                "subject",
                "meeting_date",
                "start_time",
                "end_time",
                "participants",
                "summary",
                "keywords",
            }
        )
        data.update(overrides)
        return cls(**data)


class NoteCreate(BaseModel):
    meeting_id: int
    content: str = Field(..., min_length=1, max_length=MAX_NOTE_CONTENT_LENGTH)


class NoteUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=MAX_NOTE_CONTENT_LENGTH)


class EnhanceResult(BaseModel):
    content: str


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class UserInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: str = Field("", alias="displayName")
    login_name: str = Field("", alias="loginName")
    profile_pic_url: str = Field("", alias="profilePicURL")
    node_name: str = Field("", alias="nodeName")
    node_id: str = Field("", alias="nodeID")


class LLMConfig(BaseModel):
    llm_provider_url: str = ""
    llm_api_key: str = ""
    llm_model: str = ""
    language: str = ""
