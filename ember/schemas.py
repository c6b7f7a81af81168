"""Pydantic request/response schemas for the Ember stores and API."""
from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Role = Literal["Founder", "Funder"]
ROLES: tuple[str, ...] = ("Founder", "Funder")

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}$")


class ConversationState(str, Enum):
    TRANSIENT = "transient"
    PERSISTED = "persisted"


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    uid: str
    email: str
    role: Role
    full_name: str
    photo_url: str
    startup_name: str | None = None
    one_line_pitch: str | None = None
    industry: str | None = None
    funding_stage: str | None = None
    pitch_deck_url: str | None = None
    my_ask: str | None = None
    firm_name: str | None = None
    investment_thesis: str | None = None
    preferred_stage: str | None = None
    what_i_offer: str | None = None


class ProfileUpdate(BaseModel):
    full_name: str | None = None
    photo_url: str | None = None
    startup_name: str | None = None
    one_line_pitch: str | None = None
    industry: str | None = None
    funding_stage: str | None = None
    pitch_deck_url: str | None = None
    my_ask: str | None = None
    firm_name: str | None = None
    investment_thesis: str | None = None
    preferred_stage: str | None = None
    what_i_offer: str | None = None


class AuthorSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_name: str
    photo_url: str
    role: Role


class PostOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    author_id: str
    author: AuthorSnapshot
    content: str
    timestamp: datetime


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    conversation_id: str
    seq: int
    sender_id: str
    text: str
    timestamp: datetime


class ConversationOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    participants: list[ProfileOut]
    last_message: MessageOut | None = None
    state: ConversationState


class SignUpRequest(BaseModel):
    email: str
    password: str = ""
    role: Role


class SignInRequest(BaseModel):
    email: str
    password: str = ""


class PostCreate(BaseModel):
    content: str


class MessageCreate(BaseModel):
    text: str


class FacetsOut(BaseModel):
    industries: list[str]
    funding_stages: list[str]
    preferred_stages: list[str]


class UserEvent(BaseModel):
    id: str
    title: str = Field(min_length=1)
    date: str
    time: str
    description: str = ""

    @field_validator("date")
    @classmethod
    def date_must_be_iso(cls, v: str) -> str:
        if not _DATE_RE.match(v):
            raise ValueError("date must be formatted YYYY-MM-DD")
        return v

    @field_validator("time")
    @classmethod
    def time_must_be_hh_mm(cls, v: str) -> str:
        if not _TIME_RE.match(v):
            raise ValueError("time must be formatted HH:MM")
        return v


class EventCreate(BaseModel):
    title: str
    date: str
    time: str
    description: str = ""
