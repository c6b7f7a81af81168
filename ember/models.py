from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, TypeDecorator, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class UTCDateTime(TypeDecorator):
    """Stores naive UTC in SQLite and hands back timezone-aware datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(UTC).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    pass


class Profile(Base):
    __tablename__ = "profiles"

    uid: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(300), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)  # "Founder" | "Funder"
    full_name: Mapped[str] = mapped_column(String(300), default="")
    photo_url: Mapped[str] = mapped_column(String(500), default="")
    # Founder
    startup_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    one_line_pitch: Mapped[str | None] = mapped_column(Text, nullable=True)
    industry: Mapped[str | None] = mapped_column(String(200), nullable=True)
    funding_stage: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pitch_deck_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    my_ask: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Funder
    firm_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    investment_thesis: Mapped[str | None] = mapped_column(Text, nullable=True)
    preferred_stage: Mapped[str | None] = mapped_column(String(100), nullable=True)
    what_i_offer: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_id: Mapped[str] = mapped_column(String(64), ForeignKey("profiles.uid"), nullable=False)
    # Author snapshot at post time; not refreshed on later profile edits.
    author_full_name: Mapped[str] = mapped_column(String(300), default="")
    author_photo_url: Mapped[str] = mapped_column(String(500), default="")
    author_role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (UniqueConstraint("conversation_id", "seq", name="uq_messages_conversation_seq"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[str] = mapped_column(String(140), nullable=False, index=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    sender_id: Mapped[str] = mapped_column(String(64), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
