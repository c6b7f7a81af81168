"""Direct messaging: per-conversation message logs and the conversation index.

A conversation is never stored. Its id is derived from the two participant
uids, and it exists (is *persisted*) exactly when its log holds at least one
message. Before that it is *transient*: participants known, nothing saved.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ember.errors import EmptyText, InternalInconsistency, NotFound, NotParticipant
from ember.models import Message, Profile
from ember.observers import ObserverRegistry, Unsubscribe
from ember.schemas import ConversationOut, ConversationState, MessageOut, ProfileOut
from ember.utils import is_blank, utcnow

log = logging.getLogger(__name__)

SEPARATOR = "_"


def canonical_id(uid_a: str, uid_b: str) -> str:
    """Order-independent conversation id for a pair of uids."""
    for uid in (uid_a, uid_b):
        if not uid or SEPARATOR in uid:
            raise ValueError(f"Invalid participant uid: {uid!r}")
    if uid_a == uid_b:
        raise ValueError("A conversation needs two distinct participants")
    return SEPARATOR.join(sorted((uid_a, uid_b)))


def split_conversation_id(conversation_id: str) -> tuple[str, str]:
    parts = (conversation_id or "").split(SEPARATOR)
    if len(parts) != 2 or not all(parts) or parts[0] == parts[1]:
        raise ValueError(f"Malformed conversation id: {conversation_id!r}")
    return parts[0], parts[1]


def messages_topic(conversation_id: str) -> tuple[str, str]:
    return ("messages", conversation_id)


def _last_message(session: Session, conversation_id: str) -> Message | None:
    return session.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.seq.desc())
        .limit(1)
    ).scalars().first()


class MessageLog:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: ObserverRegistry,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._registry = registry
        self._clock = clock

    def append(self, conversation_id: str, sender_id: str, text: str) -> MessageOut:
        """Append *text* from *sender_id*; the first append persists the conversation."""
        if is_blank(text):
            raise EmptyText("Message text must not be empty.")
        participants = split_conversation_id(conversation_id)
        if sender_id not in participants:
            raise NotParticipant(f"{sender_id} is not a participant of {conversation_id}")
        with self._session_factory() as session:
            for uid in participants:
                if session.get(Profile, uid) is None:
                    raise NotFound(f"Profile {uid} not found")
            last_seq = session.execute(
                select(func.max(Message.seq)).where(Message.conversation_id == conversation_id)
            ).scalar()
            row = Message(
                conversation_id=conversation_id,
                seq=(last_seq or 0) + 1,
                sender_id=sender_id,
                text=text,
                timestamp=self._clock(),
            )
            session.add(row)
            session.commit()
            message = MessageOut.model_validate(row)
            snapshot = self._snapshot(session, conversation_id)
        if message.seq == 1:
            log.info("Conversation %s persisted", conversation_id)
        self._registry.publish(messages_topic(conversation_id), snapshot)
        return message

    def list_messages(self, conversation_id: str) -> list[MessageOut]:
        """The conversation's messages in insertion order; empty if it is transient."""
        with self._session_factory() as session:
            return self._snapshot(session, conversation_id)

    def has_messages(self, conversation_id: str) -> bool:
        with self._session_factory() as session:
            return _last_message(session, conversation_id) is not None

    def subscribe(self, conversation_id: str, callback: Callable[[list[MessageOut]], None]) -> Unsubscribe:
        """Watch one conversation: current log now, full log after every append."""
        return self._registry.subscribe(
            messages_topic(conversation_id), callback, initial=self.list_messages(conversation_id),
        )

    @staticmethod
    def _snapshot(session: Session, conversation_id: str) -> list[MessageOut]:
        rows = session.execute(
            select(Message).where(Message.conversation_id == conversation_id).order_by(Message.seq)
        ).scalars().all()
        return [MessageOut.model_validate(r) for r in rows]


class ConversationIndex:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def list_for_user(self, uid: str) -> list[ConversationOut]:
        """Persisted conversations *uid* takes part in, most recent activity first."""
        with self._session_factory() as session:
            conversation_ids = session.execute(select(Message.conversation_id).distinct()).scalars().all()
            conversations = []
            for conversation_id in conversation_ids:
                try:
                    participants = split_conversation_id(conversation_id)
                except ValueError:
                    log.warning("Skipping malformed conversation id %r", conversation_id)
                    continue
                if uid not in participants:
                    continue
                other = participants[1] if participants[0] == uid else participants[0]
                try:
                    profiles = self._resolve(session, (uid, other))
                except InternalInconsistency as exc:
                    log.warning("Dropping conversation %s: %s", conversation_id, exc)
                    continue
                last = _last_message(session, conversation_id)
                conversations.append(ConversationOut(
                    id=conversation_id,
                    participants=profiles,
                    last_message=MessageOut.model_validate(last) if last is not None else None,
                    state=ConversationState.PERSISTED if last is not None else ConversationState.TRANSIENT,
                ))

        def sort_key(conv: ConversationOut):
            last = conv.last_message
            if last is None:
                return (0, 0.0, 0)
            return (1, last.timestamp.timestamp(), last.id)

        conversations.sort(key=sort_key, reverse=True)
        return conversations

    def open(self, uid: str, other_uid: str) -> ConversationOut:
        """The conversation between two users: persisted if it has messages, else transient."""
        conversation_id = canonical_id(uid, other_uid)
        with self._session_factory() as session:
            profiles = []
            for participant in (uid, other_uid):
                row = session.get(Profile, participant)
                if row is None:
                    raise NotFound(f"Profile {participant} not found")
                profiles.append(ProfileOut.model_validate(row))
            last = _last_message(session, conversation_id)
        if last is None:
            return ConversationOut(
                id=conversation_id, participants=profiles, state=ConversationState.TRANSIENT,
            )
        return ConversationOut(
            id=conversation_id,
            participants=profiles,
            last_message=MessageOut.model_validate(last),
            state=ConversationState.PERSISTED,
        )

    @staticmethod
    def _resolve(session: Session, uids: tuple[str, str]) -> list[ProfileOut]:
        profiles = []
        for uid in uids:
            row = session.get(Profile, uid)
            if row is None:
                raise InternalInconsistency(f"participant {uid} no longer resolves")
            profiles.append(ProfileOut.model_validate(row))
        return profiles
