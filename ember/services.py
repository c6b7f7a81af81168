"""Shared business logic for the Ember API and MCP server."""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.orm import Session

from ember.auth import SessionRegister
from ember.feed import PostLedger
from ember.identity import IdentityStore, seed_demo_profiles
from ember.messaging import ConversationIndex, MessageLog
from ember.models import Message, Post, Profile
from ember.observers import ObserverRegistry
from ember.schedule import LocalStorage, ScheduleStore
from ember.schemas import PostOut, ProfileOut
from ember.utils import utcnow

log = logging.getLogger(__name__)

FACET_FIELDS = {
    "industries": ("Founder", "industry"),
    "funding_stages": ("Founder", "funding_stage"),
    "preferred_stages": ("Funder", "preferred_stage"),
}

# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


def filter_profiles(
    profiles: Iterable[ProfileOut], *, role=None, search=None,
    industry=None, funding_stage=None, preferred_stage=None,
) -> list[ProfileOut]:
    """Directory filter: exact role and facet matches, case-insensitive name search."""
    items = list(profiles)
    if role:
        items = [p for p in items if p.role == role]
    if industry:
        items = [p for p in items if p.industry == industry]
    if funding_stage:
        items = [p for p in items if p.funding_stage == funding_stage]
    if preferred_stage:
        items = [p for p in items if p.preferred_stage == preferred_stage]
    if search:
        q = search.lower()
        items = [p for p in items if q in p.full_name.lower()]
    return items


def facet_values(profiles: Iterable[ProfileOut]) -> dict[str, list[str]]:
    """Distinct non-empty filter values per directory facet, in first-seen order."""
    profiles = list(profiles)
    result: dict[str, list[str]] = {}
    for key, (role, attr) in FACET_FIELDS.items():
        seen: dict[str, None] = {}
        for p in profiles:
            value = getattr(p, attr)
            if p.role == role and value:
                seen.setdefault(value, None)
        result[key] = list(seen)
    return result


def filter_posts(posts: Iterable[PostOut], role=None) -> list[PostOut]:
    if not role or role == "All":
        return list(posts)
    return [p for p in posts if p.author.role == role]


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


@dataclass
class Ember:
    """Every store wired to one session factory and one observer registry."""

    session_factory: Callable[[], Session]
    registry: ObserverRegistry
    identity: IdentityStore
    auth: SessionRegister
    feed: PostLedger
    conversations: ConversationIndex
    messages: MessageLog
    schedule: ScheduleStore
    seed_demo: bool = False

    def reset(self) -> None:
        """Test-harness reset: wipe all data, re-seed if configured, sign out."""
        with self.session_factory() as session:
            session.execute(delete(Message))
            session.execute(delete(Post))
            session.execute(delete(Profile))
            if self.seed_demo:
                seed_demo_profiles(session)
            session.commit()
        self.schedule.clear_events()
        self.auth.sign_out()
        log.info("Store reset")


def build_services(
    session_factory: Callable[[], Session],
    *,
    storage: LocalStorage | None = None,
    clock: Callable[[], datetime] = utcnow,
    seed_demo: bool = False,
) -> Ember:
    registry = ObserverRegistry()
    identity = IdentityStore(session_factory, registry)
    return Ember(
        session_factory=session_factory,
        registry=registry,
        identity=identity,
        auth=SessionRegister(identity, registry),
        feed=PostLedger(session_factory, registry, clock),
        conversations=ConversationIndex(session_factory),
        messages=MessageLog(session_factory, registry, clock),
        schedule=ScheduleStore(storage or LocalStorage()),
        seed_demo=seed_demo,
    )
