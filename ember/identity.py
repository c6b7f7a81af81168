"""Identity store: user profiles keyed by a stable, never-reused uid."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ember.errors import DuplicateIdentity, NotFound
from ember.models import Profile
from ember.observers import ObserverRegistry
from ember.schemas import ROLES, ProfileOut

log = logging.getLogger(__name__)

PROFILES_TOPIC = "profiles"

DEFAULT_FULL_NAME = "New User"

COMMON_FIELDS = ("full_name", "photo_url")
FOUNDER_FIELDS = (
    "startup_name", "one_line_pitch", "industry", "funding_stage", "pitch_deck_url", "my_ask",
)
FUNDER_FIELDS = ("firm_name", "investment_thesis", "preferred_stage", "what_i_offer")
ROLE_FIELDS = {"Founder": FOUNDER_FIELDS, "Funder": FUNDER_FIELDS}

DEMO_PROFILES: tuple[dict[str, str], ...] = (
    {
        "uid": "1", "email": "founder@test.com", "role": "Founder",
        "full_name": "Alex Founder", "photo_url": "https://picsum.photos/seed/1/200",
        "startup_name": "Innovate AI",
        "one_line_pitch": "AI-powered solutions for modern businesses.",
        "industry": "AI", "funding_stage": "Seed",
        "my_ask": "Seeking connections with enterprise clients and strategic partners.",
        "pitch_deck_url": "#",
    },
    {
        "uid": "2", "email": "funder@test.com", "role": "Funder",
        "full_name": "Bella Funder", "photo_url": "https://picsum.photos/seed/2/200",
        "firm_name": "Capital Ventures",
        "investment_thesis": "Investing in disruptive, early-stage SaaS and FinTech companies.",
        "preferred_stage": "Seed",
        "what_i_offer": "Extensive mentorship, operational support, and access to our network.",
    },
)


def placeholder_photo(uid: str) -> str:
    return f"https://picsum.photos/seed/{uid}/200"


def normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if "@" not in email:
        raise ValueError(f"Invalid email address: {email!r}")
    return email


def updatable_fields(role: str) -> tuple[str, ...]:
    return COMMON_FIELDS + ROLE_FIELDS[role]


def _check_fields(role: str, fields: dict[str, Any]) -> None:
    allowed = updatable_fields(role)
    unknown = sorted(k for k in fields if k not in allowed)
    if unknown:
        raise ValueError(f"Fields not applicable to {role} profiles: {', '.join(unknown)}")


def seed_demo_profiles(session: Session) -> int:
    """Insert the demo profiles that are not present yet (caller must commit)."""
    added = 0
    for data in DEMO_PROFILES:
        exists = session.execute(
            select(Profile.uid).where((Profile.uid == data["uid"]) | (Profile.email == data["email"]))
        ).first()
        if exists:
            continue
        role = data["role"]
        defaults = {f: "" for f in ROLE_FIELDS[role]}
        session.add(Profile(**{**defaults, **data}))
        added += 1
    return added


class IdentityStore:
    def __init__(self, session_factory: Callable[[], Session], registry: ObserverRegistry):
        self._session_factory = session_factory
        self._registry = registry

    def create_profile(self, email: str, role: str, **seed_fields: Any) -> ProfileOut:
        """Create a profile for *email*. Raises DuplicateIdentity if the email is bound."""
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        email = normalize_email(email)
        _check_fields(role, seed_fields)
        uid = uuid.uuid4().hex
        values: dict[str, Any] = {f: "" for f in ROLE_FIELDS[role]}
        values.update(full_name=DEFAULT_FULL_NAME, photo_url=placeholder_photo(uid))
        values.update({k: v for k, v in seed_fields.items() if v is not None})
        with self._session_factory() as session:
            if self._find_by_email(session, email) is not None:
                raise DuplicateIdentity("Authentication error: Email already in use.")
            row = Profile(uid=uid, email=email, role=role, **values)
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateIdentity("Authentication error: Email already in use.") from exc
            profile = ProfileOut.model_validate(row)
        log.info("Created %s profile %s", role, uid)
        return profile

    def get_profile(self, uid: str) -> ProfileOut | None:
        with self._session_factory() as session:
            row = session.get(Profile, uid)
            return ProfileOut.model_validate(row) if row is not None else None

    def find_by_email(self, email: str) -> ProfileOut | None:
        try:
            email = normalize_email(email)
        except ValueError:
            return None
        with self._session_factory() as session:
            row = self._find_by_email(session, email)
            return ProfileOut.model_validate(row) if row is not None else None

    def update_profile(self, uid: str, fields: dict[str, Any] | None = None, **kwargs: Any) -> ProfileOut:
        """Shallow-merge *fields* into the stored profile and return the result.

        Named fields overwrite, omitted fields persist. ``None`` values are
        treated as omitted.
        """
        updates = {k: v for k, v in {**(fields or {}), **kwargs}.items() if v is not None}
        with self._session_factory() as session:
            row = session.get(Profile, uid)
            if row is None:
                raise NotFound(f"Profile {uid} not found")
            _check_fields(row.role, updates)
            for field, value in updates.items():
                setattr(row, field, value)
            session.commit()
            profile = ProfileOut.model_validate(row)
        self._registry.publish(PROFILES_TOPIC, profile)
        return profile

    def list_profiles(self) -> list[ProfileOut]:
        with self._session_factory() as session:
            rows = session.execute(select(Profile).order_by(Profile.created_at, Profile.uid)).scalars().all()
            return [ProfileOut.model_validate(r) for r in rows]

    def subscribe_updates(self, callback: Callable[[ProfileOut], None]):
        """Watch every successful profile update."""
        return self._registry.subscribe(PROFILES_TOPIC, callback)

    @staticmethod
    def _find_by_email(session: Session, email: str) -> Profile | None:
        return session.execute(select(Profile).where(Profile.email == email)).scalars().first()
