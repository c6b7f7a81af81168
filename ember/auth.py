"""Session register: the single currently authenticated identity.

The mock accepts any password; a credential resolves purely by email.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ember.errors import AuthenticationFailed
from ember.identity import IdentityStore
from ember.observers import ObserverRegistry, Unsubscribe
from ember.schemas import ProfileOut

log = logging.getLogger(__name__)

SESSION_TOPIC = "session"

# Social sign-in resolves to a fixed demo account per provider.
PROVIDER_ACCOUNTS = {
    "google": "founder@test.com",
    "apple": "funder@test.com",
}


class SessionRegister:
    def __init__(self, identity: IdentityStore, registry: ObserverRegistry):
        self._identity = identity
        self._registry = registry
        self._current: ProfileOut | None = None
        identity.subscribe_updates(self._on_profile_updated)

    @property
    def current_user(self) -> ProfileOut | None:
        return self._current

    def sign_in(self, email: str, password: str = "") -> ProfileOut:
        profile = self._identity.find_by_email(email)
        if profile is None:
            raise AuthenticationFailed("Authentication error: User not found.")
        self._activate(profile)
        return profile

    def sign_up(self, email: str, role: str, password: str = "", **seed_fields: Any) -> ProfileOut:
        profile = self._identity.create_profile(email, role, **seed_fields)
        self._activate(profile)
        return profile

    def sign_in_with_provider(self, provider: str) -> ProfileOut:
        email = PROVIDER_ACCOUNTS.get(provider.strip().lower())
        if email is None:
            raise AuthenticationFailed(f"Unsupported sign-in provider: {provider}")
        profile = self._identity.find_by_email(email)
        if profile is None:
            raise AuthenticationFailed(f"Mock {provider.title()} user not found.")
        self._activate(profile)
        return profile

    def sign_out(self) -> None:
        if self._current is not None:
            log.info("Signed out %s", self._current.uid)
        self._current = None
        self._registry.publish(SESSION_TOPIC, None)

    def subscribe(self, callback: Callable[[ProfileOut | None], None]) -> Unsubscribe:
        """Deliver the current identity now and on every change."""
        return self._registry.subscribe(SESSION_TOPIC, callback, initial=self._current)

    def _activate(self, profile: ProfileOut) -> None:
        self._current = profile
        log.info("Signed in %s (%s)", profile.uid, profile.role)
        self._registry.publish(SESSION_TOPIC, profile)

    def _on_profile_updated(self, profile: ProfileOut) -> None:
        if self._current is None or self._current.uid != profile.uid:
            return
        self._current = profile
        self._registry.publish(SESSION_TOPIC, profile)
