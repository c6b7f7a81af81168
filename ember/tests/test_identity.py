"""Tests for the identity store and the session register."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from ember.errors import AuthenticationFailed, DuplicateIdentity, NotFound
from ember.identity import DEFAULT_FULL_NAME, seed_demo_profiles


# =========================================================================
# Identity store
# =========================================================================

class TestCreateProfile:
    def test_distinct_emails_succeed(self, ember):
        a = ember.identity.create_profile("a@x.com", "Founder")
        b = ember.identity.create_profile("b@x.com", "Funder")
        assert a.uid != b.uid
        assert {p.email for p in ember.identity.list_profiles()} == {"a@x.com", "b@x.com"}

    def test_duplicate_email_rejected(self, ember):
        ember.identity.create_profile("a@x.com", "Founder")
        with pytest.raises(DuplicateIdentity):
            ember.identity.create_profile("a@x.com", "Funder")
        assert len(ember.identity.list_profiles()) == 1

    def test_duplicate_email_ignores_case_and_whitespace(self, ember):
        ember.identity.create_profile("a@x.com", "Founder")
        with pytest.raises(DuplicateIdentity):
            ember.identity.create_profile("  A@X.com ", "Founder")

    def test_defaults_follow_role(self, ember):
        p = ember.identity.create_profile("a@x.com", "Founder")
        assert p.full_name == DEFAULT_FULL_NAME
        assert p.uid in p.photo_url
        assert p.startup_name == ""
        assert p.industry == ""
        assert p.firm_name is None
        assert p.preferred_stage is None

    def test_seed_fields_applied(self, ember):
        p = ember.identity.create_profile("g@x.com", "Funder", full_name="Gus", firm_name="Acme VC")
        assert p.full_name == "Gus"
        assert p.firm_name == "Acme VC"
        assert p.what_i_offer == ""

    def test_unknown_role_rejected(self, ember):
        with pytest.raises(ValueError):
            ember.identity.create_profile("a@x.com", "Mentor")

    def test_field_of_other_role_rejected(self, ember):
        with pytest.raises(ValueError):
            ember.identity.create_profile("a@x.com", "Founder", firm_name="Nope")
        assert ember.identity.list_profiles() == []

    def test_invalid_email_rejected(self, ember):
        with pytest.raises(ValueError):
            ember.identity.create_profile("not-an-email", "Founder")


class TestGetProfile:
    def test_found(self, ember, founder):
        assert ember.identity.get_profile(founder.uid) == founder

    def test_unknown_returns_none(self, ember):
        assert ember.identity.get_profile("missing") is None

    def test_find_by_email(self, ember, founder):
        assert ember.identity.find_by_email("F@X.COM").uid == founder.uid
        assert ember.identity.find_by_email("nobody@x.com") is None


class TestUpdateProfile:
    def test_partial_update_preserves_other_fields(self, ember):
        p = ember.identity.create_profile("a@x.com", "Founder", full_name="A", industry="X")
        updated = ember.identity.update_profile(p.uid, {"industry": "Y"})
        assert updated.full_name == "A"
        assert updated.industry == "Y"
        assert ember.identity.get_profile(p.uid) == updated

    def test_keyword_fields(self, ember, founder):
        updated = ember.identity.update_profile(founder.uid, my_ask="Intros to CFOs")
        assert updated.my_ask == "Intros to CFOs"
        assert updated.industry == "AI"

    def test_none_values_ignored(self, ember, founder):
        updated = ember.identity.update_profile(founder.uid, {"full_name": None, "industry": "Bio"})
        assert updated.full_name == "Frida Founder"
        assert updated.industry == "Bio"

    def test_unknown_uid(self, ember):
        with pytest.raises(NotFound):
            ember.identity.update_profile("missing", {"full_name": "X"})

    def test_identity_fields_not_updatable(self, ember, founder):
        with pytest.raises(ValueError):
            ember.identity.update_profile(founder.uid, {"role": "Funder"})
        with pytest.raises(ValueError):
            ember.identity.update_profile(founder.uid, {"email": "other@x.com", "full_name": "Z"})
        stored = ember.identity.get_profile(founder.uid)
        assert stored.role == "Founder"
        assert stored.full_name == "Frida Founder"

    def test_update_notifies_watchers(self, ember, founder):
        spy = MagicMock()
        ember.identity.subscribe_updates(spy)
        updated = ember.identity.update_profile(founder.uid, {"full_name": "Frida F."})
        spy.assert_called_once_with(updated)


class TestSeedDemoProfiles:
    def test_seeds_once(self, session_factory):
        with session_factory() as session:
            assert seed_demo_profiles(session) == 2
            session.commit()
        with session_factory() as session:
            assert seed_demo_profiles(session) == 0


# =========================================================================
# Session register
# =========================================================================

class TestSessionRegister:
    def test_subscribe_delivers_current_state_immediately(self, ember):
        spy = MagicMock()
        ember.auth.subscribe(spy)
        spy.assert_called_once_with(None)

    def test_sign_up_activates_and_notifies(self, ember):
        spy = MagicMock()
        ember.auth.subscribe(spy)
        profile = ember.auth.sign_up("new@x.com", "Funder", "pw")
        assert ember.auth.current_user == profile
        spy.assert_called_with(profile)
        assert spy.call_count == 2

    def test_sign_up_duplicate_leaves_state_intact(self, ember, founder):
        ember.auth.sign_in("f@x.com")
        with pytest.raises(DuplicateIdentity):
            ember.auth.sign_up("f@x.com", "Founder")
        assert ember.auth.current_user.uid == founder.uid

    def test_sign_in_accepts_any_password(self, ember, founder):
        assert ember.auth.sign_in("f@x.com", "whatever").uid == founder.uid

    def test_sign_in_unknown_email(self, ember):
        with pytest.raises(AuthenticationFailed):
            ember.auth.sign_in("ghost@x.com")
        assert ember.auth.current_user is None

    def test_sign_out_notifies_none(self, ember, founder):
        ember.auth.sign_in("f@x.com")
        spy = MagicMock()
        ember.auth.subscribe(spy)
        ember.auth.sign_out()
        assert ember.auth.current_user is None
        assert spy.call_args_list[-1].args == (None,)

    def test_second_subscriber_does_not_evict_first(self, ember, founder):
        first, second = MagicMock(), MagicMock()
        ember.auth.subscribe(first)
        ember.auth.subscribe(second)
        ember.auth.sign_in("f@x.com")
        assert first.call_count == 2
        assert second.call_count == 2

    def test_unsubscribe_stops_delivery(self, ember, founder):
        spy = MagicMock()
        unsubscribe = ember.auth.subscribe(spy)
        unsubscribe()
        ember.auth.sign_in("f@x.com")
        assert spy.call_count == 1

    def test_updating_current_user_refreshes_cache(self, ember, founder):
        ember.auth.sign_in("f@x.com")
        ember.identity.update_profile(founder.uid, {"full_name": "Renamed"})
        assert ember.auth.current_user.full_name == "Renamed"

    def test_updating_other_user_keeps_cache(self, ember, founder, funder):
        ember.auth.sign_in("f@x.com")
        ember.identity.update_profile(funder.uid, {"full_name": "Renamed"})
        assert ember.auth.current_user.full_name == "Frida Founder"


class TestProviderSignIn:
    @pytest.fixture()
    def seeded(self, ember, session_factory):
        with session_factory() as session:
            seed_demo_profiles(session)
            session.commit()
        return ember

    def test_google_resolves_demo_founder(self, seeded):
        profile = seeded.auth.sign_in_with_provider("google")
        assert profile.email == "founder@test.com"
        assert profile.role == "Founder"
        assert seeded.auth.current_user == profile

    def test_apple_resolves_demo_funder(self, seeded):
        assert seeded.auth.sign_in_with_provider("Apple").role == "Funder"

    def test_unknown_provider(self, seeded):
        with pytest.raises(AuthenticationFailed):
            seeded.auth.sign_in_with_provider("myspace")

    def test_missing_demo_account(self, ember):
        with pytest.raises(AuthenticationFailed):
            ember.auth.sign_in_with_provider("google")
