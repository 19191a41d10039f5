"""Tests for browsing other users' identities."""

from datetime import datetime, timedelta, timezone

import pytest

from app.models.consent import Consent
from app.services.explore import explore_identities
from conftest import user_headers


def _now():
    return datetime.now(timezone.utc)


@pytest.fixture
def owner(make_user):
    return make_user("owner")


@pytest.fixture
def viewer(make_user):
    return make_user("viewer")


def _grant_to_user(db, *, owner, viewer, identity_id=None, scopes=("identity.read",), **extra):
    consent = Consent(
        user_id=owner.id,
        requesting_user_id=viewer.id,
        identity_id=identity_id,
        granted_scopes=list(scopes),
        granted_at=_now(),
        **extra,
    )
    db.add(consent)
    db.commit()
    return consent


def _ids(cards):
    return {card["id"] for card in cards}


class TestExploreService:

    def test_public_identities_are_listed(self, db, owner, viewer, make_identity):
        public = make_identity(owner, visibility="PUBLIC")
        make_identity(owner, visibility="PRIVATE")
        make_identity(owner, visibility="AUTHENTICATED_USERS")
        assert _ids(explore_identities(db, viewer.id)) == {public.id}

    def test_own_identities_are_never_listed(self, db, viewer, make_identity):
        make_identity(viewer, visibility="PUBLIC")
        assert explore_identities(db, viewer.id) == []

    def test_identity_level_grant_lists_only_that_identity(self, db, owner, viewer, make_identity):
        shared = make_identity(owner, visibility="PRIVATE")
        make_identity(owner, visibility="PRIVATE", identity_label="Hidden")
        _grant_to_user(db, owner=owner, viewer=viewer, identity_id=shared.id)
        assert _ids(explore_identities(db, viewer.id)) == {shared.id}

    def test_user_level_grant_lists_every_identity_of_the_owner(self, db, owner, viewer, make_identity):
        first = make_identity(owner, visibility="PRIVATE")
        second = make_identity(owner, visibility="APP_SPECIFIC")
        _grant_to_user(db, owner=owner, viewer=viewer)
        assert _ids(explore_identities(db, viewer.id)) == {first.id, second.id}

    def test_profile_scope_implies_identity_read(self, db, owner, viewer, make_identity):
        shared = make_identity(owner, visibility="PRIVATE")
        _grant_to_user(db, owner=owner, viewer=viewer, identity_id=shared.id, scopes=["profile:label"])
        assert _ids(explore_identities(db, viewer.id)) == {shared.id}

    @pytest.mark.parametrize("extra", [
        {"revoked_at": datetime.now(timezone.utc)},
        {"expires_at": datetime.now(timezone.utc) - timedelta(minutes=1)},
    ])
    def test_inactive_grants_are_ignored(self, db, owner, viewer, make_identity, extra):
        shared = make_identity(owner, visibility="PRIVATE")
        _grant_to_user(db, owner=owner, viewer=viewer, identity_id=shared.id, **extra)
        assert explore_identities(db, viewer.id) == []

    def test_grant_to_someone_else_does_not_leak(self, db, owner, viewer, make_user, make_identity):
        shared = make_identity(owner, visibility="PRIVATE")
        _grant_to_user(db, owner=owner, viewer=make_user("friend"), identity_id=shared.id)
        assert explore_identities(db, viewer.id) == []

    def test_cards_carry_only_public_safe_fields(self, db, owner, viewer, make_identity):
        shared = make_identity(owner, visibility="PRIVATE")
        _grant_to_user(db, owner=owner, viewer=viewer, identity_id=shared.id)
        card = explore_identities(db, viewer.id)[0]
        assert card["identity_label"] == "Alice"
        assert "identity_contacts" not in card
        assert "additional_attributes" not in card


class TestExploreRoute:

    def test_requires_sign_in(self, client):
        resp = client.get("/explore")
        assert resp.status_code == 401

    def test_lists_cards(self, client, owner, viewer, make_identity):
        public = make_identity(owner, visibility="PUBLIC")
        resp = client.get("/explore", headers=user_headers(viewer.id))
        assert resp.status_code == 200
        assert [card["id"] for card in resp.json()] == [str(public.id)]
