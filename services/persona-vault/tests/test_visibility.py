"""Tests for the visibility resolver."""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.config import settings
from app.models.audit_log import AuditLog
from app.models.consent import Consent
from app.services.visibility import AccessKind, RequesterContext, resolve_access


def _now():
    return datetime.now(timezone.utc)


@pytest.fixture
def owner(make_user):
    return make_user("owner")


@pytest.fixture
def stranger(make_user):
    return make_user("stranger")


@pytest.fixture
def app_and_key(make_app, make_user):
    return make_app(make_user("dev"))


def _grant(db, *, owner, identity_id=None, app_id=None, requesting_user_id=None, scopes, **extra):
    consent = Consent(
        user_id=owner.id,
        app_id=app_id,
        requesting_user_id=requesting_user_id,
        identity_id=identity_id,
        granted_scopes=scopes,
        granted_at=_now(),
        **extra,
    )
    db.add(consent)
    db.commit()
    return consent


class TestOwnerAndPublic:

    def test_owner_sees_full_record(self, db, owner, make_identity):
        identity = make_identity(owner, visibility="PRIVATE")
        decision = resolve_access(db, identity, RequesterContext.for_user(owner.id))
        assert decision.kind is AccessKind.FULL
        assert decision.payload["identity_contacts"] == {"email": "alice@example.test"}

    @pytest.mark.parametrize("requester_kind", ["anonymous", "user", "app"])
    def test_public_identity_is_full_for_everyone(self, db, owner, stranger, app_and_key, make_identity, requester_kind):
        identity = make_identity(owner, visibility="PUBLIC")
        requester = {
            "anonymous": RequesterContext.anonymous(),
            "user": RequesterContext.for_user(stranger.id),
            "app": RequesterContext.for_app(app_and_key[0].id),
        }[requester_kind]
        decision = resolve_access(db, identity, requester)
        assert decision.kind is AccessKind.FULL
        assert decision.payload["identity_label"] == "Alice"


class TestStubs:

    @pytest.mark.parametrize("visibility,label", [
        ("PRIVATE", "Private Identity"),
        ("APP_SPECIFIC", "Restricted Identity"),
    ])
    def test_stub_hides_label_and_picture(self, db, owner, stranger, make_identity, visibility, label):
        identity = make_identity(owner, visibility=visibility)
        for requester in (RequesterContext.anonymous(), RequesterContext.for_user(stranger.id)):
            decision = resolve_access(db, identity, requester)
            assert decision.kind is AccessKind.STUB
            assert decision.payload["identity_label"] == label
            assert decision.payload["profile_picture_url"] == settings.PLACEHOLDER_PICTURE_URL
            assert "Alice" not in decision.payload.values()
            assert "https://cdn.example.test/alice.png" not in decision.payload.values()

    def test_stub_keeps_custom_category_name_only_for_custom(self, db, owner, stranger, make_identity):
        custom = make_identity(owner, category="CUSTOM", custom_category_name="Choir")
        decision = resolve_access(db, custom, RequesterContext.for_user(stranger.id))
        assert decision.payload["custom_category_name"] == "Choir"

    def test_anonymous_on_authenticated_users_identity_is_denied(self, db, owner, make_identity):
        identity = make_identity(owner, visibility="AUTHENTICATED_USERS")
        decision = resolve_access(db, identity, RequesterContext.anonymous())
        assert decision.kind is AccessKind.DENY
        assert decision.reason == "authentication_required"
        assert decision.payload is None

    def test_signed_in_user_gets_public_view(self, db, owner, stranger, make_identity):
        identity = make_identity(owner, visibility="AUTHENTICATED_USERS")
        decision = resolve_access(db, identity, RequesterContext.for_user(stranger.id))
        assert decision.kind is AccessKind.PUBLIC_VIEW
        assert decision.payload["identity_label"] == "Alice"
        assert "identity_contacts" not in decision.payload


class TestAppAccess:

    def test_app_without_consent_is_denied_with_required_scope(self, db, owner, app_and_key, make_identity):
        identity = make_identity(owner, visibility="PRIVATE")
        decision = resolve_access(db, identity, RequesterContext.for_app(app_and_key[0].id))
        assert decision.kind is AccessKind.DENY
        assert decision.required_scopes == ["identity.read"]
        assert not decision.allowed

    def test_identity_level_consent_projects(self, db, owner, app_and_key, make_identity):
        app = app_and_key[0]
        identity = make_identity(owner, visibility="PRIVATE")
        consent = _grant(db, owner=owner, identity_id=identity.id, app_id=app.id,
                         scopes=["identity.read", "profile:personal_info"])
        decision = resolve_access(db, identity, RequesterContext.for_app(app.id))
        assert decision.kind is AccessKind.PROJECTED
        assert decision.consent_id == consent.id
        assert decision.payload["gender_identity"] == "non-binary"
        assert "identity_contacts" not in decision.payload

    def test_user_level_consent_covers_every_identity(self, db, owner, app_and_key, make_identity):
        app = app_and_key[0]
        first = make_identity(owner)
        second = make_identity(owner, identity_label="Work Alice")
        _grant(db, owner=owner, app_id=app.id, scopes=["profile:label"])
        for identity in (first, second):
            assert resolve_access(db, identity, RequesterContext.for_app(app.id)).kind is AccessKind.PROJECTED

    def test_consent_without_required_scope_is_denied(self, db, owner, app_and_key, make_identity):
        app = app_and_key[0]
        identity = make_identity(owner)
        _grant(db, owner=owner, identity_id=identity.id, app_id=app.id, scopes=["identity.read"])
        decision = resolve_access(db, identity, RequesterContext.for_app(app.id), required_scope="profile:contact_details")
        assert decision.kind is AccessKind.DENY
        assert decision.required_scopes == ["profile:contact_details"]

    def test_revoked_consent_no_longer_counts(self, db, owner, app_and_key, make_identity):
        app = app_and_key[0]
        identity = make_identity(owner)
        _grant(db, owner=owner, identity_id=identity.id, app_id=app.id, scopes=["identity.read"], revoked_at=_now())
        assert resolve_access(db, identity, RequesterContext.for_app(app.id)).kind is AccessKind.DENY

    def test_expired_consent_no_longer_counts(self, db, owner, app_and_key, make_identity):
        app = app_and_key[0]
        identity = make_identity(owner)
        _grant(db, owner=owner, identity_id=identity.id, app_id=app.id, scopes=["identity.read"],
               expires_at=_now() - timedelta(minutes=1))
        assert resolve_access(db, identity, RequesterContext.for_app(app.id)).kind is AccessKind.DENY

    def test_consent_for_another_app_does_not_leak(self, db, owner, make_app, make_user, make_identity):
        granted, _ = make_app(make_user("dev1"))
        other, _ = make_app(make_user("dev2"))
        identity = make_identity(owner)
        _grant(db, owner=owner, identity_id=identity.id, app_id=granted.id, scopes=["identity.read"])
        assert resolve_access(db, identity, RequesterContext.for_app(other.id)).kind is AccessKind.DENY

    def test_app_decisions_are_audited(self, db, owner, app_and_key, make_identity):
        app = app_and_key[0]
        identity = make_identity(owner)
        resolve_access(db, identity, RequesterContext.for_app(app.id))
        rows = db.query(AuditLog).filter(AuditLog.action == "APP_IDENTITY_ACCESS").all()
        assert len(rows) == 1
        assert rows[0].outcome == "FAILURE"
        assert rows[0].actor_app_id == str(app.id)


class TestUserConsent:

    def test_user_grant_projects_for_that_user_only(self, db, owner, stranger, make_user, make_identity):
        identity = make_identity(owner, visibility="PRIVATE")
        _grant(db, owner=owner, identity_id=identity.id, requesting_user_id=stranger.id, scopes=["profile:label"])

        granted = resolve_access(db, identity, RequesterContext.for_user(stranger.id))
        assert granted.kind is AccessKind.PROJECTED
        assert granted.payload["identity_label"] == "Alice"

        bystander = resolve_access(db, identity, RequesterContext.for_user(make_user("other").id))
        assert bystander.kind is AccessKind.STUB

    def test_user_grant_never_narrows_the_signed_in_view(self, db, owner, stranger, make_identity):
        identity = make_identity(owner, visibility="AUTHENTICATED_USERS")
        before = resolve_access(db, identity, RequesterContext.for_user(stranger.id))
        assert before.kind is AccessKind.PUBLIC_VIEW

        _grant(db, owner=owner, identity_id=identity.id, requesting_user_id=stranger.id,
               scopes=["profile:description"])
        after = resolve_access(db, identity, RequesterContext.for_user(stranger.id))
        assert after.kind is AccessKind.PROJECTED
        assert set(before.payload) <= set(after.payload)
        assert after.payload["pronouns"] == "they/them"

    def test_identity_read_grant_on_private_identity_keeps_stub_fields(self, db, owner, stranger, make_identity):
        identity = make_identity(owner, visibility="PRIVATE")
        before = resolve_access(db, identity, RequesterContext.for_user(stranger.id))

        _grant(db, owner=owner, identity_id=identity.id, requesting_user_id=stranger.id, scopes=["identity.read"])
        after = resolve_access(db, identity, RequesterContext.for_user(stranger.id))
        assert after.kind is AccessKind.PROJECTED
        assert set(before.payload) <= set(after.payload)
        assert after.payload["category"] == "PERSONAL"

    def test_app_projection_is_not_widened(self, db, owner, app_and_key, make_identity):
        app = app_and_key[0]
        identity = make_identity(owner, visibility="AUTHENTICATED_USERS")
        _grant(db, owner=owner, identity_id=identity.id, app_id=app.id, scopes=["profile:description"])
        decision = resolve_access(db, identity, RequesterContext.for_app(app.id))
        assert decision.kind is AccessKind.PROJECTED
        assert "pronouns" not in decision.payload
