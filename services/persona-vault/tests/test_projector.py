"""Tests for the identity projector."""

import copy
import itertools

import pytest

from app.services.projector import FULL_FIELDS, PUBLIC_VIEW_FIELDS, full_view, project, public_view
from app.services.scope_policy import SCOPE_FIELDS


@pytest.fixture
def identity(make_user, make_identity):
    owner = make_user("alice")
    return make_identity(
        owner,
        identity_label="Alice",
        gender_identity="non-binary",
        contextual_name_details={"preferred_name": "Al", "usage_context": "work"},
    )


class TestProject:

    def test_label_and_personal_info_are_disclosed(self, identity):
        out = project(identity, ["profile:label", "profile:personal_info"])
        assert out["identity_label"] == "Alice"
        assert out["gender_identity"] == "non-binary"

    def test_empty_scopes_disclose_neither(self, identity):
        out = project(identity, [])
        assert "identity_label" not in out
        assert "gender_identity" not in out
        assert set(out) == {"id", "visibility", "owner_id"}

    def test_undisclosed_fields_are_omitted_not_nulled(self, identity):
        out = project(identity, ["profile:description"])
        assert "identity_contacts" not in out
        assert out["description"] == "Weekend climber"

    def test_more_scopes_never_disclose_fewer_fields(self, identity):
        scopes = sorted(SCOPE_FIELDS)
        for size in range(len(scopes)):
            for smaller in itertools.combinations(scopes, size):
                for extra in scopes:
                    larger = set(smaller) | {extra}
                    assert set(project(identity, smaller)) <= set(project(identity, larger))

    def test_repeated_calls_are_identical_and_do_not_mutate(self, identity):
        before = copy.deepcopy(identity.contextual_name_details)
        scopes = ["profile:name_details", "profile:contact_details"]
        first = project(identity, scopes)
        second = project(identity, scopes)
        assert first == second
        assert identity.contextual_name_details == before

    def test_nested_values_are_copies(self, identity):
        out = project(identity, ["profile:name_details"])
        out["contextual_name_details"]["preferred_name"] = "changed"
        assert identity.contextual_name_details["preferred_name"] == "Al"


class TestFixedViews:

    def test_full_view_has_every_field(self, identity):
        out = full_view(identity)
        for field in FULL_FIELDS:
            assert field in out
        assert out["owner_id"] == identity.user_id

    def test_public_view_excludes_contacts_and_attributes(self, identity):
        out = public_view(identity)
        assert set(out) == set(PUBLIC_VIEW_FIELDS) | {"id", "visibility", "owner_id"}
        assert "identity_contacts" not in out
        assert "additional_attributes" not in out
