from __future__ import annotations
import copy
from typing import Any, Dict, Iterable

from app.models.identity import Identity
from app.services.scope_policy import fields_for_scopes

# Reduced view for signed-in non-owners of AUTHENTICATED_USERS identities.
# Fixed on purpose: this tier does not depend on any grant.
PUBLIC_VIEW_FIELDS = (
    "identity_label",
    "profile_picture_url",
    "description",
    "category",
    "custom_category_name",
    "gender_identity",
    "pronouns",
    "location",
    "date_of_birth",
    "contextual_name_details",
    "website_urls",
)

FULL_FIELDS = PUBLIC_VIEW_FIELDS + (
    "identity_name_history",
    "contextual_religious_names",
    "custom_gender_description",
    "identity_contacts",
    "online_presence",
    "additional_attributes",
    "created_at",
    "updated_at",
)


def _base(identity: Identity) -> Dict[str, Any]:
    return {
        "id": identity.id,
        "visibility": identity.visibility,
        "owner_id": identity.user_id,
    }


def _copy_fields(identity: Identity, fields: Iterable[str], into: Dict[str, Any]) -> Dict[str, Any]:
    for field in fields:
        # deep copy so nested maps/lists handed out cannot write back into the record
        into[field] = copy.deepcopy(getattr(identity, field))
    return into


def project(identity: Identity, granted_scopes: Iterable[str]) -> Dict[str, Any]:
    """Redacted view of ``identity`` containing only what ``granted_scopes`` unlock.

    Undisclosed fields are omitted from the result, not nulled. Pure: the
    record is never mutated and equal inputs give equal outputs.
    """
    unlocked = sorted(fields_for_scopes(granted_scopes))
    return _copy_fields(identity, unlocked, _base(identity))


def full_view(identity: Identity) -> Dict[str, Any]:
    return _copy_fields(identity, FULL_FIELDS, _base(identity))


def public_view(identity: Identity) -> Dict[str, Any]:
    return _copy_fields(identity, PUBLIC_VIEW_FIELDS, _base(identity))
