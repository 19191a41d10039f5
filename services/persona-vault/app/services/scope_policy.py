"""Scope -> identity field policy.

Scopes are a public contract with third-party apps, so the table is written
out by hand and versioned rather than derived from the Identity model. Bump
SCOPE_POLICY_VERSION whenever a scope gains or loses a field.
"""
from __future__ import annotations
from typing import Dict, FrozenSet, Iterable, Tuple

SCOPE_POLICY_VERSION = "2024-05-01"

IDENTITY_READ = "identity.read"
PROFILE_PREFIX = "profile:"

SCOPE_FIELDS: Dict[str, Tuple[str, ...]] = {
    "profile:label": ("identity_label", "profile_picture_url"),
    "profile:description": ("description",),
    "profile:category": ("category", "custom_category_name"),
    "profile:name_details": ("contextual_name_details",),
    "profile:contact_details": ("identity_contacts", "website_urls"),
    "profile:personal_info": ("gender_identity", "pronouns", "date_of_birth", "location"),
    "profile:additional_attributes": ("additional_attributes",),
    IDENTITY_READ: (),
}

# Basic profile tier: disclosed alongside any profile:* scope
BASIC_PROFILE_FIELDS: Tuple[str, ...] = ("identity_label", "profile_picture_url")

# Disclosed on every projection regardless of scopes
ALWAYS_FIELDS: Tuple[str, ...] = ("id", "visibility", "owner_id")

KNOWN_SCOPES: FrozenSet[str] = frozenset(SCOPE_FIELDS)


def is_known_scope(scope: str) -> bool:
    return scope in SCOPE_FIELDS


def grants_basic_profile(scopes: Iterable[str]) -> bool:
    return any(s.startswith(PROFILE_PREFIX) for s in scopes)


def fields_for_scopes(scopes: Iterable[str]) -> FrozenSet[str]:
    """Identity fields unlocked by ``scopes``; unknown scopes unlock nothing."""
    scopes = list(scopes)
    fields = set(BASIC_PROFILE_FIELDS) if grants_basic_profile(scopes) else set()
    for scope in scopes:
        fields.update(SCOPE_FIELDS.get(scope, ()))
    return frozenset(fields)


def effective_scopes(scopes: Iterable[str]) -> FrozenSet[str]:
    """Granted scopes plus the ones they imply.

    A profile:* scope cannot be exercised without read access to the
    identity, so it implies identity.read.
    """
    granted = set(scopes)
    if grants_basic_profile(granted):
        granted.add(IDENTITY_READ)
    return frozenset(granted)


def satisfies(scopes: Iterable[str], required_scope: str | None) -> bool:
    if not required_scope:
        return True
    return required_scope in effective_scopes(scopes)
