"""Explore: other users' identities a signed-in user can browse."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Set
from uuid import UUID

from sqlalchemy.orm import Session

from app.repositories import consents as consent_repo
from app.repositories import identities as identity_repo
from app.services.projector import public_view
from app.services.scope_policy import IDENTITY_READ, satisfies

log = logging.getLogger("explore")


def explore_identities(db: Session, viewer_id: UUID) -> List[Dict[str, Any]]:
    """Public-safe cards for identities ``viewer_id`` may browse.

    Covers PUBLIC identities plus those reachable through an active
    identity-level or user-level grant to the viewer that carries
    identity.read. The viewer's own identities are never listed.
    """
    now = datetime.now(timezone.utc)
    identity_ids: Set[UUID] = set()
    owner_ids: Set[UUID] = set()
    for consent in consent_repo.list_active_for_requesting_user(db, requesting_user_id=viewer_id, now=now):
        if not satisfies(consent.granted_scopes or [], IDENTITY_READ):
            continue
        if consent.identity_id is None:
            owner_ids.add(consent.user_id)
        else:
            identity_ids.add(consent.identity_id)

    rows = identity_repo.list_explorable(db, viewer_id=viewer_id, identity_ids=identity_ids, owner_ids=owner_ids)
    log.info("explore viewer=%s count=%d", viewer_id, len(rows))
    return [public_view(identity) for identity in rows]
