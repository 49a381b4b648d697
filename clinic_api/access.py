"""Per-request access policy: who is calling and what they may do."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from clinic_api.db.session import get_db
from clinic_api.errors import Forbidden, Unauthorized
from clinic_api.logging_utils import set_identity_context
from clinic_api.models import Identity, IdentityRole
from clinic_api.services.security import decode_access_token

logger = logging.getLogger(__name__)


class AccessState(str, enum.Enum):
    """Resolved caller state for a single request."""

    ANONYMOUS = "anonymous"
    AUTHENTICATED_NO_ROLE = "authenticated_no_role"
    AUTHENTICATED_DOCTOR = "authenticated_doctor"
    AUTHENTICATED_PATIENT = "authenticated_patient"


_STATE_BY_ROLE = {
    IdentityRole.UNASSIGNED: AccessState.AUTHENTICATED_NO_ROLE,
    IdentityRole.DOCTOR: AccessState.AUTHENTICATED_DOCTOR,
    IdentityRole.PATIENT: AccessState.AUTHENTICATED_PATIENT,
}


@dataclass(frozen=True)
class Caller:
    state: AccessState
    identity: Identity | None = None

    @property
    def identity_id(self) -> UUID | None:
        return self.identity.id if self.identity else None


ANONYMOUS = Caller(state=AccessState.ANONYMOUS)


def state_for_role(role: IdentityRole) -> AccessState:
    return _STATE_BY_ROLE[role]


def bearer_token(request: Request) -> str | None:
    """Extract the bearer credential, or None when no header is sent."""

    header = request.headers.get("Authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise Unauthorized("Access denied. No token provided.")
    return token.strip()


def authenticate(db: Session, token: str) -> Caller:
    """Validate the token and cross-check it against the live identity store.

    The role comes from the stored identity, not from the token claims, so
    role changes and deletions take effect immediately.
    """

    claims = decode_access_token(token)
    try:
        identity_id = UUID(str(claims["sub"]))
    except ValueError as exc:
        raise Unauthorized("Invalid token. Please log in again.") from exc

    identity = db.get(Identity, identity_id)
    if identity is None:
        logger.warning("token for unknown identity", extra={"identity": str(identity_id)})
        raise Unauthorized("User no longer exists in the system. Please register again.")

    return Caller(state=state_for_role(identity.role), identity=identity)


async def get_caller(request: Request, db: Session = Depends(get_db)) -> Caller:
    token = bearer_token(request)
    if token is None:
        return ANONYMOUS
    caller = await run_in_threadpool(authenticate, db, token)
    set_identity_context(caller.identity_id)
    request.state.identity_id = str(caller.identity_id)
    return caller


def require_authenticated(caller: Caller = Depends(get_caller)) -> Caller:
    if caller.state == AccessState.ANONYMOUS:
        raise Unauthorized("Access denied. No token provided.")
    return caller


def require_doctor(caller: Caller = Depends(require_authenticated)) -> Caller:
    if caller.state != AccessState.AUTHENTICATED_DOCTOR:
        raise Forbidden("Access denied. Doctor role required.")
    return caller

