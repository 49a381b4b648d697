from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clinic_api.access import Caller, require_authenticated
from clinic_api.db.session import get_db
from clinic_api.errors import Forbidden
from clinic_api.models import IdentityRole
from clinic_api.routes.auth import admin_password_matches
from clinic_api.schemas import RoleUpdate
from clinic_api.services.identity import get_identity, list_doctors, serialize_contact

router = APIRouter(prefix="/role", tags=["roles"])

logger = logging.getLogger(__name__)


@router.get("/doctors")
def get_doctors(db: Session = Depends(get_db)) -> list[dict[str, Any]]:
    """Public list of doctors a visitor can book with."""

    return [serialize_contact(doctor) for doctor in list_doctors(db)]


@router.post("/update")
def update_role(
    payload: RoleUpdate,
    caller: Caller = Depends(require_authenticated),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Let the caller pick their own role; becoming a doctor needs the admin password."""

    identity = caller.identity
    if payload.role == IdentityRole.DOCTOR and not admin_password_matches(payload.admin_password):
        raise Forbidden("Admin password required to register as a doctor")

    previous = identity.role
    identity.role = payload.role
    db.commit()
    logger.info(
        "role updated",
        extra={"identity": str(identity.id), "from": previous.value, "to": payload.role.value},
    )
    return {"id": str(identity.id), "role": identity.role.value}


@router.get("/{identity_id}")
def get_role(
    identity_id: UUID,
    caller: Caller = Depends(require_authenticated),
    db: Session = Depends(get_db),
) -> dict[str, str]:
    identity = get_identity(db, identity_id)
    return {"role": identity.role.value}
