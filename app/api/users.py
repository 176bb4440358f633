# app/api/users.py

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.auth import get_current_user
from app.core.permissions import require_roles
from app.core.roles import ROLE_ADMIN
from app.models.user import User
from app.schemas.user import UserOut, UserRoleUpdate
from app.services import user_service

# main.py mounts this router at /api/admin/users
router = APIRouter(tags=["Admin Users"])

admin_only = require_roles([ROLE_ADMIN])


@router.get("", response_model=List[UserOut])
def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    return user_service.list_users(db)


# Any signed-in user may look up who can approve
@router.get("/approvers", response_model=List[UserOut])
def list_approvers(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.list_approvers(db)


@router.put("/{user_id}", response_model=UserOut)
def update_user(
    user_id: UUID,
    payload: UserRoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    return user_service.update_user(db, user_id, payload, actor_id=current_user.id)
