from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from uuid import UUID


class UserOut(BaseModel):
    id: UUID
    email: str
    name: str
    role: str
    approver_id: Optional[UUID]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class UserRoleUpdate(BaseModel):
    role: Optional[str] = None
    approver_id: Optional[UUID] = None
