"""
Schémas Pydantic pour les utilisateurs (lecture et administration).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    username: str
    xp: int
    level: int
    is_admin: bool
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
