"""
Schémas Pydantic pour les catégories de challenges.
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


def _check_color(v: Optional[str]) -> Optional[str]:
    if v is not None and not COLOR_PATTERN.match(v):
        raise ValueError("Couleur invalide : format hexadécimal attendu (ex. #22c55e).")
    return v


class CategoryCreate(BaseModel):
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom de la catégorie ne peut pas être vide.")
        return v.strip()

    @field_validator("color")
    @classmethod
    def valid_color(cls, v: Optional[str]) -> Optional[str]:
        return _check_color(v)


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le nom de la catégorie ne peut pas être vide.")
        return v.strip() if v else v

    @field_validator("color")
    @classmethod
    def valid_color(cls, v: Optional[str]) -> Optional[str]:
        return _check_color(v)


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    icon: Optional[str]
    color: Optional[str]
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
