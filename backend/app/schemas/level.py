"""
Schémas Pydantic pour la table des niveaux.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator


class LevelCreate(BaseModel):
    number: int
    name: str
    min_xp: int
    max_xp: Optional[int] = None   # None = non borné (dernier niveau)
    is_active: bool = True

    @field_validator("number")
    @classmethod
    def number_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Le numéro de niveau doit être supérieur ou égal à 1.")
        return v

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom du niveau ne peut pas être vide.")
        return v.strip()

    @field_validator("min_xp")
    @classmethod
    def min_xp_not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("min_xp ne peut pas être négatif.")
        return v

    @model_validator(mode="after")
    def range_is_valid(self):
        if self.max_xp is not None and self.max_xp <= self.min_xp:
            raise ValueError("max_xp doit être strictement supérieur à min_xp.")
        return self


class LevelUpdate(BaseModel):
    number: Optional[int] = None
    name: Optional[str] = None
    min_xp: Optional[int] = None
    max_xp: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("number")
    @classmethod
    def number_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Le numéro de niveau doit être supérieur ou égal à 1.")
        return v

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le nom du niveau ne peut pas être vide.")
        return v.strip() if v else v

    @field_validator("min_xp")
    @classmethod
    def min_xp_not_negative(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("min_xp ne peut pas être négatif.")
        return v

    @model_validator(mode="after")
    def no_null_on_required_columns(self):
        # Seul max_xp accepte null (niveau non borné)
        cleared = sorted(
            field for field in self.model_fields_set - {"max_xp"}
            if getattr(self, field) is None
        )
        if cleared:
            raise ValueError(f"Ces champs ne peuvent pas être null : {', '.join(cleared)}")
        return self


class LevelResponse(BaseModel):
    id: int
    number: int
    name: str
    min_xp: int
    max_xp: Optional[int]
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class LevelRecomputeResult(BaseModel):
    """Rapport de resynchronisation des niveaux utilisateurs."""
    total_users: int
    updated_users: int
