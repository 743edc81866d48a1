"""
Schémas Pydantic pour les challenges et leurs étapes.

Le contenu attendu des QR codes (qr_code) n'est exposé que dans les réponses admin :
le révéler aux joueurs permettrait de valider une étape sans se déplacer.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator, model_validator

from app.schemas.progress import ChallengeProgressResponse
from app.timeutils import to_naive_utc

VALID_DIFFICULTIES = {"EASY", "MEDIUM", "HARD"}
VALID_LIST_STATUSES = {"active", "upcoming", "completed", "all"}
NON_NULLABLE_UPDATE_FIELDS = {
    "title", "difficulty", "xp_reward", "required_level", "start_date", "end_date", "is_active",
}


def _check_coordinates(latitude: Optional[float], longitude: Optional[float]) -> None:
    if (latitude is None) != (longitude is None):
        raise ValueError("Latitude et longitude doivent être fournies ensemble.")
    if latitude is not None and not -90 <= latitude <= 90:
        raise ValueError("Latitude invalide (attendu entre -90 et 90).")
    if longitude is not None and not -180 <= longitude <= 180:
        raise ValueError("Longitude invalide (attendu entre -180 et 180).")


class StageCreate(BaseModel):
    """Une étape ; sa position dans la liste fournie détermine son ordre."""
    title: str
    description: Optional[str] = None
    qr_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_meters: Optional[int] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre de l'étape ne peut pas être vide.")
        return v.strip()

    @field_validator("qr_code")
    @classmethod
    def qr_code_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le contenu du QR code ne peut pas être vide.")
        return v

    @model_validator(mode="after")
    def proof_requirement(self):
        _check_coordinates(self.latitude, self.longitude)
        if self.qr_code is None and self.latitude is None:
            raise ValueError("Une étape doit définir un QR code ou des coordonnées GPS.")
        return self


class ChallengeBase(BaseModel):
    @field_validator("difficulty", check_fields=False)
    @classmethod
    def valid_difficulty(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.upper()
        if v not in VALID_DIFFICULTIES:
            raise ValueError(f"Difficulté invalide. Valeurs acceptées : {VALID_DIFFICULTIES}")
        return v

    @field_validator("xp_reward", check_fields=False)
    @classmethod
    def xp_reward_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("La récompense XP doit être strictement positive.")
        return v

    @field_validator("required_level", check_fields=False)
    @classmethod
    def required_level_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Le niveau requis doit être supérieur ou égal à 1.")
        return v

    @field_validator("max_participants", check_fields=False)
    @classmethod
    def max_participants_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Le nombre maximum de participants doit être au moins 1.")
        return v

    @field_validator("start_date", "end_date", check_fields=False)
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class ChallengeCreate(ChallengeBase):
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: str
    xp_reward: int
    required_level: int = 1
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    max_participants: Optional[int] = None
    image_url: Optional[str] = None
    stages: List[StageCreate] = []

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre du challenge ne peut pas être vide.")
        return v.strip()

    @model_validator(mode="after")
    def window_is_valid(self):
        if self.end_date <= self.start_date:
            raise ValueError("La date de fin doit être postérieure à la date de début.")
        return self


class ChallengeUpdate(ChallengeBase):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    xp_reward: Optional[int] = None
    required_level: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    max_participants: Optional[int] = None
    image_url: Optional[str] = None
    stages: Optional[List[StageCreate]] = None  # si fourni, remplace toutes les étapes

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le titre du challenge ne peut pas être vide.")
        return v.strip() if v else v

    @model_validator(mode="after")
    def no_null_on_required_columns(self):
        # null explicite = effacement, interdit pour les colonnes NOT NULL
        cleared = sorted(
            field for field in self.model_fields_set & NON_NULLABLE_UPDATE_FIELDS
            if getattr(self, field) is None
        )
        if cleared:
            raise ValueError(f"Ces champs ne peuvent pas être null : {', '.join(cleared)}")
        return self

    @model_validator(mode="after")
    def window_is_valid(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("La date de fin doit être postérieure à la date de début.")
        return self


class StageResponse(BaseModel):
    id: int
    order: int
    title: str
    description: Optional[str]
    requires_qr: bool
    latitude: Optional[float]
    longitude: Optional[float]
    radius_meters: Optional[int]


class StageAdminResponse(StageResponse):
    qr_code: Optional[str]


class ChallengeResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    category: Optional[str]
    difficulty: str
    xp_reward: int
    required_level: int
    start_date: datetime
    end_date: datetime
    is_active: bool
    max_participants: Optional[int]
    image_url: Optional[str]
    participant_count: int
    stage_count: int
    created_at: Optional[datetime] = None


class ChallengeDetailResponse(ChallengeResponse):
    stages: List[StageResponse] = []
    user_progress: Optional[ChallengeProgressResponse] = None


class ChallengeAdminResponse(ChallengeResponse):
    stages: List[StageAdminResponse] = []


class ChallengeListResponse(BaseModel):
    items: List[ChallengeResponse]
    total: int
