"""
Schémas Pydantic pour l'inscription aux challenges et la soumission des étapes.
Toute la validation de forme est faite ici, avant d'appeler le moteur de progression.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator, model_validator

VALID_SUBMISSION_TYPES = {"QR_CODE", "GPS"}
VALID_PROGRESS_STATUSES = {"ACTIVE", "COMPLETED"}


class JoinChallengeRequest(BaseModel):
    challenge_id: int


class StageSubmission(BaseModel):
    """Preuve de passage à une étape : texte du QR décodé ou coordonnées."""
    stage_id: int
    submission_type: str
    content: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("submission_type")
    @classmethod
    def valid_submission_type(cls, v: str) -> str:
        v = v.upper()
        if v not in VALID_SUBMISSION_TYPES:
            raise ValueError(f"Type de soumission invalide. Valeurs acceptées : {VALID_SUBMISSION_TYPES}")
        return v

    @model_validator(mode="after")
    def content_present(self):
        has_content = self.content is not None and self.content.strip() != ""
        if self.submission_type == "GPS" and not has_content:
            if self.latitude is None or self.longitude is None:
                raise ValueError("Une soumission GPS nécessite un contenu ou des coordonnées.")
            self.content = f"{self.latitude},{self.longitude}"
        elif not has_content:
            raise ValueError("Le contenu du QR code ne peut pas être vide.")
        return self


class StageProgressResponse(BaseModel):
    stage_id: int
    order: int
    title: str
    status: str                     # LOCKED, PENDING, COMPLETED, SKIPPED
    submission_type: Optional[str] = None
    submitted_at: Optional[datetime] = None


class ChallengeProgressResponse(BaseModel):
    id: int
    user_id: int
    challenge_id: int
    challenge_title: str
    status: str                     # ACTIVE, COMPLETED
    joined_at: datetime
    completed_at: Optional[datetime] = None
    completed_stages: int
    total_stages: int
    stages: List[StageProgressResponse] = []


class StageStatusResponse(BaseModel):
    stage_id: int
    status: str


class SubmissionResult(BaseModel):
    """Résultat d'une soumission validée."""
    stage: StageProgressResponse
    challenge_completed: bool
    challenge_progress: ChallengeProgressResponse
    xp_awarded: int
    user_xp: int
    user_level: int
