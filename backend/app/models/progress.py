"""
Modèles SQLAlchemy pour la progression des utilisateurs.

Stratégie de stockage : une ligne stage_progress n'est écrite qu'à une transition
(étape 0 à l'inscription, étape suivante au déverrouillage, étape soumise à la
validation). L'absence de ligne signifie LOCKED, sauf dérivation contraire
(voir progress_service.derive_stage_statuses).
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from app.database import Base


class ChallengeProgress(Base):
    """Inscription d'un utilisateur à un challenge, une seule par couple (user, challenge)."""
    __tablename__ = "challenge_progress"
    __table_args__ = (UniqueConstraint("user_id", "challenge_id", name="uq_progress_user_challenge"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    challenge_id = Column(Integer, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")   # ACTIVE, COMPLETED
    joined_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    challenge = relationship("Challenge")
    stage_progress = relationship(
        "StageProgress",
        back_populates="challenge_progress",
        cascade="all, delete-orphan",
    )


class StageProgress(Base):
    __tablename__ = "stage_progress"
    __table_args__ = (
        UniqueConstraint("challenge_progress_id", "stage_id", name="uq_stage_progress_stage"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_progress_id = Column(
        Integer, ForeignKey("challenge_progress.id", ondelete="CASCADE"), nullable=False
    )
    stage_id = Column(Integer, ForeignKey("stages.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default="PENDING")  # PENDING, COMPLETED, SKIPPED
    submission_type = Column(String(20), nullable=True)             # QR_CODE, GPS
    content = Column(Text, nullable=True)                           # Preuve brute (texte du QR décodé)
    submitted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    challenge_progress = relationship("ChallengeProgress", back_populates="stage_progress")
