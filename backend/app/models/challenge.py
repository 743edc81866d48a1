"""
Modèles SQLAlchemy pour les challenges et leurs étapes ordonnées.
"""

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship

from app.database import Base


class Challenge(Base):
    __tablename__ = "challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)        # Nom de catégorie (référence souple)
    difficulty = Column(String(10), nullable=False)      # EASY, MEDIUM, HARD
    xp_reward = Column(Integer, nullable=False)          # Attribué une seule fois, à la dernière étape
    required_level = Column(Integer, nullable=False, default=1)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    max_participants = Column(Integer, nullable=True)    # NULL = pas de limite
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    stages = relationship(
        "Stage",
        back_populates="challenge",
        order_by="Stage.order",
        cascade="all, delete-orphan",
    )


class Stage(Base):
    """Étape d'un challenge. L'ordre (0..N-1) définit la séquence de déverrouillage."""
    __tablename__ = "stages"
    __table_args__ = (UniqueConstraint("challenge_id", "order", name="uq_stage_challenge_order"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False)
    order = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Preuve attendue : contenu exact du QR code. NULL = étape GPS.
    qr_code = Column(String(500), nullable=True)

    # Coordonnées enregistrées mais jamais vérifiées (géorepérage désactivé)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    radius_meters = Column(Integer, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    challenge = relationship("Challenge", back_populates="stages")
