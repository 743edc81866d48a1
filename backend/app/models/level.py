"""
Modèle SQLAlchemy pour la table des niveaux (paliers d'XP).
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from app.database import Base


class Level(Base):
    """Palier [min_xp, max_xp), max_xp NULL = non borné (dernier niveau uniquement)."""
    __tablename__ = "levels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    number = Column(Integer, unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    min_xp = Column(Integer, nullable=False)
    max_xp = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
