"""
Modèle SQLAlchemy pour les utilisateurs.
Les comptes sont créés par le service d'authentification ; ce backend ne modifie
que xp / level (moteur de progression) et is_active (administration).
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from app.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    username = Column(String(50), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    xp = Column(Integer, nullable=False, default=0)        # Cumulatif, ne décroît jamais
    level = Column(Integer, nullable=False, default=1)     # Cache dérivé de xp (voir level_resolver)

    is_admin = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)  # Désactivation logique

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
