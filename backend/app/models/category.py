"""
Modèle SQLAlchemy pour les catégories de challenges.
Les challenges référencent une catégorie par son nom (référence souple, sans FK).
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from app.database import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(100), nullable=True)
    color = Column(String(20), nullable=True)   # Ex: "#22c55e"
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
