"""
Service métier pour les catégories de challenges.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import Conflict
from app.models.category import Category
from app.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate

logger = logging.getLogger(__name__)


def create_category(db: Session, data: CategoryCreate) -> CategoryResponse:
    """
    Crée une nouvelle catégorie.
    Lève Conflict si le nom existe déjà.
    """
    category = Category(**data.model_dump())
    db.add(category)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"Une catégorie avec le nom '{data.name}' existe déjà.")
    db.refresh(category)
    logger.info("Catégorie créée : %s", category.name)
    return CategoryResponse.model_validate(category)


def get_categories(db: Session, active_only: bool = False) -> List[CategoryResponse]:
    """Retourne les catégories, triées par nom."""
    query = select(Category).order_by(Category.name)
    if active_only:
        query = query.where(Category.is_active.is_(True))
    return [CategoryResponse.model_validate(c) for c in db.execute(query).scalars().all()]


def get_category(db: Session, category_id: int) -> Optional[CategoryResponse]:
    """Retourne une catégorie par son ID, ou None si inexistante."""
    category = db.get(Category, category_id)
    if category is None:
        return None
    return CategoryResponse.model_validate(category)


def update_category(db: Session, category_id: int, data: CategoryUpdate) -> Optional[CategoryResponse]:
    """Met à jour les champs fournis d'une catégorie."""
    category = db.get(Category, category_id)
    if category is None:
        return None

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(category, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Une catégorie avec ce nom existe déjà.")
    db.refresh(category)
    return CategoryResponse.model_validate(category)


def delete_category(db: Session, category_id: int) -> bool:
    """
    Supprime une catégorie.
    Les challenges qui la référencent par nom conservent leur valeur (pas de cascade).
    """
    category = db.get(Category, category_id)
    if category is None:
        return False

    name = category.name
    db.delete(category)
    db.commit()
    logger.info("Catégorie supprimée : %s", name)
    return True


def toggle_category_status(db: Session, category_id: int) -> Optional[CategoryResponse]:
    """Active / désactive une catégorie."""
    category = db.get(Category, category_id)
    if category is None:
        return None

    category.is_active = not category.is_active
    db.commit()
    db.refresh(category)
    return CategoryResponse.model_validate(category)
