"""
Service métier pour la table des niveaux (administration) et la construction du résolveur.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import Conflict, InvalidInput
from app.models.level import Level
from app.models.user import User
from app.schemas.level import LevelCreate, LevelRecomputeResult, LevelResponse, LevelUpdate
from app.services.level_resolver import DEFAULT_SPAN, LevelResolver, LevelThreshold

logger = logging.getLogger(__name__)


def build_resolver(db: Session, default_span: int = DEFAULT_SPAN) -> LevelResolver:
    """Construit un résolveur à partir des niveaux actifs."""
    levels = db.execute(
        select(Level).where(Level.is_active.is_(True)).order_by(Level.number)
    ).scalars().all()
    return LevelResolver(
        [LevelThreshold(number=lvl.number, min_xp=lvl.min_xp, name=lvl.name) for lvl in levels],
        default_span=default_span,
    )


def get_levels(db: Session, active_only: bool = False) -> List[LevelResponse]:
    """Retourne les niveaux triés par numéro."""
    query = select(Level).order_by(Level.number)
    if active_only:
        query = query.where(Level.is_active.is_(True))
    return [LevelResponse.model_validate(lvl) for lvl in db.execute(query).scalars().all()]


def get_level(db: Session, level_id: int) -> Optional[LevelResponse]:
    level = db.get(Level, level_id)
    if level is None:
        return None
    return LevelResponse.model_validate(level)


def create_level(db: Session, data: LevelCreate) -> LevelResponse:
    """
    Crée un niveau.
    Lève Conflict si le numéro existe déjà, InvalidInput si la plage chevauche un niveau actif.
    """
    if data.is_active:
        _check_no_overlap(db, data.number, data.min_xp, data.max_xp)

    level = Level(**data.model_dump())
    db.add(level)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"Le niveau {data.number} existe déjà.")
    db.refresh(level)

    logger.info("Niveau créé : %d (%s) [%d, %s)", level.number, level.name, level.min_xp, level.max_xp)
    return LevelResponse.model_validate(level)


def update_level(db: Session, level_id: int, data: LevelUpdate) -> Optional[LevelResponse]:
    """Met à jour les champs fournis d'un niveau. Retourne None si introuvable."""
    level = db.get(Level, level_id)
    if level is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    number = update_data.get("number", level.number)
    min_xp = update_data.get("min_xp", level.min_xp)
    max_xp = update_data.get("max_xp", level.max_xp)
    is_active = update_data.get("is_active", level.is_active)

    if max_xp is not None and max_xp <= min_xp:
        raise InvalidInput("max_xp doit être strictement supérieur à min_xp.")
    if is_active:
        _check_no_overlap(db, number, min_xp, max_xp, exclude_id=level.id)

    for field, value in update_data.items():
        setattr(level, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"Le niveau {number} existe déjà.")
    db.refresh(level)
    return LevelResponse.model_validate(level)


def delete_level(db: Session, level_id: int) -> bool:
    """
    Supprime un niveau.
    Toujours autorisé : le résolveur retombe sur le niveau défini le plus proche.
    Retourne True si supprimé, False si introuvable.
    """
    level = db.get(Level, level_id)
    if level is None:
        return False

    number, name = level.number, level.name
    db.delete(level)
    db.commit()
    logger.info("Niveau supprimé : %d (%s)", number, name)
    return True


def recompute_user_levels(db: Session, default_span: int = DEFAULT_SPAN) -> LevelRecomputeResult:
    """
    Recalcule le niveau en cache de chaque utilisateur à partir de son XP.
    Nécessaire après une modification de la table des niveaux.
    """
    resolver = build_resolver(db, default_span)
    users = db.execute(select(User)).scalars().all()

    updated = 0
    for user in users:
        level = resolver.resolve_level(user.xp or 0)
        if user.level != level:
            user.level = level
            updated += 1

    db.commit()
    logger.info("Niveaux utilisateurs recalculés : %d/%d modifiés", updated, len(users))
    return LevelRecomputeResult(total_users=len(users), updated_users=updated)


def _check_no_overlap(
    db: Session,
    number: int,
    min_xp: int,
    max_xp: Optional[int],
    exclude_id: Optional[int] = None,
) -> None:
    """Refuse une plage [min_xp, max_xp) qui chevauche celle d'un autre niveau actif."""
    query = select(Level).where(Level.is_active.is_(True))
    if exclude_id is not None:
        query = query.where(Level.id != exclude_id)

    for other in db.execute(query).scalars().all():
        if other.number == number:
            continue  # doublon de numéro : remonté par la contrainte d'unicité
        other_max = other.max_xp if other.max_xp is not None else float("inf")
        new_max = max_xp if max_xp is not None else float("inf")
        if min_xp < other_max and other.min_xp < new_max:
            raise InvalidInput(
                f"La plage [{min_xp}, {max_xp if max_xp is not None else '∞'}) "
                f"chevauche celle du niveau {other.number}."
            )
