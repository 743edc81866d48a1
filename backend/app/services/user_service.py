"""
Service d'administration des utilisateurs (consultation, activation / désactivation).
Création de compte et connexion relèvent du service d'authentification.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import InvalidInput
from app.models.user import User
from app.schemas.user import UserResponse

logger = logging.getLogger(__name__)


def get_users(db: Session, limit: int = 50, offset: int = 0) -> List[UserResponse]:
    """Retourne les utilisateurs, du plus ancien au plus récent."""
    users = db.execute(
        select(User).order_by(User.created_at, User.id).limit(limit).offset(offset)
    ).scalars().all()
    return [UserResponse.model_validate(u) for u in users]


def get_user(db: Session, user_id: int) -> Optional[UserResponse]:
    user = db.get(User, user_id)
    if user is None:
        return None
    return UserResponse.model_validate(user)


def toggle_user_status(db: Session, user_id: int, acting_admin_id: Optional[int] = None) -> Optional[UserResponse]:
    """
    Active / désactive un compte (suppression logique).
    Un administrateur ne peut pas désactiver son propre compte.
    Retourne None si l'utilisateur est introuvable.
    """
    user = db.get(User, user_id)
    if user is None:
        return None
    if acting_admin_id is not None and user.id == acting_admin_id:
        raise InvalidInput("Vous ne pouvez pas désactiver votre propre compte.")

    user.is_active = not user.is_active
    db.commit()
    db.refresh(user)

    logger.info("Compte %s %s", user.id, "réactivé" if user.is_active else "désactivé")
    return UserResponse.model_validate(user)
