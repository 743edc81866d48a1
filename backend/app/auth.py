"""
Dépendances FastAPI d'authentification.

Les tokens JWT sont émis par le service d'authentification ; ce backend se contente
de les vérifier (signature HS256, claim `sub` = id utilisateur) et de charger le compte.
"""

import logging
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.errors import Forbidden, Unauthorized
from app.models.user import User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def decode_user_id(token: str) -> int:
    """Vérifie le token et retourne l'id utilisateur qu'il porte."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expiré.")
    except jwt.InvalidTokenError:
        raise Unauthorized("Token invalide.")

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise Unauthorized("Token invalide : identifiant utilisateur manquant.")


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Utilisateur authentifié, ou None si aucun token n'est fourni."""
    if credentials is None:
        return None

    user = db.get(User, decode_user_id(credentials.credentials))
    if user is None:
        raise Unauthorized("Utilisateur inconnu.")
    if not user.is_active:
        logger.info("Accès refusé au compte désactivé %s", user.id)
        raise Unauthorized("Ce compte est désactivé.")
    return user


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Utilisateur authentifié, 401 si absent."""
    if user is None:
        raise Unauthorized("Authentification requise.")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Utilisateur administrateur, 403 sinon."""
    if not user.is_admin:
        raise Forbidden("Accès réservé aux administrateurs.")
    return user
