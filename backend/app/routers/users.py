"""
Router d'administration des utilisateurs.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.auth import require_admin
from app.database import get_db
from app.models.user import User
from app.schemas.user import UserResponse
from app.services import user_service

router = APIRouter(prefix="/api/v1/users", tags=["Utilisateurs"])


@router.get("", response_model=List[UserResponse], summary="Lister les utilisateurs")
def list_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return user_service.get_users(db, limit, offset)


@router.get("/{user_id}", response_model=UserResponse, summary="Détail d'un utilisateur")
def get_user(user_id: int, _admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    user = user_service.get_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="Utilisateur introuvable.")
    return user


@router.patch("/{user_id}/toggle-status", response_model=UserResponse,
              summary="Activer / désactiver un compte")
def toggle_user_status(user_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Un compte désactivé ne peut plus s'authentifier et disparaît du classement."""
    user = user_service.toggle_user_status(db, user_id, acting_admin_id=admin.id)
    if user is None:
        raise HTTPException(status_code=404, detail="Utilisateur introuvable.")
    return user
