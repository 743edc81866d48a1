"""
Router pour la table des niveaux. Lecture publique, écriture réservée aux administrateurs.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.auth import require_admin
from app.config import settings
from app.database import get_db
from app.models.user import User
from app.schemas.level import LevelCreate, LevelRecomputeResult, LevelResponse, LevelUpdate
from app.services import level_service

router = APIRouter(prefix="/api/v1/levels", tags=["Niveaux"])


@router.get("", response_model=List[LevelResponse], summary="Lister les niveaux")
def list_levels(active_only: bool = False, db: Session = Depends(get_db)):
    return level_service.get_levels(db, active_only)


@router.get("/{level_id}", response_model=LevelResponse, summary="Détail d'un niveau")
def get_level(level_id: int, db: Session = Depends(get_db)):
    level = level_service.get_level(db, level_id)
    if level is None:
        raise HTTPException(status_code=404, detail="Niveau introuvable.")
    return level


@router.post("", response_model=LevelResponse, status_code=201, summary="Créer un niveau")
def create_level(data: LevelCreate, _admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Crée un palier d'XP. 409 si le numéro existe, 400 si la plage chevauche un niveau actif."""
    return level_service.create_level(db, data)


@router.put("/{level_id}", response_model=LevelResponse, summary="Modifier un niveau")
def update_level(
    level_id: int,
    data: LevelUpdate,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    level = level_service.update_level(db, level_id, data)
    if level is None:
        raise HTTPException(status_code=404, detail="Niveau introuvable.")
    return level


@router.delete("/{level_id}", status_code=204, summary="Supprimer un niveau")
def delete_level(level_id: int, _admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if not level_service.delete_level(db, level_id):
        raise HTTPException(status_code=404, detail="Niveau introuvable.")


@router.post("/recompute-users", response_model=LevelRecomputeResult,
             summary="Recalculer le niveau de tous les utilisateurs")
def recompute_users(_admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """À lancer après une modification de la table (le planificateur le fait aussi périodiquement)."""
    return level_service.recompute_user_levels(db, settings.LEVEL_DEFAULT_SPAN)
