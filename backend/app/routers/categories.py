"""
Router pour les catégories. Lecture publique, écriture réservée aux administrateurs.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.auth import require_admin
from app.database import get_db
from app.models.user import User
from app.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from app.services import category_service

router = APIRouter(prefix="/api/v1/categories", tags=["Catégories"])


@router.get("", response_model=List[CategoryResponse], summary="Lister les catégories")
def list_categories(active_only: bool = False, db: Session = Depends(get_db)):
    return category_service.get_categories(db, active_only)


@router.get("/{category_id}", response_model=CategoryResponse, summary="Détail d'une catégorie")
def get_category(category_id: int, db: Session = Depends(get_db)):
    category = category_service.get_category(db, category_id)
    if category is None:
        raise HTTPException(status_code=404, detail="Catégorie introuvable.")
    return category


@router.post("", response_model=CategoryResponse, status_code=201, summary="Créer une catégorie")
def create_category(data: CategoryCreate, _admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Crée une catégorie au nom unique (409 sinon)."""
    return category_service.create_category(db, data)


@router.put("/{category_id}", response_model=CategoryResponse, summary="Modifier une catégorie")
def update_category(
    category_id: int,
    data: CategoryUpdate,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    category = category_service.update_category(db, category_id, data)
    if category is None:
        raise HTTPException(status_code=404, detail="Catégorie introuvable.")
    return category


@router.delete("/{category_id}", status_code=204, summary="Supprimer une catégorie")
def delete_category(category_id: int, _admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if not category_service.delete_category(db, category_id):
        raise HTTPException(status_code=404, detail="Catégorie introuvable.")


@router.patch("/{category_id}/toggle-status", response_model=CategoryResponse,
              summary="Activer / désactiver une catégorie")
def toggle_category_status(category_id: int, _admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    category = category_service.toggle_category_status(db, category_id)
    if category is None:
        raise HTTPException(status_code=404, detail="Catégorie introuvable.")
    return category
