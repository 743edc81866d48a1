"""
Tests unitaires pour le service des catégories.
"""

from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from app.errors import Conflict
from app.schemas.category import CategoryCreate, CategoryUpdate
from app.services.category_service import (
    create_category,
    delete_category,
    get_categories,
    get_category,
    toggle_category_status,
    update_category,
)


# --- Validation des schémas ---

def test_category_couleur_hexadecimale():
    assert CategoryCreate(name="Sport", color="#0f0").color == "#0f0"
    with pytest.raises(ValidationError):
        CategoryCreate(name="Sport", color="green")


def test_category_nom_nettoye():
    assert CategoryCreate(name="  Sport  ").name == "Sport"


# --- Avec BDD mockée ---

def test_create_category_doublon_rollback():
    """IntegrityError au commit → rollback puis Conflict."""
    db = MagicMock()
    db.commit.side_effect = IntegrityError("INSERT", {}, Exception("unique"))

    with pytest.raises(Conflict):
        create_category(db, CategoryCreate(name="Sport"))
    db.rollback.assert_called_once()


def test_get_category_introuvable():
    db = MagicMock()
    db.get.return_value = None
    assert get_category(db, 1) is None


def test_delete_category_introuvable():
    db = MagicMock()
    db.get.return_value = None
    assert delete_category(db, 1) is False
    db.delete.assert_not_called()


# --- Avec SQLite ---

def test_crud_categories(db):
    sport = create_category(db, CategoryCreate(name="Sport", color="#22c55e"))
    create_category(db, CategoryCreate(name="Culture"))

    assert [c.name for c in get_categories(db)] == ["Culture", "Sport"]

    updated = update_category(db, sport.id, CategoryUpdate(description="Courir, nager"))
    assert updated.description == "Courir, nager"
    assert updated.color == "#22c55e"

    toggled = toggle_category_status(db, sport.id)
    assert toggled.is_active is False
    assert [c.name for c in get_categories(db, active_only=True)] == ["Culture"]

    assert delete_category(db, sport.id) is True
    assert get_category(db, sport.id) is None


def test_renommage_en_doublon(db):
    create_category(db, CategoryCreate(name="Sport"))
    culture = create_category(db, CategoryCreate(name="Culture"))

    with pytest.raises(Conflict):
        update_category(db, culture.id, CategoryUpdate(name="Sport"))
