"""
Tests d'intégration API pour l'administration : niveaux, catégories, utilisateurs.
"""

from unittest.mock import patch

from app.errors import Conflict, InvalidInput
from app.schemas.category import CategoryResponse
from app.schemas.level import LevelRecomputeResult, LevelResponse
from app.schemas.user import UserResponse


def make_level(**kwargs) -> LevelResponse:
    return LevelResponse(
        id=kwargs.get("id", 1),
        number=kwargs.get("number", 1),
        name=kwargs.get("name", "Beginner"),
        min_xp=kwargs.get("min_xp", 0),
        max_xp=kwargs.get("max_xp", 1000),
        is_active=kwargs.get("is_active", True),
    )


def make_category(**kwargs) -> CategoryResponse:
    return CategoryResponse(
        id=kwargs.get("id", 1),
        name=kwargs.get("name", "Découverte"),
        description=None,
        icon=None,
        color=kwargs.get("color", "#22c55e"),
        is_active=kwargs.get("is_active", True),
    )


# ============================================================
# /api/v1/levels
# ============================================================

def test_list_levels_public(client):
    with patch("app.routers.levels.level_service.get_levels") as mock:
        mock.return_value = [make_level(), make_level(id=2, number=2, name="Explorer", min_xp=1000, max_xp=3000)]
        response = client.get("/api/v1/levels")

    assert response.status_code == 200
    assert [lvl["number"] for lvl in response.json()] == [1, 2]


def test_get_level_introuvable(client):
    with patch("app.routers.levels.level_service.get_level") as mock:
        mock.return_value = None
        response = client.get("/api/v1/levels/9")
    assert response.status_code == 404


def test_create_level_sans_authentification(client):
    response = client.post("/api/v1/levels", json={"number": 4, "name": "Legend", "min_xp": 6000})
    assert response.status_code == 401


def test_create_level_utilisateur_standard(client, as_user):
    response = client.post("/api/v1/levels", json={"number": 4, "name": "Legend", "min_xp": 6000})
    assert response.status_code == 403


def test_create_level_admin(client, as_admin):
    with patch("app.routers.levels.level_service.create_level") as mock:
        mock.return_value = make_level(id=4, number=4, name="Legend", min_xp=6000, max_xp=None)
        response = client.post("/api/v1/levels", json={"number": 4, "name": "Legend", "min_xp": 6000})

    assert response.status_code == 201
    assert response.json()["max_xp"] is None


def test_create_level_plage_invalide(client, as_admin):
    """max_xp <= min_xp → 422."""
    response = client.post("/api/v1/levels", json={"number": 4, "name": "Legend", "min_xp": 6000, "max_xp": 5000})
    assert response.status_code == 422


def test_create_level_chevauchement(client, as_admin):
    with patch("app.routers.levels.level_service.create_level") as mock:
        mock.side_effect = InvalidInput("La plage [500, 1500) chevauche celle du niveau 1.")
        response = client.post("/api/v1/levels", json={"number": 4, "name": "X", "min_xp": 500, "max_xp": 1500})

    assert response.status_code == 400
    assert response.json()["kind"] == "INVALID_INPUT"


def test_create_level_numero_existant(client, as_admin):
    with patch("app.routers.levels.level_service.create_level") as mock:
        mock.side_effect = Conflict("Le niveau 1 existe déjà.")
        response = client.post("/api/v1/levels", json={"number": 1, "name": "X", "min_xp": 9000})
    assert response.status_code == 409


def test_update_level_min_xp_null(client, as_admin):
    """min_xp: null → 422, la base n'est jamais sollicitée (pas de faux 409)."""
    with patch("app.routers.levels.level_service.update_level") as mock:
        response = client.put("/api/v1/levels/1", json={"min_xp": None})

    assert response.status_code == 422
    mock.assert_not_called()


def test_delete_level(client, as_admin):
    with patch("app.routers.levels.level_service.delete_level") as mock:
        mock.return_value = True
        response = client.delete("/api/v1/levels/2")
    assert response.status_code == 204


def test_recompute_users(client, as_admin):
    with patch("app.routers.levels.level_service.recompute_user_levels") as mock:
        mock.return_value = LevelRecomputeResult(total_users=10, updated_users=3)
        response = client.post("/api/v1/levels/recompute-users")

    assert response.status_code == 200
    assert response.json() == {"total_users": 10, "updated_users": 3}


# ============================================================
# /api/v1/categories
# ============================================================

def test_list_categories_actives(client):
    with patch("app.routers.categories.category_service.get_categories") as mock:
        mock.return_value = [make_category()]
        response = client.get("/api/v1/categories?active_only=true")

    assert response.status_code == 200
    assert mock.call_args.args[1] is True


def test_create_category_couleur_invalide(client, as_admin):
    response = client.post("/api/v1/categories", json={"name": "Sport", "color": "vert"})
    assert response.status_code == 422


def test_create_category_doublon(client, as_admin):
    with patch("app.routers.categories.category_service.create_category") as mock:
        mock.side_effect = Conflict("Une catégorie avec le nom 'Sport' existe déjà.")
        response = client.post("/api/v1/categories", json={"name": "Sport"})
    assert response.status_code == 409


def test_toggle_category(client, as_admin):
    with patch("app.routers.categories.category_service.toggle_category_status") as mock:
        mock.return_value = make_category(is_active=False)
        response = client.patch("/api/v1/categories/1/toggle-status")

    assert response.status_code == 200
    assert response.json()["is_active"] is False


def test_update_category_introuvable(client, as_admin):
    with patch("app.routers.categories.category_service.update_category") as mock:
        mock.return_value = None
        response = client.put("/api/v1/categories/9", json={"name": "Nature"})
    assert response.status_code == 404


# ============================================================
# /api/v1/users
# ============================================================

def make_user_response(**kwargs) -> UserResponse:
    return UserResponse(
        id=kwargs.get("id", 1),
        email=kwargs.get("email", "player1@example.com"),
        username=kwargs.get("username", "player1"),
        xp=kwargs.get("xp", 0),
        level=kwargs.get("level", 1),
        is_admin=False,
        is_active=kwargs.get("is_active", True),
    )


def test_list_users_reserve_admin(client, as_user):
    response = client.get("/api/v1/users")
    assert response.status_code == 403


def test_list_users(client, as_admin):
    with patch("app.routers.users.user_service.get_users") as mock:
        mock.return_value = [make_user_response()]
        response = client.get("/api/v1/users?limit=10")

    assert response.status_code == 200
    assert response.json()[0]["username"] == "player1"
    assert mock.call_args.args[1:] == (10, 0)


def test_toggle_user(client, as_admin):
    with patch("app.routers.users.user_service.toggle_user_status") as mock:
        mock.return_value = make_user_response(is_active=False)
        response = client.patch("/api/v1/users/1/toggle-status")

    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert mock.call_args.kwargs["acting_admin_id"] == as_admin.id


def test_toggle_propre_compte(client, as_admin):
    with patch("app.routers.users.user_service.toggle_user_status") as mock:
        mock.side_effect = InvalidInput("Vous ne pouvez pas désactiver votre propre compte.")
        response = client.patch(f"/api/v1/users/{as_admin.id}/toggle-status")
    assert response.status_code == 400
