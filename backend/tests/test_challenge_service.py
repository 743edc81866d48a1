"""
Tests du service des challenges (SQLite en mémoire) et de la validation des schémas.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from app.errors import ChallengeInProgress, InvalidInput, NotFound
from app.models.progress import ChallengeProgress
from app.schemas.challenge import ChallengeCreate, ChallengeUpdate, StageCreate
from app.schemas.progress import StageSubmission
from app.services.challenge_service import (
    create_challenge,
    delete_challenge,
    generate_qr_image,
    get_challenge_admin,
    get_challenge_by_id,
    get_challenges,
    render_stage_qr,
    update_challenge,
)
from app.services.progress_service import join_challenge, submit_stage

NOW = datetime(2026, 6, 15, 12, 0, 0)  # instant de référence des fixtures (conftest)


def challenge_create(**overrides) -> ChallengeCreate:
    data = {
        "title": "Tour des fontaines",
        "difficulty": "easy",
        "xp_reward": 150,
        "start_date": NOW - timedelta(days=1),
        "end_date": NOW + timedelta(days=10),
        "stages": [
            StageCreate(title="Manneken", qr_code="MK-01"),
            StageCreate(title="Grand-Place", latitude=50.8467, longitude=4.3525),
        ],
    }
    data.update(overrides)
    return ChallengeCreate(**data)


# ============================================================
# Validation des schémas
# ============================================================

def test_difficulte_normalisee():
    assert challenge_create(difficulty="hard").difficulty == "HARD"


def test_difficulte_invalide():
    with pytest.raises(ValidationError):
        challenge_create(difficulty="EXTREME")


def test_recompense_nulle_refusee():
    with pytest.raises(ValidationError):
        challenge_create(xp_reward=0)


def test_fenetre_inversee_refusee():
    with pytest.raises(ValidationError):
        challenge_create(start_date=NOW, end_date=NOW - timedelta(hours=1))


def test_dates_avec_fuseau_converties_en_utc():
    created = challenge_create(
        start_date=datetime(2026, 6, 1, 14, 0, tzinfo=timezone(timedelta(hours=2))),
        end_date=datetime(2026, 7, 1, 14, 0, tzinfo=timezone.utc),
    )
    assert created.start_date == datetime(2026, 6, 1, 12, 0)
    assert created.start_date.tzinfo is None


def test_etape_coordonnees_incompletes():
    with pytest.raises(ValidationError):
        StageCreate(title="Parc", latitude=50.0)


def test_etape_latitude_hors_bornes():
    with pytest.raises(ValidationError):
        StageCreate(title="Parc", latitude=120.0, longitude=4.0)


def test_update_partiel_valide():
    update = ChallengeUpdate(difficulty="medium")
    assert update.difficulty == "MEDIUM"
    assert update.stages is None


# ============================================================
# Création et lecture
# ============================================================

def test_create_challenge_ordre_des_etapes(db):
    created = create_challenge(db, challenge_create())

    assert created.difficulty == "EASY"
    assert created.stage_count == 2
    assert [s.order for s in created.stages] == [0, 1]
    assert created.stages[0].qr_code == "MK-01"
    assert created.stages[0].requires_qr is True
    assert created.stages[1].requires_qr is False


def test_detail_public_masque_le_qr(db):
    created = create_challenge(db, challenge_create())
    detail = get_challenge_by_id(db, created.id)

    assert "qr_code" not in detail.stages[0].model_dump()
    assert detail.user_progress is None


def test_detail_avec_progression(db, levels, make_user):
    user = make_user()
    created = create_challenge(db, challenge_create())
    join_challenge(db, user.id, created.id, now=NOW)

    detail = get_challenge_by_id(db, created.id, user_id=user.id)

    assert detail.participant_count == 1
    assert detail.user_progress.stages[0].status == "PENDING"


def test_detail_introuvable(db):
    with pytest.raises(NotFound):
        get_challenge_by_id(db, 404)
    with pytest.raises(NotFound):
        get_challenge_admin(db, 404)


def test_filtres_de_liste(db, make_challenge):
    active = make_challenge()
    upcoming = make_challenge(start_date=NOW + timedelta(days=3), end_date=NOW + timedelta(days=9))
    finished = make_challenge(start_date=NOW - timedelta(days=9), end_date=NOW - timedelta(days=3))

    def ids(status):
        return {c.id for c in get_challenges(db, status=status, now=NOW).items}

    assert ids("active") == {active.id}
    assert ids("upcoming") == {upcoming.id}
    assert ids("completed") == {finished.id}
    assert get_challenges(db, status="all", now=NOW).total == 3


def test_filtre_difficulte_et_pagination(db, make_challenge):
    for _ in range(3):
        make_challenge()

    page = get_challenges(db, difficulty="medium", limit=2, offset=0, now=NOW)
    assert page.total == 3
    assert len(page.items) == 2
    assert get_challenges(db, difficulty="HARD", now=NOW).total == 0


def test_filtre_statut_inconnu(db):
    with pytest.raises(InvalidInput):
        get_challenges(db, status="archived", now=NOW)


# ============================================================
# Modification
# ============================================================

def test_update_champs(db):
    created = create_challenge(db, challenge_create())
    updated = update_challenge(db, created.id, ChallengeUpdate(title="Tour des parcs", xp_reward=200))

    assert updated.title == "Tour des parcs"
    assert updated.xp_reward == 200
    assert updated.stage_count == 2


def test_update_remplace_les_etapes_sans_participant(db):
    created = create_challenge(db, challenge_create())
    updated = update_challenge(db, created.id, ChallengeUpdate(stages=[
        StageCreate(title="A", qr_code="A"),
        StageCreate(title="B", qr_code="B"),
        StageCreate(title="C", qr_code="C"),
    ]))

    assert [s.title for s in updated.stages] == ["A", "B", "C"]
    assert [s.order for s in updated.stages] == [0, 1, 2]


def test_update_etapes_refuse_avec_participant(db, levels, make_user):
    user = make_user()
    created = create_challenge(db, challenge_create())
    join_challenge(db, user.id, created.id, now=NOW)

    with pytest.raises(ChallengeInProgress):
        update_challenge(db, created.id, ChallengeUpdate(
            title="Ne doit pas être appliqué",
            stages=[StageCreate(title="A", qr_code="A")],
        ))

    assert get_challenge_admin(db, created.id).title == "Tour des fontaines"


def test_update_fenetre_incoherente(db):
    created = create_challenge(db, challenge_create())
    with pytest.raises(InvalidInput):
        update_challenge(db, created.id, ChallengeUpdate(end_date=NOW - timedelta(days=5)))


def test_update_introuvable(db):
    with pytest.raises(NotFound):
        update_challenge(db, 404, ChallengeUpdate(title="X"))


# ============================================================
# Suppression
# ============================================================

def test_delete_challenge_sans_participant(db):
    created = create_challenge(db, challenge_create())
    assert delete_challenge(db, created.id) is True
    with pytest.raises(NotFound):
        get_challenge_by_id(db, created.id)


def test_delete_challenge_participant_actif(db, levels, make_user):
    user = make_user()
    created = create_challenge(db, challenge_create())
    join_challenge(db, user.id, created.id, now=NOW)

    with pytest.raises(ChallengeInProgress):
        delete_challenge(db, created.id)


def test_delete_challenge_participations_terminees(db, levels, make_user):
    user = make_user()
    created = create_challenge(db, challenge_create(stages=[StageCreate(title="Unique", qr_code="U")]))
    join_challenge(db, user.id, created.id, now=NOW)
    submit_stage(
        db, user.id,
        StageSubmission(stage_id=created.stages[0].id, submission_type="QR_CODE", content="U"),
        now=NOW,
    )

    assert delete_challenge(db, created.id) is True
    assert db.query(ChallengeProgress).count() == 0


def test_delete_challenge_introuvable(db):
    assert delete_challenge(db, 404) is False


# ============================================================
# QR codes
# ============================================================

def test_render_stage_qr_png(db):
    created = create_challenge(db, challenge_create())
    png = render_stage_qr(db, created.id, created.stages[0].id)
    assert png.startswith(b"\x89PNG")


def test_render_stage_qr_etape_gps(db):
    created = create_challenge(db, challenge_create())
    with pytest.raises(NotFound):
        render_stage_qr(db, created.id, created.stages[1].id)


def test_render_stage_qr_mauvais_challenge(db):
    created = create_challenge(db, challenge_create())
    with pytest.raises(NotFound):
        render_stage_qr(db, created.id + 1, created.stages[0].id)


def test_qr_encode_le_payload_de_l_etape(db):
    """Le PNG servi est celui du contenu attendu par submit-stage."""
    created = create_challenge(db, challenge_create())
    png = render_stage_qr(db, created.id, created.stages[0].id)
    assert png == generate_qr_image("MK-01")
    assert png != generate_qr_image("MK-02")


# ============================================================
# null explicite dans une mise à jour partielle
# ============================================================

@pytest.mark.parametrize("field", [
    "title", "difficulty", "xp_reward", "required_level", "start_date", "end_date", "is_active",
])
def test_update_null_refuse_sur_colonne_obligatoire(field):
    """Un champ NOT NULL envoyé à null est rejeté dès la validation."""
    with pytest.raises(ValidationError, match="null"):
        ChallengeUpdate(**{field: None})


def test_update_null_accepte_sur_colonne_facultative():
    update = ChallengeUpdate(max_participants=None, description=None, image_url=None)
    assert update.model_dump(exclude_unset=True) == {
        "max_participants": None, "description": None, "image_url": None,
    }


def test_update_leve_le_plafond_de_participants(db):
    created = create_challenge(db, challenge_create(max_participants=10))
    updated = update_challenge(db, created.id, ChallengeUpdate(max_participants=None))
    assert updated.max_participants is None
